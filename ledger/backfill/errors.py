"""
Exceptions raised by the backfill engine.

Callers catch BackfillError for anything the engine rejects on purpose.
Fetch failures during enrichment are never raised; they are logged and
treated as empty candidate sets.
"""

from typing import Optional


class BackfillError(Exception):
    """Base class for backfill errors."""


class MissingIdentityError(BackfillError):
    """No retailer identity is available to scope a write."""

    def __init__(self, message: str = "No authenticated retailer. Sign in and try saving again."):
        super().__init__(message)


class DuplicateSubmissionError(BackfillError):
    """A finalized invoice already exists for this idempotency key."""

    def __init__(self, idempotency_key: str, invoice_id: Optional[str] = None):
        self.idempotency_key = idempotency_key
        self.invoice_id = invoice_id
        super().__init__(
            f"Draft {idempotency_key} was already saved as {invoice_id or 'an existing invoice'}"
        )


class InvalidDraftError(BackfillError):
    """Draft failed boundary validation and was not saved."""

    def __init__(self, problems: list[str]):
        self.problems = problems
        super().__init__("; ".join(problems))


class DraftClosedError(BackfillError):
    """Draft was already saved or cancelled and can no longer change."""


class ExtractionError(BackfillError):
    """The extraction path failed or returned an unusable result."""


class RecordNotFoundError(BackfillError):
    """A requested record does not exist for this retailer."""


class InvoiceIdConflictError(BackfillError):
    """The store already holds an invoice under this invoice id."""

    def __init__(self, invoice_id: str):
        self.invoice_id = invoice_id
        super().__init__(f"Invoice id {invoice_id} is already taken")
