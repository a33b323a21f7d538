"""
Reconciliation Coordinator - one backfill session from draft to saved invoice.

Flow:
1. CREATED     draft handed in (manual template or extraction result)
2. ENRICHING   customers, inventory and business profile fetched concurrently;
               each result is applied as soon as it arrives, a failed fetch
               counts as "no candidates"
3. EDITABLE    user edits freely; every edit recomputes totals (COMPUTED)
4. SAVING      snapshot + totals handed to the PersistenceGateway
5. SAVED       terminal; further edits raise DraftClosedError

The session owns its draft. Nothing here is shared between sessions, so no
locking is needed beyond the fan-out of the enrichment fetches.
"""

import copy
import logging
from functools import partial
from concurrent.futures import ThreadPoolExecutor, as_completed
from concurrent.futures import TimeoutError as FuturesTimeout
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional

from .adapters import RecordStore
from .computer import aggregate, line_subtotals, to_number
from .config import Config
from .errors import DraftClosedError, InvalidDraftError, MissingIdentityError
from .gateway import PersistenceGateway
from .index import CandidateIndex, build_index
from .matcher import MatchStrategy, enrich_customer, get_strategy, match_inventory
from .models import (
    BusinessProfile,
    DraftState,
    FinalizedInvoice,
    Identity,
    InvoiceDraft,
    LineItem,
    Totals,
)

logger = logging.getLogger(__name__)

SOURCE_CUSTOMERS = "customers"
SOURCE_INVENTORY = "inventory"
SOURCE_PROFILE = "business_profile"

INVOICE_FIELDS = ("invoice_date", "tax_percent", "payment_mode", "invoice_type")


@dataclass
class EnrichmentReport:
    """What enrichment did to the draft."""
    customer_fields_filled: list[str] = field(default_factory=list)
    items_enriched: int = 0
    customer_candidates: int = 0
    inventory_candidates: int = 0
    failed_sources: list[str] = field(default_factory=list)
    skipped: bool = False

    @property
    def customer_matched(self) -> bool:
        return bool(self.customer_fields_filled)


class ReconciliationCoordinator:
    """
    Drives one draft through enrichment, editing, computation and save.

    Args:
        draft: The draft to own (mutated in place by edits and enrichment)
        store: Record store for candidate reads
        identity: Retailer identity; without it enrichment is skipped and
                  save fails
        gateway: Persistence gateway (defaults to one over store)
        config: Backfill config (defaults to built-in defaults)
        customer_strategy: Overrides the configured customer match strategy
        candidate_index_factory: Builds the candidate index for each fetch
                                 result (defaults to the configured kind)
    """

    def __init__(
        self,
        draft: InvoiceDraft,
        store: RecordStore,
        identity: Optional[Identity] = None,
        gateway: Optional[PersistenceGateway] = None,
        config: Optional[Config] = None,
        customer_strategy: Optional[MatchStrategy] = None,
        candidate_index_factory: Optional[Callable[[Iterable], CandidateIndex]] = None,
    ):
        self.config = config or Config()
        self.store = store
        self.identity = identity
        self.gateway = gateway or PersistenceGateway(store, id_prefix=self.config.invoice_id_prefix)
        self.customer_strategy = customer_strategy or get_strategy(self.config.matching.customer_strategy)
        self.candidate_index_factory = candidate_index_factory or partial(
            build_index, kind=self.config.matching.candidate_index
        )
        self.business_profile: Optional[BusinessProfile] = None

        self._draft: Optional[InvoiceDraft] = draft
        self._state = DraftState.CREATED
        self._report: Optional[EnrichmentReport] = None
        self._finalized: Optional[FinalizedInvoice] = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> DraftState:
        return self._state

    @property
    def draft(self) -> InvoiceDraft:
        if self._draft is None:
            raise DraftClosedError("Draft was cancelled")
        return self._draft

    @property
    def totals(self) -> Totals:
        """Totals for the draft as it is right now."""
        draft = self.draft
        return aggregate(draft.line_items, draft.tax_percent)

    @property
    def finalized(self) -> Optional[FinalizedInvoice]:
        return self._finalized

    @property
    def enrichment_report(self) -> Optional[EnrichmentReport]:
        return self._report

    def _ensure_open(self):
        if self._state == DraftState.SAVED:
            raise DraftClosedError(f"Draft {self._finalized.idempotency_key} is already saved")
        if self._state == DraftState.CANCELLED:
            raise DraftClosedError("Draft was cancelled")

    # ------------------------------------------------------------------
    # Enrichment
    # ------------------------------------------------------------------

    def enrich(self, timeout: Optional[float] = None) -> EnrichmentReport:
        """
        Fill empty draft fields from the retailer's records.

        Runs at most once per session; later calls return the first report.

        Args:
            timeout: Seconds to wait for all fetches (defaults to config)

        Returns:
            EnrichmentReport
        """
        self._ensure_open()
        if self._report is not None:
            return self._report

        report = EnrichmentReport()

        if self.identity is None:
            logger.warning("No retailer identity; skipping enrichment")
            report.skipped = True
            self._report = report
            self._state = DraftState.EDITABLE
            return report

        retailer_id = self.identity.retailer_id
        if timeout is None:
            timeout = self.config.matching.enrichment_timeout_seconds

        fetches = {
            SOURCE_CUSTOMERS: self.store.list_customers,
            SOURCE_INVENTORY: self.store.list_inventory,
            SOURCE_PROFILE: self.store.get_business_profile,
        }

        self._state = DraftState.ENRICHING
        executor = ThreadPoolExecutor(max_workers=len(fetches), thread_name_prefix="backfill-enrich")
        try:
            futures = {executor.submit(fetch, retailer_id): source for source, fetch in fetches.items()}
            pending = set(futures)
            try:
                for future in as_completed(futures, timeout=timeout):
                    pending.discard(future)
                    source = futures[future]
                    try:
                        result = future.result()
                    except Exception as e:
                        logger.warning(f"Enrichment fetch '{source}' failed for retailer {retailer_id}: {e}")
                        report.failed_sources.append(source)
                        continue
                    self._apply(source, result, report)
            except FuturesTimeout:
                for future in pending:
                    future.cancel()
                    source = futures[future]
                    logger.warning(f"Enrichment fetch '{source}' timed out after {timeout}s for retailer {retailer_id}")
                    report.failed_sources.append(source)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        self._report = report
        self._state = DraftState.EDITABLE
        logger.info(
            f"Enriched draft {self._draft.draft_id}: customer fields {report.customer_fields_filled or 'none'}, "
            f"{report.items_enriched} line item(s) enriched, failed sources {report.failed_sources or 'none'}"
        )
        return report

    def _apply(self, source: str, result, report: EnrichmentReport):
        """Merge one fetch result into the live draft."""
        draft = self._draft

        if source == SOURCE_CUSTOMERS:
            candidates = list(result or [])
            report.customer_candidates = len(candidates)
            index = self.candidate_index_factory(candidates)
            draft.customer, report.customer_fields_filled = enrich_customer(
                draft.customer, index, self.customer_strategy
            )

        elif source == SOURCE_INVENTORY:
            candidates = list(result or [])
            report.inventory_candidates = len(candidates)
            index = self.candidate_index_factory(candidates)
            before = draft.line_items
            draft.line_items = match_inventory(before, index)
            report.items_enriched = sum(1 for old, new in zip(before, draft.line_items) if old != new)

        elif source == SOURCE_PROFILE:
            self.business_profile = result

    # ------------------------------------------------------------------
    # Edits
    # ------------------------------------------------------------------

    def recompute(self) -> Totals:
        """Recompute totals and mark the draft computed."""
        self._ensure_open()
        totals = self.totals
        self._state = DraftState.COMPUTED
        return totals

    def update_customer(self, **fields) -> Totals:
        """Overwrite customer fields. User edits always win."""
        self._ensure_open()
        self.draft.customer = replace(self.draft.customer, **fields)
        return self.recompute()

    def update_line_item(self, index: int, **fields) -> Totals:
        self._ensure_open()
        items = self.draft.line_items
        items[index] = replace(items[index], **fields)
        return self.recompute()

    def add_line_item(self, item: Optional[LineItem] = None) -> Totals:
        self._ensure_open()
        self.draft.line_items.append(item or LineItem())
        return self.recompute()

    def remove_line_item(self, index: int) -> Totals:
        self._ensure_open()
        del self.draft.line_items[index]
        return self.recompute()

    def set_tax_percent(self, value) -> Totals:
        return self.update_invoice(tax_percent=value)

    def update_invoice(self, **fields) -> Totals:
        """Edit invoice-level fields (date, tax percent, payment mode, type)."""
        self._ensure_open()
        unknown = set(fields) - set(INVOICE_FIELDS)
        if unknown:
            raise ValueError(f"Unknown invoice field(s): {', '.join(sorted(unknown))}")
        for name, value in fields.items():
            setattr(self.draft, name, value)
        return self.recompute()

    def line_subtotals(self) -> list[float]:
        return line_subtotals(self.draft.line_items)

    # ------------------------------------------------------------------
    # Validation and save
    # ------------------------------------------------------------------

    def validate(self) -> list[str]:
        """
        Boundary checks for save.

        Unparseable numbers are not problems (they count as 0); negative
        amounts, out-of-range discounts and unknown modes/types are.
        """
        draft = self.draft
        max_discount = self.config.validation.max_discount_percent
        problems = []

        for pos, item in enumerate(draft.line_items, start=1):
            label = item.name or f"Line {pos}"
            if to_number(item.price) < 0:
                problems.append(f"{label}: price cannot be negative")
            if to_number(item.quantity) < 0:
                problems.append(f"{label}: quantity cannot be negative")
            discount = to_number(item.discount_percent)
            if discount < 0 or discount > max_discount:
                problems.append(f"{label}: discount must be between 0 and {max_discount:g}%")

        if to_number(draft.tax_percent) < 0:
            problems.append("Tax percent cannot be negative")
        if draft.payment_mode not in self.config.payment_modes:
            problems.append(f"Unknown payment mode '{draft.payment_mode}'")
        if draft.invoice_type not in self.config.invoice_types:
            problems.append(f"Unknown invoice type '{draft.invoice_type}'")

        return problems

    def build_finalized(self, now: Optional[datetime] = None) -> FinalizedInvoice:
        """Snapshot the current draft and totals as an unsaved FinalizedInvoice."""
        draft = copy.deepcopy(self.draft)
        totals = aggregate(draft.line_items, draft.tax_percent)
        created_at = (now or datetime.now(timezone.utc)).isoformat()

        return FinalizedInvoice(
            customer=draft.customer,
            line_items=tuple(draft.line_items),
            invoice_date=draft.invoice_date,
            tax_percent=to_number(draft.tax_percent),
            payment_mode=draft.payment_mode,
            invoice_type=draft.invoice_type,
            subtotal=totals.subtotal,
            tax_amount=totals.tax_amount,
            total=totals.total,
            created_at=created_at,
            idempotency_key=draft.draft_id,
        )

    def save(self) -> FinalizedInvoice:
        """
        Persist the draft once.

        Raises:
            MissingIdentityError: no retailer identity; draft stays editable
            InvalidDraftError: strict validation failed; draft stays editable
            DuplicateSubmissionError: the store already has this draft
        """
        if self._state == DraftState.SAVED:
            return self._finalized
        self._ensure_open()

        if self.identity is None:
            logger.warning(f"Save of draft {self.draft.draft_id} refused: no retailer identity")
            raise MissingIdentityError()

        if self.config.validation.strict:
            problems = self.validate()
            if problems:
                raise InvalidDraftError(problems)

        previous_state = self._state
        self._state = DraftState.SAVING
        try:
            snapshot = self.build_finalized()
            invoice_id = self.gateway.save(self.identity, snapshot)
        except Exception:
            self._state = previous_state
            raise

        # Written; the session is saved whether or not issuedAt can be read back
        self._finalized = replace(snapshot, invoice_id=invoice_id)
        self._state = DraftState.SAVED

        try:
            stored = self.store.get_finalized_invoice(self.identity.retailer_id, invoice_id) or {}
        except Exception as e:
            logger.warning(f"Saved invoice {invoice_id} but could not read back issuedAt: {e}")
            return self._finalized
        issued_at = stored.get("issuedAt")
        if issued_at is not None:
            self._finalized = replace(self._finalized, issued_at=str(issued_at))
        return self._finalized

    def cancel(self):
        """Abandon the draft. Nothing external needs cleaning up."""
        self._ensure_open()
        self._draft = None
        self._state = DraftState.CANCELLED
        logger.info("Backfill draft cancelled")
