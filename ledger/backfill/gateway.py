"""
Persistence Gateway - the single write of a finalized invoice.

Contract:
- an identity is required; nothing is written without one
- the draft id is the idempotency key; a second save of the same draft is
  rejected with DuplicateSubmissionError carrying the existing invoice id
- invoice ids are "<prefix>-<epoch ms>", strictly increasing across every
  gateway in the process; an id the store already holds is skipped
- the store stamps issuedAt; createdAt comes from the client snapshot
"""

import logging
import threading
import time
from dataclasses import replace
from typing import Callable, Optional

from .adapters import RecordStore
from .computer import round_currency, to_number
from .errors import (
    DuplicateSubmissionError,
    InvoiceIdConflictError,
    MissingIdentityError,
    RecordNotFoundError,
)
from .models import BACKFILLED_STATUS, CustomerInfo, FinalizedInvoice, Identity, LineItem

logger = logging.getLogger(__name__)

# Attempts at a fresh invoice id before a conflict is raised to the caller
MAX_ID_ATTEMPTS = 10


def invoice_to_record(finalized: FinalizedInvoice) -> dict:
    """
    Convert a finalized invoice to the persisted record shape.

    Money is rounded to 2 decimals here. total is the sum of the rounded
    subtotal and tax so the stored record still adds up.
    """
    subtotal = round_currency(finalized.subtotal)
    gst_amount = round_currency(finalized.tax_amount)

    record = {
        "customer": {
            "name": finalized.customer.name,
            "phone": finalized.customer.phone,
            "email": finalized.customer.email,
            "address": finalized.customer.address,
        },
        "products": [
            {
                "name": item.name,
                "brand": item.brand,
                "category": item.category,
                "quantity": to_number(item.quantity),
                "unit": item.unit,
                "price": to_number(item.price),
                "discount": to_number(item.discount_percent),
                "sku": item.sku,
                "hsnCode": item.hsn_code,
            }
            for item in finalized.line_items
        ],
        "invoiceDate": finalized.invoice_date,
        "gstPercent": to_number(finalized.tax_percent),
        "gstAmount": gst_amount,
        "subtotal": subtotal,
        "total": round_currency(subtotal + gst_amount),
        "paymentMode": finalized.payment_mode,
        "invoiceType": finalized.invoice_type,
        "status": finalized.status,
        "createdAt": finalized.created_at,
        "invoiceId": finalized.invoice_id,
        "idempotencyKey": finalized.idempotency_key,
    }
    if finalized.issued_at is not None:
        record["issuedAt"] = finalized.issued_at
    return record


def invoice_from_record(record: dict) -> FinalizedInvoice:
    """Rebuild a FinalizedInvoice from a stored record."""
    customer = record.get("customer") or {}
    items = tuple(
        LineItem(
            name=p.get("name", ""),
            brand=p.get("brand", ""),
            category=p.get("category", ""),
            quantity=p.get("quantity", 0),
            unit=p.get("unit", ""),
            price=p.get("price", 0),
            discount_percent=p.get("discount", 0),
            sku=p.get("sku", ""),
            hsn_code=p.get("hsnCode", ""),
        )
        for p in record.get("products", [])
    )
    issued_at = record.get("issuedAt")
    return FinalizedInvoice(
        customer=CustomerInfo(
            name=customer.get("name", ""),
            phone=customer.get("phone", ""),
            email=customer.get("email", ""),
            address=customer.get("address", ""),
        ),
        line_items=items,
        invoice_date=record.get("invoiceDate", ""),
        tax_percent=to_number(record.get("gstPercent")),
        payment_mode=record.get("paymentMode", ""),
        invoice_type=record.get("invoiceType", ""),
        subtotal=to_number(record.get("subtotal")),
        tax_amount=to_number(record.get("gstAmount")),
        total=to_number(record.get("total")),
        created_at=record.get("createdAt", ""),
        idempotency_key=record.get("idempotencyKey", ""),
        status=record.get("status", BACKFILLED_STATUS),
        invoice_id=record.get("invoiceId"),
        issued_at=str(issued_at) if issued_at is not None else None,
    )


def _epoch_ms() -> int:
    return int(time.time() * 1000)


class InvoiceIdSequence:
    """Epoch-millisecond values that never repeat, bumped by 1 ms when the clock stalls."""

    def __init__(self, clock: Optional[Callable[[], int]] = None):
        self._clock = clock or _epoch_ms
        self._last_ms = 0
        self._lock = threading.Lock()

    def next(self) -> int:
        with self._lock:
            ms = max(self._clock(), self._last_ms + 1)
            self._last_ms = ms
        return ms


# Shared by every gateway that is not given its own clock or sequence
_process_sequence = InvoiceIdSequence()


class PersistenceGateway:
    """Writes finalized invoices to a RecordStore exactly once per draft."""

    def __init__(
        self,
        store: RecordStore,
        id_prefix: str = "FLYP",
        clock: Optional[Callable[[], int]] = None,
        sequence: Optional[InvoiceIdSequence] = None,
    ):
        self.store = store
        self.id_prefix = id_prefix
        if sequence is None:
            sequence = InvoiceIdSequence(clock) if clock is not None else _process_sequence
        self.sequence = sequence

    def next_invoice_id(self) -> str:
        """Timestamp-derived id, unique within the sequence."""
        return f"{self.id_prefix}-{self.sequence.next()}"

    def save(self, identity: Optional[Identity], finalized: FinalizedInvoice) -> str:
        """
        Persist a finalized invoice.

        Args:
            identity: Retailer to write under (required)
            finalized: Unsaved snapshot from the coordinator

        Returns:
            The new invoice id

        Raises:
            MissingIdentityError: no identity, nothing written
            DuplicateSubmissionError: this draft was already saved
            InvoiceIdConflictError: no free invoice id after MAX_ID_ATTEMPTS
        """
        if identity is None:
            raise MissingIdentityError()

        retailer_id = identity.retailer_id
        key = finalized.idempotency_key
        existing = self.store.find_invoice_by_key(retailer_id, key)
        if existing is not None:
            raise DuplicateSubmissionError(key, existing.get("invoiceId"))

        for attempt in range(1, MAX_ID_ATTEMPTS + 1):
            invoice_id = self.next_invoice_id()
            record = invoice_to_record(replace(finalized, invoice_id=invoice_id, issued_at=None))
            try:
                stored_id = self.store.create_finalized_invoice(retailer_id, record)
                break
            except InvoiceIdConflictError:
                if attempt == MAX_ID_ATTEMPTS:
                    raise
                logger.warning(f"Invoice id {invoice_id} already taken for retailer {retailer_id}, retrying")

        logger.info(f"Saved backfilled invoice {stored_id} for retailer {retailer_id} (draft {key})")
        return stored_id

    def load(self, identity: Optional[Identity], invoice_id: str) -> FinalizedInvoice:
        """Read back a stored invoice as a FinalizedInvoice."""
        if identity is None:
            raise MissingIdentityError()
        record = self.store.get_finalized_invoice(identity.retailer_id, invoice_id)
        if record is None:
            raise RecordNotFoundError(f"Invoice {invoice_id} not found")
        return invoice_from_record(record)
