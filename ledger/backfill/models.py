"""
Data models for invoice backfill.

Drafts are mutable and owned by one editing session. Candidate records and
finalized invoices are frozen snapshots.

Numeric line item fields keep whatever the user or the extraction step put
there (numbers or raw strings); they are only coerced when totals are
computed.
"""

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


BACKFILLED_STATUS = "backfilled"


class DraftState(str, Enum):
    """Lifecycle of a draft inside a ReconciliationCoordinator."""
    CREATED = "created"
    ENRICHING = "enriching"
    EDITABLE = "editable"
    COMPUTED = "computed"
    SAVING = "saving"
    SAVED = "saved"
    CANCELLED = "cancelled"


class DraftSource(str, Enum):
    MANUAL = "manual"
    EXTRACTION = "extraction"


@dataclass
class CustomerInfo:
    """Customer block of a draft. Empty string means not yet known."""
    name: str = ""
    phone: str = ""
    email: str = ""
    address: str = ""


@dataclass
class LineItem:
    """One product row of an invoice."""
    name: str = ""
    brand: str = ""
    category: str = ""
    quantity: Any = 0
    unit: str = ""
    price: Any = 0
    discount_percent: Any = 0
    sku: str = ""
    hsn_code: str = ""


@dataclass
class InvoiceDraft:
    """
    An invoice being backfilled.

    draft_id is generated on the client when the draft is born and doubles as
    the idempotency key for the single save.
    """
    customer: CustomerInfo = field(default_factory=CustomerInfo)
    line_items: list[LineItem] = field(default_factory=list)
    invoice_date: str = ""
    tax_percent: Any = 0
    payment_mode: str = "Backfilled"
    invoice_type: str = "Tax"
    draft_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    source: DraftSource = DraftSource.MANUAL


@dataclass(frozen=True)
class CustomerRecord:
    """A customer the retailer already has on file."""
    name: str
    phone: str = ""
    email: str = ""
    address: str = ""
    customer_id: Optional[str] = None


@dataclass(frozen=True)
class InventoryRecord:
    """An item from the retailer's inventory, used as an enrichment candidate."""
    name: str
    brand: str = ""
    category: str = ""
    unit: str = ""
    sku: str = ""
    price: Optional[float] = None


@dataclass(frozen=True)
class BusinessProfile:
    """The retailer's own business details, shown next to the draft."""
    business_name: str = ""
    owner_name: str = ""
    phone: str = ""
    email: str = ""
    address: str = ""
    gst_number: str = ""


@dataclass(frozen=True)
class Identity:
    """Authenticated retailer that scopes every read and write."""
    retailer_id: str

    def __post_init__(self):
        if not self.retailer_id or not str(self.retailer_id).strip():
            raise ValueError("retailer_id must be a non-empty string")


@dataclass(frozen=True)
class Totals:
    """Invoice totals at full float precision."""
    subtotal: float = 0.0
    tax_amount: float = 0.0
    total: float = 0.0


@dataclass(frozen=True)
class FinalizedInvoice:
    """
    Snapshot of a draft plus its computed totals.

    invoice_id and issued_at stay None until the gateway has written it.
    """
    customer: CustomerInfo
    line_items: tuple[LineItem, ...]
    invoice_date: str
    tax_percent: float
    payment_mode: str
    invoice_type: str
    subtotal: float
    tax_amount: float
    total: float
    created_at: str
    idempotency_key: str
    status: str = BACKFILLED_STATUS
    invoice_id: Optional[str] = None
    issued_at: Optional[str] = None

    @property
    def is_persisted(self) -> bool:
        return self.invoice_id is not None
