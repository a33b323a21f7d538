"""
Pydantic request/response models for the API.
"""
from pydantic import BaseModel, Field
from typing import Any, List, Optional


# ============== Backfill Drafts ==============

class CustomerPayload(BaseModel):
    name: str = ""
    phone: str = ""
    email: str = ""
    address: str = ""


class LineItemPayload(BaseModel):
    """One invoice row. Numeric fields accept raw form/OCR text."""
    name: str = ""
    brand: str = ""
    category: str = ""
    quantity: Any = 0
    unit: str = ""
    price: Any = 0
    discount_percent: Any = 0
    sku: str = ""
    hsn_code: str = ""


class DraftPayload(BaseModel):
    """A backfill draft as the client holds it between calls."""
    draft_id: Optional[str] = None  # Generated when missing
    source: str = "manual"
    customer: CustomerPayload = Field(default_factory=CustomerPayload)
    line_items: List[LineItemPayload] = Field(default_factory=list)
    invoice_date: str = ""
    tax_percent: Any = 0
    payment_mode: Optional[str] = None  # Config default when missing
    invoice_type: Optional[str] = None  # Config default when missing


class ExtractRequest(BaseModel):
    file_url: str


# ============== Records ==============

class CustomerRequest(BaseModel):
    name: str
    phone: str = ""
    email: str = ""
    address: str = ""
    cust_id: Optional[str] = None


class InventoryItemRequest(BaseModel):
    name: str
    brand: str = ""
    category: str = ""
    unit: str = ""
    sku: str = ""
    price: Optional[float] = None


class BusinessRequest(BaseModel):
    business_name: str = ""
    owner_name: str = ""
    phone: str = ""
    email: str = ""
    address: str = ""
    gst_number: str = ""
