"""
Extraction - turn an uploaded legacy invoice into a draft.

The extraction service (OCR + structured parsing) is a black box reached
over HTTP. Its output is untrusted: numbers may carry currency symbols or
thousands separators, HSN codes may carry punctuation, and whole sections may
be missing. A draft is only built when the result has a usable line item
list; otherwise the OCR path fails with ExtractionError and no draft exists.

Accepted result shapes:
    {"customerName": ..., "customerPhone": ..., "productList": [...], "invoiceDate": ...}
    {"customer": {...}, "lineItems" | "products" | "items": [...], "invoice": {"date": ...}}
"""

import logging
import re
from datetime import date
from typing import Any, Optional

import requests

from .computer import to_number
from .config import Config
from .errors import ExtractionError
from .models import CustomerInfo, DraftSource, InvoiceDraft, LineItem

logger = logging.getLogger(__name__)

ITEM_LIST_KEYS = ("productList", "lineItems", "products", "items")


class ExtractionClient:
    """
    Client for the document-to-structured-data service.

    The service takes the URL of an already uploaded file and answers with
    JSON. {"success": false, "message": ...} is treated as a failure.
    """

    def __init__(self, endpoint: str, api_key: Optional[str] = None, timeout: int = 30):
        self.endpoint = endpoint
        self.api_key = api_key
        self.timeout = timeout

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def parse(self, file_url: str) -> dict:
        """
        Ask the service to parse an uploaded file.

        Raises:
            ExtractionError: service not configured, unreachable, non-2xx,
                             non-JSON, or an explicit failure answer
        """
        if not self.endpoint:
            raise ExtractionError("Extraction service is not configured")

        try:
            resp = requests.post(
                self.endpoint,
                headers=self._headers(),
                json={"fileUrl": file_url},
                timeout=self.timeout,
            )
            resp.raise_for_status()
            data = resp.json()
        except requests.RequestException as e:
            logger.error(f"Extraction request failed for {file_url}: {e}")
            raise ExtractionError(f"Could not read the invoice: {e}") from e
        except ValueError as e:
            logger.error(f"Extraction service returned invalid JSON for {file_url}: {e}")
            raise ExtractionError("Could not read the invoice: invalid response") from e

        if not isinstance(data, dict):
            raise ExtractionError("Could not read the invoice: unexpected response")
        if data.get("success") is False:
            raise ExtractionError(data.get("message") or "Could not read the invoice")
        return data


# ---------------------------------------------------------------------------
# Field cleanup
# ---------------------------------------------------------------------------

def _as_str(value: Any) -> str:
    return "" if value is None else str(value).strip()


def parse_amount(value: Any) -> float:
    """
    Lenient number parsing for OCR text.

    Keeps digits, '.' and '-' ("₹1,250.50" -> 1250.5). Anything that still
    isn't a finite number is 0.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return to_number(value)
    return to_number(re.sub(r"[^\d.-]", "", str(value)))


def clean_hsn(value: Any) -> str:
    """HSN codes are 4-8 digits; strip everything else and cap at 8."""
    return re.sub(r"\D", "", _as_str(value))[:8]


def snap_gst_rate(value: Any, slabs: list[float]) -> float:
    """Snap a GST rate to the nearest allowed slab (earlier slab wins ties)."""
    rate = parse_amount(value)
    if not slabs:
        return rate
    return float(min(slabs, key=lambda slab: abs(slab - rate)))


def _first_present(mapping: dict, keys: tuple) -> Any:
    for key in keys:
        if mapping.get(key) is not None:
            return mapping[key]
    return None


# ---------------------------------------------------------------------------
# Draft construction
# ---------------------------------------------------------------------------

def _line_item(raw: dict) -> LineItem:
    return LineItem(
        name=_as_str(raw.get("name")),
        brand=_as_str(raw.get("brand")),
        category=_as_str(raw.get("category")),
        quantity=parse_amount(raw.get("quantity")),
        unit=_as_str(raw.get("unit")),
        price=parse_amount(_first_present(raw, ("price", "unitPrice"))),
        discount_percent=parse_amount(_first_present(raw, ("discountPercent", "discount"))),
        sku=_as_str(raw.get("sku")),
        hsn_code=clean_hsn(raw.get("hsnCode")),
    )


def draft_from_extraction(payload: Any, config: Optional[Config] = None) -> InvoiceDraft:
    """
    Build a draft from an extraction result.

    Args:
        payload: Decoded JSON from the extraction service
        config: Backfill config (payment mode/type defaults, GST slabs)

    Returns:
        New InvoiceDraft with source EXTRACTION

    Raises:
        ExtractionError: result is not an object, has no line item list, or
                         has a line item that is not an object
    """
    config = config or Config()

    if not isinstance(payload, dict):
        raise ExtractionError("Extraction result is not an object")

    raw_items = _first_present(payload, ITEM_LIST_KEYS)
    if not isinstance(raw_items, list):
        raise ExtractionError("Extraction result has no line items")
    if not all(isinstance(raw, dict) for raw in raw_items):
        raise ExtractionError("Extraction result has unreadable line items")

    raw_customer = payload.get("customer") if isinstance(payload.get("customer"), dict) else {}
    customer = CustomerInfo(
        name=_as_str(raw_customer.get("name") or payload.get("customerName")),
        phone=_as_str(raw_customer.get("phone") or payload.get("customerPhone")),
        email=_as_str(raw_customer.get("email") or payload.get("customerEmail")),
        address=_as_str(raw_customer.get("address") or payload.get("customerAddress")),
    )

    invoice_block = payload.get("invoice") if isinstance(payload.get("invoice"), dict) else {}
    invoice_date = _as_str(payload.get("invoiceDate") or invoice_block.get("date"))

    raw_tax = _first_present(payload, ("gstPercent", "taxPercent"))
    tax_percent = snap_gst_rate(raw_tax, config.gst_slabs) if raw_tax is not None else 0

    draft = InvoiceDraft(
        customer=customer,
        line_items=[_line_item(raw) for raw in raw_items],
        invoice_date=invoice_date,
        tax_percent=tax_percent,
        payment_mode=config.default_payment_mode,
        invoice_type=config.default_invoice_type,
        source=DraftSource.EXTRACTION,
    )
    logger.info(f"Built draft {draft.draft_id} from extraction with {len(draft.line_items)} line item(s)")
    return draft


def draft_from_upload(file_url: str, client: ExtractionClient, config: Optional[Config] = None) -> InvoiceDraft:
    """Run the OCR path end to end: parse the uploaded file, build the draft."""
    return draft_from_extraction(client.parse(file_url), config)


def empty_draft(config: Optional[Config] = None, today: Optional[date] = None) -> InvoiceDraft:
    """Manual-entry template: blank customer, one blank line, today's date."""
    config = config or Config()
    return InvoiceDraft(
        line_items=[LineItem()],
        invoice_date=(today or date.today()).isoformat(),
        tax_percent=0,
        payment_mode=config.default_payment_mode,
        invoice_type=config.default_invoice_type,
        source=DraftSource.MANUAL,
    )
