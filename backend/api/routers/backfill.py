"""
Invoice backfill API router.

The client holds the draft between calls and sends it whole each time; the
server keeps no session state. The draft_id travels with the draft and is the
idempotency key of the single save.
"""
import logging
from dataclasses import asdict
from functools import lru_cache
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from backend.api.models import DraftPayload, ExtractRequest
from backend.api.security import get_identity, require_api_key
from backend.core.config import settings
from backend.core.store import SqliteRecordStore
from ledger.backfill import (
    BackfillError,
    Config,
    DraftClosedError,
    DuplicateSubmissionError,
    ExtractionClient,
    ExtractionError,
    Identity,
    InvalidDraftError,
    InvoiceIdConflictError,
    MissingIdentityError,
    PersistenceGateway,
    ReconciliationCoordinator,
    RecordNotFoundError,
    empty_draft,
    format_currency,
    link_customers,
    load_config,
    round_currency,
)
from ledger.backfill.adapters import profile_to_dict
from ledger.backfill.extraction import draft_from_upload
from ledger.backfill.gateway import invoice_to_record
from ledger.backfill.models import CustomerInfo, DraftSource, InvoiceDraft, LineItem

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/backfill", tags=["Backfill"])


@lru_cache
def get_config() -> Config:
    """Backfill config from LEDGER_BACKFILL_CONFIG, or the bundled defaults."""
    return load_config(settings.BACKFILL_CONFIG or None)


@lru_cache
def get_gateway() -> PersistenceGateway:
    """One gateway per process so invoice ids stay strictly increasing."""
    return PersistenceGateway(SqliteRecordStore(), id_prefix=get_config().invoice_id_prefix)


def http_error(e: BackfillError) -> HTTPException:
    """Map an engine error to the HTTP status the client acts on."""
    if isinstance(e, MissingIdentityError):
        return HTTPException(status_code=401, detail=str(e))
    if isinstance(e, DuplicateSubmissionError):
        return HTTPException(status_code=409, detail={
            "message": str(e),
            "invoice_id": e.invoice_id,
            "idempotency_key": e.idempotency_key,
        })
    if isinstance(e, InvalidDraftError):
        return HTTPException(status_code=422, detail={"message": "Draft is not valid", "problems": e.problems})
    if isinstance(e, InvoiceIdConflictError):
        return HTTPException(status_code=409, detail={"message": str(e), "invoice_id": e.invoice_id})
    if isinstance(e, DraftClosedError):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, ExtractionError):
        return HTTPException(status_code=502, detail=str(e))
    if isinstance(e, RecordNotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))


# ---------------------------------------------------------------------------
# Payload conversion
# ---------------------------------------------------------------------------

def _source(value: str) -> DraftSource:
    try:
        return DraftSource(value)
    except ValueError:
        return DraftSource.MANUAL


def draft_from_payload(payload: DraftPayload, config: Config) -> InvoiceDraft:
    draft = InvoiceDraft(
        customer=CustomerInfo(**payload.customer.model_dump()),
        line_items=[LineItem(**item.model_dump()) for item in payload.line_items],
        invoice_date=payload.invoice_date,
        tax_percent=payload.tax_percent,
        payment_mode=payload.payment_mode or config.default_payment_mode,
        invoice_type=payload.invoice_type or config.default_invoice_type,
        source=_source(payload.source),
    )
    if payload.draft_id:
        draft.draft_id = payload.draft_id
    return draft


def draft_to_payload(draft: InvoiceDraft) -> dict:
    data = asdict(draft)
    data["source"] = draft.source.value
    return data


def totals_to_dict(coordinator: ReconciliationCoordinator, symbol: str) -> dict:
    totals = coordinator.totals
    return {
        "subtotal": round_currency(totals.subtotal),
        "tax_amount": round_currency(totals.tax_amount),
        "total": round_currency(totals.total),
        "line_subtotals": [round_currency(v) for v in coordinator.line_subtotals()],
        "formatted": {
            "subtotal": format_currency(totals.subtotal, symbol),
            "tax_amount": format_currency(totals.tax_amount, symbol),
            "total": format_currency(totals.total, symbol),
        },
    }


def _coordinator(payload: DraftPayload, identity: Optional[Identity]) -> ReconciliationCoordinator:
    config = get_config()
    return ReconciliationCoordinator(
        draft_from_payload(payload, config),
        SqliteRecordStore(),
        identity=identity,
        gateway=get_gateway(),
        config=config,
    )


# ---------------------------------------------------------------------------
# Drafts
# ---------------------------------------------------------------------------

@router.post("/drafts/manual")
def create_manual_draft():
    """Empty manual-entry draft: one blank line, today's date."""
    return {"success": True, "draft": draft_to_payload(empty_draft(get_config()))}


@router.post("/drafts/extract", dependencies=[Depends(require_api_key)])
def create_extracted_draft(request: ExtractRequest):
    """Send an uploaded invoice to the extraction service and build a draft."""
    client = ExtractionClient(
        settings.EXTRACTION_URL,
        api_key=settings.EXTRACTION_API_KEY or None,
        timeout=settings.EXTRACTION_TIMEOUT,
    )
    try:
        draft = draft_from_upload(request.file_url, client, get_config())
    except ExtractionError as e:
        raise http_error(e)
    return {"success": True, "draft": draft_to_payload(draft)}


# ---------------------------------------------------------------------------
# Enrich / compute / save
# ---------------------------------------------------------------------------

@router.post("/enrich")
def enrich_draft(payload: DraftPayload, identity: Optional[Identity] = Depends(get_identity)):
    """Fill empty draft fields from the retailer's customers and inventory."""
    coordinator = _coordinator(payload, identity)
    report = coordinator.enrich()
    profile = coordinator.business_profile

    return {
        "success": True,
        "draft": draft_to_payload(coordinator.draft),
        "report": {**asdict(report), "customer_matched": report.customer_matched},
        "totals": totals_to_dict(coordinator, get_config().currency_symbol),
        "business": profile_to_dict(profile) if profile else None,
    }


@router.post("/compute")
def compute_totals(payload: DraftPayload):
    """Totals for the draft as sent, plus anything that would block a save."""
    coordinator = _coordinator(payload, None)
    coordinator.recompute()
    return {
        "success": True,
        "totals": totals_to_dict(coordinator, get_config().currency_symbol),
        "problems": coordinator.validate(),
    }


@router.post("/save", status_code=201, dependencies=[Depends(require_api_key)])
def save_draft(payload: DraftPayload, identity: Optional[Identity] = Depends(get_identity)):
    """Persist the draft as a finalized invoice, once."""
    coordinator = _coordinator(payload, identity)
    try:
        finalized = coordinator.save()
    except BackfillError as e:
        logger.warning(f"Save rejected for draft {coordinator.draft.draft_id}: {e}")
        raise http_error(e)

    return {"success": True, "invoice_id": finalized.invoice_id, "invoice": invoice_to_record(finalized)}


@router.post("/link-customers", dependencies=[Depends(require_api_key)])
def link_invoice_customers(identity: Optional[Identity] = Depends(get_identity)):
    """Create or link customer records for every unlinked backfilled invoice."""
    try:
        summary = link_customers(SqliteRecordStore(), identity, get_config())
    except BackfillError as e:
        raise http_error(e)
    return {"success": True, **asdict(summary)}
