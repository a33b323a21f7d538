# Invoice backfill: enrichment, totals and the single save
# Siloed module - no imports from backend

from .models import (
    CustomerInfo,
    LineItem,
    InvoiceDraft,
    CustomerRecord,
    InventoryRecord,
    BusinessProfile,
    Identity,
    Totals,
    FinalizedInvoice,
    DraftState,
    DraftSource,
)
from .config import load_config, Config
from .errors import (
    BackfillError,
    MissingIdentityError,
    DuplicateSubmissionError,
    InvoiceIdConflictError,
    InvalidDraftError,
    DraftClosedError,
    ExtractionError,
    RecordNotFoundError,
)
from .index import build_index, CandidateIndex, ScanIndex, NgramIndex
from .matcher import (
    match_customer,
    match_inventory,
    enrich_customer,
    names_match,
    FirstMatchStrategy,
    RankedMatchStrategy,
)
from .computer import line_subtotal, aggregate, round_currency, format_currency
from .adapters import RecordStore, InMemoryRecordStore, JsonFileRecordStore
from .gateway import PersistenceGateway, InvoiceIdSequence
from .coordinator import ReconciliationCoordinator, EnrichmentReport
from .extraction import ExtractionClient, draft_from_extraction, empty_draft
from .customer_link import link_customers

__version__ = "1.0.0"

__all__ = [
    # Models
    "CustomerInfo",
    "LineItem",
    "InvoiceDraft",
    "CustomerRecord",
    "InventoryRecord",
    "BusinessProfile",
    "Identity",
    "Totals",
    "FinalizedInvoice",
    "DraftState",
    "DraftSource",
    # Config
    "Config",
    "load_config",
    # Errors
    "BackfillError",
    "MissingIdentityError",
    "DuplicateSubmissionError",
    "InvoiceIdConflictError",
    "InvalidDraftError",
    "DraftClosedError",
    "ExtractionError",
    "RecordNotFoundError",
    # Index
    "build_index",
    "CandidateIndex",
    "ScanIndex",
    "NgramIndex",
    # Matcher
    "match_customer",
    "match_inventory",
    "enrich_customer",
    "names_match",
    "FirstMatchStrategy",
    "RankedMatchStrategy",
    # Computer
    "line_subtotal",
    "aggregate",
    "round_currency",
    "format_currency",
    # Stores
    "RecordStore",
    "InMemoryRecordStore",
    "JsonFileRecordStore",
    # Orchestration
    "PersistenceGateway",
    "InvoiceIdSequence",
    "ReconciliationCoordinator",
    "EnrichmentReport",
    # Extraction
    "ExtractionClient",
    "draft_from_extraction",
    "empty_draft",
    # Customer link
    "link_customers",
]
