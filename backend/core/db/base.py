"""
Database base module - connection management and initialization.
"""
import sqlite3
from contextlib import contextmanager
from pathlib import Path

from backend.core.config import settings

ROOT_DIR = Path(__file__).resolve().parents[3]

# Database location (relative paths resolve against the repo root)
DB_PATH = Path(settings.DB_PATH)
if not DB_PATH.is_absolute():
    DB_PATH = ROOT_DIR / DB_PATH


SCHEMA = """
    -- Retailer's own business profile (one row per retailer)
    CREATE TABLE IF NOT EXISTS businesses (
        retailer_id TEXT PRIMARY KEY,
        business_name TEXT,
        owner_name TEXT,
        phone TEXT,
        email TEXT,
        address TEXT,
        gst_number TEXT,
        updated_at TEXT DEFAULT CURRENT_TIMESTAMP
    );

    -- Customers on file, enrichment candidates
    CREATE TABLE IF NOT EXISTS customers (
        id TEXT PRIMARY KEY,
        retailer_id TEXT NOT NULL,
        cust_id TEXT,
        name TEXT NOT NULL,
        phone TEXT DEFAULT '',
        email TEXT DEFAULT '',
        address TEXT DEFAULT '',
        created_at TEXT DEFAULT CURRENT_TIMESTAMP,
        UNIQUE(retailer_id, cust_id)
    );

    -- Inventory items, enrichment candidates
    CREATE TABLE IF NOT EXISTS inventory_items (
        id TEXT PRIMARY KEY,
        retailer_id TEXT NOT NULL,
        name TEXT NOT NULL,
        brand TEXT DEFAULT '',
        category TEXT DEFAULT '',
        unit TEXT DEFAULT '',
        sku TEXT DEFAULT '',
        price REAL,
        created_at TEXT DEFAULT CURRENT_TIMESTAMP
    );

    -- Finalized (backfilled) invoices; written once per draft
    CREATE TABLE IF NOT EXISTS finalized_invoices (
        id TEXT PRIMARY KEY,
        retailer_id TEXT NOT NULL,
        invoice_id TEXT NOT NULL,
        idempotency_key TEXT NOT NULL,
        customer TEXT,  -- JSON blob
        products TEXT,  -- JSON blob
        invoice_date TEXT,
        gst_percent REAL DEFAULT 0,
        gst_amount REAL DEFAULT 0,
        subtotal REAL DEFAULT 0,
        total REAL DEFAULT 0,
        payment_mode TEXT,
        invoice_type TEXT,
        status TEXT DEFAULT 'backfilled',
        created_at TEXT,
        issued_at TEXT DEFAULT CURRENT_TIMESTAMP,
        UNIQUE(retailer_id, invoice_id),
        UNIQUE(retailer_id, idempotency_key)
    );

    -- Indexes
    CREATE INDEX IF NOT EXISTS idx_customers_retailer ON customers(retailer_id);
    CREATE INDEX IF NOT EXISTS idx_inventory_retailer ON inventory_items(retailer_id);
    CREATE INDEX IF NOT EXISTS idx_invoices_retailer ON finalized_invoices(retailer_id);
"""


@contextmanager
def get_db():
    """Context manager for database connections."""
    conn = sqlite3.connect(str(DB_PATH))
    conn.row_factory = sqlite3.Row
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def init_db():
    """Initialize database tables."""
    DB_PATH.parent.mkdir(parents=True, exist_ok=True)

    with get_db() as conn:
        # WAL lets reads continue while an invoice is being written
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA busy_timeout=5000")
        conn.executescript(SCHEMA)
