"""
Test configuration and fixtures for the Ledger backend test suite.

Provides:
- In-memory SQLite test database (isolated per test)
- FastAPI TestClient fixture
- Factory functions for creating test data
"""
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime
from typing import Optional
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from backend.core.db.base import SCHEMA


RETAILER = "RET-001"


# ---------------------------------------------------------------------------
# Database fixtures
# ---------------------------------------------------------------------------

def _create_test_db() -> sqlite3.Connection:
    """Create an in-memory SQLite database with the full Ledger schema."""
    conn = sqlite3.connect(":memory:", check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.executescript(SCHEMA)
    return conn


@contextmanager
def _test_get_db(conn: sqlite3.Connection):
    """Replacement for get_db() that uses the shared test connection."""
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise


@pytest.fixture()
def test_db():
    """Provide a fresh in-memory SQLite database for each test."""
    conn = _create_test_db()
    yield conn
    conn.close()


@pytest.fixture()
def patch_db(test_db):
    """
    Patch the get_db context manager across all db modules so that
    every database call uses the in-memory test database.
    """
    cm = lambda: _test_get_db(test_db)  # noqa: E731

    with (
        patch("backend.core.db.base.get_db", cm),
        patch("backend.core.db.businesses.get_db", cm),
        patch("backend.core.db.customers.get_db", cm),
        patch("backend.core.db.inventory.get_db", cm),
        patch("backend.core.db.invoices.get_db", cm),
    ):
        yield test_db


@pytest.fixture()
def client(patch_db):
    """
    Provide a FastAPI TestClient with the database patched.

    Skips init_db in the lifespan so no database file is created.
    """
    from backend.api.main import app

    with patch("backend.api.main.init_db"):
        with TestClient(app) as c:
            yield c


@pytest.fixture()
def headers():
    return {"X-Retailer-Id": RETAILER}


@pytest.fixture()
def seeded_db(patch_db):
    """Test database with one retailer's customers, inventory and profile."""
    create_business(patch_db)
    create_customer(patch_db, name="Ravi Kumar", phone="9876543210",
                    email="ravi@example.com", address="4 Lake View, Pune", cust_id="CUST-1600")
    create_customer(patch_db, name="Meena Traders", phone="9123456780", cust_id="CUST-1601")
    create_inventory_item(patch_db, name="Basmati Rice 5kg", brand="India Gate",
                          category="Grocery", unit="bag", sku="RICE-5KG", price=650)
    create_inventory_item(patch_db, name="Toor Dal", brand="Tata Sampann",
                          category="Pulses", unit="kg", sku="DAL-TOOR", price=160)
    create_customer(patch_db, retailer_id="RET-002", name="Ravi Kumar", phone="9999999999")
    return patch_db


# ---------------------------------------------------------------------------
# Factory functions
# ---------------------------------------------------------------------------

def create_business(
    db: sqlite3.Connection,
    *,
    retailer_id: str = RETAILER,
    business_name: str = "Sharma General Store",
    gst_number: str = "27ABCDE1234F1Z5",
) -> str:
    """Insert a business profile and return its retailer id."""
    db.execute(
        """INSERT INTO businesses (retailer_id, business_name, owner_name, phone, email, address, gst_number)
           VALUES (?, ?, ?, ?, ?, ?, ?)""",
        (retailer_id, business_name, "Anil Sharma", "9000000001", "", "12 MG Road, Pune", gst_number),
    )
    db.commit()
    return retailer_id


def create_customer(
    db: sqlite3.Connection,
    *,
    retailer_id: str = RETAILER,
    name: str = "Ravi Kumar",
    phone: str = "",
    email: str = "",
    address: str = "",
    cust_id: Optional[str] = None,
) -> str:
    """Insert a customer record and return its row ID."""
    row_id = str(uuid.uuid4())
    now = datetime.utcnow().isoformat()

    db.execute(
        """INSERT INTO customers (id, retailer_id, cust_id, name, phone, email, address, created_at)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
        (row_id, retailer_id, cust_id, name, phone, email, address, now),
    )
    db.commit()
    return row_id


def create_inventory_item(
    db: sqlite3.Connection,
    *,
    retailer_id: str = RETAILER,
    name: str = "Toor Dal",
    brand: str = "",
    category: str = "",
    unit: str = "",
    sku: str = "",
    price: Optional[float] = None,
) -> str:
    """Insert an inventory item and return its row ID."""
    row_id = str(uuid.uuid4())
    now = datetime.utcnow().isoformat()

    db.execute(
        """INSERT INTO inventory_items (id, retailer_id, name, brand, category, unit, sku, price, created_at)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
        (row_id, retailer_id, name, brand, category, unit, sku, price, now),
    )
    db.commit()
    return row_id
