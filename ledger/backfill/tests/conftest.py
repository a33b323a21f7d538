"""
Shared fixtures for backfill engine tests.
"""

import json
import shutil
from pathlib import Path

import pytest

from ledger.backfill.adapters import InMemoryRecordStore
from ledger.backfill.config import Config
from ledger.backfill.models import BusinessProfile, CustomerRecord, Identity, InventoryRecord


FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture
def fixtures_dir():
    return FIXTURES_DIR


@pytest.fixture
def extraction_result():
    with open(FIXTURES_DIR / "extraction_result.json", "r", encoding="utf-8") as f:
        return json.load(f)


@pytest.fixture
def store_file(tmp_path):
    """Writable copy of the sample JSON store."""
    path = tmp_path / "store.json"
    shutil.copy(FIXTURES_DIR / "sample_store.json", path)
    return path


@pytest.fixture
def identity():
    return Identity("RET-001")


@pytest.fixture
def config():
    return Config()


@pytest.fixture
def memory_store():
    """In-memory store with one retailer's customers, inventory and profile."""
    store = InMemoryRecordStore()
    store.add_customers("RET-001", [
        CustomerRecord(name="Ravi Kumar", phone="9876543210", email="ravi@example.com",
                       address="4 Lake View, Pune", customer_id="CUST-1600"),
        CustomerRecord(name="Meena Traders", phone="9123456780", customer_id="CUST-1601"),
    ])
    store.add_inventory("RET-001", [
        InventoryRecord(name="Basmati Rice 5kg", brand="India Gate", category="Grocery",
                        unit="bag", sku="RICE-5KG", price=650),
        InventoryRecord(name="Toor Dal", brand="Tata Sampann", category="Pulses",
                        unit="kg", sku="DAL-TOOR", price=160),
    ])
    store.set_business_profile("RET-001", BusinessProfile(
        business_name="Sharma General Store",
        gst_number="27ABCDE1234F1Z5",
    ))
    store.add_customers("RET-002", [CustomerRecord(name="Ravi Kumar", phone="9999999999")])
    return store
