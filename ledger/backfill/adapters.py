"""
Record Stores - bridge to the retailer's record data.

The adapter pattern lets us swap implementations (in-memory for tests,
JSON file for the CLI, SQLite for the service) without changing the
coordinator or gateway. Every call is scoped by retailer id.

Finalized invoices cross this boundary as dicts in the persisted record
shape (camelCase keys, see gateway.invoice_to_record). Candidate reads come
back as frozen model objects.
"""

import copy
import json
import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from .errors import DuplicateSubmissionError, InvoiceIdConflictError
from .models import BusinessProfile, CustomerRecord, InventoryRecord

logger = logging.getLogger(__name__)


class RecordStore(ABC):
    """
    Abstract interface for retailer-scoped record access.

    Reads are snapshots; nothing returned here is written back implicitly.
    """

    @abstractmethod
    def list_customers(self, retailer_id: str) -> list[CustomerRecord]:
        """Customers on file for a retailer."""
        pass

    @abstractmethod
    def list_inventory(self, retailer_id: str) -> list[InventoryRecord]:
        """Inventory items on file for a retailer."""
        pass

    @abstractmethod
    def get_business_profile(self, retailer_id: str) -> Optional[BusinessProfile]:
        """The retailer's own business profile, if one exists."""
        pass

    @abstractmethod
    def create_finalized_invoice(self, retailer_id: str, record: dict) -> str:
        """
        Write one finalized invoice.

        The store assigns issuedAt itself. Raises DuplicateSubmissionError
        when record["idempotencyKey"] was already written for this retailer,
        and InvoiceIdConflictError when record["invoiceId"] is already taken.
        An existing invoice is never replaced.

        Returns:
            The record's invoiceId
        """
        pass

    @abstractmethod
    def get_finalized_invoice(self, retailer_id: str, invoice_id: str) -> Optional[dict]:
        pass

    @abstractmethod
    def find_invoice_by_key(self, retailer_id: str, idempotency_key: str) -> Optional[dict]:
        pass

    @abstractmethod
    def list_finalized_invoices(self, retailer_id: str) -> list[dict]:
        pass

    @abstractmethod
    def create_customer(self, retailer_id: str, customer: CustomerRecord) -> CustomerRecord:
        pass

    @abstractmethod
    def set_invoice_customer_id(self, retailer_id: str, invoice_id: str, customer_id: str) -> bool:
        """Attach customer.custId to a stored invoice. False if not found."""
        pass


# ---------------------------------------------------------------------------
# Dict conversion (JSON file layout, API payloads)
# ---------------------------------------------------------------------------

def customer_from_dict(row: dict) -> Optional[CustomerRecord]:
    name = str(row.get("name") or "").strip()
    if not name:
        return None
    return CustomerRecord(
        name=name,
        phone=str(row.get("phone") or ""),
        email=str(row.get("email") or ""),
        address=str(row.get("address") or ""),
        customer_id=row.get("custId") or row.get("customer_id") or row.get("id"),
    )


def customer_to_dict(customer: CustomerRecord) -> dict:
    return {
        "custId": customer.customer_id,
        "name": customer.name,
        "phone": customer.phone,
        "email": customer.email,
        "address": customer.address,
    }


def inventory_from_dict(row: dict) -> Optional[InventoryRecord]:
    name = str(row.get("name") or row.get("productName") or "").strip()
    if not name:
        return None

    price = row.get("price")
    try:
        price = float(price) if price not in (None, "") else None
    except (TypeError, ValueError):
        price = None

    return InventoryRecord(
        name=name,
        brand=str(row.get("brand") or ""),
        category=str(row.get("category") or ""),
        unit=str(row.get("unit") or ""),
        sku=str(row.get("sku") or ""),
        price=price,
    )


def inventory_to_dict(item: InventoryRecord) -> dict:
    return {
        "name": item.name,
        "brand": item.brand,
        "category": item.category,
        "unit": item.unit,
        "sku": item.sku,
        "price": item.price,
    }


def profile_from_dict(row: dict) -> BusinessProfile:
    return BusinessProfile(
        business_name=str(row.get("businessName") or ""),
        owner_name=str(row.get("ownerName") or ""),
        phone=str(row.get("phone") or ""),
        email=str(row.get("email") or ""),
        address=str(row.get("address") or ""),
        gst_number=str(row.get("gstNumber") or ""),
    )


def profile_to_dict(profile: BusinessProfile) -> dict:
    return {
        "businessName": profile.business_name,
        "ownerName": profile.owner_name,
        "phone": profile.phone,
        "email": profile.email,
        "address": profile.address,
        "gstNumber": profile.gst_number,
    }


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# In-memory store
# ---------------------------------------------------------------------------

class InMemoryRecordStore(RecordStore):
    """
    In-memory store for programmatic setup.

    Useful for unit tests where you want to control exact records.
    """

    def __init__(self):
        self._customers: dict[str, list[CustomerRecord]] = {}
        self._inventory: dict[str, list[InventoryRecord]] = {}
        self._profiles: dict[str, BusinessProfile] = {}
        self._invoices: dict[str, dict[str, dict]] = {}
        self._write_lock = threading.Lock()

    def add_customers(self, retailer_id: str, customers: list[CustomerRecord]):
        """Add customer records for a retailer."""
        self._customers.setdefault(retailer_id, []).extend(customers)

    def add_inventory(self, retailer_id: str, items: list[InventoryRecord]):
        """Add inventory records for a retailer."""
        self._inventory.setdefault(retailer_id, []).extend(items)

    def set_business_profile(self, retailer_id: str, profile: BusinessProfile):
        self._profiles[retailer_id] = profile

    def clear(self):
        """Remove all records."""
        self._customers = {}
        self._inventory = {}
        self._profiles = {}
        self._invoices = {}

    def list_customers(self, retailer_id: str) -> list[CustomerRecord]:
        return list(self._customers.get(retailer_id, []))

    def list_inventory(self, retailer_id: str) -> list[InventoryRecord]:
        return list(self._inventory.get(retailer_id, []))

    def get_business_profile(self, retailer_id: str) -> Optional[BusinessProfile]:
        return self._profiles.get(retailer_id)

    def create_finalized_invoice(self, retailer_id: str, record: dict) -> str:
        key = record.get("idempotencyKey")
        invoice_id = record["invoiceId"]
        with self._write_lock:
            if key:
                existing = self.find_invoice_by_key(retailer_id, key)
                if existing is not None:
                    raise DuplicateSubmissionError(key, existing.get("invoiceId"))

            invoices = self._invoices.setdefault(retailer_id, {})
            if invoice_id in invoices:
                raise InvoiceIdConflictError(invoice_id)

            stored = copy.deepcopy(record)
            stored["issuedAt"] = _utc_now()
            invoices[invoice_id] = stored
        return invoice_id

    def get_finalized_invoice(self, retailer_id: str, invoice_id: str) -> Optional[dict]:
        record = self._invoices.get(retailer_id, {}).get(invoice_id)
        return copy.deepcopy(record) if record is not None else None

    def find_invoice_by_key(self, retailer_id: str, idempotency_key: str) -> Optional[dict]:
        for record in self._invoices.get(retailer_id, {}).values():
            if record.get("idempotencyKey") == idempotency_key:
                return copy.deepcopy(record)
        return None

    def list_finalized_invoices(self, retailer_id: str) -> list[dict]:
        return [copy.deepcopy(r) for r in self._invoices.get(retailer_id, {}).values()]

    def create_customer(self, retailer_id: str, customer: CustomerRecord) -> CustomerRecord:
        self._customers.setdefault(retailer_id, []).append(customer)
        return customer

    def set_invoice_customer_id(self, retailer_id: str, invoice_id: str, customer_id: str) -> bool:
        record = self._invoices.get(retailer_id, {}).get(invoice_id)
        if record is None:
            return False
        record.setdefault("customer", {})["custId"] = customer_id
        return True


# ---------------------------------------------------------------------------
# JSON file store
# ---------------------------------------------------------------------------

class JsonFileRecordStore(InMemoryRecordStore):
    """
    Store backed by a single JSON file, for the CLI and local testing.

    JSON format expected:
        {"retailers": {"<retailer_id>": {
            "business": {"businessName": ..., "gstNumber": ...},
            "customers": [{"name": ..., "phone": ..., "custId": ...}],
            "inventory": [{"name": ..., "brand": ..., "sku": ...}],
            "finalizedInvoices": [{...persisted record...}]
        }}}

    Mutations are written back to the file immediately.
    """

    def __init__(self, data_path: str | Path):
        super().__init__()
        self._data_path = Path(data_path)
        self._load_data()

    def _load_data(self):
        """Load records from file."""
        if not self._data_path.exists():
            raise FileNotFoundError(f"Record store file not found: {self._data_path}")

        with open(self._data_path, "r", encoding="utf-8") as f:
            data = json.load(f)

        for retailer_id, section in data.get("retailers", {}).items():
            customers = [c for c in (customer_from_dict(r) for r in section.get("customers", [])) if c]
            inventory = [i for i in (inventory_from_dict(r) for r in section.get("inventory", [])) if i]
            self.add_customers(retailer_id, customers)
            self.add_inventory(retailer_id, inventory)
            if section.get("business"):
                self.set_business_profile(retailer_id, profile_from_dict(section["business"]))
            for record in section.get("finalizedInvoices", []):
                if record.get("invoiceId"):
                    self._invoices.setdefault(retailer_id, {})[record["invoiceId"]] = record

        logger.info(f"Loaded record store from {self._data_path}")

    def _flush(self):
        retailer_ids = set(self._customers) | set(self._inventory) | set(self._profiles) | set(self._invoices)
        retailers = {}
        for retailer_id in sorted(retailer_ids):
            section = {
                "customers": [customer_to_dict(c) for c in self._customers.get(retailer_id, [])],
                "inventory": [inventory_to_dict(i) for i in self._inventory.get(retailer_id, [])],
                "finalizedInvoices": list(self._invoices.get(retailer_id, {}).values()),
            }
            profile = self._profiles.get(retailer_id)
            if profile is not None:
                section["business"] = profile_to_dict(profile)
            retailers[retailer_id] = section

        with open(self._data_path, "w", encoding="utf-8") as f:
            json.dump({"retailers": retailers}, f, indent=2, ensure_ascii=False, default=str)

    def create_finalized_invoice(self, retailer_id: str, record: dict) -> str:
        invoice_id = super().create_finalized_invoice(retailer_id, record)
        self._flush()
        return invoice_id

    def create_customer(self, retailer_id: str, customer: CustomerRecord) -> CustomerRecord:
        created = super().create_customer(retailer_id, customer)
        self._flush()
        return created

    def set_invoice_customer_id(self, retailer_id: str, invoice_id: str, customer_id: str) -> bool:
        updated = super().set_invoice_customer_id(retailer_id, invoice_id, customer_id)
        if updated:
            self._flush()
        return updated
