"""
SQLite-backed RecordStore for the backfill engine.

Bridges the backend database modules to ledger.backfill's RecordStore
interface so the coordinator, gateway and customer link run unchanged
against the service database.
"""
import logging
import sqlite3
from typing import List, Optional

from backend.core.db import businesses, customers, inventory, invoices
from ledger.backfill.adapters import RecordStore, customer_from_dict, inventory_from_dict
from ledger.backfill.errors import DuplicateSubmissionError, InvoiceIdConflictError
from ledger.backfill.models import BusinessProfile, CustomerRecord, InventoryRecord

logger = logging.getLogger(__name__)


def _profile_from_row(row: dict) -> BusinessProfile:
    return BusinessProfile(
        business_name=row.get("business_name") or "",
        owner_name=row.get("owner_name") or "",
        phone=row.get("phone") or "",
        email=row.get("email") or "",
        address=row.get("address") or "",
        gst_number=row.get("gst_number") or "",
    )


class SqliteRecordStore(RecordStore):
    """RecordStore over the backend SQLite database."""

    def list_customers(self, retailer_id: str) -> List[CustomerRecord]:
        rows = customers.list_customers(retailer_id)
        # row "id" is internal; only cust_id is a customer id
        records = (
            customer_from_dict({
                "name": r["name"],
                "phone": r["phone"],
                "email": r["email"],
                "address": r["address"],
                "custId": r["cust_id"],
            })
            for r in rows
        )
        return [c for c in records if c]

    def list_inventory(self, retailer_id: str) -> List[InventoryRecord]:
        rows = inventory.list_inventory_items(retailer_id)
        return [i for i in (inventory_from_dict(r) for r in rows) if i]

    def get_business_profile(self, retailer_id: str) -> Optional[BusinessProfile]:
        row = businesses.get_business(retailer_id)
        return _profile_from_row(row) if row else None

    def create_finalized_invoice(self, retailer_id: str, record: dict) -> str:
        try:
            return invoices.insert_invoice(retailer_id, record)
        except sqlite3.IntegrityError as e:
            key = record.get("idempotencyKey")
            existing = invoices.get_invoice_by_key(retailer_id, key) if key else None
            if existing is None:
                if invoices.get_invoice(retailer_id, record["invoiceId"]) is not None:
                    raise InvoiceIdConflictError(record["invoiceId"]) from e
                raise
            logger.warning(f"Duplicate save of draft {key} for retailer {retailer_id}")
            raise DuplicateSubmissionError(key, existing["invoiceId"]) from e

    def get_finalized_invoice(self, retailer_id: str, invoice_id: str) -> Optional[dict]:
        return invoices.get_invoice(retailer_id, invoice_id)

    def find_invoice_by_key(self, retailer_id: str, idempotency_key: str) -> Optional[dict]:
        return invoices.get_invoice_by_key(retailer_id, idempotency_key)

    def list_finalized_invoices(self, retailer_id: str) -> List[dict]:
        return invoices.list_invoices(retailer_id)

    def create_customer(self, retailer_id: str, customer: CustomerRecord) -> CustomerRecord:
        customers.add_customer(
            retailer_id,
            name=customer.name,
            phone=customer.phone,
            email=customer.email,
            address=customer.address,
            cust_id=customer.customer_id,
        )
        return customer

    def set_invoice_customer_id(self, retailer_id: str, invoice_id: str, customer_id: str) -> bool:
        return invoices.set_invoice_customer_id(retailer_id, invoice_id, customer_id)
