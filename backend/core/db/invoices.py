"""
Finalized invoice database operations.

Invoices are returned in the persisted record shape (camelCase keys, customer
and products decoded from JSON), the same shape the backfill gateway writes.
"""
from typing import Optional, List, Dict, Any

from .base import get_db
from .utils import new_id, parse_json_field, to_json


def _row_to_record(row) -> Optional[Dict[str, Any]]:
    if row is None:
        return None
    return {
        "invoiceId": row["invoice_id"],
        "idempotencyKey": row["idempotency_key"],
        "customer": parse_json_field(row["customer"], {}),
        "products": parse_json_field(row["products"], []),
        "invoiceDate": row["invoice_date"],
        "gstPercent": row["gst_percent"],
        "gstAmount": row["gst_amount"],
        "subtotal": row["subtotal"],
        "total": row["total"],
        "paymentMode": row["payment_mode"],
        "invoiceType": row["invoice_type"],
        "status": row["status"],
        "createdAt": row["created_at"],
        "issuedAt": row["issued_at"],
    }


def insert_invoice(retailer_id: str, record: Dict[str, Any]) -> str:
    """
    Insert a finalized invoice record.

    issued_at is left to the database default. A second insert with the same
    idempotency key for a retailer raises sqlite3.IntegrityError.
    """
    with get_db() as conn:
        conn.execute("""
            INSERT INTO finalized_invoices
            (id, retailer_id, invoice_id, idempotency_key, customer, products,
             invoice_date, gst_percent, gst_amount, subtotal, total,
             payment_mode, invoice_type, status, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            new_id(),
            retailer_id,
            record["invoiceId"],
            record["idempotencyKey"],
            to_json(record.get("customer") or {}),
            to_json(record.get("products") or []),
            record.get("invoiceDate"),
            record.get("gstPercent", 0),
            record.get("gstAmount", 0),
            record.get("subtotal", 0),
            record.get("total", 0),
            record.get("paymentMode"),
            record.get("invoiceType"),
            record.get("status", "backfilled"),
            record.get("createdAt"),
        ))
    return record["invoiceId"]


def get_invoice(retailer_id: str, invoice_id: str) -> Optional[Dict[str, Any]]:
    """Get one invoice by its invoice id."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM finalized_invoices WHERE retailer_id = ? AND invoice_id = ?",
            (retailer_id, invoice_id)
        ).fetchone()
        return _row_to_record(row)


def get_invoice_by_key(retailer_id: str, idempotency_key: str) -> Optional[Dict[str, Any]]:
    """Get the invoice written for a draft, if any."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM finalized_invoices WHERE retailer_id = ? AND idempotency_key = ?",
            (retailer_id, idempotency_key)
        ).fetchone()
        return _row_to_record(row)


def list_invoices(retailer_id: str, limit: int = 500) -> List[Dict[str, Any]]:
    """List a retailer's invoices, oldest first."""
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM finalized_invoices WHERE retailer_id = ? ORDER BY issued_at, rowid LIMIT ?",
            (retailer_id, limit)
        ).fetchall()
        return [_row_to_record(row) for row in rows]


def set_invoice_customer_id(retailer_id: str, invoice_id: str, cust_id: str) -> bool:
    """Stamp customer.custId on a stored invoice."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT id, customer FROM finalized_invoices WHERE retailer_id = ? AND invoice_id = ?",
            (retailer_id, invoice_id)
        ).fetchone()
        if not row:
            return False

        customer = parse_json_field(row["customer"], {})
        customer["custId"] = cust_id
        conn.execute(
            "UPDATE finalized_invoices SET customer = ? WHERE id = ?",
            (to_json(customer), row["id"])
        )
        return True
