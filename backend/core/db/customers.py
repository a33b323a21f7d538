"""
Customer database operations.
"""
from typing import Optional, List, Dict, Any

from .base import get_db
from .utils import new_id, now, row_to_dict, rows_to_dicts


def add_customer(
    retailer_id: str,
    name: str,
    phone: str = "",
    email: str = "",
    address: str = "",
    cust_id: Optional[str] = None
) -> Dict[str, Any]:
    """Add a customer record for a retailer."""
    row_id = new_id()

    with get_db() as conn:
        conn.execute("""
            INSERT INTO customers (id, retailer_id, cust_id, name, phone, email, address, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """, (row_id, retailer_id, cust_id, name, phone or "", email or "", address or "", now()))

    return get_customer(row_id)


def get_customer(row_id: str) -> Optional[Dict[str, Any]]:
    """Get a customer by row id."""
    with get_db() as conn:
        row = conn.execute("SELECT * FROM customers WHERE id = ?", (row_id,)).fetchone()
        return row_to_dict(row)


def list_customers(retailer_id: str) -> List[Dict[str, Any]]:
    """List a retailer's customers in the order they were added."""
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM customers WHERE retailer_id = ? ORDER BY created_at, rowid",
            (retailer_id,)
        ).fetchall()
        return rows_to_dicts(rows)
