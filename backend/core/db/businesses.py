"""
Business profile database operations.
"""
from typing import Optional, Dict, Any

from .base import get_db
from .utils import now, row_to_dict


def get_business(retailer_id: str) -> Optional[Dict[str, Any]]:
    """Get a retailer's business profile."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM businesses WHERE retailer_id = ?",
            (retailer_id,)
        ).fetchone()
        return row_to_dict(row)


def upsert_business(
    retailer_id: str,
    business_name: str = "",
    owner_name: str = "",
    phone: str = "",
    email: str = "",
    address: str = "",
    gst_number: str = ""
) -> Dict[str, Any]:
    """Create or replace a retailer's business profile."""
    timestamp = now()

    with get_db() as conn:
        conn.execute("""
            INSERT INTO businesses
            (retailer_id, business_name, owner_name, phone, email, address, gst_number, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(retailer_id) DO UPDATE SET
                business_name = excluded.business_name,
                owner_name = excluded.owner_name,
                phone = excluded.phone,
                email = excluded.email,
                address = excluded.address,
                gst_number = excluded.gst_number,
                updated_at = excluded.updated_at
        """, (retailer_id, business_name, owner_name, phone, email, address, gst_number, timestamp))

    return get_business(retailer_id)
