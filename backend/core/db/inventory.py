"""
Inventory item database operations.
"""
from typing import Optional, List, Dict, Any

from .base import get_db
from .utils import new_id, now, row_to_dict, rows_to_dicts


def add_inventory_item(
    retailer_id: str,
    name: str,
    brand: str = "",
    category: str = "",
    unit: str = "",
    sku: str = "",
    price: Optional[float] = None
) -> Dict[str, Any]:
    """Add an inventory item for a retailer."""
    row_id = new_id()

    with get_db() as conn:
        conn.execute("""
            INSERT INTO inventory_items (id, retailer_id, name, brand, category, unit, sku, price, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (row_id, retailer_id, name, brand or "", category or "", unit or "", sku or "", price, now()))

        row = conn.execute("SELECT * FROM inventory_items WHERE id = ?", (row_id,)).fetchone()
        return row_to_dict(row)


def list_inventory_items(retailer_id: str) -> List[Dict[str, Any]]:
    """List a retailer's inventory items in the order they were added."""
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM inventory_items WHERE retailer_id = ? ORDER BY created_at, rowid",
            (retailer_id,)
        ).fetchall()
        return rows_to_dicts(rows)
