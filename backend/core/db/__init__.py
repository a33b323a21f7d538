"""
Database package for Ledger.

All functions are re-exported here:

    from backend.core.db import get_db, list_customers, insert_invoice
"""

# Base - connection, initialization
from .base import (
    DB_PATH,
    SCHEMA,
    get_db,
    init_db,
)

# Business profiles
from .businesses import (
    get_business,
    upsert_business,
)

# Customers
from .customers import (
    add_customer,
    get_customer,
    list_customers,
)

# Inventory
from .inventory import (
    add_inventory_item,
    list_inventory_items,
)

# Finalized invoices
from .invoices import (
    insert_invoice,
    get_invoice,
    get_invoice_by_key,
    list_invoices,
    set_invoice_customer_id,
)

# Utilities
from .utils import (
    now,
    new_id,
    parse_json_field,
    to_json,
    row_to_dict,
    rows_to_dicts,
)

__all__ = [
    # Base
    "DB_PATH",
    "SCHEMA",
    "get_db",
    "init_db",
    # Business profiles
    "get_business",
    "upsert_business",
    # Customers
    "add_customer",
    "get_customer",
    "list_customers",
    # Inventory
    "add_inventory_item",
    "list_inventory_items",
    # Finalized invoices
    "insert_invoice",
    "get_invoice",
    "get_invoice_by_key",
    "list_invoices",
    "set_invoice_customer_id",
    # Utilities
    "now",
    "new_id",
    "parse_json_field",
    "to_json",
    "row_to_dict",
    "rows_to_dicts",
]
