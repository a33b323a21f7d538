"""
Shared database utilities: timestamps, ids, JSON columns and row conversion.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
import json
import sqlite3
import uuid


def now() -> str:
    """Current UTC time as an ISO string."""
    return datetime.utcnow().isoformat()


def new_id() -> str:
    """Row id for a new record."""
    return str(uuid.uuid4())


def parse_json_field(value: Optional[str], default: Any = None) -> Any:
    """
    Decode a JSON column.

    Args:
        value: Stored JSON text, may be None
        default: Returned for NULL or undecodable text (an empty list if not given)

    Returns:
        Decoded value or default
    """
    fallback = default if default is not None else []
    if not value:
        return fallback
    try:
        return json.loads(value)
    except (json.JSONDecodeError, TypeError):
        return fallback


def to_json(value: Any) -> str:
    """Encode a value for a JSON column, keeping non-ASCII text (e.g. ₹) readable."""
    return json.dumps(value, ensure_ascii=False)


def row_to_dict(row: Optional[sqlite3.Row]) -> Optional[Dict[str, Any]]:
    """Convert a sqlite3.Row to a plain dict (None passes through)."""
    return dict(row) if row is not None else None


def rows_to_dicts(rows: List[sqlite3.Row]) -> List[Dict[str, Any]]:
    """Convert a list of sqlite3.Row objects to dicts."""
    return [dict(row) for row in rows]
