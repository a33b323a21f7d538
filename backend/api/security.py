"""
Request-scoped auth dependencies: optional API key and retailer identity.
"""
from typing import Optional

from fastapi import Header, HTTPException

from backend.core.config import settings
from ledger.backfill.models import Identity


def require_api_key(x_api_key: Optional[str] = Header(None)) -> None:
    """Require a matching API key when LEDGER_API_KEY is configured."""
    if not settings.API_KEY:
        return
    if x_api_key != settings.API_KEY:
        raise HTTPException(status_code=401, detail="Invalid API key")


def get_identity(x_retailer_id: Optional[str] = Header(None)) -> Optional[Identity]:
    """Retailer identity from the X-Retailer-Id header, None when absent."""
    if not x_retailer_id or not x_retailer_id.strip():
        return None
    return Identity(x_retailer_id.strip())


def require_identity(x_retailer_id: Optional[str] = Header(None)) -> Identity:
    """Like get_identity, but answers 401 when the header is missing."""
    identity = get_identity(x_retailer_id)
    if identity is None:
        raise HTTPException(status_code=401, detail="Missing X-Retailer-Id header")
    return identity
