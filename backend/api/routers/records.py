"""
Retailer records API router: customers, inventory, business profile and
finalized invoices. Every route is scoped by the X-Retailer-Id header.
"""
from fastapi import APIRouter, Depends, HTTPException, Query

from backend.api.models import BusinessRequest, CustomerRequest, InventoryItemRequest
from backend.api.security import require_api_key, require_identity
from backend.core.db import (
    add_customer,
    add_inventory_item,
    get_business,
    get_invoice,
    list_customers,
    list_inventory_items,
    list_invoices,
    upsert_business,
)
from ledger.backfill.models import Identity

router = APIRouter(tags=["Records"])


def _customer_out(row: dict) -> dict:
    return {
        "cust_id": row["cust_id"],
        "name": row["name"],
        "phone": row["phone"],
        "email": row["email"],
        "address": row["address"],
        "created_at": row["created_at"],
    }


# ============== Customers ==============

@router.get("/api/customers")
def get_customers(identity: Identity = Depends(require_identity)):
    """List the retailer's customers."""
    customers = [_customer_out(row) for row in list_customers(identity.retailer_id)]
    return {"customers": customers, "count": len(customers)}


@router.post("/api/customers", status_code=201, dependencies=[Depends(require_api_key)])
def create_customer(request: CustomerRequest, identity: Identity = Depends(require_identity)):
    """Add a customer record."""
    if not request.name.strip():
        raise HTTPException(status_code=422, detail="Customer name is required")
    row = add_customer(
        identity.retailer_id,
        name=request.name.strip(),
        phone=request.phone,
        email=request.email,
        address=request.address,
        cust_id=request.cust_id,
    )
    return {"success": True, "customer": _customer_out(row)}


# ============== Inventory ==============

@router.get("/api/inventory")
def get_inventory(identity: Identity = Depends(require_identity)):
    """List the retailer's inventory items."""
    items = list_inventory_items(identity.retailer_id)
    return {"items": items, "count": len(items)}


@router.post("/api/inventory", status_code=201, dependencies=[Depends(require_api_key)])
def create_inventory_item(request: InventoryItemRequest, identity: Identity = Depends(require_identity)):
    """Add an inventory item."""
    if not request.name.strip():
        raise HTTPException(status_code=422, detail="Item name is required")
    item = add_inventory_item(
        identity.retailer_id,
        name=request.name.strip(),
        brand=request.brand,
        category=request.category,
        unit=request.unit,
        sku=request.sku,
        price=request.price,
    )
    return {"success": True, "item": item}


# ============== Business profile ==============

@router.get("/api/business")
def get_business_profile(identity: Identity = Depends(require_identity)):
    """Get the retailer's business profile."""
    business = get_business(identity.retailer_id)
    if not business:
        raise HTTPException(status_code=404, detail="Business profile not found")
    return {"business": business}


@router.put("/api/business", dependencies=[Depends(require_api_key)])
def update_business_profile(request: BusinessRequest, identity: Identity = Depends(require_identity)):
    """Create or replace the retailer's business profile."""
    business = upsert_business(identity.retailer_id, **request.model_dump())
    return {"success": True, "business": business}


# ============== Finalized invoices ==============

@router.get("/api/invoices")
def get_invoices(
    identity: Identity = Depends(require_identity),
    limit: int = Query(500, ge=1, le=5000)
):
    """List the retailer's finalized invoices."""
    invoices = list_invoices(identity.retailer_id, limit=limit)
    return {"invoices": invoices, "count": len(invoices)}


@router.get("/api/invoices/{invoice_id}")
def get_finalized_invoice(invoice_id: str, identity: Identity = Depends(require_identity)):
    """Get one finalized invoice."""
    invoice = get_invoice(identity.retailer_id, invoice_id)
    if not invoice:
        raise HTTPException(status_code=404, detail="Invoice not found")
    return {"invoice": invoice}
