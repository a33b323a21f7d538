"""
Customer Link - attach customer records to backfilled invoices.

Backfilled invoices carry the customer's contact details inline. This pass
gives each such customer a record of their own and stamps customer.custId on
the invoice, reusing an existing record when name, phone and email all match
exactly.

Invoices are skipped when they have no customer name, or neither a phone nor
an email. A failure on one invoice is logged and counted; the pass carries on.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from .adapters import RecordStore
from .config import Config
from .errors import MissingIdentityError
from .models import CustomerRecord, Identity

logger = logging.getLogger(__name__)


@dataclass
class LinkSummary:
    created: int = 0
    linked: int = 0
    skipped: int = 0
    failed: int = 0
    created_ids: list[str] = field(default_factory=list)


def link_customers(
    store: RecordStore,
    identity: Optional[Identity],
    config: Optional[Config] = None,
) -> LinkSummary:
    """
    Link every unlinked finalized invoice of a retailer to a customer record.

    Args:
        store: Record store holding invoices and customers
        identity: Retailer to process (required)
        config: Supplies the customer id prefix and starting number

    Returns:
        LinkSummary with counts per outcome
    """
    if identity is None:
        raise MissingIdentityError()

    settings = (config or Config()).customer_link
    retailer_id = identity.retailer_id
    summary = LinkSummary()

    existing = store.list_customers(retailer_id)
    known = {
        (c.name, c.phone, c.email): c.customer_id
        for c in existing
        if c.customer_id
    }
    taken_ids = {c.customer_id for c in existing if c.customer_id}
    next_number = settings.start_number

    for record in store.list_finalized_invoices(retailer_id):
        invoice_id = record.get("invoiceId")
        customer = record.get("customer") or {}
        if customer.get("custId"):
            continue

        name = customer.get("name") or ""
        phone = customer.get("phone") or ""
        email = customer.get("email") or ""
        if not name or (not phone and not email):
            summary.skipped += 1
            continue

        try:
            cust_id = known.get((name, phone, email))
            if cust_id:
                store.set_invoice_customer_id(retailer_id, invoice_id, cust_id)
                summary.linked += 1
                logger.info(f"Linked existing customer {cust_id} to invoice {invoice_id}")
                continue

            while f"{settings.id_prefix}-{next_number}" in taken_ids:
                next_number += 1
            cust_id = f"{settings.id_prefix}-{next_number}"
            next_number += 1

            store.create_customer(retailer_id, CustomerRecord(
                name=name,
                phone=phone,
                email=email,
                address=customer.get("address") or "",
                customer_id=cust_id,
            ))
            taken_ids.add(cust_id)
            known[(name, phone, email)] = cust_id

            store.set_invoice_customer_id(retailer_id, invoice_id, cust_id)
            summary.created += 1
            summary.created_ids.append(cust_id)
            logger.info(f"Created {cust_id} and linked it to invoice {invoice_id}")
        except Exception as e:
            logger.error(f"Error linking customer for invoice {invoice_id}: {e}")
            summary.failed += 1

    if summary.created == 0:
        logger.info(f"No customers needed backfilling for retailer {retailer_id}")
    else:
        logger.info(f"Backfilled {summary.created} customer(s) for retailer {retailer_id}")
    return summary
