"""
Tests for linking customer records to backfilled invoices.

Run with: pytest ledger/backfill/tests/test_customer_link.py -v
"""

import pytest

from ledger.backfill.adapters import InMemoryRecordStore
from ledger.backfill.config import Config, CustomerLinkSettings
from ledger.backfill.customer_link import link_customers
from ledger.backfill.errors import MissingIdentityError
from ledger.backfill.models import CustomerRecord, Identity


def _invoice(invoice_id, name="Ravi", phone="9876543210", email="", **customer_extra):
    customer = {"name": name, "phone": phone, "email": email, "address": "Pune"}
    customer.update(customer_extra)
    return {"invoiceId": invoice_id, "idempotencyKey": invoice_id, "customer": customer, "products": []}


@pytest.fixture
def store():
    return InMemoryRecordStore()


class FlakyStore(InMemoryRecordStore):
    def set_invoice_customer_id(self, retailer_id, invoice_id, customer_id):
        if invoice_id == "FLYP-2":
            raise ConnectionError("write failed")
        return super().set_invoice_customer_id(retailer_id, invoice_id, customer_id)


class TestLinkCustomers:

    def test_requires_identity(self, store):
        with pytest.raises(MissingIdentityError):
            link_customers(store, None)

    def test_creates_customer_from_invoice(self, store):
        store.create_finalized_invoice("R1", _invoice("FLYP-1"))

        summary = link_customers(store, Identity("R1"))

        assert summary.created == 1
        assert summary.created_ids == ["CUST-1600"]
        customers = store.list_customers("R1")
        assert customers == [CustomerRecord(name="Ravi", phone="9876543210", address="Pune",
                                            customer_id="CUST-1600")]
        assert store.get_finalized_invoice("R1", "FLYP-1")["customer"]["custId"] == "CUST-1600"

    def test_same_customer_across_invoices_created_once(self, store):
        store.create_finalized_invoice("R1", _invoice("FLYP-1"))
        store.create_finalized_invoice("R1", _invoice("FLYP-2"))

        summary = link_customers(store, Identity("R1"))

        assert summary.created == 1
        assert summary.linked == 1
        assert store.get_finalized_invoice("R1", "FLYP-2")["customer"]["custId"] == "CUST-1600"

    def test_links_existing_customer(self, store):
        store.add_customers("R1", [CustomerRecord(name="Ravi", phone="9876543210", customer_id="CUST-1700")])
        store.create_finalized_invoice("R1", _invoice("FLYP-1"))

        summary = link_customers(store, Identity("R1"))

        assert (summary.created, summary.linked) == (0, 1)
        assert store.get_finalized_invoice("R1", "FLYP-1")["customer"]["custId"] == "CUST-1700"

    def test_partial_match_creates_new(self, store):
        store.add_customers("R1", [CustomerRecord(name="Ravi", phone="0000000000", customer_id="CUST-1600")])
        store.create_finalized_invoice("R1", _invoice("FLYP-1"))

        summary = link_customers(store, Identity("R1"))

        assert summary.created_ids == ["CUST-1601"]

    def test_skips_incomplete_customers(self, store):
        store.create_finalized_invoice("R1", _invoice("FLYP-1", name=""))
        store.create_finalized_invoice("R1", _invoice("FLYP-2", phone="", email=""))
        store.create_finalized_invoice("R1", _invoice("FLYP-3", phone="", email="ravi@example.com"))

        summary = link_customers(store, Identity("R1"))

        assert summary.skipped == 2
        assert summary.created == 1

    def test_already_linked_is_left_alone(self, store):
        store.create_finalized_invoice("R1", _invoice("FLYP-1", custId="CUST-9"))

        summary = link_customers(store, Identity("R1"))

        assert (summary.created, summary.linked, summary.skipped) == (0, 0, 0)
        assert store.list_customers("R1") == []

    def test_custom_numbering(self, store):
        store.create_finalized_invoice("R1", _invoice("FLYP-1"))
        config = Config(customer_link=CustomerLinkSettings(id_prefix="C", start_number=1))

        assert link_customers(store, Identity("R1"), config).created_ids == ["C-1"]

    def test_scoped_by_retailer(self, store):
        store.create_finalized_invoice("R2", _invoice("FLYP-1"))
        summary = link_customers(store, Identity("R1"))
        assert summary.created == 0
        assert store.list_customers("R2") == []

    def test_failure_is_counted_and_pass_continues(self):
        store = FlakyStore()
        store.create_finalized_invoice("R1", _invoice("FLYP-1", name="A"))
        store.create_finalized_invoice("R1", _invoice("FLYP-2", name="B"))
        store.create_finalized_invoice("R1", _invoice("FLYP-3", name="C"))

        summary = link_customers(store, Identity("R1"))

        assert summary.failed == 1
        assert summary.created == 2

    def test_second_run_is_a_noop(self, store):
        store.create_finalized_invoice("R1", _invoice("FLYP-1"))
        link_customers(store, Identity("R1"))

        summary = link_customers(store, Identity("R1"))

        assert (summary.created, summary.linked) == (0, 0)
        assert len(store.list_customers("R1")) == 1
