"""
API tests for the invoice backfill endpoints.

These run the full enrich -> compute -> save flow against an in-memory
test database.
"""
from unittest.mock import MagicMock, patch

from backend.core.config import settings


def _draft(**overrides):
    draft = {
        "draft_id": "3f1c2a9e-0000-4000-8000-000000000001",
        "customer": {"name": "Ravi"},
        "line_items": [
            {"name": "toor dal", "quantity": 2, "price": 100, "discount_percent": 10},
        ],
        "invoice_date": "2024-03-14",
        "tax_percent": 5,
    }
    draft.update(overrides)
    return draft


class TestHealth:

    def test_health(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"


class TestDrafts:

    def test_manual_draft(self, client):
        resp = client.post("/api/backfill/drafts/manual")
        assert resp.status_code == 200
        draft = resp.json()["draft"]
        assert draft["source"] == "manual"
        assert draft["payment_mode"] == "Backfilled"
        assert draft["invoice_type"] == "Tax"
        assert len(draft["line_items"]) == 1
        assert draft["draft_id"]

    def test_extract_draft(self, client):
        payload = {
            "customerName": "Ravi",
            "gstPercent": "5%",
            "productList": [{"name": "Toor Dal", "quantity": "3", "price": "₹160"}],
        }
        resp_mock = MagicMock()
        resp_mock.json.return_value = payload

        with patch.object(settings, "EXTRACTION_URL", "https://ocr.example.com/parse"), \
             patch("ledger.backfill.extraction.requests.post", return_value=resp_mock):
            resp = client.post("/api/backfill/drafts/extract", json={"file_url": "https://files/x.pdf"})

        assert resp.status_code == 200
        draft = resp.json()["draft"]
        assert draft["source"] == "extraction"
        assert draft["tax_percent"] == 5
        assert draft["line_items"][0]["price"] == 160

    def test_extract_unconfigured_is_bad_gateway(self, client):
        with patch.object(settings, "EXTRACTION_URL", ""):
            resp = client.post("/api/backfill/drafts/extract", json={"file_url": "https://files/x.pdf"})
        assert resp.status_code == 502


class TestEnrich:

    def test_enrich_fills_empty_fields(self, client, seeded_db, headers):
        resp = client.post("/api/backfill/enrich", json=_draft(), headers=headers)

        assert resp.status_code == 200
        data = resp.json()
        assert data["draft"]["customer"]["name"] == "Ravi"
        assert data["draft"]["customer"]["phone"] == "9876543210"
        assert data["draft"]["line_items"][0]["sku"] == "DAL-TOOR"
        assert data["report"]["customer_matched"] is True
        assert data["report"]["items_enriched"] == 1
        assert data["business"]["businessName"] == "Sharma General Store"
        assert data["totals"]["total"] == 189
        assert data["totals"]["formatted"]["total"] == "₹189.00"

    def test_enrich_is_scoped_by_retailer(self, client, seeded_db):
        resp = client.post("/api/backfill/enrich", json=_draft(), headers={"X-Retailer-Id": "RET-002"})
        data = resp.json()
        assert data["draft"]["customer"]["phone"] == "9999999999"
        assert data["draft"]["line_items"][0]["sku"] == ""
        assert data["business"] is None

    def test_enrich_without_identity_is_skipped(self, client, seeded_db):
        resp = client.post("/api/backfill/enrich", json=_draft())
        assert resp.status_code == 200
        data = resp.json()
        assert data["report"]["skipped"] is True
        assert data["draft"]["customer"]["phone"] == ""


class TestCompute:

    def test_totals(self, client):
        resp = client.post("/api/backfill/compute", json=_draft())
        totals = resp.json()["totals"]
        assert totals == {
            "subtotal": 180,
            "tax_amount": 9,
            "total": 189,
            "line_subtotals": [180],
            "formatted": {"subtotal": "₹180.00", "tax_amount": "₹9.00", "total": "₹189.00"},
        }

    def test_unparseable_price_is_zero(self, client):
        draft = _draft(line_items=[{"name": "Dal", "quantity": 1, "price": "abc"}])
        resp = client.post("/api/backfill/compute", json=draft)
        assert resp.status_code == 200
        assert resp.json()["totals"]["total"] == 0

    def test_oversized_quantity_is_zero(self, client):
        draft = _draft(line_items=[{"name": "Dal", "quantity": 10 ** 400, "price": 160}])
        resp = client.post("/api/backfill/compute", json=draft)
        assert resp.status_code == 200
        assert resp.json()["totals"]["total"] == 0

    def test_reports_problems(self, client):
        draft = _draft(line_items=[{"name": "Dal", "quantity": 1, "price": -5}])
        problems = client.post("/api/backfill/compute", json=draft).json()["problems"]
        assert problems == ["Dal: price cannot be negative"]


class TestSave:

    def test_save_creates_invoice(self, client, seeded_db, headers):
        resp = client.post("/api/backfill/save", json=_draft(), headers=headers)

        assert resp.status_code == 201
        data = resp.json()
        assert data["invoice_id"].startswith("FLYP-")
        assert data["invoice"]["total"] == 189
        assert data["invoice"]["status"] == "backfilled"
        assert data["invoice"]["issuedAt"]

        row = seeded_db.execute(
            "SELECT retailer_id, idempotency_key, total FROM finalized_invoices"
        ).fetchone()
        assert row["retailer_id"] == "RET-001"
        assert row["idempotency_key"] == _draft()["draft_id"]
        assert row["total"] == 189

    def test_save_without_identity(self, client, seeded_db):
        resp = client.post("/api/backfill/save", json=_draft())

        assert resp.status_code == 401
        count = seeded_db.execute("SELECT COUNT(*) FROM finalized_invoices").fetchone()[0]
        assert count == 0

    def test_duplicate_save(self, client, seeded_db, headers):
        first = client.post("/api/backfill/save", json=_draft(), headers=headers)
        second = client.post("/api/backfill/save", json=_draft(), headers=headers)

        assert second.status_code == 409
        assert second.json()["detail"]["invoice_id"] == first.json()["invoice_id"]
        count = seeded_db.execute("SELECT COUNT(*) FROM finalized_invoices").fetchone()[0]
        assert count == 1

    def test_invalid_draft(self, client, seeded_db, headers):
        draft = _draft(payment_mode="Cheque")
        resp = client.post("/api/backfill/save", json=draft, headers=headers)

        assert resp.status_code == 422
        assert resp.json()["detail"]["problems"] == ["Unknown payment mode 'Cheque'"]

    def test_api_key_required_when_configured(self, client, seeded_db, headers):
        with patch.object(settings, "API_KEY", "secret"):
            denied = client.post("/api/backfill/save", json=_draft(), headers=headers)
            allowed = client.post("/api/backfill/save", json=_draft(),
                                  headers={**headers, "X-API-Key": "secret"})

        assert denied.status_code == 401
        assert allowed.status_code == 201


class TestLinkCustomers:

    def test_links_saved_invoices(self, client, seeded_db, headers):
        draft = _draft(customer={"name": "Suresh", "phone": "9000000009"})
        saved = client.post("/api/backfill/save", json=draft, headers=headers).json()

        resp = client.post("/api/backfill/link-customers", headers=headers)

        assert resp.status_code == 200
        assert resp.json()["created_ids"] == ["CUST-1602"]
        invoice = client.get(f"/api/invoices/{saved['invoice_id']}", headers=headers).json()["invoice"]
        assert invoice["customer"]["custId"] == "CUST-1602"

    def test_requires_identity(self, client):
        assert client.post("/api/backfill/link-customers").status_code == 401
