"""
Tests for extraction results and the manual-entry template.

Run with: pytest ledger/backfill/tests/test_extraction.py -v
"""

from datetime import date
from unittest.mock import MagicMock, patch

import pytest
import requests

from ledger.backfill.config import Config
from ledger.backfill.errors import ExtractionError
from ledger.backfill.extraction import (
    ExtractionClient,
    clean_hsn,
    draft_from_extraction,
    draft_from_upload,
    empty_draft,
    parse_amount,
    snap_gst_rate,
)
from ledger.backfill.models import DraftSource, LineItem


def _response(payload=None, status=200, json_error=None):
    resp = MagicMock()
    resp.status_code = status
    if status >= 400:
        resp.raise_for_status.side_effect = requests.HTTPError(f"{status} Error")
    if json_error is not None:
        resp.json.side_effect = json_error
    else:
        resp.json.return_value = payload
    return resp


class TestFieldCleanup:

    @pytest.mark.parametrize("raw,expected", [
        ("₹1,250.50", 1250.5),
        ("160", 160.0),
        (42, 42.0),
        ("5%", 5.0),
        ("", 0.0),
        (None, 0.0),
        ("n/a", 0.0),
    ])
    def test_parse_amount(self, raw, expected):
        assert parse_amount(raw) == expected

    def test_clean_hsn(self):
        assert clean_hsn("1006.30") == "100630"
        assert clean_hsn("HSN 0713 10 90 99") == "07131090"
        assert clean_hsn(None) == ""

    @pytest.mark.parametrize("raw,expected", [("5%", 5), ("17.5", 18), ("2.5", 0), ("30", 28), ("8.5", 5)])
    def test_snap_gst_rate(self, raw, expected):
        assert snap_gst_rate(raw, [0, 5, 12, 18, 28]) == expected

    def test_snap_without_slabs(self):
        assert snap_gst_rate("7", []) == 7


class TestDraftFromExtraction:

    def test_flat_shape(self, extraction_result):
        draft = draft_from_extraction(extraction_result)

        assert draft.source == DraftSource.EXTRACTION
        assert draft.customer.name == "Ravi"
        assert draft.invoice_date == "2024-03-14"
        assert draft.tax_percent == 5
        assert draft.payment_mode == "Backfilled"
        assert draft.invoice_type == "Tax"
        assert len(draft.line_items) == 3

        rice, dal, sugar = draft.line_items
        assert rice.price == 650
        assert rice.quantity == 2
        assert rice.hsn_code == "100630"
        assert dal.brand == "Local"
        assert dal.discount_percent == 10
        assert sugar.quantity == 1.5
        assert sugar.unit == "kg"

    def test_nested_shape(self):
        draft = draft_from_extraction({
            "customer": {"name": "Meena", "phone": "9123456780"},
            "invoice": {"date": "2024-02-01"},
            "lineItems": [{"name": "Dal", "unitPrice": "80", "quantity": 1, "discountPercent": 5}],
            "taxPercent": 12,
        })

        assert draft.customer.phone == "9123456780"
        assert draft.invoice_date == "2024-02-01"
        assert draft.tax_percent == 12
        assert draft.line_items[0] == LineItem(name="Dal", quantity=1.0, price=80.0, discount_percent=5.0)

    def test_no_tax_means_zero(self):
        assert draft_from_extraction({"items": []}).tax_percent == 0

    def test_uses_config_defaults(self):
        config = Config(payment_modes=["Cash"], default_payment_mode="Cash")
        assert draft_from_extraction({"products": []}, config).payment_mode == "Cash"

    @pytest.mark.parametrize("payload", [
        None,
        [],
        "text",
        {"customerName": "Ravi"},
        {"productList": "not a list"},
        {"productList": ["row"]},
    ])
    def test_unusable_results(self, payload):
        with pytest.raises(ExtractionError):
            draft_from_extraction(payload)


class TestExtractionClient:

    def test_posts_file_url(self, extraction_result):
        client = ExtractionClient("https://ocr.example.com/parse", api_key="secret", timeout=5)

        with patch("ledger.backfill.extraction.requests.post", return_value=_response(extraction_result)) as post:
            result = client.parse("https://files.example.com/inv.pdf")

        assert result["customerName"] == "Ravi"
        post.assert_called_once()
        _, kwargs = post.call_args
        assert kwargs["json"] == {"fileUrl": "https://files.example.com/inv.pdf"}
        assert kwargs["headers"]["Authorization"] == "Bearer secret"
        assert kwargs["timeout"] == 5

    def test_no_api_key_no_auth_header(self):
        client = ExtractionClient("https://ocr.example.com/parse")
        with patch("ledger.backfill.extraction.requests.post", return_value=_response({"items": []})) as post:
            client.parse("u")
        assert "Authorization" not in post.call_args.kwargs["headers"]

    def test_not_configured(self):
        with pytest.raises(ExtractionError):
            ExtractionClient("").parse("u")

    def test_connection_error(self):
        client = ExtractionClient("https://ocr.example.com/parse")
        with patch("ledger.backfill.extraction.requests.post",
                   side_effect=requests.ConnectionError("refused")):
            with pytest.raises(ExtractionError):
                client.parse("u")

    def test_http_error(self):
        client = ExtractionClient("https://ocr.example.com/parse")
        with patch("ledger.backfill.extraction.requests.post", return_value=_response(status=500)):
            with pytest.raises(ExtractionError):
                client.parse("u")

    def test_invalid_json(self):
        client = ExtractionClient("https://ocr.example.com/parse")
        with patch("ledger.backfill.extraction.requests.post",
                   return_value=_response(json_error=ValueError("bad json"))):
            with pytest.raises(ExtractionError):
                client.parse("u")

    def test_explicit_failure(self):
        client = ExtractionClient("https://ocr.example.com/parse")
        failure = {"success": False, "message": "Unreadable scan"}
        with patch("ledger.backfill.extraction.requests.post", return_value=_response(failure)):
            with pytest.raises(ExtractionError, match="Unreadable scan"):
                client.parse("u")

    def test_non_object_response(self):
        client = ExtractionClient("https://ocr.example.com/parse")
        with patch("ledger.backfill.extraction.requests.post", return_value=_response([1, 2])):
            with pytest.raises(ExtractionError):
                client.parse("u")

    def test_draft_from_upload(self, extraction_result):
        client = ExtractionClient("https://ocr.example.com/parse")
        with patch("ledger.backfill.extraction.requests.post", return_value=_response(extraction_result)):
            draft = draft_from_upload("u", client)
        assert draft.source == DraftSource.EXTRACTION
        assert len(draft.line_items) == 3


class TestEmptyDraft:

    def test_template(self):
        draft = empty_draft(today=date(2024, 3, 14))

        assert draft.source == DraftSource.MANUAL
        assert draft.invoice_date == "2024-03-14"
        assert draft.line_items == [LineItem()]
        assert draft.customer.name == ""
        assert draft.tax_percent == 0
        assert draft.payment_mode == "Backfilled"

    def test_each_template_has_its_own_id(self):
        assert empty_draft().draft_id != empty_draft().draft_id
