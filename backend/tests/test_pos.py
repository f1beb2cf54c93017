"""
POS flow tests.

Verifies:
- A saved draft round-trips with its items through every read path
- Issuing an invoice closes the order and posts one balanced entry
- Invoice numbers are sequential per year
- Table state, layout and cancellation
"""

from decimal import Decimal

import pytest

from bistro.errors import InvalidStateError, ValidationError
from bistro.models import Invoice, JournalEntry, Order
from bistro.services import document_service, order_service, settings_service


DRAFT = {
    "branch": "china_town",
    "table": "5",
    "items": [
        {"id": 212, "name": "Kung Pao Chicken", "qty": 2, "price": 10},
        {"id": 213, "name": "Fried Rice", "qty": 1, "price": 5.5},
    ],
}


def _save(client, headers, payload=DRAFT):
    resp = client.post("/api/pos/saveDraft", json=payload, headers=headers)
    assert resp.status_code == 200, resp.json
    return resp.json


class TestDraftRoundTrip:

    def test_save_and_reload(self, client, cashier_headers):
        saved = _save(client, cashier_headers)
        order_id = saved["order_id"]
        assert saved["order"]["status"] == "DRAFT"
        assert saved["storage_key"] == "pos_order_china_town_5"
        assert [i["id"] for i in saved["order"]["items"]] == [212, 213]

        resp = client.get(f"/api/orders/{order_id}", headers=cashier_headers)
        assert resp.status_code == 200
        assert [(i["id"], i["qty"]) for i in resp.json["items"]] == [(212, 2.0), (213, 1.0)]

        resp = client.get("/api/orders?branch=china_town&table=5&status=DRAFT,OPEN", headers=cashier_headers)
        assert resp.status_code == 200
        listed = resp.json["items"]
        assert [o["id"] for o in listed] == [order_id]
        assert len(listed[0]["items"]) == 2

    def test_totals(self, client, cashier_headers):
        saved = _save(client, cashier_headers)
        # 2*10 + 5.5 = 25.5, 15% VAT
        assert saved["totals"]["subtotal"] == 25.5
        assert saved["totals"]["tax_amount"] == 3.83
        assert saved["totals"]["total_amount"] == 29.33

    def test_update_replaces_items(self, client, cashier_headers):
        saved = _save(client, cashier_headers)
        payload = dict(DRAFT, order_id=saved["order_id"], items=[{"id": 213, "qty": 3, "price": 5.5}])
        updated = _save(client, cashier_headers, payload)
        assert updated["order_id"] == saved["order_id"]
        assert [(i["id"], i["qty"]) for i in updated["order"]["items"]] == [(213, 3.0)]

    def test_meta_and_nameless_items_skipped(self, seed):
        lines = order_service.parse_items([
            {"type": "meta", "note": "no onions"},
            {"qty": 1, "price": 4},
            {"id": "212", "qty": "2", "price": "10"},
        ])
        assert [(l.product_id, l.quantity) for l in lines] == [(212, Decimal("2"))]

    def test_branch_alias_is_normalized(self, client, admin_headers):
        saved = _save(client, admin_headers, dict(DRAFT, branch="Palace India"))
        assert saved["order"]["branch"] == "place_india"

    def test_table_required(self, client, cashier_headers):
        resp = client.post("/api/pos/saveDraft", json=dict(DRAFT, table=""), headers=cashier_headers)
        assert resp.status_code == 400
        assert resp.json["error"] == "invalid_table"

    def test_cashier_limited_to_granted_branch(self, client, cashier_headers):
        resp = client.post("/api/pos/saveDraft", json=dict(DRAFT, branch="place_india"),
                           headers=cashier_headers)
        assert resp.status_code == 403

    def test_order_writes_checked_against_order_branch(self, client, admin_headers, cashier_headers, db_session):
        other = _save(client, admin_headers, dict(DRAFT, branch="place_india", table="9"))
        order_id = other["order_id"]

        resp = client.post("/api/pos/saveDraft", json=dict(DRAFT, order_id=order_id, items=[]),
                           headers=cashier_headers)
        assert resp.status_code == 403
        resp = client.post("/api/pos/issueInvoice", json={"order_id": order_id, "branch": "china_town"},
                           headers=cashier_headers)
        assert resp.status_code == 403

        order = db_session.get(Order, order_id)
        assert order.status == "DRAFT"
        assert len(order.items) == 2
        assert db_session.query(Invoice).count() == 0

    def test_update_must_keep_branch_and_table(self, client, admin_headers):
        order_id = _save(client, admin_headers)["order_id"]

        resp = client.post("/api/pos/saveDraft", json=dict(DRAFT, order_id=order_id, table="6"),
                           headers=admin_headers)
        assert resp.status_code == 400
        assert resp.json["error"] == "order_mismatch"

        resp = client.post("/api/pos/saveDraft", json=dict(DRAFT, order_id=order_id, branch="place_india"),
                           headers=admin_headers)
        assert resp.status_code == 400
        assert resp.json["error"] == "order_mismatch"
        assert resp.json["details"] == {"branch": "china_town", "table": "5"}

    def test_non_numeric_ids_are_validation_errors(self, client, cashier_headers):
        resp = client.post("/api/pos/saveDraft", json=dict(DRAFT, order_id="abc"), headers=cashier_headers)
        assert resp.status_code == 400
        assert resp.json["error"] == "invalid_id"

        resp = client.post("/api/pos/saveDraft", json=dict(DRAFT, customer_id="x1"), headers=cashier_headers)
        assert resp.status_code == 400
        assert resp.json["details"] == {"field": "customer_id"}

        resp = client.post("/api/pos/issueInvoice", json={"order_id": "12a"}, headers=cashier_headers)
        assert resp.status_code == 400
        assert resp.json["error"] == "invalid_id"

    def test_legacy_alias_serves_same_view(self, client, cashier_headers):
        resp = client.post("/api/pos/save-draft", json=DRAFT, headers=cashier_headers)
        assert resp.status_code == 200
        assert resp.json["order"]["table"] == "5"


class TestIssueInvoice:

    def test_issue_closes_order_and_posts_balanced_entry(self, client, cashier_headers, db_session):
        order_id = _save(client, cashier_headers)["order_id"]

        resp = client.post("/api/pos/issueInvoice", json={"order_id": order_id, "payment_method": "cash"},
                           headers=cashier_headers)
        assert resp.status_code == 201, resp.json
        body = resp.json
        assert body["order"]["status"] == "ISSUED"
        assert body["invoice"]["total"] == 29.33
        assert body["invoice"]["number"].startswith("INV/")

        entry = db_session.get(JournalEntry, body["journal_entry_id"])
        assert entry.status == "posted"
        assert entry.reference_type == "invoice"
        assert entry.total_debit == entry.total_credit == Decimal("29.33")
        codes = {p.account.code: (p.debit, p.credit) for p in entry.postings}
        assert codes["1111"] == (Decimal("29.33"), Decimal("0"))
        assert codes["4111"][1] == Decimal("25.50")
        assert codes["2141"][1] == Decimal("3.83")

    def test_busy_order_can_still_be_issued(self, client, cashier_headers):
        order_id = _save(client, cashier_headers)["order_id"]
        resp = client.post(f"/api/pos/orders/{order_id}/busy", headers=cashier_headers)
        assert resp.status_code == 200
        assert resp.json["status"] == "BUSY"
        resp = client.post("/api/pos/issueInvoice", json={"order_id": order_id}, headers=cashier_headers)
        assert resp.status_code == 201
        assert resp.json["order"]["status"] == "ISSUED"

    def test_issued_order_leaves_table_state(self, client, cashier_headers):
        order_id = _save(client, cashier_headers)["order_id"]
        state = client.get("/api/pos/table-state?branch=china_town", headers=cashier_headers)
        assert state.json["busy"] == ["5"]

        client.post("/api/pos/issueInvoice", json={"order_id": order_id}, headers=cashier_headers)
        state = client.get("/api/pos/table-state?branch=china_town", headers=cashier_headers)
        assert state.json["busy"] == []

    def test_cannot_issue_twice(self, client, cashier_headers):
        order_id = _save(client, cashier_headers)["order_id"]
        client.post("/api/pos/issueInvoice", json={"order_id": order_id}, headers=cashier_headers)
        resp = client.post("/api/pos/issueInvoice", json={"order_id": order_id}, headers=cashier_headers)
        assert resp.status_code == 400
        assert resp.json["error"] == "already_issued"

    def test_empty_order_rolls_back(self, client, cashier_headers, db_session):
        order_id = _save(client, cashier_headers, dict(DRAFT, items=[]))["order_id"]
        resp = client.post("/api/pos/issueInvoice", json={"order_id": order_id}, headers=cashier_headers)
        assert resp.status_code == 400
        assert resp.json["error"] == "empty_lines"
        assert db_session.get(Order, order_id).status == "DRAFT"
        assert db_session.query(Invoice).count() == 0

    def test_credit_sale_needs_customer(self, client, cashier_headers, db_session):
        order_id = _save(client, cashier_headers)["order_id"]
        resp = client.post("/api/pos/issueInvoice", json={"order_id": order_id, "payment_method": "credit"},
                           headers=cashier_headers)
        assert resp.status_code == 400
        assert resp.json["error"] == "customer_required"
        assert db_session.get(Order, order_id).invoice_id is None
        assert db_session.query(JournalEntry).count() == 0

    def test_missing_revenue_account_rolls_back_everything(self, client, cashier_headers, db_session):
        from bistro.models import Account
        order_id = _save(client, cashier_headers)["order_id"]
        revenue = db_session.query(Account).filter_by(account_code="4111").one()
        db_session.delete(revenue)
        db_session.commit()

        resp = client.post("/api/pos/issueInvoice", json={"order_id": order_id}, headers=cashier_headers)
        assert resp.status_code == 400
        assert resp.json["error"] == "account_not_found"
        assert db_session.get(Order, order_id).status == "DRAFT"
        assert db_session.query(Invoice).count() == 0


class TestNumbering:

    def test_numbers_are_sequential_per_year(self, seed):
        first = document_service.next_document_number(year=2025)
        second = document_service.next_document_number(year=2025)
        other_year = document_service.next_document_number(year=2026)
        assert first == "INV/2025/0000000001"
        assert second == "INV/2025/0000000002"
        assert other_year == "INV/2026/0000000001"

    def test_next_number_endpoint_does_not_consume(self, client, admin_headers):
        a = client.get("/api/invoices/next-number", headers=admin_headers).json
        b = client.get("/api/invoices/next-number", headers=admin_headers).json
        assert a == b


class TestTablesAndCancel:

    def test_layout_round_trip(self, client, admin_headers):
        layout = {"rows": [["1", "2", "3"], ["4", "5"]]}
        resp = client.put("/api/pos/tables-layout", json={"branch": "china_town", "layout": layout},
                          headers=admin_headers)
        assert resp.status_code == 200
        resp = client.get("/api/pos/tables-layout?branch=china_town", headers=admin_headers)
        assert resp.json["layout"] == layout

    def test_layout_requires_branch_on_read(self, client, admin_headers):
        resp = client.get("/api/pos/tables-layout", headers=admin_headers)
        assert resp.status_code == 400

    def test_cancel_with_password(self, client, admin_headers, db_session):
        settings_service.put_setting(settings_service.branch_key("china_town"), {"cancel_password": "1234"})
        order_id = _save(client, admin_headers)["order_id"]

        check = client.post("/api/pos/verify-cancel", json={"branch": "china_town", "password": "0000"},
                            headers=admin_headers)
        assert check.json == {"valid": False}

        resp = client.post(f"/api/pos/orders/{order_id}/cancel", json={"password": "0000"}, headers=admin_headers)
        assert resp.status_code == 400
        assert resp.json["error"] == "invalid_cancel_password"

        resp = client.post(f"/api/pos/orders/{order_id}/cancel", json={"password": "1234"}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["status"] == "CANCELLED"

    def test_cancelled_order_cannot_be_issued(self, seed):
        order, _ = order_service.save_draft(DRAFT)
        order_service.cancel_order(order.id)
        with pytest.raises(InvalidStateError):
            order_service.issue_invoice({"order_id": order.id})

    def test_direct_issue_status_rejected(self, seed):
        order, _ = order_service.save_draft(DRAFT)
        with pytest.raises(InvalidStateError):
            order_service.update_order(order.id, {"status": "ISSUED"})

    def test_unknown_status_filter_rejected(self, seed):
        with pytest.raises(ValidationError):
            order_service.parse_statuses("DRAFT,closed")
