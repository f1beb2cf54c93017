"""
Customer and supplier tests: CRUD guards, ledger sub-accounts, balances
and statements.
"""

import pytest

from bistro.errors import ConflictError, ValidationError
from bistro.services import order_service, partner_service


def _credit_sale(customer_id):
    order, _ = order_service.save_draft({
        "branch": "china_town",
        "table": "9",
        "customer_id": customer_id,
        "items": [{"id": 212, "name": "Kung Pao Chicken", "qty": 2, "price": 10},
                  {"id": 213, "name": "Fried Rice", "qty": 1, "price": 5.5}],
    })
    invoice, _, _ = order_service.issue_invoice({"order_id": order.id, "payment_method": "credit"})
    return invoice


class TestPartnerCrud:

    def test_name_required(self, seed):
        with pytest.raises(ValidationError) as exc:
            partner_service.create_partner({"name": "  "})
        assert exc.value.code == "missing_name"

    def test_invalid_type(self, seed):
        with pytest.raises(ValidationError) as exc:
            partner_service.create_partner({"name": "X", "type": "investor"})
        assert exc.value.code == "invalid_type"

    def test_search_and_customers(self, seed):
        partner_service.create_partner({"name": "Layla", "phone": "0551234567"})
        partner_service.create_partner({"name": "Grain Co", "type": "supplier"})
        assert [p.name for p in partner_service.list_customers()] == ["Layla"]
        assert [p.name for p in partner_service.list_partners(search="0551")] == ["Layla"]
        assert [p.name for p in partner_service.list_partners("supplier")] == ["Grain Co"]

    def test_unused_partner_deleted(self, seed):
        partner = partner_service.create_partner({"name": "Walk-in"})
        partner_service.delete_partner(partner.id)
        assert partner_service.list_partners() == []


class TestLedger:

    def test_credit_sale_builds_receivable(self, seed):
        customer = partner_service.create_partner({"name": "Layla"})
        _credit_sale(customer.id)

        customer = partner_service.get_partner(customer.id)
        assert customer.account.parent.code == "1141"
        result = partner_service.balance(customer.id)
        assert result["balance"] == 29.33
        assert result["total_debit"] == 29.33

        stmt = partner_service.statement(customer.id)
        assert [m["debit"] for m in stmt["movements"]] == [29.33]
        assert stmt["closing_balance"] == 29.33

    def test_balance_without_activity(self, seed):
        customer = partner_service.create_partner({"name": "Quiet"})
        assert partner_service.balance(customer.id)["balance"] == 0.0
        assert partner_service.statement(customer.id)["movements"] == []

    def test_partner_with_invoices_cannot_be_deleted(self, seed):
        customer = partner_service.create_partner({"name": "Layla"})
        _credit_sale(customer.id)
        with pytest.raises(ConflictError) as exc:
            partner_service.delete_partner(customer.id)
        assert exc.value.code == "partner_in_use"

    def test_type_frozen_once_ledger_exists(self, seed):
        customer = partner_service.create_partner({"name": "Layla"})
        _credit_sale(customer.id)
        with pytest.raises(ConflictError):
            partner_service.update_partner(customer.id, {"type": "supplier"})


class TestPartnersApi:

    def test_crud(self, client, admin_headers):
        resp = client.post("/api/partners", json={"name": "Layla", "type": "customer"}, headers=admin_headers)
        assert resp.status_code == 201
        partner_id = resp.json["id"]

        resp = client.put(f"/api/partners/{partner_id}", json={"phone": "0500000000"}, headers=admin_headers)
        assert resp.json["phone"] == "0500000000"

        resp = client.get(f"/api/partners/{partner_id}/balance", headers=admin_headers)
        assert resp.json["balance"] == 0.0

        assert client.delete(f"/api/partners/{partner_id}", headers=admin_headers).json == {"ok": True}
        assert client.get(f"/api/partners/{partner_id}", headers=admin_headers).status_code == 404

    def test_cashier_lists_customers(self, client, cashier_headers):
        partner_service.create_partner({"name": "Layla"})
        resp = client.get("/api/customers?branch=china_town", headers=cashier_headers)
        assert resp.status_code == 200
        assert [c["name"] for c in resp.json["items"]] == ["Layla"]
