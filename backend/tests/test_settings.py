"""
Settings store and product catalogue tests.
"""

import pytest

from bistro.errors import ValidationError
from bistro.services import product_service, settings_service


class TestSettings:

    def test_company_round_trip(self, client, admin_headers):
        company = {"name": "Bistro Co", "vat_number": "300000000000003"}
        resp = client.put("/api/settings/company", json=company, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["key"] == "settings_company"
        assert resp.json["updated_by_user_id"] is not None

        resp = client.get("/api/settings/company", headers=admin_headers)
        assert resp.json["value"] == company

    def test_legacy_company_path(self, client, admin_headers):
        settings_service.put_setting(settings_service.COMPANY_KEY, {"name": "Old"})
        resp = client.get("/api/settings/settings_company", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["value"] == {"name": "Old"}

    def test_value_wrapper_is_unwrapped(self, client, admin_headers):
        client.put("/api/settings/receipt_footer", json={"value": "Thank you"}, headers=admin_headers)
        resp = client.get("/api/settings/receipt_footer", headers=admin_headers)
        assert resp.json == {"key": "receipt_footer", "value": "Thank you"}

    def test_upsert_keeps_one_row(self, seed):
        settings_service.put_setting("k", 1)
        settings_service.put_setting("k", 2)
        assert settings_service.list_settings() == {"k": 2}

    def test_key_length_checked(self, seed):
        with pytest.raises(ValidationError) as exc:
            settings_service.put_setting("x" * 129, 1)
        assert exc.value.code == "invalid_key"

    def test_branch_settings_use_normalized_key(self, seed):
        settings_service.put_setting(settings_service.branch_key("Palace India"), {"cancel_password": "9"})
        assert settings_service.get_branch_settings("place_india") == {"cancel_password": "9"}
        assert not settings_service.verify_cancel_password("place_india", "1")
        assert settings_service.verify_cancel_password("china_town", None)

    def test_cashier_cannot_edit(self, client, cashier_headers):
        resp = client.put("/api/settings/company", json={"name": "Mine"}, headers=cashier_headers)
        assert resp.status_code == 403


class TestProducts:

    def test_branch_listing_includes_shared_products(self, seed):
        product_service.create_product({"name": "Tea", "price": 3, "category": "drinks"})
        product_service.create_product({"name": "Dim Sum", "price": 12, "branch": "china_town"})
        product_service.create_product({"name": "Naan", "price": 2, "branch": "place_india"})
        names = [p.name for p in product_service.list_products(branch="china_town")]
        assert sorted(names) == ["Dim Sum", "Tea"]

    def test_inactive_hidden_on_request(self, client, admin_headers):
        tea = product_service.create_product({"name": "Tea", "price": 3})
        product_service.update_product(tea.id, {"is_active": False})
        assert client.get("/api/products", headers=admin_headers).json["items"][0]["name"] == "Tea"
        assert client.get("/api/products?active=1", headers=admin_headers).json["items"] == []

    def test_negative_price_rejected(self, seed):
        with pytest.raises(ValidationError) as exc:
            product_service.create_product({"name": "Free lunch", "price": -1})
        assert exc.value.code == "invalid_amount"
