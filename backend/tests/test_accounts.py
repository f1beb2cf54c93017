"""
Chart of accounts tests: idempotent provisioning, tree building and
validation, CRUD guards.
"""

import pytest

from bistro.errors import ConflictError, ValidationError
from bistro.models import Account
from bistro.services import account_service, journal_service

from conftest import account_id


class TestProvisioning:

    def test_seed_is_idempotent(self, seed):
        count = seed.query(Account).count()
        results = account_service.seed_chart_of_accounts()
        assert set(results.values()) == {"unchanged"}
        assert seed.query(Account).count() == count

    def test_vat_accounts_live_under_2100(self, seed):
        parent = account_service.require_by_code("2100")
        for code in ("2130", "2140"):
            assert account_service.require_by_code(code).parent_id == parent.id
        assert set(account_service.ensure_vat_accounts().values()) == {"unchanged"}

    def test_vat_accounts_need_parent(self, db_session):
        with pytest.raises(ValidationError) as exc:
            account_service.ensure_vat_accounts()
        assert exc.value.code == "account_not_found"

    def test_payroll_accounts_created_once(self, seed):
        payable = account_service.require_by_code("2400")
        assert account_service.require_by_code("2430").parent_id == payable.id
        assert account_service.require_by_code("2431").parent_id == payable.id
        assert payable.parent_id == account_service.require_by_code("0002").id
        assert set(account_service.ensure_payroll_accounts().values()) == {"unchanged"}

    def test_misplaced_account_is_reparented_not_duplicated(self, seed):
        gosi = account_service.require_by_code("2431")
        gosi.parent_id = account_service.require_by_code("0002").id
        seed.commit()

        results = account_service.ensure_payroll_accounts()

        assert results["2431"] == "reparented"
        assert account_service.require_by_code("2431").id == gosi.id
        assert seed.query(Account).filter_by(account_code="2431").count() == 1

    def test_fix_codes_backfills_missing_code(self, seed):
        account = Account(account_number="7777", name="Legacy", type="asset", nature="debit")
        seed.add(account)
        seed.commit()
        assert account_service.fix_account_codes() == 1
        assert seed.get(Account, account.id).account_code == "7777"


class TestTree:

    def test_tree_nests_children(self, seed):
        roots = {node["account_code"]: node for node in account_service.get_tree()}
        assert {"0001", "0002", "0003", "0004", "0005", "0006"} <= set(roots)
        current_assets = next(c for c in roots["0001"]["children"] if c["account_code"] == "1100")
        assert any(c["account_code"] == "1110" for c in current_assets["children"])

    def test_seeded_tree_is_valid(self, seed):
        assert account_service.validate_tree().ok

    def test_cycle_is_reported(self, seed):
        a = account_service.require_by_code("1110")
        b = account_service.require_by_code("1111")
        a.parent_id = b.id
        seed.commit()
        report = account_service.validate_tree()
        assert not report.ok
        assert sorted([a.id, b.id]) in report.cycles

    def test_reparent_into_own_subtree_rejected(self, seed):
        with pytest.raises(ValidationError) as exc:
            account_service.update_account(account_id("1100"), {"parent_id": account_id("1111")})
        assert exc.value.code == "account_cycle"


class TestCrud:

    def test_create_child_gets_next_number(self, seed):
        account = account_service.create_account({"name": "Petty Cash", "parent_id": account_id("1110")})
        assert account.account_code == "1113"
        assert account.type == "cash"

    def test_duplicate_code_rejected(self, seed):
        with pytest.raises(ConflictError):
            account_service.create_account({"name": "Dup", "account_code": "1111"})

    def test_delete_in_use_account_rejected(self, seed):
        journal_service.create_entry(postings=[
            {"account_id": account_id("1112"), "debit": 5},
            {"account_id": account_id("1111"), "credit": 5},
        ], status="posted")
        with pytest.raises(ConflictError) as exc:
            account_service.delete_account(account_id("1112"))
        assert exc.value.code == "account_in_use"

    def test_delete_parent_rejected(self, seed):
        with pytest.raises(ConflictError) as exc:
            account_service.delete_account(account_id("1110"))
        assert exc.value.code == "account_has_children"


class TestAccountsApi:

    def test_tree_and_flat(self, client, admin_headers):
        tree = client.get("/api/accounts", headers=admin_headers)
        flat = client.get("/api/accounts?flat=1", headers=admin_headers)
        assert tree.status_code == flat.status_code == 200
        assert len(flat.json["items"]) > len(tree.json["items"])
        assert all("children" in node for node in tree.json["items"])

    def test_seed_default_requires_admin(self, client, cashier_headers):
        resp = client.post("/api/accounts/seed-default", headers=cashier_headers)
        assert resp.status_code == 403

    def test_validate_endpoint(self, client, admin_headers):
        resp = client.get("/api/accounts/validate", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["ok"] is True
