"""
Flask CLI tests, run through the app's click test runner.
"""

from bistro.models import Account, Order, User
from bistro.services import order_service, permission_service

from conftest import PASSWORD


def _invoke(app, *args):
    return app.test_cli_runner().invoke(args=list(args))


class TestSystemCommands:

    def test_init_seeds_and_bootstraps_admin(self, app, db_session):
        app.config["ADMIN_EMAIL"] = "owner@bistro.test"
        app.config["ADMIN_PASSWORD"] = PASSWORD

        result = _invoke(app, "system", "init")
        assert result.exit_code == 0, result.output
        assert "PASS Admin owner@bistro.test created" in result.output
        assert db_session.query(User).filter_by(role="admin").count() == 1

        again = _invoke(app, "system", "init")
        assert again.exit_code == 0
        assert "already present" in again.output
        assert db_session.query(User).count() == 1

    def test_init_without_admin_password_warns(self, app, db_session):
        app.config["ADMIN_PASSWORD"] = None
        result = _invoke(app, "system", "init")
        assert result.exit_code == 0
        assert "WARN ADMIN_PASSWORD not set" in result.output
        assert db_session.query(User).count() == 0

    def test_reset_db_needs_confirmation(self, app, seed):
        result = app.test_cli_runner().invoke(args=["system", "reset-db"], input="n\n")
        assert result.exit_code == 1
        assert seed.query(Account).count() > 0


class TestAccountCommands:

    def test_seed_is_idempotent(self, app, seed):
        result = _invoke(app, "accounts", "seed")
        assert result.exit_code == 0
        assert result.output.strip().startswith("DONE 0 changed")

    def test_vat_without_parent_fails(self, app, db_session):
        result = _invoke(app, "accounts", "ensure-vat")
        assert result.exit_code == 1

    def test_tree_reports_cycle(self, app, seed):
        a = seed.query(Account).filter_by(account_code="1110").one()
        b = seed.query(Account).filter_by(account_code="1111").one()
        a.parent_id = b.id
        seed.commit()
        result = _invoke(app, "accounts", "tree")
        assert result.exit_code == 1


class TestUserCommands:

    def test_create_and_grant(self, app, seed):
        result = _invoke(app, "users", "create", "--email", "Chef@Bistro.test", "--password", PASSWORD,
                         "--role", "cashier", "--branch", "place_india")
        assert result.exit_code == 0, result.output

        result = _invoke(app, "users", "grant", "chef@bistro.test", "sales", "view", "--branch", "place_india")
        assert result.exit_code == 0
        user = seed.query(User).filter_by(email="chef@bistro.test").one()
        assert permission_service.has_permission(user, "sales", "view", "place_india")

    def test_weak_password_fails(self, app, seed):
        result = _invoke(app, "users", "create", "--email", "x@bistro.test", "--password", "short")
        assert result.exit_code == 1
        assert "weak_password" in result.output

    def test_grant_unknown_user(self, app, seed):
        result = _invoke(app, "users", "grant", "ghost@bistro.test", "sales", "view")
        assert result.exit_code == 1


class TestIntegrityCommand:

    def test_clean_ledger_passes(self, app, seed):
        result = _invoke(app, "integrity", "check")
        assert result.exit_code == 0
        assert "PASS" in result.output

    def test_issued_order_without_invoice_fails(self, app, seed):
        order, _ = order_service.save_draft({"branch": "china_town", "table": "1", "items": []})
        seed.get(Order, order.id).status = "ISSUED"
        seed.commit()
        result = _invoke(app, "integrity", "check")
        assert result.exit_code == 1
        assert f"order {order.id} is ISSUED without an invoice" in result.output
