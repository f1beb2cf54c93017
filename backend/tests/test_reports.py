"""
Report tests: trial balance windows, daily sales against expenses and
per-branch totals.
"""

import pytest

from bistro.errors import ValidationError
from bistro.services import expense_service, invoice_service, journal_service, report_service

from conftest import account_id


def _sale_entry(amount, entry_date, branch="china_town"):
    return journal_service.create_entry(
        postings=[
            {"account_id": account_id("1111"), "debit": amount},
            {"account_id": account_id("4111"), "credit": amount},
        ],
        entry_date=entry_date,
        status="posted",
        branch=branch,
    )


class TestTrialBalance:

    def test_window_with_beginning_balances(self, seed):
        _sale_entry(100, "2025-01-10")
        _sale_entry(50, "2025-02-10")

        report = report_service.trial_balance("2025-02-01", "2025-02-28")
        rows = {r["account_code"]: r for r in report["items"]}
        assert rows["1111"]["beginning"] == 100.0
        assert rows["1111"]["debit"] == 50.0
        assert rows["1111"]["ending"] == 150.0
        assert rows["4111"]["ending"] == -150.0
        assert report["totals"] == {"debit": 50.0, "credit": 50.0}
        assert report["balanced"] is True

    def test_drafts_are_ignored(self, seed):
        journal_service.create_entry(postings=[
            {"account_id": account_id("1111"), "debit": 10},
            {"account_id": account_id("4111"), "credit": 10},
        ])
        assert report_service.trial_balance()["items"] == []

    def test_reversal_nets_to_zero(self, seed):
        entry = _sale_entry(80, "2025-03-01")
        journal_service.reverse_entry(entry.id)
        rows = {r["account_code"]: r for r in report_service.trial_balance()["items"]}
        assert rows["1111"]["ending"] == 0.0
        assert rows["1111"]["debit"] == rows["1111"]["credit"] == 80.0

    def test_branch_filter(self, seed):
        _sale_entry(100, "2025-01-10")
        _sale_entry(40, "2025-01-11", branch="place_india")
        report = report_service.trial_balance(branch="palce_india")
        assert report["branch"] == "place_india"
        assert report["totals"]["debit"] == 40.0

    @pytest.mark.parametrize("start,end", [("2025-13-01", None), ("2025-02-01", "2025-01-01")])
    def test_invalid_dates(self, seed, start, end):
        with pytest.raises(ValidationError) as exc:
            report_service.trial_balance(start, end)
        assert exc.value.code == "invalid_date"


class TestSalesReports:

    def test_sales_vs_expenses_by_day(self, seed):
        invoice_service.create_invoice({
            "status": "posted", "date": "2025-03-01", "branch": "china_town",
            "lines": [{"name": "Platter", "qty": 1, "price": 200}],
        })
        expense_service.create_expense({"account_code": "5120", "total": 50, "date": "2025-03-01"})
        expense_service.create_expense({"account_code": "5120", "total": 20, "date": "2025-03-02"})

        report = report_service.sales_vs_expenses("2025-03-01", "2025-03-31")
        assert report["items"] == [
            {"date": "2025-03-01", "sales": 230.0, "expenses": 50.0, "net": 180.0},
            {"date": "2025-03-02", "sales": 0.0, "expenses": 20.0, "net": -20.0},
        ]
        assert report["totals"] == {"sales": 230.0, "expenses": 70.0, "net": 160.0}

    def test_by_branch(self, seed):
        for branch in ("china_town", "china_town", "place_india"):
            invoice_service.create_invoice({
                "status": "posted", "date": "2025-03-01", "branch": branch, "tax_pct": 0,
                "lines": [{"name": "Set menu", "qty": 1, "price": 100}],
            })
        invoice_service.create_invoice({"date": "2025-03-01", "lines": [{"name": "Draft", "qty": 1, "price": 1}]})

        report = report_service.sales_by_branch("2025-03-01", "2025-03-01")
        assert report["items"] == [
            {"branch": "china_town", "count": 2, "total": 200.0},
            {"branch": "place_india", "count": 1, "total": 100.0},
        ]

    def test_expenses_by_branch_endpoint(self, client, admin_headers):
        expense_service.create_expense({"account_code": "5120", "total": 12, "branch": "place_india"})
        resp = client.get("/api/reports/expenses-by-branch", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["items"] == [{"branch": "place_india", "count": 1, "total": 12.0}]

    def test_endpoint_rejects_bad_date(self, client, admin_headers):
        resp = client.get("/api/reports/sales-vs-expenses?from=yesterday", headers=admin_headers)
        assert resp.status_code == 400
        assert resp.json["error"] == "invalid_date"
