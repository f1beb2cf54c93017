"""
Expense and back-office invoice tests.

Verifies:
- Auto-posted expenses write one balanced entry against cash or bank
- Item totals must agree with the stated total
- Posted documents are immutable
- Supplier invoices debit purchases and VAT input
"""

from decimal import Decimal

import pytest

from bistro.errors import InvalidStateError, ValidationError
from bistro.models import Expense, JournalEntry
from bistro.services import expense_service, invoice_service, partner_service


def _codes(entry):
    return {p.account.code: (p.debit, p.credit) for p in entry.postings}


# =============================================================================
# EXPENSES
# =============================================================================


class TestExpenses:

    def test_auto_post_writes_cash_entry(self, seed):
        expense = expense_service.create_expense({
            "description": "Electricity March",
            "account_code": "5120",
            "total": 420,
        })
        assert expense.status == "posted"
        entry = seed.get(JournalEntry, expense.journal_entry_id)
        assert entry.reference_type == "expense"
        assert entry.reference_id == expense.id
        assert _codes(entry) == {
            "5120": (Decimal("420.00"), Decimal("0")),
            "1111": (Decimal("0"), Decimal("420.00")),
        }

    def test_card_payment_credits_bank(self, seed):
        expense = expense_service.create_expense({
            "payment_method": "card",
            "items": [
                {"account_code": "5130", "amount": 80, "description": "Water"},
                {"account_code": "5140", "amount": 120, "description": "Internet"},
            ],
        })
        assert float(expense.total) == 200.0
        codes = _codes(seed.get(JournalEntry, expense.journal_entry_id))
        assert codes["1121"] == (Decimal("0"), Decimal("200.00"))
        assert codes["5130"][0] == Decimal("80.00")
        assert codes["5140"][0] == Decimal("120.00")

    def test_non_numeric_partner_rejected(self, seed):
        with pytest.raises(ValidationError) as exc:
            expense_service.create_expense({"account_code": "5120", "total": 10, "partner_id": "supplier-1"})
        assert exc.value.code == "invalid_id"
        assert seed.query(Expense).count() == 0

    def test_items_must_add_up(self, seed):
        with pytest.raises(ValidationError) as exc:
            expense_service.create_expense({
                "total": 150,
                "items": [{"account_code": "5130", "amount": 100}],
            })
        assert exc.value.code == "invalid_amount"
        assert seed.query(Expense).count() == 0

    def test_unknown_payment_method(self, seed):
        with pytest.raises(ValidationError) as exc:
            expense_service.create_expense({"account_code": "5120", "total": 10, "payment_method": "barter"})
        assert exc.value.code == "invalid_payment_method"

    def test_missing_account_rolls_back(self, seed):
        with pytest.raises(ValidationError):
            expense_service.create_expense({"account_code": "9999", "total": 10})
        assert seed.query(Expense).count() == 0
        assert seed.query(JournalEntry).count() == 0

    def test_draft_then_post(self, seed):
        expense = expense_service.create_expense({"account_code": "5260", "total": 35, "auto_post": "false"})
        assert expense.status == "draft"
        assert expense.journal_entry_id is None

        expense = expense_service.update_expense(expense.id, {"total": 40})
        expense = expense_service.post_expense(expense.id)
        assert expense.status == "posted"
        assert seed.get(JournalEntry, expense.journal_entry_id).total_debit == Decimal("40.00")

    def test_posted_expense_is_immutable(self, seed):
        expense = expense_service.create_expense({"account_code": "5260", "total": 35})
        with pytest.raises(InvalidStateError):
            expense_service.update_expense(expense.id, {"total": 1})
        with pytest.raises(InvalidStateError):
            expense_service.delete_expense(expense.id)


class TestExpensesApi:

    def test_create_and_filter(self, client, admin_headers):
        resp = client.post("/api/expenses", json={
            "account_code": "5120", "total": 99, "branch": "place_india", "date": "2025-05-01",
        }, headers=admin_headers)
        assert resp.status_code == 201, resp.json
        assert resp.json["status"] == "posted"

        resp = client.get("/api/expenses?branch=palace_india", headers=admin_headers)
        assert [e["total"] for e in resp.json["items"]] == [99.0]

    def test_bad_date(self, client, admin_headers):
        resp = client.post("/api/expenses", json={"account_code": "5120", "total": 1, "date": "01/05/2025"},
                           headers=admin_headers)
        assert resp.status_code == 400
        assert resp.json["error"] == "invalid_date"


# =============================================================================
# INVOICES
# =============================================================================


FLOUR = [{"name": "Flour", "qty": 10, "price": 20}]


class TestInvoices:

    def test_cash_purchase_postings(self, seed):
        invoice = invoice_service.create_invoice({"type": "purchase", "status": "posted", "lines": FLOUR})
        assert invoice.number.startswith("INV/")
        entry = seed.get(JournalEntry, invoice.journal_entry_id)
        assert entry.reference_type == "supplier_invoice"
        assert _codes(entry) == {
            "5201": (Decimal("200.00"), Decimal("0")),
            "1170": (Decimal("30.00"), Decimal("0")),
            "1111": (Decimal("0"), Decimal("230.00")),
        }

    def test_credit_purchase_opens_supplier_account(self, seed):
        supplier = partner_service.create_partner({"name": "Grain Co", "type": "supplier"})
        invoice = invoice_service.create_invoice({
            "type": "purchase", "status": "posted", "payment_method": "credit",
            "partner_id": supplier.id, "lines": FLOUR,
        })
        supplier = partner_service.get_partner(supplier.id)
        assert supplier.account.parent.code == "2111"
        codes = _codes(seed.get(JournalEntry, invoice.journal_entry_id))
        assert codes[supplier.account.code] == (Decimal("0"), Decimal("230.00"))
        assert partner_service.balance(supplier.id)["balance"] == 230.0

    def test_credit_purchase_needs_supplier(self, seed):
        with pytest.raises(ValidationError) as exc:
            invoice_service.create_invoice({
                "type": "purchase", "status": "posted", "payment_method": "credit", "lines": FLOUR,
            })
        assert exc.value.code == "supplier_required"

    def test_duplicate_explicit_number(self, seed):
        invoice_service.create_invoice({"number": "SUP-1", "lines": FLOUR})
        with pytest.raises(ValidationError) as exc:
            invoice_service.create_invoice({"number": "SUP-1", "lines": FLOUR})
        assert exc.value.code == "duplicate_number"

    def test_invalid_type(self, seed):
        with pytest.raises(ValidationError) as exc:
            invoice_service.create_invoice({"type": "refund"})
        assert exc.value.code == "invalid_type"

    def test_draft_edit_post_then_locked(self, seed):
        invoice = invoice_service.create_invoice({"lines": FLOUR, "branch": "china_town"})
        assert invoice.journal_entry_id is None

        invoice = invoice_service.update_invoice(invoice.id, {"tax_pct": 0})
        assert float(invoice.total) == 200.0
        invoice = invoice_service.post_invoice(invoice.id)
        codes = _codes(seed.get(JournalEntry, invoice.journal_entry_id))
        assert codes["4111"] == (Decimal("0"), Decimal("200.00"))
        assert "2141" not in codes

        with pytest.raises(InvalidStateError):
            invoice_service.update_invoice(invoice.id, {"tax_pct": 15})
        with pytest.raises(InvalidStateError):
            invoice_service.delete_invoice(invoice.id)
