# Overview: Builds the balanced posting sets generated by invoices, expenses and payroll.

"""
Each rule turns a business document into postings ready for
journal_service.add_entry. Account codes must already exist; a missing code
raises ValidationError(account_not_found) and the caller's unit of work is
rolled back. The only accounts created here are partner sub-accounts, and
those go under control accounts that must exist.
"""

from __future__ import annotations

from decimal import Decimal

from ..errors import ValidationError
from ..models import Expense, Invoice, PayrollRun
from . import account_service
from .chart_of_accounts import (
    ACCRUED_PAYROLL,
    BANK,
    CASH,
    GOSI_PAYABLE,
    PURCHASES,
    RETAINED_EARNINGS,
    SALARIES,
    VAT_INPUT,
    VAT_OUTPUT,
    sales_account_code,
)

CREDIT_METHODS = {"credit", "deferred", "on_account"}


def _d(value) -> Decimal:
    return Decimal(str(value or 0))


def _is_credit(payment_method) -> bool:
    return str(payment_method or "").strip().lower() in CREDIT_METHODS


def settlement_account_code(payment_method) -> str:
    """Cash drawer for cash, bank for anything card or transfer based."""
    method = str(payment_method or "cash").strip().lower()
    if method in ("bank", "card", "transfer", "mada", "visa", "bank_transfer"):
        return BANK
    return CASH


def _line(account_id: int, debit=0, credit=0, description=None) -> dict:
    return {"account_id": account_id, "debit": _d(debit), "credit": _d(credit), "description": description}


def sales_invoice_postings(invoice: Invoice) -> list[dict]:
    """
    Dr cash/bank (or customer sub-account on credit)   total
        Cr sales revenue for the branch                 subtotal - discount
        Cr VAT output 2141                              tax
    """
    subtotal = _d(invoice.subtotal)
    discount = _d(invoice.discount_amount)
    tax = _d(invoice.tax_amount)
    total = _d(invoice.total)
    credit_sale = _is_credit(invoice.payment_method)

    if credit_sale:
        if invoice.partner is None:
            raise ValidationError("Credit sales need a customer", code="customer_required")
        receivable = account_service.get_or_create_partner_account(invoice.partner)
    else:
        receivable = account_service.require_by_code(settlement_account_code(invoice.payment_method))

    revenue = account_service.require_by_code(sales_account_code(invoice.branch, credit=credit_sale))
    memo = f"Invoice {invoice.number}"
    postings = [
        _line(receivable.id, debit=total, description=memo),
        _line(revenue.id, credit=subtotal - discount, description=memo),
    ]
    if tax > 0:
        vat = account_service.require_by_code(VAT_OUTPUT)
        postings.append(_line(vat.id, credit=tax, description=f"VAT {memo}"))
    return postings


def supplier_invoice_postings(invoice: Invoice) -> list[dict]:
    """
    Dr purchases 5201                                   subtotal - discount
    Dr VAT input 1170                                   tax
        Cr cash/bank (or supplier sub-account on credit) total
    """
    subtotal = _d(invoice.subtotal)
    discount = _d(invoice.discount_amount)
    tax = _d(invoice.tax_amount)
    total = _d(invoice.total)

    if _is_credit(invoice.payment_method):
        if invoice.partner is None:
            raise ValidationError("Credit purchases need a supplier", code="supplier_required")
        payable = account_service.get_or_create_partner_account(invoice.partner)
    else:
        payable = account_service.require_by_code(settlement_account_code(invoice.payment_method))

    purchases = account_service.require_by_code(PURCHASES)
    memo = f"Supplier invoice {invoice.number}"
    postings = [_line(purchases.id, debit=subtotal - discount, description=memo)]
    if tax > 0:
        vat = account_service.require_by_code(VAT_INPUT)
        postings.append(_line(vat.id, debit=tax, description=f"VAT {memo}"))
    postings.append(_line(payable.id, credit=total, description=memo))
    return postings


def expense_postings(expense: Expense) -> list[dict]:
    """
    Dr expense account(s)      amount per item (or the whole total)
        Cr cash 1111 / bank 1121  total
    """
    total = _d(expense.total or expense.amount)
    if total <= 0:
        raise ValidationError("Expense total must be positive", code="invalid_amount")

    debits = []
    items = [i for i in (expense.items or []) if _d(i.get("amount")) > 0]
    if items:
        for item in items:
            code = item.get("account_code") or expense.account_code
            if not code:
                raise ValidationError("Expense item needs an account_code", code="invalid_posting")
            account = account_service.require_by_code(code)
            debits.append(_line(account.id, debit=_d(item["amount"]), description=item.get("description")))
    else:
        if not expense.account_code:
            raise ValidationError("account_code is required", code="invalid_posting")
        account = account_service.require_by_code(expense.account_code)
        debits.append(_line(account.id, debit=total, description=expense.description))

    source = account_service.require_by_code(settlement_account_code(expense.payment_method))
    credit_total = sum((l["debit"] for l in debits), Decimal("0"))
    return debits + [_line(source.id, credit=credit_total, description=expense.description)]


def payroll_accrual_postings(run: PayrollRun) -> list[dict]:
    """
    Dr salaries 5210           gross
        Cr accrued payroll 2430   net
        Cr GOSI payable 2431      gosi
        Cr salaries 5210          other deductions (recovered cost)
    """
    gross = _d(run.total_gross)
    net = _d(run.total_net)
    gosi = _d(run.total_gosi)
    other = _d(run.total_deductions)
    memo = f"Payroll {run.period} {run.branch}"

    salaries = account_service.require_by_code(SALARIES)
    postings = [_line(salaries.id, debit=gross, description=memo)]
    if net > 0:
        accrued = account_service.require_by_code(ACCRUED_PAYROLL)
        postings.append(_line(accrued.id, credit=net, description=memo))
    if gosi > 0:
        gosi_acc = account_service.require_by_code(GOSI_PAYABLE)
        postings.append(_line(gosi_acc.id, credit=gosi, description=f"GOSI {memo}"))
    if other > 0:
        postings.append(_line(salaries.id, credit=other, description=f"Deductions {memo}"))
    return postings


def payroll_payment_postings(run: PayrollRun, amount, payment_method) -> list[dict]:
    """
    Dr accrued payroll 2430    amount
        Cr cash/bank              amount
    """
    amount = _d(amount)
    accrued = account_service.require_by_code(ACCRUED_PAYROLL)
    source = account_service.require_by_code(settlement_account_code(payment_method))
    memo = f"Salary payment {run.period} {run.branch}"
    return [
        _line(accrued.id, debit=amount, description=memo),
        _line(source.id, credit=amount, description=memo),
    ]


def year_end_closing_postings(balances: dict[int, Decimal], year: int) -> list[dict]:
    """
    Zero every revenue and expense account into retained earnings 3200.

    `balances` maps account id to its debit-positive balance for the year.
    A debit balance is credited back and a credit balance debited; the
    difference (the year's result) lands on retained earnings.
    """
    memo = f"Year-end closing {year}"
    postings = []
    total_debit = total_credit = Decimal("0")
    for account_id, balance in sorted(balances.items()):
        balance = _d(balance)
        if balance > 0:
            postings.append(_line(account_id, credit=balance, description=memo))
            total_credit += balance
        elif balance < 0:
            postings.append(_line(account_id, debit=-balance, description=memo))
            total_debit += -balance
    if not postings:
        return []

    retained = account_service.require_by_code(RETAINED_EARNINGS)
    result = total_debit - total_credit
    if result > 0:
        postings.append(_line(retained.id, credit=result, description=memo))
    elif result < 0:
        postings.append(_line(retained.id, debit=-result, description=memo))
    return postings
