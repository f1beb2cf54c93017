"""
Journal entry tests.

Verifies:
- Posted entries must balance; drafts may not
- Entry numbers increase with each new entry
- Posted entries are immutable and are corrected by reversal
- Reference lookups
"""

import pytest

from bistro.errors import InvalidStateError, UnbalancedEntryError, ValidationError
from bistro.models import JournalEntry
from bistro.services import journal_service
from bistro.services.journal_service import JournalReference

from conftest import account_id


def _postings(amount=100):
    return [
        {"account_id": account_id("1111"), "debit": amount, "credit": 0},
        {"account_id": account_id("4111"), "debit": 0, "credit": amount},
    ]


class TestBalance:

    def test_posted_entry_must_balance(self, seed):
        with pytest.raises(UnbalancedEntryError) as exc:
            journal_service.create_entry(
                postings=[
                    {"account_id": account_id("1111"), "debit": 100},
                    {"account_id": account_id("4111"), "credit": 90},
                ],
                status="posted",
            )
        assert exc.value.details["difference"] == 10.0
        assert seed.query(JournalEntry).count() == 0

    def test_small_rounding_is_tolerated(self, seed):
        entry = journal_service.create_entry(
            postings=[
                {"account_id": account_id("1111"), "debit": "100.00"},
                {"account_id": account_id("4111"), "credit": "99.995"},
            ],
            status="posted",
        )
        assert entry.status == "posted"

    def test_posting_cannot_carry_debit_and_credit(self, seed):
        with pytest.raises(ValidationError) as exc:
            journal_service.create_entry(postings=[
                {"account_id": account_id("1111"), "debit": 10, "credit": 10},
                {"account_id": account_id("4111"), "credit": 10},
            ])
        assert exc.value.code == "invalid_posting"

    def test_unknown_account_rejected(self, seed):
        with pytest.raises(ValidationError) as exc:
            journal_service.create_entry(postings=[
                {"account_id": 99999, "debit": 10},
                {"account_id": account_id("4111"), "credit": 10},
            ])
        assert exc.value.code == "account_not_found"

    def test_draft_may_be_unbalanced_until_posted(self, seed):
        entry = journal_service.create_entry(postings=[
            {"account_id": account_id("1111"), "debit": 50},
            {"account_id": account_id("4111"), "credit": 40},
        ])
        assert entry.status == "draft"
        with pytest.raises(UnbalancedEntryError):
            journal_service.post_entry(entry.id)


class TestLifecycle:

    def test_entry_numbers_increase(self, seed):
        first = journal_service.create_entry(postings=_postings())
        second = journal_service.create_entry(postings=_postings())
        journal_service.delete_entry(second.id)
        third = journal_service.create_entry(postings=_postings())
        assert first.entry_number < third.entry_number

    def test_period_follows_date(self, seed):
        entry = journal_service.create_entry(postings=_postings(), entry_date="2025-03-14")
        assert entry.period == "2025-03"

    def test_posted_entry_cannot_be_edited_or_deleted(self, seed):
        entry = journal_service.create_entry(postings=_postings(), status="posted")
        with pytest.raises(InvalidStateError):
            journal_service.update_entry(entry.id, {"description": "changed"})
        with pytest.raises(InvalidStateError) as exc:
            journal_service.delete_entry(entry.id)
        assert exc.value.code == "entry_immutable"

    def test_reverse_mirrors_postings(self, seed):
        entry = journal_service.create_entry(postings=_postings(250), status="posted")
        mirror = journal_service.reverse_entry(entry.id)

        assert seed.get(JournalEntry, entry.id).status == "reversed"
        assert mirror.status == "posted"
        assert mirror.reference_type == "reversal"
        assert mirror.reference_id == entry.id
        by_account = {p.account_id: (float(p.debit), float(p.credit)) for p in mirror.postings}
        assert by_account[account_id("1111")] == (0.0, 250.0)
        assert by_account[account_id("4111")] == (250.0, 0.0)

    def test_reversed_entry_cannot_be_reversed_again(self, seed):
        entry = journal_service.create_entry(postings=_postings(), status="posted")
        journal_service.reverse_entry(entry.id)
        with pytest.raises(InvalidStateError):
            journal_service.reverse_entry(entry.id)

    def test_manual_entry_returns_to_draft(self, seed):
        entry = journal_service.create_entry(postings=_postings(), status="posted")
        entry = journal_service.return_to_draft(entry.id)
        assert entry.status == "draft"
        assert entry.posted_at is None

    def test_generated_entry_cannot_return_to_draft(self, seed):
        entry = journal_service.create_entry(
            postings=_postings(), status="posted", reference=JournalReference.expense(1)
        )
        with pytest.raises(InvalidStateError):
            journal_service.return_to_draft(entry.id)

    def test_find_by_reference(self, seed):
        entry = journal_service.create_entry(
            postings=_postings(), status="posted", reference=JournalReference.invoice(7)
        )
        found = journal_service.find_by_reference(JournalReference.invoice(7))
        assert [e.id for e in found] == [entry.id]

    def test_unknown_reference_kind_rejected(self):
        with pytest.raises(ValidationError):
            JournalReference("coupon", 1)


class TestJournalApi:

    def test_create_post_and_reverse(self, client, admin_headers):
        resp = client.post("/api/journal", json={
            "description": "Opening float",
            "date": "2025-01-02",
            "postings": [
                {"account_code": "1111", "debit": 500},
                {"account_code": "3100", "credit": 500},
            ],
        }, headers=admin_headers)
        assert resp.status_code == 201
        entry = resp.json
        assert entry["status"] == "draft"
        assert entry["total_debit"] == entry["total_credit"] == 500.0

        resp = client.post(f"/api/journal/{entry['id']}/post", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["status"] == "posted"

        resp = client.post(f"/api/journal/{entry['id']}/reverse", headers=admin_headers)
        assert resp.status_code == 201
        assert resp.json["original_id"] == entry["id"]

        resp = client.get("/api/journal?status=reversed", headers=admin_headers)
        assert [e["id"] for e in resp.json["items"]] == [entry["id"]]

    def test_unbalanced_post_returns_error_body(self, client, admin_headers):
        resp = client.post("/api/journal", json={
            "status": "posted",
            "postings": [
                {"account_code": "1111", "debit": 10},
                {"account_code": "3100", "credit": 5},
            ],
        }, headers=admin_headers)
        assert resp.status_code == 400
        assert resp.json["error"] == "unbalanced_entry"
        assert resp.json["details"]["difference"] == 5.0

    def test_delete_posted_is_rejected(self, client, admin_headers):
        resp = client.post("/api/journal", json={
            "status": "posted",
            "postings": [
                {"account_code": "1111", "debit": 10},
                {"account_code": "3100", "credit": 10},
            ],
        }, headers=admin_headers)
        resp = client.delete(f"/api/journal/{resp.json['id']}", headers=admin_headers)
        assert resp.status_code == 400
        assert resp.json["error"] == "entry_immutable"

    def test_detail_reports_source(self, client, admin_headers):
        from bistro.services import expense_service
        expense = expense_service.create_expense({"account_code": "5120", "total": 15})
        resp = client.get(f"/api/journal/{expense.journal_entry_id}", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["reference_type"] == "expense"
        assert resp.json["source_exists"] is True

    def test_by_related_requires_type_and_id(self, client, admin_headers):
        resp = client.get("/api/journal/by-related/search", headers=admin_headers)
        assert resp.status_code == 400
        assert resp.json["error"] == "invalid_reference"
