# Overview: Flask API routes for journal entries; parses input and returns JSON responses.

from flask import Blueprint, request

from ..decorators import require_auth, require_permission
from ..errors import ValidationError
from ..services import journal_service
from ..services.journal_service import JournalReference
from ..services.report_service import parse_range

journal_bp = Blueprint("journal", __name__, url_prefix="/api/journal")


def _reference(data: dict) -> JournalReference | None:
    kind = data.get("reference_type")
    if not kind or kind == "manual":
        return None
    try:
        return JournalReference(kind, int(data.get("reference_id")))
    except (TypeError, ValueError):
        raise ValidationError("reference_id must be an integer", code="invalid_reference")


@journal_bp.get("")
@require_auth
@require_permission("journal", "view")
def list_entries_route():
    """
    Query params: status, branch, period, reference_type, reference_id,
    account_id, from, to, page, page_size.
    """
    date_from, date_to = parse_range(request.args.get("from"), request.args.get("to"))
    rows, total = journal_service.list_entries(
        status=request.args.get("status"),
        branch=request.args.get("branch"),
        period=request.args.get("period"),
        reference_type=request.args.get("reference_type"),
        reference_id=request.args.get("reference_id", type=int),
        account_id=request.args.get("account_id", type=int),
        date_from=date_from,
        date_to=date_to,
        page=request.args.get("page", 1, type=int),
        page_size=request.args.get("page_size", 50, type=int),
    )
    return {"items": [e.to_dict() for e in rows], "total": total}


@journal_bp.post("")
@require_auth
@require_permission("journal", "create")
def create_entry_route():
    data = request.get_json(silent=True) or {}
    entry = journal_service.create_entry(
        postings=data.get("postings") or [],
        description=data.get("description"),
        entry_date=data.get("date"),
        reference=_reference(data),
        status=str(data.get("status") or "draft").lower(),
        branch=data.get("branch"),
    )
    return entry.to_dict(), 201


@journal_bp.get("/by-related/search")
@require_auth
@require_permission("journal", "view")
def by_related_route():
    reference = _reference({
        "reference_type": request.args.get("type") or request.args.get("reference_type"),
        "reference_id": request.args.get("id") or request.args.get("reference_id"),
    })
    if reference is None:
        raise ValidationError("type and id are required", code="invalid_reference")
    return {"items": [e.to_dict() for e in journal_service.find_by_reference(reference)]}


@journal_bp.get("/account/<int:account_id>")
@require_auth
@require_permission("journal", "view")
def account_activity_route(account_id: int):
    date_from, date_to = parse_range(request.args.get("from"), request.args.get("to"))
    return journal_service.account_activity(account_id, date_from, date_to)


@journal_bp.get("/<int:entry_id>")
@require_auth
@require_permission("journal", "view")
def get_entry_route(entry_id: int):
    entry = journal_service.get_entry(entry_id)
    data = entry.to_dict()
    reference = JournalReference.from_entry(entry)
    if reference is not None:
        data["source_exists"] = reference.resolve() is not None
    return data


@journal_bp.put("/<int:entry_id>")
@require_auth
@require_permission("journal", "edit")
def update_entry_route(entry_id: int):
    data = request.get_json(silent=True) or {}
    return journal_service.update_entry(entry_id, data).to_dict()


@journal_bp.delete("/<int:entry_id>")
@require_auth
@require_permission("journal", "delete")
def delete_entry_route(entry_id: int):
    journal_service.delete_entry(entry_id)
    return {"ok": True}


@journal_bp.post("/<int:entry_id>/post")
@require_auth
@require_permission("journal", "post")
def post_entry_route(entry_id: int):
    return journal_service.post_entry(entry_id).to_dict()


@journal_bp.post("/<int:entry_id>/return-to-draft")
@require_auth
@require_permission("journal", "edit")
def return_to_draft_route(entry_id: int):
    return journal_service.return_to_draft(entry_id).to_dict()


@journal_bp.post("/<int:entry_id>/reverse")
@require_auth
@require_permission("journal", "post")
def reverse_entry_route(entry_id: int):
    data = request.get_json(silent=True) or {}
    mirror = journal_service.reverse_entry(entry_id, data.get("description"))
    return {"reversal": mirror.to_dict(), "original_id": entry_id}, 201
