# Overview: POS endpoints: draft saving, invoice issue, table state and layout, cancellation.

from flask import Blueprint, current_app, g, request

from ..branches import default_branch, draft_storage_key, normalize_branch
from ..decorators import require_auth, require_permission
from ..errors import ValidationError, parse_id
from ..services import order_service, settings_service

pos_bp = Blueprint("pos", __name__, url_prefix="/api/pos")


def _branch_arg() -> str:
    branch = normalize_branch(request.args.get("branch"))
    if not branch:
        raise ValidationError("branch is required", code="invalid_branch")
    return branch


def _body_order_branch():
    """Branch of the order named in the body; permissions follow the order, not the request."""
    data = request.get_json(silent=True)
    order_id = (data.get("order_id") or data.get("orderId")) if isinstance(data, dict) else None
    if not order_id:
        return None
    return order_service.get_order(parse_id(order_id, "order_id")).branch


@pos_bp.post("/saveDraft")
@require_auth
@require_permission("sales", "create", branch_from=_body_order_branch)
def save_draft_route():
    """
    Body: {branch, table, items: [{id|product_id, qty|quantity, price, discount}],
           order_id?, customer_*, payment_method?, discount_pct?, tax_pct?}
    """
    data = request.get_json(silent=True) or {}
    order, totals = order_service.save_draft(data, g.current_user)
    return {
        "order_id": order.id,
        "order": order.to_dict(),
        "totals": totals.to_dict(),
        "storage_key": draft_storage_key(order.branch, order.table_code),
    }


@pos_bp.post("/issueInvoice")
@require_auth
@require_permission("sales", "create", branch_from=_body_order_branch)
def issue_invoice_route():
    data = request.get_json(silent=True) or {}
    invoice, order, entry = order_service.issue_invoice(data, g.current_user)
    current_app.logger.info("Issued invoice %s for order %s", invoice.number, order.id)
    return {
        "invoice": invoice.to_dict(),
        "order": order.to_dict(),
        "journal_entry_id": entry.id if entry else None,
    }, 201


@pos_bp.get("/table-state")
@require_auth
@require_permission("sales", "view")
def table_state_route():
    branch = _branch_arg()
    return {"branch": branch, "busy": order_service.table_state(branch)}


@pos_bp.get("/tables-layout")
@require_auth
@require_permission("sales", "view")
def get_tables_layout_route():
    branch = _branch_arg()
    return {"branch": branch, "layout": order_service.get_tables_layout(branch)}


@pos_bp.put("/tables-layout")
@require_auth
@require_permission("settings", "edit")
def save_tables_layout_route():
    data = request.get_json(silent=True) or {}
    branch = normalize_branch(data.get("branch")) or normalize_branch(request.args.get("branch")) or default_branch()
    # Either {branch, layout: {...}} or the layout itself with a branch key
    layout = data["layout"] if "layout" in data else {k: v for k, v in data.items() if k != "branch"}
    layout = order_service.save_tables_layout(branch, layout, g.current_user.id)
    return {"branch": branch, "layout": layout}


@pos_bp.post("/verify-cancel")
@require_auth
@require_permission("sales", "view")
def verify_cancel_route():
    data = request.get_json(silent=True) or {}
    branch = normalize_branch(data.get("branch")) or normalize_branch(g.current_user.default_branch) or default_branch()
    return {"valid": settings_service.verify_cancel_password(branch, data.get("password"))}


@pos_bp.post("/orders/<int:order_id>/busy")
@require_auth
@require_permission("sales", "create", branch_from=lambda order_id: order_service.get_order(order_id).branch)
def mark_busy_route(order_id: int):
    return order_service.mark_busy(order_id).to_dict()


@pos_bp.post("/orders/<int:order_id>/cancel")
@require_auth
@require_permission("sales", "delete", branch_from=lambda order_id: order_service.get_order(order_id).branch)
def cancel_order_route(order_id: int):
    data = request.get_json(silent=True) or {}
    return order_service.cancel_order(order_id, data.get("password")).to_dict()
