# Overview: Flask API routes for sales and supplier invoices.

from flask import Blueprint, request

from ..decorators import require_auth, require_permission
from ..services import invoice_service
from ..services.report_service import parse_range

invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")


@invoices_bp.get("")
@require_auth
@require_permission("sales", "view")
def list_invoices_route():
    date_from, date_to = parse_range(request.args.get("from"), request.args.get("to"))
    invoices = invoice_service.list_invoices(
        type=request.args.get("type"),
        status=request.args.get("status"),
        branch=request.args.get("branch"),
        partner_id=request.args.get("partner_id", type=int),
        date_from=date_from,
        date_to=date_to,
    )
    return {"items": [i.to_dict() for i in invoices]}


@invoices_bp.get("/next-number")
@require_auth
@require_permission("sales", "view")
def next_number_route():
    return {"next": invoice_service.next_number()}


@invoices_bp.post("")
@require_auth
@require_permission("sales", "create")
def create_invoice_route():
    data = request.get_json(silent=True) or {}
    return invoice_service.create_invoice(data).to_dict(), 201


@invoices_bp.get("/<int:invoice_id>")
@require_auth
@require_permission("sales", "view")
def get_invoice_route(invoice_id: int):
    return invoice_service.get_invoice(invoice_id).to_dict()


@invoices_bp.put("/<int:invoice_id>")
@require_auth
@require_permission("sales", "edit")
def update_invoice_route(invoice_id: int):
    data = request.get_json(silent=True) or {}
    return invoice_service.update_invoice(invoice_id, data).to_dict()


@invoices_bp.post("/<int:invoice_id>/post")
@require_auth
@require_permission("sales", "post")
def post_invoice_route(invoice_id: int):
    return invoice_service.post_invoice(invoice_id).to_dict()


@invoices_bp.delete("/<int:invoice_id>")
@require_auth
@require_permission("sales", "delete")
def delete_invoice_route(invoice_id: int):
    invoice_service.delete_invoice(invoice_id)
    return {"ok": True}
