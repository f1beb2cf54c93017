# Overview: Flask API routes for partners (customers and suppliers) and the POS customer list.

from flask import Blueprint, request

from ..decorators import require_auth, require_permission
from ..services import partner_service
from ..services.report_service import parse_range

partners_bp = Blueprint("partners", __name__, url_prefix="/api/partners")
customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@partners_bp.get("")
@require_auth
@require_permission("clients", "view")
def list_partners_route():
    partners = partner_service.list_partners(request.args.get("type"), request.args.get("search"))
    return {"items": [p.to_dict() for p in partners]}


@partners_bp.post("")
@require_auth
@require_permission("clients", "create")
def create_partner_route():
    data = request.get_json(silent=True) or {}
    return partner_service.create_partner(data).to_dict(), 201


@partners_bp.get("/<int:partner_id>")
@require_auth
@require_permission("clients", "view")
def get_partner_route(partner_id: int):
    return partner_service.get_partner(partner_id).to_dict()


@partners_bp.put("/<int:partner_id>")
@require_auth
@require_permission("clients", "edit")
def update_partner_route(partner_id: int):
    data = request.get_json(silent=True) or {}
    return partner_service.update_partner(partner_id, data).to_dict()


@partners_bp.delete("/<int:partner_id>")
@require_auth
@require_permission("clients", "delete")
def delete_partner_route(partner_id: int):
    partner_service.delete_partner(partner_id)
    return {"ok": True}


@partners_bp.get("/<int:partner_id>/balance")
@require_auth
@require_permission("clients", "view")
def balance_route(partner_id: int):
    return partner_service.balance(partner_id)


@partners_bp.get("/<int:partner_id>/statement")
@require_auth
@require_permission("clients", "view")
def statement_route(partner_id: int):
    date_from, date_to = parse_range(request.args.get("from"), request.args.get("to"))
    return partner_service.statement(partner_id, date_from, date_to)


@customers_bp.get("")
@require_auth
@require_permission("sales", "view")
def list_customers_route():
    customers = partner_service.list_customers(request.args.get("search"))
    return {"items": [c.to_dict() for c in customers]}
