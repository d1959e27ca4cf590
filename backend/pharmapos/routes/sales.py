# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/pharmapos/routes/sales.py
"""Sales API routes"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import PosError
from ..services import sales_service
from ..decorators import require_auth, require_stock
from ..validation import query_datetime, query_int


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
@require_auth
@require_stock
def create_sale_route():
    """
    Create a sale and take its stock.

    The body has already been validated and stock pre-checked by
    @require_stock (g.sale_request, g.warehouse_id).
    """
    sale_request = g.sale_request
    try:
        sale = sales_service.create_sale(
            actor_user_id=g.current_user.id,
            items=sale_request.items,
            payment_method=sale_request.payment_method,
            client_id=sale_request.client_id,
            notes=sale_request.notes,
            warehouse_id=g.warehouse_id,
        )
        return jsonify({"sale": sale.to_dict()}), 201

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("")
@require_auth
def list_sales_route():
    try:
        sales = sales_service.list_sales(
            start_date=query_datetime(request.args, "start_date"),
            end_date=query_datetime(request.args, "end_date", end_of_day=True),
            status=request.args.get("status") or None,
            client_id=query_int(request.args, "client_id"),
            limit=max(1, min(query_int(request.args, "limit") or 200, 500)),
        )
        return jsonify({"sales": [sale.to_dict() for sale in sales]}), 200

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code


@sales_bp.get("/<int:sale_id>")
@require_auth
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(sale_id)
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify({"sale": sale.to_dict()}), 200


def _cancel(sale_id: int):
    try:
        result = sales_service.cancel_sale(sale_id=sale_id, actor_user_id=g.current_user.id)
        return jsonify(result.to_dict()), 200

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to cancel sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.post("/<int:sale_id>/cancel")
@require_auth
def cancel_sale_route(sale_id: int):
    """Cancel an active sale and return its stock."""
    return _cancel(sale_id)


@sales_bp.delete("/<int:sale_id>")
@require_auth
def delete_sale_route(sale_id: int):
    """Soft delete: same as cancel; sale rows are never removed."""
    return _cancel(sale_id)
