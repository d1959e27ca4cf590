# backend/pharmapos/routes/inventory.py
"""
Inventory routes.

SECURITY: All routes require authentication.
- Reads are available to every authenticated user
- Adjustments, stock level changes and deletions require the admin role
"""
from flask import Blueprint, request, jsonify, g, current_app

from ..errors import PosError
from ..services import inventory_service
from ..validation import (
    parse_adjustment_request,
    parse_stock_level_request,
    query_bool,
    query_int,
)
from ..decorators import require_auth, require_admin


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("")
@require_auth
def list_inventory_route():
    try:
        records = inventory_service.list_inventory(
            warehouse_id=query_int(request.args, "warehouse_id"),
            product_id=query_int(request.args, "product_id"),
            low_stock=query_bool(request.args, "low_stock"),
        )
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify({"items": [record.to_dict() for record in records]}), 200


@inventory_bp.get("/quantity")
@require_auth
def get_quantity_route():
    try:
        product_id = query_int(request.args, "product_id", required=True)
        warehouse_id = query_int(request.args, "warehouse_id", required=True)
        quantity = inventory_service.get_quantity(product_id, warehouse_id)
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify({
        "product_id": product_id,
        "warehouse_id": warehouse_id,
        "quantity": quantity,
    }), 200


@inventory_bp.post("/adjust")
@require_auth
@require_admin
def adjust_inventory_route():
    """
    Receive or correct stock by a signed delta.

    Positive delta -> Entrada, negative -> Salida, unless
    {"movement_type": "Ajuste"} is given.
    """
    try:
        req = parse_adjustment_request(request.get_json(silent=True))
        result = inventory_service.apply_adjustment(
            product_id=req.product_id,
            warehouse_id=req.warehouse_id,
            delta=req.delta,
            actor_user_id=g.current_user.id,
            reason=req.reason,
            movement_type=req.movement_type,
        )
        return jsonify(result.to_dict()), 201

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to adjust inventory")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.put("/levels")
@require_auth
@require_admin
def set_levels_route():
    """Set a pair to an absolute quantity and update its thresholds."""
    try:
        req = parse_stock_level_request(request.get_json(silent=True))
        record = inventory_service.set_stock_levels(
            product_id=req.product_id,
            warehouse_id=req.warehouse_id,
            quantity=req.quantity,
            actor_user_id=g.current_user.id,
            min_stock=req.min_stock,
            max_stock=req.max_stock,
            location_in_warehouse=req.location_in_warehouse,
            reason=req.reason,
        )
        return jsonify({"item": record.to_dict()}), 200

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to set inventory levels")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.delete("")
@require_auth
@require_admin
def delete_record_route():
    try:
        product_id = query_int(request.args, "product_id", required=True)
        warehouse_id = query_int(request.args, "warehouse_id", required=True)
        inventory_service.delete_record(product_id=product_id, warehouse_id=warehouse_id)
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify({"message": "Inventory record deleted"}), 200


@inventory_bp.get("/reconcile")
@require_auth
def reconcile_route():
    """Replay the movement ledger of one pair and compare with stored stock."""
    try:
        product_id = query_int(request.args, "product_id", required=True)
        warehouse_id = query_int(request.args, "warehouse_id", required=True)
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    report = inventory_service.reconcile(product_id, warehouse_id)
    return jsonify(report.to_dict()), 200
