# Overview: Flask API routes for the inventory movement ledger (read-only).

"""
Time semantics:
- API accepts ISO-8601 datetimes with Z/offsets; backend normalizes to UTC-naive internally.
- date_from/date_to filtering is inclusive.
"""

from flask import Blueprint, request, jsonify

from ..errors import PosError
from ..services import inventory_service
from ..validation import query_datetime, query_int
from ..decorators import require_auth


movements_bp = Blueprint("movements", __name__, url_prefix="/api/movements")


@movements_bp.get("")
@require_auth
def list_movements_route():
    try:
        limit = max(1, min(query_int(request.args, "limit") or 200, 1000))
        movements = inventory_service.list_movements(
            product_id=query_int(request.args, "product_id"),
            warehouse_id=query_int(request.args, "warehouse_id"),
            movement_type=request.args.get("movement_type") or None,
            date_from=query_datetime(request.args, "date_from"),
            date_to=query_datetime(request.args, "date_to", end_of_day=True),
            reference_type=request.args.get("reference_type") or None,
            reference_id=query_int(request.args, "reference_id"),
            limit=limit,
        )
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify({"items": [m.to_dict() for m in movements], "limit": limit}), 200


@movements_bp.get("/<int:movement_id>")
@require_auth
def get_movement_route(movement_id: int):
    try:
        movement = inventory_service.get_movement(movement_id)
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify({"movement": movement.to_dict()}), 200
