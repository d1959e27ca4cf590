# Overview: Request decorators for API routes (authentication, roles, stock pre-check).

from functools import wraps
from flask import request, jsonify, g, current_app

from .errors import PosError
from .services import session_service, stock_guard
from .services.warehouse_service import resolve_warehouse_id
from .validation import parse_sale_request


def _is_authenticated() -> bool:
    return getattr(g, "current_user", None) is not None


def require_auth(f):
    """
    Require a valid bearer token.

    Sets g.current_user to the authenticated User. Returns 401 if:
    - No Authorization header
    - Invalid, expired or revoked token
    - User account deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authentication required"}), 401

        token = auth_header.split(" ", 1)[1].strip()
        user = session_service.validate_session(token)

        if not user:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = user
        g.auth_token = token
        return f(*args, **kwargs)

    return decorated_function


def require_admin(f):
    """Require the authenticated user to hold the admin role."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not _is_authenticated():
            return jsonify({"error": "Authentication required"}), 401
        if not g.current_user.is_admin:
            return jsonify({"error": "Admin access required"}), 403
        return f(*args, **kwargs)
    return decorated_function


def require_stock(f):
    """
    Stock precondition guard for sale creation.

    Parses the sale body into a SaleRequest (g.sale_request), resolves the
    warehouse (g.warehouse_id) and rejects the request before any
    transaction opens when stock is missing or short. Optimistic only: the
    sale re-checks every quantity under row locks.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        try:
            sale_request = parse_sale_request(request.get_json(silent=True))
            warehouse_id = resolve_warehouse_id(sale_request.warehouse_id)
            stock_guard.require_stock(sale_request.items, warehouse_id)
        except PosError as e:
            return jsonify(e.to_dict()), e.status_code
        except Exception:
            current_app.logger.exception("Stock pre-check failed")
            return jsonify({"error": "Error checking stock"}), 500

        g.sale_request = sale_request
        g.warehouse_id = warehouse_id
        return f(*args, **kwargs)

    return decorated_function
