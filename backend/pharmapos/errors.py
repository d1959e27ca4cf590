# Overview: Error taxonomy shared by services and routes.

"""
Error taxonomy (authoritative)

- Business-rule errors (4xx) carry a precise, actionable message plus a
  `details` dict; they are never retried automatically.
- TransientStoreError (5xx) means the store failed (lock timeout, deadlock,
  lost connection). The whole unit of work was rolled back; callers may
  retry the operation from scratch. Its public message never leaks store
  internals.
"""

from __future__ import annotations


class PosError(Exception):
    """Base for every error the core reports to a caller."""

    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        payload = {"error": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(PosError):
    """400-level input problem."""


class AuthorizationError(PosError):
    """Caller is not authenticated."""

    status_code = 401


class PermissionDenied(PosError):
    status_code = 403


class NotFoundError(PosError):
    status_code = 404


class SaleNotFound(NotFoundError):
    def __init__(self, sale_id: int):
        super().__init__(f"Sale {sale_id} not found", details={"sale_id": sale_id})


class ClientNotFound(NotFoundError):
    def __init__(self, client_id: int):
        super().__init__(f"Client {client_id} not found", details={"client_id": client_id})


class WarehouseNotFound(NotFoundError):
    def __init__(self, warehouse_id: int):
        super().__init__(f"Warehouse {warehouse_id} not found", details={"warehouse_id": warehouse_id})


class InventoryRecordNotFound(NotFoundError):
    """No inventory row exists for a (product, warehouse) pair ("never stocked")."""

    def __init__(self, product_id: int, warehouse_id: int):
        super().__init__(
            f"Product {product_id} has no inventory in warehouse {warehouse_id}",
            details={"product_id": product_id, "warehouse_id": warehouse_id},
        )
        self.product_id = product_id
        self.warehouse_id = warehouse_id


class ProductNotFound(NotFoundError):
    """One or more requested products do not resolve to an active product."""

    def __init__(self, missing_ids: list[int]):
        missing = sorted(set(missing_ids))
        ids = ", ".join(str(pid) for pid in missing)
        super().__init__(f"Products not found: {ids}", details={"missing_ids": missing})
        self.missing_ids = missing


class InsufficientStock(PosError):
    status_code = 409

    def __init__(
        self,
        *,
        product_id: int,
        warehouse_id: int,
        available: int,
        requested: int,
        product_name: str | None = None,
    ):
        label = product_name or f"product {product_id}"
        super().__init__(
            f"Insufficient stock for {label}. Available: {available}, requested: {requested}",
            details={
                "product_id": product_id,
                "warehouse_id": warehouse_id,
                "available": available,
                "requested": requested,
            },
        )
        self.product_id = product_id
        self.warehouse_id = warehouse_id
        self.available = available
        self.requested = requested


class InvalidStateError(PosError):
    status_code = 409


class SaleAlreadyCancelled(InvalidStateError):
    def __init__(self, sale_id: int):
        super().__init__(f"Sale {sale_id} is already cancelled", details={"sale_id": sale_id})


class ConflictError(PosError):
    """409-level business rule conflict (e.g., a second primary warehouse)."""

    status_code = 409


class TransientStoreError(PosError):
    """Retryable store failure; the unit of work was fully rolled back."""

    status_code = 503

    def __init__(self, operation: str, attempts: int):
        super().__init__(
            "The operation could not be completed, please try again",
            details={"operation": operation, "attempts": attempts, "retryable": True},
        )
        self.operation = operation
        self.attempts = attempts
