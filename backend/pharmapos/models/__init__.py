from .catalog import Product, Warehouse, Client
from .inventory import InventoryRecord, InventoryMovement
from .sales import Sale, SaleLineItem
from .auth import User, SessionToken

__all__ = [
    'Product', 'Warehouse', 'Client',
    'InventoryRecord', 'InventoryMovement',
    'Sale', 'SaleLineItem',
    'User', 'SessionToken',
]
