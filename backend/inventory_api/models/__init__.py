from __future__ import annotations

# Maximum money amount: 999,999,999 cents
MAX_PRICE_CENTS = 999_999_999


from .auth import User, SessionToken, ROLES
from .catalog import Category, Vendor, Customer, UnitType, Purpose, Product
from .documents import (
    Counter,
    Purchase, PurchaseLine,
    PurchaseOrder, PurchaseOrderLine, PURCHASE_ORDER_STATUSES,
    PurchaseReturn, PurchaseReturnLine,
    Sale, SaleLine, SALE_STATUSES, PAYMENT_METHODS,
)
from .stock import StockMovement, MOVEMENT_TYPES

__all__ = [
    'User', 'SessionToken', 'ROLES',
    'Category', 'Vendor', 'Customer', 'UnitType', 'Purpose', 'Product',
    'Counter',
    'Purchase', 'PurchaseLine',
    'PurchaseOrder', 'PurchaseOrderLine', 'PURCHASE_ORDER_STATUSES',
    'PurchaseReturn', 'PurchaseReturnLine',
    'Sale', 'SaleLine', 'SALE_STATUSES', 'PAYMENT_METHODS',
    'StockMovement', 'MOVEMENT_TYPES',
]
