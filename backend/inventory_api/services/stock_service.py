# Overview: Service-layer stock level changes; every change is one atomic UPDATE.

"""
Stock Ledger

Two policies live here and must not be confused:

apply_delta(product_id, quantity, direction)
    Used by transactional documents. INCREASE always succeeds. DECREASE is a
    guarded update, `... SET current_stock = current_stock - :q WHERE
    current_stock >= :q`; when no row matches, the product is left untouched
    and InsufficientStock is raised. Stock never goes negative.

adjust_stock(product_id, quantity, mode)
    Administrative corrections from the products screen: add, subtract
    (clamped at zero, never an error) and set.

Neither function commits. They run inside the caller's transaction so that a
document and its stock effects are saved (or rolled back) together. Neither
writes StockMovement rows; the caller records the movement it knows the
reason for.

Nothing here reads a value, computes in Python and writes it back.
"""

from __future__ import annotations

from sqlalchemy import case, select, update

from ..errors import InsufficientStock, ProductNotFound, ValidationFailed
from ..extensions import db
from ..models import Product


INCREASE = "increase"
DECREASE = "decrease"

ADJUST_MODES = ("add", "subtract", "set")


def _current_level(product_id: int):
    return db.session.execute(
        select(Product.name, Product.current_stock).where(Product.id == product_id)
    ).first()


def apply_delta(product_id: int, quantity: int, direction: str) -> int:
    """
    Apply one signed stock change and return the new level.

    Raises:
        ValidationFailed: quantity is not a positive integer / unknown direction
        ProductNotFound: no such product
        InsufficientStock: DECREASE larger than the current level
    """
    if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
        raise ValidationFailed([{"field": "quantity", "message": "quantity must be a positive integer"}])

    if direction == INCREASE:
        stmt = (
            update(Product)
            .where(Product.id == product_id)
            .values(current_stock=Product.current_stock + quantity)
        )
    elif direction == DECREASE:
        stmt = (
            update(Product)
            .where(Product.id == product_id, Product.current_stock >= quantity)
            .values(current_stock=Product.current_stock - quantity)
        )
    else:
        raise ValidationFailed([{"field": "direction", "message": f"Unknown direction: {direction}"}])

    result = db.session.execute(stmt.execution_options(synchronize_session=False))
    if not result.rowcount:
        row = _current_level(product_id)
        if row is None:
            raise ProductNotFound(product_id)
        raise InsufficientStock(row.name, row.current_stock, quantity, product_id=product_id)

    return _current_level(product_id).current_stock


def adjust_stock(product_id: int, quantity: int, mode: str) -> int:
    """
    Administrative adjustment; returns the new level.

    subtract clamps at 0 instead of failing, which is the behavior the
    products screen expects when writing off damaged goods.
    """
    if mode not in ADJUST_MODES:
        raise ValidationFailed([{"field": "mode", "message": f"mode must be one of {', '.join(ADJUST_MODES)}"}])
    if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity < 0:
        raise ValidationFailed([{"field": "quantity", "message": "quantity must be a non-negative integer"}])

    if mode == "add":
        new_value = Product.current_stock + quantity
    elif mode == "subtract":
        new_value = case(
            (Product.current_stock >= quantity, Product.current_stock - quantity),
            else_=0,
        )
    else:
        new_value = quantity

    result = db.session.execute(
        update(Product)
        .where(Product.id == product_id)
        .values(current_stock=new_value)
        .execution_options(synchronize_session=False)
    )
    if not result.rowcount:
        raise ProductNotFound(product_id)

    return _current_level(product_id).current_stock


def check_availability(requirements: dict[int, int]) -> None:
    """
    Verify every product can cover the decrease it is about to receive.

    `requirements` maps product_id -> units that must be on hand. Checks run
    before any change is applied so a multi-line document fails as a whole.
    The guarded decrement in apply_delta still has the final say under
    concurrency.
    """
    for product_id, required in requirements.items():
        if required <= 0:
            continue
        row = _current_level(product_id)
        if row is None:
            raise ProductNotFound(product_id)
        if row.current_stock < required:
            raise InsufficientStock(row.name, row.current_stock, required, product_id=product_id)
