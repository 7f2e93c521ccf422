# Overview: Service-layer operations for products; encapsulates business logic and database work.

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..errors import DuplicateKey, NotFound, ServiceError, ValidationFailed, translate_integrity_error
from ..extensions import db
from ..models import Category, Product, StockMovement, Vendor
from ..validation import ModelValidationPolicy, validate_payload
from . import stock_service
from .document_service import paginate


PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "sku", "name", "description", "unit_type",
        "current_stock", "min_stock_level",
        "purchase_rate_cents", "sales_rate_cents",
        "category_id", "vendor_id", "is_active",
    },
    required_on_create={"sku", "name"},
    money_fields={"purchase_rate_cents", "sales_rate_cents"},
)

# Stock only moves through documents and adjust_product_stock()
PRODUCT_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields=PRODUCT_POLICY.writable_fields - {"current_stock"},
    money_fields=PRODUCT_POLICY.money_fields,
)


def _check_references(patch: dict) -> None:
    if patch.get("category_id") is not None and db.session.get(Category, patch["category_id"]) is None:
        raise NotFound(f"Category not found: {patch['category_id']}")
    if patch.get("vendor_id") is not None and db.session.get(Vendor, patch["vendor_id"]) is None:
        raise NotFound(f"Vendor not found: {patch['vendor_id']}")


def _check_levels(patch: dict) -> None:
    errors = [
        {"field": field, "message": f"{field} must be >= 0"}
        for field in ("current_stock", "min_stock_level")
        if patch.get(field) is not None and patch[field] < 0
    ]
    if errors:
        raise ValidationFailed(errors)


def create_product(payload: dict, actor=None) -> Product:
    """
    Create a product.

    SKUs are unique; a duplicate raises DuplicateKey naming "sku". The
    existence check is a courtesy for a clean message, the unique index is
    what actually enforces it under concurrency.
    """
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
    _check_levels(patch)
    _check_references(patch)

    if db.session.query(Product.id).filter(Product.sku == patch["sku"]).first():
        raise DuplicateKey("sku", f"Product with SKU {patch['sku']} already exists")

    product = Product(**patch)
    product.created_by_user_id = actor.id if actor is not None else None
    db.session.add(product)
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise translate_integrity_error(exc)

    current_app.logger.info("Product created: %s (%s)", product.sku, product.name)
    return product


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFound(f"Product not found: {product_id}")
    return product


def list_products(
    *,
    page: int = 1,
    limit: int = 20,
    search: str | None = None,
    category_id: int | None = None,
    vendor_id: int | None = None,
    low_stock: bool = False,
    include_inactive: bool = False,
) -> dict:
    query = db.session.query(Product)
    if not include_inactive:
        query = query.filter(Product.is_active.is_(True))
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        query = query.filter(db.or_(Product.name.ilike(pattern), Product.sku.ilike(pattern)))
    if category_id:
        query = query.filter(Product.category_id == category_id)
    if vendor_id:
        query = query.filter(Product.vendor_id == vendor_id)
    if low_stock:
        query = query.filter(Product.current_stock <= Product.min_stock_level)
    query = query.order_by(Product.name.asc(), Product.id.asc())
    return paginate(query, page, limit)


def search_products(q: str, limit: int = 20) -> list[Product]:
    pattern = f"%{(q or '').strip()}%"
    return (
        db.session.query(Product)
        .filter(Product.is_active.is_(True))
        .filter(db.or_(Product.name.ilike(pattern), Product.sku.ilike(pattern)))
        .order_by(Product.name.asc())
        .limit(min(max(limit, 1), 100))
        .all()
    )


def low_stock_products() -> list[Product]:
    return (
        db.session.query(Product)
        .filter(Product.is_active.is_(True), Product.current_stock <= Product.min_stock_level)
        .order_by(Product.current_stock.asc(), Product.name.asc())
        .all()
    )


def update_product(product_id: int, payload: dict) -> Product:
    product = get_product(product_id)
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_UPDATE_POLICY, partial=True)
    _check_levels(patch)
    _check_references(patch)

    for key, value in patch.items():
        setattr(product, key, value)
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise translate_integrity_error(exc)
    return product


def deactivate_product(product_id: int) -> Product:
    product = get_product(product_id)
    product.is_active = False
    db.session.commit()
    current_app.logger.info("Product deactivated: %s", product.sku)
    return product


def adjust_product_stock(product_id: int, quantity: int, mode: str, actor=None, note: str | None = None) -> Product:
    """
    Administrative stock correction (add / subtract clamped at 0 / set).

    Records an "adjustment" movement with the change actually applied.
    """
    product = get_product(product_id)
    before = product.current_stock
    try:
        after = stock_service.adjust_stock(product_id, quantity, mode)
        if after != before:
            db.session.add(StockMovement(
                product_id=product_id,
                movement_type="adjustment",
                quantity_delta=after - before,
                stock_after=after,
                document_type="product",
                document_id=product_id,
                note=note or f"manual {mode} {quantity}",
                actor_user_id=actor.id if actor is not None else None,
            ))
        db.session.commit()
    except ServiceError:
        db.session.rollback()
        raise

    db.session.refresh(product)
    current_app.logger.info("Stock adjusted: %s %s -> %s (%s)", product.sku, before, after, mode)
    return product


def list_movements(product_id: int, limit: int = 100) -> list[StockMovement]:
    get_product(product_id)
    return (
        db.session.query(StockMovement)
        .filter(StockMovement.product_id == product_id)
        .order_by(StockMovement.occurred_at.desc(), StockMovement.id.desc())
        .limit(min(max(limit, 1), 500))
        .all()
    )
