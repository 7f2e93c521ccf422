# Overview: Flask API routes for products operations; parses input and returns JSON responses.

"""
Product routes.

SECURITY: All routes require authentication.
- Read operations: any authenticated user
- Create, update, deactivate and stock adjustment: admin or manager
"""
from flask import Blueprint, g, request

from ..decorators import require_auth, require_role
from ..errors import ServiceError, ValidationFailed
from ..services import product_service
from ..validation import coerce_bool, parse_optional_int
from .responses import failure, query_arg, request_data, success


products_bp = Blueprint("products", __name__, url_prefix="/api/products")

MANAGER_ROLES = ("admin", "manager")


@products_bp.get("")
@require_auth
def list_products():
    """
    List products.

    Query params: page, limit, search (name or SKU), category_id, vendor_id,
    low_stock=true, include_inactive=true.
    """
    try:
        result = product_service.list_products(
            page=parse_optional_int(request.args, "page", 1),
            limit=parse_optional_int(request.args, "limit", 20),
            search=query_arg("search"),
            category_id=parse_optional_int(request.args, "category_id"),
            vendor_id=parse_optional_int(request.args, "vendor_id"),
            low_stock=coerce_bool(query_arg("low_stock", default=False)),
            include_inactive=coerce_bool(query_arg("include_inactive", default=False)),
        )
    except ServiceError as e:
        return failure(e)
    return success(
        {"items": [p.to_dict() for p in result["items"]], "pagination": result["pagination"]},
        message="Products retrieved",
    )


@products_bp.get("/search")
@require_auth
def search_products():
    try:
        products = product_service.search_products(
            query_arg("q", "search", default=""),
            limit=parse_optional_int(request.args, "limit", 20),
        )
    except ServiceError as e:
        return failure(e)
    return success([p.to_dict() for p in products], message="Search results")


@products_bp.get("/low-stock")
@require_auth
def low_stock():
    return success([p.to_dict() for p in product_service.low_stock_products()], message="Low stock products")


@products_bp.get("/<int:product_id>")
@require_auth
def get_product(product_id: int):
    try:
        product = product_service.get_product(product_id)
    except ServiceError as e:
        return failure(e)
    return success(product.to_dict(), message="Product retrieved")


@products_bp.get("/<int:product_id>/movements")
@require_auth
def product_movements(product_id: int):
    try:
        movements = product_service.list_movements(
            product_id, limit=parse_optional_int(request.args, "limit", 100)
        )
    except ServiceError as e:
        return failure(e)
    return success([m.to_dict() for m in movements], message="Stock movements retrieved")


@products_bp.post("")
@require_auth
@require_role(*MANAGER_ROLES)
def create_product():
    """Create a product. Duplicate SKU -> 409."""
    try:
        product = product_service.create_product(request_data(), g.current_user)
    except ServiceError as e:
        return failure(e)
    return success(product.to_dict(), message="Product created successfully", status=201)


@products_bp.put("/<int:product_id>")
@require_auth
@require_role(*MANAGER_ROLES)
def update_product(product_id: int):
    try:
        product = product_service.update_product(product_id, request_data())
    except ServiceError as e:
        return failure(e)
    return success(product.to_dict(), message="Product updated successfully")


@products_bp.delete("/<int:product_id>")
@require_auth
@require_role(*MANAGER_ROLES)
def deactivate_product(product_id: int):
    try:
        product = product_service.deactivate_product(product_id)
    except ServiceError as e:
        return failure(e)
    return success(product.to_dict(), message="Product deactivated")


@products_bp.put("/<int:product_id>/stock")
@require_auth
@require_role(*MANAGER_ROLES)
def adjust_stock(product_id: int):
    """
    Administrative stock adjustment.

    Body: {"quantity": int, "operation": "add" | "subtract" | "set", "note"?: str}
    subtract never fails; it stops at zero.
    """
    data = request_data()
    try:
        quantity = parse_optional_int(data, "quantity")
        if quantity is None:
            raise ValidationFailed([{"field": "quantity", "message": "quantity is required"}])
        product = product_service.adjust_product_stock(
            product_id,
            quantity,
            (data.get("operation") or data.get("mode") or "add").strip(),
            actor=g.current_user,
            note=data.get("note"),
        )
    except ServiceError as e:
        return failure(e)
    return success(product.to_dict(), message="Stock updated successfully")
