# Overview: Flask API routes for categories, vendors, customers, unit types and purposes.

from flask import Blueprint, request

from ..decorators import require_auth, require_role
from ..errors import ServiceError
from ..services import catalog_service
from ..validation import coerce_bool, parse_optional_int
from .responses import failure, query_arg, request_data, success


MANAGER_ROLES = ("admin", "manager")

CATALOG_ROUTES = (
    ("category", "categories"),
    ("vendor", "vendors"),
    ("customer", "customers"),
    ("unit_type", "unit-types"),
    ("purpose", "purposes"),
)


def create_catalog_blueprint(entity_name: str, slug: str) -> Blueprint:
    label = catalog_service.ENTITIES[entity_name].label
    bp = Blueprint(slug, __name__, url_prefix=f"/api/{slug}")

    @bp.get("")
    @require_auth
    def list_route():
        try:
            result = catalog_service.list_entities(
                entity_name,
                page=parse_optional_int(request.args, "page", 1),
                limit=parse_optional_int(request.args, "limit", 50),
                search=query_arg("search"),
                include_inactive=coerce_bool(query_arg("include_inactive", default=False)),
            )
        except ServiceError as e:
            return failure(e)
        return success(
            {"items": [r.to_dict() for r in result["items"]], "pagination": result["pagination"]},
            message=f"{label} list retrieved",
        )

    @bp.get("/<int:record_id>")
    @require_auth
    def get_route(record_id: int):
        try:
            record = catalog_service.get_entity(entity_name, record_id)
        except ServiceError as e:
            return failure(e)
        return success(record.to_dict(), message=f"{label} retrieved")

    @bp.post("")
    @require_auth
    @require_role(*MANAGER_ROLES)
    def create_route():
        try:
            record = catalog_service.create_entity(entity_name, request_data())
        except ServiceError as e:
            return failure(e)
        return success(record.to_dict(), message=f"{label} created successfully", status=201)

    @bp.put("/<int:record_id>")
    @require_auth
    @require_role(*MANAGER_ROLES)
    def update_route(record_id: int):
        try:
            record = catalog_service.update_entity(entity_name, record_id, request_data())
        except ServiceError as e:
            return failure(e)
        return success(record.to_dict(), message=f"{label} updated successfully")

    @bp.delete("/<int:record_id>")
    @require_auth
    @require_role(*MANAGER_ROLES)
    def deactivate_route(record_id: int):
        try:
            record = catalog_service.deactivate_entity(entity_name, record_id)
        except ServiceError as e:
            return failure(e)
        return success(record.to_dict(), message=f"{label} deactivated")

    return bp


catalog_blueprints = [create_catalog_blueprint(name, slug) for name, slug in CATALOG_ROUTES]
