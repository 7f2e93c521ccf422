# Overview: Flask API routes for user administration.

"""
User Routes

SECURITY:
- List, stats and read: admin or manager
- Create, update, deactivate and password reset: admin

DELETE /api/users/<id> deactivates the account; users are never removed
because documents keep pointing at them.
"""

from flask import Blueprint, g, request

from ..decorators import require_auth, require_role
from ..errors import ServiceError
from ..services import user_service
from ..validation import coerce_bool, parse_optional_int
from .responses import failure, query_arg, request_data, success


MANAGER_ROLES = ("admin", "manager")
ADMIN_ROLES = ("admin",)

users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("")
@require_auth
@require_role(*MANAGER_ROLES)
def list_users_route():
    """Query parameters: page, limit, search, role, include_inactive."""
    try:
        result = user_service.list_users(
            page=parse_optional_int(request.args, "page", 1),
            limit=parse_optional_int(request.args, "limit", 10),
            search=query_arg("search"),
            role=query_arg("role"),
            include_inactive=coerce_bool(query_arg("include_inactive", default=False)),
        )
    except ServiceError as e:
        return failure(e)
    return success(
        {"items": [u.to_dict() for u in result["items"]], "pagination": result["pagination"]},
        message="User list retrieved",
    )


@users_bp.get("/stats")
@require_auth
@require_role(*MANAGER_ROLES)
def user_stats_route():
    return success(user_service.user_stats(), message="User statistics retrieved")


@users_bp.get("/<int:user_id>")
@require_auth
@require_role(*MANAGER_ROLES)
def get_user_route(user_id: int):
    try:
        user = user_service.get_user(user_id)
    except ServiceError as e:
        return failure(e)
    return success(user.to_dict(), message="User retrieved")


@users_bp.post("")
@require_auth
@require_role(*ADMIN_ROLES)
def create_user_route():
    try:
        user = user_service.create_user(request_data())
    except ServiceError as e:
        return failure(e)
    return success(user.to_dict(), message="User created successfully", status=201)


@users_bp.put("/<int:user_id>")
@require_auth
@require_role(*ADMIN_ROLES)
def update_user_route(user_id: int):
    try:
        user = user_service.update_user(user_id, request_data(), g.current_user)
    except ServiceError as e:
        return failure(e)
    return success(user.to_dict(), message="User updated successfully")


@users_bp.delete("/<int:user_id>")
@require_auth
@require_role(*ADMIN_ROLES)
def deactivate_user_route(user_id: int):
    try:
        user, revoked = user_service.deactivate_user(user_id, g.current_user)
    except ServiceError as e:
        return failure(e)
    return success(
        {"user": user.to_dict(), "sessions_revoked": revoked},
        message=f"User {user.username} deactivated",
    )


@users_bp.post("/<int:user_id>/reset-password")
@require_auth
@require_role(*ADMIN_ROLES)
def reset_password_route(user_id: int):
    """Body: {"new_password": ...}. All of the user's sessions are revoked."""
    try:
        revoked = user_service.reset_password(user_id, request_data().get("new_password"), g.current_user)
    except ServiceError as e:
        return failure(e)
    return success({"sessions_revoked": revoked}, message="Password reset")
