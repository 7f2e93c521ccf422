# Overview: Flask API routes for login, logout, password change and the current user.

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth
from ..errors import ServiceError
from ..services import auth_service, session_service, user_service
from .responses import failure, request_data, success
from inventory_api.time_utils import to_utc_z


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login():
    """
    Exchange username/password for a bearer token.

    Returns {"token", "expires_at", "user"} inside the data envelope; 401 on
    bad credentials or an inactive account (same message for both).
    """
    data = request_data()
    user = auth_service.authenticate(data.get("username", ""), data.get("password", ""))
    if not user:
        return jsonify({"success": False, "message": "Invalid credentials"}), 401

    session, token = session_service.create_session(user)
    return success(
        {
            "token": token,
            "expires_at": to_utc_z(session.expires_at),
            "user": user.to_dict(),
        },
        message="Login successful",
    )


@auth_bp.post("/logout")
@require_auth
def logout():
    token = request.headers.get("Authorization", "").split(" ", 1)[1]
    session_service.revoke_session(token)
    return success(None, message="Logged out")


@auth_bp.get("/me")
@require_auth
def me():
    return success(g.current_user.to_dict(), message="Current user")


@auth_bp.post("/change-password")
@require_auth
def change_password():
    """
    Change the caller's own password.

    Body: {"current_password", "new_password"}. Other sessions of the user
    are revoked; the token used for this request stays valid.
    """
    data = request_data()
    try:
        user_service.change_own_password(
            g.current_user,
            data.get("current_password"),
            data.get("new_password"),
            keep_session_id=g.session_context.session.id,
        )
    except ServiceError as e:
        return failure(e)
    return success(None, message="Password changed")
