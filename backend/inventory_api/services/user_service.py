# Overview: Service-layer user administration: listing, stats, updates, deactivation and passwords.

"""
User Administration

WHY: Users are referenced by every document they created or deleted, so
they are never removed. "Deleting" a user deactivates the account and
revokes its sessions; the row and its history stay.

RULES:
- An admin cannot deactivate their own account or change their own role
- Deactivation and password resets log the user out everywhere
- Passwords are never part of a profile update; they change only through
  reset_password() or change_own_password()
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from ..errors import NotFound, ValidationFailed, translate_integrity_error
from ..extensions import db
from ..models import User, ROLES
from ..validation import ModelValidationPolicy, validate_payload
from . import auth_service, session_service
from .document_service import paginate


USER_POLICY = ModelValidationPolicy(
    writable_fields={"username", "email", "name", "role", "is_active"},
    required_on_create={"username", "email"},
)


def _commit() -> None:
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise translate_integrity_error(exc)


def _check_role(role) -> None:
    if role not in ROLES:
        raise ValidationFailed([{"field": "role", "message": f"role must be one of {', '.join(ROLES)}"}])


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFound(f"User not found: {user_id}")
    return user


def list_users(
    *,
    page: int = 1,
    limit: int = 10,
    search: str | None = None,
    role: str | None = None,
    include_inactive: bool = False,
) -> dict:
    query = db.session.query(User)
    if not include_inactive:
        query = query.filter(User.is_active.is_(True))
    if role:
        _check_role(role)
        query = query.filter(User.role == role)
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        query = query.filter(db.or_(
            User.username.ilike(pattern),
            User.email.ilike(pattern),
            User.name.ilike(pattern),
        ))
    query = query.order_by(User.created_at.desc(), User.id.desc())
    return paginate(query, page, limit)


def user_stats(recent: int = 5) -> dict:
    """Account counts, active users per role and the newest active accounts."""
    total = db.session.query(func.count(User.id)).scalar()
    active = db.session.query(func.count(User.id)).filter(User.is_active.is_(True)).scalar()
    per_role = dict(
        db.session.query(User.role, func.count(User.id))
        .filter(User.is_active.is_(True))
        .group_by(User.role)
        .all()
    )
    newest = (
        db.session.query(User)
        .filter(User.is_active.is_(True))
        .order_by(User.created_at.desc(), User.id.desc())
        .limit(recent)
        .all()
    )
    return {
        "overview": {"total_users": total, "active_users": active, "inactive_users": total - active},
        "roles": {role: per_role.get(role, 0) for role in ROLES},
        "recent_users": [u.to_dict() for u in newest],
    }


def create_user(payload: dict) -> User:
    """Validate an API payload and create the account (password strength enforced)."""
    password = payload.get("password")
    profile = {k: v for k, v in payload.items() if k != "password"}
    patch = validate_payload(model=User, payload=profile, policy=USER_POLICY, partial=False)
    if not password:
        raise ValidationFailed([{"field": "password", "message": "password is required"}])

    user = auth_service.create_user(
        username=patch["username"],
        email=patch["email"],
        password=password,
        role=patch.get("role") or "staff",
        name=patch.get("name"),
    )
    current_app.logger.info("User created: %s (%s)", user.username, user.role)
    return user


def update_user(user_id: int, payload: dict, actor: User) -> User:
    if "password" in (payload or {}):
        raise ValidationFailed([{"field": "password", "message": "Use the password reset to change a password"}])

    user = get_user(user_id)
    patch = validate_payload(model=User, payload=payload, policy=USER_POLICY, partial=True)

    if "role" in patch:
        _check_role(patch["role"])
        if user.id == actor.id and patch["role"] != user.role:
            raise ValidationFailed([{"field": "role", "message": "Cannot change your own role"}])
    if patch.get("is_active") is False and user.id == actor.id:
        raise ValidationFailed([{"field": "is_active", "message": "Cannot deactivate your own account"}])
    if "email" in patch:
        patch["email"] = patch["email"].lower()

    was_active = user.is_active
    for key, value in patch.items():
        setattr(user, key, value)
    if was_active and not user.is_active:
        session_service.revoke_all_user_sessions(user.id)

    _commit()
    current_app.logger.info("User updated: %s by %s", user.username, actor.username)
    return user


def deactivate_user(user_id: int, actor: User) -> tuple[User, int]:
    """Deactivate an account and revoke its sessions; returns (user, sessions_revoked)."""
    user = get_user(user_id)
    if user.id == actor.id:
        raise ValidationFailed([{"field": "id", "message": "Cannot deactivate your own account"}])
    if not user.is_active:
        raise ValidationFailed([{"field": "id", "message": "User is already deactivated"}])

    user.is_active = False
    revoked = session_service.revoke_all_user_sessions(user.id)
    _commit()

    current_app.logger.info(
        "User deactivated: %s by %s (%d sessions revoked)", user.username, actor.username, revoked
    )
    return user, revoked


def reset_password(user_id: int, new_password: str | None, actor: User) -> int:
    """Admin password reset; logs the user out everywhere. Returns sessions revoked."""
    if not new_password:
        raise ValidationFailed([{"field": "new_password", "message": "new_password is required"}])
    user = get_user(user_id)
    user.password_hash = auth_service.hash_password(new_password)
    revoked = session_service.revoke_all_user_sessions(user.id)
    _commit()

    current_app.logger.info("Password reset for %s by %s", user.username, actor.username)
    return revoked


def change_own_password(user: User, current_password: str | None, new_password: str | None, keep_session_id: int) -> None:
    """Self-service change; other sessions are revoked, the calling one stays."""
    errors = []
    if not current_password:
        errors.append({"field": "current_password", "message": "current_password is required"})
    if not new_password:
        errors.append({"field": "new_password", "message": "new_password is required"})
    if errors:
        raise ValidationFailed(errors)

    if not auth_service.verify_password(current_password, user.password_hash):
        raise ValidationFailed([{"field": "current_password", "message": "Current password is incorrect"}])

    user.password_hash = auth_service.hash_password(new_password)
    session_service.revoke_all_user_sessions(user.id, keep_session_id=keep_session_id)
    _commit()
    current_app.logger.info("Password changed by %s", user.username)
