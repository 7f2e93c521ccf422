# Overview: Service-layer operations for users and password authentication.

"""
Authentication Service

WHY: Every document write is attributed to a user. Passwords are hashed
with bcrypt and must meet a minimum strength.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters, upper, lower, digit and special character
- Session tokens managed separately (see session_service.py)
- Inactive users cannot authenticate
"""

import bcrypt
import re

from sqlalchemy.exc import IntegrityError

from ..errors import ValidationFailed, translate_integrity_error
from ..extensions import db
from ..models import User, ROLES
from inventory_api.time_utils import utcnow


class PasswordValidationError(ValidationFailed):
    """Raised when password doesn't meet strength requirements."""

    def __init__(self, message: str):
        super().__init__([{"field": "password", "message": message}], message=message)


MIN_PASSWORD_LENGTH = 8

# (pattern, what is missing); checked in order, first miss is reported
PASSWORD_RULES = (
    (r"[A-Z]", "one uppercase letter"),
    (r"[a-z]", "one lowercase letter"),
    (r"\d", "one digit"),
    (r"[!@#$%^&*(),.'\":{}|<>]", "one special character"),
)


def validate_password_strength(password: str) -> None:
    """Raise PasswordValidationError naming the first unmet rule."""
    if len(password) < MIN_PASSWORD_LENGTH:
        raise PasswordValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    for pattern, requirement in PASSWORD_RULES:
        if not re.search(pattern, password):
            raise PasswordValidationError(f"Password must contain at least {requirement}")


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt with cost factor 12.

    Validates strength first; raises PasswordValidationError if weak.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt comparison; malformed hashes never match."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def create_user(username: str, email: str, password: str, role: str = "staff", name: str | None = None) -> User:
    if role not in ROLES:
        raise ValidationFailed([{"field": "role", "message": f"role must be one of {', '.join(ROLES)}"}])

    user = User(
        username=username.strip(),
        email=email.strip().lower(),
        name=name,
        role=role,
        password_hash=hash_password(password),
    )
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise translate_integrity_error(exc)
    return user


def authenticate(username: str, password: str) -> User | None:
    """Return the user for valid credentials, otherwise None."""
    user = db.session.query(User).filter_by(username=(username or "").strip()).first()
    if not user or not user.is_active:
        return None
    if not verify_password(password or "", user.password_hash):
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user
