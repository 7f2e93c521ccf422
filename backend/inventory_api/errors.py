# Overview: Service-level error types and their HTTP mapping.

"""
Service Errors

Every failure a service can report derives from ServiceError and carries the
HTTP status the route layer answers with. Routes catch ServiceError once and
render {"success": false, "message": ..., "errors": [...]}; anything else is
an unexpected failure (logged with traceback, generic 500).
"""

from __future__ import annotations

import re

from sqlalchemy.exc import IntegrityError


DUPLICATE_DOCUMENT_MESSAGE = (
    "Already created. Please check the recycle bin, cancelled or return section"
)


class ServiceError(Exception):
    """Base class for failures reported to API clients."""

    status_code = 500

    def __init__(self, message: str, details: dict | None = None, errors: list | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.errors = errors or []

    def to_dict(self) -> dict:
        body = {"success": False, "message": self.message}
        if self.errors:
            body["errors"] = self.errors
        if self.details:
            body["details"] = self.details
        return body


class ValidationFailed(ServiceError):
    """Malformed request; always names the offending fields."""

    status_code = 400

    def __init__(self, errors: list[dict] | str, message: str = "Validation failed"):
        if isinstance(errors, str):
            errors = [{"field": None, "message": errors}]
        super().__init__(message, errors=errors)


class DuplicateKey(ServiceError):
    status_code = 409

    def __init__(self, field: str | None, message: str | None = None):
        self.field = field
        if message is None:
            message = f"Duplicate value for {field}" if field else "Duplicate value"
        super().__init__(message, details={"field": field} if field else None)


class NotFound(ServiceError):
    status_code = 404


class ProductNotFound(ServiceError):
    """A line item names a product that does not exist (client error, 400)."""

    status_code = 400

    def __init__(self, product_ref):
        self.product_ref = product_ref
        super().__init__(
            f"Product not found: {product_ref}",
            details={"product": product_ref},
        )


class InsufficientStock(ServiceError):
    """
    Raised when a guarded decrement would take stock below zero.

    The product's stock is left exactly as it was.
    """

    status_code = 400

    def __init__(self, product_name: str, available: int, requested: int, product_id: int | None = None):
        self.product_id = product_id
        self.product_name = product_name
        self.available = available
        self.requested = requested
        self.shortfall = max(requested - available, 0)
        super().__init__(
            f"Insufficient stock for product {product_name}. "
            f"Available: {available}, Requested: {requested}",
            details={
                "product_id": product_id,
                "product": product_name,
                "available": available,
                "requested": requested,
                "shortfall": self.shortfall,
            },
        )


class NotInRecycleBin(ServiceError):
    status_code = 404

    def __init__(self, message: str = "Document not found in recycle bin"):
        super().__init__(message)


class SequenceUnavailable(ServiceError):
    """The counter store could not hand out a number."""

    status_code = 500


# SQLite: "UNIQUE constraint failed: purchases.ref_num"
_SQLITE_UNIQUE = re.compile(r"UNIQUE constraint failed: (?:\w+)\.(\w+)")
# PostgreSQL: 'Key (ref_num)=(R-250817-01) already exists.'
_PG_UNIQUE = re.compile(r"Key \((\w+)\)=")
# MySQL: "Duplicate entry 'x' for key 'purchases.ref_num'"
_MYSQL_UNIQUE = re.compile(r"for key '(?:\w+\.)?(?:uq_\w+?_)?(\w+)'")


def duplicate_field(exc: IntegrityError) -> str | None:
    """Best-effort name of the column behind a unique-index violation."""
    text = str(exc.orig) if exc.orig is not None else str(exc)
    for pattern in (_SQLITE_UNIQUE, _PG_UNIQUE, _MYSQL_UNIQUE):
        match = pattern.search(text)
        if match:
            return match.group(1)
    return None


def is_unique_violation(exc: IntegrityError) -> bool:
    text = (str(exc.orig) if exc.orig is not None else str(exc)).lower()
    return "unique" in text or "duplicate" in text


def translate_integrity_error(exc: IntegrityError, *, document: bool = False) -> ServiceError:
    """
    Map a store IntegrityError onto a client-facing error.

    Unique-index violations become DuplicateKey naming the field. For documents
    the message points users at the places a "missing" record usually hides.
    """
    if is_unique_violation(exc):
        field = duplicate_field(exc)
        message = DUPLICATE_DOCUMENT_MESSAGE if document else None
        return DuplicateKey(field, message)
    return ValidationFailed(str(exc.orig) if exc.orig is not None else str(exc), message="Constraint violated")
