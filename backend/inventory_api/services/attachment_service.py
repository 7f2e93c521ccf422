# Overview: Service-layer storage of document attachments and their recycle-bin moves.

"""
Attachment Lifecycle

Documents store a RELATIVE path such as
    /uploads/invoices/1723880000000-invoice_file.pdf
and responses turn it into an absolute URL by prefixing the public base URL.
Incoming paths may be either form; strip_base_url() and public_url() are
exact inverses, so a path survives any number of round trips unchanged.

On disk:
    <UPLOAD_FOLDER>/<category>/<file>                  active
    <UPLOAD_FOLDER>/recycle-bin/<category>/<file>      soft-deleted

Moves use os.replace (atomic within one filesystem) and fall back to copy +
unlink when the recycle bin sits on another device. Destination directories
are created on demand; creating one that already exists is a no-op.
"""

from __future__ import annotations

import errno
import os
import shutil
import time
from urllib.parse import urlparse

from flask import current_app
from werkzeug.security import safe_join

from ..errors import ValidationFailed


RECYCLE_BIN_DIR = "recycle-bin"


class AttachmentMissing(Exception):
    """The file a document points at is not where it should be."""

    def __init__(self, path: str):
        super().__init__(f"Attachment not found: {path}")
        self.path = path


def _upload_root() -> str:
    return current_app.config["UPLOAD_FOLDER"]


def _url_prefix() -> str:
    return current_app.config.get("UPLOAD_URL_PREFIX", "/uploads").rstrip("/")


def ensure_dir(path: str) -> str:
    os.makedirs(path, exist_ok=True)
    return path


def strip_base_url(path: str | None, base_url: str | None = None) -> str | None:
    """
    Reduce an attachment reference to its stored relative form.

    "https://api.example.com/uploads/x/y.pdf" -> "/uploads/x/y.pdf"
    "/uploads/x/y.pdf"                        -> "/uploads/x/y.pdf"
    """
    if not path:
        return None
    if base_url and path.startswith(base_url.rstrip("/")):
        path = path[len(base_url.rstrip("/")):]
    elif path.startswith(("http://", "https://")):
        path = urlparse(path).path
    if not path.startswith("/"):
        path = "/" + path
    return path


def public_url(path: str | None, base_url: str | None) -> str | None:
    if not path:
        return None
    if path.startswith(("http://", "https://")):
        return path
    if not base_url:
        return path
    return base_url.rstrip("/") + path


def absolute_path(stored_path: str) -> str:
    """
    Filesystem location of a stored relative path.

    Raises ValidationFailed for anything that would resolve outside the
    upload root ("../" tricks, foreign prefixes).
    """
    relative = strip_base_url(stored_path)
    prefix = _url_prefix()
    if not relative.startswith(prefix + "/"):
        raise ValidationFailed([{"field": "attachment", "message": f"Not an upload path: {stored_path}"}])
    resolved = safe_join(_upload_root(), relative[len(prefix) + 1:])
    if resolved is None:
        raise ValidationFailed([{"field": "attachment", "message": f"Invalid upload path: {stored_path}"}])
    return resolved


def _allowed(filename: str) -> str | None:
    ext = os.path.splitext(filename)[1].lower()
    allowed = current_app.config.get("ALLOWED_UPLOAD_EXTENSIONS", ())
    if ext and ext[1:] in allowed:
        return ext
    return None


def save_upload(file_storage, category: str, field_name: str) -> str:
    """
    Persist an uploaded file under <category>/ and return its stored path.

    Files are named "<epoch millis>-<field name><ext>"; the client's own
    filename is never used on disk.
    """
    filename = file_storage.filename or ""
    ext = _allowed(filename)
    if ext is None:
        allowed = ", ".join(sorted(current_app.config.get("ALLOWED_UPLOAD_EXTENSIONS", ())))
        raise ValidationFailed(
            [{"field": field_name, "message": f"File type not allowed. Allowed: {allowed}"}]
        )

    dest_dir = ensure_dir(os.path.join(_upload_root(), category))
    stamp = int(time.time() * 1000)
    stored_name = f"{stamp}-{field_name}{ext}"
    # Two uploads in the same millisecond
    while os.path.exists(os.path.join(dest_dir, stored_name)):
        stamp += 1
        stored_name = f"{stamp}-{field_name}{ext}"

    file_storage.save(os.path.join(dest_dir, stored_name))
    current_app.logger.info("Stored upload %s/%s", category, stored_name)
    return f"{_url_prefix()}/{category}/{stored_name}"


def _move(src: str, dest: str) -> None:
    if not os.path.exists(src):
        raise AttachmentMissing(src)
    ensure_dir(os.path.dirname(dest))
    try:
        os.replace(src, dest)
    except OSError as exc:
        if exc.errno != errno.EXDEV:
            raise
        shutil.copy2(src, dest)
        os.unlink(src)


def to_recycle_bin(stored_path: str, category: str) -> str:
    """Move an active attachment into the recycle bin; returns the new stored path."""
    src = absolute_path(stored_path)
    filename = os.path.basename(src)
    dest = os.path.join(_upload_root(), RECYCLE_BIN_DIR, category, filename)
    _move(src, dest)
    return f"{_url_prefix()}/{RECYCLE_BIN_DIR}/{category}/{filename}"


def from_recycle_bin(stored_path: str, category: str) -> str:
    """Move a recycled attachment back to its active folder; returns the new stored path."""
    src = absolute_path(stored_path)
    filename = os.path.basename(src)
    dest = os.path.join(_upload_root(), category, filename)
    _move(src, dest)
    return f"{_url_prefix()}/{category}/{filename}"


def delete_attachment(stored_path: str | None) -> bool:
    """
    Remove an attachment from disk, wherever it currently lives.

    Returns False when there was nothing to delete. Never raises for I/O
    problems; a leftover file is logged, not fatal to the caller.
    """
    if not stored_path:
        return False
    try:
        os.remove(absolute_path(stored_path))
        return True
    except FileNotFoundError:
        current_app.logger.info("Attachment already gone: %s", stored_path)
        return False
    except (OSError, ValidationFailed) as exc:
        current_app.logger.warning("Could not delete attachment %s: %s", stored_path, exc)
        return False


def discard_upload(stored_path: str | None) -> None:
    """Clean up a file stored for a request that then failed."""
    if stored_path and delete_attachment(stored_path):
        current_app.logger.info("Discarded orphaned upload %s", stored_path)
