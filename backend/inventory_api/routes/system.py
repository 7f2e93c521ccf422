# backend/inventory_api/routes/system.py
"""
System health endpoint and static serving of stored attachments.
"""

import os
import time
from flask import Blueprint, current_app, send_from_directory
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from inventory_api.time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        elapsed_ms = (time.time() - start_time) * 1000
        return {"status": "healthy", "response_time_ms": round(elapsed_ms, 2)}
    except SQLAlchemyError as e:
        current_app.logger.error("Database health check failed: %s", e)
        return {"status": "unhealthy", "error": str(e)}


def check_upload_storage() -> dict:
    root = current_app.config["UPLOAD_FOLDER"]
    if os.path.isdir(root) and os.access(root, os.W_OK):
        return {"status": "healthy", "path": root}
    if not os.path.exists(root):
        # Created lazily on first upload
        return {"status": "healthy", "path": root, "note": "not created yet"}
    return {"status": "unhealthy", "path": root, "error": "not writable"}


@system_bp.get("/health")
def health():
    checks = {
        "database": check_database_health(),
        "uploads": check_upload_storage(),
    }
    healthy = all(c["status"] == "healthy" for c in checks.values())
    return {
        "status": "healthy" if healthy else "unhealthy",
        "timestamp": to_utc_z(utcnow()),
        "checks": checks,
    }, 200 if healthy else 503


@system_bp.get("/uploads/<path:filename>")
def uploaded_file(filename: str):
    return send_from_directory(current_app.config["UPLOAD_FOLDER"], filename)
