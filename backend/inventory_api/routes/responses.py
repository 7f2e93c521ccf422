# Overview: Shared JSON envelope helpers for API routes.

from flask import current_app, jsonify, request

from ..errors import ServiceError


def success(data=None, message: str = "OK", status: int = 200):
    return jsonify({"success": True, "message": message, "data": data}), status


def failure(exc: ServiceError):
    return jsonify(exc.to_dict()), exc.status_code


def unexpected(action: str):
    """Log the active exception with traceback and answer a generic 500."""
    current_app.logger.exception("Unhandled error while %s", action)
    return jsonify({"success": False, "message": "Internal server error"}), 500


def base_url() -> str:
    """Public base URL used to turn stored attachment paths into links."""
    return current_app.config.get("PUBLIC_BASE_URL") or request.host_url.rstrip("/")


def request_data() -> dict:
    """JSON body or multipart/urlencoded form, as a plain dict."""
    if request.is_json:
        payload = request.get_json(silent=True)
        return payload if isinstance(payload, dict) else {}
    return request.form.to_dict()


def query_arg(*names: str, default=None):
    """First non-empty query parameter among `names` (snake_case and camelCase aliases)."""
    for name in names:
        value = request.args.get(name)
        if value not in (None, ""):
            return value
    return default
