# Overview: Flask API routes for transactional documents; parses input and returns JSON responses.

"""
Document Routes

One blueprint per document kind, all built by create_document_blueprint():

    /api/purchases
    /api/purchase-orders
    /api/purchase-returns
    /api/sales

SECURITY: All routes require authentication.
- Reads, create, update and numbering: any authenticated user
- Status changes and soft delete: admin or manager
- Recycle bin, restore and permanent delete: admin

Create and update accept JSON or multipart/form-data; in multipart the
`items` field is a JSON string and the attachment is uploaded under the
kind's attachment field (`invoice_file` or `attachment`).

Identifiers: a purely numeric <ident> is a document id, anything else a
reference number. `?by=ref` forces a reference-number lookup.
"""

from flask import Blueprint, g, request

from ..decorators import require_auth, require_role
from ..errors import ServiceError
from ..services import attachment_service, document_service, recycle_bin_service
from ..validation import coerce_bool, parse_optional_int
from .responses import base_url, failure, query_arg, request_data, success, unexpected


MANAGER_ROLES = ("admin", "manager")
ADMIN_ROLES = ("admin",)

DOCUMENT_ROUTES = (
    ("purchase", "purchases"),
    ("purchase_order", "purchase-orders"),
    ("purchase_return", "purchase-returns"),
    ("sale", "sales"),
)


def serialize_document(doc) -> dict:
    data = doc.to_dict()
    field = doc.ATTACHMENT_FIELD
    data[field] = attachment_service.public_url(data.get(field), base_url())
    return data


def _lookup(ident: str):
    return document_service.parse_lookup(ident, by=request.args.get("by"))


def _incoming_attachment(kind, data: dict):
    """
    Store an uploaded file, or accept a reference to an already stored one.

    Returns (stored relative path or None, whether it was uploaded now).
    """
    field = kind.model.ATTACHMENT_FIELD
    upload = request.files.get(field)
    if upload is not None and upload.filename:
        return attachment_service.save_upload(upload, kind.category, field), True
    if data.get(field):
        stored = attachment_service.strip_base_url(data[field], base_url())
        # Only files under the upload root can follow the document to the recycle bin
        attachment_service.absolute_path(stored)
        return stored, False
    return None, False


def create_document_blueprint(kind_name: str, slug: str) -> Blueprint:
    kind = document_service.get_kind(kind_name)
    label = kind.label
    bp = Blueprint(f"{kind_name}_documents", __name__, url_prefix=f"/api/{slug}")

    @bp.get("")
    @require_auth
    def list_route():
        """
        List active documents.

        Query parameters: page, limit, search, vendor / customer, status,
        start_date, end_date (YYYY-MM-DD or ISO-8601), sort_by, sort_order,
        all=true (no pagination).
        """
        try:
            result = document_service.list_documents(
                kind_name,
                page=parse_optional_int(request.args, "page", 1),
                limit=parse_optional_int(request.args, "limit", 10),
                search=query_arg("search"),
                party=query_arg("vendor", "customer", "customer_name"),
                status=query_arg("status"),
                start_date=query_arg("start_date", "startDate"),
                end_date=query_arg("end_date", "endDate"),
                sort_by=query_arg("sort_by", "sortBy", default="created_at"),
                sort_order=query_arg("sort_order", "sortOrder", default="desc"),
                include_all=coerce_bool(query_arg("all", default=False)),
            )
        except ServiceError as e:
            return failure(e)

        return success(
            {
                "items": [serialize_document(d) for d in result["items"]],
                "pagination": result["pagination"],
            },
            message=f"{label} list retrieved",
        )

    @bp.get("/search")
    @require_auth
    def search_route():
        """Search ref_num, receipt number, vendor/customer and line product names."""
        try:
            docs = document_service.search_documents(
                kind_name,
                query_arg("q", "search", default=""),
                limit=parse_optional_int(request.args, "limit", 20),
            )
        except ServiceError as e:
            return failure(e)
        return success([serialize_document(d) for d in docs], message="Search results")

    @bp.get("/recycle-bin")
    @require_auth
    @require_role(*ADMIN_ROLES)
    def recycle_bin_route():
        try:
            result = recycle_bin_service.list_deleted(
                kind_name,
                page=parse_optional_int(request.args, "page", 1),
                limit=parse_optional_int(request.args, "limit", 10),
                search=query_arg("search"),
                start_date=query_arg("start_date", "startDate"),
                end_date=query_arg("end_date", "endDate"),
            )
        except ServiceError as e:
            return failure(e)

        return success(
            {
                "items": [serialize_document(d) for d in result["items"]],
                "pagination": result["pagination"],
            },
            message=f"Deleted {label.lower()}s retrieved",
        )

    @bp.get("/<ident>")
    @require_auth
    def get_route(ident: str):
        try:
            doc = document_service.get_document(kind_name, _lookup(ident))
        except ServiceError as e:
            return failure(e)
        return success(serialize_document(doc), message=f"{label} retrieved")

    @bp.post("")
    @require_auth
    def create_route():
        """
        Create a document and apply its stock effects.

        400 validation / unknown product / insufficient stock, 409 duplicate
        reference number, 500 numbering failure (the body names the saved
        document id so numbering can be retried via POST /<id>/number).
        """
        data = request_data()
        try:
            attachment_path, uploaded = _incoming_attachment(kind, data)
            doc = document_service.create_document(
                kind_name, data, g.current_user, attachment_path, discard_on_failure=uploaded
            )
        except ServiceError as e:
            return failure(e)
        except Exception:
            return unexpected(f"creating {label.lower()}")

        return success(serialize_document(doc), message=f"{label} created successfully", status=201)

    @bp.put("/<ident>")
    @require_auth
    def update_route(ident: str):
        data = request_data()
        try:
            lookup = _lookup(ident)
            attachment_path, uploaded = _incoming_attachment(kind, data)
            doc = document_service.update_document(
                kind_name, lookup, data, g.current_user, attachment_path, discard_on_failure=uploaded
            )
        except ServiceError as e:
            return failure(e)
        except Exception:
            return unexpected(f"updating {label.lower()} {ident}")

        return success(serialize_document(doc), message=f"{label} updated successfully")

    if kind.statuses:
        @bp.put("/<ident>/status")
        @require_auth
        @require_role(*MANAGER_ROLES)
        def status_route(ident: str):
            data = request_data()
            try:
                doc = document_service.update_status(
                    kind_name, _lookup(ident), (data.get("status") or "").strip(), g.current_user
                )
            except ServiceError as e:
                return failure(e)
            return success(serialize_document(doc), message=f"{label} status updated")

    @bp.post("/<ident>/number")
    @require_auth
    def number_route(ident: str):
        """Complete numbering for a document whose number could not be generated at create time."""
        try:
            doc = document_service.assign_reference_number(kind_name, _lookup(ident))
        except ServiceError as e:
            return failure(e)
        return success(serialize_document(doc), message=f"{label} numbered")

    @bp.delete("/<ident>")
    @require_auth
    @require_role(*MANAGER_ROLES)
    def delete_route(ident: str):
        """Soft delete: moves the document and its attachment to the recycle bin. Stock is not reversed."""
        try:
            doc = document_service.soft_delete_document(kind_name, _lookup(ident), g.current_user)
        except ServiceError as e:
            return failure(e)
        except Exception:
            return unexpected(f"deleting {label.lower()} {ident}")
        return success(serialize_document(doc), message=f"{label} moved to recycle bin")

    @bp.delete("/final-delete/<ident>")
    @require_auth
    @require_role(*ADMIN_ROLES)
    def purge_route(ident: str):
        try:
            summary = document_service.purge_document(kind_name, _lookup(ident), g.current_user)
        except ServiceError as e:
            return failure(e)
        return success(summary, message=f"{label} permanently deleted")

    @bp.put("/<ident>/restore")
    @require_auth
    @require_role(*ADMIN_ROLES)
    def restore_route(ident: str):
        try:
            doc = document_service.restore_document(kind_name, _lookup(ident), g.current_user)
        except ServiceError as e:
            return failure(e)
        except Exception:
            return unexpected(f"restoring {label.lower()} {ident}")
        return success(serialize_document(doc), message=f"{label} restored successfully")

    return bp


document_blueprints = [create_document_blueprint(kind, slug) for kind, slug in DOCUMENT_ROUTES]
