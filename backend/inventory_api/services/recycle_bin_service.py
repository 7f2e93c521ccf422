# Overview: Read-only queries over soft-deleted documents.

from __future__ import annotations

from ..extensions import db
from .document_service import date_bounds, paginate, get_kind


def list_deleted(
    kind_name: str,
    *,
    page: int = 1,
    limit: int = 10,
    search: str | None = None,
    start_date: str | None = None,
    end_date: str | None = None,
) -> dict:
    """
    Paginated recycle bin for one document kind, newest first.

    Only documents with is_deleted set are ever returned. `search` matches
    ref_num or remarks case-insensitively; the date range applies to
    created_at (a bare end date covers that whole day).

    Returns {"items": [...], "pagination": {page, limit, total, pages}}.
    """
    kind = get_kind(kind_name)
    model = kind.model
    query = db.session.query(model).filter(model.is_deleted.is_(True))

    if search and search.strip():
        pattern = f"%{search.strip()}%"
        query = query.filter(db.or_(model.ref_num.ilike(pattern), model.remarks.ilike(pattern)))

    start, end = date_bounds(start_date, end_date)
    if start:
        query = query.filter(model.created_at >= start)
    if end:
        query = query.filter(model.created_at <= end)

    query = query.order_by(model.created_at.desc(), model.id.desc())
    return paginate(query, page, limit)
