# Overview: Service-layer operations for categories, vendors, customers, unit types and purposes.

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError

from ..errors import NotFound, translate_integrity_error
from ..extensions import db
from ..models import Category, Customer, Purpose, UnitType, Vendor
from ..validation import ModelValidationPolicy, validate_payload
from .document_service import paginate


@dataclass(frozen=True)
class CatalogEntity:
    label: str
    model: type
    policy: ModelValidationPolicy
    search_fields: tuple
    # Column used for alphabetical listing
    order_field: str = "name"


ENTITIES = {
    "category": CatalogEntity(
        label="Category",
        model=Category,
        policy=ModelValidationPolicy(
            writable_fields={"name", "description", "is_active"},
            required_on_create={"name"},
        ),
        search_fields=("name", "description"),
    ),
    "vendor": CatalogEntity(
        label="Vendor",
        model=Vendor,
        policy=ModelValidationPolicy(
            writable_fields={
                "name", "contact_name", "email", "phone", "address",
                "payment_terms", "notes", "is_active",
            },
            required_on_create={"name"},
        ),
        search_fields=("name", "contact_name", "email", "phone"),
    ),
    "customer": CatalogEntity(
        label="Customer",
        model=Customer,
        policy=ModelValidationPolicy(
            writable_fields={"name", "email", "phone", "address", "is_active"},
            required_on_create={"name"},
        ),
        search_fields=("name", "email", "phone"),
    ),
    "unit_type": CatalogEntity(
        label="Unit type",
        model=UnitType,
        policy=ModelValidationPolicy(
            writable_fields={"title", "is_active"},
            required_on_create={"title"},
        ),
        search_fields=("title",),
        order_field="title",
    ),
    "purpose": CatalogEntity(
        label="Purpose",
        model=Purpose,
        policy=ModelValidationPolicy(
            writable_fields={"title", "is_active"},
            required_on_create={"title"},
        ),
        search_fields=("title",),
        order_field="title",
    ),
}


def _commit() -> None:
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise translate_integrity_error(exc)


def create_entity(entity_name: str, payload: dict):
    entity = ENTITIES[entity_name]
    patch = validate_payload(model=entity.model, payload=payload, policy=entity.policy, partial=False)
    record = entity.model(**patch)
    db.session.add(record)
    _commit()
    return record


def get_entity(entity_name: str, record_id: int):
    entity = ENTITIES[entity_name]
    record = db.session.get(entity.model, record_id)
    if record is None:
        raise NotFound(f"{entity.label} not found: {record_id}")
    return record


def list_entities(
    entity_name: str,
    *,
    page: int = 1,
    limit: int = 50,
    search: str | None = None,
    include_inactive: bool = False,
) -> dict:
    entity = ENTITIES[entity_name]
    model = entity.model
    query = db.session.query(model)
    if not include_inactive:
        query = query.filter(model.is_active.is_(True))
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        query = query.filter(db.or_(*(getattr(model, f).ilike(pattern) for f in entity.search_fields)))
    query = query.order_by(getattr(model, entity.order_field).asc(), model.id.asc())
    return paginate(query, page, limit)


def update_entity(entity_name: str, record_id: int, payload: dict):
    entity = ENTITIES[entity_name]
    record = get_entity(entity_name, record_id)
    patch = validate_payload(model=entity.model, payload=payload, policy=entity.policy, partial=True)
    for key, value in patch.items():
        setattr(record, key, value)
    _commit()
    return record


def deactivate_entity(entity_name: str, record_id: int):
    record = get_entity(entity_name, record_id)
    record.is_active = False
    _commit()
    return record
