# Overview: Service-layer lifecycle of transactional documents (purchases, orders, returns, sales).

"""
Transactional Documents

WHY: Purchases, purchase orders, purchase returns and sales share one
lifecycle (create with stock effects, update, soft delete, restore, purge)
and differ only in numbering, stock direction and a handful of header
fields. Each kind is described once by a DocumentKind; every operation below
is written against that description.

STOCK EFFECTS PER LINE:
    purchase          +qty (is_return line: -qty, is_cancelled line: none)
    purchase_return   -qty
    sale              -qty
    purchase_order    none

CREATE (validate-then-commit):
1. Parse header and items; resolve every product (ProductNotFound).
2. Compute line totals (qty * unit price) and document totals.
3. Check the stock headroom every product needs, in item order, before any
   change is applied (InsufficientStock).
4. Apply deltas one item at a time, in item order, with guarded decrements,
   inside the same DB transaction as the document insert.
5. Commit. On any failure the transaction rolls back and an uploaded
   attachment is discarded, so nothing is left behind.

NUMBERING:
- sale: invoice number allocated after validation, before the insert.
- purchase, purchase_return, purchase_order: numbered after the document
  commits. If numbering fails the document stays (stock already moved) and
  SequenceUnavailable is raised with its id; assign_reference_number()
  completes the numbering later and is idempotent.

SOFT DELETE does NOT reverse stock effects. Deleting a purchase leaves its
received quantities on hand; restoring it does not add them again.
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from flask import current_app
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from ..errors import (
    NotFound,
    NotInRecycleBin,
    ProductNotFound,
    SequenceUnavailable,
    ServiceError,
    ValidationFailed,
    translate_integrity_error,
)
from ..extensions import db
from ..models import (
    Product,
    Purchase,
    PurchaseLine,
    PurchaseOrder,
    PurchaseOrderLine,
    PurchaseReturn,
    PurchaseReturnLine,
    Sale,
    SaleLine,
    StockMovement,
    PURCHASE_ORDER_STATUSES,
    SALE_STATUSES,
    PAYMENT_METHODS,
)
from ..validation import (
    FieldError,
    coerce_datetime,
    coerce_int,
    coerce_money_cents,
    parse_line_items,
)
from . import attachment_service, sequence_service, stock_service
from .concurrency import lock_for_update
from inventory_api.time_utils import end_of_day, parse_iso_datetime, utcnow


# =============================================================================
# Kind registry
# =============================================================================

@dataclass(frozen=True)
class DocumentKind:
    name: str
    label: str
    model: type
    line_model: type
    # Folder under the upload root
    category: str
    # Column the generated number is written to
    number_field: str
    number_format: Callable
    numbered_after_commit: bool
    # Signed stock effect of one parsed line (0 = none)
    line_effect: Callable[[dict], int]
    movement_type: str | None
    # Column holding the counterparty (vendor / customer)
    party_field: str
    statuses: tuple = ()


def _purchase_effect(item: dict) -> int:
    if item.get("is_cancelled"):
        return 0
    if item.get("is_return"):
        return -item["quantity"]
    return item["quantity"]


def _decrease_effect(item: dict) -> int:
    return -item["quantity"]


def _no_effect(item: dict) -> int:
    return 0


KINDS: dict[str, DocumentKind] = {
    "purchase": DocumentKind(
        name="purchase",
        label="Purchase",
        model=Purchase,
        line_model=PurchaseLine,
        category="invoices",
        number_field="receipt_number",
        number_format=lambda doc: sequence_service.PURCHASE_RECEIPT,
        numbered_after_commit=True,
        line_effect=_purchase_effect,
        movement_type="purchase",
        party_field="vendor",
    ),
    "purchase_order": DocumentKind(
        name="purchase_order",
        label="Purchase order",
        model=PurchaseOrder,
        line_model=PurchaseOrderLine,
        category="purchase-orders",
        number_field="ref_num",
        number_format=lambda doc: sequence_service.purchase_order_format(doc.site_type),
        numbered_after_commit=True,
        line_effect=_no_effect,
        movement_type=None,
        party_field="vendor",
        statuses=PURCHASE_ORDER_STATUSES,
    ),
    "purchase_return": DocumentKind(
        name="purchase_return",
        label="Purchase return",
        model=PurchaseReturn,
        line_model=PurchaseReturnLine,
        category="returns",
        number_field="receipt_number",
        number_format=lambda doc: sequence_service.PURCHASE_RETURN_RECEIPT,
        numbered_after_commit=True,
        line_effect=_decrease_effect,
        movement_type="purchase_return",
        party_field="vendor",
    ),
    "sale": DocumentKind(
        name="sale",
        label="Sale",
        model=Sale,
        line_model=SaleLine,
        category="sales",
        number_field="ref_num",
        number_format=lambda doc: sequence_service.SALE_INVOICE,
        numbered_after_commit=False,
        line_effect=_decrease_effect,
        movement_type="sale",
        party_field="customer_name",
        statuses=SALE_STATUSES,
    ),
}


def get_kind(name: str) -> DocumentKind:
    try:
        return KINDS[name]
    except KeyError:
        raise NotFound(f"Unknown document type: {name}")


# =============================================================================
# Lookup (resolved once at the route boundary)
# =============================================================================

@dataclass(frozen=True)
class ById:
    id: int


@dataclass(frozen=True)
class ByRefNum:
    ref_num: str


DocumentLookup = ById | ByRefNum


def parse_lookup(raw: str, *, by: str | None = None) -> DocumentLookup:
    """
    Turn a path identifier into a lookup.

    Purely numeric identifiers are database ids unless the caller asks for
    by="ref"; everything else is a reference number.
    """
    raw = (raw or "").strip()
    if not raw:
        raise ValidationFailed([{"field": "id", "message": "Document identifier is required"}])
    if by == "ref" or not raw.isdigit():
        return ByRefNum(raw)
    return ById(int(raw))


def _base_query(kind: DocumentKind, lookup: DocumentLookup):
    query = db.session.query(kind.model)
    if isinstance(lookup, ById):
        return query.filter(kind.model.id == lookup.id)
    return query.filter(kind.model.ref_num == lookup.ref_num)


def _find(kind: DocumentKind, lookup: DocumentLookup, *, deleted: bool | None = False, for_update: bool = False):
    query = _base_query(kind, lookup)
    if deleted is not None:
        query = query.filter(kind.model.is_deleted.is_(deleted))
    if for_update:
        query = lock_for_update(query)
    return query.first()


def _describe(lookup: DocumentLookup) -> str:
    return str(lookup.id) if isinstance(lookup, ById) else lookup.ref_num


def get_document(kind_name: str, lookup: DocumentLookup):
    """Active document or NotFound (soft-deleted documents are invisible here)."""
    kind = get_kind(kind_name)
    doc = _find(kind, lookup)
    if doc is None:
        raise NotFound(f"{kind.label} not found: {_describe(lookup)}")
    return doc


# =============================================================================
# Header parsing
# =============================================================================

def _text(data: dict, field: str, errors: list, *, required: bool = False, max_len: int | None = None):
    value = data.get(field)
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            errors.append({"field": field, "message": f"{field} is required"})
        return None
    value = str(value).strip()
    if max_len and len(value) > max_len:
        errors.append({"field": field, "message": f"{field} exceeds max length {max_len}"})
        return None
    return value


def _optional(data: dict, field: str, coerce, errors: list):
    value = data.get(field)
    if value is None or value == "":
        return None
    try:
        return coerce(field, value)
    except FieldError as e:
        errors.append(e.to_dict())
        return None


def _parse_header(kind: DocumentKind, data: dict, *, partial: bool) -> dict:
    """
    Kind-specific header fields present in `data`.

    Unknown keys are ignored (multipart forms send whatever the screen has).
    Generated numbers are never taken from the client.
    """
    errors: list[dict] = []
    header: dict = {}

    def put(key, value, nullable=True):
        # Partial updates may clear nullable fields; NOT NULL ones are only ever replaced
        if value is not None or (nullable and partial and key in data):
            header[key] = value

    put("remarks", _text(data, "remarks", errors, max_len=1000))

    if kind.party_field == "vendor":
        vendor = _text(data, "vendor", errors, required=not partial, max_len=200)
        if vendor is not None or (partial and "vendor" in data):
            if partial and vendor is None:
                errors.append({"field": "vendor", "message": "vendor cannot be blank"})
            header["vendor"] = vendor

    if kind.name == "purchase":
        put("purchase_date", _optional(data, "purchase_date", coerce_datetime, errors), nullable=False)
        if not partial:
            header["ref_num"] = _text(data, "ref_num", errors, max_len=64)
            header["purchase_order_id"] = _optional(data, "purchase_order_id", coerce_int, errors)

    elif kind.name == "purchase_return":
        put("return_date", _optional(data, "return_date", coerce_datetime, errors), nullable=False)
        if not partial:
            header["ref_num"] = _text(data, "ref_num", errors, max_len=64)

    elif kind.name == "purchase_order":
        put("order_date", _optional(data, "order_date", coerce_datetime, errors), nullable=False)
        put("expected_delivery_date", _optional(data, "expected_delivery_date", coerce_datetime, errors))
        if not partial:
            site = _text(data, "site_type", errors, max_len=8)
            header["site_type"] = site.upper() if site else current_app.config.get("PO_SITE_TYPE", "S")
        status = _text(data, "status", errors)
        if status is not None:
            if status not in PURCHASE_ORDER_STATUSES:
                errors.append({"field": "status", "message": f"status must be one of {', '.join(PURCHASE_ORDER_STATUSES)}"})
            else:
                header["status"] = status

    elif kind.name == "sale":
        put("customer_name", _text(data, "customer_name", errors, max_len=200))
        put("customer_email", _text(data, "customer_email", errors, max_len=255))
        put("customer_phone", _text(data, "customer_phone", errors, max_len=64))
        put("customer_id", _optional(data, "customer_id", coerce_int, errors))
        put("sale_date", _optional(data, "sale_date", coerce_datetime, errors), nullable=False)
        put("tax_cents", _optional(data, "tax_cents", coerce_money_cents, errors), nullable=False)
        put("discount_cents", _optional(data, "discount_cents", coerce_money_cents, errors), nullable=False)
        method = _text(data, "payment_method", errors)
        if method is not None:
            if method not in PAYMENT_METHODS:
                errors.append({"field": "payment_method", "message": f"payment_method must be one of {', '.join(PAYMENT_METHODS)}"})
            else:
                header["payment_method"] = method
        status = _text(data, "status", errors)
        if status is not None:
            if status not in SALE_STATUSES:
                errors.append({"field": "status", "message": f"status must be one of {', '.join(SALE_STATUSES)}"})
            else:
                header["status"] = status

    if errors:
        raise ValidationFailed(errors)
    return header


# =============================================================================
# Lines, totals and stock effects
# =============================================================================

def _resolve_lines(kind: DocumentKind, items: list[dict]) -> list[dict]:
    """Attach product snapshots and line totals; every product must exist."""
    product_ids = {item["product_id"] for item in items}
    products = {
        p.id: p
        for p in db.session.query(Product).filter(Product.id.in_(product_ids)).all()
    }
    resolved = []
    for item in items:
        product = products.get(item["product_id"])
        if product is None:
            raise ProductNotFound(item["product_id"])
        line = dict(item)
        line["product_name"] = product.name
        line["unit_type"] = item.get("unit_type") or product.unit_type
        gross = item["quantity"] * item["unit_price_cents"]
        line["gross_cents"] = gross
        line["total_cents"] = 0 if (item.get("is_cancelled") or item.get("is_return")) else gross
        line["effect"] = kind.line_effect(item)
        resolved.append(line)
    return resolved


def _apply_totals(kind: DocumentKind, doc, lines: list[dict]) -> None:
    subtotal = sum(line["total_cents"] for line in lines)
    doc.subtotal_cents = subtotal

    if kind.name == "purchase":
        doc.cancelled_amount_cents = sum(l["gross_cents"] for l in lines if l.get("is_cancelled"))
        doc.cancelled_qty = sum(l["quantity"] for l in lines if l.get("is_cancelled"))
        doc.return_amount_cents = sum(l["gross_cents"] for l in lines if l.get("is_return"))
        doc.return_qty = sum(l["quantity"] for l in lines if l.get("is_return"))

    if kind.name == "sale":
        total = subtotal + (doc.tax_cents or 0) - (doc.discount_cents or 0)
        if total < 0:
            raise ValidationFailed([{"field": "discount_cents", "message": "Discount cannot exceed subtotal plus tax"}])
        doc.total_cents = total
    else:
        doc.total_cents = subtotal


def _build_lines(kind: DocumentKind, lines: list[dict]) -> list:
    rows = []
    for position, line in enumerate(lines):
        row = kind.line_model(
            position=position,
            product_id=line["product_id"],
            product_name=line["product_name"],
            quantity=line["quantity"],
            unit_price_cents=line["unit_price_cents"],
            unit_type=line["unit_type"],
            total_cents=line["total_cents"],
        )
        if kind.name == "purchase":
            row.is_cancelled = bool(line.get("is_cancelled"))
            row.is_return = bool(line.get("is_return"))
        rows.append(row)
    return rows


def _required_headroom(effects: list[tuple[int, int]]) -> dict[int, int]:
    """
    Units each product must have on hand for `effects` applied in order.

    A product that first gains 5 and then loses 8 needs 3 on hand; one that
    loses 8 first needs all 8, whatever comes later.
    """
    running: dict[int, int] = {}
    lowest: dict[int, int] = {}
    for product_id, delta in effects:
        running[product_id] = running.get(product_id, 0) + delta
        lowest[product_id] = min(lowest.get(product_id, 0), running[product_id])
    return {pid: -low for pid, low in lowest.items() if low < 0}


def _apply_effects(kind: DocumentKind, doc, effects: list[tuple[int, int, str]], actor_id, note=None) -> None:
    """Apply (product_id, delta, movement_type) one at a time and record movements."""
    for product_id, delta, movement_type in effects:
        if delta == 0:
            continue
        direction = stock_service.INCREASE if delta > 0 else stock_service.DECREASE
        new_level = stock_service.apply_delta(product_id, abs(delta), direction)
        db.session.add(StockMovement(
            product_id=product_id,
            movement_type=movement_type,
            quantity_delta=delta,
            stock_after=new_level,
            document_type=kind.name,
            document_id=doc.id,
            note=note,
            actor_user_id=actor_id,
        ))


def _line_movement_type(kind: DocumentKind, line: dict) -> str | None:
    if kind.name == "purchase" and line.get("is_return"):
        return "purchase_return"
    return kind.movement_type


def _net_movement_type(kind: DocumentKind, lines: list[dict], product_id: int, delta: int) -> str | None:
    """Movement type for a net update difference; a decrease backed by a return line is a return."""
    if delta < 0 and any(l["product_id"] == product_id and l.get("is_return") for l in lines):
        return _line_movement_type(kind, {"is_return": True})
    return kind.movement_type


# =============================================================================
# Numbering
# =============================================================================

def _is_numbered(kind: DocumentKind, doc) -> bool:
    return bool(getattr(doc, kind.number_field))


def _assign_number(kind: DocumentKind, doc) -> None:
    """Second phase for kinds numbered after commit."""
    number = sequence_service.allocate(kind.number_format(doc))
    setattr(doc, kind.number_field, number)
    if not doc.ref_num:
        doc.ref_num = number
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise translate_integrity_error(exc, document=True)


def _number_after_commit(kind: DocumentKind, doc) -> None:
    doc_id = doc.id
    try:
        _assign_number(kind, doc)
    except SequenceUnavailable as exc:
        current_app.logger.error(
            "%s %s saved without a number: %s", kind.label, doc_id, exc.message
        )
        raise SequenceUnavailable(
            f"{kind.label} was saved but could not be numbered. Retry numbering for document {doc_id}.",
            details={"document_id": doc_id, **exc.details},
        ) from exc


def assign_reference_number(kind_name: str, lookup: DocumentLookup):
    """
    Give a document its generated number if it does not have one yet.

    Idempotent: an already numbered document is returned unchanged.
    """
    kind = get_kind(kind_name)
    doc = _find(kind, lookup, deleted=None)
    if doc is None:
        raise NotFound(f"{kind.label} not found: {_describe(lookup)}")
    if _is_numbered(kind, doc):
        return doc
    _number_after_commit(kind, doc)
    return doc


# =============================================================================
# Create / update
# =============================================================================

def _link_purchase_order(doc: Purchase, order_id: int | None) -> None:
    """
    Tie a purchase to the order it receives.

    An explicit purchase_order_id must exist. Without one, an active order
    whose ref_num equals the purchase's ref_num is linked when there is one.
    Either way the purchase carries the order's reference number and the
    order is flagged as purchased.
    """
    query = db.session.query(PurchaseOrder).filter(PurchaseOrder.is_deleted.is_(False))
    if order_id is not None:
        order = query.filter(PurchaseOrder.id == order_id).first()
        if order is None:
            raise NotFound(f"Purchase order not found: {order_id}")
    elif doc.ref_num:
        order = query.filter(PurchaseOrder.ref_num == doc.ref_num).first()
        if order is None:
            return
    else:
        return

    doc.purchase_order_id = order.id
    if not doc.ref_num:
        doc.ref_num = order.ref_num
    order.is_purchased_created = True
    if order.status in ("draft", "pending", "approved"):
        order.status = "delivered"


def create_document(
    kind_name: str,
    data: dict,
    actor=None,
    attachment_path: str | None = None,
    *,
    discard_on_failure: bool = True,
):
    """
    Create a document with its stock effects.

    `attachment_path` is an already stored file. When it was uploaded for
    this request (discard_on_failure) it is removed if the document cannot
    be saved; a reference to an existing file is left alone.
    """
    kind = get_kind(kind_name)
    actor_id = actor.id if actor is not None else None
    committed = False

    try:
        header = _parse_header(kind, data, partial=False)
        items = parse_line_items(data.get("items"), allow_flags=kind.name == "purchase")
        lines = _resolve_lines(kind, items)

        effects = [(line["product_id"], line["effect"]) for line in lines]
        stock_service.check_availability(_required_headroom(effects))

        if not kind.numbered_after_commit:
            header[kind.number_field] = sequence_service.allocate(kind.number_format(None))

        purchase_order_id = header.pop("purchase_order_id", None)
        doc = kind.model(**header)
        doc.created_by_user_id = actor_id
        doc.attachment_path = attachment_path
        doc.lines = _build_lines(kind, lines)
        _apply_totals(kind, doc, lines)

        if kind.name == "purchase":
            _link_purchase_order(doc, purchase_order_id)

        db.session.add(doc)
        db.session.flush()

        _apply_effects(
            kind,
            doc,
            [(line["product_id"], line["effect"], _line_movement_type(kind, line)) for line in lines],
            actor_id,
        )
        db.session.commit()
        committed = True
    except IntegrityError as exc:
        db.session.rollback()
        raise translate_integrity_error(exc, document=True)
    except ServiceError:
        db.session.rollback()
        raise
    finally:
        if not committed and discard_on_failure:
            attachment_service.discard_upload(attachment_path)

    if kind.numbered_after_commit:
        _number_after_commit(kind, doc)

    current_app.logger.info(
        "%s created: %s by %s",
        kind.label,
        getattr(doc, kind.number_field) or doc.id,
        actor.username if actor is not None else "system",
    )
    return doc


def _net_effects(kind: DocumentKind, lines) -> "OrderedDict[int, int]":
    net: OrderedDict[int, int] = OrderedDict()
    for line in lines:
        net[line["product_id"]] = net.get(line["product_id"], 0) + line["effect"]
    return net


def _existing_lines(kind: DocumentKind, doc) -> list[dict]:
    return [
        {
            "product_id": row.product_id,
            "quantity": row.quantity,
            "effect": kind.line_effect({
                "quantity": row.quantity,
                "is_cancelled": getattr(row, "is_cancelled", False),
                "is_return": getattr(row, "is_return", False),
            }),
        }
        for row in doc.lines
    ]


def update_document(
    kind_name: str,
    lookup: DocumentLookup,
    data: dict,
    actor=None,
    attachment_path: str | None = None,
    *,
    discard_on_failure: bool = True,
):
    """
    Update an active document.

    When `items` is present the lines are replaced and only the net
    per-product stock difference between old and new lines is applied.
    Generated numbers never change. A new attachment replaces the old one;
    the old file is removed once the update is committed.
    """
    kind = get_kind(kind_name)
    actor_id = actor.id if actor is not None else None
    committed = False
    previous_attachment = None

    try:
        doc = _find(kind, lookup, for_update=True)
        if doc is None:
            raise NotFound(f"{kind.label} not found: {_describe(lookup)}")

        header = _parse_header(kind, data, partial=True)
        for key, value in header.items():
            setattr(doc, key, value)

        if kind.name == "purchase_order" and header.get("status") == "approved" and not doc.approved_at:
            doc.approved_by_user_id = actor_id
            doc.approved_at = utcnow()

        if "items" in data:
            items = parse_line_items(data.get("items"), allow_flags=kind.name == "purchase")
            new_lines = _resolve_lines(kind, items)

            before = _net_effects(kind, _existing_lines(kind, doc))
            after = _net_effects(kind, new_lines)
            diff: OrderedDict[int, int] = OrderedDict()
            for product_id in list(after.keys()) + [p for p in before.keys() if p not in after]:
                delta = after.get(product_id, 0) - before.get(product_id, 0)
                if delta:
                    diff[product_id] = delta

            stock_service.check_availability({pid: -d for pid, d in diff.items() if d < 0})

            doc.lines = _build_lines(kind, new_lines)
            _apply_totals(kind, doc, new_lines)
            db.session.flush()
            _apply_effects(
                kind,
                doc,
                [(pid, delta, _net_movement_type(kind, new_lines, pid, delta)) for pid, delta in diff.items()],
                actor_id,
                note="document updated",
            )
        elif kind.name == "sale" and ({"tax_cents", "discount_cents"} & header.keys()):
            _apply_totals(kind, doc, [{"total_cents": l.total_cents} for l in doc.lines])

        if attachment_path:
            previous_attachment = doc.attachment_path
            doc.attachment_path = attachment_path

        db.session.commit()
        committed = True
    except IntegrityError as exc:
        db.session.rollback()
        raise translate_integrity_error(exc, document=True)
    except ServiceError:
        db.session.rollback()
        raise
    finally:
        if not committed and discard_on_failure:
            attachment_service.discard_upload(attachment_path)

    if previous_attachment and previous_attachment != attachment_path:
        attachment_service.delete_attachment(previous_attachment)

    current_app.logger.info("%s updated: %s", kind.label, doc.ref_num or doc.id)
    return doc


def update_status(kind_name: str, lookup: DocumentLookup, status: str, actor=None):
    """Status change for kinds that have one (purchase orders, sales); no stock effect."""
    kind = get_kind(kind_name)
    if not kind.statuses:
        raise ValidationFailed([{"field": "status", "message": f"{kind.label} has no status"}])
    if status not in kind.statuses:
        raise ValidationFailed([{"field": "status", "message": f"status must be one of {', '.join(kind.statuses)}"}])

    doc = _find(kind, lookup, for_update=True)
    if doc is None:
        raise NotFound(f"{kind.label} not found: {_describe(lookup)}")

    doc.status = status
    if kind.name == "purchase_order" and status == "approved":
        doc.approved_by_user_id = actor.id if actor is not None else None
        doc.approved_at = utcnow()
    db.session.commit()

    current_app.logger.info("%s %s status -> %s", kind.label, doc.ref_num or doc.id, status)
    return doc


# =============================================================================
# Soft delete / restore / purge
# =============================================================================

def soft_delete_document(kind_name: str, lookup: DocumentLookup, actor=None):
    """
    Move an active document to the recycle bin.

    Stock effects are NOT reversed. An attachment that is missing or lives
    outside the upload root is logged and does not stop the delete.
    """
    kind = get_kind(kind_name)
    doc = _find(kind, lookup, for_update=True)
    if doc is None:
        raise NotFound(f"{kind.label} not found: {_describe(lookup)}")

    doc.is_deleted = True
    doc.deleted_by_user_id = actor.id if actor is not None else None
    doc.deleted_at = utcnow()

    moved_to = None
    if doc.attachment_path:
        try:
            moved_to = attachment_service.to_recycle_bin(doc.attachment_path, kind.category)
            doc.attachment_path = moved_to
        except (attachment_service.AttachmentMissing, ValidationFailed) as exc:
            current_app.logger.warning(
                "%s %s: attachment %s left in place (%s)", kind.label, doc.id, doc.attachment_path, exc
            )

    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        if moved_to:
            attachment_service.from_recycle_bin(moved_to, kind.category)
        raise

    current_app.logger.info("%s moved to recycle bin: %s", kind.label, doc.ref_num or doc.id)
    return doc


def restore_document(kind_name: str, lookup: DocumentLookup, actor=None):
    """Bring a soft-deleted document back; NotInRecycleBin unless it is deleted."""
    kind = get_kind(kind_name)
    doc = _find(kind, lookup, deleted=True, for_update=True)
    if doc is None:
        raise NotInRecycleBin(f"{kind.label} not found in recycle bin: {_describe(lookup)}")

    doc.is_deleted = False
    doc.deleted_by_user_id = None
    doc.deleted_at = None

    moved_to = None
    if doc.attachment_path:
        try:
            moved_to = attachment_service.from_recycle_bin(doc.attachment_path, kind.category)
            doc.attachment_path = moved_to
        except (attachment_service.AttachmentMissing, ValidationFailed) as exc:
            current_app.logger.warning(
                "%s %s: attachment %s left in place (%s)", kind.label, doc.id, doc.attachment_path, exc
            )

    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        if moved_to:
            attachment_service.to_recycle_bin(moved_to, kind.category)
        raise

    current_app.logger.info(
        "%s restored: %s by %s",
        kind.label,
        doc.ref_num or doc.id,
        actor.username if actor is not None else "system",
    )
    return doc


def purge_document(kind_name: str, lookup: DocumentLookup, actor=None) -> dict:
    """Permanently delete a document (active or recycled) and its attachment file."""
    kind = get_kind(kind_name)
    doc = _find(kind, lookup, deleted=None, for_update=True)
    if doc is None:
        raise NotFound(f"{kind.label} not found: {_describe(lookup)}")

    summary = {"id": doc.id, "ref_num": doc.ref_num}
    attachment_path = doc.attachment_path
    db.session.delete(doc)
    db.session.commit()

    attachment_service.delete_attachment(attachment_path)
    current_app.logger.info(
        "%s permanently deleted: %s by %s",
        kind.label,
        summary["ref_num"] or summary["id"],
        actor.username if actor is not None else "system",
    )
    return summary


# =============================================================================
# Listing / search (active documents only)
# =============================================================================

SORTABLE_FIELDS = ("created_at", "updated_at", "ref_num", "total_cents")


def paginate(query, page: int, limit: int) -> dict:
    page = max(page or 1, 1)
    limit = min(max(limit or 10, 1), 500)
    total = query.count()
    items = query.offset((page - 1) * limit).limit(limit).all()
    return {
        "items": items,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": (total + limit - 1) // limit,
        },
    }


def date_bounds(start_date: str | None, end_date: str | None) -> tuple[datetime | None, datetime | None]:
    try:
        return parse_iso_datetime(start_date), end_of_day(end_date)
    except ValueError:
        raise ValidationFailed([{"field": "start_date/end_date", "message": "Dates must be ISO-8601"}])


def _search_filter(kind: DocumentKind, term: str):
    pattern = f"%{term}%"
    model = kind.model
    clauses = [
        model.ref_num.ilike(pattern),
        getattr(model, kind.party_field).ilike(pattern),
        model.lines.any(kind.line_model.product_name.ilike(pattern)),
    ]
    if hasattr(model, "receipt_number"):
        clauses.append(model.receipt_number.ilike(pattern))
    return or_(*clauses)


def list_documents(
    kind_name: str,
    *,
    page: int = 1,
    limit: int = 10,
    search: str | None = None,
    party: str | None = None,
    status: str | None = None,
    start_date: str | None = None,
    end_date: str | None = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
    include_all: bool = False,
) -> dict:
    kind = get_kind(kind_name)
    model = kind.model
    query = db.session.query(model).filter(model.is_deleted.is_(False))

    if search:
        query = query.filter(_search_filter(kind, search.strip()))
    if party:
        query = query.filter(getattr(model, kind.party_field).ilike(f"%{party.strip()}%"))
    if status and kind.statuses:
        query = query.filter(model.status == status)

    start, end = date_bounds(start_date, end_date)
    if start:
        query = query.filter(model.created_at >= start)
    if end:
        query = query.filter(model.created_at <= end)

    if sort_by not in SORTABLE_FIELDS:
        sort_by = "created_at"
    column = getattr(model, sort_by)
    ordering = column.asc() if sort_order == "asc" else column.desc()
    query = query.order_by(ordering, model.id.desc())

    if include_all:
        items = query.all()
        return {
            "items": items,
            "pagination": {"page": 1, "limit": len(items), "total": len(items), "pages": 1},
        }
    return paginate(query, page, limit)


def search_documents(kind_name: str, q: str, limit: int = 20) -> list:
    kind = get_kind(kind_name)
    term = (q or "").strip()
    if not term:
        raise ValidationFailed([{"field": "q", "message": "Search query is required"}])
    return (
        db.session.query(kind.model)
        .filter(kind.model.is_deleted.is_(False), _search_filter(kind, term))
        .order_by(kind.model.created_at.desc(), kind.model.id.desc())
        .limit(min(max(limit, 1), 100))
        .all()
    )
