from __future__ import annotations

from sqlalchemy.orm import declared_attr

from ..extensions import db
from inventory_api.time_utils import to_utc_z, utcnow


class Counter(db.Model):
    """
    Named monotonic counter backing generated document numbers.

    One row per (prefix, date key), e.g. name="R-250817". Rows are only ever
    changed by a single `UPDATE ... SET seq = seq + 1`; the unique index on
    name settles the race when two callers create the same counter.
    """
    __tablename__ = "counters"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False, unique=True)
    seq = db.Column(db.Integer, nullable=False, default=0)
    date = db.Column(db.String(16), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "seq": self.seq,
            "date": self.date,
            "updated_at": to_utc_z(self.updated_at),
        }


class LineItemMixin:
    """
    Columns shared by every document line.

    product_name is a snapshot taken when the line is written; later product
    renames never change a historical document.
    """
    id = db.Column(db.Integer, primary_key=True)
    position = db.Column(db.Integer, nullable=False, default=0)
    product_name = db.Column(db.String(200), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False, default=0)
    unit_type = db.Column(db.String(32), nullable=True)
    total_cents = db.Column(db.Integer, nullable=False, default=0)

    @declared_attr
    def product_id(cls):
        return db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "unit_type": self.unit_type,
            "total_cents": self.total_cents,
        }


class DocumentMixin:
    """
    Columns shared by every transactional document.

    Soft delete: is_deleted/deleted_by/deleted_at are set together and
    cleared together. ref_num stays unique across active AND deleted rows,
    so a deleted document still blocks its number until it is purged.
    """
    # JSON / multipart field carrying the attachment for this kind
    ATTACHMENT_FIELD = "attachment"

    id = db.Column(db.Integer, primary_key=True)
    ref_num = db.Column(db.String(64), nullable=True, unique=True)
    remarks = db.Column(db.Text, nullable=True)

    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False, default=0)

    # Relative path, e.g. "/uploads/invoices/1723880000000-invoiceFile.pdf"
    attachment_path = db.Column(db.String(500), nullable=True)

    is_deleted = db.Column(db.Boolean, nullable=False, default=False, index=True)
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    @declared_attr
    def created_by_user_id(cls):
        return db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    @declared_attr
    def deleted_by_user_id(cls):
        return db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    def _base_dict(self) -> dict:
        return {
            "id": self.id,
            "ref_num": self.ref_num,
            "remarks": self.remarks,
            "items": [line.to_dict() for line in self.lines],
            "subtotal_cents": self.subtotal_cents,
            "total_cents": self.total_cents,
            self.ATTACHMENT_FIELD: self.attachment_path,
            "created_by_user_id": self.created_by_user_id,
            "is_deleted": self.is_deleted,
            "deleted_by_user_id": self.deleted_by_user_id,
            "deleted_at": to_utc_z(self.deleted_at),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


# =============================================================================
# Purchases (goods received; increase stock)
# =============================================================================

class PurchaseLine(LineItemMixin, db.Model):
    __tablename__ = "purchase_lines"
    __table_args__ = ({"sqlite_autoincrement": True},)

    purchase_id = db.Column(db.Integer, db.ForeignKey("purchases.id", ondelete="CASCADE"), nullable=False, index=True)

    # Cancelled lines carry no stock effect; returned lines take stock back out.
    # Either way the line contributes 0 to the document total.
    is_cancelled = db.Column(db.Boolean, nullable=False, default=False)
    is_return = db.Column(db.Boolean, nullable=False, default=False)

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["is_cancelled"] = self.is_cancelled
        data["is_return"] = self.is_return
        return data


class Purchase(DocumentMixin, db.Model):
    __tablename__ = "purchases"
    __table_args__ = ({"sqlite_autoincrement": True},)

    ATTACHMENT_FIELD = "invoice_file"

    receipt_number = db.Column(db.String(64), nullable=True, unique=True)
    vendor = db.Column(db.String(200), nullable=False, index=True)
    purchase_date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    purchase_order_id = db.Column(db.Integer, db.ForeignKey("purchase_orders.id"), nullable=True, index=True)

    cancelled_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    cancelled_qty = db.Column(db.Integer, nullable=False, default=0)
    return_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    return_qty = db.Column(db.Integer, nullable=False, default=0)

    lines = db.relationship(
        "PurchaseLine",
        order_by="PurchaseLine.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    purchase_order = db.relationship("PurchaseOrder", foreign_keys=[purchase_order_id])

    def to_dict(self) -> dict:
        data = self._base_dict()
        data.update({
            "receipt_number": self.receipt_number,
            "vendor": self.vendor,
            "purchase_date": to_utc_z(self.purchase_date),
            "purchase_order_id": self.purchase_order_id,
            "cancelled_amount_cents": self.cancelled_amount_cents,
            "cancelled_qty": self.cancelled_qty,
            "return_amount_cents": self.return_amount_cents,
            "return_qty": self.return_qty,
        })
        return data


# =============================================================================
# Purchase orders (no stock effect)
# =============================================================================

PURCHASE_ORDER_STATUSES = ("draft", "pending", "approved", "delivered", "cancelled")


class PurchaseOrderLine(LineItemMixin, db.Model):
    __tablename__ = "purchase_order_lines"
    __table_args__ = ({"sqlite_autoincrement": True},)

    purchase_order_id = db.Column(
        db.Integer, db.ForeignKey("purchase_orders.id", ondelete="CASCADE"), nullable=False, index=True
    )


class PurchaseOrder(DocumentMixin, db.Model):
    __tablename__ = "purchase_orders"
    __table_args__ = ({"sqlite_autoincrement": True},)

    vendor = db.Column(db.String(200), nullable=False, index=True)
    site_type = db.Column(db.String(8), nullable=True)
    status = db.Column(db.String(16), nullable=False, default="draft", index=True)
    order_date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    expected_delivery_date = db.Column(db.DateTime(timezone=True), nullable=True)

    approved_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # Set once a purchase has been received against this order
    is_purchased_created = db.Column(db.Boolean, nullable=False, default=False)

    lines = db.relationship(
        "PurchaseOrderLine",
        order_by="PurchaseOrderLine.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def to_dict(self) -> dict:
        data = self._base_dict()
        data.update({
            "vendor": self.vendor,
            "site_type": self.site_type,
            "status": self.status,
            "order_date": to_utc_z(self.order_date),
            "expected_delivery_date": to_utc_z(self.expected_delivery_date),
            "approved_by_user_id": self.approved_by_user_id,
            "approved_at": to_utc_z(self.approved_at),
            "is_purchased_created": self.is_purchased_created,
        })
        return data


# =============================================================================
# Purchase returns (goods sent back to the vendor; decrease stock)
# =============================================================================

class PurchaseReturnLine(LineItemMixin, db.Model):
    __tablename__ = "purchase_return_lines"
    __table_args__ = ({"sqlite_autoincrement": True},)

    purchase_return_id = db.Column(
        db.Integer, db.ForeignKey("purchase_returns.id", ondelete="CASCADE"), nullable=False, index=True
    )


class PurchaseReturn(DocumentMixin, db.Model):
    __tablename__ = "purchase_returns"
    __table_args__ = ({"sqlite_autoincrement": True},)

    ATTACHMENT_FIELD = "invoice_file"

    receipt_number = db.Column(db.String(64), nullable=True, unique=True)
    vendor = db.Column(db.String(200), nullable=False, index=True)
    return_date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    lines = db.relationship(
        "PurchaseReturnLine",
        order_by="PurchaseReturnLine.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def to_dict(self) -> dict:
        data = self._base_dict()
        data.update({
            "receipt_number": self.receipt_number,
            "vendor": self.vendor,
            "return_date": to_utc_z(self.return_date),
        })
        return data


# =============================================================================
# Sales (decrease stock)
# =============================================================================

SALE_STATUSES = ("pending", "paid", "cancelled", "refunded")
PAYMENT_METHODS = ("cash", "card", "bank_transfer", "credit", "other")


class SaleLine(LineItemMixin, db.Model):
    __tablename__ = "sale_lines"
    __table_args__ = ({"sqlite_autoincrement": True},)

    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id", ondelete="CASCADE"), nullable=False, index=True)


class Sale(DocumentMixin, db.Model):
    """
    Sale invoice.

    total = subtotal + tax - discount. The invoice number (ref_num) is
    allocated before the row is written, unlike the purchase-side documents.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.CheckConstraint("total_cents >= 0", name="ck_sales_total_non_negative"),
        {"sqlite_autoincrement": True},
    )

    customer_name = db.Column(db.String(200), nullable=True, index=True)
    customer_email = db.Column(db.String(255), nullable=True)
    customer_phone = db.Column(db.String(64), nullable=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    sale_date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    payment_method = db.Column(db.String(32), nullable=False, default="cash")

    lines = db.relationship(
        "SaleLine",
        order_by="SaleLine.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def to_dict(self) -> dict:
        data = self._base_dict()
        data.update({
            "invoice_number": self.ref_num,
            "customer_name": self.customer_name,
            "customer_email": self.customer_email,
            "customer_phone": self.customer_phone,
            "customer_id": self.customer_id,
            "sale_date": to_utc_z(self.sale_date),
            "tax_cents": self.tax_cents,
            "discount_cents": self.discount_cents,
            "status": self.status,
            "payment_method": self.payment_method,
        })
        return data
