from __future__ import annotations

from ..extensions import db
from inventory_api.time_utils import to_utc_z, utcnow


MOVEMENT_TYPES = ("purchase", "sale", "purchase_return", "sales_return", "adjustment")


class StockMovement(db.Model):
    """
    Append-only audit row for every stock change.

    quantity_delta is signed; stock_after is the product's level right after
    the change was applied. Written by the document and product services in
    the same transaction as the change itself, never updated afterwards.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_movements_product_occurred", "product_id", "occurred_at"),
        db.Index("ix_stock_movements_document", "document_type", "document_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    movement_type = db.Column(db.String(32), nullable=False)
    quantity_delta = db.Column(db.Integer, nullable=False)
    stock_after = db.Column(db.Integer, nullable=True)

    document_type = db.Column(db.String(32), nullable=True)
    document_id = db.Column(db.Integer, nullable=True)
    note = db.Column(db.Text, nullable=True)

    actor_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    product = db.relationship("Product", backref=db.backref("movements", lazy="dynamic"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "movement_type": self.movement_type,
            "quantity_delta": self.quantity_delta,
            "stock_after": self.stock_after,
            "document_type": self.document_type,
            "document_id": self.document_id,
            "note": self.note,
            "actor_user_id": self.actor_user_id,
            "occurred_at": to_utc_z(self.occurred_at),
        }
