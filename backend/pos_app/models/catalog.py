from __future__ import annotations

from ..extensions import db
from pos_app.time_utils import to_utc_z, utcnow


class Product(db.Model):
    """
    Sellable catalog item.

    STOCK DESIGN DECISION:
    Product.stock is the authoritative on-hand count. It is never written
    with a client-side read-modify-write; every change goes through the
    compare-and-swap helpers in inventory_service (decrement_stock,
    adjust_stock), keyed on version_id.

    version_id is also the ORM optimistic-lock column, so catalog edits
    (name, price, ...) racing a stock change fail with StaleDataError
    instead of silently overwriting.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
        db.CheckConstraint("price_cents >= 0", name="ck_products_price_non_negative"),
        db.Index("ix_products_name", "name"),
        db.Index("ix_products_category", "category"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)

    # Authoritative storage in cents (frontend may only format for display)
    price_cents = db.Column(db.Integer, nullable=False, default=0)

    category = db.Column(db.String(64), nullable=False, default="")
    stock = db.Column(db.Integer, nullable=False, default=0)
    image_url = db.Column(db.String(1024), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} stock={self.stock}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "price_cents": self.price_cents,
            "category": self.category,
            "stock": self.stock,
            "image_url": self.image_url,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class InventoryLogEntry(db.Model):
    """
    Append-only audit trail of stock changes.

    One row per successful stock mutation. new_stock is the product's stock
    immediately after that mutation, so the latest entry for a product
    always matches Product.stock.
    """
    __tablename__ = "inventory_logs"
    __table_args__ = (
        db.Index("ix_inventory_logs_product_created", "product_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    CHANGE_TYPES = ("inbound", "outbound", "adjustment")

    id = db.Column(db.Integer, primary_key=True)

    # No FK: log rows outlive deleted products
    product_id = db.Column(db.Integer, nullable=False, index=True)
    product_name = db.Column(db.String(255), nullable=False)

    change_type = db.Column(db.String(16), nullable=False)
    quantity_change = db.Column(db.Integer, nullable=False)
    new_stock = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "change_type": self.change_type,
            "quantity_change": self.quantity_change,
            "new_stock": self.new_stock,
            "reason": self.reason,
            "created_at": to_utc_z(self.created_at),
        }
