from __future__ import annotations

from ..extensions import db
from storefront.time_utils import to_utc_z

ORDER_STATUS_PENDING = "pending"
ORDER_STATUS_PREPARATION = "preparation"
ORDER_STATUS_PAYMENT_CONFIRMED = "payment_confirmed"
ORDER_STATUS_SHIPPED = "shipped"
ORDER_STATUS_DELIVERED = "delivered"
ORDER_STATUS_CANCELLED = "cancelled"

ORDER_STATUSES = (
    ORDER_STATUS_PENDING,
    ORDER_STATUS_PREPARATION,
    ORDER_STATUS_PAYMENT_CONFIRMED,
    ORDER_STATUS_SHIPPED,
    ORDER_STATUS_DELIVERED,
    ORDER_STATUS_CANCELLED,
)

# Revenue only counts once payment is confirmed
COMPLETED_ORDER_STATUSES = (
    ORDER_STATUS_PAYMENT_CONFIRMED,
    ORDER_STATUS_SHIPPED,
    ORDER_STATUS_DELIVERED,
)

PAYMENT_STATUS_PENDING = "pending"
PAYMENT_STATUS_PAID = "paid"
PAYMENT_STATUS_FAILED = "failed"
PAYMENT_STATUS_REFUNDED = "refunded"

PAYMENT_STATUSES = (
    PAYMENT_STATUS_PENDING,
    PAYMENT_STATUS_PAID,
    PAYMENT_STATUS_FAILED,
    PAYMENT_STATUS_REFUNDED,
)


class Order(db.Model):
    """
    Order document created from a cart at checkout.

    Immutable after creation except for status and payment_status.
    Orders are never deleted; cancellation is a status.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.UniqueConstraint("order_number", name="uq_orders_order_number"),
        db.Index("ix_orders_user_created", "user_id", "created_at"),
        db.Index("ix_orders_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    # Human-readable order number (e.g., "ORD-20260114-K3Z9Q")
    order_number = db.Column(db.String(32), nullable=False)

    total_cents = db.Column(db.Integer, nullable=False)

    status = db.Column(db.String(32), nullable=False, default=ORDER_STATUS_PENDING, index=True)
    payment_status = db.Column(db.String(16), nullable=False, default=PAYMENT_STATUS_PENDING, index=True)

    shipping_street = db.Column(db.String(255), nullable=False)
    shipping_city = db.Column(db.String(120), nullable=False)
    shipping_postal_code = db.Column(db.String(32), nullable=False)
    shipping_country = db.Column(db.String(120), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
    version_id = db.Column(db.Integer, nullable=False, default=1)

    user = db.relationship("User", backref=db.backref("orders", lazy=True))
    items = db.relationship(
        "OrderItem",
        backref="order",
        lazy=True,
        order_by="OrderItem.id",
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def shipping_address(self) -> dict:
        return {
            "street": self.shipping_street,
            "city": self.shipping_city,
            "postal_code": self.shipping_postal_code,
            "country": self.shipping_country,
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_number": self.order_number,
            "user_id": self.user_id,
            "user": self.user.to_summary() if self.user else None,
            "items": [item.to_dict() for item in self.items],
            "total_cents": self.total_cents,
            "status": self.status,
            "payment_status": self.payment_status,
            "shipping_address": self.shipping_address,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }


class OrderItem(db.Model):
    """
    Snapshot of one cart line at checkout.

    product_id is a weak reference (no foreign key): the product may be
    deleted later while the order keeps its name and price as purchased.
    """
    __tablename__ = "order_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, nullable=False, index=True)

    product_name = db.Column(db.String(255), nullable=False)
    product_price_cents = db.Column(db.Integer, nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    subtotal_cents = db.Column(db.Integer, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "product_price_cents": self.product_price_cents,
            "quantity": self.quantity,
            "subtotal_cents": self.subtotal_cents,
        }
