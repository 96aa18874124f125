from __future__ import annotations

from ..extensions import db
from storefront.time_utils import to_utc_z


class Category(db.Model):
    """Flat product category. Names are unique across the catalog."""
    __tablename__ = "categories"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False, unique=True)
    description = db.Column(db.Text, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Category id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class Product(db.Model):
    """
    Sellable product with its stock on hand.

    OWNERSHIP: owner_user_id is the moderator who created the product. Admin
    created products have no owner. Moderators only see and manage what they
    own (see scope_service).

    STOCK: stock_quantity is mutated by catalog edits and by the order
    workflow (decrement at checkout, increment on cancellation). It must never
    go negative; version_id makes concurrent stock writes fail loudly with
    StaleDataError instead of silently overwriting each other.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("stock_quantity >= 0", name="ck_products_stock_non_negative"),
        db.CheckConstraint("price_cents IS NULL OR price_cents >= 0", name="ck_products_price_non_negative"),
        db.Index("ix_products_category_name", "category_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    # Authoritative storage in cents (frontend may only format for display).
    # Nullable: an unpriced product cannot be added to a cart.
    price_cents = db.Column(db.Integer, nullable=True)

    # Ordered list of image URLs
    images = db.Column(db.JSON, nullable=False, default=list)
    # Ordered list of {"key": ..., "value": ...} pairs
    specifications = db.Column(db.JSON, nullable=False, default=list)

    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=False, index=True)
    owner_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    stock_quantity = db.Column(db.Integer, nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    category = db.relationship("Category", backref=db.backref("products", lazy=True))
    owner = db.relationship("User", backref=db.backref("owned_products", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} stock={self.stock_quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "price_cents": self.price_cents,
            "images": list(self.images or []),
            "specifications": list(self.specifications or []),
            "category_id": self.category_id,
            "owner_user_id": self.owner_user_id,
            "stock_quantity": self.stock_quantity,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
