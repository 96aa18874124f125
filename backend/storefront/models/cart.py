from __future__ import annotations

from ..extensions import db
from storefront.time_utils import to_utc_z


class CartLine(db.Model):
    """
    One product in a user's cart.

    (user_id, product_id) is unique: adding the same product again bumps the
    quantity of the existing line. This constraint is the only guard against
    duplicate lines when two adds race.
    """
    __tablename__ = "cart_lines"
    __table_args__ = (
        db.UniqueConstraint("user_id", "product_id", name="uq_cart_lines_user_product"),
        db.Index("ix_cart_lines_user_added", "user_id", "added_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False, default=1)

    added_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    product = db.relationship("Product")
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "added_at": to_utc_z(self.added_at),
        }
