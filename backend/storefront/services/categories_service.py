from __future__ import annotations

from ..extensions import db
from ..models import Category, Product
from ..validation import ConflictError

CATEGORY_MUTABLE_FIELDS = {"name", "description", "is_active"}


class CategoryNotFoundError(Exception):
    """Raised when a category id does not resolve."""
    pass


def list_categories(active_only: bool = False) -> list[Category]:
    query = db.session.query(Category)
    if active_only:
        query = query.filter(Category.is_active.is_(True))
    return query.order_by(Category.name.asc()).all()


def get_category(category_id: int) -> Category:
    category = db.session.query(Category).filter_by(id=category_id).first()
    if not category:
        raise CategoryNotFoundError(f"Category with ID {category_id} not found")
    return category


def _require_unique_name(name: str, exclude_id: int | None = None) -> None:
    query = db.session.query(Category).filter(Category.name == name)
    if exclude_id is not None:
        query = query.filter(Category.id != exclude_id)
    if query.first():
        raise ConflictError(f'Category with name "{name}" already exists')


def create_category(*, patch: dict) -> Category:
    _require_unique_name(patch["name"])

    category = Category(is_active=True)
    for k, v in patch.items():
        if k in CATEGORY_MUTABLE_FIELDS:
            setattr(category, k, v)

    db.session.add(category)
    db.session.commit()
    return category


def update_category(category_id: int, *, patch: dict) -> Category:
    category = get_category(category_id)

    if "name" in patch and patch["name"] != category.name:
        _require_unique_name(patch["name"], exclude_id=category.id)

    for k, v in patch.items():
        if k in CATEGORY_MUTABLE_FIELDS:
            setattr(category, k, v)

    db.session.commit()
    return category


def delete_category(category_id: int) -> Category:
    """Delete a category. Refused while products still reference it."""
    category = get_category(category_id)

    in_use = db.session.query(Product.id).filter(Product.category_id == category.id).count()
    if in_use:
        raise ConflictError(f"Category is used by {in_use} product(s)")

    db.session.delete(category)
    db.session.commit()
    return category
