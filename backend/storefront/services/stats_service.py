# Overview: Service-layer operations for dashboard statistics; read-only aggregation over orders, products and users.

from __future__ import annotations

from collections import Counter
from datetime import timedelta

from sqlalchemy import func
from sqlalchemy.orm import selectinload

from ..extensions import db
from ..models import Order, Product, Role, User, UserRole
from ..models.auth import ROLE_ADMIN, ROLE_MODERATOR
from ..models.orders import ORDER_STATUSES, COMPLETED_ORDER_STATUSES
from storefront.time_utils import utcnow, to_naive_utc, to_utc_z
from .scope_service import item_in_scope, order_in_scope, product_scope, scope_products_query

LOW_STOCK_THRESHOLD = 10
TOP_PRODUCTS_LIMIT = 5
RECENT_ORDERS_LIMIT = 5
REVENUE_WINDOW_DAYS = 30


def _count_users_with_role(role_name: str) -> int:
    return (
        db.session.query(func.count(func.distinct(UserRole.user_id)))
        .join(Role, Role.id == UserRole.role_id)
        .filter(Role.name == role_name)
        .scalar()
    ) or 0


def _user_stats(scoped: bool) -> dict:
    if scoped:
        return {"total": 0, "admins": 0, "moderators": 0}
    return {
        "total": db.session.query(func.count(User.id)).scalar() or 0,
        "admins": _count_users_with_role(ROLE_ADMIN),
        "moderators": _count_users_with_role(ROLE_MODERATOR),
    }


def get_dashboard_stats(user_id: int, roles) -> dict:
    """
    Dashboard rollup for admins and moderators.

    A moderator without the admin role only sees their own products, the
    orders that contain at least one of them, and revenue from their own
    line items. User counts are hidden from them (all zero).

    Revenue figures only count orders whose status is payment_confirmed,
    shipped or delivered. All money values are integer cents; all day
    boundaries are UTC.
    """
    product_ids = product_scope(user_id, roles)
    scoped = product_ids is not None

    products = scope_products_query(db.session.query(Product), user_id, roles).all()

    if scoped and not product_ids:
        orders = []
    else:
        orders = db.session.query(Order).options(selectinload(Order.items)).all()
        if scoped:
            orders = [o for o in orders if order_in_scope(o, product_ids)]

    def order_revenue(order: Order) -> int:
        if not scoped:
            return order.total_cents
        return sum(item.subtotal_cents for item in order.items if item_in_scope(item, product_ids))

    completed = [o for o in orders if o.status in COMPLETED_ORDER_STATUSES]

    now = utcnow()
    start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
    start_of_month = start_of_day.replace(day=1)
    window_start = now - timedelta(days=REVENUE_WINDOW_DAYS)

    total_revenue = sum(order_revenue(o) for o in completed)
    month_revenue = sum(order_revenue(o) for o in completed if to_naive_utc(o.created_at) >= start_of_month)
    today_revenue = sum(order_revenue(o) for o in completed if to_naive_utc(o.created_at) >= start_of_day)
    average_order = round(total_revenue / len(completed)) if completed else 0

    status_counts = Counter(o.status for o in orders)

    total_quantity_sold = sum(
        item.quantity
        for o in orders
        for item in o.items
        if item_in_scope(item, product_ids)
    )

    by_name: dict[str, dict] = {}
    for o in completed:
        for item in o.items:
            if not item_in_scope(item, product_ids):
                continue
            entry = by_name.setdefault(item.product_name, {"name": item.product_name, "quantity": 0, "revenue_cents": 0})
            entry["quantity"] += item.quantity
            entry["revenue_cents"] += item.subtotal_cents
    top_products = sorted(by_name.values(), key=lambda e: e["revenue_cents"], reverse=True)[:TOP_PRODUCTS_LIMIT]

    by_day: dict[str, dict] = {}
    for o in completed:
        created = to_naive_utc(o.created_at)
        if created < window_start:
            continue
        day = created.strftime("%Y-%m-%d")
        entry = by_day.setdefault(day, {"date": day, "revenue_cents": 0, "orders": 0})
        entry["revenue_cents"] += order_revenue(o)
        entry["orders"] += 1
    revenue_by_day = [by_day[day] for day in sorted(by_day)]

    recent = sorted(orders, key=lambda o: (to_naive_utc(o.created_at), o.id), reverse=True)[:RECENT_ORDERS_LIMIT]

    return {
        "revenue": {
            "total": total_revenue,
            "this_month": month_revenue,
            "today": today_revenue,
            "average_order": average_order,
        },
        "orders": {
            "total": len(orders),
            **{status: status_counts.get(status, 0) for status in ORDER_STATUSES},
        },
        "products": {
            "total": len(products),
            "in_stock": sum(1 for p in products if p.stock_quantity > 0),
            "out_of_stock": sum(1 for p in products if p.stock_quantity == 0),
            "low_stock": sum(1 for p in products if 0 < p.stock_quantity <= LOW_STOCK_THRESHOLD),
        },
        "users": _user_stats(scoped),
        "sales": {
            "total_quantity_sold": total_quantity_sold,
            "top_products": top_products,
        },
        "revenue_by_day": revenue_by_day,
        "recent_orders": [
            {
                "id": o.id,
                "order_number": o.order_number,
                "total_cents": o.total_cents,
                "status": o.status,
                "created_at": to_utc_z(o.created_at),
            }
            for o in recent
        ],
    }
