# Overview: Service-layer operations for reporting; read-only dashboards over sales.

from __future__ import annotations

from datetime import datetime, time, timedelta

from sqlalchemy import func

from ..extensions import db
from ..models import Product, Sale, SaleItem
from ..time_utils import today

TOP_PRODUCTS_LIMIT = 10


def _day_bounds(now: datetime | None) -> tuple[datetime, datetime]:
    start = datetime.combine(today(now), time.min)
    return start, start + timedelta(days=1)


def today_dashboard(now: datetime | None = None) -> dict:
    """
    Today's sales: count, total, average, per-hour breakdown and the ten
    best-selling products by quantity.
    """
    start, end = _day_bounds(now)

    count, total = (
        db.session.query(
            func.count(Sale.id),
            func.coalesce(func.sum(Sale.total_amount_cents), 0),
        )
        .filter(Sale.created_at >= start, Sale.created_at < end)
        .one()
    )
    total = int(total)
    average = total // count if count else 0

    # Hour bucketing in Python keeps this independent of the SQL dialect.
    hourly: dict[int, dict] = {}
    rows = (
        db.session.query(Sale.created_at, Sale.total_amount_cents)
        .filter(Sale.created_at >= start, Sale.created_at < end)
        .all()
    )
    for created_at, amount in rows:
        bucket = hourly.setdefault(created_at.hour, {"hour": created_at.hour, "count": 0, "total_cents": 0})
        bucket["count"] += 1
        bucket["total_cents"] += amount

    top = (
        db.session.query(
            Product.id,
            Product.name,
            func.sum(SaleItem.quantity).label("quantity_sold"),
            func.sum(SaleItem.total_price_cents).label("revenue_cents"),
        )
        .join(SaleItem, SaleItem.product_id == Product.id)
        .join(Sale, Sale.id == SaleItem.sale_id)
        .filter(Sale.created_at >= start, Sale.created_at < end)
        .group_by(Product.id, Product.name)
        .order_by(func.sum(SaleItem.quantity).desc(), Product.id.asc())
        .limit(TOP_PRODUCTS_LIMIT)
        .all()
    )

    return {
        "date": start.date().isoformat(),
        "count": count,
        "total_cents": total,
        "average_cents": average,
        "hourly": [hourly[h] for h in sorted(hourly)],
        "top_products": [
            {
                "product_id": pid,
                "name": name,
                "quantity_sold": int(qty),
                "revenue_cents": int(revenue),
            }
            for pid, name, qty, revenue in top
        ],
    }


def recent_transactions(cashier_id: int | None = None, limit: int = 10) -> list[dict]:
    """Latest sales (optionally for one cashier) with their item counts."""
    item_count = (
        db.session.query(func.count(SaleItem.id))
        .filter(SaleItem.sale_id == Sale.id)
        .correlate(Sale)
        .scalar_subquery()
    )
    q = db.session.query(Sale, item_count.label("item_count"))
    if cashier_id is not None:
        q = q.filter(Sale.cashier_id == cashier_id)
    limit = max(1, min(limit, 100))
    rows = q.order_by(Sale.created_at.desc(), Sale.id.desc()).limit(limit).all()

    out = []
    for sale, items in rows:
        data = sale.to_dict()
        data["item_count"] = int(items or 0)
        data["customer_name"] = sale.customer.name if sale.customer else None
        out.append(data)
    return out
