# Overview: Shared page/per_page handling for list endpoints.

from __future__ import annotations

from typing import Callable


def paginate_query(query, page: int | None, per_page: int | None, serialize: Callable, *, default_per_page: int = 50) -> dict:
    """
    Return {"items", "count", "pagination"} for an ordered query.

    page is 1-indexed; per_page is capped at 100.
    """
    per_page = min(per_page or default_per_page, 100)
    per_page = max(per_page, 1)
    page = max(page or 1, 1)

    total = query.order_by(None).count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1

    rows = query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [serialize(row) for row in rows],
        "count": len(rows),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }
