# backend/posledger/services/products_service.py
"""
Products Service

Catalog CRUD. Prices and descriptive fields are edited here; stock is not.
Initial stock given at creation is posted through stock_service as an
"in" movement in the same transaction as the product insert.
"""
from __future__ import annotations

from sqlalchemy import or_

from ..extensions import db
from ..errors import ConflictError, NotFoundError
from ..models import Product
from . import stock_service
from .activity_service import log_activity
from .concurrency import lock_for_update, run_with_retry, unit_of_work
from .pagination import paginate_query

PRODUCT_MUTABLE_FIELDS = {
    "sku", "barcode", "name", "description", "category", "supplier",
    "price_cents", "cost_cents", "min_stock_level", "is_active",
}


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _ensure_unique_codes(sku: str | None, barcode: str | None, exclude_id: int | None = None) -> None:
    if sku:
        q = db.session.query(Product.id).filter(Product.sku == sku)
        if exclude_id is not None:
            q = q.filter(Product.id != exclude_id)
        if q.first() is not None:
            raise ConflictError("SKU already exists")
    if barcode:
        q = db.session.query(Product.id).filter(Product.barcode == barcode)
        if exclude_id is not None:
            q = q.filter(Product.id != exclude_id)
        if q.first() is not None:
            raise ConflictError("Barcode already exists")


def list_products(
    *,
    search: str | None = None,
    category: str | None = None,
    max_stock: int | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """Active products ordered by name with optional search/filter and pagination."""
    q = db.session.query(Product).filter(Product.is_active.is_(True))
    if search:
        term = f"%{search.strip()}%"
        q = q.filter(or_(Product.name.ilike(term), Product.sku.ilike(term), Product.barcode.ilike(term)))
    if category:
        q = q.filter(Product.category == category)
    if max_stock is not None:
        q = q.filter(Product.stock_quantity <= max_stock)
    q = q.order_by(Product.name.asc(), Product.id.asc())
    return paginate_query(q, page, per_page, lambda p: p.to_dict())


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None or not product.is_active:
        raise NotFoundError("Product not found")
    return product


def lookup_product(identifier: str) -> Product:
    """Find an active product by exact SKU or barcode."""
    product = (
        db.session.query(Product)
        .filter(
            or_(Product.sku == identifier, Product.barcode == identifier),
            Product.is_active.is_(True),
        )
        .order_by(Product.id.asc())
        .first()
    )
    if product is None:
        raise NotFoundError("Product not found")
    return product


def create_product(*, patch: dict, user_id: int | None = None) -> Product:
    """
    Create product using a validated patch dict.

    Raises:
        ConflictError: SKU or barcode already used
    """
    initial_stock = patch.get("stock_quantity") or 0

    def _op():
        with unit_of_work():
            _ensure_unique_codes(patch.get("sku"), patch.get("barcode"))
            product = Product(stock_quantity=0, cost_cents=0, min_stock_level=10)
            apply_product_patch(product, patch)
            db.session.add(product)
            db.session.flush()

            if initial_stock > 0:
                stock_service.apply_stock_delta(
                    product,
                    initial_stock,
                    reason="Initial stock",
                    movement_type=stock_service.MOVEMENT_IN,
                    reference_type="product",
                    reference_id=product.id,
                    performed_by=user_id,
                )
        return product

    product = run_with_retry(_op)
    log_activity(user_id, "create_product", "product", product.id, f"Created product: {product.name}")
    return product


def update_product(product_id: int, *, patch: dict, user_id: int | None = None) -> Product:
    def _op():
        with unit_of_work():
            product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
            if product is None:
                raise NotFoundError("Product not found")
            _ensure_unique_codes(patch.get("sku"), patch.get("barcode"), exclude_id=product.id)
            apply_product_patch(product, patch)
            db.session.flush()
        return product

    product = run_with_retry(_op)
    log_activity(user_id, "update_product", "product", product.id, f"Updated product: {product.name}")
    return product


def deactivate_product(product_id: int, *, user_id: int | None = None) -> Product:
    """Soft delete; sale items keep pointing at the row."""
    def _op():
        with unit_of_work():
            product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
            if product is None:
                raise NotFoundError("Product not found")
            product.is_active = False
            db.session.flush()
        return product

    product = run_with_retry(_op)
    log_activity(user_id, "delete_product", "product", product.id, f"Deactivated product: {product.name}")
    return product


def list_categories() -> list[str]:
    rows = (
        db.session.query(Product.category)
        .filter(
            Product.category.isnot(None),
            Product.category != "",
            Product.is_active.is_(True),
        )
        .distinct()
        .order_by(Product.category.asc())
        .all()
    )
    return [category for (category,) in rows]
