# Overview: Flask API routes for products operations; parses input and returns JSON responses.

"""
Product catalog and stock routes.

- Read operations require VIEW_PRODUCTS (cashier and up)
- Catalog writes require MANAGE_PRODUCTS, stock changes ADJUST_INVENTORY
"""
from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_permission
from ..errors import LedgerError, ValidationError
from ..models import Product
from ..services import products_service, stock_service
from ..validation import ModelValidationPolicy, enforce_rules_product, validate_payload

PRODUCT_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={
        "sku", "barcode", "name", "description", "category", "supplier",
        "price_cents", "cost_cents", "stock_quantity", "min_stock_level",
    },
    required_on_create={"sku", "name", "price_cents"},
)

# stock_quantity only changes through POST /<id>/stock
PRODUCT_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={
        "sku", "barcode", "name", "description", "category", "supplier",
        "price_cents", "cost_cents", "min_stock_level", "is_active",
    },
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
@require_permission("VIEW_PRODUCTS")
def list_products_route():
    """
    Query params:
    - search: matches name, SKU or barcode
    - category: exact category
    - page / per_page: pagination (per_page max 100)
    """
    try:
        return products_service.list_products(
            search=request.args.get("search"),
            category=request.args.get("category"),
            page=request.args.get("page", type=int),
            per_page=request.args.get("per_page", type=int),
        )
    except Exception:
        current_app.logger.exception("Failed to list products")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/<int:product_id>")
@require_auth
@require_permission("VIEW_PRODUCTS")
def get_product_route(product_id: int):
    try:
        return products_service.get_product(product_id).to_dict()
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load product %s", product_id)
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/lookup/<identifier>")
@require_auth
@require_permission("VIEW_PRODUCTS")
def lookup_product_route(identifier: str):
    """Barcode scanner / SKU entry lookup."""
    try:
        return products_service.lookup_product(identifier).to_dict()
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to look up product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.post("")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def create_product_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_CREATE_POLICY, partial=False)
        enforce_rules_product(patch)
        product = products_service.create_product(patch=patch, user_id=g.current_user.id)
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500

    return product.to_dict(), 201


@products_bp.put("/<int:product_id>")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_UPDATE_POLICY, partial=True)
        enforce_rules_product(patch)
        product = products_service.update_product(product_id, patch=patch, user_id=g.current_user.id)
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500

    return product.to_dict()


@products_bp.delete("/<int:product_id>")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def delete_product_route(product_id: int):
    """Soft delete (deactivate)."""
    try:
        products_service.deactivate_product(product_id, user_id=g.current_user.id)
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete product")
        return jsonify({"error": "Internal server error"}), 500

    return {"ok": True}


@products_bp.post("/<int:product_id>/stock")
@require_auth
@require_permission("ADJUST_INVENTORY")
def adjust_stock_route(product_id: int):
    """
    Adjust stock by a signed quantity.

    Body: {"quantity_delta": int, "reason": str, "movement_type": "in"|"out"|"adjustment"}
    """
    payload = request.get_json(silent=True) or {}

    try:
        if "quantity_delta" not in payload:
            raise ValidationError("quantity_delta is required")
        movement = stock_service.adjust_stock(
            product_id,
            payload.get("quantity_delta"),
            reason=payload.get("reason"),
            movement_type=payload.get("movement_type"),
            reference_type="manual",
            performed_by=g.current_user.id,
        )
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to adjust stock")
        return jsonify({"error": "Internal server error"}), 500

    return {"movement": movement.to_dict(), "stock_quantity": movement.new_stock}, 201


@products_bp.get("/<int:product_id>/movements")
@require_auth
@require_permission("VIEW_INVENTORY")
def list_movements_route(product_id: int):
    limit = request.args.get("limit", default=200, type=int)
    try:
        movements = stock_service.list_movements(product_id, limit=max(1, min(limit, 500)))
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list stock movements for product %s", product_id)
        return jsonify({"error": "Internal server error"}), 500

    return {"items": [m.to_dict() for m in movements], "count": len(movements)}


@products_bp.get("/alerts/low-stock")
@require_auth
@require_permission("VIEW_INVENTORY")
def low_stock_route():
    try:
        return stock_service.low_stock_report()
    except Exception:
        current_app.logger.exception("Failed to build low stock report")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/categories/list")
@require_auth
@require_permission("VIEW_PRODUCTS")
def list_categories_route():
    try:
        return {"categories": products_service.list_categories()}
    except Exception:
        current_app.logger.exception("Failed to list categories")
        return jsonify({"error": "Internal server error"}), 500
