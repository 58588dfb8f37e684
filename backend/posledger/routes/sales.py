# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_permission
from ..errors import LedgerError
from ..models.auth import ROLE_CASHIER
from ..services import reporting_service, sales_service

sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
@require_auth
@require_permission("CREATE_SALE")
def create_sale_route():
    """
    Ring up a complete sale in one request.

    Body:
        items: [{"product_id": int, "quantity": int}, ...]
        discount_amount_cents: int (optional)
        payment_method: "cash" | "credit"
        customer_id: int (required for credit)
        credit_due_date: "YYYY-MM-DD" (required for credit)
    """
    data = request.get_json(silent=True) or {}

    try:
        sale = sales_service.create_sale(
            cashier_id=g.current_user.id,
            items=data.get("items"),
            discount_amount_cents=data.get("discount_amount_cents", 0),
            payment_method=data.get("payment_method", "cash"),
            customer_id=data.get("customer_id"),
            credit_due_date=data.get("credit_due_date"),
        )
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"sale": sale.to_dict(include_items=True)}), 201


@sales_bp.get("")
@require_auth
@require_permission("VIEW_SALES_REPORTS")
def list_sales_route():
    """
    Query params: start_date, end_date (YYYY-MM-DD), cashier_id,
    payment_method, page, per_page.
    """
    try:
        return sales_service.list_sales(
            start_date=request.args.get("start_date"),
            end_date=request.args.get("end_date"),
            cashier_id=request.args.get("cashier_id", type=int),
            payment_method=request.args.get("payment_method"),
            page=request.args.get("page", type=int),
            per_page=request.args.get("per_page", type=int),
        )
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list sales")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/<int:sale_id>")
@require_auth
@require_permission("VIEW_SALES_REPORTS")
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(sale_id)
        data = sale.to_dict(include_items=True)
        data["cashier_name"] = sale.cashier.full_name if sale.cashier else None
        data["customer_name"] = sale.customer.name if sale.customer else None
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load sale")
        return jsonify({"error": "Internal server error"}), 500

    return {"sale": data}


@sales_bp.get("/dashboard/today")
@require_auth
@require_permission("VIEW_DASHBOARD")
def today_dashboard_route():
    try:
        return reporting_service.today_dashboard()
    except Exception:
        current_app.logger.exception("Failed to build today's dashboard")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/dashboard/recent")
@require_auth
@require_permission("VIEW_DASHBOARD")
def recent_transactions_route():
    """Cashiers see their own sales; managers and admins see everyone's."""
    limit = request.args.get("limit", default=10, type=int)
    user = g.current_user
    cashier_id = user.id if user.role == ROLE_CASHIER else None

    try:
        items = reporting_service.recent_transactions(cashier_id=cashier_id, limit=limit)
    except Exception:
        current_app.logger.exception("Failed to load recent transactions")
        return jsonify({"error": "Internal server error"}), 500

    return {"items": items, "count": len(items)}
