# Overview: Flask API routes for customers and credit accounts; parses input and returns JSON responses.

"""
Customer and credit ledger routes.

Most reads and payments are open to cashiers; editing a customer
(credit limit included) and browsing all payments need a manager.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_permission
from ..errors import LedgerError
from ..models import Customer
from ..services import credit_service, customer_service
from ..validation import ModelValidationPolicy, enforce_rules_customer, validate_payload

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "phone", "email", "address", "credit_limit_cents"},
    required_on_create={"name"},
)

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.post("")
@require_auth
@require_permission("MANAGE_CUSTOMERS")
def create_customer_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False)
        enforce_rules_customer(patch)
        customer = customer_service.create_customer(patch=patch, user_id=g.current_user.id)
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create customer")
        return jsonify({"error": "Internal server error"}), 500

    return {"customer": customer.to_dict()}, 201


@customers_bp.get("")
@require_auth
@require_permission("MANAGE_CUSTOMERS")
def list_customers_route():
    try:
        return customer_service.list_customers(
            search=request.args.get("search"),
            page=request.args.get("page", type=int),
            per_page=request.args.get("per_page", type=int),
        )
    except Exception:
        current_app.logger.exception("Failed to list customers")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.get("/search")
@require_auth
@require_permission("MANAGE_CUSTOMERS")
def search_customers_route():
    try:
        customers = customer_service.search_customers(request.args.get("q"))
    except Exception:
        current_app.logger.exception("Failed to search customers")
        return jsonify({"error": "Internal server error"}), 500

    return {"items": [c.to_dict() for c in customers], "count": len(customers)}


@customers_bp.get("/<int:customer_id>")
@require_auth
@require_permission("MANAGE_CUSTOMERS")
def get_customer_route(customer_id: int):
    try:
        return customer_service.get_customer_detail(customer_id)
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load customer %s", customer_id)
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.put("/<int:customer_id>")
@require_auth
@require_permission("EDIT_CUSTOMERS")
def update_customer_route(customer_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=True)
        enforce_rules_customer(patch)
        customer = customer_service.update_customer(customer_id, patch=patch, user_id=g.current_user.id)
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update customer")
        return jsonify({"error": "Internal server error"}), 500

    return {"customer": customer.to_dict()}


@customers_bp.post("/<int:customer_id>/payments")
@require_auth
@require_permission("RECORD_PAYMENT")
def record_payment_route(customer_id: int):
    """
    Record a repayment against one of the customer's credit sales.

    Body: sale_id, amount_cents, payment_date (YYYY-MM-DD), payment_method, notes
    """
    data = request.get_json(silent=True) or {}

    try:
        payment = credit_service.record_payment(
            sale_id=data.get("sale_id"),
            customer_id=customer_id,
            amount_cents=data.get("amount_cents"),
            payment_date=data.get("payment_date"),
            payment_method=data.get("payment_method", "cash"),
            notes=data.get("notes"),
            recorded_by=g.current_user.id,
        )
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record payment")
        return jsonify({"error": "Internal server error"}), 500

    return {
        "payment": payment.to_dict(),
        "remaining_balance_cents": credit_service.remaining_balance(payment.sale_id),
        "outstanding_balance_cents": payment.customer.outstanding_balance_cents,
    }, 201


@customers_bp.get("/<int:customer_id>/credit-history")
@require_auth
@require_permission("MANAGE_CUSTOMERS")
def credit_history_route(customer_id: int):
    try:
        return credit_service.credit_history(
            customer_id,
            page=request.args.get("page", type=int),
            per_page=request.args.get("per_page", type=int),
        )
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load credit history for customer %s", customer_id)
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.get("/overdue/list")
@require_auth
@require_permission("MANAGE_CUSTOMERS")
def overdue_list_route():
    """Query params: min_days_overdue (default 0)."""
    min_days = request.args.get("min_days_overdue", default=0, type=int)
    try:
        rows = credit_service.overdue_credits(min_days_overdue=max(0, min_days))
    except Exception:
        current_app.logger.exception("Failed to list overdue credit sales")
        return jsonify({"error": "Internal server error"}), 500

    return {
        "items": rows,
        "count": len(rows),
        "total_overdue_cents": sum(r["remaining_balance_cents"] for r in rows),
    }


@customers_bp.get("/overdue/alerts")
@require_auth
@require_permission("MANAGE_CUSTOMERS")
def overdue_alerts_route():
    min_days = request.args.get("min_days_overdue", default=30, type=int)
    try:
        return credit_service.overdue_alerts(min_days_overdue=max(0, min_days))
    except Exception:
        current_app.logger.exception("Failed to build overdue alerts")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.get("/credit/summary")
@require_auth
@require_permission("MANAGE_CUSTOMERS")
def credit_summary_route():
    try:
        return credit_service.credit_summary()
    except Exception:
        current_app.logger.exception("Failed to build credit summary")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.get("/payments/all")
@require_auth
@require_permission("VIEW_PAYMENTS")
def list_payments_route():
    try:
        return credit_service.list_payments(
            start_date=request.args.get("start_date"),
            end_date=request.args.get("end_date"),
            customer_id=request.args.get("customer_id", type=int),
            payment_method=request.args.get("payment_method"),
            page=request.args.get("page", type=int),
            per_page=request.args.get("per_page", type=int),
        )
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list payments")
        return jsonify({"error": "Internal server error"}), 500
