from __future__ import annotations

from ..extensions import db
from ..time_utils import to_iso_date, to_utc_z, utcnow

PAYMENT_METHOD_CASH = "cash"
PAYMENT_METHOD_CREDIT = "credit"


class Sale(db.Model):
    """
    Completed sale (header).

    Sales are created in one step by services/sales_service.py together
    with their items, stock movements and (for credit) the customer balance
    posting. They are immutable afterwards; credit payments reference them.

    credit_amount_cents equals total_amount_cents for credit sales and 0
    otherwise.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.UniqueConstraint("transaction_id", name="uq_sales_transaction_id"),
        db.CheckConstraint("total_amount_cents >= 0", name="ck_sales_total_non_negative"),
        db.Index("ix_sales_method_due", "payment_method", "credit_due_date"),
        db.Index("ix_sales_cashier_created", "cashier_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable identifier, e.g. "TXN-1718000000000-4KD9Q"
    transaction_id = db.Column(db.String(64), nullable=False)

    cashier_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)

    # All amounts in cents
    subtotal_cents = db.Column(db.Integer, nullable=False)
    discount_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_amount_cents = db.Column(db.Integer, nullable=False)

    payment_method = db.Column(db.String(16), nullable=False, default=PAYMENT_METHOD_CASH, index=True)
    credit_due_date = db.Column(db.Date, nullable=True)
    credit_amount_cents = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now(), index=True)

    cashier = db.relationship("User", foreign_keys=[cashier_id])
    customer = db.relationship("Customer", backref=db.backref("sales", lazy=True))
    items = db.relationship("SaleItem", back_populates="sale", lazy=True, order_by="SaleItem.id")

    @property
    def is_credit(self) -> bool:
        return self.payment_method == PAYMENT_METHOD_CREDIT

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "cashier_id": self.cashier_id,
            "customer_id": self.customer_id,
            "subtotal_cents": self.subtotal_cents,
            "discount_amount_cents": self.discount_amount_cents,
            "total_amount_cents": self.total_amount_cents,
            "payment_method": self.payment_method,
            "credit_due_date": to_iso_date(self.credit_due_date),
            "credit_amount_cents": self.credit_amount_cents,
            "created_at": to_utc_z(self.created_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class SaleItem(db.Model):
    """Line item on a sale; unit price is a snapshot taken at sale time."""
    __tablename__ = "sale_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_sale_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    total_price_cents = db.Column(db.Integer, nullable=False)

    sale = db.relationship("Sale", back_populates="items")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "product_sku": self.product.sku if self.product else None,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "total_price_cents": self.total_price_cents,
        }
