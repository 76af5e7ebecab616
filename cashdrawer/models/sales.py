from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


DEFAULT_PAYMENT_METHOD = "Efectivo"


class Sale(db.Model):
    """
    Completed sale as recorded by the checkout screens.

    Owned by the surrounding application; the drawer engine only reads it.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_store_occurred", "store_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    employee_id = db.Column(db.String(64), nullable=True, index=True)

    # Human-readable invoice number (e.g., "F-000123")
    invoice_number = db.Column(db.String(64), nullable=True)

    # Amounts in minor units
    total_cents = db.Column(db.Integer, nullable=False, default=0)
    shipping_cost_cents = db.Column(db.Integer, nullable=False, default=0)

    # Free-text tender label ("Efectivo", "Nequi", "Tarjeta", ...)
    payment_method = db.Column(db.String(64), nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    store = db.relationship("Store", backref=db.backref("sales", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "employee_id": self.employee_id,
            "invoice_number": self.invoice_number,
            "total_cents": self.total_cents,
            "shipping_cost_cents": self.shipping_cost_cents,
            "payment_method": self.payment_method,
            "occurred_at": to_utc_z(self.occurred_at),
        }


class Expense(db.Model):
    """
    Expense paid out by the store.

    Expenses are paid from the drawer unless another tender is recorded,
    hence the cash default on payment_method.
    """
    __tablename__ = "expenses"
    __table_args__ = (
        db.Index("ix_expenses_store_occurred", "store_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    employee_id = db.Column(db.String(64), nullable=True, index=True)

    description = db.Column(db.String(255), nullable=True)
    category = db.Column(db.String(64), nullable=True)
    amount_cents = db.Column(db.Integer, nullable=False, default=0)
    payment_method = db.Column(db.String(64), nullable=True, default=DEFAULT_PAYMENT_METHOD)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    store = db.relationship("Store", backref=db.backref("expenses", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "employee_id": self.employee_id,
            "description": self.description,
            "category": self.category,
            "amount_cents": self.amount_cents,
            "payment_method": self.payment_method,
            "occurred_at": to_utc_z(self.occurred_at),
        }


class Layaway(db.Model):
    """
    Installment purchase ("separado"). Each payment ("abono") is income
    when received.
    """
    __tablename__ = "layaways"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    customer_name = db.Column(db.String(255), nullable=True)
    total_cents = db.Column(db.Integer, nullable=False, default=0)
    status = db.Column(db.String(16), nullable=False, default="ACTIVE")  # ACTIVE, COMPLETED, CANCELLED

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    store = db.relationship("Store", backref=db.backref("layaways", lazy=True))
    payments = db.relationship(
        "LayawayPayment",
        back_populates="layaway",
        order_by="LayawayPayment.paid_at",
        lazy="selectin",
    )

    @property
    def total_paid_cents(self) -> int:
        return sum(p.amount_cents or 0 for p in self.payments)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "customer_name": self.customer_name,
            "total_cents": self.total_cents,
            "total_paid_cents": self.total_paid_cents,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "payments": [p.to_dict() for p in self.payments],
        }


class LayawayPayment(db.Model):
    __tablename__ = "layaway_payments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    layaway_id = db.Column(db.Integer, db.ForeignKey("layaways.id"), nullable=False, index=True)
    employee_id = db.Column(db.String(64), nullable=True)
    amount_cents = db.Column(db.Integer, nullable=False, default=0)
    payment_method = db.Column(db.String(64), nullable=True)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    layaway = db.relationship("Layaway", back_populates="payments")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "layaway_id": self.layaway_id,
            "employee_id": self.employee_id,
            "amount_cents": self.amount_cents,
            "payment_method": self.payment_method,
            "paid_at": to_utc_z(self.paid_at),
        }


class PaymentMethod(db.Model):
    """
    Tender configured for the organization with the processor's cut.

    discount_percentage is the fee the processor retains (0-100).
    Deactivated methods stay in the table so historical income keeps its fee.
    """
    __tablename__ = "payment_methods"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False)
    discount_percentage = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "discount_percentage": str(self.discount_percentage) if self.discount_percentage is not None else None,
            "is_active": self.is_active,
        }
