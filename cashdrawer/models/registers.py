from __future__ import annotations

import uuid

from ..extensions import db
from ..time_utils import to_utc_z


SHIFT_OPEN = "OPEN"
SHIFT_CLOSED = "CLOSED"

# Producer tags for ledger rows, set at write time.
ORIGIN_SALE = "SALE"
ORIGIN_EXPENSE = "EXPENSE"
ORIGIN_LAYAWAY_PAYMENT = "LAYAWAY_PAYMENT"
ORIGIN_OPENING = "OPENING"
ORIGIN_CLOSING = "CLOSING"
ORIGIN_ADJUSTMENT = "ADJUSTMENT"
ORIGIN_MANUAL = "MANUAL"


def new_id() -> str:
    return str(uuid.uuid4())


class CashRegisterShift(db.Model):
    """
    One cash register session of a store, from opening float to final count.

    LIFECYCLE:
    - OPEN: shift is active, events are attributed to it up to "now"
    - CLOSED: counted and reconciled; terminal, never reopened

    At most one OPEN shift per store. The partial unique index below is the
    authority; the service-level check only produces a friendlier error.
    """
    __tablename__ = "cash_register_shifts"
    __table_args__ = (
        db.Index(
            "uq_shifts_one_open_per_store",
            "store_id",
            unique=True,
            sqlite_where=db.text("status = 'OPEN'"),
            postgresql_where=db.text("status = 'OPEN'"),
        ),
        db.Index("ix_shifts_store_opened", "store_id", "opened_at"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    opening_employee_id = db.Column(db.String(64), nullable=False)
    closing_employee_id = db.Column(db.String(64), nullable=True)

    status = db.Column(db.String(16), nullable=False, default=SHIFT_OPEN, index=True)  # OPEN, CLOSED

    # Cash float placed in the drawer at opening
    opening_cash_cents = db.Column(db.Integer, nullable=False, default=0)

    # Counted by the closing operator
    counted_cash_cents = db.Column(db.Integer, nullable=True)
    counted_other_cents = db.Column(db.Integer, nullable=True)

    # Calculated when closing
    expected_cash_cents = db.Column(db.Integer, nullable=True)  # opening + cash in - cash out
    expected_other_cents = db.Column(db.Integer, nullable=True)  # other in - other out
    difference_cents = db.Column(db.Integer, nullable=True)  # counted total - expected total

    opened_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    notes = db.Column(db.Text, nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    store = db.relationship("Store", backref=db.backref("shifts", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_open(self) -> bool:
        return self.status == SHIFT_OPEN

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "opening_employee_id": self.opening_employee_id,
            "closing_employee_id": self.closing_employee_id,
            "status": self.status,
            "opening_cash_cents": self.opening_cash_cents,
            "counted_cash_cents": self.counted_cash_cents,
            "counted_other_cents": self.counted_other_cents,
            "expected_cash_cents": self.expected_cash_cents,
            "expected_other_cents": self.expected_other_cents,
            "difference_cents": self.difference_cents,
            "opened_at": to_utc_z(self.opened_at),
            "closed_at": to_utc_z(self.closed_at) if self.closed_at else None,
            "notes": self.notes,
            "version_id": self.version_id,
        }


class CashMovement(db.Model):
    """
    Append-only drawer ledger row.

    Written by the shift lifecycle (opening/closing entries) and by the
    surrounding application for sales, expenses, installments and manual
    cash in/out. Amounts are signed: positive into the drawer, negative out.

    MOVEMENT TYPES (legacy free-form, kept for display):
    - sale, expense, opening, closing, adjustment, manual
    """
    __tablename__ = "cash_movements"
    __table_args__ = (
        db.Index("ix_cash_movements_store_occurred", "store_id", "occurred_at"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    employee_id = db.Column(db.String(64), nullable=True)
    shift_id = db.Column(db.String(36), db.ForeignKey("cash_register_shifts.id"), nullable=True, index=True)

    movement_type = db.Column(db.String(32), nullable=False, index=True)
    # Null on rows written before producers started tagging
    origin_kind = db.Column(db.String(32), nullable=True, index=True)

    amount_cents = db.Column(db.Integer, nullable=False, default=0)
    description = db.Column(db.String(255), nullable=False, default="")
    payment_method = db.Column(db.String(64), nullable=True, default="Efectivo")

    # Id of the sale/expense/layaway/shift the movement mirrors
    reference_id = db.Column(db.String(64), nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    shift = db.relationship("CashRegisterShift", backref=db.backref("movements", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "employee_id": self.employee_id,
            "shift_id": self.shift_id,
            "movement_type": self.movement_type,
            "origin_kind": self.origin_kind,
            "amount_cents": self.amount_cents,
            "description": self.description,
            "payment_method": self.payment_method,
            "reference_id": self.reference_id,
            "occurred_at": to_utc_z(self.occurred_at),
        }
