# Overview: Storage collaborator for the drawer engine; store-scoped reads and idempotent writes.

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import (
    CashMovement,
    CashRegisterShift,
    Expense,
    Layaway,
    LayawayPayment,
    Sale,
)
from ..models.registers import SHIFT_CLOSED, SHIFT_OPEN
"""
Drawer storage invariants

- Reads are store-scoped and never lock, except the shift row being closed.
- Shift and ledger writes are idempotent on id: writing the same id twice
  returns the existing row.
- Ledger rows are append-only. No updates or deletes of existing movements.
- Nothing here commits implicitly; callers commit once per operation so a
  single open/close is all-or-nothing.
"""


class PersistenceFailure(Exception):
    """Raised when the database rejects or cannot complete a write."""
    pass


@dataclass
class StoreRecords:
    """Raw, already-typed collections for one store."""
    store_id: int
    sales: list[Sale] = field(default_factory=list)
    expenses: list[Expense] = field(default_factory=list)
    layaways: list[Layaway] = field(default_factory=list)
    cash_movements: list[CashMovement] = field(default_factory=list)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; the version_id column still
    rejects a second writer there.
    """
    return query.with_for_update()


# =============================================================================
# SHIFTS
# =============================================================================

def get_shift(shift_id: str, *, for_update: bool = False) -> CashRegisterShift | None:
    query = db.session.query(CashRegisterShift).filter_by(id=shift_id)
    if for_update:
        query = lock_for_update(query)
    return query.first()


def find_open_shift(store_id: int) -> CashRegisterShift | None:
    """Indexed lookup backed by the one-open-shift-per-store unique index."""
    return db.session.query(CashRegisterShift).filter_by(
        store_id=store_id,
        status=SHIFT_OPEN,
    ).first()


def find_last_closed_shift(store_id: int) -> CashRegisterShift | None:
    """Most recently closed shift of a store, if any."""
    return db.session.query(CashRegisterShift).filter(
        CashRegisterShift.store_id == store_id,
        CashRegisterShift.status == SHIFT_CLOSED,
    ).order_by(CashRegisterShift.closed_at.desc()).first()


def list_shifts(
    store_id: int,
    *,
    opened_from: Optional[datetime] = None,
    opened_to: Optional[datetime] = None,
) -> list[CashRegisterShift]:
    """Shifts of a store filtered by opened_at (inclusive), newest first."""
    query = db.session.query(CashRegisterShift).filter(CashRegisterShift.store_id == store_id)
    if opened_from is not None:
        query = query.filter(CashRegisterShift.opened_at >= opened_from)
    if opened_to is not None:
        query = query.filter(CashRegisterShift.opened_at <= opened_to)
    return query.order_by(CashRegisterShift.opened_at.desc()).all()


def persist_shift(shift: CashRegisterShift) -> CashRegisterShift:
    """Stage the full shift snapshot. Safe to call again with the same row."""
    db.session.add(shift)
    _flush()
    return shift


# =============================================================================
# LEDGER
# =============================================================================

def append_ledger_entry(
    *,
    store_id: int,
    movement_type: str,
    origin_kind: str,
    amount_cents: int,
    description: str,
    employee_id: str | None = None,
    shift_id: str | None = None,
    reference_id: str | None = None,
    payment_method: str | None = None,
    occurred_at: Optional[datetime] = None,
    movement_id: str | None = None,
) -> CashMovement:
    """
    Append an audit movement.

    Passing a ``movement_id`` that already exists returns the stored row
    instead of writing a duplicate.
    """
    if movement_id:
        existing = db.session.query(CashMovement).filter_by(id=movement_id).first()
        if existing:
            return existing

    movement = CashMovement(
        store_id=store_id,
        movement_type=movement_type,
        origin_kind=origin_kind,
        amount_cents=amount_cents,
        description=description,
        employee_id=employee_id,
        shift_id=shift_id,
        reference_id=reference_id,
        occurred_at=occurred_at,  # if None, db default applies
    )
    if movement_id:
        movement.id = movement_id
    if payment_method is not None:
        movement.payment_method = payment_method

    db.session.add(movement)
    _flush()  # ensures defaults are assigned without committing
    return movement


def ledger_for_shift(shift_id: str) -> list[CashMovement]:
    return db.session.query(CashMovement).filter_by(
        shift_id=shift_id
    ).order_by(CashMovement.occurred_at).all()


# =============================================================================
# SOURCE RECORDS
# =============================================================================

def _bounded(query, column, start: Optional[datetime], end: Optional[datetime]):
    if start is not None:
        query = query.filter(column >= start)
    if end is not None:
        query = query.filter(column <= end)
    return query.order_by(column)


def list_expenses(
    store_id: int,
    *,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> list[Expense]:
    """Expenses of a store with occurred_at in [start, end], oldest first."""
    return _bounded(
        db.session.query(Expense).filter(Expense.store_id == store_id),
        Expense.occurred_at,
        start,
        end,
    ).all()


def load_store_records(
    store_id: int,
    *,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> StoreRecords:
    """
    Load one store's sales, expenses, layaways and ledger movements.

    ``start``/``end`` bound occurred_at inclusively when given. Layaways are
    returned whole when any of their payments falls in range; the attribution
    step narrows individual payments.
    """
    sales = _bounded(
        db.session.query(Sale).filter(Sale.store_id == store_id), Sale.occurred_at, start, end
    ).all()
    expenses = list_expenses(store_id, start=start, end=end)
    movements = _bounded(
        db.session.query(CashMovement).filter(CashMovement.store_id == store_id),
        CashMovement.occurred_at,
        start,
        end,
    ).all()

    layaway_query = db.session.query(Layaway).filter(Layaway.store_id == store_id)
    if start is not None or end is not None:
        conditions = []
        if start is not None:
            conditions.append(LayawayPayment.paid_at >= start)
        if end is not None:
            conditions.append(LayawayPayment.paid_at <= end)
        layaway_query = layaway_query.filter(Layaway.payments.any(db.and_(*conditions)))
    layaways = layaway_query.order_by(Layaway.id).all()

    return StoreRecords(
        store_id=store_id,
        sales=sales,
        expenses=expenses,
        layaways=layaways,
        cash_movements=movements,
    )


# =============================================================================
# TRANSACTIONS
# =============================================================================

def _flush() -> None:
    try:
        db.session.flush()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise PersistenceFailure(f"Drawer write failed: {type(exc).__name__}") from exc


def commit() -> None:
    """
    Commit the staged operation.

    On any database error the session is rolled back and the error is
    re-raised as PersistenceFailure with the original as its cause.
    """
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise PersistenceFailure(f"Drawer write failed: {type(exc).__name__}") from exc
