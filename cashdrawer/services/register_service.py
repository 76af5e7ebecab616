"""
Cash Register Shift Lifecycle Service

WHY: A shift is the period of cash accountability for one store's drawer.
Every sale, expense and installment is attributed to the shift active when
it happened, and the close compares what should be in the drawer with what
was counted.

DESIGN PRINCIPLES:
- One open shift per store at a time (unique index is the authority)
- A new shift opens strictly after the store's last close
- Shifts are immutable once closed; there is no reopen
- Validation happens before any write, so a failed call changes nothing
- Opening and closing each append an audit movement to the drawer ledger
- Open and close are idempotent by shift id for caller retries
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..models import CashRegisterShift, Expense
from ..models.registers import (
    ORIGIN_CLOSING,
    ORIGIN_OPENING,
    SHIFT_CLOSED,
    SHIFT_OPEN,
    new_id,
)
from ..time_utils import end_of_day, normalize_utc, start_of_day, utcnow
from . import storage_service
from .attribution_service import (
    DailySummary,
    ShiftTotals,
    ShiftWindow,
    attribute,
    bucket,
    daily_summary,
)
from .event_service import normalize_events
from .reconciliation_service import Reconciliation, reconcile_totals
from .storage_service import PersistenceFailure


class ShiftError(Exception):
    """Raised for shift management errors."""
    pass


class InvalidAmount(ShiftError):
    """Opening or counted amount is negative or not a whole number of minor units."""
    pass


class ShiftAlreadyOpen(ShiftError):
    pass


class ShiftNotFound(ShiftError):
    pass


class ShiftAlreadyClosed(ShiftError):
    pass


class StoreMismatch(ShiftError):
    """The shift belongs to a different store than the caller's scope."""
    pass


class ShiftOverlap(ShiftError):
    """Opening instant is not after the store's last close."""
    pass


@dataclass(frozen=True)
class ShiftReport:
    shift: CashRegisterShift
    totals: ShiftTotals
    reconciliation: Reconciliation

    def to_dict(self) -> dict:
        return {
            "shift": self.shift.to_dict(),
            "totals": self.totals.to_dict(),
            "reconciliation": self.reconciliation.to_dict(),
        }


def _require_amount(name: str, value) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidAmount(f"{name} must be a whole number of minor units")
    if value < 0:
        raise InvalidAmount(f"{name} cannot be negative")
    return value


def _resolve_now(now: datetime | None) -> datetime:
    return normalize_utc(now) if now is not None else utcnow()


def _window_totals(shift: CashRegisterShift, end: datetime) -> ShiftTotals:
    """Normalize the store's records inside [opened_at, end] and bucket them."""
    opened_at = normalize_utc(shift.opened_at)
    records = storage_service.load_store_records(shift.store_id, start=opened_at, end=end)
    events = normalize_events(
        shift.store_id,
        sales=records.sales,
        expenses=records.expenses,
        layaways=records.layaways,
        cash_movements=records.cash_movements,
    )
    window = ShiftWindow(store_id=shift.store_id, opened_at=opened_at, closed_at=end)
    return bucket(attribute(events, window))


# =============================================================================
# SHIFT LIFECYCLE
# =============================================================================

def open_shift(
    store_id: int,
    employee_id: str,
    opening_cash_cents: int,
    *,
    shift_id: str | None = None,
    notes: str | None = None,
    now: datetime | None = None,
) -> CashRegisterShift:
    """
    Open a new shift for a store.

    Args:
        store_id: Store whose drawer is being opened
        employee_id: Operator opening the drawer
        opening_cash_cents: Float placed in the drawer (cash only)
        shift_id: Caller-chosen id; retrying with the id of the shift that
            is already open returns it unchanged
        now: Business time of the opening (defaults to server time)

    Raises:
        InvalidAmount: opening float is negative
        ShiftAlreadyOpen: the store already has another open shift
        ShiftAlreadyClosed: shift_id names a shift that was already closed
        StoreMismatch: shift_id names a shift of another store
        ShiftOverlap: ``now`` is not after the store's last close
        PersistenceFailure: the database rejected the write
    """
    _require_amount("opening_cash_cents", opening_cash_cents)

    existing_open = storage_service.find_open_shift(store_id)
    if existing_open:
        if shift_id and existing_open.id == shift_id:
            return existing_open
        current_app.logger.warning(
            "Rejected shift open for store %s: shift %s is still open", store_id, existing_open.id
        )
        raise ShiftAlreadyOpen(f"Store already has open shift (shift {existing_open.id})")

    if shift_id:
        prior = storage_service.get_shift(shift_id)
        if prior is not None:
            if prior.store_id != store_id:
                raise StoreMismatch(f"Shift {shift_id} belongs to store {prior.store_id}")
            raise ShiftAlreadyClosed(f"Shift {shift_id} was already closed")

    opened_at = _resolve_now(now)
    # Windows are inclusive at both ends, so touching the last close overlaps it
    last_closed = storage_service.find_last_closed_shift(store_id)
    if last_closed is not None and opened_at <= normalize_utc(last_closed.closed_at):
        current_app.logger.warning(
            "Rejected shift open for store %s at %s: shift %s closed at %s",
            store_id, opened_at, last_closed.id, last_closed.closed_at,
        )
        raise ShiftOverlap(
            f"Shift must open after the last close of store {store_id} (shift {last_closed.id})"
        )

    shift = CashRegisterShift(
        id=shift_id or new_id(),
        store_id=store_id,
        opening_employee_id=employee_id,
        status=SHIFT_OPEN,
        opening_cash_cents=opening_cash_cents,
        opened_at=opened_at,
        notes=notes,
    )

    try:
        storage_service.persist_shift(shift)
        # The float is audit-only; the normalizer never treats it as income
        storage_service.append_ledger_entry(
            store_id=store_id,
            movement_type="opening",
            origin_kind=ORIGIN_OPENING,
            amount_cents=opening_cash_cents,
            description="Shift opened",
            employee_id=employee_id,
            shift_id=shift.id,
            reference_id=shift.id,
            payment_method="Efectivo",
            occurred_at=shift.opened_at,
        )
        storage_service.commit()
    except PersistenceFailure as exc:
        if isinstance(exc.__cause__, IntegrityError):
            winner = storage_service.find_open_shift(store_id)
            if winner is not None:
                if winner.id == shift.id:
                    return winner
                current_app.logger.warning(
                    "Concurrent shift open for store %s lost to shift %s", store_id, winner.id
                )
                raise ShiftAlreadyOpen(f"Store already has open shift (shift {winner.id})") from exc
        current_app.logger.exception("Failed to open shift for store %s", store_id)
        raise

    current_app.logger.info(
        "Shift %s opened for store %s by %s with float %s",
        shift.id, store_id, employee_id, opening_cash_cents,
    )
    return shift


def close_shift(
    shift_id: str,
    counted_cash_cents: int,
    counted_other_cents: int,
    closing_employee_id: str,
    *,
    store_id: int | None = None,
    notes: str | None = None,
    now: datetime | None = None,
) -> ShiftReport:
    """
    Close a shift and reconcile the drawer.

    Attributes every event in [opened_at, now] to the shift, computes the
    expected cash/other balances and stores them with the counted amounts
    and the total difference.

    IMMUTABLE: once closed, the shift cannot be reopened or modified; a
    second close raises ShiftAlreadyClosed and leaves the first snapshot
    untouched.

    Args:
        shift_id: Shift to close
        counted_cash_cents: Cash physically counted in the drawer
        counted_other_cents: Non-cash settlements verified by the operator
        closing_employee_id: Operator closing the drawer
        store_id: Caller's store scope; must match the shift's store
    """
    _require_amount("counted_cash_cents", counted_cash_cents)
    _require_amount("counted_other_cents", counted_other_cents)

    shift = storage_service.get_shift(shift_id, for_update=True)
    if not shift:
        raise ShiftNotFound(f"Shift {shift_id} not found")

    if store_id is not None and shift.store_id != store_id:
        raise StoreMismatch(f"Shift {shift_id} belongs to store {shift.store_id}")

    if shift.status != SHIFT_OPEN:
        raise ShiftAlreadyClosed(f"Shift {shift_id} already closed")

    opened_at = normalize_utc(shift.opened_at)
    # A clock behind the opening instant would produce an inverted window
    closed_at = max(_resolve_now(now), opened_at)

    totals = _window_totals(shift, closed_at)
    result = reconcile_totals(
        shift.opening_cash_cents,
        totals,
        counted_cash_cents,
        counted_other_cents,
    )

    shift.status = SHIFT_CLOSED
    shift.closed_at = closed_at
    shift.closing_employee_id = closing_employee_id
    shift.counted_cash_cents = counted_cash_cents
    shift.counted_other_cents = counted_other_cents
    shift.expected_cash_cents = result.expected_cash_cents
    shift.expected_other_cents = result.expected_other_cents
    shift.difference_cents = result.difference_total_cents
    if notes is not None:
        shift.notes = notes

    try:
        storage_service.persist_shift(shift)
        storage_service.append_ledger_entry(
            store_id=shift.store_id,
            movement_type="closing",
            origin_kind=ORIGIN_CLOSING,
            amount_cents=0,
            description=(
                f"Shift closed. Counted: {result.counted_total_cents}, "
                f"difference: {result.difference_total_cents}"
            ),
            employee_id=closing_employee_id,
            shift_id=shift.id,
            reference_id=shift.id,
            occurred_at=closed_at,
        )
        storage_service.commit()
    except PersistenceFailure:
        current_app.logger.exception("Failed to close shift %s", shift_id)
        raise

    current_app.logger.info(
        "Shift %s closed for store %s by %s. Variance: cash %s, other %s, total %s",
        shift.id,
        shift.store_id,
        closing_employee_id,
        result.difference_cash_cents,
        result.difference_other_cents,
        result.difference_total_cents,
    )
    return ShiftReport(shift=shift, totals=totals, reconciliation=result)


# =============================================================================
# READS
# =============================================================================

def get_open_shift(store_id: int) -> CashRegisterShift | None:
    """Get the currently open shift for a store, if any."""
    return storage_service.find_open_shift(store_id)


def preview_shift(shift_id: str, *, now: datetime | None = None) -> ShiftReport:
    """
    Reconcile a shift without writing anything.

    Open shifts are evaluated up to ``now`` with counted amounts equal to
    the expectation (zero variance); closed shifts are recomputed over their
    stored window against their stored counts.
    """
    shift = storage_service.get_shift(shift_id)
    if not shift:
        raise ShiftNotFound(f"Shift {shift_id} not found")

    if shift.status == SHIFT_OPEN:
        end = max(_resolve_now(now), normalize_utc(shift.opened_at))
    else:
        end = normalize_utc(shift.closed_at)

    totals = _window_totals(shift, end)
    expected = reconcile_totals(shift.opening_cash_cents, totals, 0, 0)

    if shift.status == SHIFT_OPEN:
        counted_cash = expected.expected_cash_cents
        counted_other = expected.expected_other_cents
    else:
        counted_cash = shift.counted_cash_cents or 0
        counted_other = shift.counted_other_cents or 0

    result = reconcile_totals(shift.opening_cash_cents, totals, counted_cash, counted_other)
    return ShiftReport(shift=shift, totals=totals, reconciliation=result)


def shift_history(
    store_id: int,
    *,
    start: date | None = None,
    end: date | None = None,
) -> list[CashRegisterShift]:
    """Shifts opened between ``start`` and the end of day ``end``, newest first."""
    return storage_service.list_shifts(
        store_id,
        opened_from=start_of_day(start) if start else None,
        opened_to=end_of_day(end) if end else None,
    )


def shift_expenses(shift_id: str, *, now: datetime | None = None) -> list[Expense]:
    """Expenses paid out during a shift (up to ``now`` while it is open)."""
    shift = storage_service.get_shift(shift_id)
    if not shift:
        raise ShiftNotFound(f"Shift {shift_id} not found")

    window = ShiftWindow.for_shift(shift)
    return storage_service.list_expenses(shift.store_id, start=window.opened_at, end=window.end(now))


def store_daily_summary(store_id: int, day: date | None = None) -> DailySummary:
    """Sales and expense totals for one calendar day (UTC), independent of shifts."""
    day = day or utcnow().date()
    records = storage_service.load_store_records(
        store_id, start=start_of_day(day), end=end_of_day(day)
    )
    events = normalize_events(
        store_id,
        sales=records.sales,
        expenses=records.expenses,
    )
    return daily_summary(events, day)
