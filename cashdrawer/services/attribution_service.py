# Overview: Windows normalized events against a shift and buckets them by channel and kind.

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable

from ..time_utils import end_of_day, normalize_utc, start_of_day, utcnow
from .channel_service import PaymentChannel
from .event_service import EventKind, FinancialEvent, INFLOW_KINDS


@dataclass(frozen=True)
class ShiftWindow:
    """
    Time interval of a shift: [opened_at, closed_at], or up to "now" while
    the shift is still open. Both ends are inclusive.
    """
    store_id: int | None
    opened_at: datetime
    closed_at: datetime | None = None

    @classmethod
    def for_shift(cls, shift) -> "ShiftWindow":
        return cls(
            store_id=shift.store_id,
            opened_at=normalize_utc(shift.opened_at),
            closed_at=normalize_utc(shift.closed_at),
        )

    def end(self, now: datetime | None = None) -> datetime:
        if self.closed_at is not None:
            return self.closed_at
        return normalize_utc(now) if now is not None else utcnow()

    def contains(self, event: FinancialEvent, now: datetime | None = None) -> bool:
        if event.store_id != self.store_id:
            return False
        if event.timestamp is None:
            return False
        return self.opened_at <= event.timestamp <= self.end(now)


@dataclass(frozen=True)
class ShiftTotals:
    """Per-shift sums. Outflows are magnitudes (non-negative)."""
    cash_inflow_cents: int = 0
    other_inflow_cents: int = 0
    cash_outflow_cents: int = 0
    other_outflow_cents: int = 0
    # Manual/adjustment ledger movements: reported, not reconciled
    other_movements_cash_cents: int = 0
    other_movements_other_cents: int = 0
    event_count: int = 0

    def to_dict(self) -> dict:
        return {
            "cash_inflow_cents": self.cash_inflow_cents,
            "other_inflow_cents": self.other_inflow_cents,
            "cash_outflow_cents": self.cash_outflow_cents,
            "other_outflow_cents": self.other_outflow_cents,
            "other_movements_cash_cents": self.other_movements_cash_cents,
            "other_movements_other_cents": self.other_movements_other_cents,
            "event_count": self.event_count,
        }


def attribute(
    events: Iterable[FinancialEvent],
    shift,
    now: datetime | None = None,
) -> list[FinancialEvent]:
    """
    Events of the shift's store whose timestamp falls in the shift window.

    ``shift`` is either a ShiftWindow or a CashRegisterShift row. ``now`` is
    resolved once so every event is tested against the same instant.
    """
    window = shift if isinstance(shift, ShiftWindow) else ShiftWindow.for_shift(shift)
    instant = window.end(now)
    return [ev for ev in events if window.contains(ev, instant)]


def bucket(events: Iterable[FinancialEvent]) -> ShiftTotals:
    cash_in = other_in = cash_out = other_out = 0
    moves_cash = moves_other = 0
    count = 0

    for ev in events:
        count += 1
        is_cash = ev.channel is PaymentChannel.CASH
        if ev.kind in INFLOW_KINDS:
            if is_cash:
                cash_in += ev.amount_cents
            else:
                other_in += ev.amount_cents
        elif ev.kind is EventKind.EXPENSE:
            if is_cash:
                cash_out += ev.magnitude_cents
            else:
                other_out += ev.magnitude_cents
        elif is_cash:
            moves_cash += ev.amount_cents
        else:
            moves_other += ev.amount_cents

    return ShiftTotals(
        cash_inflow_cents=cash_in,
        other_inflow_cents=other_in,
        cash_outflow_cents=cash_out,
        other_outflow_cents=other_out,
        other_movements_cash_cents=moves_cash,
        other_movements_other_cents=moves_other,
        event_count=count,
    )


def shift_totals(events: Iterable[FinancialEvent], shift, now: datetime | None = None) -> ShiftTotals:
    return bucket(attribute(events, shift, now=now))


# =============================================================================
# DAILY SUMMARY
# =============================================================================

@dataclass(frozen=True)
class DailySummary:
    day: date
    income_cents: int
    cash_income_cents: int
    other_income_cents: int
    expenses_cents: int
    expense_count: int

    @property
    def balance_cents(self) -> int:
        return self.income_cents - self.expenses_cents

    def to_dict(self) -> dict:
        return {
            "day": self.day.isoformat(),
            "income_cents": self.income_cents,
            "cash_income_cents": self.cash_income_cents,
            "other_income_cents": self.other_income_cents,
            "expenses_cents": self.expenses_cents,
            "expense_count": self.expense_count,
            "balance_cents": self.balance_cents,
        }


def daily_summary(events: Iterable[FinancialEvent], day: date) -> DailySummary:
    """
    Calendar-day totals regardless of shifts.

    Income counts sales only, matching the register dashboard; installments
    show up in the income ledger instead.
    """
    start, end = start_of_day(day), end_of_day(day)
    income = cash_income = expenses = expense_count = 0

    for ev in events:
        if ev.timestamp is None or not (start <= ev.timestamp <= end):
            continue
        if ev.kind is EventKind.SALE:
            income += ev.amount_cents
            if ev.channel is PaymentChannel.CASH:
                cash_income += ev.amount_cents
        elif ev.kind is EventKind.EXPENSE:
            expenses += ev.magnitude_cents
            expense_count += 1

    return DailySummary(
        day=day,
        income_cents=income,
        cash_income_cents=cash_income,
        other_income_cents=income - cash_income,
        expenses_cents=expenses,
        expense_count=expense_count,
    )
