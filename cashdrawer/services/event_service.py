# Overview: Normalizes sales, expenses, layaway payments and ledger movements into one event stream.

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import ClassVar, Iterable

from ..models.registers import (
    ORIGIN_ADJUSTMENT,
    ORIGIN_MANUAL,
)
from ..time_utils import normalize_utc
from .channel_service import PaymentChannel, classify

"""
Event stream invariants

- Normalization never raises: a bad record degrades to a zero amount or an
  OTHER channel instead of failing the batch.
- SALE and LAYAWAY_PAYMENT amounts are inflows, EXPENSE amounts are always
  negative, OTHER_CASH_MOVEMENT keeps the sign of the ledger row.
- Output is ordered by timestamp; ties keep input order (sales, expenses,
  layaway payments, movements). Events without a timestamp sort first.
"""


class EventKind(enum.Enum):
    SALE = "sale"
    EXPENSE = "expense"
    LAYAWAY_PAYMENT = "layaway_payment"
    OTHER_CASH_MOVEMENT = "other_cash_movement"


INFLOW_KINDS = frozenset({EventKind.SALE, EventKind.LAYAWAY_PAYMENT})

# Ledger rows that mirror a record already normalized from its own table,
# or that carry the float rather than income.
LEGACY_EXCLUDED_MOVEMENT_TYPES = frozenset({"sale", "expense", "opening", "closing"})
LEGACY_DUPLICATE_KEYWORDS = ("abono", "separado")
OTHER_MOVEMENT_ORIGINS = frozenset({ORIGIN_MANUAL, ORIGIN_ADJUSTMENT})


@dataclass(frozen=True)
class FinancialEvent:
    store_id: int | None
    timestamp: datetime | None
    amount_cents: int
    payment_method: str | None
    employee_id: str | None
    source_id: str
    description: str = ""

    kind: ClassVar[EventKind]

    @property
    def channel(self) -> PaymentChannel:
        return classify(self.payment_method)

    @property
    def is_inflow(self) -> bool:
        if self.kind in INFLOW_KINDS:
            return True
        if self.kind is EventKind.EXPENSE:
            return False
        return self.amount_cents > 0

    @property
    def magnitude_cents(self) -> int:
        return abs(self.amount_cents)


@dataclass(frozen=True)
class SaleEvent(FinancialEvent):
    shipping_cost_cents: int = 0

    kind: ClassVar[EventKind] = EventKind.SALE


@dataclass(frozen=True)
class ExpenseEvent(FinancialEvent):
    kind: ClassVar[EventKind] = EventKind.EXPENSE


@dataclass(frozen=True)
class LayawayPaymentEvent(FinancialEvent):
    layaway_id: str | None = None

    kind: ClassVar[EventKind] = EventKind.LAYAWAY_PAYMENT


@dataclass(frozen=True)
class OtherMovementEvent(FinancialEvent):
    origin_kind: str | None = None

    kind: ClassVar[EventKind] = EventKind.OTHER_CASH_MOVEMENT


def _cents(value) -> int:
    if value is None or isinstance(value, bool):
        return 0
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return 0


def _timestamp(value) -> datetime | None:
    if isinstance(value, datetime):
        return normalize_utc(value)
    return None


def _text(value) -> str | None:
    if value is None:
        return None
    return str(value)


def _source_id(value) -> str:
    return "" if value is None else str(value)


# =============================================================================
# ONE NORMALIZER PER SOURCE
# =============================================================================

def sale_event(sale) -> SaleEvent:
    invoice = getattr(sale, "invoice_number", None)
    return SaleEvent(
        store_id=getattr(sale, "store_id", None),
        timestamp=_timestamp(getattr(sale, "occurred_at", None)),
        amount_cents=_cents(getattr(sale, "total_cents", None)),
        payment_method=_text(getattr(sale, "payment_method", None)),
        employee_id=_text(getattr(sale, "employee_id", None)),
        source_id=_source_id(getattr(sale, "id", None)),
        description=f"Sale {invoice}" if invoice else "Sale",
        shipping_cost_cents=_cents(getattr(sale, "shipping_cost_cents", None)),
    )


def expense_event(expense) -> ExpenseEvent:
    return ExpenseEvent(
        store_id=getattr(expense, "store_id", None),
        timestamp=_timestamp(getattr(expense, "occurred_at", None)),
        amount_cents=-abs(_cents(getattr(expense, "amount_cents", None))),
        payment_method=_text(getattr(expense, "payment_method", None)),
        employee_id=_text(getattr(expense, "employee_id", None)),
        source_id=_source_id(getattr(expense, "id", None)),
        description=getattr(expense, "description", None) or "",
    )


def layaway_payment_events(layaway) -> list[LayawayPaymentEvent]:
    """Flatten a layaway's installments; payments inherit the layaway's store."""
    layaway_id = _source_id(getattr(layaway, "id", None))
    store_id = getattr(layaway, "store_id", None)
    events = []
    for payment in getattr(layaway, "payments", None) or []:
        events.append(
            LayawayPaymentEvent(
                store_id=store_id,
                timestamp=_timestamp(getattr(payment, "paid_at", None)),
                amount_cents=_cents(getattr(payment, "amount_cents", None)),
                payment_method=_text(getattr(payment, "payment_method", None)),
                employee_id=_text(getattr(payment, "employee_id", None)),
                source_id=_source_id(getattr(payment, "id", None)),
                description=f"Layaway installment #{layaway_id}",
                layaway_id=layaway_id,
            )
        )
    return events


def is_other_movement(movement) -> bool:
    """
    True when a ledger row is income/outflow not represented elsewhere.

    Tagged rows are filtered by origin. Untagged legacy rows fall back to the
    movement type plus a description match on installment wording, which can
    misfire on unrelated descriptions that happen to contain those words.
    """
    origin = getattr(movement, "origin_kind", None)
    if origin:
        return str(origin).upper() in OTHER_MOVEMENT_ORIGINS

    movement_type = (getattr(movement, "movement_type", None) or "").strip().lower()
    if movement_type in LEGACY_EXCLUDED_MOVEMENT_TYPES:
        return False
    description = (getattr(movement, "description", None) or "").lower()
    return not any(keyword in description for keyword in LEGACY_DUPLICATE_KEYWORDS)


def movement_event(movement) -> OtherMovementEvent | None:
    if not is_other_movement(movement):
        return None
    return OtherMovementEvent(
        store_id=getattr(movement, "store_id", None),
        timestamp=_timestamp(getattr(movement, "occurred_at", None)),
        amount_cents=_cents(getattr(movement, "amount_cents", None)),
        payment_method=_text(getattr(movement, "payment_method", None)),
        employee_id=_text(getattr(movement, "employee_id", None)),
        source_id=_source_id(getattr(movement, "id", None)),
        description=getattr(movement, "description", None) or "",
        origin_kind=getattr(movement, "origin_kind", None),
    )


def _sort_key(event: FinancialEvent):
    if event.timestamp is None:
        return (0, datetime.min)
    return (1, event.timestamp)


def normalize_events(
    store_id: int | None,
    *,
    sales: Iterable = (),
    expenses: Iterable = (),
    layaways: Iterable = (),
    cash_movements: Iterable = (),
    inflows_only: bool = False,
) -> list[FinancialEvent]:
    """
    Merge a store's raw collections into one timestamp-ordered event list.

    Records belonging to another store are skipped. ``store_id=None`` keeps
    everything. ``inflows_only`` drops expenses and negative movements.
    """
    events: list[FinancialEvent] = []
    events.extend(sale_event(s) for s in sales or ())
    if not inflows_only:
        events.extend(expense_event(e) for e in expenses or ())
    for layaway in layaways or ():
        events.extend(layaway_payment_events(layaway))
    for movement in cash_movements or ():
        ev = movement_event(movement)
        if ev is not None:
            events.append(ev)

    if store_id is not None:
        events = [ev for ev in events if ev.store_id == store_id]
    if inflows_only:
        events = [ev for ev in events if ev.is_inflow]

    events.sort(key=_sort_key)
    return events
