# Overview: Income ledger report; net settled income per sale, installment and manual cash-in.

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable

from ..time_utils import normalize_utc, to_utc_z, utcnow
from . import storage_service
from .event_service import EventKind, FinancialEvent, SaleEvent, normalize_events
from .fee_service import FeeTable, load_fee_table


CATEGORY_DIRECT_SALE = "Direct Sale"
CATEGORY_LAYAWAY = "Layaway Installment"
CATEGORY_OTHER = "Other Income"

CATEGORIES = (CATEGORY_DIRECT_SALE, CATEGORY_LAYAWAY, CATEGORY_OTHER)

_CATEGORY_BY_KIND = {
    EventKind.SALE: (CATEGORY_DIRECT_SALE, "sale"),
    EventKind.LAYAWAY_PAYMENT: (CATEGORY_LAYAWAY, "layaway"),
    EventKind.OTHER_CASH_MOVEMENT: (CATEGORY_OTHER, "other"),
}

ONE = Decimal("1")
ZERO = Decimal("0")


class ReportError(Exception):
    """Raised when report filters are invalid."""
    pass


@dataclass(frozen=True)
class IncomeRecord:
    id: str
    category: str
    description: str
    payment_method: str | None
    occurred_at: datetime | None
    employee_id: str | None
    gross_cents: int
    fee_rate: Decimal
    net: Decimal
    shipping_cost_cents: int = 0
    net_shipping: Decimal = ZERO

    @property
    def net_without_shipping(self) -> Decimal:
        return self.net - self.net_shipping

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "category": self.category,
            "description": self.description,
            "payment_method": self.payment_method,
            "occurred_at": to_utc_z(self.occurred_at),
            "employee_id": self.employee_id,
            "gross_cents": self.gross_cents,
            "fee_rate": str(self.fee_rate),
            "net": str(self.net),
            "shipping_cost_cents": self.shipping_cost_cents,
            "net_shipping": str(self.net_shipping),
            "net_without_shipping": str(self.net_without_shipping),
        }


@dataclass
class IncomeTotals:
    count: int = 0
    gross_cents: int = 0
    net: Decimal = ZERO
    net_without_shipping: Decimal = ZERO

    def add(self, record: IncomeRecord) -> None:
        self.count += 1
        self.gross_cents += record.gross_cents
        self.net += record.net
        self.net_without_shipping += record.net_without_shipping

    def to_dict(self) -> dict:
        return {
            "count": self.count,
            "gross_cents": self.gross_cents,
            "net": str(self.net),
            "net_without_shipping": str(self.net_without_shipping),
        }


@dataclass
class IncomeReport:
    store_id: int | None
    rows: list[IncomeRecord]
    totals: IncomeTotals
    by_category: dict[str, IncomeTotals]
    available_years: list[int] = field(default_factory=list)
    month_to_date_gross_cents: int = 0

    def to_dict(self) -> dict:
        return {
            "store_id": self.store_id,
            "rows": [r.to_dict() for r in self.rows],
            "totals": self.totals.to_dict(),
            "by_category": {name: t.to_dict() for name, t in self.by_category.items()},
            "available_years": self.available_years,
            "month_to_date_gross_cents": self.month_to_date_gross_cents,
        }


def income_record(event: FinancialEvent, fee_table: FeeTable) -> IncomeRecord:
    """
    Net an inflow event of its processor fee.

    net = gross * (1 - rate). For sales the shipping charge is netted the
    same way and reported separately, so net_without_shipping is the
    merchandise income the store actually keeps.
    """
    category, prefix = _CATEGORY_BY_KIND[event.kind]
    rate = fee_table.rate_for(event.payment_method)
    gross = event.amount_cents
    net = Decimal(gross) * (ONE - rate)

    shipping = 0
    net_shipping = ZERO
    if isinstance(event, SaleEvent):
        shipping = event.shipping_cost_cents
        net_shipping = Decimal(shipping) * (ONE - rate)

    return IncomeRecord(
        id=f"{prefix}-{event.source_id}",
        category=category,
        description=event.description,
        payment_method=event.payment_method,
        occurred_at=event.timestamp,
        employee_id=event.employee_id,
        gross_cents=gross,
        fee_rate=rate,
        net=net,
        shipping_cost_cents=shipping,
        net_shipping=net_shipping,
    )


def _validate_filters(month: int | None, day: int | None) -> None:
    if month is not None and not 1 <= month <= 12:
        raise ReportError("month must be between 1 and 12")
    if day is not None and not 1 <= day <= 31:
        raise ReportError("day must be between 1 and 31")


def _matches(
    record: IncomeRecord,
    *,
    start: date | None,
    end: date | None,
    year: int | None,
    month: int | None,
    day: int | None,
    employee_id: str | None,
    category: str | None,
    search: str | None,
) -> bool:
    ts = record.occurred_at
    if start is not None and (ts is None or ts.date() < start):
        return False
    if end is not None and (ts is None or ts.date() > end):
        return False
    if year is not None and (ts is None or ts.year != year):
        return False
    if month is not None and (ts is None or ts.month != month):
        return False
    if day is not None and (ts is None or ts.day != day):
        return False
    if employee_id is not None and record.employee_id != employee_id:
        return False
    if category is not None and record.category != category:
        return False
    if search:
        needle = search.lower()
        if needle not in record.description.lower() and needle not in record.category.lower():
            return False
    return True


def _newest_first(record: IncomeRecord):
    return record.occurred_at or datetime.min


def compile_income_report(
    events: Iterable[FinancialEvent],
    fee_table: FeeTable,
    *,
    store_id: int | None = None,
    start: date | None = None,
    end: date | None = None,
    year: int | None = None,
    month: int | None = None,
    day: int | None = None,
    employee_id: str | None = None,
    category: str | None = None,
    search: str | None = None,
    now: datetime | None = None,
) -> IncomeReport:
    """
    Pure report over already-normalized events.

    Non-inflow events are ignored. Every filter left as None means "no
    restriction"; start/end are inclusive calendar dates, month is 1-12.
    """
    _validate_filters(month, day)
    now = normalize_utc(now) if now is not None else utcnow()

    all_rows = [
        income_record(ev, fee_table)
        for ev in events
        if ev.is_inflow and ev.kind in _CATEGORY_BY_KIND
    ]
    all_rows.sort(key=_newest_first, reverse=True)

    rows = [
        r for r in all_rows
        if _matches(
            r,
            start=start,
            end=end,
            year=year,
            month=month,
            day=day,
            employee_id=employee_id,
            category=category,
            search=search,
        )
    ]

    totals = IncomeTotals()
    by_category = {name: IncomeTotals() for name in CATEGORIES}
    for r in rows:
        totals.add(r)
        by_category[r.category].add(r)

    years = sorted({r.occurred_at.year for r in all_rows if r.occurred_at}, reverse=True)
    month_to_date = sum(
        r.gross_cents
        for r in all_rows
        if r.occurred_at and r.occurred_at.year == now.year and r.occurred_at.month == now.month
    )

    return IncomeReport(
        store_id=store_id,
        rows=rows,
        totals=totals,
        by_category=by_category,
        available_years=years,
        month_to_date_gross_cents=month_to_date,
    )


def build_income_report(
    store_id: int,
    *,
    start: date | None = None,
    end: date | None = None,
    year: int | None = None,
    month: int | None = None,
    day: int | None = None,
    employee_id: str | None = None,
    category: str | None = None,
    search: str | None = None,
    now: datetime | None = None,
) -> IncomeReport:
    """
    Historical income of a store across all shifts.

    Loads the store's sales, layaways and ledger movements plus the fee
    table, then compiles the report.
    """
    _validate_filters(month, day)
    records = storage_service.load_store_records(store_id)
    events = normalize_events(
        store_id,
        sales=records.sales,
        layaways=records.layaways,
        cash_movements=records.cash_movements,
        inflows_only=True,
    )
    return compile_income_report(
        events,
        load_fee_table(),
        store_id=store_id,
        start=start,
        end=end,
        year=year,
        month=month,
        day=day,
        employee_id=employee_id,
        category=category,
        search=search,
        now=now,
    )
