# Overview: Expected-vs-counted drawer math; pure integer arithmetic, no I/O.

from __future__ import annotations

from dataclasses import dataclass

from .attribution_service import ShiftTotals


@dataclass(frozen=True)
class Reconciliation:
    """
    Outcome of a drawer count.

    Differences are counted minus expected: positive is a surplus,
    negative a shortage.
    """
    expected_cash_cents: int
    expected_other_cents: int
    counted_cash_cents: int
    counted_other_cents: int

    @property
    def difference_cash_cents(self) -> int:
        return self.counted_cash_cents - self.expected_cash_cents

    @property
    def difference_other_cents(self) -> int:
        return self.counted_other_cents - self.expected_other_cents

    @property
    def expected_total_cents(self) -> int:
        return self.expected_cash_cents + self.expected_other_cents

    @property
    def counted_total_cents(self) -> int:
        return self.counted_cash_cents + self.counted_other_cents

    @property
    def difference_total_cents(self) -> int:
        return self.counted_total_cents - self.expected_total_cents

    def to_dict(self) -> dict:
        return {
            "expected_cash_cents": self.expected_cash_cents,
            "expected_other_cents": self.expected_other_cents,
            "counted_cash_cents": self.counted_cash_cents,
            "counted_other_cents": self.counted_other_cents,
            "difference_cash_cents": self.difference_cash_cents,
            "difference_other_cents": self.difference_other_cents,
            "difference_total_cents": self.difference_total_cents,
        }


def expected_cash(opening_cash_cents: int, cash_inflow_cents: int, cash_outflow_cents: int) -> int:
    return opening_cash_cents + cash_inflow_cents - cash_outflow_cents


def expected_other(other_inflow_cents: int, other_outflow_cents: int) -> int:
    # The opening float is cash only
    return other_inflow_cents - other_outflow_cents


def reconcile(
    opening_cash_cents: int,
    cash_inflow_cents: int,
    cash_outflow_cents: int,
    other_inflow_cents: int,
    other_outflow_cents: int,
    counted_cash_cents: int,
    counted_other_cents: int,
) -> Reconciliation:
    return Reconciliation(
        expected_cash_cents=expected_cash(opening_cash_cents, cash_inflow_cents, cash_outflow_cents),
        expected_other_cents=expected_other(other_inflow_cents, other_outflow_cents),
        counted_cash_cents=counted_cash_cents,
        counted_other_cents=counted_other_cents,
    )


def reconcile_totals(
    opening_cash_cents: int,
    totals: ShiftTotals,
    counted_cash_cents: int,
    counted_other_cents: int,
) -> Reconciliation:
    return reconcile(
        opening_cash_cents,
        totals.cash_inflow_cents,
        totals.cash_outflow_cents,
        totals.other_inflow_cents,
        totals.other_outflow_cents,
        counted_cash_cents,
        counted_other_cents,
    )
