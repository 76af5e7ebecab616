# Overview: Pytest coverage for expected-vs-counted drawer math.

from cashdrawer.services.attribution_service import ShiftTotals
from cashdrawer.services.reconciliation_service import (
    expected_cash,
    expected_other,
    reconcile,
    reconcile_totals,
)


class TestExpectedAmounts:

    def test_expected_cash_includes_float(self):
        assert expected_cash(100000, 50000, 10000) == 140000

    def test_expected_other_excludes_float(self):
        assert expected_other(30000, 0) == 30000
        assert expected_other(0, 4000) == -4000


class TestReconcile:

    def test_balanced_drawer(self):
        result = reconcile(100000, 50000, 10000, 30000, 0, 140000, 30000)
        assert result.expected_cash_cents == 140000
        assert result.expected_other_cents == 30000
        assert result.difference_cash_cents == 0
        assert result.difference_other_cents == 0
        assert result.difference_total_cents == 0

    def test_cash_shortage(self):
        result = reconcile(100000, 50000, 10000, 30000, 0, 135000, 30000)
        assert result.difference_cash_cents == -5000
        assert result.difference_total_cents == -5000

    def test_surplus_is_positive(self):
        result = reconcile(0, 0, 0, 10000, 0, 0, 12000)
        assert result.difference_other_cents == 2000
        assert result.difference_total_cents == 2000

    def test_totals_identity(self):
        result = reconcile(5000, 700, 300, 900, 100, 5200, 850)
        assert result.difference_total_cents == (
            result.difference_cash_cents + result.difference_other_cents
        )
        assert result.counted_total_cents == 6050
        assert result.expected_total_cents == 5400 + 800

    def test_from_shift_totals(self):
        totals = ShiftTotals(
            cash_inflow_cents=70000,
            other_inflow_cents=30000,
            cash_outflow_cents=10000,
            other_movements_cash_cents=999,
        )
        result = reconcile_totals(100000, totals, 160000, 30000)
        # Manual movements are reported but not expected in the drawer
        assert result.expected_cash_cents == 160000
        assert result.to_dict()["difference_total_cents"] == 0
