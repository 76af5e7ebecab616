# Overview: Processor fee lookup by payment method name; used by the income ledger.

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Iterable, Mapping

from ..extensions import db
from ..models import PaymentMethod


ZERO = Decimal("0")
HUNDRED = Decimal("100")


def _to_percent(value) -> Decimal:
    """Coerce a stored percentage to Decimal, clamped to 0-100."""
    if value is None:
        return ZERO
    try:
        pct = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return ZERO
    if not pct.is_finite():
        return ZERO
    return min(max(pct, ZERO), HUNDRED)


class FeeTable:
    """
    Case-insensitive map from tender label to processor fee.

    Labels not in the table carry no fee. When the same name appears more
    than once the last entry wins.
    """

    def __init__(self, percentages: Mapping[str, object] | None = None):
        self._rates: dict[str, Decimal] = {}
        for name, pct in (percentages or {}).items():
            self.set(name, pct)

    @classmethod
    def from_payment_methods(cls, methods: Iterable[PaymentMethod]) -> "FeeTable":
        table = cls()
        for method in methods:
            table.set(method.name, method.discount_percentage)
        return table

    @staticmethod
    def _key(label: str | None) -> str | None:
        if not label:
            return None
        return str(label).strip().lower() or None

    def set(self, label: str | None, percentage) -> None:
        key = self._key(label)
        if key is None:
            return
        self._rates[key] = _to_percent(percentage)

    def percent_for(self, label: str | None) -> Decimal:
        key = self._key(label)
        if key is None:
            return ZERO
        return self._rates.get(key, ZERO)

    def rate_for(self, label: str | None) -> Decimal:
        """Fee as a fraction (0-1)."""
        return self.percent_for(label) / HUNDRED

    def __contains__(self, label: str | None) -> bool:
        key = self._key(label)
        return key is not None and key in self._rates

    def __len__(self) -> int:
        return len(self._rates)


def load_fee_table() -> FeeTable:
    """
    Build the fee table from every configured payment method.

    Inactive methods are included so that historical income keeps the fee
    it was settled with.
    """
    methods = db.session.query(PaymentMethod).order_by(PaymentMethod.id).all()
    return FeeTable.from_payment_methods(methods)
