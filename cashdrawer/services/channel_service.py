# Overview: Payment channel classification; pure, no database work.

from __future__ import annotations

import enum


class PaymentChannel(enum.Enum):
    CASH = "cash"
    OTHER = "other"


CASH_EXACT_LABEL = "cash"
CASH_LABEL_FRAGMENT = "efectivo"


def classify(label: str | None) -> PaymentChannel:
    """
    Classify a free-text tender label.

    Cash iff the trimmed, lowercased label is exactly "cash" or contains
    "efectivo". Anything else, including None and "", is OTHER.
    """
    if not label:
        return PaymentChannel.OTHER
    normalized = str(label).strip().lower()
    if normalized == CASH_EXACT_LABEL or CASH_LABEL_FRAGMENT in normalized:
        return PaymentChannel.CASH
    return PaymentChannel.OTHER


def is_cash(label: str | None) -> bool:
    return classify(label) is PaymentChannel.CASH
