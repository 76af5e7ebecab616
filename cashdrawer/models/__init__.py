from .tenancy import Store
from .sales import Sale, Expense, Layaway, LayawayPayment, PaymentMethod
from .registers import CashRegisterShift, CashMovement

__all__ = [
    'Store',
    'Sale', 'Expense', 'Layaway', 'LayawayPayment', 'PaymentMethod',
    'CashRegisterShift', 'CashMovement',
]
