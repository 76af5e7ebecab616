"""
Pytest fixtures for the cash drawer engine.

Provides an in-memory application, a clean database per test, stores and
factories for the records the surrounding application would write.
"""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from cashdrawer import create_app
from cashdrawer.extensions import db
from cashdrawer.models import (
    CashMovement,
    Expense,
    Layaway,
    LayawayPayment,
    PaymentMethod,
    Sale,
    Store,
)


# Fixed business clock; tests pass explicit instants instead of reading time
T0 = datetime(2026, 3, 10, 9, 0, 0)


def at(minutes: int = 0, *, hours: int = 0) -> datetime:
    return T0 + timedelta(hours=hours, minutes=minutes)


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def store_a(db_session):
    store = Store(name="Store A - Centro", code="A1")
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture(scope='function')
def store_b(db_session):
    store = Store(name="Store B - Norte", code="B1")
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture(scope='function')
def add_sale(db_session):
    def _add(store, total_cents, payment_method="Efectivo", occurred_at=None, **kwargs):
        sale = Sale(
            store_id=store.id,
            total_cents=total_cents,
            payment_method=payment_method,
            occurred_at=occurred_at or at(),
            employee_id=kwargs.pop("employee_id", "emp-1"),
            **kwargs,
        )
        db_session.add(sale)
        db_session.commit()
        return sale
    return _add


@pytest.fixture(scope='function')
def add_expense(db_session):
    def _add(store, amount_cents, occurred_at=None, **kwargs):
        expense = Expense(
            store_id=store.id,
            amount_cents=amount_cents,
            occurred_at=occurred_at or at(),
            description=kwargs.pop("description", "Office supplies"),
            **kwargs,
        )
        db_session.add(expense)
        db_session.commit()
        return expense
    return _add


@pytest.fixture(scope='function')
def add_layaway_payment(db_session):
    def _add(store, amount_cents, payment_method="Efectivo", paid_at=None, layaway=None):
        if layaway is None:
            layaway = Layaway(store_id=store.id, customer_name="Ana", total_cents=200000)
            db_session.add(layaway)
            db_session.flush()
        payment = LayawayPayment(
            layaway_id=layaway.id,
            employee_id="emp-1",
            amount_cents=amount_cents,
            payment_method=payment_method,
            paid_at=paid_at or at(),
        )
        db_session.add(payment)
        db_session.commit()
        db_session.refresh(layaway)
        return layaway
    return _add


@pytest.fixture(scope='function')
def add_movement(db_session):
    def _add(store, amount_cents, movement_type="manual", origin_kind=None,
             description="", occurred_at=None, payment_method="Efectivo"):
        movement = CashMovement(
            store_id=store.id,
            employee_id="emp-1",
            movement_type=movement_type,
            origin_kind=origin_kind,
            amount_cents=amount_cents,
            description=description,
            payment_method=payment_method,
            occurred_at=occurred_at or at(),
        )
        db_session.add(movement)
        db_session.commit()
        return movement
    return _add


@pytest.fixture(scope='function')
def payment_methods(db_session):
    methods = [
        PaymentMethod(name="Efectivo", discount_percentage=0),
        PaymentMethod(name="Tarjeta", discount_percentage=Decimal("3.5")),
        PaymentMethod(name="Nequi", discount_percentage=1, is_active=False),
    ]
    db_session.add_all(methods)
    db_session.commit()
    return methods
