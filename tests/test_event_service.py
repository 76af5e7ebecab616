# Overview: Pytest coverage for normalizing source records into financial events.

from types import SimpleNamespace

from cashdrawer.services.channel_service import PaymentChannel
from cashdrawer.services.event_service import (
    EventKind,
    is_other_movement,
    normalize_events,
)
from tests.conftest import at


def sale(id, amount, method="Efectivo", when=None, store_id=1, **kw):
    return SimpleNamespace(
        id=id, store_id=store_id, total_cents=amount, payment_method=method,
        occurred_at=when or at(), employee_id="emp-1",
        invoice_number=kw.get("invoice_number", f"F-{id}"),
        shipping_cost_cents=kw.get("shipping_cost_cents", 0),
    )


def expense(id, amount, method="Efectivo", when=None, store_id=1):
    return SimpleNamespace(
        id=id, store_id=store_id, amount_cents=amount, payment_method=method,
        occurred_at=when or at(), employee_id="emp-1", description="Taxi",
    )


def layaway(id, payments, store_id=1):
    return SimpleNamespace(id=id, store_id=store_id, payments=payments)


def payment(id, amount, method="Efectivo", when=None):
    return SimpleNamespace(
        id=id, amount_cents=amount, payment_method=method,
        paid_at=when or at(), employee_id="emp-2",
    )


def movement(id, amount, movement_type="manual", origin_kind=None, description="", when=None, store_id=1):
    return SimpleNamespace(
        id=id, store_id=store_id, amount_cents=amount, movement_type=movement_type,
        origin_kind=origin_kind, description=description, payment_method="Efectivo",
        occurred_at=when or at(), employee_id="emp-1",
    )


class TestNormalizeEvents:

    def test_one_event_per_record_with_signed_amounts(self):
        events = normalize_events(
            1,
            sales=[sale(1, 50000)],
            expenses=[expense(1, 10000)],
            layaways=[layaway(7, [payment(1, 20000), payment(2, 15000, "Nequi")])],
        )
        kinds = [ev.kind for ev in events]
        assert kinds.count(EventKind.SALE) == 1
        assert kinds.count(EventKind.EXPENSE) == 1
        assert kinds.count(EventKind.LAYAWAY_PAYMENT) == 2

        by_kind = {ev.kind: ev for ev in events}
        assert by_kind[EventKind.SALE].amount_cents == 50000
        assert by_kind[EventKind.EXPENSE].amount_cents == -10000
        assert by_kind[EventKind.EXPENSE].magnitude_cents == 10000

    def test_expense_is_outflow_even_if_stored_negative(self):
        events = normalize_events(1, expenses=[expense(1, -2500)])
        assert events[0].amount_cents == -2500
        assert not events[0].is_inflow

    def test_layaway_payments_inherit_store(self):
        events = normalize_events(1, layaways=[layaway(7, [payment(1, 20000)])])
        assert events[0].store_id == 1
        assert events[0].description == "Layaway installment #7"

    def test_ordered_by_timestamp(self):
        events = normalize_events(
            1,
            sales=[sale(1, 100, when=at(30)), sale(2, 200, when=at(10))],
            expenses=[expense(1, 50, when=at(20))],
        )
        assert [ev.timestamp for ev in events] == [at(10), at(20), at(30)]

    def test_other_store_records_are_skipped(self):
        events = normalize_events(
            1,
            sales=[sale(1, 100), sale(2, 999, store_id=2)],
            layaways=[layaway(3, [payment(1, 500)], store_id=2)],
        )
        assert [ev.source_id for ev in events] == ["1"]

    def test_malformed_fields_do_not_fail_the_batch(self):
        broken = SimpleNamespace(id=9, store_id=1, total_cents="n/a", payment_method=None)
        events = normalize_events(1, sales=[broken, sale(1, 100, when=at(5))])
        assert len(events) == 2
        assert events[0].amount_cents == 0
        assert events[0].timestamp is None
        assert events[0].channel is PaymentChannel.OTHER

    def test_inflows_only(self):
        events = normalize_events(
            1,
            sales=[sale(1, 100)],
            expenses=[expense(1, 50)],
            cash_movements=[
                movement("m1", 300, origin_kind="MANUAL"),
                movement("m2", -300, origin_kind="MANUAL"),
            ],
            inflows_only=True,
        )
        assert {ev.source_id for ev in events} == {"1", "m1"}


class TestOtherMovementFilter:

    def test_tagged_rows_use_origin(self):
        assert is_other_movement(movement("a", 100, origin_kind="MANUAL"))
        assert is_other_movement(movement("b", -100, origin_kind="ADJUSTMENT"))
        assert not is_other_movement(movement("c", 100, origin_kind="SALE"))
        assert not is_other_movement(movement("d", 100, origin_kind="LAYAWAY_PAYMENT"))
        assert not is_other_movement(movement("e", 100000, origin_kind="OPENING"))

    def test_tag_wins_over_description(self):
        """A tagged manual deposit mentioning an installment still counts."""
        row = movement("a", 100, origin_kind="MANUAL", description="Abono a deuda del proveedor")
        assert is_other_movement(row)

    def test_legacy_rows_fall_back_to_text_heuristic(self):
        assert not is_other_movement(movement("a", 100, movement_type="sale", description="Venta F-1"))
        assert not is_other_movement(movement("b", 100000, movement_type="opening", description="Apertura de caja"))
        assert not is_other_movement(movement("c", -5000, movement_type="expense", description="Taxi"))
        assert not is_other_movement(movement("d", 100, movement_type="deposit", description="Abono separado #4"))
        assert not is_other_movement(movement("e", 100, movement_type="deposit", description="SEPARADO cliente"))
        assert is_other_movement(movement("f", 100, movement_type="deposit", description="Ingreso por reciclaje"))

    def test_other_movement_event_keeps_sign_and_origin(self):
        events = normalize_events(1, cash_movements=[movement("a", -700, origin_kind="ADJUSTMENT")])
        assert events[0].kind is EventKind.OTHER_CASH_MOVEMENT
        assert events[0].amount_cents == -700
        assert events[0].origin_kind == "ADJUSTMENT"
        assert not events[0].is_inflow
