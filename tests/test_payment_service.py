"""Order-intent issuing, amount confirmation, and exactly-once order writes."""

import asyncio
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from artpay.common.errors import (
    AmountMismatchError,
    DuplicatePaymentError,
    GatewayUnavailableError,
    ItemNotFoundError,
    OrderRecordingError,
)
from artpay.services.payments.gateway import GatewayOrder
from artpay.services.payments.models import Artwork, Order, OrderTimeline
from artpay.services.payments.service import make_receipt


def record(payment_service, payment_id="pay_1", quantity=2, amount=Decimal("1050")):
    return payment_service.record_order(
        buyer_id="buyer-1",
        item_id="art-500",
        quantity=quantity,
        amount=amount,
        delivery_fee=Decimal("50"),
        shipping_address="12 Lake Rd, Pune",
        billing_address="12 Lake Rd, Pune",
        buyer_full_name="Asha Rao",
        buyer_mobile="9876543210",
        alt_mobile=None,
        gateway_payment_id=payment_id,
    )


def test_intent_amount_includes_delivery_fee(payment_service, gateway, artwork):
    """500 x 2 + 50 = 1050 rupees = 105000 paise."""

    intent = asyncio.run(payment_service.create_order_intent("art-500", quantity=2))

    assert intent.amount == 105000
    assert intent.currency == "INR"
    _, amount, currency, receipt, notes = gateway.calls[0]
    assert (amount, currency) == (105000, "INR")
    assert receipt.startswith("rcpt_art-500_")
    assert (notes["artwork_id"], notes["quantity"]) == ("art-500", "2")
    assert Decimal(notes["unit_cost"]) == Decimal("500")
    assert Decimal(notes["delivery_fee"]) == Decimal("50")


def test_unknown_artwork_never_reaches_gateway(payment_service, gateway):
    with pytest.raises(ItemNotFoundError):
        asyncio.run(payment_service.create_order_intent("missing"))
    assert gateway.calls == []


def test_sold_artwork_is_not_offered_again(payment_service, gateway, session_factory, artwork):
    with session_factory() as db:
        db.get(Artwork, "art-500").availability = False
        db.commit()
    with pytest.raises(ItemNotFoundError):
        asyncio.run(payment_service.create_order_intent("art-500"))
    assert gateway.calls == []


def test_gateway_failure_propagates(payment_service, gateway, artwork):
    gateway.fail_with = GatewayUnavailableError("down")
    with pytest.raises(GatewayUnavailableError):
        asyncio.run(payment_service.create_order_intent("art-500"))


def test_receipts_fit_gateway_limit():
    receipt = make_receipt("3f2b8c1e-8d4a-4f7e-9b1c-2a6d5e4f3c2b")
    assert len(receipt) <= 40


def test_record_order_writes_paid_record_and_marks_sold(payment_service, session_factory, artwork):
    order = record(payment_service)

    assert order.status == "paid"
    assert order.shipment_status == "pending"
    assert order.amount == Decimal("1050")
    with session_factory() as db:
        assert db.get(Artwork, "art-500").availability is False
        timeline = db.execute(select(OrderTimeline).where(OrderTimeline.order_id == order.id)).scalars().all()
        assert [(t.from_state, t.to_state) for t in timeline] == [(None, "paid")]


def test_second_write_for_same_payment_is_rejected(payment_service, session_factory, artwork):
    first = record(payment_service)
    with pytest.raises(DuplicatePaymentError) as excinfo:
        record(payment_service)

    assert excinfo.value.order_id == first.id
    with session_factory() as db:
        assert db.execute(select(func.count()).select_from(Order)).scalar_one() == 1


def test_concurrent_write_losing_unique_constraint_is_duplicate(payment_service, session_factory, artwork, monkeypatch):
    """A writer that passed the lookup before the winner committed hits the unique index."""

    first = record(payment_service)
    lookup = payment_service._existing_order_id
    seen = []

    def stale_lookup(db, payment_id):
        seen.append(payment_id)
        return None if len(seen) == 1 else lookup(db, payment_id)

    monkeypatch.setattr(payment_service, "_existing_order_id", stale_lookup)
    with pytest.raises(DuplicatePaymentError) as excinfo:
        record(payment_service)

    assert excinfo.value.order_id == first.id
    assert len(seen) == 2
    with session_factory() as db:
        assert db.execute(select(func.count()).select_from(Order)).scalar_one() == 1


def test_quantity_must_be_positive(payment_service, artwork):
    with pytest.raises(ValueError):
        record(payment_service, quantity=0)


def test_store_failure_after_charge_is_flagged(payment_service, artwork, monkeypatch):
    def broken_commit(self):
        raise OperationalError("INSERT INTO orders", {}, Exception("connection lost"))

    monkeypatch.setattr(Session, "commit", broken_commit)
    with pytest.raises(OrderRecordingError) as excinfo:
        record(payment_service, payment_id="pay_lost")
    assert excinfo.value.payment_id == "pay_lost"


def test_confirm_amount_accepts_matching_payment(payment_service, gateway, artwork):
    intent = asyncio.run(payment_service.create_order_intent("art-500", quantity=2))
    gateway.pay(intent.id, "pay_1")

    amount, fee = asyncio.run(payment_service.confirm_amount(intent.id, "pay_1", "art-500", 2))
    assert (amount, fee) == (Decimal("1050"), Decimal("50"))


def test_confirm_amount_rejects_partial_payment(payment_service, gateway, artwork):
    intent = asyncio.run(payment_service.create_order_intent("art-500"))
    gateway.pay(intent.id, "pay_1", amount=100)

    with pytest.raises(AmountMismatchError):
        asyncio.run(payment_service.confirm_amount(intent.id, "pay_1", "art-500", 1))


def test_confirm_amount_rejects_payment_for_other_order(payment_service, gateway, artwork):
    first = asyncio.run(payment_service.create_order_intent("art-500"))
    second = asyncio.run(payment_service.create_order_intent("art-500"))
    gateway.pay(first.id, "pay_1")

    with pytest.raises(AmountMismatchError):
        asyncio.run(payment_service.confirm_amount(second.id, "pay_1", "art-500", 1))


def test_confirm_amount_rejects_inflated_quantity(payment_service, gateway, artwork):
    intent = asyncio.run(payment_service.create_order_intent("art-500", quantity=1))
    gateway.pay(intent.id, "pay_1")

    with pytest.raises(AmountMismatchError):
        asyncio.run(payment_service.confirm_amount(intent.id, "pay_1", "art-500", 3))


def test_confirm_amount_rejects_failed_payment(payment_service, gateway, artwork):
    intent = asyncio.run(payment_service.create_order_intent("art-500"))
    gateway.pay(intent.id, "pay_1", status="failed")

    with pytest.raises(AmountMismatchError):
        asyncio.run(payment_service.confirm_amount(intent.id, "pay_1", "art-500", 1))


def test_reconcile_flags_paid_payment_without_order(payment_service, gateway, artwork):
    intent = asyncio.run(payment_service.create_order_intent("art-500"))
    gateway.pay(intent.id, "pay_orphan")

    report = asyncio.run(payment_service.reconcile("pay_orphan"))
    assert report.reconciled is False
    assert report.order_id is None
    assert report.gateway_amount == 55000


def test_reconcile_matches_recorded_order(payment_service, gateway, artwork):
    intent = asyncio.run(payment_service.create_order_intent("art-500"))
    gateway.pay(intent.id, "pay_1")
    order = record(payment_service, payment_id="pay_1", quantity=1, amount=Decimal("550"))

    report = asyncio.run(payment_service.reconcile("pay_1"))
    assert report.reconciled is True
    assert report.order_id == order.id


def test_confirm_amount_uses_minted_snapshot_after_price_change(payment_service, gateway, session_factory, artwork):
    intent = asyncio.run(payment_service.create_order_intent("art-500", quantity=2))
    gateway.pay(intent.id, "pay_1")
    with session_factory() as db:
        db.get(Artwork, "art-500").cost = Decimal("900")
        db.commit()
    payment_service.delivery_fee = Decimal("80")

    amount, fee = asyncio.run(payment_service.confirm_amount(intent.id, "pay_1", "art-500", 2))
    assert (amount, fee) == (Decimal("1050"), Decimal("50"))


def test_confirm_amount_rejects_order_inconsistent_with_its_snapshot(payment_service, gateway):
    gateway.orders["order_x"] = GatewayOrder(
        id="order_x",
        amount=100,
        currency="INR",
        notes={"artwork_id": "art-500", "quantity": "1", "unit_cost": "500", "delivery_fee": "50"},
    )
    gateway.pay("order_x", "pay_1")

    with pytest.raises(AmountMismatchError):
        asyncio.run(payment_service.confirm_amount("order_x", "pay_1", "art-500", 1))


def test_confirm_amount_rejects_order_without_price_snapshot(payment_service, gateway):
    gateway.orders["order_x"] = GatewayOrder(
        id="order_x", amount=55000, currency="INR", notes={"artwork_id": "art-500", "quantity": "1"}
    )
    gateway.pay("order_x", "pay_1")

    with pytest.raises(AmountMismatchError):
        asyncio.run(payment_service.confirm_amount("order_x", "pay_1", "art-500", 1))
