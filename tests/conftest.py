"""Shared fixtures: in-memory order store, fake gateway, and app factory."""

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from artpay.common.config import Settings
from artpay.common.db import Base, make_session_factory
from artpay.services.payments.gateway import GatewayOrder, GatewayPayment
from artpay.services.payments.main import create_app
from artpay.services.payments.models import Artwork
from artpay.services.payments.service import PaymentService
from artpay.services.payments.signature import SignatureVerifier, compute_signature

SECRET = "test_key_secret"
API_KEY = "staff-key"


class FakeGateway:
    """In-memory stand-in for RazorpayClient that records every call."""

    def __init__(self) -> None:
        self.calls: list[tuple] = []
        self.orders: dict[str, GatewayOrder] = {}
        self.payments: dict[str, GatewayPayment] = {}
        self.fail_with: Exception | None = None
        self.closed = False

    async def create_order(self, amount, currency, receipt, notes=None):
        self.calls.append(("create_order", amount, currency, receipt, notes))
        if self.fail_with is not None:
            raise self.fail_with
        order = GatewayOrder(
            id=f"order_{len(self.orders) + 1}",
            amount=amount,
            currency=currency,
            receipt=receipt,
            status="created",
            notes=notes or {},
        )
        self.orders[order.id] = order
        return order

    async def fetch_order(self, order_id):
        self.calls.append(("fetch_order", order_id))
        if self.fail_with is not None:
            raise self.fail_with
        return self.orders[order_id]

    async def fetch_payment(self, payment_id):
        self.calls.append(("fetch_payment", payment_id))
        if self.fail_with is not None:
            raise self.fail_with
        return self.payments[payment_id]

    def pay(self, order_id: str, payment_id: str, status: str = "captured", amount: int | None = None) -> str:
        """Simulate a completed hosted checkout; returns the callback signature."""

        order = self.orders[order_id]
        self.payments[payment_id] = GatewayPayment(
            id=payment_id,
            amount=order.amount if amount is None else amount,
            currency=order.currency,
            status=status,
            order_id=order_id,
        )
        return compute_signature(order_id, payment_id, SECRET)

    async def close(self):
        self.closed = True


class AllowAll:
    def allow(self, subject: str) -> bool:
        return True


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield make_session_factory(engine)
    engine.dispose()


@pytest.fixture
def artwork(session_factory):
    with session_factory() as db:
        art = Artwork(id="art-500", title="Monsoon", cost=Decimal("500"), availability=True, artist_id="artist-1")
        db.add(art)
        db.commit()
    return art


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def payment_service(session_factory, gateway):
    return PaymentService(session_factory, gateway, SignatureVerifier(SECRET), delivery_fee=Decimal("50"))


@pytest.fixture
def test_settings():
    return Settings(
        razorpay_key_id="rzp_test_key",
        razorpay_key_secret=SECRET,
        api_key=API_KEY,
        tracing_enabled=False,
        delivery_fee=Decimal("50"),
    )


@pytest.fixture
def client(test_settings, session_factory, gateway):
    app = create_app(test_settings, session_factory=session_factory, gateway=gateway, limiter=AllowAll())
    return TestClient(app)
