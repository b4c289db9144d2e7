"""RazorpayClient against a mocked HTTP transport."""

import asyncio
import base64
import json

import httpx
import pytest

from artpay.common.errors import GatewayResponseError, GatewayTimeoutError, GatewayUnavailableError
from artpay.services.payments.gateway import RazorpayClient


def make_client(handler) -> RazorpayClient:
    return RazorpayClient(
        "rzp_test_key",
        "secret",
        base_url="https://api.razorpay.test/v1",
        transport=httpx.MockTransport(handler),
    )


def test_create_order_posts_minor_units_with_basic_auth():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["auth"] = request.headers["authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={
                "id": "order_1",
                "entity": "order",
                "amount": 105000,
                "currency": "INR",
                "receipt": "rcpt_x",
                "status": "created",
                "notes": {"artwork_id": "art-1", "quantity": "2"},
            },
        )

    order = asyncio.run(
        make_client(handler).create_order(105000, "INR", "rcpt_x", notes={"artwork_id": "art-1", "quantity": "2"})
    )

    assert seen["path"] == "/v1/orders"
    assert seen["auth"] == "Basic " + base64.b64encode(b"rzp_test_key:secret").decode()
    assert seen["body"] == {
        "amount": 105000,
        "currency": "INR",
        "receipt": "rcpt_x",
        "notes": {"artwork_id": "art-1", "quantity": "2"},
    }
    assert (order.id, order.amount, order.currency) == ("order_1", 105000, "INR")
    assert order.note("quantity") == "2"


def test_empty_notes_list_is_tolerated():
    def handler(request):
        return httpx.Response(200, json={"id": "order_1", "amount": 100, "currency": "INR", "notes": []})

    order = asyncio.run(make_client(handler).fetch_order("order_1"))
    assert order.note("artwork_id") is None


def test_fetch_payment_reports_paid_status():
    def handler(request):
        assert request.url.path == "/v1/payments/pay_1"
        return httpx.Response(
            200,
            json={"id": "pay_1", "amount": 105000, "currency": "INR", "status": "captured", "order_id": "order_1"},
        )

    payment = asyncio.run(make_client(handler).fetch_payment("pay_1"))
    assert payment.is_paid
    assert payment.order_id == "order_1"


def test_timeout_surfaces_as_timeout_error():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(GatewayTimeoutError) as excinfo:
        asyncio.run(make_client(handler).create_order(100, "INR", "r"))
    assert isinstance(excinfo.value, TimeoutError)
    assert isinstance(excinfo.value, GatewayUnavailableError)


def test_error_status_is_unavailable():
    def handler(request):
        return httpx.Response(502, json={"error": {"description": "bad gateway"}})

    with pytest.raises(GatewayUnavailableError):
        asyncio.run(make_client(handler).create_order(100, "INR", "r"))


def test_connection_error_is_unavailable():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(GatewayUnavailableError):
        asyncio.run(make_client(handler).fetch_payment("pay_1"))


def test_shape_mismatch_is_a_response_error():
    def handler(request):
        return httpx.Response(200, json={"id": "order_1", "amount": "lots"})

    with pytest.raises(GatewayResponseError):
        asyncio.run(make_client(handler).create_order(100, "INR", "r"))


def test_non_json_body_is_a_response_error():
    def handler(request):
        return httpx.Response(200, text="<html>maintenance</html>")

    with pytest.raises(GatewayResponseError):
        asyncio.run(make_client(handler).fetch_order("order_1"))
