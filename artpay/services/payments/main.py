"""HTTP surface for checkout, payment verification, and order tracking.

The storefront mints a gateway order through `/api/create-order`, opens the
gateway's hosted checkout with it, and posts the signed callback fields back
to `/api/verify-payment` and `/api/orders`. Buyer identity comes from the
upstream auth layer in `X-User-Id`; artist/admin tooling uses `X-API-Key`.
"""

from contextlib import asynccontextmanager
from time import perf_counter
from uuid import uuid4

import uvicorn
from fastapi import APIRouter, Depends, FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse

from artpay.common.config import Settings
from artpay.common.db import make_engine, make_session_factory
from artpay.common.errors import (
    AmountMismatchError,
    ConcurrentUpdateError,
    DuplicatePaymentError,
    GatewayResponseError,
    GatewayUnavailableError,
    InvalidTransitionError,
    ItemNotFoundError,
    OrderNotDeletableError,
    OrderNotFoundError,
    OrderRecordingError,
    TrackingIdInUseError,
)
from artpay.common.logging import configure_logging, logger, trace_id_ctx
from artpay.common.metrics import (
    http_request_duration_seconds,
    http_requests_total,
    metrics_response,
    order_intents_failed_total,
    rate_limited_total,
)
from artpay.common.startup import log_startup_config, require_settings
from artpay.common.state_machine import OrderStatus, ShipmentStatus
from artpay.common.tracing import configure_tracing
from artpay.services.payments.gateway import RazorpayClient
from artpay.services.payments.lifecycle import OrderLifecycleService
from artpay.services.payments.ratelimit import TokenBucketLimiter
from artpay.services.payments.schemas import (
    CreateOrderRequest,
    OrderRecord,
    PaymentConfirmation,
    PaymentOrderIntent,
    RecordOrderRequest,
    ReconciliationReport,
    ShipmentUpdateRequest,
    TrackingView,
)
from artpay.services.payments.service import PaymentService
from artpay.services.payments.signature import SignatureVerifier

router = APIRouter()


def payment_service(request: Request) -> PaymentService:
    return request.app.state.payments


def order_service(request: Request) -> OrderLifecycleService:
    return request.app.state.orders


def rate_limiter(request: Request) -> TokenBucketLimiter:
    return request.app.state.limiter


def buyer_id(x_user_id: str | None = Header(default=None)) -> str:
    """Buyer identity forwarded by the auth proxy."""

    if not x_user_id:
        raise HTTPException(status_code=401, detail="missing user identity")
    return x_user_id


def staff_key(request: Request, x_api_key: str | None = Header(default=None)) -> str:
    """Reject requests that do not provide the configured API key."""

    expected = request.app.state.settings.api_key
    if not expected or x_api_key != expected:
        raise HTTPException(status_code=401, detail="invalid API key")
    return "staff"


def _order_payload(order) -> dict:
    return OrderRecord.model_validate(order).model_dump(mode="json")


@router.post("/api/create-order", response_model=PaymentOrderIntent)
async def create_order(
    req: CreateOrderRequest,
    request: Request,
    payments: PaymentService = Depends(payment_service),
    limiter: TokenBucketLimiter = Depends(rate_limiter),
):
    """Mint a gateway order for one artwork at its current catalog price."""

    client_key = request.client.host if request.client else "unknown"
    if not limiter.allow(client_key):
        rate_limited_total.labels(service=payments.service_name).inc()
        return JSONResponse(status_code=429, content={"error": "Too many requests"})
    try:
        return await payments.create_order_intent(req.artworkId, req.quantity)
    except ItemNotFoundError:
        order_intents_failed_total.labels(service=payments.service_name, reason="item_not_found").inc()
        return JSONResponse(status_code=400, content={"error": "Invalid artwork ID"})
    except Exception as exc:
        order_intents_failed_total.labels(service=payments.service_name, reason=type(exc).__name__).inc()
        logger.exception("order intent creation failed artwork_id=%s", req.artworkId)
        return JSONResponse(status_code=500, content={"error": "Order creation failed"})


@router.post("/api/verify-payment")
def verify_payment(body: PaymentConfirmation, payments: PaymentService = Depends(payment_service)):
    """Check a checkout callback signature without writing anything."""

    try:
        valid = payments.verify_payment(body.razorpay_order_id, body.razorpay_payment_id, body.razorpay_signature)
    except Exception:
        logger.exception("payment verification failed")
        return JSONResponse(status_code=500, content={"success": False})
    if valid:
        return {"success": True}
    return JSONResponse(status_code=400, content={"success": False})


@router.post("/api/orders", status_code=201)
async def record_order(
    req: RecordOrderRequest,
    user_id: str = Depends(buyer_id),
    payments: PaymentService = Depends(payment_service),
):
    """Verify a completed checkout and persist its order exactly once."""

    try:
        valid = payments.verify_payment(req.razorpay_order_id, req.razorpay_payment_id, req.razorpay_signature)
    except Exception:
        logger.exception("payment verification failed")
        return JSONResponse(status_code=500, content={"success": False})
    if not valid:
        return JSONResponse(status_code=400, content={"success": False, "error": "Payment verification failed"})

    try:
        order = await payments.confirm_and_record(user_id, req)
    except ItemNotFoundError:
        return JSONResponse(status_code=400, content={"success": False, "error": "Invalid artwork ID"})
    except AmountMismatchError as exc:
        logger.warning("payment confirmation rejected: %s", exc)
        return JSONResponse(status_code=400, content={"success": False, "error": "Payment verification failed"})
    except DuplicatePaymentError as exc:
        return JSONResponse(
            status_code=409,
            content={"success": False, "error": "Payment already recorded", "order_id": exc.order_id},
        )
    except (GatewayUnavailableError, GatewayResponseError):
        logger.exception("payment confirmation could not reach gateway")
        return JSONResponse(status_code=503, content={"success": False, "error": "Payment confirmation unavailable"})
    except OrderRecordingError as exc:
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": "Order recording failed", "razorpay_payment_id": exc.payment_id},
        )
    return {"success": True, "order": _order_payload(order)}


@router.get("/api/orders")
def list_orders(
    status: OrderStatus | None = None,
    user_id: str = Depends(buyer_id),
    orders: OrderLifecycleService = Depends(order_service),
):
    return [_order_payload(order) for order in orders.list_orders(user_id, status.value if status else None)]


@router.get("/api/orders/{order_id}")
def get_order(order_id: str, user_id: str = Depends(buyer_id), orders: OrderLifecycleService = Depends(order_service)):
    return _order_payload(orders.get_order(user_id, order_id))


@router.post("/api/orders/{order_id}/cancel")
def cancel_order(
    order_id: str, user_id: str = Depends(buyer_id), orders: OrderLifecycleService = Depends(order_service)
):
    return _order_payload(orders.cancel_order(user_id, order_id))


@router.delete("/api/orders/{order_id}", status_code=204)
def delete_order(
    order_id: str, user_id: str = Depends(buyer_id), orders: OrderLifecycleService = Depends(order_service)
):
    orders.delete_order(user_id, order_id)


@router.get("/api/track/{tracking_id}", response_model=TrackingView)
def track_order(tracking_id: str, orders: OrderLifecycleService = Depends(order_service)):
    order, artwork = orders.track(tracking_id)
    return TrackingView(
        id=order.id,
        tracking_id=order.tracking_id,
        status=order.shipment_status,
        ordered_at=order.ordered_at,
        shipment_created_at=order.shipment_created_at,
        delivered_at=order.delivered_at,
        amount=order.amount,
        quantity=order.quantity,
        courier_name=order.courier_name,
        artwork_id=order.artwork_id,
        artwork_title=artwork.title if artwork is not None else None,
    )


@router.get("/api/artist/orders")
def list_artist_orders(
    artist_id: str,
    shipment_status: ShipmentStatus | None = None,
    actor: str = Depends(staff_key),
    orders: OrderLifecycleService = Depends(order_service),
):
    del actor
    found = orders.list_artist_orders(artist_id, shipment_status.value if shipment_status else None)
    return [_order_payload(order) for order in found]


@router.patch("/api/artist/orders/{order_id}/shipment")
def update_shipment(
    order_id: str,
    req: ShipmentUpdateRequest,
    actor: str = Depends(staff_key),
    orders: OrderLifecycleService = Depends(order_service),
):
    order = orders.advance_shipment(
        order_id, req.shipment_status, actor=actor, tracking_id=req.tracking_id, courier_name=req.courier_name
    )
    return _order_payload(order)


@router.get("/api/reconciliation/{payment_id}", response_model=ReconciliationReport)
async def reconcile_payment(
    payment_id: str, actor: str = Depends(staff_key), payments: PaymentService = Depends(payment_service)
):
    """Compare the gateway's view of one payment with the order store."""

    del actor
    try:
        return await payments.reconcile(payment_id)
    except (GatewayUnavailableError, GatewayResponseError) as exc:
        raise HTTPException(status_code=502, detail="payment gateway unavailable") from exc


@router.get("/metrics")
def metrics():
    """Prometheus scrape endpoint."""

    return metrics_response()


@router.get("/health")
def health():
    """Container health probe endpoint."""

    return {"ok": True}


def _register_error_handlers(app: FastAPI) -> None:
    async def not_found(_: Request, exc: Exception):
        return JSONResponse(status_code=404, content={"error": "Order not found"})

    async def conflict(_: Request, exc: Exception):
        logger.info("order change rejected: %s", exc)
        return JSONResponse(status_code=409, content={"error": str(exc)})

    app.add_exception_handler(OrderNotFoundError, not_found)
    for exc_type in (InvalidTransitionError, OrderNotDeletableError, ConcurrentUpdateError, TrackingIdInUseError):
        app.add_exception_handler(exc_type, conflict)


def create_app(
    app_settings: Settings | None = None,
    *,
    session_factory=None,
    gateway=None,
    limiter=None,
) -> FastAPI:
    """Build the service with process-wide clients.

    Missing gateway credentials raise ConfigurationError here, before any
    request is served. Clients not passed in are built from settings.
    """

    app_settings = app_settings or Settings()
    configure_logging(app_settings.service_name, app_settings.log_level)
    log_startup_config(
        app_settings.service_name,
        [
            "SERVICE_NAME",
            "PORT",
            "POSTGRES_DSN",
            "REDIS_URL",
            "RAZORPAY_KEY_ID",
            "RAZORPAY_KEY_SECRET",
            "DELIVERY_FEE",
            "RATE_LIMIT_PER_MINUTE",
        ],
    )
    require_settings(app_settings, ["razorpay_key_id", "razorpay_key_secret"])
    verifier = SignatureVerifier(app_settings.razorpay_key_secret)

    if session_factory is None:
        session_factory = make_session_factory(make_engine(app_settings.postgres_dsn))
    if gateway is None:
        gateway = RazorpayClient(
            app_settings.razorpay_key_id,
            app_settings.razorpay_key_secret,
            base_url=app_settings.razorpay_base_url,
            timeout_seconds=app_settings.gateway_timeout_seconds,
            service_name=app_settings.service_name,
        )
    if limiter is None:
        limiter = TokenBucketLimiter.from_url(app_settings.redis_url, app_settings.rate_limit_per_minute)

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        yield
        await gateway.close()

    app = FastAPI(title="Artpay Payments API", lifespan=lifespan)
    app.state.settings = app_settings
    app.state.limiter = limiter
    app.state.payments = PaymentService(
        session_factory,
        gateway,
        verifier,
        delivery_fee=app_settings.delivery_fee,
        currency=app_settings.currency,
        service_name=app_settings.service_name,
    )
    app.state.orders = OrderLifecycleService(session_factory, service_name=app_settings.service_name)

    @app.middleware("http")
    async def metrics_middleware(request: Request, call_next):
        """Record request count and latency, and bind the correlation id."""

        trace_id = request.headers.get("x-correlation-id") or str(uuid4())
        trace_id_ctx.set(trace_id)
        start = perf_counter()
        route = request.url.path
        method = request.method
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            route_obj = request.scope.get("route")
            if route_obj is not None and getattr(route_obj, "path", None):
                route = route_obj.path
            response.headers["x-correlation-id"] = trace_id
            return response
        finally:
            elapsed = max(0.0, perf_counter() - start)
            http_request_duration_seconds.labels(
                service=app_settings.service_name,
                route=route,
                method=method,
            ).observe(elapsed)
            http_requests_total.labels(
                service=app_settings.service_name,
                route=route,
                method=method,
                status_code=str(status_code),
            ).inc()

    _register_error_handlers(app)
    app.include_router(router)
    configure_tracing(
        app,
        app_settings.service_name,
        app_settings.otel_exporter_otlp_endpoint,
        enabled=app_settings.tracing_enabled,
    )
    return app


def run() -> None:
    """Console entrypoint: serve on `PORT` (default 5000)."""

    app_settings = Settings()
    uvicorn.run(
        "artpay.services.payments.main:create_app",
        factory=True,
        host="0.0.0.0",
        port=app_settings.port,
    )


if __name__ == "__main__":
    run()
