"""Payment order lifecycle.

Mints gateway orders from catalog prices, verifies checkout signatures,
re-checks the charged amount with the gateway, and writes exactly one order
record per gateway payment.
"""

import time
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from artpay.common.errors import (
    AmountMismatchError,
    AmountPrecisionError,
    DuplicatePaymentError,
    ItemNotFoundError,
    OrderRecordingError,
)
from artpay.common.logging import gateway_order_id_ctx, logger, payment_id_ctx
from artpay.common.metrics import (
    duplicate_payments_total,
    order_intents_created_total,
    order_record_failures_total,
    orders_recorded_total,
    signature_verifications_total,
)
from artpay.common.state_machine import OrderStatus, ShipmentStatus
from artpay.services.payments.models import Artwork, Order, OrderTimeline
from artpay.services.payments.pricing import compute_amount, from_minor_units, to_minor_units
from artpay.services.payments.schemas import PaymentOrderIntent, ReconciliationReport

# Razorpay caps receipts at 40 characters.
RECEIPT_ITEM_PREFIX_LEN = 12


def make_receipt(item_id: str) -> str:
    """Build a per-request receipt so abandoned attempts never collide."""

    return f"rcpt_{item_id[:RECEIPT_ITEM_PREFIX_LEN]}_{time.time_ns()}"


class PaymentService:
    """Owns the create-intent, verify, and record steps of a checkout."""

    def __init__(
        self,
        session_factory,
        gateway,
        verifier,
        delivery_fee: Decimal = Decimal("50"),
        currency: str = "INR",
        service_name: str = "artpay-payments",
    ) -> None:
        self.session_factory = session_factory
        self.gateway = gateway
        self.verifier = verifier
        self.delivery_fee = Decimal(delivery_fee)
        self.currency = currency.upper()
        self.service_name = service_name

    def _load_artwork(self, item_id: str | None, require_available: bool = True) -> Artwork:
        if not item_id:
            raise ItemNotFoundError("")
        with self.session_factory() as db:
            artwork = db.get(Artwork, item_id)
        if artwork is None or artwork.cost is None:
            raise ItemNotFoundError(item_id)
        if require_available and not artwork.availability:
            raise ItemNotFoundError(item_id)
        return artwork

    async def create_order_intent(self, item_id: str, quantity: int = 1) -> PaymentOrderIntent:
        """Price the artwork and mint a gateway order for it.

        The gateway is not contacted when the artwork cannot be sold.
        """

        artwork = self._load_artwork(item_id)
        amount = compute_amount(artwork.cost, quantity, self.delivery_fee)
        # The price snapshot travels with the gateway order and is checked on confirmation.
        minted = await self.gateway.create_order(
            amount=to_minor_units(amount),
            currency=self.currency,
            receipt=make_receipt(item_id),
            notes={
                "artwork_id": item_id,
                "quantity": str(quantity),
                "unit_cost": str(artwork.cost),
                "delivery_fee": str(self.delivery_fee),
            },
        )
        gateway_order_id_ctx.set(minted.id)
        order_intents_created_total.labels(service=self.service_name).inc()
        logger.info("order intent created artwork_id=%s amount=%s currency=%s", item_id, minted.amount, minted.currency)
        return PaymentOrderIntent(id=minted.id, amount=minted.amount, currency=minted.currency)

    def verify_payment(self, order_id, payment_id, signature) -> bool:
        """Check the checkout signature; never raises for a plain mismatch."""

        valid = self.verifier.verify(order_id, payment_id, signature)
        signature_verifications_total.labels(
            service=self.service_name, outcome="valid" if valid else "invalid"
        ).inc()
        if not valid:
            logger.warning("signature mismatch razorpay_order_id=%s razorpay_payment_id=%s", order_id, payment_id)
        return valid

    async def confirm_amount(
        self, order_id: str, payment_id: str, item_id: str, quantity: int
    ) -> tuple[Decimal, Decimal]:
        """Return `(amount, delivery_fee)` as snapshotted when the order was minted.

        The payment must be paid against `order_id`, the order must have been
        minted for this artwork and quantity, its amount must equal the
        snapshotted `unit_cost * quantity + delivery_fee`, and the payment
        must match it. Later catalog price changes do not affect a checkout
        that is already in flight.
        """

        payment = await self.gateway.fetch_payment(payment_id)
        if not payment.is_paid:
            raise AmountMismatchError(f"payment {payment_id} is {payment.status}")
        if payment.order_id != order_id:
            raise AmountMismatchError(f"payment {payment_id} belongs to order {payment.order_id}")
        minted = await self.gateway.fetch_order(order_id)
        if minted.note("artwork_id") != item_id or minted.note("quantity") != str(quantity):
            raise AmountMismatchError(f"order {order_id} was not minted for artwork {item_id} x{quantity}")
        try:
            unit_cost = Decimal(minted.note("unit_cost"))
            delivery_fee = Decimal(minted.note("delivery_fee"))
            expected = to_minor_units(compute_amount(unit_cost, quantity, delivery_fee))
        except (TypeError, ArithmeticError, ValueError, AmountPrecisionError) as exc:
            raise AmountMismatchError(f"order {order_id} carries no usable price snapshot") from exc
        if minted.amount != expected:
            raise AmountMismatchError(f"order amount {minted.amount} != snapshot amount {expected}")
        if payment.amount != minted.amount or payment.currency != minted.currency:
            raise AmountMismatchError(
                f"payment amount {payment.amount} {payment.currency} != order amount {minted.amount} {minted.currency}"
            )
        return from_minor_units(minted.amount), delivery_fee

    def record_order(
        self,
        buyer_id: str,
        item_id: str,
        quantity: int,
        amount: Decimal,
        delivery_fee: Decimal,
        shipping_address: str,
        billing_address: str,
        buyer_full_name: str,
        buyer_mobile: str,
        alt_mobile: str | None,
        gateway_payment_id: str,
        gateway_order_id: str | None = None,
    ) -> Order:
        """Insert the order for one successful payment and mark the artwork sold.

        `amount` is the snapshot the gateway charged and is stored as-is.
        """

        if quantity < 1:
            raise ValueError("quantity must be at least 1")
        payment_id_ctx.set(gateway_payment_id)
        try:
            with self.session_factory() as db:
                existing_id = self._existing_order_id(db, gateway_payment_id)
                if existing_id:
                    duplicate_payments_total.labels(service=self.service_name).inc()
                    raise DuplicatePaymentError(gateway_payment_id, existing_id)

                order = Order(
                    user_id=buyer_id,
                    artwork_id=item_id,
                    quantity=quantity,
                    amount=amount,
                    delivery_fee=delivery_fee,
                    status=OrderStatus.PAID.value,
                    shipment_status=ShipmentStatus.PENDING.value,
                    ordered_at=datetime.now(timezone.utc),
                    shipping_address=shipping_address,
                    billing_address=billing_address,
                    full_name=buyer_full_name,
                    mobile=buyer_mobile,
                    alt_mobile=alt_mobile,
                    razorpay_payment_id=gateway_payment_id,
                    razorpay_order_id=gateway_order_id,
                )
                db.add(order)
                db.flush()
                db.add(
                    OrderTimeline(
                        order_id=order.id,
                        field="status",
                        from_state=None,
                        to_state=OrderStatus.PAID.value,
                        reason="payment_verified",
                        actor=buyer_id,
                    )
                )
                db.execute(update(Artwork).where(Artwork.id == item_id).values(availability=False))
                db.commit()
        except IntegrityError as exc:
            # A concurrent callback for the same payment won the unique constraint.
            existing_id = self.order_id_for_payment(gateway_payment_id)
            if existing_id:
                duplicate_payments_total.labels(service=self.service_name).inc()
                raise DuplicatePaymentError(gateway_payment_id, existing_id) from exc
            self._recording_failed(gateway_payment_id, exc)
            raise OrderRecordingError(gateway_payment_id) from exc
        except SQLAlchemyError as exc:
            self._recording_failed(gateway_payment_id, exc)
            raise OrderRecordingError(gateway_payment_id) from exc

        orders_recorded_total.labels(service=self.service_name).inc()
        logger.info("order recorded order_id=%s artwork_id=%s amount=%s", order.id, item_id, amount)
        return order

    def _recording_failed(self, payment_id: str, exc: Exception) -> None:
        order_record_failures_total.labels(service=self.service_name).inc()
        logger.error(
            "reconciliation_required razorpay_payment_id=%s: order write failed after charge: %s",
            payment_id,
            exc,
        )

    async def confirm_and_record(self, buyer_id: str, req) -> Order:
        """Record the order for an already signature-verified checkout."""

        gateway_order_id_ctx.set(req.razorpay_order_id)
        payment_id_ctx.set(req.razorpay_payment_id)
        self._load_artwork(req.artworkId, require_available=False)
        amount, delivery_fee = await self.confirm_amount(
            req.razorpay_order_id, req.razorpay_payment_id, req.artworkId, req.quantity
        )
        return self.record_order(
            buyer_id=buyer_id,
            item_id=req.artworkId,
            quantity=req.quantity,
            amount=amount,
            delivery_fee=delivery_fee,
            shipping_address=req.shipping_address,
            billing_address=req.billing_address,
            buyer_full_name=req.full_name,
            buyer_mobile=req.mobile,
            alt_mobile=req.alt_mobile,
            gateway_payment_id=req.razorpay_payment_id,
            gateway_order_id=req.razorpay_order_id,
        )

    def _existing_order_id(self, db, payment_id: str) -> str | None:
        return db.execute(
            select(Order.id).where(Order.razorpay_payment_id == payment_id)
        ).scalar_one_or_none()

    def order_id_for_payment(self, payment_id: str) -> str | None:
        with self.session_factory() as db:
            return self._existing_order_id(db, payment_id)

    async def reconcile(self, payment_id: str) -> ReconciliationReport:
        """Compare the gateway's record of a payment with the order store.

        A paid payment without an order is the case support resolves by hand.
        """

        payment = await self.gateway.fetch_payment(payment_id)
        with self.session_factory() as db:
            order = db.execute(
                select(Order).where(Order.razorpay_payment_id == payment_id)
            ).scalar_one_or_none()
        order_amount = order.amount if order is not None else None
        if order is None:
            reconciled = not payment.is_paid
        else:
            reconciled = payment.is_paid and to_minor_units(order.amount) == payment.amount
        if not reconciled:
            logger.warning(
                "payment not reconciled razorpay_payment_id=%s gateway_status=%s order_id=%s",
                payment_id,
                payment.status,
                order.id if order is not None else None,
            )
        return ReconciliationReport(
            razorpay_payment_id=payment_id,
            gateway_status=payment.status,
            gateway_amount=payment.amount,
            currency=payment.currency,
            razorpay_order_id=payment.order_id,
            order_id=order.id if order is not None else None,
            order_amount=order_amount,
            reconciled=reconciled,
        )
