"""Buyer and artist operations on recorded orders.

Every status change goes through the state machine, is written with an
optimistic `state_version` guard, and leaves an `order_timeline` row.
"""

from datetime import datetime, timezone

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.attributes import set_committed_value

from artpay.common.errors import (
    ConcurrentUpdateError,
    InvalidTransitionError,
    OrderNotDeletableError,
    OrderNotFoundError,
    TrackingIdInUseError,
)
from artpay.common.logging import logger
from artpay.common.metrics import order_transitions_total
from artpay.common.state_machine import (
    TERMINAL_ORDER_STATES,
    OrderStatus,
    ShipmentStatus,
    buyer_can_cancel,
    is_deletable,
    validate_shipment_transition,
    validate_transition,
)
from artpay.services.payments.models import Artwork, Order, OrderTimeline


class OrderLifecycleService:
    """Cancels, deletes, ships, and lists orders."""

    def __init__(self, session_factory, service_name: str = "artpay-payments") -> None:
        self.session_factory = session_factory
        self.service_name = service_name

    def _buyer_order(self, db, buyer_id: str, order_id: str) -> Order:
        order = db.get(Order, order_id)
        # Other buyers' orders are reported as missing, not forbidden.
        if order is None or order.user_id != buyer_id:
            raise OrderNotFoundError(order_id)
        return order

    def _apply(self, db, order: Order, changes: dict, reason: str, actor: str) -> None:
        """Write `changes` guarded by the order's current version.

        `changes` may carry `status` and/or `shipment_status` plus plain
        columns; state columns are validated before anything is written.
        """

        moved = {
            field: getattr(order, field)
            for field in ("status", "shipment_status")
            if field in changes and changes[field] != getattr(order, field)
        }
        if "status" in moved:
            validate_transition(order.status, changes["status"])
        if "shipment_status" in moved:
            validate_shipment_transition(order.shipment_status, changes["shipment_status"])

        current_version = order.state_version
        result = db.execute(
            update(Order)
            .where(Order.id == order.id, Order.state_version == current_version)
            .values(**changes, state_version=current_version + 1, updated_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConcurrentUpdateError(
                f"optimistic concurrency conflict for order {order.id} (expected version {current_version})"
            )

        for field, from_state in moved.items():
            db.add(
                OrderTimeline(
                    order_id=order.id,
                    field=field,
                    from_state=from_state,
                    to_state=changes[field],
                    reason=reason,
                    actor=actor,
                )
            )
            order_transitions_total.labels(
                service=self.service_name, field=field, to_state=changes[field]
            ).inc()
        # Mirror the row without marking the instance dirty for a second flush.
        for key, value in changes.items():
            set_committed_value(order, key, value)
        set_committed_value(order, "state_version", current_version + 1)

    def list_orders(self, buyer_id: str, status: str | None = None) -> list[Order]:
        with self.session_factory() as db:
            query = select(Order).where(Order.user_id == buyer_id)
            if status:
                query = query.where(Order.status == OrderStatus(status).value)
            return list(db.execute(query.order_by(Order.ordered_at.desc())).scalars().all())

    def get_order(self, buyer_id: str, order_id: str) -> Order:
        with self.session_factory() as db:
            return self._buyer_order(db, buyer_id, order_id)

    def cancel_order(self, buyer_id: str, order_id: str) -> Order:
        """Buyer cancellation; only while the artist has not confirmed yet.

        The artwork goes back on sale.
        """

        with self.session_factory() as db:
            order = self._buyer_order(db, buyer_id, order_id)
            if not buyer_can_cancel(order.status, order.shipment_status):
                raise InvalidTransitionError(
                    f"order {order_id} cannot be canceled in {order.status}/{order.shipment_status}"
                )
            changes = {"status": OrderStatus.CANCELED.value}
            if order.shipment_status is not None:
                changes["shipment_status"] = ShipmentStatus.CANCELED.value
            self._apply(db, order, changes, reason="buyer_canceled", actor=buyer_id)
            db.execute(update(Artwork).where(Artwork.id == order.artwork_id).values(availability=True))
            db.commit()
            logger.info("order canceled by buyer order_id=%s", order_id)
            return order

    def delete_order(self, buyer_id: str, order_id: str) -> None:
        with self.session_factory() as db:
            order = self._buyer_order(db, buyer_id, order_id)
            if not is_deletable(order.status):
                raise OrderNotDeletableError(f"order {order_id} is {order.status}; cancel it first")
            db.execute(delete(OrderTimeline).where(OrderTimeline.order_id == order.id))
            db.delete(order)
            db.commit()
            logger.info("order deleted by buyer order_id=%s status=%s", order_id, order.status)

    def advance_shipment(
        self,
        order_id: str,
        new_status: ShipmentStatus,
        actor: str,
        tracking_id: str | None = None,
        courier_name: str | None = None,
    ) -> Order:
        """Artist/admin shipment progression.

        Delivery completes the order; a staff-side cancellation cancels it and
        puts the artwork back on sale.
        """

        new_status = ShipmentStatus(new_status)
        with self.session_factory() as db:
            order = db.get(Order, order_id)
            if order is None:
                raise OrderNotFoundError(order_id)
            if OrderStatus(order.status) in TERMINAL_ORDER_STATES:
                raise InvalidTransitionError(f"order {order_id} is already {order.status}")

            now = datetime.now(timezone.utc)
            changes: dict = {"shipment_status": new_status.value}
            if new_status is ShipmentStatus.SHIPPED:
                changes["shipment_created_at"] = now
                if tracking_id:
                    changes["tracking_id"] = tracking_id
                if courier_name:
                    changes["courier_name"] = courier_name
            elif new_status is ShipmentStatus.DELIVERED:
                changes["delivered_at"] = now
                changes["status"] = OrderStatus.COMPLETED.value
            elif new_status is ShipmentStatus.CANCELED:
                changes["status"] = OrderStatus.CANCELED.value

            try:
                self._apply(db, order, changes, reason=f"shipment_{new_status.value}", actor=actor)
                if new_status is ShipmentStatus.CANCELED:
                    db.execute(update(Artwork).where(Artwork.id == order.artwork_id).values(availability=True))
                db.commit()
            except IntegrityError as exc:
                # orders.tracking_id is the only unique column a shipment update writes.
                if "tracking_id" not in changes:
                    raise
                db.rollback()
                logger.warning("tracking id rejected order_id=%s tracking_id=%s", order_id, tracking_id)
                raise TrackingIdInUseError(tracking_id) from exc
            logger.info("shipment advanced order_id=%s shipment_status=%s", order_id, new_status.value)
            return order

    def list_artist_orders(self, artist_id: str, shipment_status: str | None = None) -> list[Order]:
        """Orders for one artist's artworks that have entered shipment."""

        with self.session_factory() as db:
            query = (
                select(Order)
                .join(Artwork, Artwork.id == Order.artwork_id)
                .where(Artwork.artist_id == artist_id, Order.shipment_status.is_not(None))
            )
            if shipment_status:
                query = query.where(Order.shipment_status == ShipmentStatus(shipment_status).value)
            return list(db.execute(query.order_by(Order.ordered_at.desc())).scalars().all())

    def track(self, tracking_id: str) -> tuple[Order, Artwork | None]:
        with self.session_factory() as db:
            order = db.execute(select(Order).where(Order.tracking_id == tracking_id)).scalar_one_or_none()
            if order is None:
                raise OrderNotFoundError(tracking_id)
            return order, db.get(Artwork, order.artwork_id)
