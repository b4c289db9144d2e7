"""Order and shipment state machines shared by buyer and artist workflows.

`status` tracks the commercial state of an order; once an order is paid,
`shipment_status` is the authoritative sub-state and is advanced by the
artist/admin side. The buyer may only cancel while the shipment is still
`pending`.
"""

from enum import Enum

from artpay.common.errors import InvalidTransitionError


class OrderStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    COMPLETED = "completed"
    CANCELED = "canceled"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str) and value.lower() == "cancelled":
            return cls.CANCELED
        return None


class ShipmentStatus(str, Enum):
    PENDING = "pending"
    CONFIRM = "confirm"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELED = "canceled"

    @classmethod
    def _missing_(cls, value):
        # Rows written by older clients use the British spelling.
        if isinstance(value, str) and value.lower() == "cancelled":
            return cls.CANCELED
        return None


ORDER_TRANSITIONS: dict[OrderStatus, set[OrderStatus]] = {
    OrderStatus.PENDING: {OrderStatus.PAID, OrderStatus.CANCELED},
    OrderStatus.PAID: {OrderStatus.COMPLETED, OrderStatus.CANCELED},
    OrderStatus.COMPLETED: set(),
    OrderStatus.CANCELED: set(),
}

SHIPMENT_TRANSITIONS: dict[ShipmentStatus, set[ShipmentStatus]] = {
    ShipmentStatus.PENDING: {ShipmentStatus.CONFIRM, ShipmentStatus.CANCELED},
    ShipmentStatus.CONFIRM: {ShipmentStatus.SHIPPED, ShipmentStatus.CANCELED},
    ShipmentStatus.SHIPPED: {ShipmentStatus.DELIVERED},
    ShipmentStatus.DELIVERED: set(),
    ShipmentStatus.CANCELED: set(),
}

TERMINAL_ORDER_STATES = {OrderStatus.COMPLETED, OrderStatus.CANCELED}
BUYER_CANCELABLE_SHIPMENT_STATES = {ShipmentStatus.PENDING}


def validate_transition(current: str, new: str) -> None:
    """Raise when an order status transition is not allowed."""

    current_state, new_state = OrderStatus(current), OrderStatus(new)
    if new_state not in ORDER_TRANSITIONS[current_state]:
        raise InvalidTransitionError(f"Invalid transition: {current_state.value} -> {new_state.value}")


def validate_shipment_transition(current: str | None, new: str) -> None:
    """Raise when a shipment status transition is not allowed.

    Orders without a shipment sub-state have not been paid yet and cannot be
    shipped.
    """

    if current is None:
        raise InvalidTransitionError(f"Invalid shipment transition: none -> {new}")
    current_state, new_state = ShipmentStatus(current), ShipmentStatus(new)
    if new_state not in SHIPMENT_TRANSITIONS[current_state]:
        raise InvalidTransitionError(
            f"Invalid shipment transition: {current_state.value} -> {new_state.value}"
        )


def buyer_can_cancel(status: str, shipment_status: str | None) -> bool:
    """True while the order is live and the artist has not acted on it yet."""

    if OrderStatus(status) in TERMINAL_ORDER_STATES:
        return False
    if shipment_status is None:
        return True
    return ShipmentStatus(shipment_status) in BUYER_CANCELABLE_SHIPMENT_STATES


def is_deletable(status: str) -> bool:
    """Only terminal orders may be removed by the buyer."""

    return OrderStatus(status) in TERMINAL_ORDER_STATES
