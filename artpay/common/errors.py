"""Domain error taxonomy shared by the payment and order-lifecycle code."""


class ArtpayError(Exception):
    """Base class for every error raised by artpay services."""


class ConfigurationError(ArtpayError):
    """Required configuration is missing; fatal at startup."""


class ItemNotFoundError(ArtpayError):
    """The requested artwork does not exist or cannot be sold right now."""

    def __init__(self, item_id: str) -> None:
        super().__init__(f"artwork not found or unavailable: {item_id}")
        self.item_id = item_id


class GatewayUnavailableError(ArtpayError):
    """The payment gateway call failed; the caller may retry."""


class GatewayTimeoutError(GatewayUnavailableError, TimeoutError):
    """The payment gateway did not answer within the configured timeout."""


class GatewayResponseError(ArtpayError):
    """The payment gateway answered with a payload of unexpected shape."""


class AmountPrecisionError(ArtpayError):
    """An amount cannot be expressed in whole minor currency units."""


class AmountMismatchError(ArtpayError):
    """Gateway-reported payment does not match the amount that was minted."""


class DuplicatePaymentError(ArtpayError):
    """An order was already recorded for this gateway payment id."""

    def __init__(self, payment_id: str, order_id: str | None = None) -> None:
        super().__init__(f"order already recorded for payment {payment_id}")
        self.payment_id = payment_id
        self.order_id = order_id


class OrderRecordingError(ArtpayError):
    """The order store rejected a write after the gateway already charged."""

    def __init__(self, payment_id: str) -> None:
        super().__init__(f"failed to record order for payment {payment_id}")
        self.payment_id = payment_id


class OrderNotFoundError(ArtpayError):
    """No order with this id is visible to the caller."""


class InvalidTransitionError(ArtpayError, ValueError):
    """A status change is not allowed by the order state machine."""


class OrderNotDeletableError(ArtpayError):
    """Only orders in a terminal state may be deleted."""


class ConcurrentUpdateError(ArtpayError):
    """Another writer changed the order between read and update."""


class TrackingIdInUseError(ArtpayError):
    """The courier tracking id is already attached to another order."""

    def __init__(self, tracking_id: str) -> None:
        super().__init__(f"tracking id already in use: {tracking_id}")
        self.tracking_id = tracking_id
