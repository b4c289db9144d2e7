"""API request/response schemas for the payments service."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from artpay.common.state_machine import ShipmentStatus


class CreateOrderRequest(BaseModel):
    """Checkout start payload sent by the storefront.

    A missing artwork id is reported like an unknown one.
    """

    artworkId: str | None = None
    quantity: int = Field(default=1, ge=1)


class PaymentOrderIntent(BaseModel):
    """Gateway order handle the client opens checkout with."""

    id: str
    amount: int
    currency: str


class PaymentConfirmation(BaseModel):
    """Gateway checkout callback fields; untrusted until verified.

    Fields are optional so that a missing value is a failed verification
    rather than a validation error.
    """

    razorpay_order_id: str | None = None
    razorpay_payment_id: str | None = None
    razorpay_signature: str | None = None


class RecordOrderRequest(PaymentConfirmation):
    """Confirmation plus the buyer details captured on the checkout form."""

    artworkId: str = Field(min_length=1)
    quantity: int = Field(default=1, ge=1)
    shipping_address: str = Field(min_length=1)
    billing_address: str = Field(min_length=1)
    full_name: str = Field(min_length=1)
    mobile: str = Field(min_length=5)
    alt_mobile: str | None = None


class OrderRecord(BaseModel):
    """Order row as exposed to buyers and artists."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    artwork_id: str
    quantity: int
    amount: Decimal
    delivery_fee: Decimal
    status: str
    shipment_status: str | None
    ordered_at: datetime | None
    shipping_address: str
    billing_address: str
    full_name: str
    mobile: str
    alt_mobile: str | None
    razorpay_payment_id: str
    tracking_id: str | None = None
    courier_name: str | None = None
    shipment_created_at: datetime | None = None
    delivered_at: datetime | None = None


class ShipmentUpdateRequest(BaseModel):
    """Artist/admin shipment advancement."""

    shipment_status: ShipmentStatus
    tracking_id: str | None = None
    courier_name: str | None = None


class TrackingView(BaseModel):
    """Public tracking page payload, keyed by tracking id."""

    id: str
    tracking_id: str
    status: str | None
    ordered_at: datetime | None
    shipment_created_at: datetime | None
    delivered_at: datetime | None
    amount: Decimal
    quantity: int
    courier_name: str | None
    artwork_id: str
    artwork_title: str | None


class ReconciliationReport(BaseModel):
    """Gateway view of one payment next to the order store's view."""

    razorpay_payment_id: str
    gateway_status: str
    gateway_amount: int
    currency: str
    razorpay_order_id: str | None
    order_id: str | None
    order_amount: Decimal | None
    reconciled: bool
