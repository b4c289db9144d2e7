"""Order store models.

`artworks` belongs to the catalog side of the marketplace and is only read
here (plus its `availability` flag, which follows the order lifecycle).
`orders` is the durable result of a successful payment and `order_timeline`
is its audit trail.
"""

from datetime import datetime
from decimal import Decimal
from uuid import uuid4

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Integer, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from artpay.common.db import Base


class Artwork(Base):
    """Catalog entry priced in major currency units."""

    __tablename__ = "artworks"
    __table_args__ = (CheckConstraint("cost >= 0", name="ck_artworks_cost_non_negative"),)

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid4()))
    title: Mapped[str] = mapped_column(String, default="")
    cost: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    availability: Mapped[bool] = mapped_column(Boolean, default=True)
    artist_id: Mapped[str | None] = mapped_column(String, index=True, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class Order(Base):
    """One paid purchase of one artwork."""

    __tablename__ = "orders"
    __table_args__ = (CheckConstraint("quantity >= 1", name="ck_orders_quantity_positive"),)

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid4()))
    user_id: Mapped[str] = mapped_column(String, index=True)
    artwork_id: Mapped[str] = mapped_column(ForeignKey("artworks.id"), index=True)
    quantity: Mapped[int] = mapped_column(Integer, default=1)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    delivery_fee: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    status: Mapped[str] = mapped_column(String, index=True)
    shipment_status: Mapped[str | None] = mapped_column(String, index=True, nullable=True)
    state_version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    ordered_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    shipping_address: Mapped[str] = mapped_column(Text)
    billing_address: Mapped[str] = mapped_column(Text)
    full_name: Mapped[str] = mapped_column(String)
    mobile: Mapped[str] = mapped_column(String)
    alt_mobile: Mapped[str | None] = mapped_column(String, nullable=True)
    razorpay_payment_id: Mapped[str] = mapped_column(String, unique=True, index=True)
    razorpay_order_id: Mapped[str | None] = mapped_column(String, index=True, nullable=True)
    tracking_id: Mapped[str | None] = mapped_column(String, unique=True, index=True, nullable=True)
    courier_name: Mapped[str | None] = mapped_column(String, nullable=True)
    shipment_created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    delivered_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class OrderTimeline(Base):
    """Immutable audit trail of every order state change."""

    __tablename__ = "order_timeline"

    timeline_id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid4()))
    order_id: Mapped[str] = mapped_column(ForeignKey("orders.id", ondelete="CASCADE"), index=True)
    field: Mapped[str] = mapped_column(String)
    from_state: Mapped[str | None] = mapped_column(String, nullable=True)
    to_state: Mapped[str] = mapped_column(String)
    reason: Mapped[str] = mapped_column(String)
    actor: Mapped[str] = mapped_column(String)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
