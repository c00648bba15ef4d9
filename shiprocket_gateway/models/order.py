"""
Order models

Only the columns the shipping gateway reads or writes are mapped here; the
order-management subsystem owns the rest of the schema.
"""
import enum
from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, DateTime, Text, Numeric, Index, Enum as SQLEnum
from sqlalchemy.orm import relationship

from shiprocket_gateway.core.database import Base


class OrderFulfillment(str, enum.Enum):
    """Shipment lifecycle of an order as seen by the carrier gateway."""
    UNSHIPPED = "UNSHIPPED"
    SHIPPED = "SHIPPED"
    CANCELLED = "CANCELLED"
    RETURNING = "RETURNING"


class Order(Base):
    __tablename__ = "orders"

    id = Column(String(64), primary_key=True, index=True)

    # Payment
    paid = Column(Boolean, default=False, nullable=False)
    total = Column(Numeric(12, 2), nullable=False)

    # Shiprocket
    shiprocket_order_id = Column(String(64), nullable=True, index=True)
    fulfillment = Column(SQLEnum(OrderFulfillment), default=OrderFulfillment.UNSHIPPED, nullable=False)

    # Returns
    return_reason = Column(String(255), nullable=True)
    return_additional_info = Column(Text, nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), index=True)
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    items = relationship("OrderItem", back_populates="order", lazy="raise")

    __table_args__ = (
        Index("ix_orders_fulfillment", "fulfillment"),
    )


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(String(64), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)

    # Snapshot of product at time of order
    product_name = Column(String(500), nullable=False)
    color = Column(String(50), nullable=False)
    size = Column(String(20), nullable=False)
    quantity = Column(Integer, nullable=False)
    price_at_order = Column(Numeric(12, 2), nullable=False)

    order = relationship("Order", back_populates="items")
