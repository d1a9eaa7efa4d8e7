"""Order models: orders, their line items and status history."""
import enum

from sqlalchemy import Boolean, CheckConstraint, Column, ForeignKey, Integer, Numeric, String, Text, Uuid
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import relationship

from jewelry_store.models.base import Base, JSONType


class OrderStatus(str, enum.Enum):
    """Order lifecycle status. PENDING is kept for orders created by older clients."""

    PENDING = "pending"
    PAYMENT_PENDING = "payment_pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


# Orders whose totals count as revenue
REVENUE_STATUSES = (
    OrderStatus.CONFIRMED,
    OrderStatus.PROCESSING,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
)

order_status_enum = SQLEnum(
    OrderStatus,
    name="order_status",
    native_enum=False,
    length=32,
    values_callable=lambda e: [m.value for m in e],
)


class Order(Base):
    """
    Customer order.

    Created in payment_pending by the storefront and moved through the lifecycle
    by admin actions only.
    """

    __tablename__ = "orders"
    __table_args__ = (CheckConstraint("total_amount > 0", name="ck_orders_total_positive"),)

    order_number = Column(String(50), nullable=False, unique=True, index=True)  # ORD-12345678
    order_code = Column(String(20), nullable=False, unique=True, index=True)  # ORD001, ORD002, ...
    customer_name = Column(String(255), nullable=False)
    customer_email = Column(String(255), nullable=True)
    customer_phone = Column(String(20), nullable=False)
    customer_address = Column(Text, nullable=True)
    total_amount = Column(Numeric(10, 2), nullable=False)
    status = Column(order_status_enum, nullable=False, default=OrderStatus.PAYMENT_PENDING, index=True)
    whatsapp_message_sent = Column(Boolean, nullable=False, default=False)
    payment_received = Column(Boolean, nullable=False, default=False)
    notes = Column(Text, nullable=True)

    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )
    status_history = relationship(
        "OrderStatusHistory",
        back_populates="order",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="OrderStatusHistory.created_at",
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<Order(id={self.id}, code={self.order_code}, status={self.status.value})>"


class OrderItem(Base):
    """Line item. product_snapshot freezes product data at order time."""

    __tablename__ = "order_items"

    order_id = Column(Uuid(as_uuid=True), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Uuid(as_uuid=True), ForeignKey("products.id"), nullable=False, index=True)
    specification_id = Column(Uuid(as_uuid=True), ForeignKey("product_specifications.id"), nullable=True)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    total_price = Column(Numeric(10, 2), nullable=False)
    product_snapshot = Column(JSONType, nullable=False, default=dict)

    order = relationship("Order", back_populates="items")


class OrderStatusHistory(Base):
    """Append-only record of every status transition."""

    __tablename__ = "order_status_history"

    order_id = Column(Uuid(as_uuid=True), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    old_status = Column(String(32), nullable=True)
    new_status = Column(String(32), nullable=False)
    action = Column(String(50), nullable=False)
    changed_by = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)

    order = relationship("Order", back_populates="status_history")
