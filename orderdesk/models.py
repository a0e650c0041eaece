"""
SQLAlchemy Database Models

Three relations:
- admins: staff accounts allowed to manage orders
- orders: one row per customer submission
- order_items: line items, removed together with their order
"""

import enum
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from orderdesk.database import Base

DEFAULT_CUSTOMER_NAME = "Customer"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OrderStatus(str, enum.Enum):
    """
    Order status workflow.

    pending -> preparing -> served, with cancelled reachable from anywhere.
    Admins may set any status from any other status.
    """
    PENDING = "pending"
    PREPARING = "preparing"
    SERVED = "served"
    CANCELLED = "cancelled"


class Admin(Base):
    """Staff account. Seeded at startup, never edited afterwards."""
    __tablename__ = "admins"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(80), nullable=False, unique=True)
    password_hash = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<Admin #{self.id} - {self.username}>"


class Order(Base):
    """
    Main Order table.

    ``total`` is fixed at creation as the sum of price * qty over the items.
    """
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # =========================================================================
    # CUSTOMER INFORMATION
    # =========================================================================
    customer_name = Column(String(80), nullable=False, default=DEFAULT_CUSTOMER_NAME)
    table_no = Column(String(60), nullable=False, default="")
    note = Column(Text, nullable=False, default="")

    # =========================================================================
    # STATUS & PRICING
    # =========================================================================
    status = Column(
        Enum(OrderStatus, values_callable=lambda e: [s.value for s in e]),
        default=OrderStatus.PENDING,
        nullable=False,
        index=True,
    )
    total = Column(Integer, nullable=False, default=0)

    # =========================================================================
    # TIMESTAMPS
    # =========================================================================
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="OrderItem.id",
    )

    def __repr__(self):
        status = self.status.value if self.status else None
        return f"<Order #{self.id} - {self.customer_name} - {status}>"


class OrderItem(Base):
    """Single line of an order."""
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(
        Integer,
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = Column(String(120), nullable=False)
    price = Column(Integer, nullable=False, default=0)
    qty = Column(Integer, nullable=False, default=1)
    image = Column(Text, nullable=False, default="")

    order = relationship("Order", back_populates="items")

    def __repr__(self):
        return f"<OrderItem #{self.id} - {self.name} x{self.qty}>"
