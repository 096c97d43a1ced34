from __future__ import annotations
import enum
import uuid
from datetime import date, datetime, timezone
from typing import Optional, List
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import (
    String, Integer, Date, DateTime, Enum, Float, Boolean, ForeignKey, Index, UniqueConstraint, func
)
from .database import Base

def _uuid() -> str:
    return str(uuid.uuid4())

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)

class OrderStatus(str, enum.Enum):
    CREATED = "CREATED"
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    READY = "READY"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"

# Statuses that never count toward a user's daily THC total
UNCOUNTED_STATUSES = (OrderStatus.CANCELLED,)

# ----------------------------
# Jurisdiction rules (one per state)
# ----------------------------
class ComplianceRule(Base):
    __tablename__ = "compliance_rules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    state_code: Mapped[str] = mapped_column(String(8), unique=True, nullable=False)  # upper-case
    min_age: Mapped[int] = mapped_column(Integer, nullable=False, default=21, server_default="21")
    max_daily_thc_mg: Mapped[Optional[float]] = mapped_column(Float)  # null = no daily cap
    must_verify_age: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

# ----------------------------
# Purchasers
# ----------------------------
class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    email: Mapped[str] = mapped_column(String(256), unique=True, nullable=False)
    name: Mapped[Optional[str]] = mapped_column(String(128))
    date_of_birth: Mapped[Optional[date]] = mapped_column(Date)
    age_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

# ----------------------------
# Points of sale
# ----------------------------
class Store(Base):
    __tablename__ = "stores"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    state_code: Mapped[Optional[str]] = mapped_column(String(8), index=True)
    city: Mapped[Optional[str]] = mapped_column(String(128))
    timezone: Mapped[Optional[str]] = mapped_column(String(64))  # IANA name, e.g. America/Los_Angeles
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

# ----------------------------
# Catalog
# ----------------------------
class Product(Base):
    __tablename__ = "products"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(256), nullable=False)
    category: Mapped[Optional[str]] = mapped_column(String(64))
    thc_mg_per_unit: Mapped[Optional[float]] = mapped_column(Float)
    thc_percent: Mapped[Optional[float]] = mapped_column(Float)   # flower: % by weight, 1 unit = 1g
    default_price: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, server_default="0")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

# ----------------------------
# Orders
# ----------------------------
class Order(Base):
    __tablename__ = "orders"
    # NULL keys never collide, so orders placed without a key are unaffected
    __table_args__ = (
        UniqueConstraint("user_id", "idempotency_key", name="uq_orders_user_idempotency"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False)
    store_id: Mapped[str] = mapped_column(ForeignKey("stores.id"), nullable=False)
    status: Mapped[OrderStatus] = mapped_column(
        Enum(OrderStatus, name="order_status", native_enum=False, length=16),
        nullable=False,
        default=OrderStatus.CREATED,
    )
    payment_method: Mapped[str] = mapped_column(String(32), nullable=False, default="pay_at_pickup")
    notes: Mapped[Optional[str]] = mapped_column(String(512))
    idempotency_key: Mapped[Optional[str]] = mapped_column(String(128))
    subtotal: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    tax: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    total: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    items: Mapped[List["OrderItem"]] = relationship(
        back_populates="order", cascade="all, delete-orphan", lazy="selectin"
    )

class OrderItem(Base):
    __tablename__ = "order_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[str] = mapped_column(ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id: Mapped[str] = mapped_column(ForeignKey("products.id"), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    line_total: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    order: Mapped[Order] = relationship(back_populates="items")
    product: Mapped[Product] = relationship()

Index("ix_orders_user_created", Order.user_id, Order.created_at)
