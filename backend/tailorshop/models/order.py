from __future__ import annotations
from datetime import date, datetime
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Integer, String, Text, Boolean, Date, JSON, ForeignKey, DateTime, text, func
from typing import Optional, Dict, Any

from .authz import Base


class Order(Base):
    __tablename__ = 'orders'
    # Payment status, always derived from total vs recorded payments
    STATUS_PENDING = 'pending'
    STATUS_PARTIAL = 'partial'
    STATUS_PAID = 'paid'
    ALL_STATUSES = (
        STATUS_PENDING,
        STATUS_PARTIAL,
        STATUS_PAID,
    )
    DELIVERY_NOT_APPLICABLE = 'not_applicable'

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    customer_name: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    phone: Mapped[str] = mapped_column(String(32), nullable=False)
    item_description: Mapped[str] = mapped_column(Text, nullable=False)
    total_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    remaining_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=STATUS_PENDING, index=True)
    due_date: Mapped[Optional[date]] = mapped_column(Date)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_by: Mapped[int] = mapped_column(ForeignKey('users.id'), nullable=False)
    # Customer account owning the order (self-service requests and online payments)
    user_id: Mapped[Optional[int]] = mapped_column(ForeignKey('users.id'), index=True)
    delivery_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    delivery_address: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON)
    delivery_fee_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    delivery_status: Mapped[str] = mapped_column(String(32), nullable=False, default=DELIVERY_NOT_APPLICABLE)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=text('CURRENT_TIMESTAMP'))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=text('CURRENT_TIMESTAMP'), onupdate=func.now())

    payments = relationship('Payment', back_populates='order', cascade='all, delete-orphan', passive_deletes=True)
    delivery = relationship('Delivery', back_populates='order', uselist=False, cascade='all, delete-orphan', passive_deletes=True)
