from __future__ import annotations
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Integer, String, ForeignKey, DateTime, text
from typing import Optional

from .authz import Base


class Payment(Base):
    __tablename__ = 'payments'
    METHOD_CASH = 'cash'
    METHOD_BANK = 'bank'
    METHOD_OTHER = 'other'
    METHOD_CHAPA = 'chapa'
    ALL_METHODS = (METHOD_CASH, METHOD_BANK, METHOD_OTHER, METHOD_CHAPA)
    # Methods staff may record by hand; chapa rows only come from the gateway callback
    MANUAL_METHODS = (METHOD_CASH, METHOD_BANK, METHOD_OTHER)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    order_id: Mapped[int] = mapped_column(ForeignKey('orders.id', ondelete='CASCADE'), nullable=False, index=True)
    payer_name: Mapped[str] = mapped_column(String(128), nullable=False)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    payment_method: Mapped[str] = mapped_column(String(16), nullable=False, default=METHOD_CASH)
    payment_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    recorded_by: Mapped[int] = mapped_column(ForeignKey('users.id'), nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(String(500), index=True)
    # Gateway transaction reference; unique so a replayed callback cannot double-insert
    reference: Mapped[Optional[str]] = mapped_column(String(128), unique=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=text('CURRENT_TIMESTAMP'))

    order = relationship('Order', back_populates='payments')
