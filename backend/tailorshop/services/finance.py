"""Order financial state.

An order's remaining balance and status are a pure function of its total and the payments
recorded against it. They are never edited directly; every payment insert and every price
change calls :func:`recompute_order` so the stored columns always agree with the payments table.
"""
from __future__ import annotations
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import NamedTuple, Union
from sqlalchemy import select, func

from tailorshop.models.order import Order
from tailorshop.models.payment import Payment


class OrderState(NamedTuple):
    total_cents: int
    paid_cents: int
    remaining_cents: int
    status: str


def derive_state(total_cents: int, paid_cents: int) -> OrderState:
    remaining = total_cents - paid_cents
    if remaining <= 0 and total_cents > 0:
        status = Order.STATUS_PAID
    elif paid_cents > 0:
        status = Order.STATUS_PARTIAL
    else:
        # includes customer requests that staff have not priced yet (total 0)
        status = Order.STATUS_PENDING
    return OrderState(total_cents, paid_cents, remaining, status)


def paid_total(session, order_id: int) -> int:
    return int(session.execute(
        select(func.coalesce(func.sum(Payment.amount_cents), 0)).where(Payment.order_id == order_id)
    ).scalar_one())


def recompute_order(session, order: Order) -> OrderState:
    session.flush()
    state = derive_state(order.total_cents, paid_total(session, order.id))
    order.remaining_cents = state.remaining_cents
    order.status = state.status
    return state


def cents_to_amount(cents: int) -> str:
    """Render integer cents as the decimal string payment providers expect ("1250.50")."""
    return str((Decimal(cents) / 100).quantize(Decimal('0.01')))


def amount_to_cents(amount: Union[str, int, float, Decimal]) -> int:
    """Parse a decimal currency amount into integer cents, rounding half up."""
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError):
        raise ValueError(f'invalid amount {amount!r}')
    if not value.is_finite():
        raise ValueError(f'invalid amount {amount!r}')
    return int((value * 100).quantize(Decimal('1'), rounding=ROUND_HALF_UP))


__all__ = ['OrderState', 'derive_state', 'paid_total', 'recompute_order', 'cents_to_amount', 'amount_to_cents']
