from __future__ import annotations
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple
from flask import abort
from sqlalchemy import select, or_, and_

from tailorshop.models.order import Order
from tailorshop.models.payment import Payment
from tailorshop.services.finance import recompute_order, amount_to_cents
from tailorshop.services.chapa import parse_order_id, payment_notes

logger = logging.getLogger(__name__)


def record_payment(session, order: Order, *, payer_name: str, amount_cents: int, method: str,
                   recorded_by: int, notes: Optional[str] = None, reference: Optional[str] = None,
                   enforce_balance: bool = True) -> Payment:
    """Insert a payment against ``order`` and re-derive its balance and status."""
    if amount_cents <= 0:
        abort(400, description='Amount must be greater than 0')
    if enforce_balance and amount_cents > order.remaining_cents:
        abort(400, description='Payment amount exceeds remaining balance')
    payment = Payment(
        order=order,
        payer_name=payer_name,
        amount_cents=amount_cents,
        payment_method=method,
        payment_date=datetime.now(timezone.utc),
        recorded_by=recorded_by,
        notes=notes,
        reference=reference,
    )
    session.add(payment)
    state = recompute_order(session, order)
    logger.info('payment recorded order=%s amount_cents=%s method=%s -> %s remaining=%s',
                order.id, amount_cents, method, state.status, state.remaining_cents)
    return payment


def find_gateway_payment(session, tx_ref: str) -> Optional[Payment]:
    """Find the payment already recorded for a Chapa transaction.

    Only gateway rows count; a manual payment whose notes mimic the gateway text is ignored.
    """
    return session.execute(
        select(Payment).where(or_(
            Payment.reference == tx_ref,
            and_(Payment.notes == payment_notes(tx_ref), Payment.payment_method == Payment.METHOD_CHAPA),
        ))
    ).scalars().first()


def record_gateway_payment(session, tx_ref: str, verified: Dict[str, Any]) -> Tuple[Optional[Payment], bool]:
    """Record a verified Chapa transaction exactly once.

    Returns ``(payment, created)``; ``created`` is False when the transaction was already recorded.
    The provider has already captured the money, so the remaining-balance cap does not apply here.
    """
    order_id = parse_order_id(tx_ref)
    order = session.get(Order, order_id) if order_id is not None else None
    if not order:
        logger.error('Chapa callback for unknown order, tx_ref=%s', tx_ref)
        abort(400, description='Order not found')
    existing = find_gateway_payment(session, tx_ref)
    if existing:
        logger.info('Chapa payment already recorded: %s', tx_ref)
        return existing, False
    try:
        amount_cents = amount_to_cents(verified.get('amount'))
    except ValueError:
        abort(400, description='Verified amount invalid')
    payer = f"{verified.get('first_name') or ''} {verified.get('last_name') or ''}".strip() or 'Chapa Payment'
    payment = record_payment(
        session,
        order,
        payer_name=payer,
        amount_cents=amount_cents,
        method=Payment.METHOD_CHAPA,
        recorded_by=order.user_id or order.created_by,
        notes=payment_notes(tx_ref),
        reference=tx_ref,
        enforce_balance=False,
    )
    return payment, True


def payment_json(p: Payment) -> Dict[str, Any]:
    return {
        'id': p.id,
        'order_id': p.order_id,
        'payer_name': p.payer_name,
        'amount_cents': p.amount_cents,
        'payment_method': p.payment_method,
        'payment_date': p.payment_date.isoformat() if p.payment_date else None,
        'recorded_by': p.recorded_by,
        'notes': p.notes,
    }


__all__ = ['record_payment', 'record_gateway_payment', 'find_gateway_payment', 'payment_json']
