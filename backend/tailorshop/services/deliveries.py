from __future__ import annotations
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from flask import abort

from tailorshop.models.order import Order
from tailorshop.models.delivery import Delivery, Deliverer
from tailorshop.utils.fsm import TransitionValidator

logger = logging.getLogger(__name__)

DELIVERY_FSM = TransitionValidator({
    Delivery.STATUS_PENDING: {Delivery.STATUS_OUT_FOR_DELIVERY, Delivery.STATUS_CANCELLED},
    Delivery.STATUS_OUT_FOR_DELIVERY: {Delivery.STATUS_DELIVERED, Delivery.STATUS_CANCELLED, Delivery.STATUS_PENDING},
    Delivery.STATUS_DELIVERED: set(),
    Delivery.STATUS_CANCELLED: set(),
})


def _now():
    return datetime.now(timezone.utc)


def set_delivery_status(delivery: Delivery, status: str, notes: Optional[str] = None) -> Delivery:
    """Move ``delivery`` to ``status`` and mirror it onto the order."""
    DELIVERY_FSM.assert_can_transition(delivery.status, status)
    delivery.status = status
    if notes is not None:
        delivery.notes = notes
    if DELIVERY_FSM.is_terminal(status):
        delivery.completed_at = _now()
    if delivery.order is not None:
        delivery.order.delivery_status = status
    logger.info('delivery %s -> %s (order %s)', delivery.id, status, delivery.order_id)
    return delivery


def open_delivery(session, order: Order) -> Delivery:
    """Create the unassigned pending delivery row for an order that needs delivery."""
    delivery = Delivery(order_id=order.id, status=Delivery.STATUS_PENDING, assigned_at=_now())
    session.add(delivery)
    order.delivery = delivery
    order.delivery_status = Delivery.STATUS_PENDING
    return delivery


def assign_deliverer(session, order: Order, deliverer_id: Any) -> Delivery:
    """Assign (or reassign) ``order`` to an active deliverer; the delivery restarts at pending."""
    try:
        deliverer_id = int(deliverer_id)
    except (TypeError, ValueError):
        abort(400, description='deliverer_id must be int')
    deliverer = session.get(Deliverer, deliverer_id)
    if not deliverer:
        abort(400, description='Deliverer not found')
    if not deliverer.is_active:
        abort(400, description='Deliverer is not active')
    delivery = order.delivery
    if delivery is None:
        delivery = Delivery(order_id=order.id)
        session.add(delivery)
        order.delivery = delivery
    delivery.deliverer = deliverer
    delivery.status = Delivery.STATUS_PENDING
    delivery.assigned_at = _now()
    delivery.completed_at = None
    order.delivery_status = Delivery.STATUS_PENDING
    logger.info('order %s assigned to deliverer %s', order.id, deliverer.id)
    return delivery


def release_deliveries(deliverer: Deliverer) -> int:
    """Detach a deliverer's deliveries; unfinished ones go back to pending."""
    released = 0
    for delivery in list(deliverer.deliveries):
        delivery.deliverer = None
        if delivery.status not in Delivery.TERMINAL_STATUSES:
            delivery.status = Delivery.STATUS_PENDING
            if delivery.order is not None:
                delivery.order.delivery_status = Delivery.STATUS_PENDING
            released += 1
    return released


def deliverer_json(d: Deliverer) -> Dict[str, Any]:
    return {
        'id': d.id,
        'user_id': d.user_id,
        'full_name': d.full_name,
        'phone': d.phone,
        'email': d.email,
        'is_active': d.is_active,
        'is_online': d.is_online,
        'created_at': d.created_at.isoformat() if d.created_at else None,
        'updated_at': d.updated_at.isoformat() if d.updated_at else None,
    }


def delivery_json(d: Delivery, with_order: bool = False) -> Dict[str, Any]:
    out = {
        'id': d.id,
        'order_id': d.order_id,
        'deliverer_id': d.deliverer_id,
        'deliverer_name': d.deliverer.full_name if d.deliverer else None,
        'status': d.status,
        'notes': d.notes,
        'assigned_at': d.assigned_at.isoformat() if d.assigned_at else None,
        'completed_at': d.completed_at.isoformat() if d.completed_at else None,
        'updated_at': d.updated_at.isoformat() if d.updated_at else None,
    }
    if with_order and d.order is not None:
        o = d.order
        out['order'] = {
            'id': o.id,
            'customer_name': o.customer_name,
            'phone': o.phone,
            'item_description': o.item_description,
            'total_cents': o.total_cents,
            'remaining_cents': o.remaining_cents,
            'status': o.status,
            'due_date': o.due_date.isoformat() if o.due_date else None,
            'delivery_address': o.delivery_address,
        }
    return out


__all__ = [
    'DELIVERY_FSM', 'set_delivery_status', 'open_delivery', 'assign_deliverer', 'release_deliveries',
    'deliverer_json', 'delivery_json',
]
