from __future__ import annotations
import logging
from flask import Blueprint, request, abort
from sqlalchemy import select, func
from tailorshop import get_db
from tailorshop.constants.permissions import ROLE_DELIVERER
from tailorshop.decorators.auth import require_permissions
from tailorshop.decorators.audit import audit_log
from tailorshop.models.authz import User
from tailorshop.models.delivery import Deliverer, Delivery
from tailorshop.models.order import Order
from tailorshop.services.audit import add_audit
from tailorshop.services.deliveries import (
    set_delivery_status, release_deliveries, deliverer_json, delivery_json,
)
from tailorshop.services.policy import assign_role, current_user_id
from tailorshop.utils.listing import list_response, apply_search
from tailorshop.utils.validation import require_text, optional_text, require_email, parse_bool, validate_status

logger = logging.getLogger(__name__)

deliveries_bp = Blueprint('deliveries', __name__)

MIN_PASSWORD_LEN = 6


def _current_deliverer(session) -> Deliverer:
    deliverer = session.execute(
        select(Deliverer).where(Deliverer.user_id == current_user_id())
    ).scalar_one_or_none()
    if not deliverer:
        abort(403, description='Not registered as a deliverer')
    return deliverer


def _own_delivery(session, delivery_id: int) -> Delivery:
    deliverer = _current_deliverer(session)
    delivery = session.get(Delivery, delivery_id)
    # Deliveries assigned to someone else look the same as missing ones
    if not delivery or delivery.deliverer_id != deliverer.id:
        abort(404)
    return delivery


def _deliverer_snapshot(deliverer_id):
    d = get_db().get(Deliverer, deliverer_id)
    return deliverer_json(d) if d else {}


def _delivery_snapshot(delivery_id):
    d = get_db().get(Delivery, delivery_id)
    return delivery_json(d) if d else {}


# --- Deliverer management (admin / staff) ---

@deliveries_bp.get('/deliverers')
@require_permissions('DLV.MANAGE')
def list_deliverers():
    session = get_db()
    q = session.query(Deliverer)
    q = apply_search(q, request.args.get('q'), [Deliverer.full_name, Deliverer.email, Deliverer.phone])
    q = q.order_by(Deliverer.created_at.desc(), Deliverer.id.desc())
    return list_response(q, deliverer_json)


@deliveries_bp.get('/deliverers/available')
@require_permissions('DLV.ASSIGN')
def available_deliverers():
    session = get_db()
    rows = session.execute(
        select(Deliverer).where(Deliverer.is_active.is_(True))
        .order_by(Deliverer.is_online.desc(), Deliverer.full_name.asc())
    ).scalars().all()
    return {'data': [deliverer_json(d) for d in rows]}


@deliveries_bp.post('/deliverers')
@require_permissions('DLV.MANAGE')
@audit_log('DELIVERER.CREATE', entity='Deliverer', entity_id_key='id', meta_keys=['full_name', 'email'])
def create_deliverer():
    session = get_db()
    data = request.json or {}
    email = require_email(data)
    password = data.get('password')
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LEN:
        abort(400, description=f'password must be at least {MIN_PASSWORD_LEN} characters')
    full_name = require_text(data, 'full_name', 2, 100)
    phone = require_text(data, 'phone', 5, 20)
    if session.execute(select(User).where(User.email == email)).scalar_one_or_none():
        abort(400, description='email already registered')
    user = User(email=email, full_name=full_name, phone=phone, password_hash='')
    user.set_password(password)
    session.add(user)
    session.flush()
    assign_role(user, ROLE_DELIVERER, session=session)
    deliverer = Deliverer(user_id=user.id, full_name=full_name, phone=phone, email=email,
                          is_active=parse_bool(data.get('is_active'), 'is_active', default=True))
    session.add(deliverer)
    session.commit()
    logger.info('deliverer %s created for user %s', deliverer.id, user.id)
    return deliverer_json(deliverer), 201


@deliveries_bp.put('/deliverers/<int:deliverer_id>')
@require_permissions('DLV.MANAGE')
@audit_log('DELIVERER.UPDATE', entity='Deliverer', entity_id_key='id',
           diff_keys=['full_name', 'phone', 'email', 'is_active'],
           pre_fetch=lambda a, kw: _deliverer_snapshot(kw.get('deliverer_id')))
def update_deliverer(deliverer_id: int):
    session = get_db()
    deliverer = session.get(Deliverer, deliverer_id)
    if not deliverer:
        abort(404)
    data = request.json or {}
    if 'full_name' in data:
        deliverer.full_name = require_text(data, 'full_name', 2, 100)
    if 'phone' in data:
        deliverer.phone = require_text(data, 'phone', 5, 20)
    if 'email' in data:
        deliverer.email = require_email(data)
    if 'is_active' in data:
        deliverer.is_active = parse_bool(data.get('is_active'), 'is_active')
        if not deliverer.is_active:
            deliverer.is_online = False
    session.commit()
    return deliverer_json(deliverer)


@deliveries_bp.delete('/deliverers/<int:deliverer_id>')
@require_permissions('DLV.MANAGE')
def delete_deliverer(deliverer_id: int):
    session = get_db()
    deliverer = session.get(Deliverer, deliverer_id)
    if not deliverer:
        abort(404)
    released = release_deliveries(deliverer)
    session.flush()
    session.delete(deliverer)
    add_audit('DELIVERER.DELETE', 'Deliverer', deliverer_id,
              {'full_name': deliverer.full_name, 'released': released})
    session.commit()
    return {'status': 'deleted', 'released': released}


# --- Deliverer self-service ---

@deliveries_bp.get('/mine')
@require_permissions('DLV.WORK')
def my_deliveries():
    session = get_db()
    deliverer = _current_deliverer(session)
    counts = dict(session.execute(
        select(Delivery.status, func.count(Delivery.id))
        .where(Delivery.deliverer_id == deliverer.id)
        .group_by(Delivery.status)
    ).all())
    stats = {s: int(counts.get(s, 0)) for s in Delivery.ALL_STATUSES}
    stats['total'] = sum(stats.values())
    q = session.query(Delivery).filter(Delivery.deliverer_id == deliverer.id)
    status = request.args.get('status')
    if status:
        q = q.filter(Delivery.status == validate_status(status, Delivery.ALL_STATUSES))
    q = q.order_by(Delivery.assigned_at.desc(), Delivery.id.desc())
    return list_response(q, lambda d: delivery_json(d, with_order=True),
                         extra={'stats': stats, 'is_online': deliverer.is_online})


@deliveries_bp.get('/mine/history')
@require_permissions('DLV.WORK')
def my_history():
    session = get_db()
    deliverer = _current_deliverer(session)
    q = (session.query(Delivery).join(Order, Order.id == Delivery.order_id)
         .filter(Delivery.deliverer_id == deliverer.id, Delivery.status.in_(Delivery.TERMINAL_STATUSES)))
    q = apply_search(q, request.args.get('q'), [Order.customer_name, Order.phone, Order.item_description])
    q = q.order_by(Delivery.completed_at.desc(), Delivery.id.desc())
    return list_response(q, lambda d: delivery_json(d, with_order=True))


@deliveries_bp.put('/mine/online')
@require_permissions('DLV.WORK')
def set_online():
    session = get_db()
    deliverer = _current_deliverer(session)
    data = request.json or {}
    if 'is_online' not in data:
        abort(400, description='is_online required')
    deliverer.is_online = parse_bool(data.get('is_online'), 'is_online')
    session.commit()
    return {'id': deliverer.id, 'is_online': deliverer.is_online}


@deliveries_bp.get('/<int:delivery_id>')
@require_permissions('DLV.WORK')
def get_delivery(delivery_id: int):
    session = get_db()
    return delivery_json(_own_delivery(session, delivery_id), with_order=True)


@deliveries_bp.post('/<int:delivery_id>/status')
@require_permissions('DLV.WORK')
@audit_log('DELIVERY.STATUS', entity='Delivery', entity_id_key='id', meta_keys=['status'],
           diff_keys=['status'], pre_fetch=lambda a, kw: _delivery_snapshot(kw.get('delivery_id')))
def update_delivery_status(delivery_id: int):
    session = get_db()
    delivery = _own_delivery(session, delivery_id)
    data = request.json or {}
    status = validate_status(data.get('status'), Delivery.ALL_STATUSES)
    set_delivery_status(delivery, status, optional_text(data, 'notes', 1000))
    session.commit()
    return delivery_json(delivery, with_order=True)
