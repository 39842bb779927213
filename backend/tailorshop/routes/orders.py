from __future__ import annotations
import logging
from flask import Blueprint, request, abort, current_app
from sqlalchemy import select, func, case
from tailorshop import get_db
from tailorshop.decorators.auth import require_permissions, require_any_permission
from tailorshop.decorators.audit import audit_log
from tailorshop.models.authz import User
from tailorshop.models.order import Order
from tailorshop.models.payment import Payment
from tailorshop.services.audit import add_audit
from tailorshop.services.deliveries import open_delivery, assign_deliverer, delivery_json
from tailorshop.services.finance import recompute_order
from tailorshop.services.payments import record_payment, payment_json
from tailorshop.services.policy import current_user_id, has_permissions, assert_owns_order
from tailorshop.utils.listing import list_response, apply_search, apply_multi_sort
from tailorshop.utils.validation import (
    require_text, optional_text, parse_cents, parse_date, parse_bool, parse_address, validate_status,
)

logger = logging.getLogger(__name__)

orders_bp = Blueprint('orders', __name__)

NOT_PROVIDED = 'Not provided'

SORTABLE = {
    'id': Order.id,
    'created_at': Order.created_at,
    'customer_name': Order.customer_name,
    'status': Order.status,
    'due_date': Order.due_date,
    'total_cents': Order.total_cents,
    'remaining_cents': Order.remaining_cents,
}


def _order_json(o: Order):
    return {
        'id': o.id,
        'customer_name': o.customer_name,
        'phone': o.phone,
        'item_description': o.item_description,
        'total_cents': o.total_cents,
        'remaining_cents': o.remaining_cents,
        'paid_cents': o.total_cents - o.remaining_cents,
        'status': o.status,
        'due_date': o.due_date.isoformat() if o.due_date else None,
        'notes': o.notes,
        'created_by': o.created_by,
        'user_id': o.user_id,
        'delivery_required': o.delivery_required,
        'delivery_address': o.delivery_address,
        'delivery_fee_cents': o.delivery_fee_cents,
        'delivery_status': o.delivery_status,
        'created_at': o.created_at.isoformat() if o.created_at else None,
        'updated_at': o.updated_at.isoformat() if o.updated_at else None,
    }


def _order_detail_json(session, o: Order):
    out = _order_json(o)
    payments = session.execute(
        select(Payment).where(Payment.order_id == o.id).order_by(Payment.payment_date.desc(), Payment.id.desc())
    ).scalars().all()
    out['payments'] = [payment_json(p) for p in payments]
    out['delivery'] = delivery_json(o.delivery) if o.delivery else None
    return out


def _get_order_or_404(session, order_id: int) -> Order:
    order = session.get(Order, order_id)
    if not order:
        abort(404)
    return order


def _load_visible_order(session, order_id: int, staff_perm: str) -> Order:
    """Staff holding ``staff_perm`` see every order; customers only their own (404 otherwise)."""
    order = _get_order_or_404(session, order_id)
    if not has_permissions(staff_perm):
        assert_owns_order(order)
    return order


def _order_snapshot(order_id):
    order = get_db().get(Order, order_id)
    if not order:
        return {}
    return _order_json(order)


def _read_delivery(data):
    delivery_required = parse_bool(data.get('delivery_required'), 'delivery_required')
    address = parse_address(data.get('delivery_address')) if delivery_required else None
    return delivery_required, address


@orders_bp.post('')
@require_permissions('ORDERS.CREATE')
@audit_log('ORDER.CREATE', entity='Order', entity_id_key='id',
           meta_keys=['customer_name', 'total_cents', 'remaining_cents', 'status', 'delivery_required'])
def create_order():
    session = get_db()
    data = request.json or {}
    customer_name = require_text(data, 'customer_name', 2, 100)
    phone = require_text(data, 'phone', 5, 20)
    item_description = require_text(data, 'item_description', 5, 1000)
    total_cents = parse_cents(data.get('total_cents'), 'total_cents', minimum=1)
    down_payment = parse_cents(data.get('down_payment_cents', 0), 'down_payment_cents')
    if down_payment > total_cents:
        abort(400, description='Down payment cannot exceed total price')
    due_date = parse_date(data.get('due_date'), 'due_date')
    notes = optional_text(data, 'notes', 1000)
    delivery_required, address = _read_delivery(data)
    fee = int(current_app.config['DELIVERY_FEE_CENTS']) if delivery_required else 0
    user_id = current_user_id()

    order = Order(
        customer_name=customer_name,
        phone=phone,
        item_description=item_description,
        total_cents=total_cents + fee,
        remaining_cents=total_cents + fee,
        status=Order.STATUS_PENDING,
        due_date=due_date,
        notes=notes,
        created_by=user_id,
        delivery_required=delivery_required,
        delivery_address=address,
        delivery_fee_cents=fee,
        delivery_status=Order.DELIVERY_NOT_APPLICABLE,
    )
    session.add(order)
    session.flush()
    if delivery_required:
        open_delivery(session, order)
    if down_payment > 0:
        record_payment(session, order, payer_name=customer_name, amount_cents=down_payment,
                       method=Payment.METHOD_CASH, recorded_by=user_id, notes='Down payment')
    else:
        recompute_order(session, order)
    session.commit()
    logger.info('order %s created by %s total_cents=%s', order.id, user_id, order.total_cents)
    return _order_detail_json(session, order), 201


@orders_bp.post('/requests')
@require_permissions('ORDERS.REQUEST')
@audit_log('ORDER.REQUEST', entity='Order', entity_id_key='id', meta_keys=['item_description', 'delivery_required'])
def request_order():
    session = get_db()
    data = request.json or {}
    item_description = require_text(data, 'item_description', 5, 1000)
    notes = optional_text(data, 'notes', 1000)
    delivery_required, address = _read_delivery(data)
    user = session.get(User, current_user_id())
    if not user:
        abort(404)
    order = Order(
        customer_name=user.full_name or NOT_PROVIDED,
        phone=user.phone or NOT_PROVIDED,
        item_description=item_description,
        total_cents=0,
        remaining_cents=0,
        status=Order.STATUS_PENDING,
        notes=notes,
        created_by=user.id,
        user_id=user.id,
        delivery_required=delivery_required,
        delivery_address=address,
        # recorded for staff to include when pricing; not added to the zero total
        delivery_fee_cents=int(current_app.config['DELIVERY_FEE_CENTS']) if delivery_required else 0,
        delivery_status=Order.DELIVERY_NOT_APPLICABLE,
    )
    session.add(order)
    session.flush()
    if delivery_required:
        open_delivery(session, order)
    session.commit()
    return _order_json(order), 201


@orders_bp.get('')
@require_permissions('ORDERS.READ')
def list_orders():
    session = get_db()
    q = session.query(Order)
    status = request.args.get('status')
    if status:
        q = q.filter(Order.status == validate_status(status, Order.ALL_STATUSES))
    q = apply_search(q, request.args.get('q'), [Order.customer_name, Order.phone, Order.item_description])
    q = apply_multi_sort(q, request.args.get('sort'), SORTABLE, [Order.created_at.desc(), Order.id.desc()])
    return list_response(q, _order_json)


@orders_bp.get('/mine')
@require_permissions('ORDERS.READ_OWN')
def my_orders():
    session = get_db()
    user_id = current_user_id()
    q = session.query(Order).filter(Order.user_id == user_id)
    q = apply_multi_sort(q, request.args.get('sort'), SORTABLE, [Order.created_at.desc(), Order.id.desc()])
    outstanding, paid_count = session.execute(
        select(
            func.coalesce(func.sum(case((Order.status != Order.STATUS_PAID, Order.remaining_cents), else_=0)), 0),
            func.coalesce(func.sum(case((Order.status == Order.STATUS_PAID, 1), else_=0)), 0),
        ).where(Order.user_id == user_id)
    ).one()
    summary = {'outstanding_cents': int(outstanding), 'paid_count': int(paid_count)}
    return list_response(q, _order_json, extra={'summary': summary})


@orders_bp.get('/<int:order_id>')
@require_any_permission('ORDERS.READ', 'ORDERS.READ_OWN')
def get_order(order_id: int):
    session = get_db()
    order = _load_visible_order(session, order_id, 'ORDERS.READ')
    return _order_detail_json(session, order)


@orders_bp.put('/<int:order_id>/pricing')
@require_permissions('ORDERS.UPDATE')
@audit_log('ORDER.PRICE', entity='Order', entity_id_key='id', meta_keys=['total_cents'],
           diff_keys=['total_cents', 'remaining_cents', 'status', 'due_date'],
           pre_fetch=lambda a, kw: _order_snapshot(kw.get('order_id')))
def update_pricing(order_id: int):
    session = get_db()
    order = _get_order_or_404(session, order_id)
    data = request.json or {}
    order.total_cents = parse_cents(data.get('total_cents'), 'total_cents')
    if 'due_date' in data:
        order.due_date = parse_date(data.get('due_date'), 'due_date')
    deliverer_id = data.get('deliverer_id')
    if deliverer_id not in (None, '') and order.delivery_required:
        if not has_permissions('DLV.ASSIGN'):
            abort(403, description='Missing permission')
        assign_deliverer(session, order, deliverer_id)
    state = recompute_order(session, order)
    session.commit()
    logger.info('order %s priced at %s -> %s', order.id, order.total_cents, state.status)
    return _order_detail_json(session, order)


@orders_bp.put('/<int:order_id>')
@require_permissions('ORDERS.UPDATE')
@audit_log('ORDER.UPDATE', entity='Order', entity_id_key='id',
           diff_keys=['customer_name', 'phone', 'item_description', 'notes'],
           pre_fetch=lambda a, kw: _order_snapshot(kw.get('order_id')))
def update_order(order_id: int):
    session = get_db()
    order = _get_order_or_404(session, order_id)
    data = request.json or {}
    if 'customer_name' in data:
        order.customer_name = require_text(data, 'customer_name', 2, 100)
    if 'phone' in data:
        order.phone = require_text(data, 'phone', 5, 20)
    if 'item_description' in data:
        order.item_description = require_text(data, 'item_description', 5, 1000)
    if 'notes' in data:
        order.notes = optional_text(data, 'notes', 1000)
    session.commit()
    return _order_json(order)


@orders_bp.delete('/<int:order_id>')
@require_permissions('ORDERS.DELETE')
def delete_order(order_id: int):
    session = get_db()
    order = _get_order_or_404(session, order_id)
    meta = {'customer_name': order.customer_name, 'total_cents': order.total_cents,
            'payments': len(order.payments), 'delivery': order.delivery is not None}
    session.delete(order)
    add_audit('ORDER.DELETE', 'Order', order_id, meta)
    session.commit()
    return {'status': 'deleted'}


@orders_bp.post('/<int:order_id>/payments')
@require_permissions('PAY.RECORD')
@audit_log('PAYMENT.RECORD', entity='Payment', entity_id_key='id',
           meta_keys=['order_id', 'amount_cents', 'payment_method'])
def create_payment(order_id: int):
    session = get_db()
    order = _get_order_or_404(session, order_id)
    data = request.json or {}
    payer_name = require_text(data, 'payer_name', 2, 100)
    amount_cents = parse_cents(data.get('amount_cents'), 'amount_cents', minimum=1)
    method = validate_status(data.get('payment_method') or Payment.METHOD_CASH, Payment.MANUAL_METHODS,
                             'payment_method')
    notes = optional_text(data, 'notes', 500)
    payment = record_payment(session, order, payer_name=payer_name, amount_cents=amount_cents, method=method,
                             recorded_by=current_user_id(), notes=notes)
    session.commit()
    out = payment_json(payment)
    out['order'] = {'remaining_cents': order.remaining_cents, 'status': order.status}
    return out, 201


@orders_bp.get('/<int:order_id>/payments')
@require_any_permission('PAY.READ', 'ORDERS.READ_OWN')
def list_payments(order_id: int):
    session = get_db()
    order = _load_visible_order(session, order_id, 'PAY.READ')
    q = session.query(Payment).filter(Payment.order_id == order.id).order_by(
        Payment.payment_date.desc(), Payment.id.desc())
    return list_response(q, payment_json, timestamp_attr='created_at')


@orders_bp.put('/<int:order_id>/delivery')
@require_permissions('DLV.ASSIGN')
@audit_log('DELIVERY.ASSIGN', entity='Delivery', entity_id_key='id', meta_keys=['order_id', 'deliverer_id'])
def assign_delivery(order_id: int):
    session = get_db()
    order = _get_order_or_404(session, order_id)
    data = request.json or {}
    if data.get('deliverer_id') in (None, ''):
        abort(400, description='deliverer_id required')
    delivery = assign_deliverer(session, order, data['deliverer_id'])
    session.commit()
    return delivery_json(delivery)
