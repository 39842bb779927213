"""Chapa hosted checkout: transaction initialization and the provider callback."""
from __future__ import annotations
import logging
from flask import Blueprint, request, abort, current_app
from sqlalchemy.exc import IntegrityError
from tailorshop import get_db
from tailorshop.decorators.auth import require_permissions
from tailorshop.models.order import Order
from tailorshop.services.audit import add_audit
from tailorshop.services.chapa import (
    ChapaError, get_client, build_tx_ref, split_name, verify_signature, CURRENCY,
)
from tailorshop.services.finance import cents_to_amount
from tailorshop.services.payments import record_gateway_payment
from tailorshop.services.policy import assert_owns_order
from tailorshop.utils.validation import require_text, require_email, parse_cents

logger = logging.getLogger(__name__)

payments_bp = Blueprint('payments', __name__)

CHECKOUT_TITLE = 'Tailor Shop Payment'
SIGNATURE_HEADERS = ('Chapa-Signature', 'x-chapa-signature')


@payments_bp.post('/chapa/initialize')
@require_permissions('PAY.CHECKOUT')
def chapa_initialize():
    session = get_db()
    data = request.json or {}
    if data.get('order_id') in (None, ''):
        abort(400, description='order_id required')
    try:
        order_id = int(data['order_id'])
    except (TypeError, ValueError):
        abort(400, description='order_id must be int')
    amount_cents = parse_cents(data.get('amount_cents'), 'amount_cents', minimum=1)
    email = require_email(data)
    full_name = require_text(data, 'full_name', 1, 100)
    phone = require_text(data, 'phone', 5, 20)

    order = session.get(Order, order_id)
    if not order:
        abort(404)
    assert_owns_order(order)
    if order.total_cents <= 0:
        abort(400, description='Order price has not been set yet')
    if amount_cents > order.remaining_cents:
        abort(400, description='Payment amount exceeds remaining balance')

    tx_ref = build_tx_ref(order.id)
    first_name, last_name = split_name(full_name)
    cfg = current_app.config
    payload = {
        'amount': cents_to_amount(amount_cents),
        'currency': CURRENCY,
        'email': email,
        'first_name': first_name,
        'last_name': last_name,
        'phone_number': phone,
        'tx_ref': tx_ref,
        'callback_url': f"{cfg['PUBLIC_BASE_URL']}/payments/chapa/callback",
        'return_url': f"{cfg['FRONTEND_BASE_URL']}/user/orders/{order.id}?payment=success",
        'customization': {
            'title': CHECKOUT_TITLE,
            'description': f'Payment for order {order.customer_name}',
        },
    }
    logger.info('Initializing Chapa payment order=%s amount=%s tx_ref=%s', order.id, payload['amount'], tx_ref)
    try:
        result = get_client().initialize(payload)
    except ChapaError as e:
        logger.warning('Chapa initialize rejected for order %s: %s', order.id, e.message)
        abort(400, description=e.message)
    checkout_url = result.get('checkout_url')
    if not checkout_url:
        abort(400, description='Payment initialization failed')
    add_audit('PAYMENT.CHECKOUT.INIT', 'Order', order.id, {'tx_ref': tx_ref, 'amount_cents': amount_cents})
    session.commit()
    return {'checkout_url': checkout_url, 'tx_ref': tx_ref}


def _callback_tx_ref():
    if request.method == 'GET':
        return request.args.get('trx_ref') or request.args.get('tx_ref')
    body = request.get_json(silent=True) or {}
    return (body.get('trx_ref') or body.get('tx_ref')
            or request.args.get('trx_ref') or request.args.get('tx_ref'))


def _check_signature():
    secret = current_app.config.get('CHAPA_WEBHOOK_SECRET')
    if not secret:
        return
    signature = next((request.headers.get(h) for h in SIGNATURE_HEADERS if request.headers.get(h)), None)
    if signature is None:
        # Redirect-style GET callbacks from the hosted page carry no signature
        return
    if not verify_signature(secret, request.get_data(), signature):
        logger.warning('Chapa callback signature mismatch')
        abort(401, description='Invalid signature')


@payments_bp.route('/chapa/callback', methods=['GET', 'POST'])
def chapa_callback():
    _check_signature()
    tx_ref = _callback_tx_ref()
    logger.info('Chapa callback received: %s', tx_ref)
    if not tx_ref:
        abort(400, description='Transaction reference is required')
    try:
        envelope = get_client().verify(tx_ref)
    except ChapaError as e:
        abort(400, description=e.message)
    verified = envelope.get('data') or {}
    logger.info('Chapa verification for %s: status=%s data.status=%s',
                tx_ref, envelope.get('status'), verified.get('status'))
    if envelope.get('status') == 'success' and verified.get('status') == 'success':
        session = get_db()
        try:
            payment, created = record_gateway_payment(session, tx_ref, verified)
            if created:
                add_audit('PAYMENT.GATEWAY', 'Payment', payment.id,
                          {'tx_ref': tx_ref, 'order_id': payment.order_id, 'amount_cents': payment.amount_cents})
            session.commit()
        except IntegrityError:
            # a concurrent callback inserted the same reference first
            session.rollback()
            logger.info('Chapa payment already recorded: %s', tx_ref)
    return {'success': True, 'message': 'Payment processed'}
