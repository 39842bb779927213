from __future__ import annotations
from flask import Blueprint
from sqlalchemy import func, select
from tailorshop.decorators.auth import require_permissions
from tailorshop import get_db
from tailorshop.models.order import Order
from tailorshop.models.payment import Payment
from tailorshop.routes.orders import _order_json
from tailorshop.services.payments import payment_json

rpt_bp = Blueprint('reports', __name__)

RECENT_ORDERS = 5
RECENT_PAYMENTS = 10


def _order_totals(session):
    total_orders, total_cents, remaining_cents = session.execute(
        select(
            func.count(Order.id),
            func.coalesce(func.sum(Order.total_cents), 0),
            func.coalesce(func.sum(Order.remaining_cents), 0),
        )
    ).one()
    by_status = {s: 0 for s in Order.ALL_STATUSES}
    for status, count in session.execute(select(Order.status, func.count(Order.id)).group_by(Order.status)).all():
        by_status[status] = int(count)
    return int(total_orders), int(total_cents), int(remaining_cents), by_status


@rpt_bp.get('/dashboard')
@require_permissions('RPT.READ')
def dashboard():
    session = get_db()
    total_orders, total_cents, remaining_cents, by_status = _order_totals(session)
    recent = session.execute(
        select(Order).order_by(Order.created_at.desc(), Order.id.desc()).limit(RECENT_ORDERS)
    ).scalars().all()
    return {
        'total_orders': total_orders,
        'pending_orders': total_orders - by_status[Order.STATUS_PAID],
        'total_revenue_cents': total_cents,
        'outstanding_cents': remaining_cents,
        'by_status': by_status,
        'recent_orders': [_order_json(o) for o in recent],
    }


@rpt_bp.get('/admin')
@require_permissions('ADMIN.USER.MANAGE')
def admin_report():
    session = get_db()
    total_orders, total_cents, remaining_cents, by_status = _order_totals(session)
    recent = session.execute(
        select(Payment).order_by(Payment.payment_date.desc(), Payment.id.desc()).limit(RECENT_PAYMENTS)
    ).scalars().all()
    recent_payments = []
    for p in recent:
        row = payment_json(p)
        row['customer_name'] = p.order.customer_name if p.order else None
        recent_payments.append(row)
    return {
        'total_sales_cents': total_cents,
        'total_outstanding_cents': remaining_cents,
        'completed_orders': by_status[Order.STATUS_PAID],
        'pending_orders': total_orders - by_status[Order.STATUS_PAID],
        'recent_payments': recent_payments,
    }
