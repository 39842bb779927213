from __future__ import annotations
"""Audit logging decorator so route handlers do not repeat add_audit() calls.

Usage:

@audit_log('ORDER.CREATE', entity='Order', entity_id_key='id', meta_keys=['customer_name', 'total_cents'])
def create_order():
    ... return _order_json(order), 201

@audit_log('ORDER.PRICE', entity='Order', entity_id_key='id', diff_keys=['total_cents', 'status'],
           pre_fetch=lambda a, kw: _order_snapshot(kw.get('order_id')))
def update_pricing(order_id): ...

Parameters:
  action: audit action code
  entity: entity label (Order, Payment, Delivery, ...)
  entity_id_key: key in the returned JSON object whose value becomes entity_id
  entity_id_arg: view keyword argument used for entity_id when the key is absent
  meta_keys: keys projected from the returned JSON into meta
  meta_builder: callable (data, rv, args, kwargs) -> dict, overrides meta_keys
  diff_keys / pre_fetch: snapshot before the call; changed keys land in meta['changes']

Only successful responses (status < 400) are audited. Failures inside the audit step are
logged and never change the endpoint's response.
"""

import logging
from functools import wraps
from typing import Any, Callable, Iterable, Optional, Dict

from sqlalchemy.exc import SQLAlchemyError

from tailorshop.services.audit import add_audit
from tailorshop import get_db

logger = logging.getLogger(__name__)


def _extract_payload(rv: Any):
    """Return (data, status) for dict / (dict, status) / (dict, status, headers) returns."""
    if isinstance(rv, tuple) and rv:
        status = rv[1] if len(rv) > 1 and isinstance(rv[1], int) else 200
        return rv[0], status
    return rv, getattr(rv, 'status_code', 200)


def _diff(before: Dict[str, Any], after: Dict[str, Any], keys: Iterable[str]) -> Dict[str, Any]:
    changes = {}
    for k in keys:
        if k in before and k in after and before.get(k) != after.get(k):
            changes[k] = {'before': before.get(k), 'after': after.get(k)}
    return changes


def audit_log(
    action: str,
    *,
    entity: Optional[str] = None,
    entity_id_key: Optional[str] = None,
    entity_id_arg: Optional[str] = None,
    meta_keys: Optional[Iterable[str]] = None,
    meta_builder: Optional[Callable[[dict, Any, tuple, dict], dict]] = None,
    diff_keys: Optional[Iterable[str]] = None,
    pre_fetch: Optional[Callable[[tuple, dict], Dict[str, Any]]] = None,
):
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            before = pre_fetch(args, kwargs) if (diff_keys and pre_fetch) else None
            rv = fn(*args, **kwargs)
            data, status = _extract_payload(rv)
            if status >= 400:
                return rv
            if not isinstance(data, dict):
                data = {}
            entity_id = None
            if entity_id_key and entity_id_key in data:
                entity_id = data.get(entity_id_key)
            elif entity_id_arg and entity_id_arg in kwargs:
                entity_id = kwargs.get(entity_id_arg)
            if meta_builder:
                meta = meta_builder(data, rv, args, kwargs)
            elif meta_keys:
                meta = {k: data.get(k) for k in meta_keys if k in data}
            else:
                meta = {}
            if before:
                changes = _diff(before, data, diff_keys or ())
                if changes:
                    meta = dict(meta or {})
                    meta['changes'] = changes
            session = get_db()
            try:
                add_audit(action, entity, entity_id, meta, session=session)
                session.commit()
            except SQLAlchemyError:
                session.rollback()
                logger.exception('audit write failed for %s', action)
            return rv
        return wrapper
    return outer
