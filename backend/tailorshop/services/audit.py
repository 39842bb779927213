from __future__ import annotations
import logging
from typing import Any, Dict, Optional
from flask_jwt_extended import get_jwt, verify_jwt_in_request
from flask_jwt_extended.exceptions import JWTExtendedException
from jwt.exceptions import PyJWTError
from tailorshop import get_db
from tailorshop.models.audit import AuditLog

logger = logging.getLogger(__name__)


def _current_claims() -> Dict[str, Any]:
    try:
        verify_jwt_in_request(optional=True)
        return get_jwt() or {}
    except (JWTExtendedException, PyJWTError, RuntimeError):
        # no JWT context (public endpoints, gateway callback, scripts)
        return {}


def add_audit(action: str, entity: Optional[str] = None, entity_id: Optional[Any] = None, meta: Optional[Dict[str, Any]] = None, session=None):
    """Persist an audit log entry within the current DB session.

    Parameters:
      action: short action code e.g. ORDER.CREATE, PAYMENT.RECORD, DELIVERY.STATUS
      entity: optional entity name (Order, Payment, Delivery, ...)
      entity_id: optional primary key
      meta: additional JSON-safe dictionary (shallow copied)
    """
    session = session or get_db()
    claims = _current_claims()
    sub = claims.get('sub')
    try:
        actor = int(sub) if sub is not None else 0
    except (TypeError, ValueError):
        actor = 0
    log = AuditLog(
        actor_user_id=actor,
        action=action,
        entity=entity,
        entity_id=str(entity_id) if entity_id is not None else None,
        perms_snapshot={'perms': claims.get('perms', [])},
        meta=dict(meta or {}),
    )
    session.add(log)
    logger.debug('audit %s %s:%s by %s', action, entity, entity_id, actor)
    # No commit here; caller's transaction boundary controls durability.
    return log
