import logging
from flask import Blueprint, request
from tailorshop import get_db
from tailorshop.decorators.auth import require_permissions
from tailorshop.decorators.audit import audit_log
from tailorshop.models.contact import ContactMessage
from tailorshop.utils.listing import list_response
from tailorshop.utils.validation import require_text, require_email

logger = logging.getLogger(__name__)

contact_bp = Blueprint('contact', __name__)


def _contact_json(m: ContactMessage):
    return {
        'id': m.id,
        'name': m.name,
        'email': m.email,
        'message': m.message,
        'created_at': m.created_at.isoformat() if m.created_at else None,
    }


@contact_bp.post('')
@audit_log('CONTACT.CREATE', entity='ContactMessage', entity_id_key='id', meta_keys=['email'])
def submit_message():
    data = request.json or {}
    msg = ContactMessage(
        name=require_text(data, 'name', 2, 100),
        email=require_email(data),
        message=require_text(data, 'message', 10, 1000),
    )
    session = get_db()
    session.add(msg)
    session.commit()
    logger.info('contact message %s from %s', msg.id, msg.email)
    return _contact_json(msg), 201


@contact_bp.get('')
@require_permissions('ADMIN.SETTINGS.MANAGE')
def list_messages():
    session = get_db()
    q = session.query(ContactMessage).order_by(ContactMessage.created_at.desc(), ContactMessage.id.desc())
    return list_response(q, _contact_json, timestamp_attr='created_at')
