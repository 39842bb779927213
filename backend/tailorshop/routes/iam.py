import logging
from flask import Blueprint, request, abort
from flask_jwt_extended import create_access_token, jwt_required
from sqlalchemy import select
from tailorshop.models.authz import User, Role, UserRole
from tailorshop.models.audit import AuditLog
from tailorshop.constants.permissions import ROLE_CUSTOMER, ROLE_STAFF, PORTAL_ROLES
from tailorshop import get_db
from tailorshop.services.policy import (
    compute_effective_permissions, assert_not_removing_last_admin, assign_role, current_user_id,
)
from tailorshop.services.audit import add_audit
from tailorshop.decorators.audit import audit_log
from tailorshop.decorators.auth import require_permissions
from tailorshop.utils.listing import list_response, apply_search
from tailorshop.utils.validation import require_text, optional_text, require_email

logger = logging.getLogger(__name__)

iam_bp = Blueprint('iam', __name__)

MIN_PASSWORD_LEN = 6


def _user_json(user: User):
    return {
        'id': user.id,
        'email': user.email,
        'full_name': user.full_name,
        'phone': user.phone,
        'is_active': user.is_active,
        'role': user.role_name,
        'created_at': user.created_at.isoformat() if user.created_at else None,
        'updated_at': user.updated_at.isoformat() if user.updated_at else None,
    }


def _create_user(session, data, role_name: str) -> User:
    email = require_email(data)
    password = data.get('password')
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LEN:
        abort(400, description=f'password must be at least {MIN_PASSWORD_LEN} characters')
    full_name = require_text(data, 'full_name', 2, 100)
    phone = optional_text(data, 'phone', 20)
    if session.execute(select(User).where(User.email == email)).scalar_one_or_none():
        abort(400, description='email already registered')
    user = User(email=email, full_name=full_name, phone=phone, password_hash='')
    user.set_password(password)
    session.add(user)
    session.flush()
    assign_role(user, role_name, session=session)
    session.flush()
    session.refresh(user)
    return user


@iam_bp.post('/auth/signup')
@audit_log('USER.SIGNUP', entity='User', entity_id_key='id', meta_keys=['email', 'role'])
def signup():
    # Self-service accounts are always customers; staff accounts come from /iam/users
    session = get_db()
    user = _create_user(session, request.json or {}, ROLE_CUSTOMER)
    session.commit()
    logger.info('customer signup %s', user.email)
    return _user_json(user), 201


@iam_bp.post('/auth/login')
def login():
    data = request.json or {}
    email = data.get('email'); password = data.get('password')
    if not email or not password:
        abort(400, description='email & password required')
    session = get_db()
    user = session.execute(select(User).where(User.email == str(email).strip().lower())).scalar_one_or_none()
    if not user or not user.verify_password(password):
        abort(401, description='invalid credentials')
    if not user.is_active:
        abort(403, description='account disabled')
    eff = compute_effective_permissions(user.id)
    portal = data.get('portal')
    if portal:
        expected = PORTAL_ROLES.get(portal)
        if expected is None:
            abort(400, description='portal invalid')
        if eff['role'] != expected:
            abort(403, description=f'This login is for {portal} only')
    claims = {'role': eff['role'], 'perms': eff['perms']}
    # JWT identity must be a string (flask-jwt-extended v4 requirement)
    token = create_access_token(identity=str(user.id), additional_claims=claims)
    return {'access_token': token, 'role': eff['role']}


@iam_bp.get('/auth/me')
@jwt_required()
def me():
    session = get_db()
    user = session.get(User, current_user_id())
    if not user:
        abort(404)
    eff = compute_effective_permissions(user.id)
    out = _user_json(user)
    out.update({'role': eff['role'], 'perms': eff['perms']})
    return out


@iam_bp.put('/auth/me')
@jwt_required()
@audit_log('USER.PROFILE.UPDATE', entity='User', entity_id_key='id', diff_keys=['full_name', 'phone'],
           pre_fetch=lambda a, kw: _profile_snapshot())
def update_me():
    session = get_db()
    user = session.get(User, current_user_id())
    if not user:
        abort(404)
    data = request.json or {}
    if 'full_name' in data:
        user.full_name = require_text(data, 'full_name', 2, 100)
    if 'phone' in data:
        user.phone = optional_text(data, 'phone', 20)
    session.commit()
    return _user_json(user)


def _profile_snapshot():
    user = get_db().get(User, current_user_id())
    if not user:
        return {}
    return {'full_name': user.full_name, 'phone': user.phone}


@iam_bp.get('/users')
@require_permissions('ADMIN.USER.MANAGE')
def list_users():
    session = get_db()
    q = session.query(User)
    role = request.args.get('role')
    if role:
        q = q.join(UserRole, UserRole.user_id == User.id).join(Role, Role.id == UserRole.role_id).filter(Role.name == role)
    q = apply_search(q, request.args.get('q'), [User.full_name, User.email])
    q = q.order_by(User.id.asc())
    return list_response(q, _user_json)


@iam_bp.post('/users')
@require_permissions('ADMIN.USER.MANAGE')
@audit_log('USER.CREATE', entity='User', entity_id_key='id', meta_keys=['email', 'role'])
def create_user():
    data = request.json or {}
    session = get_db()
    user = _create_user(session, data, data.get('role') or ROLE_STAFF)
    session.commit()
    return _user_json(user), 201


@iam_bp.put('/users/<int:user_id>/role')
@require_permissions('ADMIN.USER.MANAGE')
@audit_log('USER.ROLE.SET', entity='User', entity_id_key='id', diff_keys=['role'],
           pre_fetch=lambda a, kw: _role_snapshot(kw.get('user_id')))
def set_user_role(user_id: int):
    session = get_db()
    user = session.get(User, user_id)
    if not user:
        abort(404)
    role_name = (request.json or {}).get('role')
    if not role_name:
        abort(400, description='role required')
    assert_not_removing_last_admin(user.id, role_name)
    assign_role(user, role_name, session=session)
    session.commit()
    session.refresh(user)
    return _user_json(user)


def _role_snapshot(user_id):
    user = get_db().get(User, user_id)
    return {'role': user.role_name} if user else {}


@iam_bp.get('/roles')
@require_permissions('ADMIN.USER.MANAGE')
def list_roles():
    session = get_db()
    rows = session.execute(select(Role).order_by(Role.id.asc())).scalars().all()
    return {
        'data': [
            {'id': r.id, 'name': r.name, 'is_system': r.is_system,
             'permissions': sorted(rp.permission.code for rp in r.permissions)}
            for r in rows
        ]
    }


@iam_bp.get('/audit/logs')
@require_permissions('ADMIN.SETTINGS.MANAGE')
def list_audit_logs():
    session = get_db()
    q = session.query(AuditLog)
    action = request.args.get('action')
    if action:
        q = q.filter(AuditLog.action == action)
    entity = request.args.get('entity')
    if entity:
        q = q.filter(AuditLog.entity == entity)
    q = q.order_by(AuditLog.id.desc())
    return list_response(q, _audit_json, timestamp_attr='created_at')


def _audit_json(log: AuditLog):
    return {
        'id': log.id,
        'actor_user_id': log.actor_user_id,
        'action': log.action,
        'entity': log.entity,
        'entity_id': log.entity_id,
        'meta': log.meta or {},
        'created_at': log.created_at.isoformat() if log.created_at else None,
    }


@iam_bp.put('/users/<int:user_id>/active')
@require_permissions('ADMIN.USER.MANAGE')
def set_user_active(user_id: int):
    session = get_db()
    user = session.get(User, user_id)
    if not user:
        abort(404)
    data = request.json or {}
    if not isinstance(data.get('is_active'), bool):
        abort(400, description='is_active must be boolean')
    if not data['is_active']:
        assert_not_removing_last_admin(user.id, ROLE_CUSTOMER)
    user.is_active = data['is_active']
    add_audit('USER.ACTIVE.SET', 'User', user.id, {'is_active': user.is_active})
    session.commit()
    return _user_json(user)
