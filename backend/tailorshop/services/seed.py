"""Idempotent seeding of the permission catalogue, the five system roles and a first admin.

Shared by ``scripts/seed_roles.py`` and the test fixtures so both always agree on what a
freshly provisioned database looks like.
"""
from __future__ import annotations
import logging
from typing import Dict, List, Optional, Tuple
from sqlalchemy import select

from tailorshop.models.authz import Permission, Role, RolePermission, User
from tailorshop.constants.permissions import (
    SERVICE_ACTIONS, ROLE_PRESETS, ROLE_ADMIN, build_all_permission_codes,
)
from tailorshop.services.policy import assign_role

logger = logging.getLogger(__name__)


def ensure_permissions(session) -> int:
    existing = {p.code for p in session.execute(select(Permission)).scalars().all()}
    created = 0
    for svc, actions in SERVICE_ACTIONS.items():
        for act in actions:
            code = f"{svc}.{act}"
            if code not in existing:
                session.add(Permission(code=code, service=svc, action=act, description=code.replace('.', ' - ')))
                created += 1
    session.flush()
    return created


def ensure_roles(session) -> int:
    existing_roles = {r.name: r for r in session.execute(select(Role)).scalars().all()}
    created = 0
    for role_name in ROLE_PRESETS:
        if role_name not in existing_roles:
            role = Role(name=role_name, is_system=True)
            session.add(role)
            existing_roles[role_name] = role
            created += 1
    session.flush()

    all_codes = set(build_all_permission_codes())
    perms_map = {p.code: p for p in session.execute(select(Permission)).scalars()}
    for role_name, raw_codes in ROLE_PRESETS.items():
        role = existing_roles[role_name]
        desired = all_codes if '*' in raw_codes else set(raw_codes)
        current = {rp.permission.code for rp in role.permissions}
        for code in sorted(desired - current):
            perm = perms_map.get(code)
            if perm is None:
                logger.warning('Missing permission referenced by role %s: %s', role_name, code)
                continue
            session.add(RolePermission(role=role, permission=perm))
    session.flush()
    return created


def ensure_initial_admin(session, email: str, password: str, full_name: str = 'Administrator') -> Optional[User]:
    """Create the admin account once; returns the new user or None when it already exists."""
    email = email.strip().lower()
    if session.execute(select(User).where(User.email == email)).scalar_one_or_none():
        return None
    user = User(full_name=full_name, email=email, password_hash='')
    user.set_password(password)
    session.add(user)
    session.flush()
    assign_role(user, ROLE_ADMIN, session=session)
    session.flush()
    logger.info('Created initial admin user %s with temporary password', email)
    return user


def seed_all(session, admin_email: Optional[str] = None, admin_password: Optional[str] = None) -> Dict[str, int]:
    perms_created = ensure_permissions(session)
    roles_created = ensure_roles(session)
    admin_created = 0
    if admin_email and admin_password:
        admin_created = 1 if ensure_initial_admin(session, admin_email, admin_password) else 0
    return {'permissions': perms_created, 'roles': roles_created, 'admins': admin_created}


def summarize_roles(session) -> List[Tuple[str, int, List[str]]]:
    rows = []
    for role in session.execute(select(Role).order_by(Role.id)).scalars().all():
        perms = sorted(rp.permission.code for rp in role.permissions)
        rows.append((role.name, len(perms), perms[:8]))
    return rows


__all__ = ['ensure_permissions', 'ensure_roles', 'ensure_initial_admin', 'seed_all', 'summarize_roles']
