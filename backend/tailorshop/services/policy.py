from __future__ import annotations
from typing import Optional, Set
from flask import abort
from flask_jwt_extended import get_jwt, get_jwt_identity
from sqlalchemy import select, func
from tailorshop.models.authz import User, UserRole, RolePermission, Permission, Role
from tailorshop.constants.permissions import ROLE_ADMIN, ROLE_PRESETS
from tailorshop import get_db


def current_permissions() -> Set[str]:
    claims = get_jwt()
    return set(claims.get('perms', []))


def current_role() -> Optional[str]:
    return get_jwt().get('role')


def current_user_id() -> int:
    # JWT identity is stored as a string (flask-jwt-extended v4 requirement)
    return int(get_jwt_identity())


def has_permissions(*codes: str) -> bool:
    perms = current_permissions()
    return all(c in perms for c in codes)


def has_any_permission(*codes: str) -> bool:
    perms = current_permissions()
    return any(c in perms for c in codes)


def get_user_role(user_id: int, session=None) -> Optional[str]:
    session = session or get_db()
    row = session.execute(
        select(Role.name).join(UserRole, UserRole.role_id == Role.id).where(UserRole.user_id == user_id)
    ).scalar_one_or_none()
    return row


def has_role(user_id: int, role: str) -> bool:
    return get_user_role(user_id) == role


def compute_effective_permissions(user_id: int):
    """Resolve the user's single role into its permission codes.

    The admin role is a wildcard and expands to every permission present in the catalogue.
    """
    session = get_db()
    user_role = session.execute(select(UserRole).where(UserRole.user_id == user_id)).scalar_one_or_none()
    if not user_role:
        return {'role': None, 'perms': []}
    role = session.get(Role, user_role.role_id)
    perm_codes = set()
    if role.name == ROLE_ADMIN or '*' in ROLE_PRESETS.get(role.name, []):
        for p in session.execute(select(Permission)).scalars():
            perm_codes.add(p.code)
    else:
        rows = session.execute(
            select(Permission.code)
            .join(RolePermission, RolePermission.permission_id == Permission.id)
            .where(RolePermission.role_id == role.id)
        ).scalars()
        perm_codes.update(rows)
    return {'role': role.name, 'perms': sorted(perm_codes)}


def assign_role(user: User, role_name: str, session=None) -> Role:
    """Replace the user's role. Aborts 400 for unknown role names."""
    session = session or get_db()
    role = session.execute(select(Role).where(Role.name == role_name)).scalar_one_or_none()
    if not role:
        abort(400, description=f'Unknown role {role_name}')
    existing = session.execute(select(UserRole).where(UserRole.user_id == user.id)).scalar_one_or_none()
    # assign through the relationships so already-loaded user.role_name stays consistent
    if existing:
        existing.role = role
    else:
        session.add(UserRole(user=user, role=role))
    return role


def count_admin_users(session=None) -> int:
    """Count admins who can still sign in; deactivated admins do not keep the shop administrable."""
    session = session or get_db()
    return session.execute(
        select(func.count(UserRole.id))
        .join(Role, Role.id == UserRole.role_id)
        .join(User, User.id == UserRole.user_id)
        .where(Role.name == ROLE_ADMIN, User.is_active.is_(True))
    ).scalar_one()


def assert_not_removing_last_admin(target_user_id: int, new_role: str):
    """Ensure at least one active admin remains after target_user_id switches to new_role."""
    if new_role == ROLE_ADMIN:
        return
    if get_user_role(target_user_id) != ROLE_ADMIN:
        return
    target = get_db().get(User, target_user_id)
    if target is None or not target.is_active:
        return
    if count_admin_users() <= 1:
        abort(400, description='Cannot remove last admin role')


def assert_owns_order(order) -> None:
    """Customers may only touch orders tied to their own account; 404 hides foreign orders."""
    if order.user_id != current_user_id():
        abort(404)
