"""Central enum-like definitions to avoid typos in permission/role strings.
Extend cautiously; never rename codes silently, add new ones and migrate role presets instead.
"""
from __future__ import annotations
from typing import List, Dict

ROLE_ADMIN = 'admin'
ROLE_STAFF = 'staff'
ROLE_GUARD = 'guard'
ROLE_CUSTOMER = 'customer'
ROLE_DELIVERER = 'deliverer'
ALL_ROLES = (ROLE_ADMIN, ROLE_STAFF, ROLE_GUARD, ROLE_CUSTOMER, ROLE_DELIVERER)

SERVICES = ['ORDERS', 'PAY', 'DLV', 'RPT', 'ADMIN']

SERVICE_ACTIONS = {
    'ORDERS': ['READ', 'READ_OWN', 'CREATE', 'REQUEST', 'UPDATE', 'DELETE'],
    'PAY': ['READ', 'RECORD', 'CHECKOUT'],
    'DLV': ['READ', 'ASSIGN', 'MANAGE', 'WORK'],
    'RPT': ['READ'],
    'ADMIN': ['USER.MANAGE', 'SETTINGS.MANAGE'],
}


def build_all_permission_codes() -> List[str]:
    codes: List[str] = []
    for svc, actions in SERVICE_ACTIONS.items():
        for act in actions:
            codes.append(f"{svc}.{act}")
    return codes

ALL_PERMISSION_CODES = build_all_permission_codes()

ROLE_PRESETS: Dict[str, List[str]] = {
    ROLE_ADMIN: ['*'],
    ROLE_STAFF: [
        'ORDERS.READ', 'ORDERS.CREATE', 'ORDERS.UPDATE',
        'PAY.READ', 'PAY.RECORD',
        'DLV.READ', 'DLV.ASSIGN', 'DLV.MANAGE',
        'RPT.READ',
    ],
    # Front-desk guard: can look orders up for pickup, nothing else
    ROLE_GUARD: ['ORDERS.READ'],
    ROLE_CUSTOMER: ['ORDERS.READ_OWN', 'ORDERS.REQUEST', 'PAY.CHECKOUT'],
    ROLE_DELIVERER: ['DLV.WORK'],
}

# Login portals and the role each one admits
PORTAL_ROLES: Dict[str, str] = {
    'admin': ROLE_ADMIN,
    'staff': ROLE_STAFF,
    'deliverer': ROLE_DELIVERER,
    'customer': ROLE_CUSTOMER,
}
