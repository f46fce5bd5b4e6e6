"""Central enum-like definitions to avoid typos in permission strings.
Extend cautiously; never rename codes silently, staff tokens carry them verbatim.
"""
from __future__ import annotations
from typing import List, Dict

SERVICES = ['ORDERS']

SERVICE_ACTIONS = {
    'ORDERS': ['READ', 'UPDATE', 'DELETE', 'SEED'],
}


def build_all_permission_codes() -> List[str]:
    codes: List[str] = []
    for svc, actions in SERVICE_ACTIONS.items():
        for act in actions:
            codes.append(f"{svc}.{act}")
    return codes

ALL_PERMISSION_CODES = build_all_permission_codes()

ROLE_CUSTOMER = 'customer'
ROLE_STAFF = 'staff'
ROLE_ADMIN = 'admin'

ROLE_PRESETS: Dict[str, List[str]] = {
    ROLE_CUSTOMER: [],
    # Kitchen staff move orders across the board but cannot wipe them
    ROLE_STAFF: ['ORDERS.READ', 'ORDERS.UPDATE'],
    ROLE_ADMIN: ['*'],
}
