from __future__ import annotations
from typing import List, Optional, Set
from flask_jwt_extended import get_jwt
from backoffice.constants.permissions import ROLE_PRESETS, ALL_PERMISSION_CODES


def current_permissions() -> Set[str]:
    claims = get_jwt()
    return set(claims.get('perms', []))


def missing_permissions(*codes: str) -> List[str]:
    perms = current_permissions()
    return [c for c in codes if c not in perms]


def permissions_for_role(role: Optional[str]) -> List[str]:
    """Expand a role preset into concrete permission codes. Unknown roles get nothing."""
    raw = ROLE_PRESETS.get(role or '', [])
    if '*' in raw:
        return sorted(ALL_PERMISSION_CODES)
    return sorted(c for c in raw if c in ALL_PERMISSION_CODES)
