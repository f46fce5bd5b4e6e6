from __future__ import annotations
import logging
from typing import Any, Dict, Optional
from flask_jwt_extended import get_jwt_identity, get_jwt
from flask_jwt_extended.exceptions import JWTExtendedException
from backoffice import get_db
from backoffice.models.audit import AuditLog

logger = logging.getLogger(__name__)


def _actor_and_perms():
    try:
        claims = get_jwt() or {}
        ident = get_jwt_identity()
    except (RuntimeError, JWTExtendedException):
        # no verified JWT in this context (scripts, background publishers)
        return None, []
    try:
        actor = int(ident) if ident is not None else None
    except (TypeError, ValueError):
        actor = None
    return actor, list(claims.get('perms', []))


def add_audit(action: str, entity: Optional[str] = None, entity_id: Optional[str] = None, meta: Optional[Dict[str, Any]] = None):
    """Persist an audit log entry within the current DB session.

    Parameters:
      action: short action code e.g. ORDER.STATUS.SET, ORDER.DELETE_ALL
      entity: optional entity name (Order)
      entity_id: optional primary key string
      meta: additional JSON-safe dictionary (will be shallow copied)
    """
    session = get_db()
    actor, perms = _actor_and_perms()
    log = AuditLog(
        actor_user_id=actor or 0,
        action=action,
        entity=entity,
        entity_id=str(entity_id) if entity_id is not None else None,
        perms_snapshot={'perms': perms},
        meta=dict(meta or {}),
    )
    session.add(log)
    logger.debug('audit %s entity=%s id=%s actor=%s', action, entity, entity_id, actor)
    # No commit here; caller's transaction boundary controls durability.
    return log
