"""Audit logging decorator for route handlers.

Usage:

@audit_log('ORDER.STATUS.SET', entity='Order', entity_id_key='id', diff_keys=['status'],
           pre_fetch=lambda a, kw: _prefetch_status(kw.get('order_id')))
def set_order_status(order_id): ...

Parameters:
  action: required audit action code (e.g. ORDER.STATUS.SET)
  entity: optional entity label (Order)
  entity_id_key: key in the returned JSON object whose value becomes entity_id.
  meta_keys: list of keys to project from returned JSON into meta dict (shallow copy).
  diff_keys / pre_fetch: pre_fetch(args, kwargs) snapshots the entity before the handler runs;
    keys in diff_keys whose value changed are recorded under meta['changes'].
    When the snapshot exists and none of diff_keys changed, no entry is written.

Only handlers that return normally are audited; aborted requests leave no entry.
Audit failures are logged and never change the response.
"""
from __future__ import annotations
import logging
from functools import wraps
from typing import Any, Callable, Iterable, Optional, Dict

from sqlalchemy.exc import SQLAlchemyError

from backoffice.services.audit import add_audit
from backoffice import get_db

logger = logging.getLogger(__name__)


def _extract_payload(rv: Any):
    """Return the JSON-able dict of a handler return value (body or (body, status))."""
    if isinstance(rv, tuple) and rv:
        return rv[0]
    return rv


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
    meta_keys: Optional[Iterable[str]] = None,
    diff_keys: Optional[Iterable[str]] = None,
    pre_fetch: Optional[Callable[[tuple, dict], Dict[str, Any]]] = None,
):
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            before_snapshot = None
            if diff_keys and pre_fetch:
                try:
                    before_snapshot = pre_fetch(args, kwargs)
                except Exception:
                    logger.warning('Audit pre-fetch failed for %s', action, exc_info=True)
            rv = fn(*args, **kwargs)
            try:
                data = _extract_payload(rv)
                entity_id = None
                meta = None
                if isinstance(data, dict):
                    if entity_id_key and entity_id_key in data:
                        entity_id = data.get(entity_id_key)
                    if meta_keys:
                        meta = {k: data.get(k) for k in meta_keys if k in data}
                    if diff_keys and isinstance(before_snapshot, dict):
                        changes = _diff(before_snapshot, data, diff_keys)
                        if not changes:
                            logger.debug('Nothing changed for %s %s, not audited', action, entity_id)
                            return rv
                        meta = dict(meta or {}, changes=changes)
                add_audit(action, entity, entity_id, meta)
                get_db().commit()
            except (SQLAlchemyError, TypeError, ValueError, KeyError):
                logger.exception('Audit entry for %s could not be recorded', action)
                try:
                    get_db().rollback()
                except SQLAlchemyError:
                    logger.exception('Rollback after audit failure failed')
            return rv
        return wrapper
    return outer
