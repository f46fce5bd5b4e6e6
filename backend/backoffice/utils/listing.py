from __future__ import annotations
from typing import Iterable, Optional
from flask import request, make_response
import hashlib
from datetime import datetime, timezone, timedelta
from email.utils import parsedate_to_datetime, format_datetime

TIMESTAMP_TOLERANCE = timedelta(seconds=1)


def canonicalize_timestamp(dt: datetime) -> datetime:
    """Return UTC tz-aware timestamp truncated to whole seconds (microseconds removed)."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).replace(microsecond=0)


def _iso_z(dt: datetime) -> str:
    return dt.isoformat().replace('+00:00', 'Z')


def compute_etag(versions: Iterable[str], total: int) -> str:
    """Hash of every row's (id, status, updated_at); any status change alters it."""
    seed = f"{list(versions)}|{total}"
    return hashlib.sha256(seed.encode()).hexdigest()[:32]


def row_version(row: dict) -> str:
    updated = row.get('updated_at')
    stamp = _iso_z(canonicalize_timestamp(updated)) if isinstance(updated, datetime) else ''
    return f"{row.get('id')}:{row.get('status')}:{stamp}"


def latest_timestamp(rows: list) -> Optional[datetime]:
    stamps = [r['updated_at'] for r in rows if isinstance(r.get('updated_at'), datetime)]
    return max(stamps) if stamps else None


def build_list_payload(data: list, total: int):
    return {'data': data, 'total': total}


def _http_date(dt: datetime) -> str:
    """Return RFC1123 HTTP-date string in GMT."""
    return format_datetime(dt, usegmt=True)


def _set_cache_headers(resp, etag_value: str, latest_ts: Optional[datetime]):
    resp.headers['ETag'] = etag_value
    if latest_ts:
        latest_c = canonicalize_timestamp(latest_ts)
        resp.headers['Last-Modified'] = _http_date(latest_c)
        resp.headers['X-Last-Modified-ISO'] = _iso_z(latest_c)
    return resp


def make_cached_list_response(rows: list, data: list):
    """`rows` are the in-memory records (for versioning); `data` their serialised form."""
    latest_ts = latest_timestamp(rows)
    etag = compute_etag((row_version(r) for r in rows), len(rows))
    resp = make_response(build_list_payload(data, len(rows)))
    _set_cache_headers(resp, etag, latest_ts)
    return resp, etag, latest_ts


def _parse_if_modified_since(header_val: str) -> Optional[datetime]:
    if not header_val:
        return None
    # Try ISO 8601 first
    try:
        dt = datetime.fromisoformat(header_val.replace('Z', '+00:00'))
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt
    except ValueError:
        pass
    # Try HTTP-date (RFC 1123)
    try:
        dt = parsedate_to_datetime(header_val)
    except (TypeError, ValueError):
        return None
    if dt and dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def handle_conditional(etag_value: str, latest_ts: Optional[datetime]):
    """Evaluate conditional request headers.

    Precedence: If-None-Match over If-Modified-Since (per RFC 9110 semantics).
    Returns a 304 response object if conditions satisfied, else None.
    """
    inm = request.headers.get('If-None-Match')
    if inm:
        if inm.strip().strip('"') == etag_value:
            return _set_cache_headers(make_response('', 304), etag_value, latest_ts)
        return None
    ims_raw = request.headers.get('If-Modified-Since')
    if ims_raw and latest_ts:
        ims_dt = _parse_if_modified_since(ims_raw)
        if ims_dt:
            latest_c = canonicalize_timestamp(latest_ts)
            if latest_c <= canonicalize_timestamp(ims_dt) + TIMESTAMP_TOLERANCE:
                return _set_cache_headers(make_response('', 304), etag_value, latest_ts)
    return None
