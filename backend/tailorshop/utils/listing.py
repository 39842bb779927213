from __future__ import annotations
"""List endpoint plumbing: search, multi-field sort, offset pagination and cache validators.

A list handler builds its base query, then calls :func:`list_response` which applies
``limit``/``offset`` from the query string, serializes the page and answers conditional
requests (``If-None-Match`` / ``If-Modified-Since``) with 304.
"""
from typing import Callable, Dict, Any, Iterable, Optional, Sequence
from flask import request, abort, make_response
from sqlalchemy import or_, func
from tailorshop.config import normalize_pagination
import hashlib
import json
from datetime import datetime, timezone, timedelta
from email.utils import parsedate_to_datetime, format_datetime

TIMESTAMP_TOLERANCE = timedelta(seconds=1)


def canonicalize_timestamp(dt: datetime) -> datetime:
    """Return UTC tz-aware timestamp truncated to whole seconds."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).replace(microsecond=0)


def apply_search(query, term: Optional[str], columns: Sequence):
    """Case-insensitive substring match of ``term`` against any of ``columns``."""
    if not term or not term.strip():
        return query
    pattern = f'%{term.strip().lower()}%'
    return query.filter(or_(*[func.lower(c).like(pattern) for c in columns]))


def apply_multi_sort(query, sort_expr: Optional[str], allowed: dict, default_order: Iterable):
    """Apply ``sort=-created_at,customer_name`` style ordering.

    Unknown fields abort 400. Without an expression ``default_order`` is used.
    """
    if not sort_expr:
        return query.order_by(*default_order)
    clauses = []
    for raw in sort_expr.split(','):
        token = raw.strip()
        if not token:
            continue
        desc = token.startswith('-')
        key = token[1:] if desc else token
        col = allowed.get(key)
        if col is None:
            abort(400, description=f'Invalid sort field {key}')
        clauses.append(col.desc() if desc else col.asc())
    clauses.extend(default_order)
    return query.order_by(*clauses)


def compute_etag(ids: Iterable[Any], total: int, limit: int, offset: int, seed_extra: Optional[str] = '') -> str:
    seed = f"{list(ids)}|{total}|{limit}|{offset}|{seed_extra or ''}"
    return hashlib.sha256(seed.encode()).hexdigest()[:32]


def _http_date(dt: datetime) -> str:
    return format_datetime(dt, usegmt=True)


def _iso(dt: datetime) -> str:
    return dt.isoformat().replace('+00:00', 'Z')


def build_list_payload(rows: list, total: int, limit: int, offset: int, extra: Optional[Dict[str, Any]] = None):
    payload = {
        'data': rows,
        'pagination': {
            'total': total,
            'limit': limit,
            'offset': offset,
            'returned': len(rows)
        }
    }
    if extra:
        payload.update(extra)
    return payload


def _parse_if_modified_since(header_val: str) -> Optional[datetime]:
    if not header_val:
        return None
    try:
        dt = datetime.fromisoformat(header_val.replace('Z', '+00:00'))
    except ValueError:
        try:
            dt = parsedate_to_datetime(header_val)
        except (TypeError, ValueError):
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _not_modified(etag_value: str, latest_ts: Optional[datetime]):
    """Return a 304 response if the client's validators still match, else None.

    If-None-Match takes precedence over If-Modified-Since.
    """
    inm = request.headers.get('If-None-Match')
    latest_c = canonicalize_timestamp(latest_ts) if latest_ts else None
    matched = False
    if inm:
        matched = inm.strip('"') == etag_value
    elif latest_c:
        ims = _parse_if_modified_since(request.headers.get('If-Modified-Since', ''))
        matched = bool(ims and latest_c <= canonicalize_timestamp(ims) + TIMESTAMP_TOLERANCE)
    if not matched:
        return None
    resp = make_response('', 304)
    resp.headers['ETag'] = etag_value
    if latest_c:
        resp.headers['Last-Modified'] = _http_date(latest_c)
    return resp


def list_response(query, serializer: Callable[[Any], Dict[str, Any]], extra: Optional[Dict[str, Any]] = None,
                  timestamp_attr: str = 'updated_at'):
    """Paginate ``query`` and build the standard list response with ETag / Last-Modified."""
    try:
        limit, offset = normalize_pagination(request.args.get('limit'), request.args.get('offset'))
    except ValueError as e:
        abort(400, description=str(e))
    total = query.order_by(None).count()
    rows = query.offset(offset).limit(limit).all()
    data = [serializer(r) for r in rows]
    stamps = [getattr(r, timestamp_attr, None) for r in rows]
    stamps = [s for s in stamps if isinstance(s, datetime)]
    latest_ts = max((canonicalize_timestamp(s) for s in stamps), default=None)
    # Content digest changes the tag even when edits land within the same second
    digest = hashlib.sha256(json.dumps([data, extra], sort_keys=True, default=str).encode()).hexdigest()
    etag = compute_etag([d.get('id') for d in data], total, limit, offset,
                        f"{_iso(latest_ts) if latest_ts else ''}|{digest}")
    cached = _not_modified(etag, latest_ts)
    if cached is not None:
        return cached
    resp = make_response(build_list_payload(data, total, limit, offset, extra))
    resp.headers['ETag'] = etag
    if latest_ts:
        resp.headers['Last-Modified'] = _http_date(latest_ts)
    return resp


__all__ = ['apply_search', 'apply_multi_sort', 'list_response', 'compute_etag', 'canonicalize_timestamp', 'build_list_payload']
