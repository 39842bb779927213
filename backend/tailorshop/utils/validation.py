from __future__ import annotations
"""Reusable request validation helpers.

Every helper aborts with a 400 carrying a short, field-prefixed message so handlers can stay
linear: ``name = require_text(data, 'customer_name', 2, 100)``.
"""
import re
from datetime import date
from typing import Any, Dict, Iterable, Optional
from flask import abort

EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
ADDRESS_FIELDS = ('city', 'street', 'house_number')


def validate_status(new_status: str, allowed: Iterable[str], field_name: str = 'status') -> str:
    """Validate that new_status is inside allowed.

    Returns the status (to enable inline usage) or aborts with 400.
    """
    if new_status not in allowed:
        abort(400, description=f"{field_name} invalid")
    return new_status


def require_text(data: Dict[str, Any], field: str, min_len: int = 1, max_len: Optional[int] = None) -> str:
    value = data.get(field)
    if not isinstance(value, str) or len(value.strip()) < min_len:
        if min_len > 1:
            abort(400, description=f'{field} must be at least {min_len} characters')
        abort(400, description=f'{field} required')
    value = value.strip()
    if max_len is not None and len(value) > max_len:
        abort(400, description=f'{field} must be at most {max_len} characters')
    return value


def optional_text(data: Dict[str, Any], field: str, max_len: Optional[int] = None) -> Optional[str]:
    value = data.get(field)
    if value is None:
        return None
    if not isinstance(value, str):
        abort(400, description=f'{field} must be a string')
    value = value.strip()
    if not value:
        return None
    if max_len is not None and len(value) > max_len:
        abort(400, description=f'{field} must be at most {max_len} characters')
    return value


def require_email(data: Dict[str, Any], field: str = 'email', max_len: int = 255) -> str:
    value = require_text(data, field, 1, max_len)
    if not EMAIL_RE.match(value):
        abort(400, description=f'{field} invalid')
    return value.lower()


def parse_cents(value: Any, field: str, *, minimum: int = 0) -> int:
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool):
        abort(400, description=f'{field} must be int')
    try:
        cents = int(value)
    except (TypeError, ValueError):
        abort(400, description=f'{field} must be int')
    if isinstance(value, float) and value != cents:
        abort(400, description=f'{field} must be int')
    if cents < minimum:
        if minimum == 1:
            abort(400, description=f'{field} must be greater than 0')
        abort(400, description=f'{field} must be at least {minimum}')
    return cents


def parse_date(value: Any, field: str) -> Optional[date]:
    if value in (None, ''):
        return None
    if not isinstance(value, str):
        abort(400, description=f'{field} must be an ISO date')
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        abort(400, description=f'{field} must be an ISO date')


def parse_bool(value: Any, field: str, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ('true', '1', 'yes'):
        return True
    if isinstance(value, str) and value.lower() in ('false', '0', 'no'):
        return False
    abort(400, description=f'{field} must be boolean')


def parse_address(value: Any) -> Dict[str, str]:
    """Delivery address: city, street and house number are all mandatory."""
    if not isinstance(value, dict):
        abort(400, description='Please fill in all delivery address fields')
    out = {}
    for key in ADDRESS_FIELDS:
        raw = value.get(key)
        if not isinstance(raw, str) or not raw.strip():
            abort(400, description='Please fill in all delivery address fields')
        out[key] = raw.strip()
    return out


__all__ = [
    'validate_status', 'require_text', 'optional_text', 'require_email', 'parse_cents',
    'parse_date', 'parse_bool', 'parse_address',
]
