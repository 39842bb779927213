"""Environment-driven configuration.

Values are read once at import time (after loading a local ``.env``) and copied into
``app.config`` by :func:`tailorshop.create_app`; callers may override any key through the
``config`` argument of the factory.
"""
from __future__ import annotations
import os
from typing import Dict, Any
from dotenv import load_dotenv

load_dotenv()

DEFAULT_CHAPA_BASE_URL = 'https://api.chapa.co/v1'
# Flat fee added to staff-created orders that need delivery (50 ETB)
DEFAULT_DELIVERY_FEE_CENTS = 5000


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == '':
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f'{name} must be an integer, got {raw!r}')


def load_config() -> Dict[str, Any]:
    return {
        'DATABASE_URL': os.getenv('DATABASE_URL', 'sqlite:///dev.db'),
        'JWT_SECRET_KEY': os.getenv('JWT_SECRET_KEY', 'dev-secret'),
        'JWT_ACCESS_TOKEN_EXPIRES_MINUTES': _int_env('JWT_ACCESS_TOKEN_EXPIRES_MINUTES', 60 * 12),
        'CHAPA_SECRET_KEY': os.getenv('CHAPA_SECRET_KEY', ''),
        'CHAPA_BASE_URL': os.getenv('CHAPA_BASE_URL', DEFAULT_CHAPA_BASE_URL).rstrip('/'),
        'CHAPA_WEBHOOK_SECRET': os.getenv('CHAPA_WEBHOOK_SECRET', ''),
        'CHAPA_TIMEOUT_SECONDS': _int_env('CHAPA_TIMEOUT_SECONDS', 30),
        'PUBLIC_BASE_URL': os.getenv('PUBLIC_BASE_URL', 'http://localhost:5000').rstrip('/'),
        'FRONTEND_BASE_URL': os.getenv('FRONTEND_BASE_URL', 'http://localhost:5173').rstrip('/'),
        'DELIVERY_FEE_CENTS': _int_env('DELIVERY_FEE_CENTS', DEFAULT_DELIVERY_FEE_CENTS),
        'LOG_LEVEL': os.getenv('LOG_LEVEL', 'INFO'),
        'SEED_ADMIN_EMAIL': os.getenv('SEED_ADMIN_EMAIL', 'admin@example.com'),
        'SEED_ADMIN_PASSWORD': os.getenv('SEED_ADMIN_PASSWORD', 'ChangeMe123!'),
    }


# Pagination bounds shared by every list endpoint
DEFAULT_LIMIT = 50
MAX_LIMIT = 200


def normalize_pagination(limit_raw, offset_raw):
    try:
        limit = int(limit_raw) if limit_raw is not None else DEFAULT_LIMIT
        offset = int(offset_raw) if offset_raw is not None else 0
    except ValueError:
        raise ValueError('limit/offset must be int')
    limit = max(1, min(limit, MAX_LIMIT))
    offset = max(0, offset)
    return limit, offset


__all__ = ['load_config', 'normalize_pagination', 'DEFAULT_LIMIT', 'MAX_LIMIT']
