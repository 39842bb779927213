"""Chapa hosted-checkout client.

Only two provider calls are used: ``POST /transaction/initialize`` to obtain a checkout URL and
``GET /transaction/verify/<tx_ref>`` to confirm a transaction before a payment row is written.
"""
from __future__ import annotations
import hashlib
import hmac
import logging
import time
from typing import Any, Dict, Optional, Tuple

import requests
from flask import current_app

logger = logging.getLogger(__name__)

CURRENCY = 'ETB'
NOTES_PREFIX = 'Chapa payment - '


class ChapaError(Exception):
    """Raised when the provider rejects a request or cannot be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None, payload: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload or {}


class ChapaClient:
    def __init__(self, secret_key: str, base_url: str = 'https://api.chapa.co/v1', timeout: int = 30):
        self.secret_key = secret_key
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout

    def _headers(self) -> Dict[str, str]:
        if not self.secret_key:
            raise ChapaError('Payment gateway is not configured')
        return {
            'Authorization': f'Bearer {self.secret_key}',
            'Content-Type': 'application/json',
        }

    def initialize(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Start a transaction; returns the provider ``data`` block (checkout_url, ...)."""
        url = f'{self.base_url}/transaction/initialize'
        try:
            response = requests.post(url, json=payload, headers=self._headers(), timeout=self.timeout)
        except requests.RequestException as e:
            logger.error('Chapa initialize request failed: %s', e)
            raise ChapaError('Payment initialization failed') from e
        body = _json_or_empty(response)
        logger.info('Chapa initialize tx_ref=%s http=%s status=%s', payload.get('tx_ref'), response.status_code, body.get('status'))
        if body.get('status') != 'success':
            message = _provider_message(body) or 'Payment initialization failed'
            raise ChapaError(message, response.status_code, body)
        return body.get('data') or {}

    def verify(self, tx_ref: str) -> Dict[str, Any]:
        """Look a transaction up; returns the full provider envelope."""
        url = f'{self.base_url}/transaction/verify/{tx_ref}'
        headers = self._headers()
        headers.pop('Content-Type', None)
        try:
            response = requests.get(url, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error('Chapa verify request failed for %s: %s', tx_ref, e)
            raise ChapaError('Payment verification failed') from e
        if not response.ok:
            logger.error('Chapa verification failed for %s: %s', tx_ref, response.text)
            raise ChapaError('Payment verification failed', response.status_code, _json_or_empty(response))
        return _json_or_empty(response)


def _json_or_empty(response) -> Dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _provider_message(body: Dict[str, Any]) -> Optional[str]:
    message = body.get('message')
    if isinstance(message, dict):
        # validation errors come back as {field: [messages]}
        parts = []
        for field, errs in message.items():
            errs = errs if isinstance(errs, list) else [errs]
            parts.append(f"{field}: {', '.join(str(e) for e in errs)}")
        return '; '.join(parts)
    return message


def get_client() -> ChapaClient:
    return current_app.extensions['chapa']


def build_tx_ref(order_id: int, now_ms: Optional[int] = None) -> str:
    return f'{order_id}-{now_ms if now_ms is not None else int(time.time() * 1000)}'


def parse_order_id(tx_ref: str) -> Optional[int]:
    """The order id is everything before the last hyphen (the suffix is a timestamp)."""
    head, sep, _ = tx_ref.rpartition('-')
    if not sep or not head:
        return None
    try:
        return int(head)
    except ValueError:
        return None


def split_name(full_name: str) -> Tuple[str, str]:
    parts = full_name.split()
    if not parts:
        return full_name, ''
    return parts[0], parts[1] if len(parts) > 1 else ''


def payment_notes(tx_ref: str) -> str:
    return f'{NOTES_PREFIX}{tx_ref}'


def verify_signature(secret: str, payload: bytes, signature: Optional[str]) -> bool:
    """Compare an HMAC-SHA256 webhook signature in constant time."""
    if not secret or not signature:
        return False
    expected = hmac.new(secret.encode('utf-8'), payload, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature.strip())


__all__ = [
    'ChapaClient', 'ChapaError', 'get_client', 'build_tx_ref', 'parse_order_id', 'split_name',
    'payment_notes', 'verify_signature', 'CURRENCY',
]
