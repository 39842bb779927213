from __future__ import annotations
import logging

LOG_FORMAT = '%(asctime)s %(levelname)s [%(name)s] %(message)s'


def configure_logging(level: str = 'INFO') -> logging.Logger:
    """Attach one stream handler to the package logger (idempotent across app factories)."""
    logger = logging.getLogger('tailorshop')
    logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    if not any(getattr(h, '_tailorshop', False) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._tailorshop = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
    return logger
