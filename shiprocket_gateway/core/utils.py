"""
Core Utilities

Shared helpers used across the gateway.
"""
import json
import re
from datetime import datetime, timezone
from typing import Any

# Patterns to redact before anything reaches the logs
_REDACTIONS = [
    (re.compile(r'\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b'), '[EMAIL]'),
    (re.compile(r'\+?\b91[-.\s]?\d{10}\b'), '[PHONE]'),
    (re.compile(r'\b\d{10}\b'), '[PHONE]'),
    (re.compile(r'\b\d{6}\b'), '[PINCODE]'),
]


def utcnow() -> datetime:
    """
    Return timezone-aware UTC datetime.

    Use this instead of datetime.utcnow() which returns naive datetime.
    """
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes read back from the database as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def sanitize_for_logging(value: Any, max_length: int = 500) -> str:
    """
    Remove PII from a payload or message for safe logging.

    Dicts and lists are serialized first so nested customer fields are
    redacted too.
    """
    if value is None:
        return ""

    if isinstance(value, (dict, list)):
        text = json.dumps(value, default=str)
    else:
        text = str(value)

    sanitized = text[:max_length]
    for pattern, replacement in _REDACTIONS:
        sanitized = pattern.sub(replacement, sanitized)
    return sanitized
