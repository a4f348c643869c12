"""
Security helpers shared by the webhook and sync layers.

Payloads from payment gateways and POS systems are persisted and logged;
everything goes through ``sanitize_log_data`` first.
"""

import re
from typing import Any, Dict, List, Tuple

REDACTED = "[REDACTED]"

SENSITIVE_FIELDS = (
    "password",
    "token",
    "secret",
    "api_key",
    "credit_card",
    "card_number",
    "cvv",
    "pin",
    "signature",
)

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")
_SEGMENT_SPLIT = re.compile(r"[_\-.\s]+")

_SENSITIVE_SEGMENTS: List[Tuple[str, ...]] = [
    tuple(field.split("_")) for field in SENSITIVE_FIELDS
]


def _key_segments(key: str) -> List[str]:
    # cardNumber -> card_Number -> ["card", "number"]
    spaced = _CAMEL_BOUNDARY.sub("_", key)
    return [part for part in _SEGMENT_SPLIT.split(spaced.lower()) if part]


def is_sensitive_key(key: Any) -> bool:
    """
    True when the key names a credential or card field.

    Matching is on whole name segments, so ``access_token`` and ``cardNumber``
    are sensitive while ``shipping`` (which merely contains ``pin``) is not.
    """
    if not isinstance(key, str):
        return False
    segments = _key_segments(key)
    for sensitive in _SENSITIVE_SEGMENTS:
        width = len(sensitive)
        for start in range(len(segments) - width + 1):
            if tuple(segments[start:start + width]) == sensitive:
                return True
    return False


def sanitize_log_data(data: Any) -> Any:
    """
    Sanitize sensitive data before logging or persisting.

    Args:
        data: Dictionary (or list) containing log data

    Returns:
        Copy with sensitive values replaced by ``[REDACTED]`` at any depth
    """
    if isinstance(data, dict):
        sanitized: Dict[Any, Any] = {}
        for key, value in data.items():
            if is_sensitive_key(key):
                sanitized[key] = REDACTED
            else:
                sanitized[key] = sanitize_log_data(value)
        return sanitized
    if isinstance(data, (list, tuple)):
        return [sanitize_log_data(item) for item in data]
    return data
