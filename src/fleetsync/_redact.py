"""Helpers for safe debug logging.

Dashboard requests carry bearer tokens, broker credentials and opaque
continuation tokens. This module masks them before DEBUG logs are emitted.
"""

from __future__ import annotations

from typing import Any

_MASK = "<redacted>"

_SENSITIVE_KEYS: frozenset[str] = frozenset(
    {
        "password",
        "token",
        "accesstoken",
        "access_token",
        "authorization",
        "cookie",
        # Continuation cursors are opaque and may embed query state
        "pagetoken",
        "nexttoken",
        "continuationtoken",
        "continuation_token",
    }
)


def redact_for_log(value: Any, *, max_string: int = 512) -> Any:
    """Return a copy of a decoded JSON value with secrets masked.

    Values under sensitive keys are replaced at any depth and strings longer
    than *max_string* are cut.
    """
    if isinstance(value, dict):
        return {
            key: _MASK if str(key).lower() in _SENSITIVE_KEYS else redact_for_log(item, max_string=max_string)
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [redact_for_log(item, max_string=max_string) for item in value]
    if isinstance(value, str) and len(value) > max_string:
        return f"{value[:max_string]}…<truncated>"
    return value
