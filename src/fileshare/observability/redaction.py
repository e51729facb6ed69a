"""Secret and link-token redaction shared by log events and audit details.

Credentials are replaced outright. Link tokens keep an 8-char prefix so
an operator can correlate a log line or audit entry with a share without
the log being enough to redeem it.
"""

from __future__ import annotations

from typing import Any, Mapping

TOKEN_PREFIX_LENGTH = 8
REDACTED = "[REDACTED]"

SENSITIVE_KEYS = frozenset({
    "authorization",
    "apikey",
    "api_key",
    "service_role_key",
    "supabase_service_role_key",
    "jwt_secret",
    "bearer_token",
    "token",
    "secret",
    "password",
})

LINK_TOKEN_KEYS = frozenset({"link_token", "share_link"})


def redact_token(token: str | None) -> str:
    """``<prefix>...`` for a link token, ``<redacted>`` if missing or short."""
    if not token or len(token) < TOKEN_PREFIX_LENGTH:
        return "<redacted>"
    return f"{token[:TOKEN_PREFIX_LENGTH]}..."


def redact_mapping(payload: Mapping[str, Any]) -> dict[str, Any]:
    """Copy of ``payload`` with sensitive keys redacted, recursively."""
    sanitized: dict[str, Any] = {}
    for key, value in payload.items():
        lowered = key.lower() if isinstance(key, str) else key
        if lowered in SENSITIVE_KEYS:
            sanitized[key] = REDACTED
        elif lowered in LINK_TOKEN_KEYS:
            sanitized[key] = redact_token(value if isinstance(value, str) else None)
        elif isinstance(value, Mapping):
            sanitized[key] = redact_mapping(value)
        elif isinstance(value, list):
            sanitized[key] = [
                redact_mapping(v) if isinstance(v, Mapping) else v for v in value
            ]
        else:
            sanitized[key] = value
    return sanitized
