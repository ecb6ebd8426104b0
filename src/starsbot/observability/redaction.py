"""Redaction helpers for safe logging. All user-originated data passes through these.

Chat ids are logged only as short hashes; message bodies, names and usernames
never reach the log stream.
"""

import hashlib
import re
from typing import Any

# Bot tokens show up inside request URLs of transport errors
_BOT_TOKEN_PATTERN = re.compile(r"\d{6,}:[A-Za-z0-9_-]{30,}")
_USERNAME_PATTERN = re.compile(r"(?<![\w@])@[A-Za-z][A-Za-z0-9_]{4,31}")
_EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")

_REDACTED = "[REDACTED]"


def hash_identifier(value: int | str) -> str:
    """Non-reversible short hash of a chat/user id. First 12 chars of sha256."""
    return hashlib.sha256(str(value).encode()).hexdigest()[:12]


def redact_string(value: str) -> str:
    """Redact tokens, e-mail addresses and @usernames from a string."""
    result = _BOT_TOKEN_PATTERN.sub(_REDACTED, value)
    result = _EMAIL_PATTERN.sub(_REDACTED, result)
    result = _USERNAME_PATTERN.sub(_REDACTED, result)
    return result


def redact_value(value: Any) -> str:
    """Redact any value for safe logging. Returns string representation."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return redact_string(value)
    if isinstance(value, dict):
        # structure only
        return f"dict(keys={list(value.keys())})"
    if isinstance(value, (list, tuple, set, frozenset)):
        return f"list(len={len(value)})"
    return f"<{type(value).__name__}>"


def safe_log_context(**kwargs: Any) -> dict[str, str]:
    """Build a context dict safe for logging. All values are redacted."""
    return {k: redact_value(v) for k, v in kwargs.items()}
