"""
Security Logging Utilities for AuthCore
Prevents log injection attacks (CWE-117) when logging request-derived values.

SECURITY FEATURES:
- Input sanitization to prevent log injection
- Length limiting
- Path-safe variant for request lines
"""

import re
from typing import Any, Optional

# Patterns for detecting potentially malicious content
LOG_INJECTION_PATTERNS = [
    r"[\r\n]",  # CRLF injection
    r"%0[ad]",  # URL-encoded CRLF
    r"\\[rn]",  # Escaped newlines
    r"\x00",  # Null bytes
    r"[\x01-\x08\x0b\x0c\x0e-\x1f\x7f]",  # Control characters
]

# Pattern for safe characters in logs
SAFE_LOG_PATTERN = re.compile(r"^[a-zA-Z0-9._@\-\s]+$")


def sanitize_for_log(value: Optional[Any], max_length: int = 100, allow_special: bool = False) -> str:
    """
    Sanitize any value for safe logging.

    Args:
        value: Value to sanitize
        max_length: Maximum length of output
        allow_special: Whether to allow some special characters

    Returns:
        str: Sanitized string safe for logging
    """
    if value is None:
        return "null"

    str_value = str(value)

    if len(str_value) > max_length:
        str_value = str_value[:max_length] + "..."

    for pattern in LOG_INJECTION_PATTERNS:
        str_value = re.sub(pattern, "", str_value, flags=re.IGNORECASE)

    if not allow_special and not SAFE_LOG_PATTERN.match(str_value):
        # Keep only alphanumeric, dots, underscores, @, hyphens, spaces
        str_value = re.sub(r"[^a-zA-Z0-9._@\-\s]", "", str_value)

    if not str_value.strip():
        return "[sanitized]"

    return str_value.strip()


def sanitize_path_for_log(path: Optional[str], max_length: int = 200) -> str:
    """Sanitize a request path, keeping the characters URL paths legitimately use"""
    return sanitize_for_log(path, max_length=max_length, allow_special=True)
