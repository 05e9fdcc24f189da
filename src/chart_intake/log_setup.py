"""Logging setup for chart-intake.

Log messages pass through a redacting filter before any handler sees them:
- bearer/basic authorization values
- key=value pairs whose key names a secret (client_secret, token, ...)
"""

from __future__ import annotations

import logging
import re

from rich.console import Console
from rich.logging import RichHandler

# Fields that should be redacted in logs
REDACT_FIELDS = frozenset(
    {
        "password",
        "secret",
        "token",
        "api_key",
        "authorization",
        "access_token",
        "client_secret",
    }
)

_AUTH_HEADER = re.compile(r"\b(Bearer|Basic)\s+[A-Za-z0-9._~+/=-]+", re.IGNORECASE)
_SECRET_PAIR = re.compile(
    # Authorization scheme values are left to _AUTH_HEADER
    r"\b(" + "|".join(sorted(REDACT_FIELDS, key=len, reverse=True)) + r")(['\"]?\s*[=:]\s*['\"]?)"
    r"(?!(?:Bearer|Basic)\s)([^\s'\",&]+)",
    re.IGNORECASE,
)


def redact_value(value: str, visible_chars: int = 4) -> str:
    """Redact a sensitive value, showing only first few characters.

    Args:
        value: Value to redact
        visible_chars: Number of characters to show

    Returns:
        Redacted string (e.g., "sk-a***")
    """
    if len(value) <= visible_chars:
        return "***"
    return f"{value[:visible_chars]}***"


def redact_secrets(message: str) -> str:
    """Mask authorization values and secret key=value pairs in a message."""
    message = _AUTH_HEADER.sub(lambda m: f"{m.group(1)} {redact_value(m.group(0).split()[-1])}", message)
    return _SECRET_PAIR.sub(lambda m: f"{m.group(1)}{m.group(2)}{redact_value(m.group(3))}", message)


class RedactingFilter(logging.Filter):
    """Rewrites each record's message with secrets masked."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = redact_secrets(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def configure_rich_logging(
    level: int = logging.WARNING,
    format_string: str = "%(message)s",
    show_time: bool = True,
    show_path: bool = False,
    console: Console | None = None,
) -> Console:
    """Route root logging through a redacting RichHandler.

    Args:
        level: Root logging level
        format_string: Message format for the handler
        show_time: Show timestamps column
        show_path: Show source path column
        console: Console to log to; a stderr console is created if omitted

    Returns:
        The console used by the handler
    """
    console = console or Console(stderr=True)

    handler = RichHandler(
        console=console,
        show_time=show_time,
        show_path=show_path,
        rich_tracebacks=True,
        markup=False,
    )
    handler.setFormatter(logging.Formatter(format_string))
    handler.addFilter(RedactingFilter())

    root = logging.getLogger()
    for existing in list(root.handlers):
        if isinstance(existing, RichHandler):
            root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)

    return console
