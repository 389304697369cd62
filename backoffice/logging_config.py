"""
Logging setup.

Modules log through `logging.getLogger(__name__)` and attach structured
context with `extra={...}`. This formatter appends those extra fields as
key=value pairs so they are visible on the console.
"""

from __future__ import annotations

import logging
import sys

_STANDARD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}


class KeyValueFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        extras = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _STANDARD_ATTRS and not key.startswith("_")
        }
        if not extras:
            return base
        context = " ".join(f"{key}={value}" for key, value in sorted(extras.items()))
        return f"{base} | {context}"


def configure_logging(level: str = "INFO") -> None:
    """Install a single stderr handler on the root logger (idempotent)."""

    root = logging.getLogger()
    root.setLevel(level)
    for handler in root.handlers:
        if getattr(handler, "_backoffice", False):
            return

    handler = logging.StreamHandler(sys.stderr)
    handler._backoffice = True  # type: ignore[attr-defined]
    handler.setFormatter(KeyValueFormatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    root.addHandler(handler)


__all__ = ["KeyValueFormatter", "configure_logging"]
