"""
Process-wide logging setup for Keepli.

One stream handler on the root logger, level from KEEPLI_LOG_LEVEL. The handler
carries a filter that masks bearer tokens and license keys in rendered
messages, so a stray `%s` of a header dict cannot leak credentials.
"""

from __future__ import annotations

import logging
import os
import re
from typing import Final

_HANDLER_ATTACHED: bool = False
_FORMAT: Final[str] = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_SECRET_PATTERNS: Final[list[re.Pattern[str]]] = [
    re.compile(r"(Bearer\s+)[A-Za-z0-9._~+/=-]+", re.IGNORECASE),
    re.compile(r"((?:license_?key|apikey|access_token)[\"']?\s*[:=]\s*[\"']?)[^\s\"',&}]+", re.IGNORECASE),
]


class SecretMaskingFilter(logging.Filter):
    """Rewrite the rendered message with credential values masked."""

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            message = record.getMessage()
        except (TypeError, ValueError):
            return True
        masked = message
        for pattern in _SECRET_PATTERNS:
            masked = pattern.sub(r"\1[redacted]", masked)
        if masked != message:
            record.msg = masked
            record.args = None
        return True


def _resolve_level() -> int:
    level_name = os.getenv("KEEPLI_LOG_LEVEL", "INFO").upper()
    return getattr(logging, level_name, logging.INFO)


def get_logger(name: str) -> logging.Logger:
    """Return a module logger configured with a single masked stream handler."""
    global _HANDLER_ATTACHED

    level = _resolve_level()

    if not _HANDLER_ATTACHED:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        handler.addFilter(SecretMaskingFilter())
        root = logging.getLogger()
        root.addHandler(handler)
        root.setLevel(level)
        _HANDLER_ATTACHED = True
    else:
        logging.getLogger().setLevel(level)

    logger = logging.getLogger(name)
    logger.setLevel(level)
    return logger
