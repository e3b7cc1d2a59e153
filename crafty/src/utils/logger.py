"""
Crafty - Logging
=================
Logger factory shared by every Crafty module.

Verbosity follows ``settings.ENV``:
  • ``"dev"``  → DEBUG
  • ``"prod"`` → WARNING

Every handler carries a ``SecretRedactingFilter`` so the Gemini API key
never reaches the output, even when it ends up inside an exception
message from the client library.

Usage:
    from crafty.src.utils.logger import get_logger
    logger = get_logger(__name__)
    logger.info("Loaded %d chunks", n)
"""

import logging
import sys
from typing import Iterable

from crafty.config.settings import settings

_ENV_LEVEL_MAP = {
    "dev": logging.DEBUG,
    "prod": logging.WARNING,
}
_DEFAULT_LEVEL = _ENV_LEVEL_MAP.get(settings.ENV, logging.INFO)

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
REDACTED = "****"


class SecretRedactingFilter(logging.Filter):
    """Replaces each configured secret in the rendered message with ``****``."""

    def __init__(self, secrets: Iterable[str]) -> None:
        super().__init__()
        self._secrets = [s for s in secrets if s]


    def filter(self, record: logging.LogRecord) -> bool:
        if not self._secrets:
            return True

        message = record.getMessage()
        redacted = message
        for secret in self._secrets:
            redacted = redacted.replace(secret, REDACTED)

        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def get_logger(name: str, level: int | None = None) -> logging.Logger:
    """
    Return the logger *name* with Crafty's stdout handler attached.

    Args:
        name:  Usually the caller's ``__name__``.
        level: Overrides the ``ENV``-derived level.
    """
    resolved_level = level if level is not None else _DEFAULT_LEVEL
    logger = logging.getLogger(name)

    if not logger.handlers:
        logger.setLevel(resolved_level)

        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(resolved_level)
        handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
        handler.addFilter(SecretRedactingFilter([settings.GOOGLE_API_KEY.get_secret_value()]))
        logger.addHandler(handler)

        logger.propagate = False

    return logger
