"""
Logging configuration for the application.

Sets up structured logging with a consistent format. The thread name is
part of every line, since assignments race across worker threads.
Logging must not change program behavior.
Never logs sensitive data (passwords, password hashes, secrets); any
passlib hash that reaches a record anyway is masked by the root handlers.
"""

import logging
import re
import sys

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(threadName)s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
REDACTED = "[REDACTED]"

_PASSWORD_HASH = re.compile(r"\$pbkdf2-sha256\$\d+\$[./A-Za-z0-9]+\$[./A-Za-z0-9]+")


class RedactPasswordHashes(logging.Filter):
    """Replaces passlib hashes in the rendered message."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        if _PASSWORD_HASH.search(message):
            record.msg = _PASSWORD_HASH.sub(REDACTED, message)
            record.args = None
        return True


def configure_logging(level: str = "INFO") -> None:
    """Configure structured logging for the application.

    Args:
        level: The log level string (DEBUG, INFO, WARNING, ERROR).
            Unknown names fall back to INFO.
    """
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
        stream=sys.stdout,
        force=True,
    )
    for handler in logging.getLogger().handlers:
        handler.addFilter(RedactPasswordHashes())

    # SQL echo would print bound parameters, hashes included.
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.pool").setLevel(logging.WARNING)
    logging.getLogger("passlib").setLevel(logging.WARNING)
