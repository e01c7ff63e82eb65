"""
Database engine construction and error translation.

Every engine carries a timeout on connection checkout and, where the
driver supports it, on connect and statement execution. Driver errors
that mean "the store is unreachable or too slow" are translated into
the domain's retryable PersistenceUnavailable.
"""

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.pool import StaticPool

from parcelcarrier.domain.delivery.errors import PersistenceUnavailable

logger = logging.getLogger(__name__)


def build_engine(database_url: str, timeout_seconds: float) -> Engine:
    """Build a SQLAlchemy engine with bounded waits.

    Args:
        database_url: Any SQLAlchemy URL (postgresql+psycopg2://..., sqlite:///...).
            In-memory SQLite (``sqlite://``) shares one connection and is
            only safe from a single thread.
        timeout_seconds: Upper bound for connecting, checking out a pooled
            connection and running a statement.

    Returns:
        A configured engine.
    """
    url = make_url(database_url)
    kwargs: dict[str, Any] = {}

    if url.get_backend_name() == "sqlite":
        kwargs["connect_args"] = {
            "timeout": timeout_seconds,
            "check_same_thread": False,
        }
        if url.database in (None, "", ":memory:"):
            # One shared connection, or each checkout would see an empty database.
            # Transactions from concurrent threads interleave on it, so an
            # in-memory database is for single-threaded use; threaded callers
            # need a file URL.
            kwargs["poolclass"] = StaticPool
        else:
            kwargs["pool_timeout"] = timeout_seconds
    else:
        kwargs["pool_pre_ping"] = True
        kwargs["pool_timeout"] = timeout_seconds
        if url.get_backend_name() == "postgresql":
            kwargs["connect_args"] = {
                "connect_timeout": max(1, int(timeout_seconds)),
                "options": f"-c statement_timeout={int(timeout_seconds * 1000)}",
            }

    return create_engine(url, **kwargs)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes read back from backends without time zones."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


@contextmanager
def translate_errors(operation: str) -> Iterator[None]:
    """Translate connectivity and timeout errors into PersistenceUnavailable.

    Other database errors propagate unchanged.
    """
    try:
        yield
    except PoolTimeoutError as exc:
        logger.error("Connection pool timeout during %s", operation)
        raise PersistenceUnavailable(operation, "connection pool timeout") from exc
    except (OperationalError, InterfaceError) as exc:
        logger.error("Database unavailable during %s: %s", operation, exc.orig)
        raise PersistenceUnavailable(operation, str(exc.orig)) from exc
    except DBAPIError as exc:
        if not exc.connection_invalidated:
            raise
        logger.error("Database connection lost during %s", operation)
        raise PersistenceUnavailable(operation, "connection lost") from exc
