"""
Adapter: In-process user and package repositories.

Implements UserRepository and PackageRepository ports over dictionaries
guarded by one re-entrant lock, so every read-modify-write (including the
conditional update used to claim a transporter) is atomic. Lock waits
are bounded by a timeout and surface as PersistenceUnavailable.

Used when no database URL is configured, and in tests.
"""

import logging
import threading
from contextlib import contextmanager
from dataclasses import replace
from typing import Any, Iterator, Mapping, Optional

from parcelcarrier.domain.delivery.entities import (
    Package,
    PackageStatus,
    Transporter,
    TransporterStatus,
    User,
)
from parcelcarrier.domain.delivery.errors import (
    ConcurrencyConflict,
    EntityNotFound,
    PersistenceUnavailable,
)
from parcelcarrier.domain.delivery.ports import (
    PackageQuery,
    PackageRepository,
    UserQuery,
    UserRepository,
)
from parcelcarrier.domain.delivery.validation import duplicate_login_error

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 5.0


def _page(items: list, offset: int, limit: Optional[int]) -> list:
    end = None if limit is None else offset + limit
    return items[offset:end]


class InMemoryStore:
    """Shared state behind the in-memory repositories.

    Holds the ``users`` and ``packages`` collections and the lock that
    serialises access to both.
    """

    def __init__(self, timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS) -> None:
        self.users: dict[str, User] = {}
        self.packages: dict[str, Package] = {}
        self._lock = threading.RLock()
        self._timeout = timeout_seconds

    @contextmanager
    def locked(self, operation: str) -> Iterator[None]:
        """Hold the store lock for the duration of an operation."""
        if not self._lock.acquire(timeout=self._timeout):
            logger.error("Timed out waiting for store lock: %s", operation)
            raise PersistenceUnavailable(
                operation, f"lock not acquired within {self._timeout}s"
            )
        try:
            yield
        finally:
            self._lock.release()


class InMemoryUserRepository(UserRepository):
    """In-process implementation of the user repository."""

    def __init__(self, store: InMemoryStore) -> None:
        self._store = store

    def insert(self, user: User) -> None:
        with self._store.locked("users.insert"):
            if any(u.login == user.login for u in self._store.users.values()):
                raise duplicate_login_error(user.login)
            self._store.users[user.id] = user
        logger.debug("Inserted user id=%s role=%s", user.id, user.role.value)

    def find_by_id(self, user_id: str) -> Optional[User]:
        with self._store.locked("users.find_by_id"):
            return self._store.users.get(user_id)

    def find_many(self, query: UserQuery) -> list[User]:
        with self._store.locked("users.find_many"):
            users = [u for u in self._store.users.values() if query.matches(u)]
        users.sort(key=lambda u: (u.created_at, u.login))
        return _page(users, query.offset, query.limit)

    def find_by_login(self, login: str) -> Optional[User]:
        with self._store.locked("users.find_by_login"):
            return next(
                (u for u in self._store.users.values() if u.login == login), None
            )

    def exists_by_login(self, login: str) -> bool:
        with self._store.locked("users.exists_by_login"):
            return any(u.login == login for u in self._store.users.values())

    def update(
        self,
        user_id: str,
        changes: Mapping[str, Any],
        expected_status: Optional[TransporterStatus] = None,
    ) -> User:
        with self._store.locked("users.update"):
            current = self._store.users.get(user_id)
            if current is None:
                raise EntityNotFound("user", user_id)
            login = changes.get("login")
            if login is not None and any(
                u.login == login and u.id != user_id
                for u in self._store.users.values()
            ):
                raise duplicate_login_error(login)
            if expected_status is not None:
                actual = getattr(current, "status", None)
                if not isinstance(current, Transporter) or actual is not expected_status:
                    raise ConcurrencyConflict("user", user_id, expected_status, actual)
            updated = replace(current, **changes)
            self._store.users[user_id] = updated
            return updated


class InMemoryPackageRepository(PackageRepository):
    """In-process implementation of the package repository."""

    def __init__(self, store: InMemoryStore) -> None:
        self._store = store

    def insert(self, package: Package) -> None:
        with self._store.locked("packages.insert"):
            self._store.packages[package.id] = package
        logger.debug("Inserted package id=%s type=%s", package.id, package.type.value)

    def find_by_id(self, package_id: str) -> Optional[Package]:
        with self._store.locked("packages.find_by_id"):
            return self._store.packages.get(package_id)

    def _matching(self, query: PackageQuery) -> list[Package]:
        with self._store.locked("packages.find_many"):
            packages = [p for p in self._store.packages.values() if query.matches(p)]
        # Stable sort: equal timestamps keep insertion order.
        packages.sort(key=lambda p: p.created_at)
        return packages

    def find_many(self, query: PackageQuery) -> list[Package]:
        return _page(self._matching(query), query.offset, query.limit)

    def count(self, query: PackageQuery) -> int:
        return len(self._matching(query))

    def update(
        self,
        package_id: str,
        changes: Mapping[str, Any],
        expected_status: Optional[PackageStatus] = None,
    ) -> Package:
        with self._store.locked("packages.update"):
            current = self._store.packages.get(package_id)
            if current is None:
                raise EntityNotFound("package", package_id)
            if expected_status is not None and current.status is not expected_status:
                raise ConcurrencyConflict(
                    "package", package_id, expected_status, current.status
                )
            updated = replace(current, **changes)
            self._store.packages[package_id] = updated
            return updated
