"""
Port interfaces (ABCs) for the delivery bounded context.

Ports define the contracts that the domain requires from the outside world.
Infrastructure adapters implement these interfaces.
The domain layer never depends on concrete implementations.

Every repository call is bounded by a timeout in the adapter; a timeout
or lost connection surfaces as PersistenceUnavailable.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from parcelcarrier.domain.delivery.entities import (
    Package,
    PackageStatus,
    PackageType,
    Role,
    Specialty,
    Transporter,
    TransporterStatus,
    User,
)


@dataclass(frozen=True)
class UserQuery:
    """Filter over users. Unset criteria match everything.

    Results are ordered by creation time, then login.
    """

    role: Optional[Role] = None
    specialty: Optional[Specialty] = None
    status: Optional[TransporterStatus] = None
    active: Optional[bool] = None
    offset: int = 0
    limit: Optional[int] = None

    def matches(self, user: User) -> bool:
        """Return True if the user satisfies every set criterion."""
        if self.role is not None and user.role is not self.role:
            return False
        if self.active is not None and user.active is not self.active:
            return False
        if self.specialty is None and self.status is None:
            return True
        if not isinstance(user, Transporter):
            return False
        if self.specialty is not None and user.specialty is not self.specialty:
            return False
        return self.status is None or user.status is self.status


@dataclass(frozen=True)
class PackageQuery:
    """Filter over packages. Unset criteria match everything.

    ``address_contains`` is a case-insensitive substring match on the
    destination address. Results are ordered oldest first.
    """

    type: Optional[PackageType] = None
    status: Optional[PackageStatus] = None
    transporter_id: Optional[str] = None
    address_contains: Optional[str] = None
    offset: int = 0
    limit: Optional[int] = None

    def matches(self, package: Package) -> bool:
        """Return True if the package satisfies every set criterion."""
        if self.type is not None and package.type is not self.type:
            return False
        if self.status is not None and package.status is not self.status:
            return False
        if (
            self.transporter_id is not None
            and package.transporter_id != self.transporter_id
        ):
            return False
        if self.address_contains:
            needle = self.address_contains.lower()
            return needle in package.destination_address.lower()
        return True


class UserRepository(ABC):
    """Port for persisting and retrieving users."""

    @abstractmethod
    def insert(self, user: User) -> None:
        """Persist a new user.

        Raises:
            ValidationError: If the login is already taken.
        """
        raise NotImplementedError

    @abstractmethod
    def find_by_id(self, user_id: str) -> Optional[User]:
        """Return a user by its ID, or None if not found."""
        raise NotImplementedError

    @abstractmethod
    def find_many(self, query: UserQuery) -> list[User]:
        """Return the users matching the query."""
        raise NotImplementedError

    @abstractmethod
    def find_by_login(self, login: str) -> Optional[User]:
        """Return a user by its login, or None if not found."""
        raise NotImplementedError

    @abstractmethod
    def exists_by_login(self, login: str) -> bool:
        """Return True if a user with this login exists."""
        raise NotImplementedError

    @abstractmethod
    def update(
        self,
        user_id: str,
        changes: Mapping[str, Any],
        expected_status: Optional[TransporterStatus] = None,
    ) -> User:
        """Apply attribute changes to a stored user.

        Args:
            user_id: ID of the user to change.
            changes: Entity attribute names mapped to their new values
                (``active``, ``status``, ``password``, ``updated_at``).
            expected_status: When set, the update only applies if the
                stored transporter status still equals it.

        Returns:
            The user as stored after the update.

        Raises:
            EntityNotFound: If no user has this ID.
            ConcurrencyConflict: If the stored status differs from
                expected_status.
        """
        raise NotImplementedError


class PackageRepository(ABC):
    """Port for persisting and retrieving packages."""

    @abstractmethod
    def insert(self, package: Package) -> None:
        """Persist a new package."""
        raise NotImplementedError

    @abstractmethod
    def find_by_id(self, package_id: str) -> Optional[Package]:
        """Return a package by its ID, or None if not found."""
        raise NotImplementedError

    @abstractmethod
    def find_many(self, query: PackageQuery) -> list[Package]:
        """Return the packages matching the query."""
        raise NotImplementedError

    @abstractmethod
    def count(self, query: PackageQuery) -> int:
        """Return how many packages match the query, ignoring paging."""
        raise NotImplementedError

    @abstractmethod
    def update(
        self,
        package_id: str,
        changes: Mapping[str, Any],
        expected_status: Optional[PackageStatus] = None,
    ) -> Package:
        """Apply attribute changes to a stored package.

        Args:
            package_id: ID of the package to change.
            changes: Entity attribute names mapped to their new values
                (``status``, ``transporter_id``, ``weight``,
                ``destination_address``, ``cargo``, ``updated_at``).
            expected_status: When set, the update only applies if the
                stored status still equals it.

        Returns:
            The package as stored after the update.

        Raises:
            EntityNotFound: If no package has this ID.
            ConcurrencyConflict: If the stored status differs from
                expected_status.
        """
        raise NotImplementedError


class PasswordHasher(ABC):
    """Port for hashing and checking user passwords."""

    @abstractmethod
    def hash(self, raw_password: str) -> str:
        """Return an opaque hash of the password."""
        raise NotImplementedError

    @abstractmethod
    def verify(self, raw_password: str, hashed: str) -> bool:
        """Return True if the password matches the hash."""
        raise NotImplementedError
