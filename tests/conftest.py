"""
Shared fixtures for the delivery tests.

Use cases run against the in-process store; a reversible fake hasher
keeps them fast. The passlib hasher has its own tests.
"""

import pytest

from parcelcarrier.application.delivery.coordination import AssignmentCoordinator
from parcelcarrier.domain.delivery.ports import PasswordHasher
from parcelcarrier.infrastructure.delivery.memory_repository import (
    InMemoryPackageRepository,
    InMemoryStore,
    InMemoryUserRepository,
)


class FakeHasher(PasswordHasher):
    """Prefix-based stand-in for the passlib hasher."""

    def hash(self, raw_password: str) -> str:
        return f"hashed:{raw_password}"

    def verify(self, raw_password: str, hashed: str) -> bool:
        return hashed == f"hashed:{raw_password}"


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore(timeout_seconds=1.0)


@pytest.fixture
def user_repo(store: InMemoryStore) -> InMemoryUserRepository:
    return InMemoryUserRepository(store)


@pytest.fixture
def package_repo(store: InMemoryStore) -> InMemoryPackageRepository:
    return InMemoryPackageRepository(store)


@pytest.fixture
def hasher() -> FakeHasher:
    return FakeHasher()


@pytest.fixture
def coordinator(
    user_repo: InMemoryUserRepository, package_repo: InMemoryPackageRepository
) -> AssignmentCoordinator:
    return AssignmentCoordinator(user_repo, package_repo, max_attempts=3)
