"""
Dependency injection for the delivery bounded context.

Provides factory functions that wire infrastructure adapters into use
cases via constructor injection. This is the composition root: whatever
surface sits in front of the core (a CLI, an HTTP layer) builds its use
cases here.

With ``database_url`` unset everything runs on the in-process store.
"""

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from parcelcarrier.application.delivery.assign_package_to_transporter import (
    AssignPackageToTransporterUseCase,
)
from parcelcarrier.application.delivery.assign_pending_package import (
    AssignPendingPackageUseCase,
)
from parcelcarrier.application.delivery.bootstrap_admin import BootstrapAdminUseCase
from parcelcarrier.application.delivery.cancel_package import CancelPackageUseCase
from parcelcarrier.application.delivery.coordination import AssignmentCoordinator
from parcelcarrier.application.delivery.create_package import CreatePackageUseCase
from parcelcarrier.application.delivery.create_user import CreateUserUseCase
from parcelcarrier.application.delivery.dispatch_pending_packages import (
    DispatchPendingPackagesUseCase,
)
from parcelcarrier.application.delivery.list_packages import ListPackagesUseCase
from parcelcarrier.application.delivery.list_transporters import (
    ListTransportersUseCase,
)
from parcelcarrier.application.delivery.mark_delivered import MarkDeliveredUseCase
from parcelcarrier.application.delivery.set_user_active import SetUserActiveUseCase
from parcelcarrier.application.delivery.update_package import UpdatePackageUseCase
from parcelcarrier.application.delivery.update_transporter import (
    UpdateTransporterUseCase,
)
from parcelcarrier.core.config import Settings, settings
from parcelcarrier.domain.delivery.matcher import AssignmentMatcher
from parcelcarrier.domain.delivery.ports import (
    PackageRepository,
    PasswordHasher,
    UserRepository,
)
from parcelcarrier.infrastructure.delivery.database import build_engine
from parcelcarrier.infrastructure.delivery.memory_repository import (
    InMemoryPackageRepository,
    InMemoryStore,
    InMemoryUserRepository,
)
from parcelcarrier.infrastructure.delivery.package_repository import (
    SqlPackageRepository,
)
from parcelcarrier.infrastructure.delivery.password_hasher import (
    PasslibPasswordHasher,
)
from parcelcarrier.infrastructure.delivery.schema import create_schema
from parcelcarrier.infrastructure.delivery.user_repository import SqlUserRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Container:
    """The adapters shared by every use case of one process."""

    settings: Settings
    user_repo: UserRepository
    package_repo: PackageRepository
    hasher: PasswordHasher
    coordinator: AssignmentCoordinator


def build_container(config: Optional[Settings] = None) -> Container:
    """Build adapters from settings.

    A configured database gets its schema created if missing.
    """
    config = config or settings
    if config.database_url:
        engine = build_engine(config.database_url, config.persistence_timeout_seconds)
        create_schema(engine)
        user_repo: UserRepository = SqlUserRepository(engine)
        package_repo: PackageRepository = SqlPackageRepository(engine)
        logger.info("Using SQL store")
    else:
        store = InMemoryStore(timeout_seconds=config.persistence_timeout_seconds)
        user_repo = InMemoryUserRepository(store)
        package_repo = InMemoryPackageRepository(store)
        logger.info("No database_url configured, using in-memory store")

    coordinator = AssignmentCoordinator(
        user_repo,
        package_repo,
        matcher=AssignmentMatcher(),
        max_attempts=config.max_assignment_attempts,
        stale_claim_seconds=config.stale_claim_seconds,
    )
    return Container(
        settings=config,
        user_repo=user_repo,
        package_repo=package_repo,
        hasher=PasslibPasswordHasher(config.password_hash_scheme),
        coordinator=coordinator,
    )


@lru_cache(maxsize=1)
def get_container() -> Container:
    """Return the process-wide container built from the global settings."""
    return build_container(settings)


def _container(container: Optional[Container]) -> Container:
    return container or get_container()


def get_create_user_use_case(container: Optional[Container] = None) -> CreateUserUseCase:
    c = _container(container)
    return CreateUserUseCase(user_repo=c.user_repo, hasher=c.hasher)


def get_create_package_use_case(
    container: Optional[Container] = None,
) -> CreatePackageUseCase:
    """Build CreatePackageUseCase; assigns on creation when auto_dispatch is on."""
    c = _container(container)
    return CreatePackageUseCase(
        package_repo=c.package_repo,
        coordinator=c.coordinator if c.settings.auto_dispatch else None,
    )


def get_update_package_use_case(
    container: Optional[Container] = None,
) -> UpdatePackageUseCase:
    return UpdatePackageUseCase(package_repo=_container(container).package_repo)


def get_assign_pending_package_use_case(
    container: Optional[Container] = None,
) -> AssignPendingPackageUseCase:
    return AssignPendingPackageUseCase(coordinator=_container(container).coordinator)


def get_assign_package_to_transporter_use_case(
    container: Optional[Container] = None,
) -> AssignPackageToTransporterUseCase:
    return AssignPackageToTransporterUseCase(
        coordinator=_container(container).coordinator
    )


def get_dispatch_pending_packages_use_case(
    container: Optional[Container] = None,
) -> DispatchPendingPackagesUseCase:
    c = _container(container)
    return DispatchPendingPackagesUseCase(
        package_repo=c.package_repo, coordinator=c.coordinator
    )


def _release_dispatcher(c: Container) -> Optional[DispatchPendingPackagesUseCase]:
    if not c.settings.auto_dispatch:
        return None
    return get_dispatch_pending_packages_use_case(c)


def get_mark_delivered_use_case(
    container: Optional[Container] = None,
) -> MarkDeliveredUseCase:
    c = _container(container)
    return MarkDeliveredUseCase(
        coordinator=c.coordinator, dispatcher=_release_dispatcher(c)
    )


def get_cancel_package_use_case(
    container: Optional[Container] = None,
) -> CancelPackageUseCase:
    c = _container(container)
    return CancelPackageUseCase(
        coordinator=c.coordinator, dispatcher=_release_dispatcher(c)
    )


def get_update_transporter_use_case(
    container: Optional[Container] = None,
) -> UpdateTransporterUseCase:
    c = _container(container)
    return UpdateTransporterUseCase(user_repo=c.user_repo, hasher=c.hasher)


def get_set_user_active_use_case(
    container: Optional[Container] = None,
) -> SetUserActiveUseCase:
    return SetUserActiveUseCase(user_repo=_container(container).user_repo)


def get_list_packages_use_case(
    container: Optional[Container] = None,
) -> ListPackagesUseCase:
    return ListPackagesUseCase(package_repo=_container(container).package_repo)


def get_list_transporters_use_case(
    container: Optional[Container] = None,
) -> ListTransportersUseCase:
    return ListTransportersUseCase(user_repo=_container(container).user_repo)


def get_bootstrap_admin_use_case(
    container: Optional[Container] = None,
) -> BootstrapAdminUseCase:
    c = _container(container)
    return BootstrapAdminUseCase(user_repo=c.user_repo, hasher=c.hasher)
