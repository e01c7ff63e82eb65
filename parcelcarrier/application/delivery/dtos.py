"""
Data Transfer Objects for the delivery application layer.

DTOs carry data between callers and the use cases. Commands and queries
hold raw caller input (validated by the use case); results hold enum
members by value so they can be rendered without importing the domain.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from parcelcarrier.domain.delivery.entities import (
    FragileCargo,
    Package,
    RefrigeratedCargo,
    Transporter,
    User,
)


# ═══════════════════════════════════════════════════════════════════
# Commands and queries
# ═══════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class CreateUserCommand:
    """Input DTO for creating a user account.

    Attributes:
        login: Unique login, 3-50 letters, digits or underscores.
        password: Plain-text password, 5-20 characters. Hashed before storage.
        role: ADMIN or TRANSPORTER.
        specialty: Required for transporters, must be absent for admins.
        active: Whether the account starts active.
    """

    login: Any
    password: Any
    role: Any
    specialty: Any = None
    active: bool = True


@dataclass(frozen=True)
class CreatePackageCommand:
    """Input DTO for registering a package. Packages always start PENDING.

    Attributes:
        type: STANDARD, FRAGILE or REFRIGERATED.
        weight: Non-negative weight.
        destination_address: Delivery address, at most 500 characters.
        handling_instructions: Required for FRAGILE packages only.
        min_temperature: Required for REFRIGERATED packages only.
        max_temperature: Required for REFRIGERATED packages only.
    """

    type: Any
    weight: Any
    destination_address: Any
    handling_instructions: Any = None
    min_temperature: Any = None
    max_temperature: Any = None


@dataclass(frozen=True)
class UpdatePackageCommand:
    """Input DTO for editing a PENDING package. None leaves a field unchanged."""

    package_id: str
    weight: Any = None
    destination_address: Any = None
    handling_instructions: Any = None
    min_temperature: Any = None
    max_temperature: Any = None


@dataclass(frozen=True)
class AssignPendingPackageCommand:
    package_id: str


@dataclass(frozen=True)
class AssignPackageToTransporterCommand:
    package_id: str
    transporter_id: str


@dataclass(frozen=True)
class MarkDeliveredCommand:
    """Input DTO for completing a delivery.

    Attributes:
        package_id: Package to deliver.
        actor_transporter_id: When set, the package must be carried by this
            transporter.
    """

    package_id: str
    actor_transporter_id: Optional[str] = None


@dataclass(frozen=True)
class CancelPackageCommand:
    package_id: str
    actor_transporter_id: Optional[str] = None


@dataclass(frozen=True)
class UpdateTransporterCommand:
    """Input DTO for changing a transporter's credentials.

    None leaves a field unchanged. The specialty cannot be changed.
    """

    user_id: str
    login: Any = None
    password: Any = None


@dataclass(frozen=True)
class SetUserActiveCommand:
    """Input DTO for deactivating or re-activating a user."""

    user_id: str
    active: bool


@dataclass(frozen=True)
class DispatchPendingPackagesCommand:
    """Input DTO for assigning waiting packages, oldest first.

    Attributes:
        type: Only packages of this type.
        limit: Maximum number of pending packages to try. None tries all.
        max_assignments: Stop after this many successful assignments.
    """

    type: Any = None
    limit: Optional[int] = None
    max_assignments: Optional[int] = None


@dataclass(frozen=True)
class BootstrapAdminCommand:
    login: str
    password: str


@dataclass(frozen=True)
class ListPackagesQuery:
    """Input DTO for listing packages.

    Attributes:
        type: Only packages of this type.
        status: Only packages in this status.
        transporter_id: Only packages linked to this transporter.
        address_contains: Case-insensitive substring of the destination address.
        offset: Number of matching packages to skip.
        limit: Page size.
    """

    type: Any = None
    status: Any = None
    transporter_id: Optional[str] = None
    address_contains: Optional[str] = None
    offset: int = 0
    limit: int = 50


@dataclass(frozen=True)
class ListTransportersQuery:
    specialty: Any = None
    status: Any = None
    active: Optional[bool] = None
    offset: int = 0
    limit: int = 50


# ═══════════════════════════════════════════════════════════════════
# Results
# ═══════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class UserResult:
    """Output DTO for a user. Never carries the password hash."""

    id: str
    login: str
    role: str
    active: bool
    specialty: Optional[str]
    status: Optional[str]
    created_at: datetime
    updated_at: Optional[datetime]


@dataclass(frozen=True)
class PackageResult:
    """Output DTO for a package."""

    id: str
    type: str
    weight: float
    destination_address: str
    status: str
    transporter_id: Optional[str]
    handling_instructions: Optional[str]
    min_temperature: Optional[float]
    max_temperature: Optional[float]
    created_at: datetime
    updated_at: Optional[datetime]


@dataclass(frozen=True)
class AssignmentResult:
    """Output DTO for an assignment attempt.

    ``assigned=False`` is the "no eligible transporter" outcome: the
    package stays PENDING and a later attempt may succeed.

    Attributes:
        package: The package as stored after the attempt.
        assigned: Whether a transporter took the package.
        transporter_id: The transporter now carrying the package.
        attempts: Claim attempts made, including ones lost to a race.
        reason: Why nothing was assigned, when assigned is False.
    """

    package: PackageResult
    assigned: bool
    transporter_id: Optional[str] = None
    attempts: int = 0
    reason: Optional[str] = None


@dataclass(frozen=True)
class PackageStatusChangeResult:
    """Output DTO for delivering or cancelling a package.

    Attributes:
        package: The package in its new status.
        released_transporter_id: Transporter set back to AVAILABLE, if any.
        dispatched: Assignments made for the freed transporter when
            auto-dispatch is enabled.
    """

    package: PackageResult
    released_transporter_id: Optional[str] = None
    dispatched: tuple[AssignmentResult, ...] = ()


@dataclass(frozen=True)
class CreatePackageResult:
    package: PackageResult
    assignment: Optional[AssignmentResult] = None


@dataclass(frozen=True)
class PackagePage:
    items: tuple[PackageResult, ...]
    total: int
    offset: int
    limit: int


@dataclass(frozen=True)
class TransporterList:
    items: tuple[UserResult, ...]
    offset: int
    limit: int


@dataclass(frozen=True)
class DispatchResult:
    """Output DTO for a dispatch run.

    Attributes:
        assignments: One result per pending package tried.
        released_transporter_ids: Transporters found ON_DELIVERY with no
            package in transit and set back to AVAILABLE before dispatching.
    """

    assignments: tuple[AssignmentResult, ...]
    released_transporter_ids: tuple[str, ...] = ()

    @property
    def assigned_count(self) -> int:
        return sum(1 for a in self.assignments if a.assigned)


@dataclass(frozen=True)
class BootstrapAdminResult:
    """Output DTO for the admin bootstrap.

    Attributes:
        user: The admin account.
        created: True if the account did not exist before.
        changed: True if an existing account was re-activated or its
            password reset.
    """

    user: UserResult
    created: bool
    changed: bool


# ═══════════════════════════════════════════════════════════════════
# Entity → DTO mapping
# ═══════════════════════════════════════════════════════════════════


def to_user_result(user: User) -> UserResult:
    is_transporter = isinstance(user, Transporter)
    return UserResult(
        id=user.id,
        login=user.login,
        role=user.role.value,
        active=user.active,
        specialty=user.specialty.value if is_transporter else None,
        status=user.status.value if is_transporter else None,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


def to_package_result(package: Package) -> PackageResult:
    cargo = package.cargo
    fragile = isinstance(cargo, FragileCargo)
    refrigerated = isinstance(cargo, RefrigeratedCargo)
    return PackageResult(
        id=package.id,
        type=package.type.value,
        weight=package.weight,
        destination_address=package.destination_address,
        status=package.status.value,
        transporter_id=package.transporter_id,
        handling_instructions=cargo.handling_instructions if fragile else None,
        min_temperature=cargo.min_temperature if refrigerated else None,
        max_temperature=cargo.max_temperature if refrigerated else None,
        created_at=package.created_at,
        updated_at=package.updated_at,
    )


def enum_value(value: Any) -> Any:
    """Return an enum member's value, or the input unchanged."""
    return getattr(value, "value", value)
