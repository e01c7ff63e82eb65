"""
Domain entities for the delivery bounded context.

Entities represent core business objects with identity and lifecycle.
They contain no framework imports and no IO operations.

Users and package cargo are tagged unions: the variant carries exactly
the fields its discriminant (role, package type) allows, so an admin
cannot hold a specialty and a standard package cannot hold temperatures.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import ClassVar, Optional, Union
from uuid import uuid4


def new_id() -> str:
    """Return a fresh entity identifier."""
    return uuid4().hex


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class Role(Enum):
    """Role of a user account."""

    ADMIN = "ADMIN"
    TRANSPORTER = "TRANSPORTER"


class Specialty(Enum):
    """Handling capability of a transporter."""

    STANDARD = "STANDARD"
    FRAGILE = "FRAGILE"
    REFRIGERATED = "REFRIGERATED"

    def matches(self, package_type: "PackageType") -> bool:
        """Return True if a transporter with this specialty may carry the type."""
        return self.value == package_type.value


class TransporterStatus(Enum):
    """Availability of a transporter."""

    AVAILABLE = "AVAILABLE"
    ON_DELIVERY = "ON_DELIVERY"


class PackageType(Enum):
    """Category of a package, selecting its type-specific fields."""

    STANDARD = "STANDARD"
    FRAGILE = "FRAGILE"
    REFRIGERATED = "REFRIGERATED"

    @property
    def requires_special_handling(self) -> bool:
        return self is not PackageType.STANDARD


class PackageStatus(Enum):
    """Lifecycle status of a package."""

    PENDING = "PENDING"
    IN_TRANSIT = "IN_TRANSIT"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Admin:
    """An administrator account. Admins never carry transporter fields."""

    login: str
    password: str
    active: bool = True
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: Optional[datetime] = None

    role: ClassVar[Role] = Role.ADMIN


@dataclass(frozen=True)
class Transporter:
    """A transporter account with a fixed specialty and a delivery status."""

    login: str
    password: str
    specialty: Specialty
    status: TransporterStatus = TransporterStatus.AVAILABLE
    active: bool = True
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: Optional[datetime] = None

    role: ClassVar[Role] = Role.TRANSPORTER

    @property
    def is_available(self) -> bool:
        return self.status is TransporterStatus.AVAILABLE

    def can_handle(self, package_type: PackageType) -> bool:
        """Return True if this transporter's specialty matches the package type."""
        return self.specialty.matches(package_type)

    def can_take_new_package(self) -> bool:
        """Return True if the transporter is active and free."""
        return self.active and self.is_available


User = Union[Admin, Transporter]


# ---------------------------------------------------------------------------
# Packages
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StandardCargo:
    """Cargo of a standard package. No type-specific fields."""

    type: ClassVar[PackageType] = PackageType.STANDARD


@dataclass(frozen=True)
class FragileCargo:
    """Cargo of a fragile package, with handling instructions."""

    handling_instructions: str

    type: ClassVar[PackageType] = PackageType.FRAGILE


@dataclass(frozen=True)
class RefrigeratedCargo:
    """Cargo of a refrigerated package, with its allowed temperature range in °C."""

    min_temperature: float
    max_temperature: float

    type: ClassVar[PackageType] = PackageType.REFRIGERATED


Cargo = Union[StandardCargo, FragileCargo, RefrigeratedCargo]


@dataclass(frozen=True)
class Package:
    """A parcel moving through the delivery lifecycle."""

    cargo: Cargo
    weight: float
    destination_address: str
    status: PackageStatus = PackageStatus.PENDING
    transporter_id: Optional[str] = None
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: Optional[datetime] = None

    @property
    def type(self) -> PackageType:
        return self.cargo.type

    @property
    def is_assigned(self) -> bool:
        return bool(self.transporter_id)
