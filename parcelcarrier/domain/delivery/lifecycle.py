"""
Domain service: Package and transporter lifecycle.

Pure state machine. A transition checks that the requested status is
reachable from the current one, writes it, and returns the new entity
value for the caller to persist. Nothing here touches persistence.

Package:
    PENDING -> IN_TRANSIT -> DELIVERED
    PENDING -> CANCELLED
    IN_TRANSIT -> CANCELLED
    DELIVERED and CANCELLED are terminal.

Transporter:
    AVAILABLE <-> ON_DELIVERY
"""

from dataclasses import replace
from typing import Optional

from parcelcarrier.domain.delivery.entities import (
    Package,
    PackageStatus,
    Transporter,
    TransporterStatus,
    utcnow,
)
from parcelcarrier.domain.delivery.errors import InvalidTransition
from parcelcarrier.domain.delivery.validation import validate_entity

PACKAGE_TRANSITIONS: dict[PackageStatus, frozenset[PackageStatus]] = {
    PackageStatus.PENDING: frozenset(
        {PackageStatus.IN_TRANSIT, PackageStatus.CANCELLED}
    ),
    PackageStatus.IN_TRANSIT: frozenset(
        {PackageStatus.DELIVERED, PackageStatus.CANCELLED}
    ),
    PackageStatus.DELIVERED: frozenset(),
    PackageStatus.CANCELLED: frozenset(),
}

TRANSPORTER_TRANSITIONS: dict[TransporterStatus, frozenset[TransporterStatus]] = {
    TransporterStatus.AVAILABLE: frozenset({TransporterStatus.ON_DELIVERY}),
    TransporterStatus.ON_DELIVERY: frozenset({TransporterStatus.AVAILABLE}),
}

# A package can be matched with a transporter only in these statuses.
ASSIGNABLE_PACKAGE_STATUSES = frozenset({PackageStatus.PENDING})

# A transporter can be picked by the matcher only in these statuses.
ELIGIBLE_TRANSPORTER_STATUSES = frozenset({TransporterStatus.AVAILABLE})

# Reaching one of these frees the package's transporter.
RELEASING_PACKAGE_STATUSES = frozenset(
    {PackageStatus.DELIVERED, PackageStatus.CANCELLED}
)


def can_transition(current: PackageStatus, target: PackageStatus) -> bool:
    """Return True if a package may move from current to target."""
    return target in PACKAGE_TRANSITIONS[current]


def is_terminal(status: PackageStatus) -> bool:
    """Return True if no transition leaves this package status."""
    return not PACKAGE_TRANSITIONS[status]


def is_assignable(package: Package) -> bool:
    return package.status in ASSIGNABLE_PACKAGE_STATUSES


def transition_package(
    package: Package,
    target: PackageStatus,
    transporter_id: Optional[str] = None,
) -> Package:
    """Move a package to a new status.

    Args:
        package: Current package value. Left unchanged.
        target: Requested status.
        transporter_id: Transporter taking the package. Required when
            moving to IN_TRANSIT, ignored otherwise.

    Returns:
        The package in its new status.

    Raises:
        InvalidTransition: If target is not reachable from the current status.
        ValidationError: If the resulting package breaks an invariant,
            e.g. IN_TRANSIT without a transporter.
    """
    if not can_transition(package.status, target):
        raise InvalidTransition("package", package.id, package.status, target)

    changes: dict = {"status": target, "updated_at": utcnow()}
    if target is PackageStatus.IN_TRANSIT:
        changes["transporter_id"] = transporter_id

    updated = replace(package, **changes)
    validate_entity(updated)
    return updated


def transition_transporter(
    transporter: Transporter, target: TransporterStatus
) -> Transporter:
    """Move a transporter to a new availability status.

    Raises:
        InvalidTransition: If target is not reachable from the current status.
    """
    if target not in TRANSPORTER_TRANSITIONS[transporter.status]:
        raise InvalidTransition("user", transporter.id, transporter.status, target)
    return replace(transporter, status=target, updated_at=utcnow())
