"""
Tests for the package and transporter lifecycle state machine.

Pure domain objects; no IO.
"""

from itertools import product

import pytest

from parcelcarrier.domain.delivery.entities import (
    Package,
    PackageStatus,
    Specialty,
    StandardCargo,
    Transporter,
    TransporterStatus,
)
from parcelcarrier.domain.delivery.errors import InvalidTransition, ValidationError
from parcelcarrier.domain.delivery.lifecycle import (
    can_transition,
    is_assignable,
    is_terminal,
    transition_package,
    transition_transporter,
)

ALLOWED = {
    (PackageStatus.PENDING, PackageStatus.IN_TRANSIT),
    (PackageStatus.PENDING, PackageStatus.CANCELLED),
    (PackageStatus.IN_TRANSIT, PackageStatus.DELIVERED),
    (PackageStatus.IN_TRANSIT, PackageStatus.CANCELLED),
}


def _package(status: PackageStatus = PackageStatus.PENDING, transporter_id=None) -> Package:
    return Package(
        cargo=StandardCargo(),
        weight=2.0,
        destination_address="10 Harbour Road",
        status=status,
        transporter_id=transporter_id,
    )


def _transporter(status: TransporterStatus = TransporterStatus.AVAILABLE) -> Transporter:
    return Transporter(
        login="driver_1",
        password="hashed",
        specialty=Specialty.STANDARD,
        status=status,
    )


class TestPackageTransitionTable:
    """Every (current, requested) pair is either allowed or rejected."""

    @pytest.mark.parametrize(
        "current, target", list(product(PackageStatus, PackageStatus))
    )
    def test_transition_table(self, current: PackageStatus, target: PackageStatus) -> None:
        assert can_transition(current, target) is ((current, target) in ALLOWED)

    def test_terminal_statuses(self) -> None:
        assert is_terminal(PackageStatus.DELIVERED)
        assert is_terminal(PackageStatus.CANCELLED)
        assert not is_terminal(PackageStatus.PENDING)
        assert not is_terminal(PackageStatus.IN_TRANSIT)

    def test_only_pending_is_assignable(self) -> None:
        assert is_assignable(_package())
        assert not is_assignable(_package(PackageStatus.IN_TRANSIT, "t1"))


class TestTransitionPackage:
    """transition_package returns a new value and never mutates its input."""

    def test_assign_sets_transporter(self) -> None:
        package = _package()
        moved = transition_package(package, PackageStatus.IN_TRANSIT, "t1")
        assert moved.status is PackageStatus.IN_TRANSIT
        assert moved.transporter_id == "t1"
        assert moved.updated_at is not None
        assert package.status is PackageStatus.PENDING
        assert package.transporter_id is None

    def test_in_transit_without_transporter_is_invalid(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            transition_package(_package(), PackageStatus.IN_TRANSIT)
        assert exc_info.value.violations[0].field == "transporterId"

    def test_deliver_keeps_transporter(self) -> None:
        delivered = transition_package(
            _package(PackageStatus.IN_TRANSIT, "t1"), PackageStatus.DELIVERED
        )
        assert delivered.status is PackageStatus.DELIVERED
        assert delivered.transporter_id == "t1"

    def test_cancel_in_transit_keeps_transporter_record(self) -> None:
        cancelled = transition_package(
            _package(PackageStatus.IN_TRANSIT, "t1"), PackageStatus.CANCELLED
        )
        assert cancelled.transporter_id == "t1"

    def test_deliver_pending_is_rejected(self) -> None:
        """Attempting PENDING -> DELIVERED names both states."""
        package = _package()
        with pytest.raises(InvalidTransition) as exc_info:
            transition_package(package, PackageStatus.DELIVERED)
        error = exc_info.value
        assert error.entity == "package"
        assert error.entity_id == package.id
        assert error.current is PackageStatus.PENDING
        assert error.requested is PackageStatus.DELIVERED
        assert package.status is PackageStatus.PENDING

    @pytest.mark.parametrize("terminal", [PackageStatus.DELIVERED, PackageStatus.CANCELLED])
    def test_terminal_packages_are_immutable(self, terminal: PackageStatus) -> None:
        package = _package(terminal, "t1")
        for target in PackageStatus:
            with pytest.raises(InvalidTransition):
                transition_package(package, target, "t2")


class TestTransitionTransporter:
    def test_available_to_on_delivery_and_back(self) -> None:
        busy = transition_transporter(_transporter(), TransporterStatus.ON_DELIVERY)
        assert busy.status is TransporterStatus.ON_DELIVERY
        free = transition_transporter(busy, TransporterStatus.AVAILABLE)
        assert free.status is TransporterStatus.AVAILABLE

    @pytest.mark.parametrize("status", list(TransporterStatus))
    def test_self_transition_is_rejected(self, status: TransporterStatus) -> None:
        with pytest.raises(InvalidTransition) as exc_info:
            transition_transporter(_transporter(status), status)
        assert exc_info.value.entity == "user"
