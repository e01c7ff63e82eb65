"""
Tests for delivery domain errors and the document form of entities.
"""

from datetime import datetime, timezone

from parcelcarrier.domain.delivery.documents import (
    package_from_document,
    package_to_document,
    user_from_document,
    user_to_document,
)
from parcelcarrier.domain.delivery.entities import (
    Admin,
    FragileCargo,
    Package,
    PackageStatus,
    PackageType,
    Specialty,
    Transporter,
    TransporterStatus,
)
from parcelcarrier.domain.delivery.errors import (
    ClaimRollbackFailed,
    ConcurrencyConflict,
    EntityNotFound,
    InvalidTransition,
    NotPackageOwner,
    PackageLocked,
    PersistenceUnavailable,
    SpecialtyIncompatible,
    TransporterUnavailable,
    ValidationError,
    Violation,
)


class TestDomainErrors:
    """Every error carries enough structure to render a message."""

    def test_validation_error_lists_violations(self) -> None:
        violation = Violation("package", "weight", "min", -1, "weight must be >= 0")
        error = ValidationError("package", [violation])
        data = error.to_dict()
        assert data["error"] == "ValidationError"
        assert data["retryable"] is False
        assert data["details"]["violations"] == [
            {
                "entity": "package",
                "field": "weight",
                "rule": "min",
                "value": "-1",
                "message": "weight must be >= 0",
            }
        ]
        assert "weight" in error.message

    def test_invalid_transition_names_states(self) -> None:
        error = InvalidTransition(
            "package", "p1", PackageStatus.PENDING, PackageStatus.DELIVERED
        )
        assert error.message == "Cannot move package p1 from PENDING to DELIVERED"
        assert error.details == {
            "entity": "package",
            "entity_id": "p1",
            "current": "PENDING",
            "requested": "DELIVERED",
        }

    def test_retryable_errors(self) -> None:
        assert ConcurrencyConflict("user", "t1", TransporterStatus.AVAILABLE).retryable
        assert PersistenceUnavailable("users.update", "timeout").retryable
        assert not EntityNotFound("package", "p1").retryable

    def test_concurrency_conflict_details(self) -> None:
        error = ConcurrencyConflict(
            "user", "t1", TransporterStatus.AVAILABLE, TransporterStatus.ON_DELIVERY
        )
        assert error.details["expected"] == "AVAILABLE"
        assert error.details["actual"] == "ON_DELIVERY"

    def test_assignment_refusals(self) -> None:
        assert "REFRIGERATED" in SpecialtyIncompatible(
            PackageType.REFRIGERATED, Specialty.STANDARD
        ).message
        assert "inactive" in TransporterUnavailable(
            "t1", TransporterStatus.AVAILABLE, False
        ).message
        assert PackageLocked("p1", PackageStatus.IN_TRANSIT).details["status"] == (
            "IN_TRANSIT"
        )

    def test_ownership_and_rollback_errors(self) -> None:
        owner = NotPackageOwner("p1", "t2")
        assert owner.details == {
            "entity": "package",
            "entity_id": "p1",
            "transporter_id": "t2",
        }
        rollback = ClaimRollbackFailed(
            "p1", "t1", PersistenceUnavailable("packages.update", "timeout")
        )
        assert not rollback.retryable
        assert rollback.to_dict()["details"]["transporter_id"] == "t1"
        assert "could not be released" in rollback.message

    def test_entity_not_found_message(self) -> None:
        assert EntityNotFound("user", "u9").message == "User not found: u9"


class TestDocuments:
    """Document form uses external field names and enum values."""

    def test_transporter_document(self) -> None:
        created = datetime(2024, 1, 2, tzinfo=timezone.utc)
        transporter = Transporter(
            login="driver_1",
            password="hashed",
            specialty=Specialty.FRAGILE,
            id="t1",
            created_at=created,
        )
        document = user_to_document(transporter)
        assert document == {
            "id": "t1",
            "login": "driver_1",
            "password": "hashed",
            "role": "TRANSPORTER",
            "active": True,
            "specialty": "FRAGILE",
            "status": "AVAILABLE",
            "createdAt": created,
        }
        assert user_from_document(document) == transporter

    def test_admin_document_has_no_transporter_fields(self) -> None:
        document = user_to_document(Admin(login="boss", password="hashed"))
        assert "specialty" not in document
        assert "status" not in document
        assert isinstance(user_from_document(document), Admin)

    def test_package_document(self) -> None:
        package = Package(
            cargo=FragileCargo("Keep upright"),
            weight=3.0,
            destination_address="7 Rue de Lyon",
        )
        document = package_to_document(package)
        assert document["type"] == "FRAGILE"
        assert document["handlingInstructions"] == "Keep upright"
        assert "transporterId" not in document
        assert "minTemperature" not in document
        assert package_from_document(document) == package
