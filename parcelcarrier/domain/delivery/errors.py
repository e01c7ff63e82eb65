"""
Domain-specific errors for the delivery bounded context.

All errors raised from the domain and application layers are defined here.
Every error carries structured details (entity kind, field or state involved)
so a caller can render an actionable message without re-deriving it.
No framework imports allowed.
"""

from dataclasses import dataclass
from typing import Any, Optional, Sequence


@dataclass(frozen=True)
class Violation:
    """A single broken rule found by the validation engine.

    Attributes:
        entity: Entity kind ("user" or "package").
        field: Document field the rule applies to.
        rule: Short rule identifier (required, enum, min, unique ...).
        value: The offending value, None when the field is missing.
        message: Human-readable description.
    """

    entity: str
    field: str
    rule: str
    value: Any
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "entity": self.entity,
            "field": self.field,
            "rule": self.rule,
            "value": None if self.value is None else str(self.value),
            "message": self.message,
        }


class DeliveryDomainError(Exception):
    """Base error for all delivery domain errors."""

    retryable = False

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(self.message)

    @property
    def details(self) -> dict[str, Any]:
        return {}

    def to_dict(self) -> dict[str, Any]:
        """Return a serialisable description of the error."""
        return {
            "error": type(self).__name__,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
        }


class ValidationError(DeliveryDomainError):
    """Raised when an entity breaks one or more schema or business rules.

    Holds every violation found, not just the first one.
    """

    def __init__(self, entity: str, violations: Sequence[Violation]) -> None:
        self.entity = entity
        self.violations = list(violations)
        fields = ", ".join(sorted({v.field for v in self.violations}))
        super().__init__(
            f"Invalid {entity}: {len(self.violations)} violation(s) on {fields}"
        )

    @property
    def details(self) -> dict[str, Any]:
        return {
            "entity": self.entity,
            "violations": [v.to_dict() for v in self.violations],
        }


class InvalidTransition(DeliveryDomainError):
    """Raised when a requested status change is not permitted."""

    def __init__(
        self, entity: str, entity_id: str, current: Any, requested: Any
    ) -> None:
        super().__init__(
            f"Cannot move {entity} {entity_id} from {_name(current)} "
            f"to {_name(requested)}"
        )
        self.entity = entity
        self.entity_id = entity_id
        self.current = current
        self.requested = requested

    @property
    def details(self) -> dict[str, Any]:
        return {
            "entity": self.entity,
            "entity_id": self.entity_id,
            "current": _name(self.current),
            "requested": _name(self.requested),
        }


class EntityNotFound(DeliveryDomainError):
    """Raised when a user or package cannot be found."""

    def __init__(self, entity: str, entity_id: str) -> None:
        super().__init__(f"{entity.capitalize()} not found: {entity_id}")
        self.entity = entity
        self.entity_id = entity_id

    @property
    def details(self) -> dict[str, Any]:
        return {"entity": self.entity, "entity_id": self.entity_id}


class NotATransporter(DeliveryDomainError):
    """Raised when a transporter operation targets a non-transporter user."""

    def __init__(self, user_id: str) -> None:
        super().__init__(f"User is not a transporter: {user_id}")
        self.user_id = user_id

    @property
    def details(self) -> dict[str, Any]:
        return {"entity": "user", "entity_id": self.user_id}


class SpecialtyIncompatible(DeliveryDomainError):
    """Raised when a transporter's specialty does not match a package type."""

    def __init__(self, package_type: Any, specialty: Any) -> None:
        super().__init__(
            f"Transporter with specialty {_name(specialty)} cannot handle "
            f"package of type {_name(package_type)}"
        )
        self.package_type = package_type
        self.specialty = specialty

    @property
    def details(self) -> dict[str, Any]:
        return {
            "package_type": _name(self.package_type),
            "specialty": _name(self.specialty),
        }


class TransporterUnavailable(DeliveryDomainError):
    """Raised when a chosen transporter cannot take a new package."""

    def __init__(self, transporter_id: str, status: Any, active: bool) -> None:
        reason = "inactive" if not active else f"status {_name(status)}"
        super().__init__(
            f"Transporter {transporter_id} is not available ({reason})"
        )
        self.transporter_id = transporter_id
        self.status = status
        self.active = active

    @property
    def details(self) -> dict[str, Any]:
        return {
            "entity": "user",
            "entity_id": self.transporter_id,
            "status": _name(self.status),
            "active": self.active,
        }


class PackageLocked(DeliveryDomainError):
    """Raised when editing a package that is no longer PENDING."""

    def __init__(self, package_id: str, status: Any) -> None:
        super().__init__(
            f"Package {package_id} cannot be edited in status {_name(status)}"
        )
        self.package_id = package_id
        self.status = status

    @property
    def details(self) -> dict[str, Any]:
        return {
            "entity": "package",
            "entity_id": self.package_id,
            "status": _name(self.status),
        }


class NotPackageOwner(DeliveryDomainError):
    """Raised when a transporter acts on a package it is not carrying."""

    def __init__(self, package_id: str, transporter_id: str) -> None:
        super().__init__(
            f"Package {package_id} does not belong to transporter {transporter_id}"
        )
        self.package_id = package_id
        self.transporter_id = transporter_id

    @property
    def details(self) -> dict[str, Any]:
        return {
            "entity": "package",
            "entity_id": self.package_id,
            "transporter_id": self.transporter_id,
        }


class ClaimRollbackFailed(DeliveryDomainError):
    """Raised when an assignment failed and its transporter claim could not be undone.

    The transporter may be left ON_DELIVERY without a package until the
    dispatcher reconciles it.
    """

    def __init__(self, package_id: str, transporter_id: str, cause: Exception) -> None:
        super().__init__(
            f"Assignment of package {package_id} failed ({cause}) and "
            f"transporter {transporter_id} could not be released"
        )
        self.package_id = package_id
        self.transporter_id = transporter_id

    @property
    def details(self) -> dict[str, Any]:
        return {
            "entity": "package",
            "entity_id": self.package_id,
            "transporter_id": self.transporter_id,
        }


class ConcurrencyConflict(DeliveryDomainError):
    """Raised when a conditional update lost a race.

    The stored status no longer matches the status the caller read.
    """

    retryable = True

    def __init__(
        self,
        entity: str,
        entity_id: str,
        expected: Any,
        actual: Optional[Any] = None,
    ) -> None:
        super().__init__(
            f"Concurrent update on {entity} {entity_id}: expected "
            f"{_name(expected)}, found {_name(actual)}"
        )
        self.entity = entity
        self.entity_id = entity_id
        self.expected = expected
        self.actual = actual

    @property
    def details(self) -> dict[str, Any]:
        return {
            "entity": self.entity,
            "entity_id": self.entity_id,
            "expected": _name(self.expected),
            "actual": _name(self.actual),
        }


class PersistenceUnavailable(DeliveryDomainError):
    """Raised when the persistence store times out or cannot be reached."""

    retryable = True

    def __init__(self, operation: str, reason: str) -> None:
        super().__init__(f"Persistence unavailable during {operation}: {reason}")
        self.operation = operation
        self.reason = reason

    @property
    def details(self) -> dict[str, Any]:
        return {"operation": self.operation, "reason": self.reason}


def _name(value: Any) -> Optional[str]:
    """Render enum members by name, other values as strings."""
    if value is None:
        return None
    return getattr(value, "name", None) or str(value)
