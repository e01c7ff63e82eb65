"""
Domain service: Validation engine.

Pure functions that check a user or package document against its
schema and cross-field business rules. No IO; the only outside
capability is the optional ``exists_by_login`` lookup supplied by the
caller for login uniqueness.

Every check runs: violations are collected into one list so callers can
report every problem at once.

Checks:
    - Required fields and their types
    - Enum membership (role, specialty, status, type)
    - Numeric ranges (weight, temperatures)
    - String bounds (login, address, handling instructions)
    - Conditional presence/absence by discriminant (role, type, status)
    - Login uniqueness
"""

import math
import re
from enum import Enum
from typing import Any, Callable, Mapping, Optional, Type, TypeVar

from parcelcarrier.domain.delivery import documents as doc
from parcelcarrier.domain.delivery.documents import (
    package_from_document,
    package_to_document,
    user_from_document,
    user_to_document,
)
from parcelcarrier.domain.delivery.entities import (
    Package,
    PackageStatus,
    PackageType,
    Role,
    Specialty,
    TransporterStatus,
    User,
)
from parcelcarrier.domain.delivery.errors import ValidationError, Violation

USER = "user"
PACKAGE = "package"

LOGIN_MIN_LEN = 3
LOGIN_MAX_LEN = 50
LOGIN_PATTERN = re.compile(r"^[A-Za-z0-9_]+$")
PASSWORD_MIN_LEN = 5
PASSWORD_MAX_LEN = 20
ADDRESS_MAX_LEN = 500
HANDLING_INSTRUCTIONS_MAX_LEN = 1000
MIN_ALLOWED_TEMPERATURE = -30.0
MAX_ALLOWED_TEMPERATURE = 30.0
MAX_PAGE_SIZE = 500

# Statuses in which a package must reference its transporter.
STATUSES_REQUIRING_TRANSPORTER = frozenset(
    {PackageStatus.IN_TRANSIT, PackageStatus.DELIVERED}
)

ExistsByLogin = Callable[[str], bool]
E = TypeVar("E", bound=Enum)

_MISSING = object()


class _Collector:
    """Accumulates violations for one entity kind."""

    def __init__(self, entity: str, document: Mapping[str, Any]) -> None:
        self.entity = entity
        self.document = document
        self.violations: list[Violation] = []

    def add(self, field: str, rule: str, value: Any, message: str) -> None:
        self.violations.append(
            Violation(
                entity=self.entity,
                field=field,
                rule=rule,
                value=value,
                message=message,
            )
        )

    def get(self, field: str) -> Any:
        value = self.document.get(field, _MISSING)
        return _MISSING if value is None else value

    def require(self, field: str) -> Any:
        value = self.get(field)
        if value is _MISSING:
            self.add(field, "required", None, f"{field} is required")
        return value

    def forbid(self, field: str, reason: str) -> None:
        value = self.get(field)
        if value is not _MISSING:
            self.add(field, "forbidden", value, f"{field} must be absent {reason}")

    def enum(self, field: str, enum_cls: Type[Enum], value: Any) -> Optional[Enum]:
        """Return the enum member for value, recording a violation if invalid."""
        if value is _MISSING:
            return None
        if isinstance(value, enum_cls):
            return value
        try:
            return enum_cls(value)
        except ValueError:
            allowed = ", ".join(member.value for member in enum_cls)
            self.add(field, "enum", value, f"{field} must be one of: {allowed}")
            return None

    def non_blank_string(self, field: str, value: Any, max_len: int) -> None:
        if value is _MISSING:
            return
        if not isinstance(value, str):
            self.add(field, "type", value, f"{field} must be a string")
        elif not value.strip():
            self.add(field, "not_blank", value, f"{field} must not be blank")
        elif len(value) > max_len:
            self.add(
                field,
                "max_length",
                value,
                f"{field} cannot exceed {max_len} characters",
            )

    def real(self, field: str, value: Any) -> Optional[float]:
        """Return value as a float, recording a violation if not a finite number."""
        if value is _MISSING:
            return None
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            self.add(field, "type", value, f"{field} must be a number")
            return None
        if not math.isfinite(value):
            self.add(field, "type", value, f"{field} must be a finite number")
            return None
        return float(value)


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


def collect_user_violations(
    document: Mapping[str, Any],
    exists_by_login: Optional[ExistsByLogin] = None,
) -> list[Violation]:
    """Return every rule a user document breaks.

    Args:
        document: User document (see ``documents``).
        exists_by_login: Optional uniqueness lookup. When given, a login
            for which it returns True is a violation.

    Returns:
        All violations found, empty if the document is valid.
    """
    check = _Collector(USER, document)

    login = check.require(doc.LOGIN)
    if login is not _MISSING:
        if not isinstance(login, str):
            check.add(doc.LOGIN, "type", login, "login must be a string")
        else:
            _check_login_format(check, login)
            if exists_by_login is not None and exists_by_login(login):
                check.violations.append(_duplicate_login(login))

    password = check.require(doc.PASSWORD)
    check.non_blank_string(doc.PASSWORD, password, max_len=1024)

    active = check.require(doc.ACTIVE)
    if active is not _MISSING and not isinstance(active, bool):
        check.add(doc.ACTIVE, "type", active, "active must be a boolean")

    role = check.enum(doc.ROLE, Role, check.require(doc.ROLE))
    if role is Role.TRANSPORTER:
        check.enum(doc.SPECIALTY, Specialty, check.require(doc.SPECIALTY))
        check.enum(doc.STATUS, TransporterStatus, check.require(doc.STATUS))
    elif role is Role.ADMIN:
        check.forbid(doc.SPECIALTY, "for ADMIN users")
        check.forbid(doc.STATUS, "for ADMIN users")

    return check.violations


def _duplicate_login(login: str) -> Violation:
    return Violation(
        entity=USER,
        field=doc.LOGIN,
        rule="unique",
        value=login,
        message=f"login already exists: {login}",
    )


def duplicate_login_error(login: str) -> ValidationError:
    """Return the error reported when a store rejects a taken login."""
    return ValidationError(USER, [_duplicate_login(login)])


def _check_login_format(check: _Collector, login: str) -> None:
    if not LOGIN_MIN_LEN <= len(login) <= LOGIN_MAX_LEN:
        check.add(
            doc.LOGIN,
            "length",
            login,
            f"login must be between {LOGIN_MIN_LEN} and {LOGIN_MAX_LEN} characters",
        )
    if not LOGIN_PATTERN.match(login):
        check.add(
            doc.LOGIN,
            "pattern",
            login,
            "login can only contain letters, numbers and underscores",
        )


def collect_password_violations(raw_password: Any) -> list[Violation]:
    """Return the violations of the plain-text password policy.

    Applies to a password before it is hashed.
    """
    check = _Collector(USER, {doc.PASSWORD: raw_password})
    password = check.require(doc.PASSWORD)
    if password is _MISSING:
        return check.violations
    if not isinstance(password, str):
        check.add(doc.PASSWORD, "type", None, "password must be a string")
    elif not PASSWORD_MIN_LEN <= len(password) <= PASSWORD_MAX_LEN:
        # Never echo the plain-text password back.
        check.add(
            doc.PASSWORD,
            "length",
            None,
            f"password must be between {PASSWORD_MIN_LEN} and "
            f"{PASSWORD_MAX_LEN} characters",
        )
    return check.violations


def validate_user(
    document: Mapping[str, Any],
    exists_by_login: Optional[ExistsByLogin] = None,
) -> None:
    """Raise ValidationError if the user document breaks any rule."""
    violations = collect_user_violations(document, exists_by_login)
    if violations:
        raise ValidationError(USER, violations)


def parse_user(
    document: Mapping[str, Any],
    exists_by_login: Optional[ExistsByLogin] = None,
) -> User:
    """Validate a user document and build the matching user variant."""
    validate_user(document, exists_by_login)
    return user_from_document(document)


# ---------------------------------------------------------------------------
# Packages
# ---------------------------------------------------------------------------


def collect_package_violations(document: Mapping[str, Any]) -> list[Violation]:
    """Return every rule a package document breaks.

    Args:
        document: Package document (see ``documents``).

    Returns:
        All violations found, empty if the document is valid.
    """
    check = _Collector(PACKAGE, document)

    package_type = check.enum(doc.TYPE, PackageType, check.require(doc.TYPE))

    weight = check.real(doc.WEIGHT, check.require(doc.WEIGHT))
    if weight is not None and weight < 0:
        check.add(doc.WEIGHT, "min", weight, "weight must be greater than or equal to 0")

    check.non_blank_string(
        doc.DESTINATION_ADDRESS,
        check.require(doc.DESTINATION_ADDRESS),
        max_len=ADDRESS_MAX_LEN,
    )

    status = check.enum(doc.STATUS, PackageStatus, check.require(doc.STATUS))
    _check_transporter_reference(check, status)

    if package_type is PackageType.FRAGILE:
        check.non_blank_string(
            doc.HANDLING_INSTRUCTIONS,
            check.require(doc.HANDLING_INSTRUCTIONS),
            max_len=HANDLING_INSTRUCTIONS_MAX_LEN,
        )
    elif package_type is not None:
        check.forbid(doc.HANDLING_INSTRUCTIONS, "unless type is FRAGILE")

    if package_type is PackageType.REFRIGERATED:
        _check_temperatures(check)
    elif package_type is not None:
        check.forbid(doc.MIN_TEMPERATURE, "unless type is REFRIGERATED")
        check.forbid(doc.MAX_TEMPERATURE, "unless type is REFRIGERATED")

    return check.violations


def _check_transporter_reference(
    check: _Collector, status: Optional[PackageStatus]
) -> None:
    transporter_id = check.get(doc.TRANSPORTER_ID)
    if transporter_id is not _MISSING and (
        not isinstance(transporter_id, str) or not transporter_id.strip()
    ):
        check.add(
            doc.TRANSPORTER_ID,
            "type",
            transporter_id,
            "transporterId must be a non-empty string",
        )
    if status in STATUSES_REQUIRING_TRANSPORTER and transporter_id is _MISSING:
        check.add(
            doc.TRANSPORTER_ID,
            "required",
            None,
            f"transporterId is required when status is {status.value}",
        )
    elif status is PackageStatus.PENDING:
        check.forbid(doc.TRANSPORTER_ID, "while status is PENDING")


def _check_temperatures(check: _Collector) -> None:
    minimum = check.real(doc.MIN_TEMPERATURE, check.require(doc.MIN_TEMPERATURE))
    maximum = check.real(doc.MAX_TEMPERATURE, check.require(doc.MAX_TEMPERATURE))
    for field, value in ((doc.MIN_TEMPERATURE, minimum), (doc.MAX_TEMPERATURE, maximum)):
        if value is not None and not (
            MIN_ALLOWED_TEMPERATURE <= value <= MAX_ALLOWED_TEMPERATURE
        ):
            check.add(
                field,
                "range",
                value,
                f"{field} must be between {MIN_ALLOWED_TEMPERATURE:g} "
                f"and {MAX_ALLOWED_TEMPERATURE:g} °C",
            )
    if minimum is not None and maximum is not None and minimum > maximum:
        check.add(
            doc.MIN_TEMPERATURE,
            "min_le_max",
            minimum,
            "minTemperature must be less than or equal to maxTemperature",
        )


def validate_package(document: Mapping[str, Any]) -> None:
    """Raise ValidationError if the package document breaks any rule."""
    violations = collect_package_violations(document)
    if violations:
        raise ValidationError(PACKAGE, violations)


def parse_package(document: Mapping[str, Any]) -> Package:
    """Validate a package document and build the package entity."""
    validate_package(document)
    return package_from_document(document)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------


def validate_entity(entity: User | Package) -> None:
    """Validate a constructed entity through its document form.

    Catches values the type hints allow but the rules do not
    (negative weight, inverted temperature range, missing transporter).
    """
    if isinstance(entity, Package):
        validate_package(package_to_document(entity))
    else:
        validate_user(user_to_document(entity))


def parse_enum_filter(
    entity: str, field: str, enum_cls: Type[E], value: Any
) -> Optional[E]:
    """Return the enum member named by a filter value, None when unset.

    Raises:
        ValidationError: If the value is not a member of enum_cls.
    """
    if value is None:
        return None
    check = _Collector(entity, {field: value})
    member = check.enum(field, enum_cls, value)
    if check.violations:
        raise ValidationError(entity, check.violations)
    return member


def validate_paging(entity: str, offset: Any, limit: Any) -> None:
    """Raise ValidationError unless offset >= 0 and 1 <= limit <= MAX_PAGE_SIZE."""
    check = _Collector(entity, {})
    if isinstance(offset, bool) or not isinstance(offset, int) or offset < 0:
        check.add("offset", "min", offset, "offset must be a non-negative integer")
    if isinstance(limit, bool) or not isinstance(limit, int) or not (
        1 <= limit <= MAX_PAGE_SIZE
    ):
        check.add(
            "limit", "range", limit, f"limit must be between 1 and {MAX_PAGE_SIZE}"
        )
    if check.violations:
        raise ValidationError(entity, check.violations)
