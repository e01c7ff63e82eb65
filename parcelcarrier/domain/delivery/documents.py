"""
Document form of the delivery entities.

A document is a plain mapping keyed by the external field names
(``login``, ``destinationAddress``, ``minTemperature`` ...) with enum
members stored by value. It is the shape that callers submit, that the
validation engine checks and that stores persist.

The ``*_from_document`` functions trust their input; run the
validation engine first for anything coming from outside the domain.
"""

from typing import Any, Mapping, Optional

from parcelcarrier.domain.delivery.entities import (
    Admin,
    Cargo,
    FragileCargo,
    Package,
    PackageStatus,
    PackageType,
    RefrigeratedCargo,
    Role,
    Specialty,
    StandardCargo,
    Transporter,
    TransporterStatus,
    User,
)

# User fields
ID = "id"
LOGIN = "login"
PASSWORD = "password"
ROLE = "role"
ACTIVE = "active"
SPECIALTY = "specialty"
STATUS = "status"
CREATED_AT = "createdAt"
UPDATED_AT = "updatedAt"

# Package fields
TYPE = "type"
WEIGHT = "weight"
DESTINATION_ADDRESS = "destinationAddress"
TRANSPORTER_ID = "transporterId"
HANDLING_INSTRUCTIONS = "handlingInstructions"
MIN_TEMPERATURE = "minTemperature"
MAX_TEMPERATURE = "maxTemperature"


def _drop_none(document: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in document.items() if value is not None}


def _identity(document: Mapping[str, Any]) -> dict[str, Any]:
    """Return id and timestamps present in the document as entity kwargs.

    Missing ids and creation times fall back to the entity defaults, which
    is how a freshly submitted document becomes a new entity.
    """
    return _drop_none(
        {
            "id": document.get(ID),
            "created_at": document.get(CREATED_AT),
            "updated_at": document.get(UPDATED_AT),
        }
    )


def user_to_document(user: User) -> dict[str, Any]:
    """Return the document form of a user. Absent fields are omitted."""
    document: dict[str, Any] = {
        ID: user.id,
        LOGIN: user.login,
        PASSWORD: user.password,
        ROLE: user.role.value,
        ACTIVE: user.active,
        CREATED_AT: user.created_at,
        UPDATED_AT: user.updated_at,
    }
    if isinstance(user, Transporter):
        document[SPECIALTY] = user.specialty.value
        document[STATUS] = user.status.value
    return _drop_none(document)


def user_from_document(document: Mapping[str, Any]) -> User:
    """Build the user variant selected by the document's role."""
    common = {
        "login": document[LOGIN],
        "password": document[PASSWORD],
        "active": document[ACTIVE],
        **_identity(document),
    }
    if Role(document[ROLE]) is Role.TRANSPORTER:
        return Transporter(
            specialty=Specialty(document[SPECIALTY]),
            status=TransporterStatus(document[STATUS]),
            **common,
        )
    return Admin(**common)


def cargo_to_fields(cargo: Cargo) -> dict[str, Any]:
    """Return the type-specific document fields of a cargo."""
    if isinstance(cargo, FragileCargo):
        return {HANDLING_INSTRUCTIONS: cargo.handling_instructions}
    if isinstance(cargo, RefrigeratedCargo):
        return {
            MIN_TEMPERATURE: cargo.min_temperature,
            MAX_TEMPERATURE: cargo.max_temperature,
        }
    return {}


def cargo_from_fields(
    package_type: PackageType, document: Mapping[str, Any]
) -> Cargo:
    """Build the cargo variant for a package type from document fields."""
    if package_type is PackageType.FRAGILE:
        return FragileCargo(handling_instructions=document[HANDLING_INSTRUCTIONS])
    if package_type is PackageType.REFRIGERATED:
        return RefrigeratedCargo(
            min_temperature=float(document[MIN_TEMPERATURE]),
            max_temperature=float(document[MAX_TEMPERATURE]),
        )
    return StandardCargo()


def package_to_document(package: Package) -> dict[str, Any]:
    """Return the document form of a package. Absent fields are omitted."""
    document: dict[str, Any] = {
        ID: package.id,
        TYPE: package.type.value,
        WEIGHT: package.weight,
        DESTINATION_ADDRESS: package.destination_address,
        STATUS: package.status.value,
        TRANSPORTER_ID: package.transporter_id,
        CREATED_AT: package.created_at,
        UPDATED_AT: package.updated_at,
    }
    document.update(cargo_to_fields(package.cargo))
    return _drop_none(document)


def package_from_document(document: Mapping[str, Any]) -> Package:
    """Build a package from its document form."""
    package_type = PackageType(document[TYPE])
    transporter_id: Optional[str] = document.get(TRANSPORTER_ID)
    return Package(
        cargo=cargo_from_fields(package_type, document),
        weight=float(document[WEIGHT]),
        destination_address=document[DESTINATION_ADDRESS],
        status=PackageStatus(document[STATUS]),
        transporter_id=transporter_id,
        **_identity(document),
    )
