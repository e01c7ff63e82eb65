"""
Adapter: SQL package repository.

Implements PackageRepository port on the ``packages`` table. The cargo
variant is flattened into three nullable columns; columns that do not
belong to the package type are always NULL.
"""

import logging
from typing import Any, Mapping, Optional

from sqlalchemy import func, select, update
from sqlalchemy.engine import Engine, Row
from sqlalchemy.sql import Select

from parcelcarrier.domain.delivery import documents as doc
from parcelcarrier.domain.delivery.documents import cargo_to_fields, package_from_document
from parcelcarrier.domain.delivery.entities import Cargo, Package, PackageStatus
from parcelcarrier.domain.delivery.errors import ConcurrencyConflict, EntityNotFound
from parcelcarrier.domain.delivery.ports import PackageQuery, PackageRepository
from parcelcarrier.infrastructure.delivery.database import as_utc, translate_errors
from parcelcarrier.infrastructure.delivery.schema import packages

logger = logging.getLogger(__name__)

_UPDATABLE = (
    "status",
    "transporter_id",
    "weight",
    "destination_address",
    "cargo",
    "updated_at",
)


def _cargo_columns(cargo: Cargo) -> dict[str, Any]:
    fields = cargo_to_fields(cargo)
    return {
        "handling_instructions": fields.get(doc.HANDLING_INSTRUCTIONS),
        "min_temperature": fields.get(doc.MIN_TEMPERATURE),
        "max_temperature": fields.get(doc.MAX_TEMPERATURE),
    }


def _package_to_row(package: Package) -> dict[str, Any]:
    return {
        "id": package.id,
        "type": package.type.value,
        "weight": package.weight,
        "destination_address": package.destination_address,
        "status": package.status.value,
        "transporter_id": package.transporter_id,
        "created_at": package.created_at,
        "updated_at": package.updated_at,
        **_cargo_columns(package.cargo),
    }


def _package_from_row(row: Row) -> Package:
    return package_from_document(
        {
            doc.ID: row.id,
            doc.TYPE: row.type,
            doc.WEIGHT: row.weight,
            doc.DESTINATION_ADDRESS: row.destination_address,
            doc.STATUS: row.status,
            doc.TRANSPORTER_ID: row.transporter_id,
            doc.HANDLING_INSTRUCTIONS: row.handling_instructions,
            doc.MIN_TEMPERATURE: row.min_temperature,
            doc.MAX_TEMPERATURE: row.max_temperature,
            doc.CREATED_AT: as_utc(row.created_at),
            doc.UPDATED_AT: as_utc(row.updated_at),
        }
    )


def _changes_to_values(changes: Mapping[str, Any]) -> dict[str, Any]:
    unknown = set(changes) - set(_UPDATABLE)
    if unknown:
        raise ValueError(f"Cannot update package attributes: {sorted(unknown)}")
    values = {k: v for k, v in changes.items() if k != "cargo"}
    if isinstance(values.get("status"), PackageStatus):
        values["status"] = values["status"].value
    if "cargo" in changes:
        values["type"] = changes["cargo"].type.value
        values.update(_cargo_columns(changes["cargo"]))
    return values


def _filtered(stmt: Select, query: PackageQuery) -> Select:
    if query.type is not None:
        stmt = stmt.where(packages.c.type == query.type.value)
    if query.status is not None:
        stmt = stmt.where(packages.c.status == query.status.value)
    if query.transporter_id is not None:
        stmt = stmt.where(packages.c.transporter_id == query.transporter_id)
    if query.address_contains:
        stmt = stmt.where(
            func.lower(packages.c.destination_address).contains(
                query.address_contains.lower(), autoescape=True
            )
        )
    return stmt


class SqlPackageRepository(PackageRepository):
    """SQL implementation of the package repository."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def insert(self, package: Package) -> None:
        with translate_errors("packages.insert"), self._engine.begin() as conn:
            conn.execute(packages.insert().values(**_package_to_row(package)))
        logger.debug("Inserted package id=%s type=%s", package.id, package.type.value)

    def find_by_id(self, package_id: str) -> Optional[Package]:
        stmt = select(packages).where(packages.c.id == package_id)
        with translate_errors("packages.find_by_id"), self._engine.connect() as conn:
            row = conn.execute(stmt).first()
        return _package_from_row(row) if row else None

    def find_many(self, query: PackageQuery) -> list[Package]:
        stmt = _filtered(select(packages), query)
        stmt = stmt.order_by(packages.c.created_at, packages.c.id).offset(query.offset)
        if query.limit is not None:
            stmt = stmt.limit(query.limit)

        with translate_errors("packages.find_many"), self._engine.connect() as conn:
            rows = conn.execute(stmt).fetchall()
        return [_package_from_row(r) for r in rows]

    def count(self, query: PackageQuery) -> int:
        stmt = _filtered(select(func.count()).select_from(packages), query)
        with translate_errors("packages.count"), self._engine.connect() as conn:
            return int(conn.execute(stmt).scalar_one())

    def update(
        self,
        package_id: str,
        changes: Mapping[str, Any],
        expected_status: Optional[PackageStatus] = None,
    ) -> Package:
        stmt = update(packages).where(packages.c.id == package_id)
        if expected_status is not None:
            stmt = stmt.where(packages.c.status == expected_status.value)
        stmt = stmt.values(**_changes_to_values(changes))

        with translate_errors("packages.update"), self._engine.begin() as conn:
            result = conn.execute(stmt)
            if result.rowcount == 0:
                current = conn.execute(
                    select(packages.c.status).where(packages.c.id == package_id)
                ).first()
                if current is None:
                    raise EntityNotFound("package", package_id)
                raise ConcurrencyConflict(
                    "package", package_id, expected_status, PackageStatus(current.status)
                )
            row = conn.execute(select(packages).where(packages.c.id == package_id)).one()
        return _package_from_row(row)
