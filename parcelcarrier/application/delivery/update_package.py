"""
Use case: Edit a package that is still waiting for a transporter.

Input: UpdatePackageCommand (package_id and the fields to change)
Output: PackageResult
Side effects: Persists the new weight, address or cargo fields.
Failure cases:
    - EntityNotFound.
    - PackageLocked: the package is no longer PENDING.
    - ValidationError: the edited package breaks a rule, including cargo
      fields that do not belong to its type. The type itself never changes.
"""

import logging

from parcelcarrier.application.delivery.dtos import (
    PackageResult,
    UpdatePackageCommand,
    to_package_result,
)
from parcelcarrier.domain.delivery import documents as doc
from parcelcarrier.domain.delivery.documents import package_to_document
from parcelcarrier.domain.delivery.entities import PackageStatus, utcnow
from parcelcarrier.domain.delivery.errors import (
    ConcurrencyConflict,
    EntityNotFound,
    PackageLocked,
)
from parcelcarrier.domain.delivery.ports import PackageRepository
from parcelcarrier.domain.delivery.validation import parse_package

logger = logging.getLogger(__name__)


class UpdatePackageUseCase:
    """Orchestrates edits to a pending package."""

    def __init__(self, package_repo: PackageRepository) -> None:
        self._package_repo = package_repo

    def execute(self, command: UpdatePackageCommand) -> PackageResult:
        current = self._package_repo.find_by_id(command.package_id)
        if current is None:
            raise EntityNotFound("package", command.package_id)
        if current.status is not PackageStatus.PENDING:
            raise PackageLocked(current.id, current.status)

        edits = {
            doc.WEIGHT: command.weight,
            doc.DESTINATION_ADDRESS: command.destination_address,
            doc.HANDLING_INSTRUCTIONS: command.handling_instructions,
            doc.MIN_TEMPERATURE: command.min_temperature,
            doc.MAX_TEMPERATURE: command.max_temperature,
        }
        edits = {field: value for field, value in edits.items() if value is not None}
        if not edits:
            return to_package_result(current)

        logger.info("Updating package=%s fields=%s", current.id, sorted(edits))
        edited = parse_package({**package_to_document(current), **edits})

        try:
            stored = self._package_repo.update(
                current.id,
                {
                    "weight": edited.weight,
                    "destination_address": edited.destination_address,
                    "cargo": edited.cargo,
                    "updated_at": utcnow(),
                },
                expected_status=PackageStatus.PENDING,
            )
        except ConcurrencyConflict as exc:
            # Assigned or cancelled since it was read.
            raise PackageLocked(current.id, exc.actual) from exc

        return to_package_result(stored)
