"""
Use case: Register a package.

Input: CreatePackageCommand (type, weight, destination address, cargo fields)
Output: CreatePackageResult
Side effects: Persists the package as PENDING with no transporter. With
    auto-dispatch on, immediately tries to assign it.
Failure cases: ValidationError.
"""

import logging
from typing import Optional

from parcelcarrier.application.delivery.coordination import (
    AssignmentCoordinator,
    to_assignment_result,
)
from parcelcarrier.application.delivery.dtos import (
    CreatePackageCommand,
    CreatePackageResult,
    enum_value,
    to_package_result,
)
from parcelcarrier.domain.delivery import documents as doc
from parcelcarrier.domain.delivery.entities import PackageStatus
from parcelcarrier.domain.delivery.ports import PackageRepository
from parcelcarrier.domain.delivery.validation import parse_package

logger = logging.getLogger(__name__)


class CreatePackageUseCase:
    """Orchestrates package registration.

    Args:
        package_repo: Package store.
        coordinator: When given, the new package is assigned right away.
    """

    def __init__(
        self,
        package_repo: PackageRepository,
        coordinator: Optional[AssignmentCoordinator] = None,
    ) -> None:
        self._package_repo = package_repo
        self._coordinator = coordinator

    def execute(self, command: CreatePackageCommand) -> CreatePackageResult:
        """Validate and store a new package.

        Raises:
            ValidationError: If any rule is broken.
        """
        logger.info("Creating package type=%s", enum_value(command.type))

        package = parse_package(
            {
                doc.TYPE: enum_value(command.type),
                doc.WEIGHT: command.weight,
                doc.DESTINATION_ADDRESS: command.destination_address,
                doc.STATUS: PackageStatus.PENDING.value,
                doc.HANDLING_INSTRUCTIONS: command.handling_instructions,
                doc.MIN_TEMPERATURE: command.min_temperature,
                doc.MAX_TEMPERATURE: command.max_temperature,
            }
        )
        self._package_repo.insert(package)
        logger.info("Created package id=%s type=%s", package.id, package.type.value)

        if self._coordinator is None:
            return CreatePackageResult(package=to_package_result(package))

        outcome = self._coordinator.assign_pending(package.id)
        return CreatePackageResult(
            package=to_package_result(outcome.package),
            assignment=to_assignment_result(outcome),
        )
