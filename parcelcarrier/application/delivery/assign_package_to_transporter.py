"""
Use case: Assign a pending package to a chosen transporter.

Input: AssignPackageToTransporterCommand (package_id, transporter_id)
Output: AssignmentResult
Side effects: Same as automatic assignment.
Failure cases: EntityNotFound, InvalidTransition, NotATransporter,
    SpecialtyIncompatible, TransporterUnavailable, ConcurrencyConflict.
"""

import logging

from parcelcarrier.application.delivery.coordination import (
    AssignmentCoordinator,
    to_assignment_result,
)
from parcelcarrier.application.delivery.dtos import (
    AssignmentResult,
    AssignPackageToTransporterCommand,
)

logger = logging.getLogger(__name__)


class AssignPackageToTransporterUseCase:
    """Orchestrates an explicit assignment. Never searches for another transporter."""

    def __init__(self, coordinator: AssignmentCoordinator) -> None:
        self._coordinator = coordinator

    def execute(self, command: AssignPackageToTransporterCommand) -> AssignmentResult:
        logger.info(
            "Assigning package=%s to chosen transporter=%s",
            command.package_id,
            command.transporter_id,
        )
        outcome = self._coordinator.assign_to(command.package_id, command.transporter_id)
        return to_assignment_result(outcome)
