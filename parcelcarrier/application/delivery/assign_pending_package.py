"""
Use case: Assign a pending package to the best eligible transporter.

Input: AssignPendingPackageCommand (package_id)
Output: AssignmentResult
Side effects: On success the package moves PENDING -> IN_TRANSIT with the
    transporter's id and the transporter moves AVAILABLE -> ON_DELIVERY.
Failure cases:
    - No eligible transporter: not an error, ``assigned=False``.
    - EntityNotFound, InvalidTransition (package not PENDING).
    - ConcurrencyConflict once every retry has lost a race.
"""

import logging

from parcelcarrier.application.delivery.coordination import (
    AssignmentCoordinator,
    to_assignment_result,
)
from parcelcarrier.application.delivery.dtos import (
    AssignmentResult,
    AssignPendingPackageCommand,
)

logger = logging.getLogger(__name__)


class AssignPendingPackageUseCase:
    """Orchestrates matching and claim-then-commit for one package."""

    def __init__(self, coordinator: AssignmentCoordinator) -> None:
        self._coordinator = coordinator

    def execute(self, command: AssignPendingPackageCommand) -> AssignmentResult:
        logger.info("Assigning pending package=%s", command.package_id)
        outcome = self._coordinator.assign_pending(command.package_id)
        return to_assignment_result(outcome)
