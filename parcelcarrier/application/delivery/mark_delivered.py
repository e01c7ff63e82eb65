"""
Use case: Mark an in-transit package as delivered.

Input: MarkDeliveredCommand (package_id, actor_transporter_id)
Output: PackageStatusChangeResult
Side effects: Package IN_TRANSIT -> DELIVERED, its transporter
    ON_DELIVERY -> AVAILABLE. Repeating the call after the release failed
    finishes the release. With auto-dispatch on, the freed transporter
    is offered the oldest pending package of its specialty.
Failure cases: EntityNotFound, InvalidTransition, NotPackageOwner,
    ConcurrencyConflict.
"""

import logging
from typing import Optional

from parcelcarrier.application.delivery.coordination import AssignmentCoordinator
from parcelcarrier.application.delivery.dispatch_pending_packages import (
    DispatchPendingPackagesUseCase,
    redispatch,
)
from parcelcarrier.application.delivery.dtos import (
    MarkDeliveredCommand,
    PackageStatusChangeResult,
    to_package_result,
)
from parcelcarrier.domain.delivery.entities import PackageStatus

logger = logging.getLogger(__name__)


class MarkDeliveredUseCase:
    """Orchestrates delivery completion and the coupled transporter release."""

    def __init__(
        self,
        coordinator: AssignmentCoordinator,
        dispatcher: Optional[DispatchPendingPackagesUseCase] = None,
    ) -> None:
        self._coordinator = coordinator
        self._dispatcher = dispatcher

    def execute(self, command: MarkDeliveredCommand) -> PackageStatusChangeResult:
        """Complete the delivery.

        Raises:
            EntityNotFound: If the package does not exist.
            InvalidTransition: If the package is not IN_TRANSIT.
            NotPackageOwner: If actor_transporter_id is set and is not the
                package's transporter.
        """
        logger.info("Marking package=%s delivered", command.package_id)
        package, released = self._coordinator.close(
            command.package_id,
            PackageStatus.DELIVERED,
            actor_id=command.actor_transporter_id,
        )
        return PackageStatusChangeResult(
            package=to_package_result(package),
            released_transporter_id=released.id if released else None,
            dispatched=redispatch(self._dispatcher, released),
        )
