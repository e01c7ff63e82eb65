"""
Use case: Cancel a package.

Input: CancelPackageCommand (package_id, actor_transporter_id)
Output: PackageStatusChangeResult
Side effects: Package PENDING or IN_TRANSIT -> CANCELLED. A cancelled
    in-transit package keeps its transporterId as a record; the
    transporter goes back to AVAILABLE.
    With actor_transporter_id set, only that transporter's package can be
    cancelled.
Failure cases: EntityNotFound, InvalidTransition (already DELIVERED or
    CANCELLED), NotPackageOwner, ConcurrencyConflict.
"""

import logging
from typing import Optional

from parcelcarrier.application.delivery.coordination import AssignmentCoordinator
from parcelcarrier.application.delivery.dispatch_pending_packages import (
    DispatchPendingPackagesUseCase,
    redispatch,
)
from parcelcarrier.application.delivery.dtos import (
    CancelPackageCommand,
    PackageStatusChangeResult,
    to_package_result,
)
from parcelcarrier.domain.delivery.entities import PackageStatus

logger = logging.getLogger(__name__)


class CancelPackageUseCase:
    """Orchestrates cancellation and the coupled transporter release."""

    def __init__(
        self,
        coordinator: AssignmentCoordinator,
        dispatcher: Optional[DispatchPendingPackagesUseCase] = None,
    ) -> None:
        self._coordinator = coordinator
        self._dispatcher = dispatcher

    def execute(self, command: CancelPackageCommand) -> PackageStatusChangeResult:
        logger.info("Cancelling package=%s", command.package_id)
        package, released = self._coordinator.close(
            command.package_id,
            PackageStatus.CANCELLED,
            actor_id=command.actor_transporter_id,
        )
        return PackageStatusChangeResult(
            package=to_package_result(package),
            released_transporter_id=released.id if released else None,
            dispatched=redispatch(self._dispatcher, released),
        )
