"""
Use case: Assign waiting packages to free transporters.

Input: DispatchPendingPackagesCommand (type, limit, max_assignments)
Output: DispatchResult
Side effects: First releases transporters left ON_DELIVERY with no
    package in transit. Then moves matched packages to IN_TRANSIT and
    their transporters to ON_DELIVERY.
Failure cases:
    - A package that left PENDING mid-run is skipped.
    - ConcurrencyConflict and PersistenceUnavailable propagate.

This is how a package left PENDING for lack of a transporter gets
another chance: run it on demand, or let package creation and
transporter release trigger it when auto-dispatch is enabled.
"""

import logging
from typing import Optional

from parcelcarrier.application.delivery.coordination import (
    NO_ELIGIBLE_TRANSPORTER,
    AssignmentCoordinator,
    to_assignment_result,
)
from parcelcarrier.application.delivery.dtos import (
    AssignmentResult,
    DispatchPendingPackagesCommand,
    DispatchResult,
    to_package_result,
)
from parcelcarrier.domain.delivery import documents as doc
from parcelcarrier.domain.delivery.entities import PackageStatus, PackageType, Transporter
from parcelcarrier.domain.delivery.errors import InvalidTransition
from parcelcarrier.domain.delivery.ports import PackageQuery, PackageRepository
from parcelcarrier.domain.delivery.validation import PACKAGE, parse_enum_filter

logger = logging.getLogger(__name__)


class DispatchPendingPackagesUseCase:
    """Walks pending packages oldest first and assigns each one it can."""

    def __init__(
        self, package_repo: PackageRepository, coordinator: AssignmentCoordinator
    ) -> None:
        self._package_repo = package_repo
        self._coordinator = coordinator

    def execute(self, command: DispatchPendingPackagesCommand) -> DispatchResult:
        package_type = parse_enum_filter(PACKAGE, doc.TYPE, PackageType, command.type)
        reconciled = self._coordinator.reconcile()
        if reconciled:
            logger.warning(
                "Released %d stranded transporter(s) before dispatch", len(reconciled)
            )
        pending = self._package_repo.find_many(
            PackageQuery(
                type=package_type, status=PackageStatus.PENDING, limit=command.limit
            )
        )
        logger.info("Dispatching %d pending package(s)", len(pending))

        results: list[AssignmentResult] = []
        exhausted: set[PackageType] = set()
        assigned = 0
        for package in pending:
            if (
                command.max_assignments is not None
                and assigned >= command.max_assignments
            ):
                break
            if package.type in exhausted:
                # Nobody was free for this type a moment ago.
                results.append(
                    AssignmentResult(
                        package=to_package_result(package),
                        assigned=False,
                        reason=NO_ELIGIBLE_TRANSPORTER,
                    )
                )
                continue

            try:
                outcome = self._coordinator.assign_pending(package.id)
            except InvalidTransition:
                logger.info(
                    "Package=%s left PENDING during dispatch, skipped", package.id
                )
                continue

            results.append(to_assignment_result(outcome))
            if outcome.assigned:
                assigned += 1
            else:
                exhausted.add(package.type)

        logger.info("Dispatch assigned %d of %d package(s)", assigned, len(pending))
        return DispatchResult(
            assignments=tuple(results),
            released_transporter_ids=tuple(t.id for t in reconciled),
        )


def redispatch(
    dispatcher: Optional[DispatchPendingPackagesUseCase],
    released: Optional[Transporter],
) -> tuple[AssignmentResult, ...]:
    """Offer a just-released transporter the oldest package it can take."""
    if dispatcher is None or released is None or not released.active:
        return ()
    result = dispatcher.execute(
        DispatchPendingPackagesCommand(type=released.specialty.value, max_assignments=1)
    )
    return tuple(a for a in result.assignments if a.assigned)
