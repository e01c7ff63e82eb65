"""
Assignment coordination: claim-then-commit over conditional updates.

Two concurrent assignments must never book the same transporter. Neither
store offers a transaction spanning a user and a package, so every
assignment runs as:

    1. claim   transporter AVAILABLE -> ON_DELIVERY   (conditional on AVAILABLE)
    2. commit  package PENDING -> IN_TRANSIT          (conditional on PENDING)
    3. on a failed commit, restore the transporter    (conditional on ON_DELIVERY)

A lost race raises ConcurrencyConflict from the store. The whole attempt,
including the candidate search, is then retried with fresh reads up to
``max_attempts`` times before the conflict is surfaced.

A failed release leaves a transporter ON_DELIVERY with no package in
transit. Repeating the delivery or cancellation finishes the release, and
``reconcile`` (run before every dispatch) frees any such transporter.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, Optional

from parcelcarrier.application.delivery.dtos import (
    AssignmentResult,
    to_package_result,
)
from parcelcarrier.domain.delivery.entities import (
    Package,
    PackageStatus,
    Role,
    Specialty,
    Transporter,
    TransporterStatus,
    User,
    utcnow,
)
from parcelcarrier.domain.delivery.errors import (
    ClaimRollbackFailed,
    ConcurrencyConflict,
    EntityNotFound,
    InvalidTransition,
    NotATransporter,
    NotPackageOwner,
    SpecialtyIncompatible,
    TransporterUnavailable,
)
from parcelcarrier.domain.delivery.lifecycle import (
    RELEASING_PACKAGE_STATUSES,
    is_assignable,
    transition_package,
    transition_transporter,
)
from parcelcarrier.domain.delivery.matcher import AssignmentMatcher
from parcelcarrier.domain.delivery.ports import (
    PackageQuery,
    PackageRepository,
    UserQuery,
    UserRepository,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_STALE_CLAIM_SECONDS = 60.0
NO_ELIGIBLE_TRANSPORTER = "no eligible transporter"

# Returns the transporter to claim for a package, or None to stop.
Picker = Callable[[Package], Optional[Transporter]]


@dataclass(frozen=True)
class AssignmentOutcome:
    """What an assignment run did.

    Attributes:
        package: The package as stored at the end of the run.
        transporter: The transporter that took it, None if nobody did.
        attempts: Attempts made, including ones lost to a race.
    """

    package: Package
    transporter: Optional[Transporter]
    attempts: int

    @property
    def assigned(self) -> bool:
        return self.transporter is not None


class AssignmentCoordinator:
    """Runs assignments and releases against the repositories."""

    def __init__(
        self,
        user_repo: UserRepository,
        package_repo: PackageRepository,
        matcher: Optional[AssignmentMatcher] = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        stale_claim_seconds: float = DEFAULT_STALE_CLAIM_SECONDS,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._user_repo = user_repo
        self._package_repo = package_repo
        self._matcher = matcher or AssignmentMatcher()
        self._max_attempts = max_attempts
        # A claim older than this with no package in transit is abandoned.
        self._stale_claim = timedelta(seconds=stale_claim_seconds)

    # ── Loading ──────────────────────────────────────────────────────

    def load_package(self, package_id: str) -> Package:
        package = self._package_repo.find_by_id(package_id)
        if package is None:
            raise EntityNotFound("package", package_id)
        return package

    def load_transporter(self, user_id: str) -> Transporter:
        user = self._user_repo.find_by_id(user_id)
        if user is None:
            raise EntityNotFound("user", user_id)
        if not isinstance(user, Transporter):
            raise NotATransporter(user_id)
        return user

    # ── Assignment ───────────────────────────────────────────────────

    def assign_pending(self, package_id: str) -> AssignmentOutcome:
        """Give a pending package to the best eligible transporter.

        Returns an outcome with no transporter when nobody is eligible.

        Raises:
            EntityNotFound: If the package does not exist.
            InvalidTransition: If the package is not PENDING.
            ConcurrencyConflict: If every attempt lost a race.
        """
        return self._run(package_id, self._best_candidate)

    def assign_to(self, package_id: str, transporter_id: str) -> AssignmentOutcome:
        """Give a pending package to a chosen transporter.

        Raises:
            EntityNotFound: If the package or user does not exist.
            InvalidTransition: If the package is not PENDING.
            NotATransporter: If the user is an admin.
            SpecialtyIncompatible: If the specialty differs from the package type.
            TransporterUnavailable: If the transporter is inactive or busy.
            ConcurrencyConflict: If every attempt lost a race.
        """

        def chosen(package: Package) -> Transporter:
            transporter = self.load_transporter(transporter_id)
            if not transporter.can_handle(package.type):
                raise SpecialtyIncompatible(package.type, transporter.specialty)
            if not transporter.can_take_new_package():
                raise TransporterUnavailable(
                    transporter.id, transporter.status, transporter.active
                )
            return transporter

        return self._run(package_id, chosen)

    def _best_candidate(self, package: Package) -> Optional[Transporter]:
        candidates = self._user_repo.find_many(
            UserQuery(
                role=Role.TRANSPORTER,
                specialty=Specialty(package.type.value),
                status=TransporterStatus.AVAILABLE,
                active=True,
            )
        )
        return self._matcher.find_eligible_transporter(package, candidates)

    def _run(self, package_id: str, pick: Picker) -> AssignmentOutcome:
        attempt = 0
        while True:
            attempt += 1
            package = self.load_package(package_id)
            if not is_assignable(package):
                raise InvalidTransition(
                    "package", package.id, package.status, PackageStatus.IN_TRANSIT
                )

            transporter = pick(package)
            if transporter is None:
                logger.info(
                    "No eligible transporter for package=%s type=%s (attempt %d)",
                    package.id,
                    package.type.value,
                    attempt,
                )
                return AssignmentOutcome(package, None, attempt)

            try:
                assigned, claimed = self._claim_and_commit(package, transporter)
            except ConcurrencyConflict as exc:
                if attempt >= self._max_attempts:
                    logger.error(
                        "Giving up on package=%s after %d attempts",
                        package_id,
                        attempt,
                    )
                    raise
                logger.warning(
                    "Assignment of package=%s lost a race (attempt %d/%d): %s",
                    package.id,
                    attempt,
                    self._max_attempts,
                    exc.message,
                )
                continue

            logger.info(
                "Assigned package=%s to transporter=%s (attempt %d)",
                assigned.id,
                claimed.id,
                attempt,
            )
            return AssignmentOutcome(assigned, claimed, attempt)

    def _claim_and_commit(
        self, package: Package, transporter: Transporter
    ) -> tuple[Package, Transporter]:
        # Both transitions are checked before anything is written.
        moved = transition_package(package, PackageStatus.IN_TRANSIT, transporter.id)
        busy = transition_transporter(transporter, TransporterStatus.ON_DELIVERY)

        claimed = self._user_repo.update(
            transporter.id,
            {"status": busy.status, "updated_at": busy.updated_at},
            expected_status=TransporterStatus.AVAILABLE,
        )
        try:
            stored = self._package_repo.update(
                package.id,
                {
                    "status": moved.status,
                    "transporter_id": moved.transporter_id,
                    "updated_at": moved.updated_at,
                },
                expected_status=PackageStatus.PENDING,
            )
        except Exception as commit_error:
            logger.warning(
                "Commit of package=%s failed after claiming transporter=%s: %s",
                package.id,
                claimed.id,
                commit_error,
            )
            self._undo_claim(package.id, claimed, commit_error)
            raise
        return stored, claimed

    def _undo_claim(
        self, package_id: str, claimed: User, commit_error: Exception
    ) -> None:
        """Set a claimed transporter back to AVAILABLE after a failed commit.

        If that fails too, the commit error is raised with the release
        failure as its cause. A lost commit race is not raised as such,
        or the retry loop would leave the claim behind.
        """
        try:
            self._user_repo.update(
                claimed.id,
                {"status": TransporterStatus.AVAILABLE, "updated_at": utcnow()},
                expected_status=TransporterStatus.ON_DELIVERY,
            )
        except Exception as release_error:
            logger.error(
                "Could not release claimed transporter=%s after failed commit "
                "of package=%s: %s",
                claimed.id,
                package_id,
                release_error,
            )
            if isinstance(commit_error, ConcurrencyConflict):
                raise ClaimRollbackFailed(
                    package_id, claimed.id, commit_error
                ) from release_error
            raise commit_error from release_error
        logger.info("Released claimed transporter=%s", claimed.id)

    # ── Release ──────────────────────────────────────────────────────

    def release(self, transporter_id: str) -> Optional[Transporter]:
        """Set a transporter back to AVAILABLE after its package left IN_TRANSIT.

        Returns the transporter as stored, or None if the id does not name
        a transporter.
        """
        user = self._user_repo.find_by_id(transporter_id)
        if not isinstance(user, Transporter):
            logger.warning(
                "Cannot release transporter=%s: no such transporter", transporter_id
            )
            return None
        if user.is_available:
            return user

        freed = transition_transporter(user, TransporterStatus.AVAILABLE)
        try:
            stored = self._user_repo.update(
                user.id,
                {"status": freed.status, "updated_at": freed.updated_at},
                expected_status=TransporterStatus.ON_DELIVERY,
            )
        except ConcurrencyConflict:
            # Freed by a concurrent release.
            logger.info("Transporter=%s was already released", user.id)
            return self.load_transporter(user.id)
        logger.info("Released transporter=%s", stored.id)
        return stored

    def _carries_package(self, transporter_id: str) -> bool:
        return (
            self._package_repo.count(
                PackageQuery(
                    transporter_id=transporter_id, status=PackageStatus.IN_TRANSIT
                )
            )
            > 0
        )

    def stranded_by(self, package: Package) -> Optional[Transporter]:
        """Return the transporter a closed package left ON_DELIVERY, if any.

        That happens when the package reached DELIVERED or CANCELLED but the
        release that should have followed failed. A transporter claimed
        again after the package closed is not stranded.
        """
        if (
            package.status not in RELEASING_PACKAGE_STATUSES
            or not package.transporter_id
        ):
            return None
        user = self._user_repo.find_by_id(package.transporter_id)
        if not isinstance(user, Transporter) or user.is_available:
            return None
        if (
            user.updated_at is not None
            and package.updated_at is not None
            and user.updated_at > package.updated_at
        ):
            return None
        if self._carries_package(user.id):
            return None
        return user

    def _last_closed_package(self, transporter_id: str) -> Optional[Package]:
        closed = [
            package
            for status in RELEASING_PACKAGE_STATUSES
            for package in self._package_repo.find_many(
                PackageQuery(transporter_id=transporter_id, status=status)
            )
        ]
        return max(
            closed, key=lambda p: p.updated_at or p.created_at, default=None
        )

    def _is_stranded(self, transporter: Transporter) -> bool:
        last = self._last_closed_package(transporter.id)
        if last is not None and self.stranded_by(last) is not None:
            return True
        # A claim whose package commit never landed.
        claimed_at = transporter.updated_at or transporter.created_at
        if utcnow() - claimed_at < self._stale_claim:
            return False
        return not self._carries_package(transporter.id)

    def reconcile(self) -> list[Transporter]:
        """Release every transporter left ON_DELIVERY without a package in transit.

        Covers a release that failed after a delivery or cancellation, and
        a claim whose rollback failed. Recent claims are left alone, since
        their package commit may still be in flight.
        """
        busy = self._user_repo.find_many(
            UserQuery(role=Role.TRANSPORTER, status=TransporterStatus.ON_DELIVERY)
        )
        released = []
        for transporter in busy:
            if not self._is_stranded(transporter):
                continue
            logger.warning(
                "Transporter=%s is ON_DELIVERY with no package in transit",
                transporter.id,
            )
            freed = self.release(transporter.id)
            if freed is not None and freed.is_available:
                released.append(freed)
        return released

    # ── Status changes ───────────────────────────────────────────────

    def change_status(
        self, package_id: str, target: PackageStatus
    ) -> tuple[Package, Package]:
        """Move a package to a new status with a conditional update.

        Returns:
            The package before and after the change.

        Raises:
            EntityNotFound: If the package does not exist.
            InvalidTransition: If target is not reachable from the current status.
            ConcurrencyConflict: If every attempt lost a race.
        """
        attempt = 0
        while True:
            attempt += 1
            before = self.load_package(package_id)
            moved = transition_package(before, target)
            try:
                after = self._package_repo.update(
                    package_id,
                    {"status": moved.status, "updated_at": moved.updated_at},
                    expected_status=before.status,
                )
            except ConcurrencyConflict:
                if attempt >= self._max_attempts:
                    raise
                logger.warning(
                    "Status change of package=%s lost a race (attempt %d/%d)",
                    package_id,
                    attempt,
                    self._max_attempts,
                )
                continue
            return before, after

    def close(
        self,
        package_id: str,
        target: PackageStatus,
        actor_id: Optional[str] = None,
    ) -> tuple[Package, Optional[Transporter]]:
        """Deliver or cancel a package and free the transporter carrying it.

        Repeating the call after the release failed finishes the release
        instead of rejecting the transition.

        Args:
            package_id: Package to close.
            target: DELIVERED or CANCELLED.
            actor_id: When given, the package must be carried by this transporter.

        Returns:
            The package in its new status and the released transporter,
            None if the package was not in transit.

        Raises:
            NotPackageOwner: If actor_id is not the package's transporter.
        """
        current = self.load_package(package_id)
        if actor_id is not None and current.transporter_id != actor_id:
            raise NotPackageOwner(package_id, actor_id)

        if current.status is target:
            stranded = self.stranded_by(current)
            if stranded is not None:
                logger.warning(
                    "Package=%s already %s, finishing release of transporter=%s",
                    package_id,
                    target.value,
                    stranded.id,
                )
                return current, self.release(stranded.id)

        before, after = self.change_status(package_id, target)
        logger.info(
            "Package=%s moved %s -> %s",
            package_id,
            before.status.value,
            after.status.value,
        )
        freed = (
            target in RELEASING_PACKAGE_STATUSES
            and before.status is PackageStatus.IN_TRANSIT
            and before.transporter_id
        )
        if not freed:
            return after, None
        return after, self.release(before.transporter_id)


def to_assignment_result(outcome: AssignmentOutcome) -> AssignmentResult:
    return AssignmentResult(
        package=to_package_result(outcome.package),
        assigned=outcome.assigned,
        transporter_id=outcome.transporter.id if outcome.transporter else None,
        attempts=outcome.attempts,
        reason=None if outcome.assigned else NO_ELIGIBLE_TRANSPORTER,
    )
