"""
Domain service: Transporter assignment matching.

Selects which transporter should take a pending package. Pure logic:
the caller supplies the candidates and commits the result.

A transporter is eligible for a package when it is a transporter,
active, AVAILABLE, and its specialty equals the package type. Ties are
broken by an ordering key so the choice is reproducible.
"""

from typing import Any, Callable, Iterable, Optional

from parcelcarrier.domain.delivery.entities import Package, Transporter, User
from parcelcarrier.domain.delivery.lifecycle import (
    ELIGIBLE_TRANSPORTER_STATUSES,
    is_assignable,
)

OrderKey = Callable[[Transporter], Any]


def first_come_order(transporter: Transporter) -> tuple:
    """Default ordering: earliest created first, login as tie breaker."""
    return (transporter.created_at, transporter.login)


class AssignmentMatcher:
    """Domain service for matching pending packages to transporters."""

    def __init__(self, order_key: OrderKey = first_come_order) -> None:
        """Initialize the matcher.

        Args:
            order_key: Sort key applied to eligible transporters; the
                smallest key wins.
        """
        self._order_key = order_key

    @staticmethod
    def is_eligible(package: Package, user: User) -> bool:
        """Return True if the user may take the package right now."""
        return (
            isinstance(user, Transporter)
            and user.active
            and user.status in ELIGIBLE_TRANSPORTER_STATUSES
            and user.can_handle(package.type)
        )

    def eligible_candidates(
        self, package: Package, candidates: Iterable[User]
    ) -> list[Transporter]:
        """Return every eligible candidate, best first.

        A package that is not waiting for assignment has no candidates.
        """
        if not is_assignable(package):
            return []
        eligible = [c for c in candidates if self.is_eligible(package, c)]
        eligible.sort(key=self._order_key)
        return eligible

    def find_eligible_transporter(
        self, package: Package, candidates: Iterable[User]
    ) -> Optional[Transporter]:
        """Return the transporter that should take the package, or None.

        None means "no assignment now": the package stays PENDING and a
        later attempt may succeed.
        """
        eligible = self.eligible_candidates(package, candidates)
        return eligible[0] if eligible else None
