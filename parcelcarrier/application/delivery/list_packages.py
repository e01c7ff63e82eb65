"""
Use case: List packages with filters.

Input: ListPackagesQuery (type, status, transporter_id, address_contains,
    offset, limit)
Output: PackagePage (oldest first, with the unpaged total)
Side effects: None.
Failure cases: ValidationError (unknown type or status, bad paging).
"""

import logging

from parcelcarrier.application.delivery.dtos import (
    ListPackagesQuery,
    PackagePage,
    to_package_result,
)
from parcelcarrier.domain.delivery import documents as doc
from parcelcarrier.domain.delivery.entities import PackageStatus, PackageType
from parcelcarrier.domain.delivery.ports import PackageQuery, PackageRepository
from parcelcarrier.domain.delivery.validation import (
    PACKAGE,
    parse_enum_filter,
    validate_paging,
)

logger = logging.getLogger(__name__)


class ListPackagesUseCase:
    def __init__(self, package_repo: PackageRepository) -> None:
        self._package_repo = package_repo

    def execute(self, query: ListPackagesQuery) -> PackagePage:
        validate_paging(PACKAGE, query.offset, query.limit)
        criteria = PackageQuery(
            type=parse_enum_filter(PACKAGE, doc.TYPE, PackageType, query.type),
            status=parse_enum_filter(PACKAGE, doc.STATUS, PackageStatus, query.status),
            transporter_id=query.transporter_id,
            address_contains=query.address_contains,
            offset=query.offset,
            limit=query.limit,
        )
        logger.debug("Listing packages with %s", criteria)

        packages = self._package_repo.find_many(criteria)
        return PackagePage(
            items=tuple(to_package_result(p) for p in packages),
            total=self._package_repo.count(criteria),
            offset=query.offset,
            limit=query.limit,
        )
