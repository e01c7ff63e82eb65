"""
CLI entry point for deployment-time tasks.

Usage:
    # Create the tables and indexes of the configured database
    parcelcarrier init-db

    # Create or repair the admin account from settings
    parcelcarrier bootstrap-admin
    parcelcarrier bootstrap-admin --login root --password s3cret

    # Assign every pending package that has a free transporter
    parcelcarrier dispatch --limit 100
"""

import argparse
import logging
import sys
from typing import Optional, Sequence

from parcelcarrier.application.delivery.dtos import (
    BootstrapAdminCommand,
    DispatchPendingPackagesCommand,
)
from parcelcarrier.core.config import settings
from parcelcarrier.dependencies import (
    build_container,
    get_bootstrap_admin_use_case,
    get_dispatch_pending_packages_use_case,
)
from parcelcarrier.domain.delivery.errors import DeliveryDomainError
from parcelcarrier.shared.logging import configure_logging

logger = logging.getLogger(__name__)


def cmd_init_db(args: argparse.Namespace) -> int:
    """Create the schema. Building the container does it for SQL stores."""
    if not settings.database_url:
        logger.error("DATABASE_URL is not set; nothing to initialise.")
        return 1
    build_container(settings)
    return 0


def cmd_bootstrap_admin(args: argparse.Namespace) -> int:
    """Create the admin account, or re-activate and reset it."""
    login = args.login or settings.bootstrap_admin_login
    password = args.password or settings.bootstrap_admin_password
    if not password:
        logger.warning("No bootstrap admin password configured, skipping.")
        return 0

    use_case = get_bootstrap_admin_use_case(build_container(settings))
    result = use_case.execute(BootstrapAdminCommand(login=login, password=password))
    if result.created:
        logger.info("Admin %s created.", login)
    elif result.changed:
        logger.info("Admin %s updated.", login)
    else:
        logger.info("Admin %s unchanged.", login)
    return 0


def cmd_dispatch(args: argparse.Namespace) -> int:
    """Assign pending packages, oldest first."""
    use_case = get_dispatch_pending_packages_use_case(build_container(settings))
    result = use_case.execute(
        DispatchPendingPackagesCommand(type=args.type, limit=args.limit)
    )
    logger.info(
        "Assigned %d of %d pending package(s).",
        result.assigned_count,
        len(result.assignments),
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="ParcelCarrier CLI")
    subparsers = parser.add_subparsers(dest="command", required=True)

    init_parser = subparsers.add_parser("init-db", help="Create database schema")
    init_parser.set_defaults(func=cmd_init_db)

    admin_parser = subparsers.add_parser(
        "bootstrap-admin", help="Ensure the admin account exists"
    )
    admin_parser.add_argument(
        "--login", default=None,
        help="Admin login (default: BOOTSTRAP_ADMIN_LOGIN)",
    )
    admin_parser.add_argument(
        "--password", default=None,
        help="Admin password (default: BOOTSTRAP_ADMIN_PASSWORD)",
    )
    admin_parser.set_defaults(func=cmd_bootstrap_admin)

    dispatch_parser = subparsers.add_parser(
        "dispatch", help="Assign pending packages to free transporters"
    )
    dispatch_parser.add_argument(
        "--type", default=None, choices=["STANDARD", "FRAGILE", "REFRIGERATED"],
        help="Only packages of this type",
    )
    dispatch_parser.add_argument(
        "--limit", type=int, default=None,
        help="Maximum number of pending packages to try",
    )
    dispatch_parser.set_defaults(func=cmd_dispatch)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    configure_logging(settings.log_level)
    args = build_parser().parse_args(argv)
    try:
        return args.func(args)
    except DeliveryDomainError as exc:
        logger.error("%s failed: %s", args.command, exc.message)
        return 2


if __name__ == "__main__":
    sys.exit(main())
