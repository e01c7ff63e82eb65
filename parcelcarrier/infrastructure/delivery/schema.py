"""
SQL schema for the delivery store.

Declares the ``users`` and ``packages`` tables with SQLAlchemy Core and
the secondary indexes the eligibility and listing queries rely on:

    users.login                      unique
    users(role, specialty, status)   transporter eligibility
    packages.status
    packages.transporter_id
    packages(type, status)
    packages.destination_address     address search
    packages.created_at              oldest-first listing
"""

import logging

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    Index,
    MetaData,
    String,
    Table,
    Text,
)
from sqlalchemy.engine import Engine

from parcelcarrier.infrastructure.delivery.database import translate_errors

logger = logging.getLogger(__name__)

metadata = MetaData()

users = Table(
    "users",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("login", String(50), nullable=False),
    Column("password", String(255), nullable=False),
    Column("role", String(16), nullable=False),
    Column("active", Boolean, nullable=False),
    Column("specialty", String(16)),
    Column("status", String(16)),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True)),
    Index("ux_users_login", "login", unique=True),
    Index("ix_users_role_specialty_status", "role", "specialty", "status"),
)

packages = Table(
    "packages",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("type", String(16), nullable=False),
    Column("weight", Float, nullable=False),
    Column("destination_address", String(500), nullable=False),
    Column("status", String(16), nullable=False),
    Column("transporter_id", String(64)),
    Column("handling_instructions", Text),
    Column("min_temperature", Float),
    Column("max_temperature", Float),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True)),
    Index("ix_packages_status", "status"),
    Index("ix_packages_transporter_id", "transporter_id"),
    Index("ix_packages_type_status", "type", "status"),
    Index("ix_packages_destination_address", "destination_address"),
    Index("ix_packages_created_at", "created_at"),
)


def create_schema(engine: Engine) -> None:
    """Create missing tables and indexes. Safe to run repeatedly."""
    with translate_errors("schema.create"):
        metadata.create_all(engine)
    logger.info(
        "Delivery schema ready on %s",
        engine.url.render_as_string(hide_password=True),
    )
