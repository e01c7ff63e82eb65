"""
Application configuration.

Loads settings from environment variables and .env file.
All configuration is centralized here, with no scattered magic strings.
"""

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment.

    Attributes:
        project_name: Display name for the service.
        version: Current version string.
        debug: Enable debug mode. Must be False in production.
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR).
        database_url: SQLAlchemy URL of the persistence store. When unset,
            an in-process memory store is used.
        persistence_timeout_seconds: Upper bound for any single persistence call.
        max_assignment_attempts: How many times an assignment is retried after
            losing a race on a conditional update.
        stale_claim_seconds: Age after which a transporter left ON_DELIVERY with
            no package in transit is released by the dispatcher.
        password_hash_scheme: passlib scheme used to hash user passwords.
        auto_dispatch: Try to assign pending packages whenever a package is
            created or a transporter becomes available again.
        bootstrap_admin_login: Login of the admin account created at deploy time.
        bootstrap_admin_password: Password for that account. Bootstrap is
            skipped when it is not set.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    project_name: str = "ParcelCarrier"
    version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"

    database_url: Optional[str] = None
    persistence_timeout_seconds: float = 5.0
    max_assignment_attempts: int = 3
    stale_claim_seconds: float = 60.0

    password_hash_scheme: str = "pbkdf2_sha256"
    auto_dispatch: bool = False

    bootstrap_admin_login: str = "admin"
    bootstrap_admin_password: Optional[str] = None


settings = Settings()
