"""
Tests for settings, logging, the passlib hasher and the CLI.
"""

import logging

import pytest

from parcelcarrier import cli
from parcelcarrier.core.config import Settings
from parcelcarrier.infrastructure.delivery.password_hasher import PasslibPasswordHasher
from parcelcarrier.shared.logging import RedactPasswordHashes, configure_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    level, handlers = root.level, list(root.handlers)
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


class TestSettings:
    def test_defaults(self, monkeypatch) -> None:
        for name in ("DATABASE_URL", "AUTO_DISPATCH", "BOOTSTRAP_ADMIN_PASSWORD"):
            monkeypatch.delenv(name, raising=False)
        config = Settings(_env_file=None)
        assert config.database_url is None
        assert config.max_assignment_attempts == 3
        assert config.auto_dispatch is False
        assert config.bootstrap_admin_password is None
        assert config.stale_claim_seconds == 60.0

    def test_reads_environment(self, monkeypatch) -> None:
        monkeypatch.setenv("DATABASE_URL", "sqlite:///parcels.db")
        monkeypatch.setenv("MAX_ASSIGNMENT_ATTEMPTS", "5")
        monkeypatch.setenv("AUTO_DISPATCH", "true")
        config = Settings(_env_file=None)
        assert config.database_url == "sqlite:///parcels.db"
        assert config.max_assignment_attempts == 5
        assert config.auto_dispatch is True


class TestLogging:
    def test_level_is_applied(self, restore_root_logger) -> None:
        configure_logging("debug")
        assert restore_root_logger.level == logging.DEBUG
        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING

    def test_unknown_level_falls_back_to_info(self, restore_root_logger) -> None:
        configure_logging("chatty")
        assert restore_root_logger.level == logging.INFO

    def test_root_handlers_mask_password_hashes(self, restore_root_logger) -> None:
        configure_logging("info")
        assert all(
            any(isinstance(f, RedactPasswordHashes) for f in handler.filters)
            for handler in restore_root_logger.handlers
        )

    def test_password_hash_is_redacted(self) -> None:
        hashed = PasslibPasswordHasher().hash("s3cret")
        record = logging.LogRecord(
            "parcelcarrier", logging.INFO, __file__, 1, "stored %s", (hashed,), None
        )
        assert RedactPasswordHashes().filter(record) is True
        assert record.getMessage() == "stored [REDACTED]"

    def test_plain_messages_are_untouched(self) -> None:
        record = logging.LogRecord(
            "parcelcarrier",
            logging.INFO,
            __file__,
            1,
            "Released transporter=%s",
            ("t1",),
            None,
        )
        RedactPasswordHashes().filter(record)
        assert record.args == ("t1",)
        assert record.getMessage() == "Released transporter=t1"


class TestPasslibPasswordHasher:
    def test_hash_and_verify(self) -> None:
        hasher = PasslibPasswordHasher()
        hashed = hasher.hash("s3cret")
        assert hashed != "s3cret"
        assert hashed.startswith("$pbkdf2-sha256$")
        assert hasher.verify("s3cret", hashed)
        assert not hasher.verify("wrong", hashed)

    def test_unrecognised_hash_does_not_verify(self) -> None:
        assert PasslibPasswordHasher().verify("s3cret", "not-a-hash") is False


class TestCli:
    """CLI commands against the in-memory store unless a URL is set."""

    @pytest.fixture(autouse=True)
    def _restore_logging(self, restore_root_logger):
        yield

    def _use(self, monkeypatch, **overrides) -> Settings:
        config = Settings(_env_file=None, **overrides)
        monkeypatch.setattr(cli, "settings", config)
        return config

    def test_init_db_needs_url(self, monkeypatch) -> None:
        self._use(monkeypatch)
        assert cli.main(["init-db"]) == 1

    def test_init_db_creates_sqlite_file(self, monkeypatch, tmp_path) -> None:
        path = tmp_path / "parcels.db"
        self._use(monkeypatch, database_url=f"sqlite:///{path}")
        assert cli.main(["init-db"]) == 0
        assert path.exists()

    def test_bootstrap_admin_without_password_is_skipped(self, monkeypatch) -> None:
        self._use(monkeypatch)
        assert cli.main(["bootstrap-admin"]) == 0

    def test_bootstrap_admin(self, monkeypatch) -> None:
        self._use(monkeypatch, bootstrap_admin_password="s3cret")
        assert cli.main(["bootstrap-admin", "--login", "root"]) == 0

    def test_domain_error_exit_code(self, monkeypatch) -> None:
        self._use(monkeypatch)
        assert cli.main(["bootstrap-admin", "--password", "abc"]) == 2

    def test_dispatch(self, monkeypatch) -> None:
        self._use(monkeypatch)
        assert cli.main(["dispatch", "--type", "FRAGILE", "--limit", "10"]) == 0

    def test_unknown_type_is_rejected(self, monkeypatch) -> None:
        self._use(monkeypatch)
        with pytest.raises(SystemExit):
            cli.main(["dispatch", "--type", "HEAVY"])
