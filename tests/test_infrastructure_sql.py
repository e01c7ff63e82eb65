"""
Tests for the SQL adapters, run against SQLite in memory and on disk.
"""

import threading
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.pool import StaticPool

from parcelcarrier.application.delivery.coordination import AssignmentCoordinator
from parcelcarrier.application.delivery.dtos import (
    AssignPendingPackageCommand,
    CreatePackageCommand,
    CreateUserCommand,
    ListPackagesQuery,
    MarkDeliveredCommand,
)
from parcelcarrier.core.config import Settings
from parcelcarrier.dependencies import (
    build_container,
    get_assign_pending_package_use_case,
    get_create_package_use_case,
    get_create_user_use_case,
    get_list_packages_use_case,
    get_mark_delivered_use_case,
)
from parcelcarrier.domain.delivery.entities import (
    Admin,
    FragileCargo,
    Package,
    PackageStatus,
    PackageType,
    RefrigeratedCargo,
    Role,
    Specialty,
    StandardCargo,
    Transporter,
    TransporterStatus,
)
from parcelcarrier.domain.delivery.errors import (
    ConcurrencyConflict,
    EntityNotFound,
    PersistenceUnavailable,
    ValidationError,
)
from parcelcarrier.domain.delivery.ports import PackageQuery, UserQuery
from parcelcarrier.infrastructure.delivery.database import (
    as_utc,
    build_engine,
    translate_errors,
)
from parcelcarrier.infrastructure.delivery.package_repository import (
    SqlPackageRepository,
)
from parcelcarrier.infrastructure.delivery.schema import create_schema
from parcelcarrier.infrastructure.delivery.user_repository import SqlUserRepository

T0 = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def engine():
    engine = build_engine("sqlite://", 1.0)
    create_schema(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def users(engine) -> SqlUserRepository:
    return SqlUserRepository(engine)


@pytest.fixture
def packages(engine) -> SqlPackageRepository:
    return SqlPackageRepository(engine)


def _package(minutes: int = 0, cargo=None, address: str = "4 Mill Lane") -> Package:
    return Package(
        cargo=cargo or StandardCargo(),
        weight=2.5,
        destination_address=address,
        created_at=T0 + timedelta(minutes=minutes),
    )


# ══════════════════════════════════════════════════════════════
# Users
# ══════════════════════════════════════════════════════════════


class TestSqlUserRepository:
    def test_insert_and_find(self, users) -> None:
        transporter = Transporter(
            login="driver_1",
            password="hashed",
            specialty=Specialty.FRAGILE,
            created_at=T0,
        )
        users.insert(transporter)

        stored = users.find_by_id(transporter.id)
        assert stored == transporter
        assert stored.created_at.tzinfo is not None
        assert users.find_by_login("driver_1") == transporter
        assert users.exists_by_login("driver_1") is True
        assert users.exists_by_login("nobody") is False
        assert users.find_by_id("missing") is None

    def test_admin_round_trip(self, users) -> None:
        admin = Admin(login="boss", password="hashed", created_at=T0)
        users.insert(admin)
        assert users.find_by_id(admin.id) == admin

    def test_duplicate_login_is_a_validation_error(self, users) -> None:
        users.insert(Admin(login="boss", password="hashed"))
        with pytest.raises(ValidationError) as exc_info:
            users.insert(Admin(login="boss", password="other"))
        assert exc_info.value.violations[0].rule == "unique"

    def test_update_to_taken_login_is_a_validation_error(self, users) -> None:
        users.insert(Admin(login="boss", password="hashed"))
        other = Admin(login="deputy", password="hashed")
        users.insert(other)
        with pytest.raises(ValidationError) as exc_info:
            users.update(other.id, {"login": "boss"})
        assert exc_info.value.violations[0].rule == "unique"
        assert users.find_by_id(other.id).login == "deputy"

    def test_find_many_filters_and_orders(self, users) -> None:
        users.insert(
            Transporter("late", "h", Specialty.STANDARD, created_at=T0 + timedelta(1))
        )
        users.insert(Transporter("early", "h", Specialty.STANDARD, created_at=T0))
        users.insert(
            Transporter(
                "busy",
                "h",
                Specialty.STANDARD,
                status=TransporterStatus.ON_DELIVERY,
                created_at=T0,
            )
        )
        users.insert(Transporter("cold", "h", Specialty.REFRIGERATED, created_at=T0))
        users.insert(Admin("boss", "h", created_at=T0))

        found = users.find_many(
            UserQuery(
                role=Role.TRANSPORTER,
                specialty=Specialty.STANDARD,
                status=TransporterStatus.AVAILABLE,
                active=True,
            )
        )
        assert [u.login for u in found] == ["early", "late"]
        assert len(users.find_many(UserQuery(offset=1, limit=2))) == 2

    def test_conditional_update(self, users) -> None:
        transporter = Transporter("driver_1", "hashed", Specialty.STANDARD)
        users.insert(transporter)

        claimed = users.update(
            transporter.id,
            {"status": TransporterStatus.ON_DELIVERY},
            expected_status=TransporterStatus.AVAILABLE,
        )
        assert claimed.status is TransporterStatus.ON_DELIVERY

        with pytest.raises(ConcurrencyConflict) as exc_info:
            users.update(
                transporter.id,
                {"status": TransporterStatus.ON_DELIVERY},
                expected_status=TransporterStatus.AVAILABLE,
            )
        assert exc_info.value.actual is TransporterStatus.ON_DELIVERY

    def test_update_unknown_user(self, users) -> None:
        with pytest.raises(EntityNotFound):
            users.update("missing", {"active": False})

    def test_role_cannot_be_updated(self, users) -> None:
        admin = Admin("boss", "hashed")
        users.insert(admin)
        with pytest.raises(ValueError):
            users.update(admin.id, {"role": Role.TRANSPORTER})


# ══════════════════════════════════════════════════════════════
# Packages
# ══════════════════════════════════════════════════════════════


class TestSqlPackageRepository:
    def test_cargo_round_trip(self, packages) -> None:
        fragile = _package(cargo=FragileCargo("Keep upright"))
        cold = _package(1, cargo=RefrigeratedCargo(-5.0, 4.0))
        packages.insert(fragile)
        packages.insert(cold)

        assert packages.find_by_id(fragile.id) == fragile
        assert packages.find_by_id(cold.id) == cold
        assert packages.find_by_id("missing") is None

    def test_filters_count_and_paging(self, packages) -> None:
        packages.insert(_package(0, address="12 Paris Street"))
        packages.insert(_package(1, address="3 Lyon Road"))
        packages.insert(_package(2, address="8 rue de PARIS"))
        packages.insert(_package(3, cargo=FragileCargo("Glass"), address="Paris"))

        paris = PackageQuery(address_contains="paris")
        assert packages.count(paris) == 3
        assert [p.destination_address for p in packages.find_many(paris)] == [
            "12 Paris Street",
            "8 rue de PARIS",
            "Paris",
        ]
        page = packages.find_many(
            PackageQuery(type=PackageType.STANDARD, offset=1, limit=1)
        )
        assert [p.destination_address for p in page] == ["3 Lyon Road"]

    def test_address_search_is_literal(self, packages) -> None:
        packages.insert(_package(0, address="Unit 100% Dock"))
        packages.insert(_package(1, address="Unit 1000 Dock"))
        assert packages.count(PackageQuery(address_contains="100%")) == 1

    def test_conditional_status_update(self, packages) -> None:
        package = _package()
        packages.insert(package)

        moved = packages.update(
            package.id,
            {"status": PackageStatus.IN_TRANSIT, "transporter_id": "t1"},
            expected_status=PackageStatus.PENDING,
        )
        assert moved.status is PackageStatus.IN_TRANSIT
        assert packages.count(PackageQuery(transporter_id="t1")) == 1

        with pytest.raises(ConcurrencyConflict) as exc_info:
            packages.update(
                package.id,
                {"status": PackageStatus.CANCELLED},
                expected_status=PackageStatus.PENDING,
            )
        assert exc_info.value.actual is PackageStatus.IN_TRANSIT

    def test_cargo_change_rewrites_columns(self, packages) -> None:
        package = _package(cargo=FragileCargo("Glass"))
        packages.insert(package)
        updated = packages.update(
            package.id, {"cargo": FragileCargo("Glass, this side up")}
        )
        assert updated.cargo == FragileCargo("Glass, this side up")

    def test_update_unknown_package(self, packages) -> None:
        with pytest.raises(EntityNotFound):
            packages.update("missing", {"weight": 1.0})


# ══════════════════════════════════════════════════════════════
# Engine helpers
# ══════════════════════════════════════════════════════════════


class TestDatabaseHelpers:
    def test_as_utc(self) -> None:
        naive = datetime(2024, 1, 1, 12, 0)
        assert as_utc(naive).tzinfo is timezone.utc
        assert as_utc(T0) is T0
        assert as_utc(None) is None

    def test_operational_error_is_unavailable(self) -> None:
        with pytest.raises(PersistenceUnavailable) as exc_info:
            with translate_errors("users.find_by_id"):
                raise OperationalError("SELECT 1", {}, Exception("database is locked"))
        assert exc_info.value.operation == "users.find_by_id"
        assert "database is locked" in exc_info.value.reason

    def test_integrity_error_passes_through(self) -> None:
        with pytest.raises(IntegrityError):
            with translate_errors("users.insert"):
                raise IntegrityError("INSERT", {}, Exception("UNIQUE constraint"))

    def test_schema_creation_is_repeatable(self, engine) -> None:
        create_schema(engine)

    def test_in_memory_sqlite_shares_one_connection(self, tmp_path) -> None:
        memory = build_engine("sqlite://", 1.0)
        on_disk = build_engine(f"sqlite:///{tmp_path / 'parcels.db'}", 1.0)
        try:
            assert isinstance(memory.pool, StaticPool)
            assert not isinstance(on_disk.pool, StaticPool)
        finally:
            memory.dispose()
            on_disk.dispose()

    def test_file_database_serialises_concurrent_claims(self, tmp_path) -> None:
        engine = build_engine(f"sqlite:///{tmp_path / 'parcels.db'}", 5.0)
        create_schema(engine)
        users = SqlUserRepository(engine)
        packages = SqlPackageRepository(engine)
        users.insert(
            Transporter(login="driver_1", password="hashed", specialty=Specialty.STANDARD)
        )
        first, second = _package(0), _package(1)
        packages.insert(first)
        packages.insert(second)
        coordinator = AssignmentCoordinator(users, packages, max_attempts=3)
        barrier = threading.Barrier(2)
        outcomes: list = []

        def assign(package_id):
            barrier.wait()
            outcomes.append(coordinator.assign_pending(package_id))

        threads = [
            threading.Thread(target=assign, args=(p.id,)) for p in (first, second)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)
        engine.dispose()

        assert sorted(o.assigned for o in outcomes) == [False, True]
        assert packages.count(PackageQuery(status=PackageStatus.IN_TRANSIT)) == 1


# ══════════════════════════════════════════════════════════════
# End to end
# ══════════════════════════════════════════════════════════════


class TestSqlContainer:
    """Use cases wired through the composition root onto SQLite."""

    def test_assign_and_deliver(self) -> None:
        container = build_container(
            Settings(_env_file=None, database_url="sqlite://", auto_dispatch=True)
        )
        assert isinstance(container.user_repo, SqlUserRepository)

        transporter = get_create_user_use_case(container).execute(
            CreateUserCommand(
                login="t1", password="s3cret", role="TRANSPORTER", specialty="STANDARD"
            )
        )
        assert container.hasher.verify(
            "s3cret", container.user_repo.find_by_id(transporter.id).password
        )

        created = get_create_package_use_case(container).execute(
            CreatePackageCommand(
                type="STANDARD", weight=5.5, destination_address="123 Paris Street"
            )
        )
        assert created.assignment.assigned is True
        assert created.package.transporter_id == transporter.id

        waiting = get_create_package_use_case(container).execute(
            CreatePackageCommand(
                type="STANDARD", weight=1.0, destination_address="5 Paris Street"
            )
        )
        assert waiting.assignment.assigned is False

        delivered = get_mark_delivered_use_case(container).execute(
            MarkDeliveredCommand(created.package.id)
        )
        assert delivered.package.status == "DELIVERED"
        assert [a.package.id for a in delivered.dispatched] == [waiting.package.id]

        page = get_list_packages_use_case(container).execute(
            ListPackagesQuery(status="IN_TRANSIT")
        )
        assert page.total == 1
        assert page.items[0].id == waiting.package.id

        with pytest.raises(EntityNotFound):
            get_assign_pending_package_use_case(container).execute(
                AssignPendingPackageCommand("missing")
            )
