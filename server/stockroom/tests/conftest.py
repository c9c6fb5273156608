import pytest
from fastapi.testclient import TestClient

from stockroom.auth import ROLE_ADMIN, ROLE_STOREKEEPER, ROLE_VIEWER, get_current_user
from stockroom.catalog.service import create_product
from stockroom.config import Settings
from stockroom.db import Database, build_engine
from stockroom.ledger.audit import AuditHook
from stockroom.ledger.service import StockLedger
from stockroom.ledger.store import LedgerStore
from stockroom.main import create_app
from stockroom.models import User


class RecordingSink:
    def __init__(self):
        self.facts = []

    def record(self, fact):
        self.facts.append(fact)


class FailingSink:
    def __init__(self):
        self.calls = 0

    def record(self, fact):
        self.calls += 1
        raise ConnectionError("audit sink offline")


def add_user(database, username="admin", role=ROLE_ADMIN) -> int:
    with database.session() as db:
        user = User(
            username=username,
            email=f"{username}@stockroom.test",
            hashed_password="x",
            full_name=username.title(),
            role=role,
            is_active=True,
        )
        db.add(user)
        db.commit()
        return user.id


def add_product(database, actor, sku="SKU-1", name="Widget", reorder_level=10, **fields) -> int:
    with database.session() as db:
        product = create_product(
            db,
            {"sku": sku, "name": name, "reorder_level": reorder_level, **fields},
            created_by=actor,
        )
        db.commit()
        return product.id


@pytest.fixture()
def database(tmp_path):
    database = Database(build_engine(f"sqlite:///{tmp_path / 'ledger.db'}", lock_timeout_seconds=5.0))
    database.init(create_schema=True)
    yield database
    database.dispose()


@pytest.fixture()
def actor(database):
    return add_user(database)


@pytest.fixture()
def sink():
    return RecordingSink()


@pytest.fixture()
def store(database):
    return LedgerStore(database)


@pytest.fixture()
def ledger(store, sink):
    return StockLedger(store, AuditHook(sink), retry_attempts=3, retry_backoff_seconds=0)


@pytest.fixture()
def product_id(database, actor):
    return add_product(database, actor)


@pytest.fixture()
def app_settings(tmp_path):
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'api.db'}",
        create_schema=True,
        audit_async=False,
        store_retry_backoff_seconds=0,
        _env_file=None,
    )


def _override_user(app, role):
    user_id = app.state.test_users[role]
    app.dependency_overrides[get_current_user] = lambda: User(
        id=user_id,
        username=role.lower(),
        email=f"{role.lower()}@stockroom.test",
        hashed_password="x",
        role=role,
        is_active=True,
    )


@pytest.fixture()
def client(request, app_settings):
    app = create_app(app_settings)
    with TestClient(app) as test_client:
        database = app.state.database
        app.state.test_users = {
            ROLE_ADMIN: add_user(database, "admin", ROLE_ADMIN),
            ROLE_STOREKEEPER: add_user(database, "storekeeper", ROLE_STOREKEEPER),
            ROLE_VIEWER: add_user(database, "viewer", ROLE_VIEWER),
        }
        if not request.node.get_closest_marker("real_auth"):
            _override_user(app, ROLE_ADMIN)
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def login_as(client):
    def _login_as(role):
        _override_user(client.app, role)

    return _login_as
