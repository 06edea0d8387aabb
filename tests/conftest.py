import pytest
from fastapi.testclient import TestClient

from idregistry import IdentityRegistry, InMemoryRegistryStore, ManualClock, SQLiteRegistryStore
from idregistry_service.config import Settings
from idregistry_service.main import create_app

ADMIN = "0x1"
ALICE = "0xa11ce"
BOB = "0xb0b"
CAROL = "0xca201"


@pytest.fixture
def clock():
    return ManualClock(1_700_000_000)


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    if request.param == "memory":
        s = InMemoryRegistryStore()
    else:
        s = SQLiteRegistryStore(str(tmp_path / "registry.db"))
    yield s
    s.close()


@pytest.fixture
def registry(store, clock):
    return IdentityRegistry.bootstrap(store, ADMIN, clock)


def make_settings(**overrides):
    values = dict(
        env="dev",
        store="memory",
        caller_auth="header",
        auto_bootstrap=True,
        log_json=True,
        log_file=None,
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def app(clock):
    settings = make_settings()
    registry = IdentityRegistry.bootstrap(InMemoryRegistryStore(), ADMIN, clock)
    return create_app(settings, registry=registry, configure_logs=False)


@pytest.fixture
def client(app):
    return TestClient(app)
