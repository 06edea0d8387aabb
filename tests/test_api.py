"""HTTP boundary tests with header caller binding."""

import pytest
from fastapi.testclient import TestClient

from idregistry import (
    FailingClock,
    IdentityRegistry,
    InMemoryRegistryStore,
    NULL_PRINCIPAL,
    SQLiteRegistryStore,
    normalize_principal,
)
from idregistry_service.main import create_app

from conftest import make_settings

ALICE = "0xa11ce"
BOB = "0xb0b"
CAROL = "0xca201"


def register(client, caller, name):
    return client.post("/v1/identities", json={"name": name}, headers={"X-Principal": caller})


def attest(client, caller, target):
    return client.post(f"/v1/identities/{target}/attestations", headers={"X-Principal": caller})


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "ok"
    assert body["bootstrapped"] is True
    assert "memory" in body["components"]


def test_register_and_lookup(client):
    r = register(client, ALICE, "Alice")
    assert r.status_code == 201
    assert r.json() == {
        "principal": normalize_principal(ALICE),
        "name": "Alice",
        "verified": False,
        "attested_at": 0,
        "attested_by": NULL_PRINCIPAL,
    }

    r = client.get(f"/v1/identities/{ALICE}")
    assert r.status_code == 200
    assert r.json()["name"] == "Alice"


def test_duplicate_registration_conflict(client):
    register(client, ALICE, "Alice")
    r = register(client, ALICE, "Other")
    assert r.status_code == 409
    assert r.json()["error"] == "ALREADY_EXISTS"
    assert client.get(f"/v1/identities/{ALICE}").json()["name"] == "Alice"


def test_attest_and_view(client, clock):
    register(client, ALICE, "John Doe")
    assert client.get(f"/v1/identities/{ALICE}/view").json() == ["John Doe", False, "0", NULL_PRINCIPAL]

    r = attest(client, BOB, ALICE)
    assert r.status_code == 200
    assert r.json()["verified"] is True
    assert r.json()["attested_by"] == normalize_principal(BOB)

    view = client.get(f"/v1/identities/{ALICE}/view").json()
    assert view == ["John Doe", True, str(clock.now()), normalize_principal(BOB)]


def test_last_writer_wins_over_http(client, clock):
    register(client, ALICE, "n1")
    attest(client, BOB, ALICE)
    clock.advance(5)
    attest(client, CAROL, ALICE)
    body = client.get(f"/v1/identities/{ALICE}").json()
    assert body["attested_by"] == normalize_principal(CAROL)
    assert body["attested_at"] == clock.now()


def test_self_attestation_over_http(client):
    register(client, ALICE, "")
    r = attest(client, ALICE, ALICE)
    assert r.status_code == 200
    assert r.json()["name"] == ""
    assert r.json()["attested_by"] == normalize_principal(ALICE)


def test_unregistered_target(client):
    assert attest(client, BOB, ALICE).status_code == 404
    r = client.get(f"/v1/identities/{ALICE}")
    assert r.status_code == 404
    assert r.json()["error"] == "NOT_FOUND"
    assert client.get(f"/v1/identities/{ALICE}/view").status_code == 404
    assert client.get(f"/v1/identities/{ALICE}/attestations").status_code == 404


def test_missing_caller_header(client):
    r = client.post("/v1/identities", json={"name": "Alice"})
    assert r.status_code == 401
    assert r.json()["error"] == "CALLER_REQUIRED"


@pytest.mark.parametrize("caller", ["0x0", "alice", "0xzz"])
def test_invalid_caller_header(client, caller):
    r = register(client, caller, "x")
    assert r.status_code == 400
    assert r.json()["error"] == "INVALID_PRINCIPAL"


def test_invalid_target_path(client):
    assert client.get("/v1/identities/not-an-address").status_code == 400
    assert attest(client, BOB, "nope").status_code == 400


def test_name_must_be_string(client):
    r = client.post("/v1/identities", json={"name": 12}, headers={"X-Principal": ALICE})
    assert r.status_code == 422
    r = client.post("/v1/identities", json={}, headers={"X-Principal": ALICE})
    assert r.status_code == 422


def test_history_and_journal_proof(client, clock):
    register(client, ALICE, "Alice")
    attest(client, BOB, ALICE)
    clock.advance()
    attest(client, CAROL, ALICE)

    history = client.get(f"/v1/identities/{ALICE}/attestations").json()
    assert [e["attester"] for e in history] == [normalize_principal(BOB), normalize_principal(CAROL)]
    assert history[1]["prev_entry_hash"] == history[0]["entry_hash"]

    proof = client.get("/v1/journal/proof").json()
    assert proof == {"entries": 2, "head_entry_hash": history[1]["entry_hash"], "valid": True}


def test_registry_info(client):
    register(client, ALICE, "Alice")
    info = client.get("/v1/registry").json()
    assert info["admin"] == normalize_principal("0x1")
    assert info["records"] == 1
    assert info["backend"] == "memory"


def test_request_id_echoed(client):
    r = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert r.headers["X-Request-ID"] == "req-123"
    assert client.get("/health").headers["X-Request-ID"]


def test_clock_failure_is_server_error():
    registry = IdentityRegistry.bootstrap(InMemoryRegistryStore(), "0x1", FailingClock())
    client = TestClient(create_app(make_settings(), registry=registry, configure_logs=False))
    register(client, ALICE, "Alice")
    r = attest(client, BOB, ALICE)
    assert r.status_code == 500
    assert r.json()["error"] == "CLOCK_UNAVAILABLE"
    assert client.get(f"/v1/identities/{ALICE}").json()["verified"] is False


def test_unbootstrapped_registry_unavailable():
    settings = make_settings(auto_bootstrap=False)
    client = TestClient(create_app(settings, configure_logs=False))
    assert client.get("/health").json()["bootstrapped"] is False
    r = register(client, ALICE, "Alice")
    assert r.status_code == 503
    assert r.json()["error"] == "REGISTRY_NOT_INITIALIZED"


def test_auto_bootstrap_from_settings():
    settings = make_settings(admin="0xad31")
    client = TestClient(create_app(settings, configure_logs=False))
    assert client.get("/v1/registry").json()["admin"] == normalize_principal("0xad31")


def test_sqlite_backend_from_settings(tmp_path):
    settings = make_settings(store="sqlite", db_path=str(tmp_path / "svc.db"))
    client = TestClient(create_app(settings, configure_logs=False))
    assert register(client, ALICE, "Alice").status_code == 201
    assert attest(client, BOB, ALICE).status_code == 200

    again = TestClient(create_app(settings, configure_logs=False))
    assert again.get(f"/v1/identities/{ALICE}").json()["verified"] is True


def test_invalid_settings_rejected():
    with pytest.raises(ValueError):
        create_app(make_settings(store="redis"), configure_logs=False)


def test_startup_tolerates_concurrent_bootstrap(tmp_path, monkeypatch):
    path = str(tmp_path / "race.db")
    IdentityRegistry.bootstrap(SQLiteRegistryStore(path), "0x2")

    class LateStore(SQLiteRegistryStore):
        """Reports an empty registry once, as a worker that checked before another bootstrapped."""
        checked = False

        def is_bootstrapped(self):
            if not self.checked:
                self.checked = True
                return False
            return super().is_bootstrapped()

    monkeypatch.setattr("idregistry_service.main.open_store", lambda *args, **kwargs: LateStore(path))
    client = TestClient(create_app(make_settings(store="sqlite", db_path=path), configure_logs=False))
    assert client.get("/v1/registry").json()["admin"] == normalize_principal("0x2")
    assert register(client, ALICE, "Alice").status_code == 201
