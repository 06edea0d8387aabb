import json

import pytest

from idregistry.cli import main
from idregistry.principals import NULL_PRINCIPAL, normalize_principal


@pytest.fixture
def db(tmp_path):
    return str(tmp_path / "cli.db")


def run(capsys, *argv):
    code = main(list(argv))
    out, err = capsys.readouterr()
    return code, out, err


def test_full_flow(db, capsys):
    code, out, _ = run(capsys, "--db", db, "init", "--admin", "0x1")
    assert code == 0
    assert json.loads(out)["admin"] == normalize_principal("0x1")

    code, out, _ = run(capsys, "--db", db, "register", "--caller", "0xa11ce", "--name", "John Doe")
    assert code == 0
    assert json.loads(out) == {"name": "John Doe", "verified": False, "attested_at": 0, "attested_by": NULL_PRINCIPAL}

    code, out, _ = run(capsys, "--db", db, "attest", "--caller", "0xb0b", "--target", "0xa11ce")
    assert code == 0
    assert json.loads(out)["attested_by"] == normalize_principal("0xb0b")

    code, out, _ = run(capsys, "--db", db, "lookup", "--target", "0xa11ce", "--view")
    assert code == 0
    view = json.loads(out)
    assert view[:2] == ["John Doe", True]
    assert view[3] == normalize_principal("0xb0b")

    code, out, _ = run(capsys, "--db", db, "history", "--target", "0xa11ce")
    assert code == 0
    assert len(json.loads(out)) == 1

    code, out, _ = run(capsys, "--db", db, "verify-journal")
    assert code == 0
    assert json.loads(out)["valid"] is True


def test_registry_errors_exit_1(db, capsys):
    run(capsys, "--db", db, "init", "--admin", "0x1")
    run(capsys, "--db", db, "register", "--caller", "0xa", "--name", "A")

    code, _, err = run(capsys, "--db", db, "register", "--caller", "0xa", "--name", "B")
    assert code == 1
    assert err.startswith("ALREADY_EXISTS")

    code, _, err = run(capsys, "--db", db, "lookup", "--target", "0xb")
    assert code == 1
    assert err.startswith("NOT_FOUND")

    code, _, err = run(capsys, "--db", db, "init", "--admin", "0x2")
    assert code == 1
    assert err.startswith("REGISTRY_ALREADY_INITIALIZED")


def test_uninitialized_database(db, capsys):
    code, _, err = run(capsys, "--db", db, "register", "--caller", "0xa", "--name", "A")
    assert code == 1
    assert err.startswith("REGISTRY_NOT_INITIALIZED")


def test_no_command_prints_help(capsys):
    code, out, _ = run(capsys)
    assert code == 2
    assert "usage" in out.lower()


def test_keygen(tmp_path, capsys):
    code, out, _ = run(capsys, "keygen")
    assert code == 0
    data = json.loads(out)
    assert set(data) == {"principal", "public_key", "private_key"}

    path = tmp_path / "key.json"
    code, out, _ = run(capsys, "keygen", "-o", str(path))
    assert code == 0
    saved = json.loads(path.read_text())
    assert json.loads(out)["principal"] == saved["principal"]
    assert "private_key" not in json.loads(out)
