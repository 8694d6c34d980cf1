"""Tests for the session gate (login/logout/authorization over an identity slot)."""
import pytest

from app.portal.auth import SessionGate, StaticCredentialVerifier, StorageSlot
from app.portal.errors import InvalidCredentials
from app.portal.records import MODULES
from app.portal.storage import LocalStorage, StorageError


@pytest.fixture(scope="module")
def verifier():
    # Hashing is slow; share one verifier across the module.
    return StaticCredentialVerifier()


@pytest.fixture()
def storage(tmp_path):
    return LocalStorage(root=tmp_path / "data")


def _gate(verifier, storage):
    return SessionGate(verifier, StorageSlot(storage))


def test_starts_anonymous(verifier, storage):
    gate = _gate(verifier, storage)
    assert gate.user is None
    assert gate.is_authenticated is False
    assert not any(gate.is_authorized(m) for m in MODULES)


def test_admin_login_persists_across_restart(verifier, storage):
    gate = _gate(verifier, storage)
    user = gate.login("admin", "admin123")
    assert user["role"] == "admin"
    assert gate.is_authorized("compras") is True

    restored = _gate(verifier, storage)
    assert restored.is_authenticated is True
    assert restored.user["username"] == "admin"
    assert all(restored.is_authorized(m) for m in MODULES)


def test_module_user_only_sees_own_module(verifier, storage):
    gate = _gate(verifier, storage)
    gate.login("garantia", "garantia123")
    assert gate.is_authorized("garantia") is True
    assert gate.is_authorized("compras") is False
    assert gate.is_authorized("admin") is False


def test_bad_password_stays_anonymous(verifier, storage):
    gate = _gate(verifier, storage)
    with pytest.raises(InvalidCredentials):
        gate.login("admin", "wrong")
    assert gate.user is None
    assert storage.get("currentUser") is None


def test_unknown_user_rejected(verifier, storage):
    gate = _gate(verifier, storage)
    with pytest.raises(InvalidCredentials):
        gate.login("nobody", "nobody123")
    assert gate.is_authenticated is False


def test_failed_login_keeps_existing_session(verifier, storage):
    gate = _gate(verifier, storage)
    gate.login("pcp", "pcp123")
    with pytest.raises(InvalidCredentials):
        gate.login("admin", "nope")
    assert gate.user["username"] == "pcp"
    assert _gate(verifier, storage).user["username"] == "pcp"


def test_logout_clears_slot(verifier, storage):
    gate = _gate(verifier, storage)
    gate.login("pd", "pd123")
    gate.logout()
    assert gate.user is None
    assert storage.get("currentUser") is None
    assert _gate(verifier, storage).is_authenticated is False


def test_logout_when_anonymous_is_harmless(verifier, storage):
    gate = _gate(verifier, storage)
    gate.logout()
    assert gate.is_authenticated is False


def test_malformed_slot_raises(verifier, storage):
    storage.put("currentUser", "[1, 2")
    with pytest.raises(StorageError):
        _gate(verifier, storage)


def test_custom_password_table():
    verifier = StaticCredentialVerifier(users=[("ana", "comercial", "Ana")], passwords={"ana": "s3cret"})
    assert verifier.usernames == ["ana"]
    assert verifier.verify("ana", "ana123") is None
    assert verifier.verify("ana", "s3cret")["role"] == "comercial"
