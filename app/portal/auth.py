from __future__ import annotations

import json
import logging
from collections import defaultdict
from collections.abc import Iterable, Mapping
from datetime import datetime, timedelta
from typing import Any

from flask import Blueprint, current_app, g, jsonify, request, session
from werkzeug.security import check_password_hash, generate_password_hash

from app.portal.errors import InvalidCredentials, ValidationError
from app.portal.records import ADMIN_ROLE
from app.portal.storage import Storage, StorageError
from app.portal.store import format_timestamp

logger = logging.getLogger(__name__)

SESSION_SLOT_KEY = "currentUser"

# username -> (role, display name). Password defaults to "<username>123".
DEFAULT_USERS: tuple[tuple[str, str, str], ...] = (
    ("admin", ADMIN_ROLE, "Administrador"),
    ("compras", "compras", "Gestor de Compras"),
    ("pcp", "pcp", "Gestor de PCP"),
    ("pd", "pd", "Gestor de P&D"),
    ("garantia", "garantia", "Gestor de Garantia"),
    ("regulatorios", "regulatorios", "Gestor de Regulatórios"),
    ("comercial", "comercial", "Gestor Comercial"),
)


# ---------- Credential verification ----------
class CredentialVerifier:
    def verify(self, username: str, password: str) -> dict[str, Any] | None:
        """Return the user record on an exact match, None otherwise."""
        raise NotImplementedError


class StaticCredentialVerifier(CredentialVerifier):
    """Fixed user table with hashed passwords. Stands in for a real identity provider."""

    def __init__(
        self,
        users: Iterable[tuple[str, str, str]] = DEFAULT_USERS,
        passwords: Mapping[str, str] | None = None,
    ) -> None:
        passwords = passwords or {}
        created = format_timestamp(datetime.utcnow())
        self._users: dict[str, dict[str, Any]] = {}
        self._hashes: dict[str, str] = {}
        for i, (username, role, name) in enumerate(users, start=1):
            self._users[username] = {
                "id": str(i),
                "uid": str(i),
                "username": username,
                "role": role,
                "name": name,
                "createdAt": created,
                "updatedAt": created,
            }
            self._hashes[username] = generate_password_hash(passwords.get(username, f"{username}123"))

    @property
    def usernames(self) -> list[str]:
        return list(self._users)

    def verify(self, username: str, password: str) -> dict[str, Any] | None:
        user = self._users.get(username)
        if not user or not check_password_hash(self._hashes[username], password):
            return None
        return dict(user)


# ---------- Identity slots ----------
class IdentitySlot:
    """Durable place for the authenticated user's record."""

    def load(self) -> dict[str, Any] | None:
        raise NotImplementedError

    def save(self, user: Mapping[str, Any]) -> None:
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError


class StorageSlot(IdentitySlot):
    """Identity kept as a blob; survives process restarts (desktop/CLI use)."""

    def __init__(self, storage: Storage, key: str = SESSION_SLOT_KEY) -> None:
        self.storage = storage
        self.key = key

    def load(self) -> dict[str, Any] | None:
        raw = self.storage.get(self.key)
        if raw is None:
            return None
        try:
            user = json.loads(raw)
        except json.JSONDecodeError as e:
            raise StorageError(f"Session slot '{self.key}' is not valid JSON: {e}") from e
        if not isinstance(user, dict):
            raise StorageError(f"Session slot '{self.key}' must hold a JSON object.")
        return user

    def save(self, user: Mapping[str, Any]) -> None:
        self.storage.put(self.key, json.dumps(dict(user), ensure_ascii=False))

    def clear(self) -> None:
        self.storage.delete(self.key)


class CookieSlot(IdentitySlot):
    """Identity kept in the signed Flask session cookie (one per browser)."""

    def load(self) -> dict[str, Any] | None:
        user = session.get(SESSION_SLOT_KEY)
        return dict(user) if isinstance(user, dict) else None

    def save(self, user: Mapping[str, Any]) -> None:
        session[SESSION_SLOT_KEY] = dict(user)

    def clear(self) -> None:
        session.pop(SESSION_SLOT_KEY, None)


# ---------- Gate ----------
class SessionGate:
    """
    Two states: anonymous (user is None) and authenticated(user).
    The state is restored from the identity slot on construction.
    """

    def __init__(self, verifier: CredentialVerifier, slot: IdentitySlot) -> None:
        self.verifier = verifier
        self.slot = slot
        self.user: dict[str, Any] | None = slot.load()

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    def login(self, username: str, password: str) -> dict[str, Any]:
        user = self.verifier.verify(username, password)
        if user is None:
            logger.info("Login failed for username=%s", username)
            raise InvalidCredentials("Invalid credentials.")
        self.slot.save(user)
        self.user = user
        logger.info("Login username=%s role=%s", username, user.get("role"))
        return dict(user)

    def logout(self) -> None:
        self.slot.clear()
        if self.user:
            logger.info("Logout username=%s", self.user.get("username"))
        self.user = None

    def is_authorized(self, module_tag: str) -> bool:
        if not self.user:
            return False
        role = self.user.get("role")
        return role == ADMIN_ROLE or role == module_tag


# ---------- HTTP ----------
bp = Blueprint("auth", __name__)
_LOGIN_RATE_LIMIT = 5
_LOGIN_RATE_WINDOW = 300  # seconds


def _login_attempts() -> dict[str, list[datetime]]:
    return current_app.extensions.setdefault("login_attempts", defaultdict(list))


def _check_rate_limit(ip: str) -> bool:
    attempts = _login_attempts()
    now = datetime.utcnow()
    cutoff = now - timedelta(seconds=_LOGIN_RATE_WINDOW)
    attempts[ip] = [t for t in attempts[ip] if t > cutoff]
    return len(attempts[ip]) >= _LOGIN_RATE_LIMIT


def _record_attempt(ip: str) -> None:
    _login_attempts()[ip].append(datetime.utcnow())


def load_current_user() -> None:
    """
    Builds the per-request gate from the signed session cookie.
    """
    g.gate = SessionGate(current_app.extensions["credential_verifier"], CookieSlot())
    g.current_user = g.gate.user


def _credentials() -> tuple[str, str]:
    if request.is_json:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise ValidationError("Expected a JSON object.")
    else:
        data = request.form.to_dict()
    username = data.get("username") or ""
    password = data.get("password") or ""
    if not isinstance(username, str) or not isinstance(password, str):
        raise ValidationError("'username' and 'password' must be strings.")
    return username.strip(), password


@bp.post("/login")
def login_post():
    ip = request.remote_addr or "unknown"
    if _check_rate_limit(ip):
        return jsonify({"error": "Too many login attempts. Please wait 5 minutes."}), 429

    _record_attempt(ip)
    username, password = _credentials()
    user = g.gate.login(username, password)
    g.current_user = user
    _login_attempts()[ip].clear()
    return jsonify({"user": user})


@bp.post("/logout")
def logout():
    g.gate.logout()
    g.current_user = None
    return jsonify({"ok": True})


@bp.get("/me")
def me():
    user = g.current_user
    if not user:
        return jsonify({"user": None}), 401
    return jsonify({"user": user})
