from __future__ import annotations

import hashlib
import hmac
import json
import logging
import secrets

from birthday_agenda.errors import AuthenticationError, StorageError, ValidationError
from birthday_agenda.models import LOGGED_IN_KEY, USERS_KEY, UserAccount
from birthday_agenda.storage import KeyValueStorage

LOGGER = logging.getLogger(__name__)

HASH_SCHEME = "pbkdf2_sha256"
HASH_ITERATIONS = 200_000


def hash_password(password: str, *, salt: str | None = None, iterations: int = HASH_ITERATIONS) -> str:
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt.encode("utf-8"), iterations)
    return f"{HASH_SCHEME}${iterations}${salt}${digest.hex()}"


def verify_password(password: str, stored: str) -> bool:
    pieces = stored.split("$")
    if len(pieces) != 4 or pieces[0] != HASH_SCHEME or not pieces[1].isdigit():
        # accounts registered by the browser version kept the password as-is
        return hmac.compare_digest(password.encode("utf-8"), stored.encode("utf-8"))

    _, iterations, salt, _ = pieces
    try:
        candidate = hash_password(password, salt=salt, iterations=int(iterations))
    except ValueError as exc:
        raise StorageError(f"Stored password hash is invalid: {exc}") from exc
    return hmac.compare_digest(candidate, stored)


class AccountStore:
    """Registered users plus the single logged-in marker."""

    def __init__(self, storage: KeyValueStorage) -> None:
        self._storage = storage

    def _load_users(self) -> list[UserAccount]:
        raw = self._storage.get(USERS_KEY)
        if raw is None:
            return []

        try:
            rows = json.loads(raw)
        except ValueError as exc:
            raise StorageError("Stored users are not valid JSON") from exc
        if not isinstance(rows, list):
            raise StorageError("Stored users must be a JSON list")

        users: list[UserAccount] = []
        for row in rows:
            if not isinstance(row, dict):
                raise StorageError("Stored user must be a JSON object")
            users.append(
                UserAccount(
                    name=str(row.get("nome", "")),
                    email=str(row.get("email", "")),
                    password_hash=str(row.get("senha", "")),
                )
            )
        return users

    def _save_users(self, users: list[UserAccount]) -> None:
        payload = [
            {"nome": user.name, "email": user.email, "senha": user.password_hash}
            for user in users
        ]
        self._storage.set(USERS_KEY, json.dumps(payload))

    def users(self) -> list[UserAccount]:
        return self._load_users()

    def register(self, name: str, email: str, password: str) -> UserAccount:
        name = (name or "").strip()
        email = (email or "").strip()
        password = (password or "").strip()
        if not name or not email or not password:
            raise ValidationError("name, email and password are all required")

        users = self._load_users()
        if any(user.email == email for user in users):
            raise ValidationError("Email is already registered")

        account = UserAccount(name=name, email=email, password_hash=hash_password(password))
        self._save_users([*users, account])
        LOGGER.info("Registered account %s", email)
        return account

    def authenticate(self, email: str, password: str) -> UserAccount | None:
        email = (email or "").strip()
        password = (password or "").strip()
        for user in self._load_users():
            if user.email == email and verify_password(password, user.password_hash):
                return user
        return None

    def login(self, email: str, password: str) -> UserAccount:
        if not (email or "").strip() or not (password or "").strip():
            raise ValidationError("email and password are required")

        account = self.authenticate(email, password)
        if account is None:
            LOGGER.warning("Failed login for %s", email)
            raise AuthenticationError("Invalid email or password")

        self._storage.set(LOGGED_IN_KEY, account.email)
        LOGGER.info("Logged in %s", account.email)
        return account

    def logout(self) -> None:
        self._storage.remove(LOGGED_IN_KEY)

    def logged_in_email(self) -> str | None:
        value = self._storage.get(LOGGED_IN_KEY)
        return value or None


class SessionGate:
    def __init__(self, accounts: AccountStore) -> None:
        self._accounts = accounts

    def is_open(self) -> bool:
        return self._accounts.logged_in_email() is not None
