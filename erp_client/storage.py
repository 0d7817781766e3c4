"""Session key-value storage.

The client never reaches for ambient global state: the host application
injects a ``TokenStore``. Two implementations ship here, an in-memory store
for tests and short-lived scripts, and a JSON file store that persists the
session between runs the way browser local storage does.

Storage layout (all values are strings):

``token``      bearer token (canonical key)
``authToken``  legacy alias of ``token``, read as a fallback
``userData``   JSON-serialized user object
``role``       user role (canonical key)
``userRole``   legacy alias of ``role``
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)

TOKEN_KEY = "token"
LEGACY_TOKEN_KEY = "authToken"
USER_DATA_KEY = "userData"
ROLE_KEY = "role"
LEGACY_ROLE_KEY = "userRole"

TOKEN_KEYS: tuple[str, ...] = (TOKEN_KEY, LEGACY_TOKEN_KEY)
SESSION_KEYS: tuple[str, ...] = (
    TOKEN_KEY,
    LEGACY_TOKEN_KEY,
    USER_DATA_KEY,
    ROLE_KEY,
    LEGACY_ROLE_KEY,
)

# legacy key -> canonical key
_LEGACY_ALIASES: dict[str, str] = {
    LEGACY_TOKEN_KEY: TOKEN_KEY,
    LEGACY_ROLE_KEY: ROLE_KEY,
}


@runtime_checkable
class TokenStore(Protocol):
    """Synchronous string key-value storage holding the session."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def clear(self, *keys: str) -> None: ...


class InMemoryTokenStore:
    """Dict-backed store; contents live as long as the object."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def clear(self, *keys: str) -> None:
        for key in keys:
            self._data.pop(key, None)

    def snapshot(self) -> dict[str, str]:
        """Copy of the current contents."""
        return dict(self._data)


class JsonFileTokenStore:
    """Store persisted as a single JSON object on disk.

    The file is re-read on every ``get`` so that a login performed by another
    process is picked up. A missing or unreadable file reads as empty storage;
    write errors propagate.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str) -> str | None:
        value = self._load().get(key)
        return None if value is None else str(value)

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._save(data)

    def clear(self, *keys: str) -> None:
        data = self._load()
        removed = False
        for key in keys:
            if key in data:
                del data[key]
                removed = True
        if removed:
            self._save(data)

    def _load(self) -> dict[str, str]:
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as exc:
            logger.warning("Token store %s unreadable: %s", self._path, exc)
            return {}

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.warning("Token store %s is not valid JSON, treating as empty: %s", self._path, exc)
            return {}

        if not isinstance(data, dict):
            logger.warning("Token store %s does not hold a JSON object, treating as empty", self._path)
            return {}
        return data

    def _save(self, data: dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self._path.parent, prefix=".tokens-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh, sort_keys=True)
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise


def read_token(store: TokenStore) -> str | None:
    """Return the bearer token, preferring the canonical key over the legacy one."""
    return store.get(TOKEN_KEY) or store.get(LEGACY_TOKEN_KEY) or None


def clear_tokens(store: TokenStore) -> None:
    """Remove both token keys, leaving user data and role in place."""
    store.clear(*TOKEN_KEYS)


def clear_session(store: TokenStore) -> None:
    """Remove every session key (token, legacy token, user data, role, legacy role)."""
    store.clear(*SESSION_KEYS)


def migrate_legacy_keys(store: TokenStore) -> list[str]:
    """Move values stored under legacy aliases onto their canonical keys.

    A legacy value is copied only when the canonical key is empty; the legacy
    key is removed either way. Running it twice is a no-op.

    Returns the legacy keys that were removed.
    """
    migrated: list[str] = []
    for legacy_key, canonical_key in _LEGACY_ALIASES.items():
        legacy_value = store.get(legacy_key)
        if legacy_value is None:
            continue
        if not store.get(canonical_key):
            store.set(canonical_key, legacy_value)
        store.clear(legacy_key)
        migrated.append(legacy_key)

    if migrated:
        logger.info("Migrated legacy session keys: %s", ", ".join(migrated))
    return migrated
