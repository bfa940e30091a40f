"""API credential context and storage collaborators."""

from __future__ import annotations

import logging
import os
import re
import threading
from pathlib import Path
from typing import Protocol, runtime_checkable

import yaml

logger = logging.getLogger(__name__)

API_KEY_MIN_LENGTH = 20
_API_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")
_ENV_VARS = ("GEMINI_API_KEY", "GOOGLE_API_KEY")


def is_valid_api_key(key: str) -> bool:
    """Check a key against the accepted Gemini API key shape."""
    return len(key) >= API_KEY_MIN_LENGTH and bool(_API_KEY_PATTERN.match(key))


@runtime_checkable
class CredentialStore(Protocol):
    """Where the API key lives between runs."""

    def get(self) -> str | None:
        ...

    def set(self, key: str) -> None:
        ...


class MemoryCredentialStore:
    """Process-local store, mostly useful for tests and embedding."""

    def __init__(self, key: str | None = None):
        self._key = key

    def get(self) -> str | None:
        return self._key

    def set(self, key: str) -> None:
        self._key = key


class FileCredentialStore:
    """YAML file store readable only by the current user."""

    def __init__(self, path: str | Path):
        self.path = Path(path).expanduser()

    def get(self) -> str | None:
        if not self.path.exists():
            return None
        try:
            with open(self.path) as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning("Failed to read credentials from %s: %s", self.path, e)
            return None
        key = data.get("api_key") if isinstance(data, dict) else None
        return key or None

    def set(self, key: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(yaml.safe_dump({"api_key": key}))
        self.path.chmod(0o600)


class CredentialContext:
    """Caller-owned holder of the current API key.

    The store is read once by load(); after that the in-memory value is
    authoritative. Reads and writes go through a lock so concurrent
    dispatches never observe a half-updated key.
    """

    def __init__(self, store: CredentialStore | None = None, key: str | None = None):
        self._store = store
        self._key = key
        self._lock = threading.Lock()

    @classmethod
    def load(cls, store: CredentialStore | None = None, use_env: bool = True) -> CredentialContext:
        """Build a context from the store, falling back to environment variables."""
        key = None
        if store is not None:
            try:
                key = store.get()
            except Exception as e:
                logger.warning("Failed to load API key from storage: %s", e)
        if not key and use_env:
            key = next((os.environ[v] for v in _ENV_VARS if os.environ.get(v)), None)
        return cls(store=store, key=key)

    def get(self) -> str | None:
        with self._lock:
            return self._key

    @property
    def has_credential(self) -> bool:
        return bool(self.get())

    def with_credential(self, key: str) -> CredentialContext:
        """Replace the key in place and persist it.

        The new key takes effect immediately even if persisting fails.
        """
        with self._lock:
            self._key = key
        if self._store is not None:
            try:
                self._store.set(key)
            except Exception as e:
                logger.warning("Failed to persist API key: %s", e)
        return self
