"""Credential storage for the employee directory."""

from __future__ import annotations

import threading
from typing import Protocol

from ..config.config_schema import DEFAULT_HIBOB_URL, HIBOB_TOKEN_KEY, HIBOB_URL_KEY
from ..config.config_store import ConfigStore


class CredentialStore(Protocol):
    """Where the directory token and base URL live."""

    def get_token(self) -> str | None: ...

    def get_base_url(self) -> str: ...

    def set_credentials(self, token: str, base_url: str) -> bool: ...


class ConfigCredentialStore:
    """Keeps the HiBob token and URL in the ``.env.json`` document."""

    def __init__(self, config_store: ConfigStore):
        self._config = config_store

    def get_token(self) -> str | None:
        token = self._config.get(HIBOB_TOKEN_KEY)
        return token.strip() if token and token.strip() else None

    def get_base_url(self) -> str:
        return self._config.get(HIBOB_URL_KEY, DEFAULT_HIBOB_URL) or DEFAULT_HIBOB_URL

    def set_credentials(self, token: str, base_url: str = DEFAULT_HIBOB_URL) -> bool:
        token_saved = self._config.update(HIBOB_TOKEN_KEY, token)
        url_saved = self._config.update(HIBOB_URL_KEY, base_url)
        return token_saved and url_saved


class InMemoryCredentialStore:
    """Process-local credentials, for tests and one-off CLI runs."""

    def __init__(self, token: str | None = None, base_url: str = DEFAULT_HIBOB_URL):
        self._token = token
        self._base_url = base_url
        self._lock = threading.Lock()

    def get_token(self) -> str | None:
        with self._lock:
            return self._token

    def get_base_url(self) -> str:
        with self._lock:
            return self._base_url

    def set_credentials(self, token: str, base_url: str = DEFAULT_HIBOB_URL) -> bool:
        with self._lock:
            self._token = token
            self._base_url = base_url
        return True
