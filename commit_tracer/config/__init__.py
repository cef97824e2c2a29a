"""Configuration for commit-tracer.

The single ``.env.json`` file holds API tokens, URLs and the email mapping
table. ``ConfigStoreRegistry`` shares one ``ConfigStore`` per file.
"""

from .config_loader import ConfigStoreRegistry, resolve_config_path
from .config_schema import (
    DEFAULT_CONFIG_FILENAME,
    DEFAULT_HIBOB_URL,
    DEFAULT_YOUTRACK_URL,
    EMAIL_MAPPINGS_KEY,
    HIBOB_TOKEN_KEY,
    HIBOB_URL_KEY,
    YOUTRACK_TOKEN_KEY,
    YOUTRACK_URL_KEY,
    ConfigDocument,
    is_placeholder_token,
)
from .config_store import ConfigStore

__all__ = [
    "ConfigDocument",
    "ConfigStore",
    "ConfigStoreRegistry",
    "resolve_config_path",
    "is_placeholder_token",
    # Keys
    "YOUTRACK_TOKEN_KEY",
    "YOUTRACK_URL_KEY",
    "HIBOB_TOKEN_KEY",
    "HIBOB_URL_KEY",
    "EMAIL_MAPPINGS_KEY",
    # Defaults
    "DEFAULT_CONFIG_FILENAME",
    "DEFAULT_YOUTRACK_URL",
    "DEFAULT_HIBOB_URL",
]
