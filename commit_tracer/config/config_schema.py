"""Schema for the ``.env.json`` configuration document.

This module provides the Pydantic model that validates the JSON config
file. Unknown top-level keys are kept so that rewriting the file never
drops settings this version does not know about.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

YOUTRACK_TOKEN_KEY = "youtrackToken"
YOUTRACK_URL_KEY = "youtrackUrl"
HIBOB_TOKEN_KEY = "hibobToken"
HIBOB_URL_KEY = "hibobApiUrl"
EMAIL_MAPPINGS_KEY = "emailMappings"

DEFAULT_YOUTRACK_URL = "https://youtrack.jetbrains.com/api"
DEFAULT_HIBOB_URL = "https://api.hibob.com/v1"
DEFAULT_CONFIG_FILENAME = ".env.json"

PLACEHOLDER_YOUTRACK_TOKEN = "your-youtrack-token-here"
PLACEHOLDER_HIBOB_TOKEN = "your-hibob-token-here"
PLACEHOLDER_TOKENS = frozenset({PLACEHOLDER_YOUTRACK_TOKEN, PLACEHOLDER_HIBOB_TOKEN})

SAMPLE_EMAIL_MAPPINGS = {
    "personal@gmail.com": "work@company.com",
    "old@legacy.com": "new@company.com",
}


class ConfigDocument(BaseModel):
    """Configuration stored in ``.env.json``.

    Scalar values are kept as whatever JSON type the file holds; the store
    stringifies them on read.
    """

    # Only the on-disk camelCase keys bind to fields; snake_case keys stay extras
    model_config = ConfigDict(extra="allow")

    youtrack_token: Any = Field(default=None, alias=YOUTRACK_TOKEN_KEY)
    youtrack_url: Any = Field(default=None, alias=YOUTRACK_URL_KEY)
    hibob_token: Any = Field(default=None, alias=HIBOB_TOKEN_KEY)
    hibob_api_url: Any = Field(default=None, alias=HIBOB_URL_KEY)
    email_mappings: dict[str, str] = Field(
        default_factory=dict, alias=EMAIL_MAPPINGS_KEY
    )

    @field_validator("email_mappings", mode="before")
    @classmethod
    def _keep_string_pairs(cls, value: Any) -> dict[str, str]:
        # Entries that are not string -> string are dropped, not rejected
        if not isinstance(value, dict):
            return {}
        return {k: v for k, v in value.items() if isinstance(k, str) and isinstance(v, str)}

    @classmethod
    def default(cls) -> ConfigDocument:
        """Template written when no config file exists yet."""
        return cls.model_validate(
            {
                YOUTRACK_TOKEN_KEY: PLACEHOLDER_YOUTRACK_TOKEN,
                YOUTRACK_URL_KEY: DEFAULT_YOUTRACK_URL,
                HIBOB_TOKEN_KEY: PLACEHOLDER_HIBOB_TOKEN,
                HIBOB_URL_KEY: DEFAULT_HIBOB_URL,
                EMAIL_MAPPINGS_KEY: dict(SAMPLE_EMAIL_MAPPINGS),
            }
        )

    def to_raw(self) -> dict[str, Any]:
        """Flat dict with the on-disk key names, omitting keys never set."""
        return self.model_dump(by_alias=True, exclude_unset=True)


def is_placeholder_token(token: str | None) -> bool:
    """True for blank tokens and the template values written by default."""
    return not token or not token.strip() or token.strip() in PLACEHOLDER_TOKENS
