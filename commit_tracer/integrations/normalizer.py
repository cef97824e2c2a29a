"""Personal-to-corporate email normalization."""

from __future__ import annotations

from ..config.config_store import ConfigStore


class EmailNormalizer:
    """Single-hop substitution through the config's ``emailMappings`` table.

    ``map(map(e))`` is not guaranteed to equal ``map(e)``: chained mappings
    are not followed.
    """

    def __init__(self, config_store: ConfigStore):
        self._config = config_store

    def map(self, email: str) -> str:
        """Return the corporate address for ``email``, or ``email`` unchanged."""
        return self._config.map_email(email)

    __call__ = map
