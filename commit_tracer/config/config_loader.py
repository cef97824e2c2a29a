"""Config file resolution and per-path store registry.

Precedence for locating ``.env.json`` (highest to lowest):
1. Explicit path
2. Project directory (``<project>/.env.json``)
3. User home fallback (``~/.commitmapper/.env.json``)
"""

from __future__ import annotations

import threading
from pathlib import Path

from ..tracer_logging import get_logger
from .config_schema import DEFAULT_CONFIG_FILENAME
from .config_store import ConfigStore

logger = get_logger(__name__)

HOME_CONFIG_DIR = ".commitmapper"


def resolve_config_path(
    config_path: Path | str | None = None,
    project_path: Path | str | None = None,
    home: Path | None = None,
) -> Path:
    """Work out which config file to use.

    Args:
        config_path: Explicit config file path
        project_path: Project root; the file is looked up there when given
        home: Home directory override (for tests)

    Returns:
        Absolute path of the config file (it may not exist yet)
    """
    if config_path is not None:
        return Path(config_path).expanduser().resolve()
    if project_path is not None:
        return (Path(project_path).expanduser() / DEFAULT_CONFIG_FILENAME).resolve()
    home_dir = home if home is not None else Path.home()
    return (home_dir / HOME_CONFIG_DIR / DEFAULT_CONFIG_FILENAME).resolve()


class ConfigStoreRegistry:
    """Hands out one ConfigStore per config file.

    Owned by the composition root; every consumer that asks for the same
    path shares the same store and therefore the same lock and cache.
    """

    def __init__(self) -> None:
        self._stores: dict[Path, ConfigStore] = {}
        self._lock = threading.Lock()

    def get(self, config_path: Path | str) -> ConfigStore:
        path = Path(config_path).expanduser().resolve()
        with self._lock:
            store = self._stores.get(path)
            if store is None:
                store = ConfigStore(path)
                self._stores[path] = store
                logger.debug(f"Created config store for {path}")
            return store

    def for_project(
        self,
        project_path: Path | str | None = None,
        config_path: Path | str | None = None,
    ) -> ConfigStore:
        """Resolve the config path for a project and return its store."""
        return self.get(resolve_config_path(config_path, project_path))

    def __len__(self) -> int:
        with self._lock:
            return len(self._stores)

    def __contains__(self, config_path: object) -> bool:
        if not isinstance(config_path, (str, Path)):
            return False
        path = Path(config_path).expanduser().resolve()
        with self._lock:
            return path in self._stores
