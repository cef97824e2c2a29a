"""JSON-file-backed configuration and email mapping store.

The store mirrors a single ``.env.json`` file in memory. Every read and
write first checks whether the file changed on disk and reloads it if so,
which lets users edit the file while the process is running.
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from ..tracer_logging import get_logger
from ..utils.locks import ReadWriteLock
from .config_schema import EMAIL_MAPPINGS_KEY, ConfigDocument

logger = get_logger(__name__)

_MISSING = object()


class ConfigStore:
    """Thread-safe mirror of one JSON configuration file.

    Getters never raise: unreadable or invalid files are logged and the
    previous in-memory state is kept. Mutators return ``False`` when the
    document could not be written back.
    """

    def __init__(self, config_path: Path | str):
        self.config_path = Path(config_path).expanduser()
        self._lock = ReadWriteLock()
        self._config: dict[str, Any] = {}
        self._mapping_index: dict[str, str] = {}
        self._signature: tuple[int, int] | None = None
        self._initialized = False
        self.last_error: str | None = None

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def _ensure_initialized(self) -> None:
        if self._initialized:
            return
        with self._lock.write_locked():
            if self._initialized:
                return
            try:
                logger.debug(f"Looking for config file at {self.config_path}")
                if self.config_path.exists():
                    self._load_locked()
                else:
                    logger.info(f"No config file at {self.config_path}, creating default")
                    self._config = ConfigDocument.default().to_raw()
                    self._rebuild_index()
                    self._save_locked()
            finally:
                self._initialized = True

    def _file_signature(self) -> tuple[int, int] | None:
        try:
            stat = self.config_path.stat()
        except OSError:
            return None
        return (stat.st_mtime_ns, stat.st_size)

    def _load_locked(self) -> None:
        """Replace the in-memory document with the file contents.

        Must be called while holding the write lock.
        """
        signature = self._file_signature()
        try:
            with open(self.config_path, encoding="utf-8") as f:
                raw = json.load(f)
            if not isinstance(raw, dict):
                raise ValueError("top-level JSON value must be an object")
            document = ConfigDocument.model_validate(raw)
        except json.JSONDecodeError as e:
            self.last_error = f"Invalid JSON in config file: {e}"
            logger.error(self.last_error)
        except (OSError, ValueError, ValidationError) as e:
            self.last_error = f"Error loading config file: {e}"
            logger.error(self.last_error)
        else:
            self._config = document.to_raw()
            self._config.setdefault(EMAIL_MAPPINGS_KEY, {})
            self._rebuild_index()
            self.last_error = None
            logger.info(
                f"Loaded config from {self.config_path} with {len(self._config)} entries"
            )
        # Remember the signature even on failure so a broken file is not
        # re-parsed on every call; the next edit will be picked up.
        self._signature = signature

    def _has_changed(self) -> bool:
        signature = self._file_signature()
        return signature is not None and signature != self._signature

    def _reload_if_changed(self) -> None:
        """Reload the document when the file changed since it was last seen."""
        if not self._has_changed():
            return
        with self._lock.write_locked():
            self._reload_if_changed_locked()

    def _reload_if_changed_locked(self) -> None:
        if self._has_changed():
            logger.info("Config file has changed, reloading configuration")
            self._load_locked()

    def reload(self) -> None:
        """Force a reload from disk."""
        self._ensure_initialized()
        with self._lock.write_locked():
            if self.config_path.exists():
                self._load_locked()

    # ------------------------------------------------------------------
    # Saving
    # ------------------------------------------------------------------

    def _save_locked(self) -> bool:
        """Write the full document atomically.

        Must be called while holding the write lock.
        """
        tmp_name: str | None = None
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.config_path.parent, prefix=f".{self.config_path.name}.", suffix=".tmp"
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(self._config, f, indent=2)
            os.replace(tmp_name, self.config_path)
            tmp_name = None
            self._signature = self._file_signature()
            logger.info(f"Saved configuration to {self.config_path}")
            return True
        except (OSError, TypeError, ValueError) as e:
            self.last_error = f"Failed to save configuration: {e}"
            logger.error(self.last_error)
            return False
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    pass

    def save(self) -> bool:
        """Write the current in-memory document to disk."""
        self._ensure_initialized()
        with self._lock.write_locked():
            return self._save_locked()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _rebuild_index(self) -> None:
        mappings = self._config.get(EMAIL_MAPPINGS_KEY) or {}
        self._mapping_index = {k.lower(): v for k, v in mappings.items()}

    def get(self, key: str, default: Any = _MISSING) -> str | None:
        """Get a scalar value as a string.

        Args:
            key: Top-level key in the config document
            default: Returned when the key is missing or null

        Returns:
            The value as a string, ``default`` if given, otherwise None
        """
        self._ensure_initialized()
        self._reload_if_changed()
        with self._lock.read_locked():
            value = self._config.get(key)
        if value is None:
            return None if default is _MISSING else default
        return value if isinstance(value, str) else str(value)

    def map_email(self, email: str) -> str:
        """Return the mapped address for ``email`` or ``email`` unchanged.

        Keys are matched case-insensitively; the target is returned as stored.
        """
        self._ensure_initialized()
        self._reload_if_changed()
        with self._lock.read_locked():
            return self._mapping_index.get(email.strip().lower(), email)

    def all_mappings(self) -> dict[str, str]:
        self._ensure_initialized()
        self._reload_if_changed()
        with self._lock.read_locked():
            return dict(self._config.get(EMAIL_MAPPINGS_KEY) or {})

    def all_config(self) -> dict[str, Any]:
        """Copy of the whole document."""
        self._ensure_initialized()
        self._reload_if_changed()
        with self._lock.read_locked():
            data = dict(self._config)
            data[EMAIL_MAPPINGS_KEY] = dict(data.get(EMAIL_MAPPINGS_KEY) or {})
            return data

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def add_mapping(self, from_email: str, to_email: str, persist: bool = True) -> bool:
        """Insert or overwrite a mapping.

        Returns:
            False only when the write to disk failed
        """
        self._ensure_initialized()
        with self._lock.write_locked():
            self._reload_if_changed_locked()
            mappings = {
                k: v
                for k, v in (self._config.get(EMAIL_MAPPINGS_KEY) or {}).items()
                if k.lower() != from_email.lower()
            }
            mappings[from_email] = to_email
            self._config[EMAIL_MAPPINGS_KEY] = mappings
            self._rebuild_index()
            if persist:
                return self._save_locked()
        return True

    def remove_mapping(self, email: str, persist: bool = True) -> bool:
        """Remove the mapping for ``email``.

        Returns:
            False when no mapping existed or the write failed
        """
        self._ensure_initialized()
        with self._lock.write_locked():
            self._reload_if_changed_locked()
            current = self._config.get(EMAIL_MAPPINGS_KEY) or {}
            mappings = {k: v for k, v in current.items() if k.lower() != email.lower()}
            if len(mappings) == len(current):
                return False
            self._config[EMAIL_MAPPINGS_KEY] = mappings
            self._rebuild_index()
            if persist:
                return self._save_locked()
        return True

    def update(self, key: str, value: Any, persist: bool = True) -> bool:
        """Set a top-level value.

        Updating ``emailMappings`` replaces the whole table and is validated
        the same way as on load. A value that cannot be written as JSON is
        rejected and leaves the configuration unchanged.
        """
        try:
            json.dumps(value)
        except (TypeError, ValueError) as e:
            self.last_error = f"Cannot store {key}: {e}"
            logger.error(self.last_error)
            return False
        self._ensure_initialized()
        with self._lock.write_locked():
            self._reload_if_changed_locked()
            if key == EMAIL_MAPPINGS_KEY:
                value = ConfigDocument.model_validate({EMAIL_MAPPINGS_KEY: value}).email_mappings
            self._config[key] = value
            self._rebuild_index()
            if persist:
                return self._save_locked()
        return True
