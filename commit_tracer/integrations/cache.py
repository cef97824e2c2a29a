"""Employee directory cache.

This module provides the in-memory, file-persisted cache of the whole
employee directory. The cache is refreshed in bulk at most once per TTL
window; individual lookups never go upstream.

Locking:
    * ``_entries`` is replaced by reference, never mutated in place, so a
      single-key read without the lock always sees a complete map.
    * ``_lock`` guards the swap of ``_entries`` together with
      ``_fully_loaded`` and ``_last_refresh``.
    * ``_refresh_guard`` is held for the whole duration of a refresh. A
      non-blocking acquire is the "is a refresh already running" check;
      ``clear`` and ``refresh_now`` wait for it with bounded polling.
"""

from __future__ import annotations

import os
import tempfile
import threading
import time
from collections.abc import Callable
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

from ..config.config_schema import DEFAULT_HIBOB_URL, is_placeholder_token
from ..tracer_logging import get_logger
from .credentials import CredentialStore
from .directory import DirectoryClient
from .models import (
    STALE_SENTINEL,
    CacheEntry,
    DirectoryCacheState,
    EmployeeRecord,
    normalize_email_key,
    utc_now,
)
from .normalizer import EmailNormalizer

logger = get_logger(__name__)

DEFAULT_TTL = timedelta(hours=24)

ClientFactory = Callable[[str, str], DirectoryClient]


class DirectoryCache:
    """Full-roster employee cache keyed by normalized email.

    Thread-safe. Lookups may come from any thread; a stale cache is refreshed
    inline, or on the executor when ``is_interactive_thread()`` says the
    caller must not block.
    """

    def __init__(
        self,
        credentials: CredentialStore,
        normalizer: EmailNormalizer | None = None,
        client_factory: ClientFactory = DirectoryClient,
        executor: Executor | None = None,
        is_interactive_thread: Callable[[], bool] | None = None,
        ttl: timedelta = DEFAULT_TTL,
        state_path: Path | str | None = None,
        wait_timeout: float = 60.0,
        poll_interval: float = 0.1,
        clock: Callable[[], datetime] = utc_now,
    ):
        """Initialize the directory cache.

        Args:
            credentials: Source of the directory token and base URL
            normalizer: Maps personal addresses to corporate ones before lookup
            client_factory: Builds a client from ``(token, base_url)``
            executor: Runs refreshes for interactive callers; a single-thread
                pool is created on first use when omitted
            is_interactive_thread: True when the current thread must not block
            ttl: Age after which the cache is refreshed on the next miss
            state_path: File the cache is persisted to after every change
            wait_timeout: Bound for waiting on an in-flight refresh (seconds)
            poll_interval: Poll period while waiting (seconds)
            clock: Returns the current time as an aware datetime
        """
        self._credentials = credentials
        self._normalizer = normalizer
        self._client_factory = client_factory
        self._executor = executor
        self._owns_executor = False
        self._is_interactive_thread = is_interactive_thread or (lambda: False)
        self.ttl = ttl
        self.state_path = Path(state_path) if state_path is not None else None
        self.wait_timeout = wait_timeout
        self.poll_interval = poll_interval
        self._clock = clock

        self._entries: dict[str, CacheEntry] = {}
        self._fully_loaded = False
        self._last_refresh: datetime = STALE_SENTINEL
        self._lock = threading.RLock()
        self._refresh_guard = threading.Lock()
        # Set while a refresh dispatched to the executor is queued or running
        self._refresh_pending = False

        # Statistics
        self._refresh_count = 0
        self._failed_refresh_count = 0
        self._last_error: str | None = None
        self._token_warning_issued = False

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _normalize(self, email: str) -> str:
        if self._normalizer is None:
            return email
        return self._normalizer.map(email)

    def _is_stale(self) -> bool:
        return self._clock() - self._last_refresh >= self.ttl

    def lookup(self, email: str) -> EmployeeRecord | None:
        """Get an employee by email.

        Args:
            email: Commit author address, personal or corporate

        Returns:
            The employee record, or None when the directory has no such
            employee (or no data could be loaded)
        """
        if not email or not email.strip():
            return None

        key = normalize_email_key(self._normalize(email))

        entry = self._entries.get(key)
        if entry is not None:
            return entry.record

        with self._lock:
            entry = self._entries.get(key)
            if entry is None and self._is_stale():
                self._trigger_refresh()
                entry = self._entries.get(key)
            if entry is None:
                # The mapping may have been unnecessary or out of date
                entry = self._entries.get(normalize_email_key(email))

        if entry is None:
            logger.debug(f"Employee {email} not found in directory cache")
            return None
        return entry.record

    def snapshot(self) -> dict[str, EmployeeRecord]:
        """Copy of all cached records keyed by normalized email."""
        with self._lock:
            return {key: entry.record for key, entry in self._entries.items()}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, email: object) -> bool:
        return isinstance(email, str) and normalize_email_key(email) in self._entries

    @property
    def fully_loaded(self) -> bool:
        with self._lock:
            return self._fully_loaded

    @property
    def last_refresh(self) -> datetime:
        with self._lock:
            return self._last_refresh

    @property
    def is_refreshing(self) -> bool:
        return self._refresh_guard.locked()

    @property
    def stats(self) -> dict[str, Any]:
        """Get cache statistics."""
        with self._lock:
            return {
                "entries": len(self._entries),
                "fully_loaded": self._fully_loaded,
                "last_refresh": (
                    None
                    if self._last_refresh == STALE_SENTINEL
                    else self._last_refresh.isoformat()
                ),
                "stale": self._is_stale(),
                "refreshing": self._refresh_guard.locked(),
                "refresh_count": self._refresh_count,
                "failed_refresh_count": self._failed_refresh_count,
                "last_error": self._last_error,
                "ttl_seconds": self.ttl.total_seconds(),
            }

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    def _submit(self, fn: Callable[[], bool]) -> Future:
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=1, thread_name_prefix="directory-refresh"
                )
                self._owns_executor = True
            return self._executor.submit(fn)

    def _trigger_refresh(self) -> None:
        """Start a refresh for a stale miss. Caller holds ``_lock``."""
        if not self._is_interactive_thread():
            self.refresh()
            return
        if self._refresh_pending:
            logger.debug("Background directory refresh already scheduled")
            return
        self._refresh_pending = True
        logger.debug("Dispatching directory refresh to background worker")
        try:
            self._submit(self._background_refresh)
        except RuntimeError as e:
            # Executor already shut down
            self._refresh_pending = False
            logger.warning(f"Could not schedule directory refresh: {e}")

    def _background_refresh(self) -> bool:
        try:
            return self.refresh_if_stale()
        finally:
            with self._lock:
                self._refresh_pending = False

    def _wait_for_guard(self) -> bool:
        """Acquire the refresh guard, polling until ``wait_timeout`` elapses."""
        deadline = time.monotonic() + self.wait_timeout
        while not self._refresh_guard.acquire(timeout=self.poll_interval):
            if time.monotonic() >= deadline:
                return False
        return True

    def refresh(self) -> bool:
        """Refresh the whole cache unless a refresh is already running.

        Returns:
            True if this call refreshed the cache; False if another refresh
            was in flight or the fetch failed
        """
        if not self._refresh_guard.acquire(blocking=False):
            logger.debug("Directory refresh already in progress, skipping")
            return False
        try:
            return self._run_refresh()
        finally:
            self._refresh_guard.release()

    def refresh_now(self) -> bool:
        """Refresh the cache, waiting for any in-flight refresh first."""
        if not self._wait_for_guard():
            logger.warning(
                f"Timed out after {self.wait_timeout}s waiting for in-flight directory refresh"
            )
            return False
        try:
            return self._run_refresh()
        finally:
            self._refresh_guard.release()

    def refresh_if_stale(self) -> bool:
        if not self._is_stale():
            return False
        return self.refresh()

    def warm_up(self) -> Future:
        """Load the cache in the background if it is stale."""
        return self._submit(self.refresh_if_stale)

    def _run_refresh(self) -> bool:
        """Fetch the roster and swap it in. Caller holds the refresh guard."""
        token = self._credentials.get_token()
        if is_placeholder_token(token):
            if not self._token_warning_issued:
                logger.warning("Unable to refresh directory cache: HiBob API token is missing")
                self._token_warning_issued = True
            self._last_error = "HiBob API token is missing"
            self._failed_refresh_count += 1
            return False

        logger.info("Refreshing full employee directory cache")
        try:
            client = self._client_factory(token, self._credentials.get_base_url())
            try:
                records = client.fetch_all()
            finally:
                client.close()
        except Exception as e:
            logger.warning(f"Failed to refresh directory cache: {e}")
            self._last_error = str(e)
            self._failed_refresh_count += 1
            return False

        if not records:
            logger.warning("Directory returned no employees, keeping existing cache")
            self._last_error = "Directory returned no employees"
            self._failed_refresh_count += 1
            return False

        now = self._clock()
        entries = {
            normalize_email_key(record.email): CacheEntry(record=record, timestamp=now)
            for record in records.values()
        }
        with self._lock:
            self._entries = entries
            self._fully_loaded = True
            self._last_refresh = now
            self._last_error = None
            self._refresh_count += 1
            state = self._state_locked()

        logger.info(f"Directory cache refreshed with {len(entries)} employees")
        self._persist(state)
        return True

    # ------------------------------------------------------------------
    # Invalidation
    # ------------------------------------------------------------------

    def clear(self) -> bool:
        """Drop all entries and force a refresh on the next miss.

        Waits for an in-flight refresh so it cannot repopulate the cache
        right after the clear.

        Returns:
            False if the cleared state could not be persisted
        """
        acquired = self._wait_for_guard()
        if not acquired:
            logger.warning("Timed out waiting for in-flight directory refresh, clearing anyway")
        try:
            with self._lock:
                self._entries = {}
                self._fully_loaded = False
                self._last_refresh = STALE_SENTINEL
                state = self._state_locked()
            logger.info("Directory cache cleared")
            return self._persist(state)
        finally:
            if acquired:
                self._refresh_guard.release()

    def set_credentials(self, token: str, base_url: str = DEFAULT_HIBOB_URL) -> bool:
        """Store new directory credentials and invalidate the cache."""
        saved = self._credentials.set_credentials(token, base_url)
        self._token_warning_issued = False
        cleared = self.clear()
        return saved and cleared

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _state_locked(self) -> DirectoryCacheState:
        return DirectoryCacheState(
            employees=dict(self._entries), last_cache_update=self._last_refresh
        )

    def state(self) -> DirectoryCacheState:
        """Snapshot of the cache in its persisted form."""
        with self._lock:
            return self._state_locked()

    def _persist(self, state: DirectoryCacheState) -> bool:
        if self.state_path is None:
            return True
        return self._write_state(self.state_path, state)

    @staticmethod
    def _write_state(path: Path, state: DirectoryCacheState) -> bool:
        tmp_name: str | None = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
            with os.fdopen(fd, "wb") as f:
                f.write(state.to_json())
            os.replace(tmp_name, path)
            tmp_name = None
            logger.debug(f"Saved directory cache with {len(state.employees)} employees to {path}")
            return True
        except OSError as e:
            logger.error(f"Failed to save directory cache to {path}: {e}")
            return False
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    pass

    def save(self, path: Path | str | None = None) -> bool:
        """Write the current state to ``path`` (default: ``state_path``).

        Returns:
            False if there is nowhere to write or the write failed
        """
        target = Path(path) if path is not None else self.state_path
        if target is None:
            logger.warning("No path given for saving the directory cache")
            return False
        return self._write_state(target, self.state())

    def load(self, path: Path | str | None = None) -> DirectoryCacheState | None:
        """Restore the cache from ``path`` (default: ``state_path``).

        A missing or unreadable file leaves the cache untouched. Like
        ``clear``, the restore waits for an in-flight refresh.

        Returns:
            The loaded state, or None if nothing was loaded
        """
        source = Path(path) if path is not None else self.state_path
        if source is None or not source.exists():
            logger.debug(f"No directory cache state at {source}")
            return None
        try:
            state = DirectoryCacheState.from_json(source.read_bytes())
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable directory cache state {source}: {e}")
            return None

        acquired = self._wait_for_guard()
        if not acquired:
            logger.warning("Timed out waiting for in-flight directory refresh, loading anyway")
        try:
            with self._lock:
                self._entries = dict(state.employees)
                self._fully_loaded = bool(state.employees)
                self._last_refresh = state.last_cache_update
        finally:
            if acquired:
                self._refresh_guard.release()
        logger.info(f"Loaded {len(state.employees)} cached employees from {source}")
        return state

    def shutdown(self, wait: bool = True) -> None:
        """Stop the executor if this cache created it."""
        with self._lock:
            executor, owned = self._executor, self._owns_executor
            if owned:
                self._executor = None
                self._owns_executor = False
        if owned and executor is not None:
            executor.shutdown(wait=wait)
