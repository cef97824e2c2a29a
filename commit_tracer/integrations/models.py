"""Data models for the employee directory and issue tracker integrations.

This module defines the employee record produced by the directory client,
the cache bookkeeping wrappers that are persisted between runs, and the
small contracts consumed from the issue tracker and commit source.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol

# Last-refresh value that makes the cache stale on the next read
STALE_SENTINEL = datetime.min.replace(tzinfo=timezone.utc)


def normalize_email_key(email: str) -> str:
    """Cache key for an email address (lookups are case-insensitive)."""
    return email.strip().lower()


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC.

    Returns:
        Aware datetime or None if the value cannot be parsed
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _opt_str(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


@dataclass(frozen=True)
class EmployeeRecord:
    """One employee as known to the directory.

    ``team`` and ``title`` hold resolved names; the raw upstream ids are kept
    for debugging and re-resolution.
    """

    email: str
    display_name: str = ""
    team: str = ""
    title: str = ""
    manager: str = ""
    department_id: str | None = None
    title_id: str | None = None
    site_id: str | None = None
    team_id: str | None = None

    def __post_init__(self) -> None:
        if not self.email or not self.email.strip():
            raise ValueError("EmployeeRecord requires a non-blank email")

    @property
    def key(self) -> str:
        return normalize_email_key(self.email)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the persisted dictionary shape."""
        data: dict[str, Any] = {
            "email": self.email,
            "name": self.display_name,
            "team": self.team,
            "title": self.title,
            "manager": self.manager,
        }
        for key, value in (
            ("departmentId", self.department_id),
            ("titleId", self.title_id),
            ("siteId", self.site_id),
            ("teamId", self.team_id),
        ):
            if value is not None:
                data[key] = value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EmployeeRecord:
        return cls(
            email=str(data.get("email") or ""),
            display_name=str(data.get("name") or ""),
            team=str(data.get("team") or ""),
            title=str(data.get("title") or ""),
            manager=str(data.get("manager") or ""),
            department_id=_opt_str(data.get("departmentId")),
            title_id=_opt_str(data.get("titleId")),
            site_id=_opt_str(data.get("siteId")),
            team_id=_opt_str(data.get("teamId")),
        )


@dataclass(frozen=True)
class CacheEntry:
    """An employee record with the time it was fetched."""

    record: EmployeeRecord
    timestamp: datetime

    def to_dict(self) -> dict[str, Any]:
        data = self.record.to_dict()
        data["timestamp"] = self.timestamp.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CacheEntry:
        timestamp = parse_timestamp(data.get("timestamp")) or STALE_SENTINEL
        return cls(record=EmployeeRecord.from_dict(data), timestamp=timestamp)


@dataclass
class DirectoryCacheState:
    """Persisted form of the directory cache.

    Attributes:
        employees: Cache entries keyed by normalized email
        last_cache_update: Time of the last successful full refresh
    """

    employees: dict[str, CacheEntry] = field(default_factory=dict)
    last_cache_update: datetime = STALE_SENTINEL

    def to_dict(self) -> dict[str, Any]:
        return {
            "employees": {key: entry.to_dict() for key, entry in self.employees.items()},
            "lastCacheUpdate": self.last_cache_update.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DirectoryCacheState:
        """Deserialize, skipping malformed entries.

        An unparsable ``lastCacheUpdate`` makes the state maximally stale.
        """
        employees: dict[str, CacheEntry] = {}
        raw_employees = data.get("employees")
        if isinstance(raw_employees, dict):
            for raw in raw_employees.values():
                if not isinstance(raw, dict):
                    continue
                try:
                    entry = CacheEntry.from_dict(raw)
                except ValueError:
                    continue
                employees[entry.record.key] = entry

        last_update = parse_timestamp(data.get("lastCacheUpdate")) or STALE_SENTINEL
        return cls(employees=employees, last_cache_update=last_update)

    def to_json(self) -> bytes:
        return json.dumps(self.to_dict(), indent=2).encode("utf-8")

    @classmethod
    def from_json(cls, payload: bytes | str) -> DirectoryCacheState:
        data = json.loads(payload)
        if not isinstance(data, dict):
            raise ValueError("cache state must be a JSON object")
        return cls.from_dict(data)


@dataclass(frozen=True)
class TicketInfo:
    """Issue tracker metadata for one ticket."""

    ticket_id: str
    summary: str = ""
    tags: tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.ticket_id, "summary": self.summary, "tags": list(self.tags)}


class TicketInfoSource(Protocol):
    """Issue tracker contract used by commit aggregation."""

    def fetch_ticket_info(self, ticket_id: str) -> TicketInfo | None: ...


@dataclass(frozen=True)
class CommitRecord:
    """A commit as supplied by the commit source."""

    hash: str
    author_email: str
    message: str
    changed_files: tuple[str, ...] = field(default_factory=tuple)
    committed_at: datetime | None = None
