"""Per-author commit statistics.

Commits come from an external source; this module groups them by author,
extracts issue tracker ticket ids from the messages, flags commits that
touch tests and attaches directory data for each author.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .integrations.cache import DirectoryCache
from .integrations.models import CommitRecord, TicketInfo, TicketInfoSource, normalize_email_key
from .tracer_logging import get_logger

logger = get_logger(__name__)

# Merge/code review ids and EA-XXX-n references are not tracker tickets
TICKET_PATTERN = re.compile(r"\b(?!MR-|CR-|EA-[A-Z]+-\d+)[A-Z]+-\d+\b")

TEST_PATH_MARKERS = ("/test/", "/tests/", "Test.", "Tests.")
TEST_PATH_SUFFIXES = (
    "Test.kt",
    "Test.java",
    "Tests.kt",
    "Tests.java",
    "Spec.kt",
    "Spec.java",
    "_test.go",
)


def extract_ticket_ids(message: str) -> set[str]:
    """Ticket ids referenced in a commit message, e.g. ``{"IDEA-1234"}``."""
    if not message:
        return set()
    return set(TICKET_PATTERN.findall(message))


def is_test_file(path: str) -> bool:
    return any(marker in path for marker in TEST_PATH_MARKERS) or path.endswith(
        TEST_PATH_SUFFIXES
    )


def touches_tests(commit: CommitRecord) -> bool:
    return any(is_test_file(path) for path in commit.changed_files)


@dataclass
class AuthorStats:
    """Aggregated activity of one commit author.

    Attributes:
        author_email: Email as it appears on the author's commits
        commit_count: Number of commits
        first_commit: Earliest commit time, None if no commit had a time
        last_commit: Latest commit time
        tickets: Ticket id -> hashes of the commits referencing it
        test_touched_count: Commits changing at least one test file
        active_days: ISO dates with at least one commit
        display_name: Directory name, blank when the author is unknown
        team: Directory team name
        title: Directory job title
        ticket_info: Tracker metadata per ticket, when a tracker was given
    """

    author_email: str
    commit_count: int = 0
    first_commit: datetime | None = None
    last_commit: datetime | None = None
    tickets: dict[str, list[str]] = field(default_factory=dict)
    test_touched_count: int = 0
    active_days: set[str] = field(default_factory=set)
    display_name: str = ""
    team: str = ""
    title: str = ""
    ticket_info: dict[str, TicketInfo] = field(default_factory=dict)

    @property
    def active_day_count(self) -> int:
        return len(self.active_days)

    @property
    def commits_per_day(self) -> float:
        days = self.active_day_count
        return self.commit_count / days if days else 0.0

    @property
    def test_percentage(self) -> float:
        return self.test_touched_count / self.commit_count * 100 if self.commit_count else 0.0

    def add_commit(self, commit: CommitRecord) -> None:
        self.commit_count += 1
        if touches_tests(commit):
            self.test_touched_count += 1

        for ticket_id in extract_ticket_ids(commit.message):
            self.tickets.setdefault(ticket_id, []).append(commit.hash)

        when = commit.committed_at
        if when is not None:
            if self.first_commit is None or when < self.first_commit:
                self.first_commit = when
            if self.last_commit is None or when > self.last_commit:
                self.last_commit = when
            self.active_days.add(when.date().isoformat())

    def to_dict(self) -> dict[str, Any]:
        return {
            "author_email": self.author_email,
            "display_name": self.display_name,
            "team": self.team,
            "title": self.title,
            "commit_count": self.commit_count,
            "first_commit": self.first_commit.isoformat() if self.first_commit else None,
            "last_commit": self.last_commit.isoformat() if self.last_commit else None,
            "tickets": {ticket: list(hashes) for ticket, hashes in self.tickets.items()},
            "test_touched_count": self.test_touched_count,
            "test_percentage": round(self.test_percentage, 2),
            "active_days": self.active_day_count,
            "commits_per_day": round(self.commits_per_day, 2),
            "ticket_info": {ticket: info.to_dict() for ticket, info in self.ticket_info.items()},
        }


def aggregate_by_author(
    commits: Iterable[CommitRecord],
    cache: DirectoryCache | None = None,
    ticket_source: TicketInfoSource | None = None,
) -> dict[str, AuthorStats]:
    """Group commits by author and enrich each author from the directory.

    Args:
        commits: Commits to aggregate, in any order
        cache: Directory used to resolve authors; skipped when None
        ticket_source: Issue tracker queried once per distinct ticket

    Returns:
        AuthorStats keyed by lowercased author email
    """
    by_author: dict[str, AuthorStats] = {}
    for commit in commits:
        if not commit.author_email or not commit.author_email.strip():
            logger.debug(f"Skipping commit {commit.hash} without author email")
            continue
        key = normalize_email_key(commit.author_email)
        stats = by_author.get(key)
        if stats is None:
            stats = by_author[key] = AuthorStats(author_email=commit.author_email)
        stats.add_commit(commit)

    if cache is not None:
        for stats in by_author.values():
            employee = cache.lookup(stats.author_email)
            if employee is not None:
                stats.display_name = employee.display_name
                stats.team = employee.team
                stats.title = employee.title

    if ticket_source is not None:
        resolved: dict[str, TicketInfo | None] = {}
        for stats in by_author.values():
            for ticket_id in stats.tickets:
                if ticket_id not in resolved:
                    resolved[ticket_id] = ticket_source.fetch_ticket_info(ticket_id)
                info = resolved[ticket_id]
                if info is not None:
                    stats.ticket_info[ticket_id] = info
        logger.debug(f"Resolved {sum(v is not None for v in resolved.values())}/{len(resolved)} tickets")

    logger.info(f"Aggregated commits for {len(by_author)} authors")
    return by_author
