"""Tests for per-author commit aggregation."""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from commit_tracer.aggregation import (
    AuthorStats,
    aggregate_by_author,
    extract_ticket_ids,
    is_test_file,
)
from commit_tracer.integrations.models import CommitRecord, EmployeeRecord, TicketInfo


def commit(hash_, email, message="", files=(), day=1, hour=10):
    return CommitRecord(
        hash=hash_,
        author_email=email,
        message=message,
        changed_files=tuple(files),
        committed_at=datetime(2025, 3, day, hour, tzinfo=timezone.utc),
    )


class TestExtractTicketIds:
    """Test ticket id extraction from commit messages."""

    def test_single_ticket(self):
        assert extract_ticket_ids("IDEA-1234 Fix crash") == {"IDEA-1234"}

    def test_multiple_tickets(self):
        assert extract_ticket_ids("KT-1, KT-2: merge; see also IJPL-77") == {
            "KT-1",
            "KT-2",
            "IJPL-77",
        }

    @pytest.mark.parametrize("message", ["MR-12 merged", "CR-99 review"])
    def test_excluded_prefixes(self, message):
        assert extract_ticket_ids(message) == set()

    def test_lowercase_not_matched(self):
        assert extract_ticket_ids("idea-1234") == set()

    def test_empty_message(self):
        assert extract_ticket_ids("") == set()


class TestIsTestFile:
    """Test the test-path heuristics."""

    @pytest.mark.parametrize(
        "path",
        [
            "src/test/kotlin/Foo.kt",
            "python/tests/test_x.py",
            "src/FooTest.java",
            "src/FooTests.kt",
            "src/FooSpec.kt",
            "pkg/foo_test.go",
            "src/Test.Helpers.cs",
        ],
    )
    def test_test_paths(self, path):
        assert is_test_file(path)

    @pytest.mark.parametrize("path", ["src/main/Foo.kt", "README.md", "pkg/testing.go"])
    def test_non_test_paths(self, path):
        assert not is_test_file(path)


class TestAggregateByAuthor:
    """Test aggregate_by_author."""

    @pytest.fixture
    def commits(self):
        return [
            commit("a1", "Ann@Company.com", "IDEA-1 start", ["src/Foo.kt"], day=1),
            commit("a2", "ann@company.com", "IDEA-1 tests", ["src/test/FooTest.kt"], day=1, hour=15),
            commit("a3", "ann@company.com", "KT-9 follow-up", ["src/Bar.kt"], day=3),
            commit("b1", "bob@home.net", "no ticket", ["docs/x.md"], day=2),
        ]

    def test_groups_case_insensitively(self, commits):
        stats = aggregate_by_author(commits)
        assert set(stats) == {"ann@company.com", "bob@home.net"}
        assert stats["ann@company.com"].author_email == "Ann@Company.com"
        assert stats["ann@company.com"].commit_count == 3

    def test_ticket_to_commit_hashes(self, commits):
        ann = aggregate_by_author(commits)["ann@company.com"]
        assert ann.tickets == {"IDEA-1": ["a1", "a2"], "KT-9": ["a3"]}

    def test_dates_and_activity(self, commits):
        ann = aggregate_by_author(commits)["ann@company.com"]
        assert ann.first_commit == datetime(2025, 3, 1, 10, tzinfo=timezone.utc)
        assert ann.last_commit == datetime(2025, 3, 3, 10, tzinfo=timezone.utc)
        assert ann.active_days == {"2025-03-01", "2025-03-03"}
        assert ann.commits_per_day == 1.5

    def test_test_touched_count(self, commits):
        ann = aggregate_by_author(commits)["ann@company.com"]
        assert ann.test_touched_count == 1
        assert ann.test_percentage == pytest.approx(100 / 3)

    def test_directory_enrichment(self, commits):
        cache = MagicMock()
        cache.lookup.side_effect = lambda email: (
            EmployeeRecord(email="ann@company.com", display_name="Ann", team="IDE", title="Dev")
            if email.lower() == "ann@company.com"
            else None
        )
        stats = aggregate_by_author(commits, cache)

        assert stats["ann@company.com"].display_name == "Ann"
        assert stats["ann@company.com"].team == "IDE"
        assert stats["bob@home.net"].display_name == ""
        assert cache.lookup.call_count == 2

    def test_ticket_source_queried_once_per_ticket(self):
        commits = [
            commit("a1", "ann@company.com", "IDEA-1"),
            commit("b1", "bob@company.com", "IDEA-1 and IDEA-2"),
        ]
        source = MagicMock()
        source.fetch_ticket_info.side_effect = lambda t: (
            TicketInfo(t, summary="Crash") if t == "IDEA-1" else None
        )

        stats = aggregate_by_author(commits, ticket_source=source)

        assert source.fetch_ticket_info.call_count == 2
        assert stats["ann@company.com"].ticket_info["IDEA-1"].summary == "Crash"
        assert "IDEA-2" not in stats["bob@company.com"].ticket_info

    def test_commit_without_author_skipped(self):
        stats = aggregate_by_author([commit("x", "  ")])
        assert stats == {}

    def test_commit_without_time(self):
        record = CommitRecord(hash="x", author_email="a@b.com", message="")
        stats = aggregate_by_author([record])["a@b.com"]
        assert stats.first_commit is None
        assert stats.active_day_count == 0
        assert stats.commits_per_day == 0.0


class TestAuthorStats:
    def test_to_dict(self):
        stats = AuthorStats(author_email="a@b.com")
        stats.add_commit(commit("h1", "a@b.com", "KT-1", ["FooTest.kt"]))
        data = stats.to_dict()
        assert data["commit_count"] == 1
        assert data["tickets"] == {"KT-1": ["h1"]}
        assert data["test_percentage"] == 100.0
        assert data["first_commit"] == "2025-03-01T10:00:00+00:00"
