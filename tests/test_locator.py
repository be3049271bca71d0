"""Tests for the read path."""

from __future__ import annotations

from pathlib import Path

import pytest

from memtree.memory.entry import Entry, write_entry
from memtree.memory.index import Index
from memtree.memory.initializer import initialize
from memtree.memory.locator import NO_MATCHES_FOUND, Locator, format_results
from memtree.memory.writer import EntryWriter, MemoryItem


@pytest.fixture
def root(tmp_path: Path) -> Path:
    root = tmp_path / "memory"
    initialize(root)
    return root


def add(root: Path, domain: str, stem: str, **fields) -> Path:
    entry = Entry(title=fields.pop("title", stem), **fields)
    path = root / domain / f"{stem}.md"
    write_entry(path, entry)
    index = Index.load(root / domain / "_index.md")
    index.upsert(path.name, entry.summary, entry.updated)
    index.save()
    return path


def snapshot(root: Path) -> dict[str, tuple[bytes, int]]:
    return {
        str(p): (p.read_bytes(), p.stat().st_mtime_ns) for p in root.rglob("*") if p.is_file()
    }


class TestPasses:
    def test_index_pass(self, root: Path):
        add(root, "decisions", "use-postgresql", summary="Chose Postgres over MySQL")
        hits = Locator(root).search("postgres")
        assert [h.path.name for h in hits] == ["use-postgresql.md"]
        assert hits[0].matched_by == "index"
        assert hits[0].domain == "decisions"

    def test_filename_pass_in_subdirectory(self, root: Path):
        (root / "bugs" / "auth").mkdir()
        Index(path=root / "bugs" / "auth" / "_index.md", header="# Bugs / Auth").save()
        write_entry(root / "bugs" / "auth" / "jwt-expiry.md", Entry(title="Token bug"))
        hits = Locator(root).search("jwt expiry")
        assert hits[0].path.name == "jwt-expiry.md"
        assert hits[0].matched_by == "filename"

    def test_tags_pass(self, root: Path):
        add(root, "decisions", "adopt-redis", summary="Use Redis for sessions.", tags=["caching"])
        hits = Locator(root).search("caching")
        assert hits[0].matched_by == "tags"

    def test_content_pass(self, root: Path):
        add(
            root,
            "patterns",
            "redis-usage",
            summary="Picked Redis.",
            details="It handles eviction well.",
        )
        hits = Locator(root).search("eviction")
        assert hits[0].matched_by == "content"

    def test_punctuation_only_query_matches_nothing(self, root: Path):
        add(root, "decisions", "untitled", summary="Scratch")
        add(root, "decisions", "use-redis", summary="Redis for sessions")
        assert Locator(root).search("???") is NO_MATCHES_FOUND

    def test_index_files_not_searched(self, root: Path):
        add(root, "decisions", "use-redis", summary="Redis for sessions")
        assert Locator(root).search("Architecture") is NO_MATCHES_FOUND


class TestResults:
    def test_no_matches_marker(self, root: Path):
        result = Locator(root).search("nonexistent-query-12345")
        assert result is NO_MATCHES_FOUND
        assert not result
        assert "NO_MATCHES_FOUND" in format_results("x", result, root)

    def test_bounded(self, root: Path):
        for i in range(12):
            add(root, "research", f"alpha-{i:02d}", summary="alpha notes")
        assert len(Locator(root).search("alpha")) == 10
        assert len(Locator(root, max_results=3).search("alpha")) == 3

    def test_ranked_by_recency_then_confidence(self, root: Path):
        add(root, "decisions", "old-cache", summary="cache", updated="2025-01-01", confidence="high")
        add(root, "patterns", "new-cache", summary="cache", updated="2026-03-01", confidence="low")
        add(root, "bugs", "new-cache-bug", summary="cache", updated="2026-03-01", confidence="high")
        hits = Locator(root).search("cache")
        assert [h.path.stem for h in hits] == ["new-cache-bug", "new-cache", "old-cache"]

    def test_domain_relevance_breaks_ties(self, root: Path):
        add(root, "bugs", "cache-a", summary="cache", updated="2026-01-01")
        add(root, "patterns", "cache-b", summary="cache", updated="2026-01-01")
        hits = Locator(root).search("patterns cache")
        assert hits[0].domain == "patterns"

    def test_archived_flag(self, root: Path):
        add(root, "decisions", "use-mysql", summary="mysql", status="archived")
        hits = Locator(root).search("mysql")
        assert hits[0].archived
        assert "[archived]" in format_results("mysql", hits, root)


class TestReadOnly:
    def test_search_mutates_nothing(self, root: Path):
        EntryWriter(root).write_entries(
            [MemoryItem(domain="decisions", title="Use PostgreSQL", content="Chose Postgres")]
        )
        before = snapshot(root)
        Locator(root).search("postgres")
        Locator(root).search("nothing-here")
        assert snapshot(root) == before
