"""Tests for memory tree initialization."""

from __future__ import annotations

from pathlib import Path

import pytest

from memtree.errors import InitializationError
from memtree.memory.index import Index
from memtree.memory.initializer import CANONICAL_DOMAINS, initialize


def snapshot(root: Path) -> dict[str, bytes]:
    return {
        str(p.relative_to(root)): p.read_bytes() if p.is_file() else b"<dir>"
        for p in sorted(root.rglob("*"))
    }


@pytest.fixture
def root(tmp_path: Path) -> Path:
    return tmp_path / "memory"


class TestFreshTree:
    def test_creates_all_domains(self, root: Path):
        report = initialize(root)
        assert report.fresh
        for name in CANONICAL_DOMAINS:
            assert (root / name).is_dir()
            assert (root / name / "_index.md").exists()
        assert len(report.created_indexes) == len(CANONICAL_DOMAINS) + 1

    def test_root_index_lists_domains(self, root: Path):
        initialize(root)
        index = Index.load(root / "_index.md")
        assert index.columns == ("Domain", "Description", "Updated")
        assert index.names() == [f"{name}/" for name in CANONICAL_DOMAINS]

    def test_domain_index_is_empty_table(self, root: Path):
        initialize(root)
        text = (root / "decisions" / "_index.md").read_text(encoding="utf-8")
        assert text.startswith("# Decisions")
        assert "| File/Folder | Summary | Updated |" in text
        assert Index.load(root / "decisions" / "_index.md").rows == []


class TestIdempotence:
    def test_second_call_is_byte_identical(self, root: Path):
        initialize(root)
        before = snapshot(root)
        report = initialize(root)
        assert snapshot(root) == before
        assert not report.changed
        assert not report.fresh

    def test_custom_content_untouched(self, root: Path):
        initialize(root)
        custom = "# Decisions\n\nOur own words.\n\n| File/Folder | Summary | Updated |\n| --- | --- | --- |\n"
        (root / "decisions" / "_index.md").write_text(custom, encoding="utf-8")
        (root / "decisions" / "keep.md").write_text("# Keep\n", encoding="utf-8")
        initialize(root)
        assert (root / "decisions" / "_index.md").read_text(encoding="utf-8") == custom
        assert (root / "decisions" / "keep.md").exists()

    def test_repairs_partial_tree(self, root: Path):
        initialize(root)
        (root / "bugs" / "_index.md").unlink()
        (root / "bugs").rmdir()
        (root / "plans" / "_index.md").unlink()
        index = Index.load(root / "_index.md")
        index.remove("research/")
        index.save()

        report = initialize(root)
        assert "bugs" in report.created_dirs
        assert "bugs/_index.md" in report.created_indexes
        assert "plans/_index.md" in report.created_indexes
        assert report.root_rows_added == ["research"]
        assert (root / "bugs" / "_index.md").exists()
        assert Index.load(root / "_index.md").get("research/") is not None

    def test_repair_then_stable(self, root: Path):
        initialize(root)
        (root / "plans" / "_index.md").unlink()
        initialize(root)
        before = snapshot(root)
        initialize(root)
        assert snapshot(root) == before


class TestFailure:
    def test_io_error_is_fatal_with_report(self, tmp_path: Path):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("file", encoding="utf-8")
        with pytest.raises(InitializationError) as exc_info:
            initialize(blocker / "memory")
        assert exc_info.value.report.failed
        assert "FAILED" in exc_info.value.report.format()
