"""Tests for file map reconciliation."""

from __future__ import annotations

from pathlib import Path

import pytest

from memtree.memory import reconcile as reconcile_module
from memtree.memory.index import Index
from memtree.memory.reconcile import (
    dispatch_reconcile,
    enumerate_files,
    extract_descriptions,
    file_map_path,
    reconcile,
    render_file_map,
)


def touch(path: Path, text: str = "x") -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


@pytest.fixture
def project(tmp_path: Path) -> Path:
    root = tmp_path / "project"
    touch(root / "README.md")
    touch(root / "src" / "auth.ts")
    touch(root / "src" / "routes" / "users.ts")
    touch(root / "node_modules" / "lib" / "index.js")
    touch(root / ".git" / "config")
    touch(root / "dist" / "bundle.js")
    touch(root / "src" / "__pycache__" / "x.pyc")
    touch(root / ".DS_Store")
    return root


@pytest.fixture
def memory(project: Path) -> Path:
    return project / ".claude" / "memory"


class TestEnumerate:
    def test_excludes_noise(self, project: Path, memory: Path):
        touch(memory / "decisions" / "use-postgresql.md")
        files = enumerate_files(project, memory_root=memory)
        assert files == ["README.md", "src/auth.ts", "src/routes/users.ts"]

    def test_extra_patterns(self, project: Path):
        touch(project / "yarn.lock")
        touch(project / "tmp" / "scratch.txt")
        files = enumerate_files(project, exclude=["*.lock", "tmp"])
        assert "yarn.lock" not in files
        assert "tmp/scratch.txt" not in files


class TestRender:
    def test_groups_by_directory(self):
        text = render_file_map(["README.md", "src/auth.ts", "src/db.ts"])
        lines = text.splitlines()
        assert lines[0] == "# Project File Map"
        assert lines[2].startswith("> Last updated:")
        assert lines.count("## ./") == 1
        assert lines.count("## src/") == 1
        assert lines.index("## src/") < lines.index("- `auth.ts`")

    def test_attaches_descriptions(self):
        text = render_file_map(["src/auth.ts"], {"auth.ts": "Login handler"})
        assert "- `auth.ts` - Login handler" in text

    def test_extract_descriptions(self):
        text = "- `auth.ts` - Login handler\n- `db.ts`\n- `auth.ts` - Other\n"
        assert extract_descriptions(text) == {"auth.ts": "Login handler"}


class TestReconcile:
    def test_fresh_index(self, project: Path, memory: Path):
        assert reconcile(project, memory) == "updated"
        text = file_map_path(memory).read_text(encoding="utf-8")
        assert "- `auth.ts`" in text
        assert "- `README.md`" in text
        assert " - " not in text.split("> Last updated:")[1].split("\n", 1)[1]

    def test_files_domain_lists_map(self, project: Path, memory: Path):
        reconcile(project, memory)
        index = Index.load(memory / "files" / "_index.md")
        assert index.get("project-map.md") is not None

    def test_preserves_descriptions(self, project: Path, memory: Path):
        reconcile(project, memory)
        target = file_map_path(memory)
        text = target.read_text(encoding="utf-8").replace(
            "- `auth.ts`", "- `auth.ts` - Login handler"
        )
        target.write_text(text, encoding="utf-8")
        touch(project / "src" / "new.ts")

        assert reconcile(project, memory) == "updated"
        new_text = target.read_text(encoding="utf-8")
        assert "- `auth.ts` - Login handler" in new_text
        assert "- `new.ts`\n" in new_text

    def test_unchanged_leaves_file_alone(self, project: Path, memory: Path):
        reconcile(project, memory)
        target = file_map_path(memory)
        text = target.read_text(encoding="utf-8")
        stale = text.replace(text.splitlines()[2], "> Last updated: 2000-01-01 00:00")
        target.write_text(stale, encoding="utf-8")

        assert reconcile(project, memory) == "unchanged"
        assert target.read_text(encoding="utf-8") == stale

    def test_drops_deleted_files(self, project: Path, memory: Path):
        reconcile(project, memory)
        target = file_map_path(memory)
        target.write_text(
            target.read_text(encoding="utf-8").replace(
                "- `users.ts`", "- `users.ts` - User routes"
            ),
            encoding="utf-8",
        )
        (project / "src" / "routes" / "users.ts").unlink()

        assert reconcile(project, memory) == "updated"
        text = target.read_text(encoding="utf-8")
        assert "users.ts" not in text
        assert "## src/routes/" not in text

    def test_shared_basename_first_description_wins(self, project: Path, memory: Path):
        touch(project / "lib" / "auth.ts")
        reconcile(project, memory)
        target = file_map_path(memory)
        lines = target.read_text(encoding="utf-8").splitlines()
        first = lines.index("- `auth.ts`")
        lines[first] = "- `auth.ts` - Library auth"
        target.write_text("\n".join(lines) + "\n", encoding="utf-8")

        reconcile(project, memory)
        text = target.read_text(encoding="utf-8")
        assert text.count("- `auth.ts` - Library auth") == 2

    def test_does_not_touch_other_domains(self, project: Path, memory: Path):
        touch(memory / "decisions" / "_index.md", "# Decisions\n")
        reconcile(project, memory)
        assert (memory / "decisions" / "_index.md").read_text(encoding="utf-8") == "# Decisions\n"


class TestBackgroundDispatch:
    @pytest.mark.asyncio
    async def test_dispatch_returns_result(self, project: Path, memory: Path):
        task = dispatch_reconcile(project, memory)
        assert await task == "updated"
        assert file_map_path(memory).exists()

    @pytest.mark.asyncio
    async def test_dispatch_failure_is_logged_not_raised(
        self, project: Path, memory: Path, monkeypatch, caplog
    ):
        def boom(*args, **kwargs):
            raise PermissionError("read-only")

        monkeypatch.setattr(reconcile_module, "reconcile", boom)
        task = dispatch_reconcile(project, memory)
        assert await task == "failed"
        assert "reconciliation failed" in caplog.text
