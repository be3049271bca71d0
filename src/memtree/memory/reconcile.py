"""Regenerate the project file map, keeping hand-written descriptions.

The map lives in the `files` domain and is the only thing this module
writes, so it can run in the background next to entry writes on other
domains. Hand-authored descriptions are carried over by basename; a
refreshed timestamp alone never causes a rewrite.
"""

from __future__ import annotations

import asyncio
import logging
import os
import re
from datetime import datetime
from fnmatch import fnmatch
from pathlib import Path
from typing import Literal

from memtree.memory.entry import today
from memtree.memory.index import Index, index_path
from memtree.memory.initializer import CANONICAL_DOMAINS, default_domain_index

logger = logging.getLogger(__name__)

FILES_DOMAIN = "files"
FILE_MAP_NAME = "project-map.md"
FILE_MAP_SUMMARY = "Project file listing with descriptions"
TIMESTAMP_PREFIX = "> Last updated:"

NOISE_DIRS = frozenset(
    {
        ".git",
        ".hg",
        ".svn",
        "node_modules",
        "bower_components",
        ".venv",
        "venv",
        "__pycache__",
        ".pytest_cache",
        ".mypy_cache",
        ".ruff_cache",
        ".tox",
        "dist",
        "build",
        "out",
        ".next",
        ".turbo",
        ".cache",
        "coverage",
    }
)
NOISE_FILES = (
    ".DS_Store",
    "Thumbs.db",
    "desktop.ini",
    "*.pyc",
    "*.pyo",
    "*.class",
    "*.o",
    "*.so",
    "*.dylib",
    "*.dll",
    "*.exe",
    "*.tsbuildinfo",
)

_FILE_ROW = re.compile(r"^- `(?P<name>[^`]+)` - (?P<desc>.+?)\s*$")

ReconcileResult = Literal["updated", "unchanged", "failed"]

# Pending background tasks, held until done.
_background: set[asyncio.Task] = set()


def file_map_path(memory_root: Path) -> Path:
    return memory_root / FILES_DOMAIN / FILE_MAP_NAME


def _excluded(rel: str, name: str, patterns: tuple[str, ...]) -> bool:
    return any(fnmatch(name, p) or fnmatch(rel, p) for p in patterns)


def enumerate_files(
    project_root: Path,
    exclude: list[str] | tuple[str, ...] = (),
    memory_root: Path | None = None,
) -> list[str]:
    """Relative POSIX paths of every project file, noise excluded, sorted."""
    patterns = tuple(NOISE_FILES) + tuple(exclude)
    skip_dir: Path | None = None
    if memory_root is not None:
        skip_dir = memory_root.resolve()

    found: list[str] = []
    for dirpath, dirnames, filenames in os.walk(project_root):
        current = Path(dirpath)
        kept = []
        for d in dirnames:
            sub = current / d
            rel = sub.relative_to(project_root).as_posix()
            if d in NOISE_DIRS or _excluded(rel, d, patterns):
                continue
            if skip_dir is not None and sub.resolve() == skip_dir:
                continue
            kept.append(d)
        dirnames[:] = kept
        for name in filenames:
            rel = (current / name).relative_to(project_root).as_posix()
            if not _excluded(rel, name, patterns):
                found.append(rel)
    return sorted(found)


def extract_descriptions(text: str) -> dict[str, str]:
    """basename -> description for rows that carry one. First occurrence wins."""
    descriptions: dict[str, str] = {}
    for line in text.splitlines():
        m = _FILE_ROW.match(line.strip())
        if m and m.group("name") not in descriptions:
            descriptions[m.group("name")] = m.group("desc")
    return descriptions


def render_file_map(
    files: list[str],
    descriptions: dict[str, str] | None = None,
    now: datetime | None = None,
) -> str:
    descriptions = descriptions or {}
    stamp = (now or datetime.now()).strftime("%Y-%m-%d %H:%M")
    lines = ["# Project File Map", "", f"{TIMESTAMP_PREFIX} {stamp}"]
    current_dir: str | None = None
    for rel in files:
        directory, _, name = rel.rpartition("/")
        directory = directory or "."
        if directory != current_dir:
            lines += ["", f"## {directory}/"]
            current_dir = directory
        desc = descriptions.get(name)
        lines.append(f"- `{name}` - {desc}" if desc else f"- `{name}`")
    return "\n".join(lines) + "\n"


def _without_timestamp(text: str) -> str:
    return "\n".join(
        line for line in text.splitlines() if not line.startswith(TIMESTAMP_PREFIX)
    ).strip()


def reconcile(
    project_root: Path,
    memory_root: Path,
    exclude: list[str] | tuple[str, ...] = (),
) -> ReconcileResult:
    """Regenerate files/project-map.md. Returns "updated" or "unchanged"."""
    target = file_map_path(memory_root)
    files = enumerate_files(project_root, exclude, memory_root=memory_root)

    old = target.read_text(encoding="utf-8") if target.exists() else None
    descriptions = extract_descriptions(old) if old is not None else {}
    new = render_file_map(files, descriptions)

    if old is not None and _without_timestamp(old) == _without_timestamp(new):
        logger.debug("File map unchanged (%d files)", len(files))
        return "unchanged"

    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(new, encoding="utf-8")
    _list_file_map(target.parent)
    logger.info(
        "File map %s: %d files, %d descriptions kept",
        "regenerated" if old is not None else "created",
        len(files),
        sum(1 for rel in files if rel.rpartition("/")[2] in descriptions),
    )
    return "updated"


def _list_file_map(files_dir: Path) -> None:
    path = index_path(files_dir)
    if path.exists():
        index = Index.load(path)
    else:
        index = default_domain_index(files_dir, CANONICAL_DOMAINS[FILES_DOMAIN])
    summary = FILE_MAP_SUMMARY if index.get(FILE_MAP_NAME) is None else None
    index.upsert(FILE_MAP_NAME, summary, today())
    index.save()


def _reconcile_logged(
    project_root: Path, memory_root: Path, exclude: tuple[str, ...]
) -> ReconcileResult:
    try:
        return reconcile(project_root, memory_root, exclude)
    except Exception:
        logger.exception("Background file map reconciliation failed for %s", project_root)
        return "failed"


def dispatch_reconcile(
    project_root: Path,
    memory_root: Path,
    exclude: list[str] | tuple[str, ...] = (),
) -> asyncio.Task[ReconcileResult]:
    """Run reconcile() on a worker thread without blocking the caller.

    Must be called from a running event loop. The returned task never raises;
    a failure is logged and resolves to "failed".
    """
    loop = asyncio.get_running_loop()
    task = loop.create_task(
        asyncio.to_thread(_reconcile_logged, project_root, memory_root, tuple(exclude))
    )
    _background.add(task)
    task.add_done_callback(_background.discard)
    return task
