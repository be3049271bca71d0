"""Whole-tree index audit: every child listed once, every row backed by a child."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from memtree.memory.entry import read_entry
from memtree.memory.index import NEVER, Index, index_path, list_children
from memtree.memory.initializer import (
    CANONICAL_DOMAINS,
    default_domain_index,
    default_root_index,
)

logger = logging.getLogger(__name__)


@dataclass
class DirectoryIssue:
    directory: Path
    missing_index: bool = False
    unlisted: list[str] = field(default_factory=list)
    orphaned: list[str] = field(default_factory=list)
    duplicated: list[str] = field(default_factory=list)


@dataclass
class VerifyReport:
    root: Path
    checked: int = 0
    issues: list[DirectoryIssue] = field(default_factory=list)
    repaired: bool = False

    @property
    def ok(self) -> bool:
        return not self.issues

    def format(self) -> str:
        if self.ok:
            return f"Memory tree OK ({self.checked} directories checked)"
        lines = [
            f"{len(self.issues)} of {self.checked} directories inconsistent"
            + (" (repaired)" if self.repaired else "")
        ]
        for issue in self.issues:
            rel = issue.directory.relative_to(self.root).as_posix() or "."
            if issue.missing_index:
                lines.append(f"  {rel}: missing _index.md")
            for name in issue.unlisted:
                lines.append(f"  {rel}: unlisted {name}")
            for name in issue.orphaned:
                lines.append(f"  {rel}: orphan row {name}")
            for name in issue.duplicated:
                lines.append(f"  {rel}: duplicate row {name}")
        return "\n".join(lines)


def _describe(path: Path) -> tuple[str, str]:
    if path.is_dir():
        return f"{path.name.replace('-', ' ')}", NEVER
    if path.suffix != ".md":
        return "", NEVER
    entry = read_entry(path)
    summary = entry.summary.splitlines()[0] if entry.summary else entry.title
    return summary, entry.updated or NEVER


def _directories(root: Path) -> list[Path]:
    dirs = [root]
    for path in sorted(root.rglob("*")):
        rel = path.relative_to(root)
        if path.is_dir() and not any(part.startswith(".") for part in rel.parts):
            dirs.append(path)
    return dirs


def verify_tree(root: Path, repair: bool = False) -> VerifyReport:
    """Check index bijection for every directory; optionally fix rows in place."""
    report = VerifyReport(root=root, repaired=repair)
    for directory in _directories(root):
        report.checked += 1
        children = list_children(directory)
        path = index_path(directory)
        issue = DirectoryIssue(directory=directory, missing_index=not path.exists())
        if path.exists():
            index = Index.load(path)
        elif directory == root:
            index = default_root_index(root, {})
        else:
            index = default_domain_index(directory, CANONICAL_DOMAINS.get(directory.name, ""))

        names = index.names()
        seen: set[str] = set()
        for name in names:
            if name in seen and name not in issue.duplicated:
                issue.duplicated.append(name)
            seen.add(name)

        def resolve(name: str) -> str:
            # Root rows may name domains without the trailing slash.
            if name not in children and f"{name}/" in children:
                return f"{name}/"
            return name

        listed = {resolve(n) for n in names}
        issue.unlisted = [c for c in children if c not in listed]
        issue.orphaned = [n for n in dict.fromkeys(names) if resolve(n) not in children]

        if not (issue.missing_index or issue.unlisted or issue.orphaned or issue.duplicated):
            continue
        report.issues.append(issue)
        if repair:
            kept, kept_names = [], set()
            for row in index.rows:
                if row.name in kept_names or row.name in issue.orphaned:
                    continue
                kept_names.add(row.name)
                kept.append(row)
            index.rows = kept
            for name in issue.unlisted:
                summary, updated = _describe(directory / name.rstrip("/"))
                index.upsert(name, summary, updated)
            index.save()
            logger.warning(
                "Repaired %s: %d unlisted, %d orphaned, %d duplicated",
                path,
                len(issue.unlisted),
                len(issue.orphaned),
                len(issue.duplicated),
            )
    return report
