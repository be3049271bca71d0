"""Split an over-full domain directory into topic subdirectories.

Grouping: a caller-supplied `filename -> topic` mapping wins. Otherwise each
file joins the tag it shares with the most siblings (ties broken
alphabetically); files sharing no tag go to `general`. When inference puts
everything into one new group, files are split into alphabetical chunks of
at most `max_files` instead. Files are moved, never deleted, and every moved
file stays reachable through exactly one subdirectory index.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from memtree.errors import DepthLimitError
from memtree.memory.entry import read_entry, slugify
from memtree.memory.index import NEVER, Index, index_path, leaf_files
from memtree.memory.initializer import default_domain_index

logger = logging.getLogger(__name__)

DEFAULT_TOPIC = "general"


@dataclass
class RebalanceReport:
    directory: Path
    file_count: int = 0
    moved: dict[str, str] = field(default_factory=dict)
    created_dirs: list[str] = field(default_factory=list)
    nested: list[RebalanceReport] = field(default_factory=list)

    @property
    def rebalanced(self) -> bool:
        return bool(self.moved)

    def format(self) -> str:
        if not self.rebalanced:
            return f"{self.directory.name}: {self.file_count} files, no rebalance needed"
        groups = Counter(self.moved.values())
        parts = ", ".join(f"{topic}/ ({n})" for topic, n in sorted(groups.items()))
        lines = [f"{self.directory.name}: moved {len(self.moved)} files into {parts}"]
        lines += ["  " + nested.format() for nested in self.nested if nested.rebalanced]
        return "\n".join(lines)


def _title_of(index: Index, directory: Path) -> str:
    first = index.header.splitlines()[0] if index.header else ""
    return first.lstrip("# ").strip() or directory.name.title()


class Rebalancer:
    def __init__(self, root: Path, max_files: int = 8, max_depth: int = 5) -> None:
        self.root = root
        self.max_files = max_files
        self.max_depth = max_depth

    def depth(self, path: Path) -> int:
        return len(path.relative_to(self.root).parts)

    def rebalance_if_needed(
        self, directory: Path, grouping: Mapping[str, str] | None = None
    ) -> RebalanceReport:
        files = leaf_files(directory)
        report = RebalanceReport(directory=directory, file_count=len(files))
        if len(files) <= self.max_files:
            return report

        if self.depth(directory) + 1 > self.max_depth:
            raise DepthLimitError(directory, self.depth(directory) + 1, self.max_depth)

        groups = self._group(directory, files, grouping)
        self._apply(directory, groups, report)
        logger.info(
            "Rebalanced %s: %d files into %d subdirectories",
            directory,
            len(report.moved),
            len(set(report.moved.values())),
        )

        for topic in sorted(set(report.moved.values())):
            subdir = directory / topic
            try:
                nested = self.rebalance_if_needed(subdir)
            except DepthLimitError as e:
                logger.warning("Leaving %s over-full: %s", subdir, e)
                continue
            if nested.rebalanced:
                report.nested.append(nested)
        return report

    # ── Grouping ──────────────────────────────────────────────

    def _group(
        self, directory: Path, files: list[Path], grouping: Mapping[str, str] | None
    ) -> dict[str, str]:
        supplied = {
            name: slugify(topic) for name, topic in (grouping or {}).items() if topic
        }
        unassigned = [f for f in files if f.name not in supplied]
        groups = {f.name: supplied[f.name] for f in files if f.name in supplied}
        if not unassigned:
            return groups

        inferred = self._infer_topics(unassigned)
        topics = set(inferred.values())
        if not supplied and len(topics) == 1 and not (directory / topics.pop()).is_dir():
            inferred = self._alphabetical_chunks(unassigned)
        groups.update(inferred)
        return groups

    def _infer_topics(self, files: list[Path]) -> dict[str, str]:
        tags_by_file = {f.name: read_entry(f).tags if f.suffix == ".md" else [] for f in files}
        counts = Counter(tag for tags in tags_by_file.values() for tag in set(tags))
        topics: dict[str, str] = {}
        for name, tags in tags_by_file.items():
            shared = [t for t in tags if counts[t] >= 2]
            if shared:
                best = sorted(shared, key=lambda t: (-counts[t], t))[0]
                topics[name] = slugify(best)
            else:
                topics[name] = DEFAULT_TOPIC
        return topics

    def _alphabetical_chunks(self, files: list[Path]) -> dict[str, str]:
        ordered = sorted(files, key=lambda f: f.name)
        topics: dict[str, str] = {}
        used: set[str] = set()
        for start in range(0, len(ordered), self.max_files):
            chunk = ordered[start : start + self.max_files]
            name = f"{chunk[0].name[0]}-{chunk[-1].name[0]}".lower()
            candidate, n = name, 2
            while candidate in used:
                candidate = f"{name}-{n}"
                n += 1
            used.add(candidate)
            for f in chunk:
                topics[f.name] = candidate
        return topics

    # ── Moving and reindexing ─────────────────────────────────

    def _apply(self, directory: Path, groups: dict[str, str], report: RebalanceReport) -> None:
        parent_path = index_path(directory)
        parent = Index.load(parent_path) if parent_path.exists() else default_domain_index(directory)
        parent_title = _title_of(parent, directory)

        for topic in sorted(set(groups.values())):
            subdir = directory / topic
            if not subdir.is_dir():
                subdir.mkdir()
                report.created_dirs.append(topic)
            sub_path = index_path(subdir)
            if sub_path.exists():
                sub = Index.load(sub_path)
            else:
                title = f"{parent_title} / {topic.replace('-', ' ').title()}"
                sub = default_domain_index(subdir, title=title)

            for name in sorted(n for n, t in groups.items() if t == topic):
                source = directory / name
                target = subdir / name
                n = 2
                while target.exists():
                    target = subdir / f"{source.stem}-{n}{source.suffix}"
                    n += 1
                row = parent.get(name)
                summary, updated = (row.summary, row.updated) if row else _describe(source)
                # Subdirectory index first so the file is never unreachable.
                sub.upsert(target.name, summary, updated)
                sub.save()
                source.rename(target)
                parent.remove(name)
                report.moved[name] = topic

            dates = [r.updated for r in sub.rows if r.updated != NEVER]
            parent.upsert(
                f"{topic}/",
                f"{topic.replace('-', ' ')} ({len(sub.rows)} entries)",
                max(dates) if dates else NEVER,
            )
        parent.save()


def _describe(path: Path) -> tuple[str, str]:
    if path.suffix != ".md":
        return "", NEVER
    entry = read_entry(path)
    return entry.summary.splitlines()[0] if entry.summary else entry.title, entry.updated or NEVER
