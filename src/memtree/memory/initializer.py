"""Create the domain skeleton and seed its indexes. Safe to run repeatedly."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from memtree.errors import InitializationError
from memtree.memory.index import (
    DOMAIN_COLUMNS,
    NEVER,
    ROOT_COLUMNS,
    Index,
    IndexRow,
    index_path,
)

logger = logging.getLogger(__name__)

CANONICAL_DOMAINS: dict[str, str] = {
    "decisions": "Architecture and technology decisions",
    "patterns": "Recurring code patterns and conventions",
    "bugs": "Bugs encountered and how they were fixed",
    "preferences": "User and team preferences",
    "context": "Project background and domain knowledge",
    "sessions": "Session summaries and handoffs",
    "research": "Research notes and comparisons",
    "plans": "Plans, roadmaps and open work",
    "files": "Project file map with descriptions",
}

ROOT_TITLE = "# Memory Tree"
ROOT_BLURB = "Root index of the project memory. Every directory keeps its own `_index.md`."


@dataclass
class InitReport:
    root: Path
    fresh: bool = False
    created_dirs: list[str] = field(default_factory=list)
    created_indexes: list[str] = field(default_factory=list)
    root_rows_added: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.created_dirs or self.created_indexes or self.root_rows_added)

    def format(self) -> str:
        if not self.changed and not self.failed:
            return f"Memory tree at {self.root} is complete; nothing created."
        lines = [f"{'Initialized' if self.fresh else 'Repaired'} memory tree at {self.root}"]
        lines += [f"  created dir:   {d}" for d in self.created_dirs]
        lines += [f"  created index: {i}" for i in self.created_indexes]
        lines += [f"  listed domain: {r}" for r in self.root_rows_added]
        lines += [f"  FAILED:        {f}" for f in self.failed]
        return "\n".join(lines)


def default_root_index(root: Path, domains: dict[str, str] = CANONICAL_DOMAINS) -> Index:
    return Index(
        path=index_path(root),
        header=f"{ROOT_TITLE}\n\n{ROOT_BLURB}",
        columns=ROOT_COLUMNS,
        rows=[IndexRow(f"{name}/", desc, NEVER) for name, desc in domains.items()],
    )


def default_domain_index(
    directory: Path, description: str = "", title: str | None = None
) -> Index:
    title = title or directory.name.replace("-", " ").title()
    header = f"# {title}"
    if description:
        header += f"\n\n{description}."
    return Index(path=index_path(directory), header=header, columns=DOMAIN_COLUMNS)


def initialize(root: Path, domains: dict[str, str] = CANONICAL_DOMAINS) -> InitReport:
    """Create or complete the memory tree under root.

    Existing entries and non-default index content are never touched; running
    this twice leaves the tree byte-identical.
    """
    root_index = index_path(root)
    report = InitReport(root=root, fresh=not root_index.exists())
    step = str(root)
    try:
        if report.fresh:
            if not root.is_dir():
                root.mkdir(parents=True)
                report.created_dirs.append(str(root))
            step = str(root_index)
            default_root_index(root, domains).save()
            report.created_indexes.append(str(root_index))

        for name, description in domains.items():
            domain_dir = root / name
            step = str(domain_dir)
            if not domain_dir.is_dir():
                domain_dir.mkdir(parents=True)
                report.created_dirs.append(name)
            step = str(index_path(domain_dir))
            if not index_path(domain_dir).exists():
                default_domain_index(domain_dir, description).save()
                report.created_indexes.append(f"{name}/_index.md")

        if not report.fresh:
            step = str(root_index)
            index = Index.load(root_index)
            for name, description in domains.items():
                if index.get(f"{name}/") is None and index.get(name) is None:
                    index.upsert(f"{name}/", description, NEVER)
                    report.root_rows_added.append(name)
            if report.root_rows_added:
                index.save()
    except OSError as e:
        report.failed.append(f"{step}: {e}")
        logger.error("Initialization aborted at %s: %s", step, e)
        raise InitializationError(report, e) from e

    if report.changed:
        logger.info(
            "Memory tree %s: %d dirs, %d indexes, %d root rows",
            "initialized" if report.fresh else "repaired",
            len(report.created_dirs),
            len(report.created_indexes),
            len(report.root_rows_added),
        )
    return report
