"""Write memory items: dedup check, entry write, reindex up to the root, rebalance.

Items are processed one at a time to completion. Every write is followed by
a verification read of the entry and its index row; a missing half is
re-applied (at most twice) before ConsistencyError is raised. Nothing is
ever deleted: superseded entries are marked archived.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from memtree.config import TreeConfig
from memtree.errors import ConsistencyError, DepthLimitError, InvalidItemError
from memtree.memory.entry import (
    ARCHIVED,
    CONFIDENCE_LEVELS,
    Entry,
    normalize_newlines,
    normalize_tags,
    read_entry,
    slugify,
    summarize,
    today,
    write_entry,
)
from memtree.memory.index import INDEX_FILENAME, Index, index_path
from memtree.memory.initializer import CANONICAL_DOMAINS, default_domain_index, initialize
from memtree.memory.rebalance import Rebalancer, RebalanceReport
from memtree.memory.similarity import SimilarityStrategy, TokenOverlapSimilarity

logger = logging.getLogger(__name__)

MAX_REPAIRS = 2


@dataclass
class MemoryItem:
    """A proposed piece of knowledge, as supplied by the extraction process."""

    domain: str
    title: str
    content: str
    tags: list[str] = field(default_factory=list)
    confidence: str = "medium"
    related_files: list[str] = field(default_factory=list)
    summary: str | None = None
    supersedes: str | None = None

    def __post_init__(self) -> None:
        self.content = normalize_newlines(self.content)
        if self.summary:
            self.summary = normalize_newlines(self.summary)


@dataclass
class Match:
    path: Path
    title: str
    score: float


@dataclass
class ItemResult:
    item: MemoryItem
    action: Literal["CREATE", "UPDATE"]
    path: Path
    score: float = 0.0
    indexes: list[Path] = field(default_factory=list)
    repairs: int = 0


@dataclass
class WriteReport:
    root: Path
    results: list[ItemResult] = field(default_factory=list)
    touched_indexes: list[Path] = field(default_factory=list)
    rebalanced: list[RebalanceReport] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def touch(self, path: Path) -> None:
        if path not in self.touched_indexes:
            self.touched_indexes.append(path)

    def format(self) -> str:
        lines = []
        for r in self.results:
            rel = r.path.relative_to(self.root)
            extra = f" (similarity {r.score:.2f})" if r.action == "UPDATE" else ""
            lines.append(f"{r.action} {rel}{extra}")
        for path in self.touched_indexes:
            lines.append(f"  index: {path.relative_to(self.root)}")
        for rebalance in self.rebalanced:
            lines.append(f"  rebalanced {rebalance.format()}")
        for warning in self.warnings:
            lines.append(f"  warning: {warning}")
        return "\n".join(lines) if lines else "No items written."


class EntryWriter:
    def __init__(
        self,
        root: Path,
        config: TreeConfig | None = None,
        strategy: SimilarityStrategy | None = None,
    ) -> None:
        self.root = root
        self.config = config or TreeConfig()
        self.strategy = strategy or TokenOverlapSimilarity()
        self.rebalancer = Rebalancer(root, self.config.max_files_per_dir, self.config.max_depth)

    # ── Public API ────────────────────────────────────────────

    def write_entries(self, items: list[MemoryItem]) -> WriteReport:
        for item in items:
            self._validate(item)
        if not index_path(self.root).exists():
            initialize(self.root)

        report = WriteReport(root=self.root)
        touched_domains: list[str] = []
        for item in items:
            result = self._write_one(item, report)
            report.results.append(result)
            for path in result.indexes:
                report.touch(path)
            if item.supersedes:
                archived = self.archive_entry(
                    item.domain, item.supersedes, superseded_by=result.path.name, report=report
                )
                if archived is None:
                    report.warnings.append(
                        f"'{item.supersedes}' not found in {item.domain}; nothing archived"
                    )
            if item.domain not in touched_domains:
                touched_domains.append(item.domain)

        self._touch_root(touched_domains, report)

        for domain in touched_domains:
            try:
                rebalance = self.rebalancer.rebalance_if_needed(self.root / domain)
            except DepthLimitError as e:
                report.warnings.append(str(e))
                logger.warning("Rebalance skipped: %s", e)
                continue
            if rebalance.rebalanced:
                report.rebalanced.append(rebalance)
                report.touch(index_path(self.root / domain))
        return report

    def archive_entry(
        self,
        domain: str,
        title: str,
        superseded_by: str | None = None,
        report: WriteReport | None = None,
    ) -> Path | None:
        """Mark an entry archived in place. Returns its path, or None if not found."""
        self._check_domain(domain)
        domain_dir = self.root / domain
        target = slugify(title)
        for path, entry in self._candidates(domain_dir):
            if slugify(entry.title) != target or entry.archived:
                continue
            entry.status = ARCHIVED
            entry.updated = today()
            if superseded_by:
                entry.add_related([f"Superseded by {superseded_by}"])
            write_entry(path, entry)

            index = self._load_index(path.parent)
            row = index.get(path.name)
            summary = row.summary if row else entry.summary
            if not summary.startswith("[archived]"):
                summary = f"[archived] {summary}".strip()
            index.upsert(path.name, summary, today())
            index.save()
            touched = [index.path] + self._touch_ancestors(path.parent, domain_dir)
            if report is None:
                self._touch_root([domain], None)
            else:
                for p in touched:
                    report.touch(p)
            logger.info("Archived %s", path)
            return path
        return None

    def find_match(self, item: MemoryItem) -> Match | None:
        """Best-scoring existing entry in the item's domain, if any scores at all."""
        best: Match | None = None
        for path, entry in self._candidates(self.root / item.domain):
            if entry.archived:
                continue
            score = self.strategy.score(item.title, item.tags, entry.title, entry.tags)
            if best is None or score > best.score:
                best = Match(path=path, title=entry.title, score=score)
        return best

    # ── Internals ─────────────────────────────────────────────

    def _validate(self, item: MemoryItem) -> None:
        if not item.domain or not item.domain.strip():
            raise InvalidItemError("Memory item has no domain")
        if not item.title or not item.title.strip():
            raise InvalidItemError(f"Memory item in '{item.domain}' has no title")
        if item.confidence not in CONFIDENCE_LEVELS:
            raise InvalidItemError(
                f"Invalid confidence '{item.confidence}' (expected one of {CONFIDENCE_LEVELS})"
            )
        self._check_domain(item.domain)

    def _check_domain(self, domain: str) -> None:
        """Domains are single top-level directory names inside the root."""
        if (
            "/" in domain
            or "\\" in domain
            or domain.startswith(".")
            or (self.root / domain).resolve().parent != self.root.resolve()
        ):
            raise InvalidItemError(f"Invalid domain '{domain}' (expected a top-level name)")
        if domain not in CANONICAL_DOMAINS and not (self.root / domain).is_dir():
            raise InvalidItemError(f"Unknown domain '{domain}'")

    def _write_one(self, item: MemoryItem, report: WriteReport) -> ItemResult:
        domain_dir = self.root / item.domain
        if not domain_dir.is_dir():
            # Canonical but missing: recreate the skeleton piece.
            initialize(self.root)

        match = self.find_match(item)
        if match and match.score >= self.config.similarity_threshold:
            path, entry, summary = self._update(match, item)
            action: Literal["CREATE", "UPDATE"] = "UPDATE"
            score = match.score
        else:
            if match and match.score >= self.config.ambiguous_floor:
                message = (
                    f"'{item.title}' resembles '{match.title}' "
                    f"(similarity {match.score:.2f}); created a separate entry"
                )
                report.warnings.append(message)
                logger.warning("Ambiguous dedup match: %s", message)
            path, entry, summary = self._create(domain_dir, item)
            action = "CREATE"
            score = match.score if match else 0.0

        index = self._load_index(path.parent)
        if summary is None and index.get(path.name) is None:
            summary = entry.summary
        index.upsert(path.name, summary, today())
        index.save()
        indexes = [index.path] + self._touch_ancestors(path.parent, domain_dir)

        repairs = self._verify(path, entry, summary, item.content)
        logger.info("%s %s", action, path.relative_to(self.root))
        return ItemResult(item, action, path, score, indexes, repairs)

    def _create(self, domain_dir: Path, item: MemoryItem) -> tuple[Path, Entry, str]:
        summary = (item.summary or summarize(item.content) or item.title).strip()
        entry = Entry(
            title=item.title.strip(),
            confidence=item.confidence,
            tags=normalize_tags(item.tags),
            summary=summary,
            details=item.content.strip(),
            related=list(item.related_files),
        )
        stem = slugify(item.title)
        path = domain_dir / f"{stem}.md"
        n = 2
        while path.exists():
            path = domain_dir / f"{stem}-{n}.md"
            n += 1
        write_entry(path, entry)
        return path, entry, summary

    def _update(self, match: Match, item: MemoryItem) -> tuple[Path, Entry, str | None]:
        entry = read_entry(match.path)
        entry.append_details(item.content)
        entry.merge_tags(item.tags)
        entry.add_related(item.related_files)
        entry.updated = today()
        if item.summary:
            entry.summary = item.summary.strip()
        write_entry(match.path, entry)
        return match.path, entry, item.summary.strip() if item.summary else None

    def _verify(self, path: Path, entry: Entry, summary: str | None, content: str) -> int:
        """Re-read entry and index; re-apply whichever half is missing."""
        expected = content.strip()
        for attempt in range(MAX_REPAIRS + 1):
            entry_ok = path.exists() and expected in path.read_text(encoding="utf-8")
            index = self._load_index(path.parent)
            index_ok = index.get(path.name) is not None and index_path(path.parent).exists()
            if entry_ok and index_ok:
                return attempt
            if attempt == MAX_REPAIRS:
                break
            logger.warning(
                "Repairing %s (entry ok=%s, index ok=%s)", path.name, entry_ok, index_ok
            )
            if not entry_ok:
                write_entry(path, entry)
            if not index_ok:
                index.upsert(path.name, summary or entry.summary, today())
                index.save()
        raise ConsistencyError(path, index_path(path.parent))

    def _candidates(self, directory: Path):
        """Yield (path, entry) for every entry file under directory.

        Indexed entries come first; files whose index row is missing follow,
        so a half-finished earlier write is found and re-indexed, not duplicated.
        """
        seen: set[Path] = set()
        for path, entry in self._indexed(directory):
            seen.add(path)
            yield path, entry
        if not directory.is_dir():
            return
        for path in sorted(directory.rglob("*.md")):
            rel = path.relative_to(directory)
            if (
                path in seen
                or path.name == INDEX_FILENAME
                or any(part.startswith(".") for part in rel.parts)
            ):
                continue
            logger.debug("Unindexed entry considered for dedup: %s", path)
            yield path, read_entry(path)

    def _indexed(self, directory: Path):
        path = index_path(directory)
        if not path.exists():
            return
        for row in Index.load(path).rows:
            child = directory / row.name.rstrip("/")
            if row.is_dir and child.is_dir():
                yield from self._indexed(child)
            elif child.is_file() and child.suffix == ".md":
                yield child, read_entry(child)

    def _load_index(self, directory: Path) -> Index:
        path = index_path(directory)
        if path.exists():
            return Index.load(path)
        return default_domain_index(directory, CANONICAL_DOMAINS.get(directory.name, ""))

    def _touch_ancestors(self, directory: Path, domain_dir: Path) -> list[Path]:
        """Bump the Updated column for each subdirectory between entry and domain."""
        touched = []
        current = directory
        while current != domain_dir and domain_dir in current.parents:
            parent = self._load_index(current.parent)
            parent.upsert(f"{current.name}/", None, today())
            parent.save()
            touched.append(parent.path)
            current = current.parent
        return touched

    def _touch_root(self, domains: list[str], report: WriteReport | None) -> None:
        if not domains:
            return
        root_index = Index.load(index_path(self.root))
        for domain in domains:
            name = domain if root_index.get(domain) is not None else f"{domain}/"
            summary = None if root_index.get(name) else CANONICAL_DOMAINS.get(domain, "")
            root_index.upsert(name, summary, today())
        root_index.save()
        if report is not None:
            report.touch(root_index.path)
