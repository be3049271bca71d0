"""Read-only, bounded search over the memory tree.

Passes run in a fixed order and stop as soon as enough hits are gathered:
index rows, filenames, Tags lines, then full-text bodies.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path

from memtree.memory.entry import Entry, read_entry, slugify
from memtree.memory.index import INDEX_FILENAME, Index, index_path

logger = logging.getLogger(__name__)

PASSES = ("index", "filename", "tags", "content")
_CONFIDENCE_RANK = {"high": 3, "medium": 2, "low": 1}
_TOKEN = re.compile(r"[a-z0-9]+")


@dataclass
class SearchHit:
    path: Path
    domain: str
    title: str
    summary: str
    updated: str
    confidence: str
    matched_by: str
    archived: bool = False


class _NoMatches:
    """Marker returned when every pass ran and nothing matched."""

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NO_MATCHES_FOUND"


NO_MATCHES_FOUND = _NoMatches()


def format_results(query: str, results: list[SearchHit] | _NoMatches, root: Path) -> str:
    if not results:
        return f"NO_MATCHES_FOUND for '{query}'"
    lines = [f"{len(results)} result(s) for '{query}':"]
    for hit in results:
        status = " [archived]" if hit.archived else ""
        lines.append(
            f"- {hit.path.relative_to(root)} ({hit.updated or '-'}, {hit.confidence}){status}: "
            f"{hit.summary or hit.title}"
        )
    return "\n".join(lines)


class Locator:
    def __init__(self, root: Path, max_results: int = 10) -> None:
        self.root = root
        self.max_results = max_results

    def search(self, query: str) -> list[SearchHit] | _NoMatches:
        """Ranked hits (at most max_results), or NO_MATCHES_FOUND."""
        q = query.strip().lower()
        tokens = [t for t in _TOKEN.findall(q) if len(t) >= 2]
        if not q:
            return NO_MATCHES_FOUND

        found: dict[Path, SearchHit] = {}
        order: dict[Path, int] = {}
        entries = self._entry_files()
        for rank, name in enumerate(PASSES):
            if len(found) >= self.max_results:
                break
            matcher = getattr(self, f"_pass_{name}")
            for path, entry in matcher(q, tokens, entries):
                if path in found:
                    continue
                found[path] = self._hit(path, entry, name)
                order[path] = rank
                if len(found) >= self.max_results:
                    break
            logger.debug("Search '%s' after %s pass: %d hits", query, name, len(found))

        if not found:
            return NO_MATCHES_FOUND

        def sort_key(hit: SearchHit):
            relevant = 1 if hit.domain in tokens else 0
            return (
                hit.updated,
                _CONFIDENCE_RANK.get(hit.confidence, 0),
                relevant,
                -order[hit.path],
            )

        hits = sorted(found.values(), key=lambda h: str(h.path))
        return sorted(hits, key=sort_key, reverse=True)

    # ── Passes ────────────────────────────────────────────────

    def _pass_index(self, q: str, tokens: list[str], entries: dict[Path, Entry]):
        for domain_dir in self._domains():
            path = index_path(domain_dir)
            if not path.exists():
                continue
            for row in Index.load(path).rows:
                if row.is_dir:
                    continue
                text = f"{row.name} {row.summary}".lower()
                child = domain_dir / row.name
                if child in entries and (q in text or any(t in text for t in tokens)):
                    yield child, entries[child]

    def _pass_filename(self, q: str, tokens: list[str], entries: dict[Path, Entry]):
        if not _TOKEN.search(q):
            return
        needle = slugify(q)
        for path, entry in entries.items():
            if needle in path.stem.lower():
                yield path, entry

    def _pass_tags(self, q: str, tokens: list[str], entries: dict[Path, Entry]):
        wanted = {q, *tokens}
        if _TOKEN.search(q):
            wanted.add(slugify(q))
        for path, entry in entries.items():
            if wanted & set(entry.tags):
                yield path, entry

    def _pass_content(self, q: str, tokens: list[str], entries: dict[Path, Entry]):
        for path, entry in entries.items():
            body = path.read_text(encoding="utf-8").lower()
            if q in body or (tokens and all(t in body for t in tokens)):
                yield path, entry

    # ── Helpers ───────────────────────────────────────────────

    def _domains(self) -> list[Path]:
        if not self.root.is_dir():
            return []
        return [
            d for d in sorted(self.root.iterdir()) if d.is_dir() and not d.name.startswith(".")
        ]

    def _entry_files(self) -> dict[Path, Entry]:
        entries: dict[Path, Entry] = {}
        for domain_dir in self._domains():
            for path in sorted(domain_dir.rglob("*.md")):
                if path.name == INDEX_FILENAME or any(
                    part.startswith(".") for part in path.relative_to(self.root).parts
                ):
                    continue
                entries[path] = read_entry(path)
        return entries

    def _hit(self, path: Path, entry: Entry, matched_by: str) -> SearchHit:
        return SearchHit(
            path=path,
            domain=path.relative_to(self.root).parts[0],
            title=entry.title,
            summary=entry.summary.splitlines()[0] if entry.summary else "",
            updated=entry.updated,
            confidence=entry.confidence,
            matched_by=matched_by,
            archived=entry.archived,
        )
