"""Per-directory `_index.md` manifests.

Every directory in the tree owns one index: free-form header text, a
three-column markdown table with one row per immediate child, and an
optional footer. Directory children are written with a trailing slash
(`auth/`), files by their filename (`use-postgresql.md`).
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

INDEX_FILENAME = "_index.md"
ROOT_COLUMNS = ("Domain", "Description", "Updated")
DOMAIN_COLUMNS = ("File/Folder", "Summary", "Updated")
NEVER = "-"

_CELL_SPLIT = re.compile(r"(?<!\\)\|")
_SEPARATOR = re.compile(r"^\|?\s*:?-{3,}")


@dataclass
class IndexRow:
    name: str
    summary: str
    updated: str = NEVER

    @property
    def is_dir(self) -> bool:
        return self.name.endswith("/")


@dataclass
class Index:
    """In-memory view of a single `_index.md` file."""

    path: Path
    header: str
    columns: tuple[str, str, str] = DOMAIN_COLUMNS
    rows: list[IndexRow] = field(default_factory=list)
    footer: str = ""

    # ── Load / save ───────────────────────────────────────────

    @classmethod
    def load(cls, path: Path) -> Index:
        return cls.parse(path.read_text(encoding="utf-8"), path)

    @classmethod
    def parse(cls, text: str, path: Path) -> Index:
        """Parse index text. Malformed table rows are logged and skipped."""
        lines = text.splitlines()
        start = next((i for i, line in enumerate(lines) if line.lstrip().startswith("|")), None)
        if start is None:
            return cls(path=path, header=text.strip())

        columns = tuple(_split_row(lines[start]))
        if len(columns) != 3:
            logger.warning("Unexpected index header in %s: %s", path, lines[start])
            columns = DOMAIN_COLUMNS

        rows: list[IndexRow] = []
        end = start + 1
        while end < len(lines) and lines[end].lstrip().startswith("|"):
            line = lines[end]
            end += 1
            if _SEPARATOR.match(line.strip()):
                continue
            cells = _split_row(line)
            if len(cells) != 3 or not cells[0]:
                logger.warning("Skipping malformed index row in %s: %s", path, line)
                continue
            rows.append(IndexRow(name=cells[0], summary=cells[1], updated=cells[2] or NEVER))

        return cls(
            path=path,
            header="\n".join(lines[:start]).strip(),
            columns=columns,  # type: ignore[arg-type]
            rows=rows,
            footer="\n".join(lines[end:]).strip(),
        )

    def render(self) -> str:
        parts = []
        if self.header:
            parts.append(self.header.rstrip() + "\n\n")
        parts.append("| " + " | ".join(self.columns) + " |\n")
        parts.append("| --- | --- | --- |\n")
        for row in self.rows:
            summary = row.summary.replace("\n", " ").replace("|", "\\|")
            parts.append(f"| {row.name} | {summary} | {row.updated} |\n")
        if self.footer:
            parts.append("\n" + self.footer.strip() + "\n")
        return "".join(parts)

    def save(self) -> None:
        self.path.write_text(self.render(), encoding="utf-8")

    # ── Row access ────────────────────────────────────────────

    def names(self) -> list[str]:
        return [row.name for row in self.rows]

    def get(self, name: str) -> IndexRow | None:
        for row in self.rows:
            if row.name == name:
                return row
        return None

    def upsert(self, name: str, summary: str | None = None, updated: str | None = None) -> IndexRow:
        """Insert a row, or update the given columns of an existing one."""
        row = self.get(name)
        if row is None:
            row = IndexRow(name=name, summary=summary or "", updated=updated or NEVER)
            self.rows.append(row)
            return row
        if summary is not None:
            row.summary = summary
        if updated is not None:
            row.updated = updated
        return row

    def remove(self, name: str) -> IndexRow | None:
        row = self.get(name)
        if row is not None:
            self.rows.remove(row)
        return row


def _split_row(line: str) -> list[str]:
    cells = _CELL_SPLIT.split(line.strip())
    if cells and cells[0] == "":
        cells = cells[1:]
    if cells and cells[-1] == "":
        cells = cells[:-1]
    return [c.strip().replace("\\|", "|") for c in cells]


def index_path(directory: Path) -> Path:
    return directory / INDEX_FILENAME


def child_name(path: Path) -> str:
    """Name a child the way index rows refer to it."""
    return path.name + "/" if path.is_dir() else path.name


def list_children(directory: Path) -> list[str]:
    """Immediate children that an index must list (hidden files and the index excluded)."""
    names = []
    for child in sorted(directory.iterdir()):
        if child.name == INDEX_FILENAME or child.name.startswith("."):
            continue
        names.append(child_name(child))
    return names


def leaf_files(directory: Path) -> list[Path]:
    """Non-index entry files directly inside a directory."""
    return [
        p
        for p in sorted(directory.iterdir())
        if p.is_file() and p.name != INDEX_FILENAME and not p.name.startswith(".")
    ]
