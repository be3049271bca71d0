"""Entry files: one markdown knowledge unit per file, fixed template."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Literal

Confidence = Literal["high", "medium", "low"]
CONFIDENCE_LEVELS = ("high", "medium", "low")
ARCHIVED = "archived"

_META_LINE = re.compile(r"^\*\*(?P<key>[^*]+?):\*\*\s*(?P<value>.*)$")
_SECTION = re.compile(r"^##\s+(?P<name>Summary|Details|Related)\s*$")
_SUMMARY_LIMIT = 100


def today() -> str:
    return date.today().isoformat()


def slugify(title: str) -> str:
    """Lower-case, hyphenated filename stem: 'Use PostgreSQL' -> 'use-postgresql'."""
    slug = re.sub(r"[^a-z0-9]+", "-", title.lower()).strip("-")
    return slug or "untitled"


def normalize_newlines(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


def normalize_tags(tags: list[str] | tuple[str, ...] | None) -> list[str]:
    seen: list[str] = []
    for tag in tags or []:
        t = tag.strip().lower()
        if t and t not in seen:
            seen.append(t)
    return seen


def summarize(content: str) -> str:
    """One-line summary: first sentence of the first non-empty line."""
    for line in content.splitlines():
        line = line.strip().lstrip("-*# ").strip()
        if line:
            sentence = re.split(r"(?<=[.!?])\s", line, maxsplit=1)[0]
            if len(sentence) > _SUMMARY_LIMIT:
                sentence = sentence[: _SUMMARY_LIMIT - 3].rstrip() + "..."
            return sentence
    return ""


@dataclass
class Entry:
    title: str
    created: str = field(default_factory=today)
    updated: str = field(default_factory=today)
    source: str = "session"
    confidence: str = "medium"
    tags: list[str] = field(default_factory=list)
    summary: str = ""
    details: str = ""
    related: list[str] = field(default_factory=list)
    status: str | None = None

    @property
    def archived(self) -> bool:
        return self.status == ARCHIVED

    def render(self) -> str:
        lines = [
            f"# {self.title}",
            f"**Created:** {self.created}",
            f"**Last Updated:** {self.updated}",
            f"**Source:** {self.source}",
            f"**Confidence:** {self.confidence}",
            f"**Tags:** {', '.join(self.tags)}",
        ]
        if self.status:
            lines.append(f"**Status:** {self.status}")
        lines += ["", "## Summary", self.summary, "", "## Details", self.details, "", "## Related"]
        lines += [f"- {item}" for item in self.related]
        return "\n".join(lines).rstrip() + "\n"

    @classmethod
    def parse(cls, text: str) -> Entry:
        """Parse an entry file. Unknown lines outside the sections are ignored.

        Section headings are taken in template order: the first Summary, the
        first Details after it and the last Related. Matching headings inside
        appended content stay part of the body.
        """
        entry = cls(title="", created="", updated="")
        lines = text.splitlines()
        headings = []
        for i, line in enumerate(lines):
            m = _SECTION.match(line)
            if m:
                headings.append((i, m.group("name")))
        starts: dict[str, int] = {}
        for i, name in headings:
            if name == "Summary" and not starts:
                starts[name] = i
            elif name == "Details" and "Details" not in starts and i > starts.get("Summary", -1):
                starts[name] = i
        for i, name in reversed(headings):
            if name == "Related" and i > max(starts.values(), default=-1):
                starts[name] = i
                break

        bounds = sorted(starts.items(), key=lambda kv: kv[1])
        head_end = bounds[0][1] if bounds else len(lines)
        for line in lines[:head_end]:
            if line.startswith("# ") and not entry.title:
                entry.title = line[2:].strip()
                continue
            m = _META_LINE.match(line.strip())
            if m:
                entry._set_meta(m.group("key").strip().lower(), m.group("value").strip())

        sections: dict[str, list[str]] = {}
        for n, (name, start) in enumerate(bounds):
            end = bounds[n + 1][1] if n + 1 < len(bounds) else len(lines)
            sections[name] = lines[start + 1 : end]

        entry.summary = "\n".join(sections.get("Summary", [])).strip()
        entry.details = "\n".join(sections.get("Details", [])).strip()
        entry.related = [
            line.strip()[2:].strip()
            for line in sections.get("Related", [])
            if line.strip().startswith("- ")
        ]
        return entry

    def _set_meta(self, key: str, value: str) -> None:
        if key == "created":
            self.created = value
        elif key == "last updated":
            self.updated = value
        elif key == "source":
            self.source = value
        elif key == "confidence":
            self.confidence = value.lower()
        elif key == "tags":
            self.tags = normalize_tags(value.split(","))
        elif key == "status":
            self.status = value.lower() or None

    # ── Mutations ─────────────────────────────────────────────

    def append_details(self, content: str, on: str | None = None) -> None:
        """Append content under Details; prior details are never rewritten."""
        content = normalize_newlines(content).strip()
        if not content:
            return
        if self.details:
            self.details = f"{self.details.rstrip()}\n\n### Update {on or today()}\n{content}"
        else:
            self.details = content

    def merge_tags(self, tags: list[str]) -> None:
        self.tags = normalize_tags(self.tags + list(tags))

    def add_related(self, items: list[str]) -> None:
        for item in items:
            if item and item not in self.related:
                self.related.append(item)


def read_entry(path: Path) -> Entry:
    entry = Entry.parse(path.read_text(encoding="utf-8"))
    if not entry.title:
        entry.title = path.stem
    return entry


def write_entry(path: Path, entry: Entry) -> None:
    path.write_text(entry.render(), encoding="utf-8")
