"""Extraction prompt building and response parsing.

The extraction agent reviews a session transcript and decides what is
worth remembering. It answers with one JSON object per line, which is
parsed here into MemoryItem values for the EntryWriter.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path

from memtree.memory.index import Index, index_path, leaf_files
from memtree.memory.initializer import CANONICAL_DOMAINS
from memtree.memory.writer import MemoryItem

logger = logging.getLogger(__name__)

EXTRACTION_PROMPT_TEMPLATE = """\
You maintain the project's memory tree. Review the session below and record
anything worth keeping across sessions.

## Domains
{domains}

## Current memory structure
{memory_structure}

## Session
Working directory: {cwd}
Summary: {summary}
Recent turns:
{recent_turns}

## Output
For each item worth remembering, output one JSON object per line with:
  - domain: one of the domains above (top-level name, never a subfolder)
  - title: short, specific title (reuse an existing title to extend that entry)
  - content: what was learned, decided or fixed
  - tags: list of lowercase keywords
  - confidence: high | medium | low
  - related_files: list of project paths (optional)
  - supersedes: title of an entry this replaces (optional)

Output SKIP if nothing is worth remembering.
"""


def describe_tree(root: Path) -> str:
    """Per-domain entry counts for the extraction prompt."""
    lines = []
    if root.is_dir():
        for domain_dir in sorted(root.iterdir()):
            if not domain_dir.is_dir() or domain_dir.name.startswith("."):
                continue
            count = len(leaf_files(domain_dir))
            subdirs = [d.name for d in domain_dir.iterdir() if d.is_dir()]
            line = f"  {domain_dir.name}/: {count} files"
            if subdirs:
                line += f", subfolders: {', '.join(sorted(subdirs))}"
            if index_path(domain_dir).exists():
                titles = [r.name for r in Index.load(index_path(domain_dir)).rows][:8]
                if titles:
                    line += f" ({', '.join(titles)})"
            lines.append(line)
    return "\n".join(lines) if lines else "  (empty)"


def build_extraction_prompt(
    root: Path,
    cwd: str | None,
    summary: str,
    recent_turns: str,
) -> str:
    domains = "\n".join(f"- {name}: {desc}" for name, desc in CANONICAL_DOMAINS.items())
    return EXTRACTION_PROMPT_TEMPLATE.format(
        domains=domains,
        memory_structure=describe_tree(root),
        cwd=cwd or "(unknown)",
        summary=summary or "(none)",
        recent_turns=recent_turns,
    )


def _item_from_json(data: dict) -> MemoryItem:
    tags = data.get("tags", [])
    if isinstance(tags, str):
        tags = [t.strip() for t in tags.split(",")]
    return MemoryItem(
        domain=str(data.get("domain", "")).strip().lower(),
        title=str(data.get("title", "")).strip(),
        content=str(data.get("content", "")),
        tags=[str(t) for t in tags],
        confidence=str(data.get("confidence", "medium")).strip().lower(),
        related_files=list(data.get("related_files", []) or []),
        summary=data.get("summary") or None,
        supersedes=data.get("supersedes") or None,
    )


def parse_extraction_response(response_text: str) -> list[MemoryItem]:
    """Parse LLM response into memory items. Unparsable lines are logged and skipped."""
    if response_text.strip().upper() == "SKIP":
        return []

    items = []
    for line in response_text.strip().splitlines():
        line = line.strip()
        if not line or line.upper() == "SKIP":
            continue
        try:
            data = json.loads(line)
        except json.JSONDecodeError:
            # Try to extract JSON from the line
            match = re.search(r"\{.*\}", line)
            if not match:
                logger.warning("Failed to parse memory item: %s", line)
                continue
            try:
                data = json.loads(match.group())
            except json.JSONDecodeError:
                logger.warning("Failed to parse memory item: %s", line)
                continue
        if not isinstance(data, dict):
            logger.warning("Ignoring non-object memory item: %s", line)
            continue
        items.append(_item_from_json(data))
    return items
