"""Persisted session state: message counter and current compaction summary.

State lives in `<root>/.state.md` as YAML front matter, so it survives
process restarts and is shared by every session touching the tree. Each
mutation is a read-modify-write against the file, never an in-process
global.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

import frontmatter

logger = logging.getLogger(__name__)

STATE_FILENAME = ".state.md"
_BODY = "# Session State\n\nManaged by memtree. Counters are rewritten on every update.\n"


@dataclass
class SessionState:
    path: Path
    message_count: int = 0
    current_summary: str | None = None
    updated: str | None = None

    @classmethod
    def load(cls, root: Path) -> SessionState:
        path = root / STATE_FILENAME
        state = cls(path=path)
        if not path.exists():
            return state
        try:
            meta = dict(frontmatter.load(str(path)).metadata)
        except Exception as e:
            # Corrupt state resets to defaults.
            logger.warning("Ignoring unreadable state file %s: %s", path, e)
            return state
        state.message_count = int(meta.get("message_count", 0) or 0)
        state.current_summary = meta.get("current_summary") or None
        state.updated = str(meta["updated"]) if meta.get("updated") else None
        return state

    def save(self) -> None:
        self.updated = datetime.now().isoformat(timespec="seconds")
        post = frontmatter.Post(
            _BODY,
            message_count=self.message_count,
            current_summary=self.current_summary or "",
            updated=self.updated,
        )
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(frontmatter.dumps(post) + "\n", encoding="utf-8")

    def _refresh(self) -> None:
        fresh = SessionState.load(self.path.parent)
        self.message_count = fresh.message_count
        self.current_summary = fresh.current_summary
        self.updated = fresh.updated

    # ── Read-modify-write operations ──────────────────────────

    def increment_messages(self, n: int = 1) -> int:
        self._refresh()
        self.message_count += n
        self.save()
        return self.message_count

    def reset_messages(self) -> None:
        self._refresh()
        self.message_count = 0
        self.save()

    def set_current_summary(self, path: str | None) -> None:
        self._refresh()
        self.current_summary = path
        self.save()
        logger.info("Current compaction summary: %s", path or "(none)")
