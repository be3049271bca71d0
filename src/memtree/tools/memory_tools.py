"""Agent-facing tools for memory tree access.

These functions are designed to be exposed as tools to the AI agent,
allowing it to read and maintain the project's memory tree. Every tool
returns a human-readable report; none returns an empty string.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from memtree.memory.writer import MemoryItem

if TYPE_CHECKING:
    from memtree.memory.store import MemoryTree


def get_memory_tools(tree: MemoryTree) -> dict[str, callable]:
    """Return a dict of tool_name -> callable for memory operations.

    These can be registered as MCP tools or called directly.
    """

    def write_memory(
        domain: str,
        title: str,
        content: str,
        tags: list[str] | None = None,
        confidence: str = "medium",
        related_files: list[str] | None = None,
        supersedes: str | None = None,
    ) -> str:
        """Record knowledge in a domain. Extends an existing entry on a close title match."""
        item = MemoryItem(
            domain=domain,
            title=title,
            content=content,
            tags=tags or [],
            confidence=confidence,
            related_files=related_files or [],
            supersedes=supersedes,
        )
        return tree.write_entries([item]).format()

    def search_memory(query: str) -> str:
        """Search the memory tree. Returns up to 10 ranked results or NO_MATCHES_FOUND."""
        return tree.format_search(query)

    def archive_memory(domain: str, title: str, superseded_by: str | None = None) -> str:
        """Mark an entry archived. The file is kept."""
        path = tree.archive_entry(domain, title, superseded_by)
        if path is None:
            return f"No entry titled '{title}' in {domain}"
        return f"Archived {path.relative_to(tree.root)}"

    def reconcile_files(project_root: str | None = None) -> str:
        """Refresh the project file map, keeping existing descriptions."""
        result = tree.reconcile(Path(project_root) if project_root else None)
        return f"File map {result}"

    def init_memory() -> str:
        """Create any missing domains and indexes."""
        return tree.initialize().format()

    def verify_memory(repair: bool = False) -> str:
        """Check that every index lists exactly its directory's contents."""
        return tree.verify(repair=repair).format()

    return {
        "write_memory": write_memory,
        "search_memory": search_memory,
        "archive_memory": archive_memory,
        "reconcile_files": reconcile_files,
        "init_memory": init_memory,
        "verify_memory": verify_memory,
    }
