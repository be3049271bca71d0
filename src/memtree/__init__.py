"""memtree — agent memory tree maintenance."""

from memtree.memory.locator import NO_MATCHES_FOUND, SearchHit
from memtree.memory.store import MemoryTree
from memtree.memory.writer import MemoryItem

__all__ = ["MemoryTree", "MemoryItem", "SearchHit", "NO_MATCHES_FOUND"]
