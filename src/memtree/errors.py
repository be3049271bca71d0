"""Custom exceptions for memtree."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from memtree.memory.initializer import InitReport


class MemtreeError(Exception):
    """Base exception for memtree."""

    pass


class InvalidItemError(MemtreeError):
    """Raised when a memory item cannot be written as given."""

    pass


class InitializationError(MemtreeError):
    """Raised when the tree skeleton could not be fully created."""

    def __init__(self, report: InitReport, cause: OSError) -> None:
        self.report = report
        self.cause = cause
        super().__init__(f"Memory tree initialization failed: {cause}\n{report.format()}")


class ConsistencyError(MemtreeError):
    """Raised when an entry and its index still disagree after repair."""

    def __init__(self, entry_path: Path, index_path: Path) -> None:
        self.entry_path = entry_path
        self.index_path = index_path
        super().__init__(
            f"Entry '{entry_path.name}' is not consistently listed in '{index_path}'"
        )


class DepthLimitError(MemtreeError):
    """Raised when rebalancing would push entries past the maximum depth."""

    def __init__(self, path: Path, depth: int, max_depth: int) -> None:
        self.path = path
        self.depth = depth
        self.max_depth = max_depth
        super().__init__(f"Cannot split '{path}' at depth {depth} (max depth {max_depth})")
