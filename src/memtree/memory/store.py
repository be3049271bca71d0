"""Single entry point over the memory tree components.

Markdown files are the source of truth; nothing is cached between calls,
so several sessions (and the background reconciler) can share one tree.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from pathlib import Path

from memtree.config import MemtreeConfig
from memtree.memory.index import index_path
from memtree.memory.initializer import InitReport, initialize
from memtree.memory.locator import Locator, SearchHit, _NoMatches, format_results
from memtree.memory.rebalance import Rebalancer, RebalanceReport
from memtree.memory.reconcile import ReconcileResult, dispatch_reconcile, reconcile
from memtree.memory.similarity import SimilarityStrategy
from memtree.memory.state import SessionState
from memtree.memory.verify import VerifyReport, verify_tree
from memtree.memory.writer import EntryWriter, MemoryItem, WriteReport

logger = logging.getLogger(__name__)


class MemoryTree:
    """Read/write access to one memory tree."""

    def __init__(
        self,
        root: Path,
        config: MemtreeConfig | None = None,
        strategy: SimilarityStrategy | None = None,
    ) -> None:
        self.root = root
        self.config = config or MemtreeConfig(memory_dir=root)
        self.writer = EntryWriter(root, self.config.tree, strategy)
        self.locator = Locator(root, self.config.search.max_results)

    @property
    def initialized(self) -> bool:
        return index_path(self.root).exists()

    @property
    def state(self) -> SessionState:
        return SessionState.load(self.root)

    # ── Operations ────────────────────────────────────────────

    def initialize(self) -> InitReport:
        return initialize(self.root)

    def write_entries(self, items: list[MemoryItem]) -> WriteReport:
        report = self.writer.write_entries(items)
        logger.info(
            "Wrote %d items (%d indexes touched)", len(report.results), len(report.touched_indexes)
        )
        return report

    def archive_entry(
        self, domain: str, title: str, superseded_by: str | None = None
    ) -> Path | None:
        return self.writer.archive_entry(domain, title, superseded_by)

    def search(self, query: str) -> list[SearchHit] | _NoMatches:
        return self.locator.search(query)

    def format_search(self, query: str) -> str:
        return format_results(query, self.search(query), self.root)

    def rebalance(self, domain: str, grouping: Mapping[str, str] | None = None) -> RebalanceReport:
        rebalancer = Rebalancer(
            self.root, self.config.tree.max_files_per_dir, self.config.tree.max_depth
        )
        return rebalancer.rebalance_if_needed(self.root / domain, grouping)

    def verify(self, repair: bool = False) -> VerifyReport:
        return verify_tree(self.root, repair=repair)

    def reconcile(self, project_root: Path | None = None) -> ReconcileResult:
        return reconcile(
            project_root or self.config.reconcile.project_root,
            self.root,
            self.config.reconcile.exclude,
        )

    def dispatch_reconcile(
        self, project_root: Path | None = None
    ) -> asyncio.Task[ReconcileResult]:
        return dispatch_reconcile(
            project_root or self.config.reconcile.project_root,
            self.root,
            self.config.reconcile.exclude,
        )
