"""Configuration loading from environment variables and memtree.toml."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib
from pathlib import Path

_DEFAULT_MEMORY_DIR = Path(".claude") / "memory"
_CONFIG_FILENAME = "memtree.toml"


@dataclass
class TreeConfig:
    """Shape limits and dedup thresholds for the memory tree."""

    max_files_per_dir: int = 8
    max_depth: int = 5
    similarity_threshold: float = 0.75
    ambiguous_floor: float = 0.5


@dataclass
class ReconcileConfig:
    """File-index reconciliation settings."""

    project_root: Path = field(default_factory=Path.cwd)
    exclude: list[str] = field(default_factory=list)


@dataclass
class SearchConfig:
    max_results: int = 10


@dataclass
class MemtreeConfig:
    """Top-level memtree configuration."""

    tree: TreeConfig = field(default_factory=TreeConfig)
    reconcile: ReconcileConfig = field(default_factory=ReconcileConfig)
    search: SearchConfig = field(default_factory=SearchConfig)
    memory_dir: Path = _DEFAULT_MEMORY_DIR
    log_level: str = "INFO"


def load_config(config_path: Path | None = None) -> MemtreeConfig:
    """Load configuration from environment variables and optional memtree.toml.

    Priority: environment variables > memtree.toml > defaults.
    """
    file_data: dict = {}
    if config_path and config_path.exists():
        file_data = tomllib.loads(config_path.read_text())
    else:
        for candidate in [
            Path.cwd() / _CONFIG_FILENAME,
            Path.home() / ".memtree" / _CONFIG_FILENAME,
        ]:
            if candidate.exists():
                file_data = tomllib.loads(candidate.read_text())
                break

    tree_data = file_data.get("tree", {})
    reconcile_data = file_data.get("reconcile", {})
    search_data = file_data.get("search", {})

    project_root = os.getenv("MEMTREE_PROJECT_ROOT", reconcile_data.get("project_root"))

    config = MemtreeConfig(
        tree=TreeConfig(
            max_files_per_dir=int(
                os.getenv("MEMTREE_MAX_FILES", tree_data.get("max_files_per_dir", 8))
            ),
            max_depth=int(tree_data.get("max_depth", 5)),
            similarity_threshold=float(
                os.getenv("MEMTREE_SIMILARITY", tree_data.get("similarity_threshold", 0.75))
            ),
            ambiguous_floor=float(tree_data.get("ambiguous_floor", 0.5)),
        ),
        reconcile=ReconcileConfig(
            project_root=Path(project_root) if project_root else Path.cwd(),
            exclude=list(reconcile_data.get("exclude", [])),
        ),
        search=SearchConfig(
            max_results=int(search_data.get("max_results", 10)),
        ),
        memory_dir=Path(
            os.getenv("MEMTREE_MEMORY_DIR", file_data.get("memory_dir", str(_DEFAULT_MEMORY_DIR)))
        ),
        log_level=os.getenv("MEMTREE_LOG_LEVEL", file_data.get("log_level", "INFO")),
    )
    return config
