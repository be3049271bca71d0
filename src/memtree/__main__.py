"""Entry point: python -m memtree <command>

- init:                 Create or complete the memory tree (idempotent)
- reconcile [root]:     Refresh files/project-map.md from the project tree
- write:                Write memory items read as JSON lines from stdin
- search <query>:       Ranked lookup, at most 10 results
- rebalance <domain>:   Split an over-full domain into topic folders
- verify [--repair]:    Check every index against its directory
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

from memtree.config import MemtreeConfig, load_config
from memtree.errors import MemtreeError

USAGE = """\
Usage: python -m memtree <command> [args]
  init                Create or complete the memory tree
  reconcile [root]    Refresh the project file map
  write               Write memory items (JSON lines on stdin)
  search <query>      Search the memory tree
  rebalance <domain>  Split an over-full domain into topic folders
  verify [--repair]   Check index consistency"""


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _run(cmd: str, args: list[str], config: MemtreeConfig) -> int:
    from memtree.memory.maintenance import parse_extraction_response
    from memtree.memory.store import MemoryTree

    tree = MemoryTree(config.memory_dir, config)

    if cmd == "init":
        print(tree.initialize().format())
    elif cmd == "reconcile":
        project_root = Path(args[0]) if args else None
        print(f"File map {tree.reconcile(project_root)}")
    elif cmd == "write":
        items = parse_extraction_response(sys.stdin.read())
        if not items:
            print("No items written.")
            return 0
        print(tree.write_entries(items).format())
    elif cmd == "search":
        if not args:
            print(USAGE)
            return 1
        print(tree.format_search(" ".join(args)))
    elif cmd == "rebalance":
        if not args:
            print(USAGE)
            return 1
        print(tree.rebalance(args[0]).format())
    elif cmd == "verify":
        report = tree.verify(repair="--repair" in args)
        print(report.format())
        return 0 if report.ok or report.repaired else 1
    else:
        print(USAGE)
        return 1
    return 0


def main() -> None:
    cmd = sys.argv[1] if len(sys.argv) > 1 else ""
    config = load_config()
    _setup_logging(config.log_level)

    try:
        code = _run(cmd, sys.argv[2:], config)
    except MemtreeError as e:
        print(f"Error: {e}", file=sys.stderr)
        code = 1
    sys.exit(code)


if __name__ == "__main__":
    main()
