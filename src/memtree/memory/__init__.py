"""Memory tree — hierarchical markdown notes with per-directory indexes.

Layout:
    .claude/memory/
    ├── _index.md                      # | Domain | Description | Updated |
    ├── .state.md                      # Session counters (YAML front matter)
    ├── decisions/
    │   ├── _index.md                  # | File/Folder | Summary | Updated |
    │   ├── use-postgresql.md          # One entry per file, fixed template
    │   └── database/                  # Topic subfolder created by rebalancing
    │       └── _index.md
    ├── patterns/  bugs/  preferences/  context/
    ├── sessions/  research/  plans/
    └── files/
        ├── _index.md
        └── project-map.md             # Reconciled project file listing

Entries are never deleted; superseded entries are marked archived.
"""
