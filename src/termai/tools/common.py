from __future__ import annotations

import os
from pathlib import Path

IGNORED_DIRECTORIES = frozenset({
    ".git",
    ".hg",
    ".svn",
    ".idea",
    ".vscode",
    ".venv",
    "venv",
    "__pycache__",
    "node_modules",
    ".mypy_cache",
    ".pytest_cache",
    ".ruff_cache",
    "dist",
    "build",
})

MAX_RESULTS = 100


def resolve_path(working_directory: str | None, path: str | None) -> Path:
    """Resolve ``path`` against the working directory (or the process CWD)."""
    base = Path(working_directory) if working_directory else Path.cwd()
    if not path:
        return base.resolve()
    candidate = Path(os.path.expanduser(path))
    if not candidate.is_absolute():
        candidate = base / candidate
    return candidate.resolve()


def is_ignored(name: str) -> bool:
    return name.startswith(".") or name in IGNORED_DIRECTORIES


def walk_files(root: Path):
    """Yield every non-hidden file under ``root``, skipping ignored directories."""
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if not is_ignored(d))
        for filename in sorted(filenames):
            if filename.startswith("."):
                continue
            yield Path(dirpath) / filename


def mtime_or_zero(path: Path) -> float:
    try:
        return path.stat().st_mtime
    except OSError:
        return 0.0
