"""
Project-root and `.env` helpers.

Relative paths in settings (`catalog.path`, `regions.source`) and CLI arguments
are resolved against the checkout root, not the process CWD, so `nearmap rank`
and the API behave the same from any directory inside the repo.

Root discovery, first match wins:
1. `NEARMAP_PROJECT_ROOT`
2. the directory holding `NEARMAP_ENV_FILE`
3. the nearest parent of the CWD, then of this module, carrying a root marker
4. the CWD
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv

ROOT_MARKERS = (".env", ".git", "src/nearmap")


def _has_root_marker(path: Path) -> bool:
    return any((path / marker).exists() for marker in ROOT_MARKERS)


def _explicit_env_file() -> Path | None:
    value = os.getenv("NEARMAP_ENV_FILE")
    return Path(value).expanduser().resolve() if value else None


@lru_cache
def get_project_root() -> Path:
    """Return the checkout root (cached; see module docstring for the order)."""
    override = os.getenv("NEARMAP_PROJECT_ROOT")
    if override:
        return Path(override).expanduser().resolve()

    env_file = _explicit_env_file()
    if env_file is not None:
        return env_file.parent

    for start in (Path.cwd().resolve(), Path(__file__).resolve().parent):
        for candidate in (start, *start.parents):
            if _has_root_marker(candidate):
                return candidate
    return Path.cwd().resolve()


@lru_cache
def load_dotenv_if_present() -> Path | None:
    """Load the `.env` file once; never overrides variables already set."""
    env_path = _explicit_env_file() or get_project_root() / ".env"
    if not env_path.is_file():
        return None
    load_dotenv(dotenv_path=env_path, override=False)
    return env_path


def resolve_project_path(path: str | Path, *, must_exist: bool = False) -> Path:
    """Resolve `path` against the project root.

    With `must_exist`, a missing file raises `FileNotFoundError` naming both the
    given path and the root it was resolved against.
    """
    p = Path(path).expanduser()
    if not p.is_absolute():
        p = (get_project_root() / p).resolve()
    if must_exist and not p.exists():
        raise FileNotFoundError(f"{path}: not found (resolved to {p}, project root {get_project_root()})")
    return p
