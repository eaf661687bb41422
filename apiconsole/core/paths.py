"""Filesystem path helpers for controller scanning and catalog snapshots.

Relative paths from settings are anchored at the project root so that the
console behaves the same whether it is started from the repo root, from
pytest, or from a uvicorn worker with a different working directory.
"""
from __future__ import annotations

from pathlib import Path
from typing import Iterator, Optional, Union

ROOT = Path(__file__).resolve().parent.parent.parent  # project root

PathLike = Union[str, Path]


def resolve_path(value: PathLike, base: Optional[Path] = None) -> Path:
    """Return an absolute path, anchoring relative values at `base` (or ROOT)."""
    p = Path(value).expanduser()
    if not p.is_absolute():
        p = (base or ROOT) / p
    return p.resolve()


def is_within(path: PathLike, root: PathLike) -> bool:
    try:
        Path(path).resolve().relative_to(Path(root).resolve())
        return True
    except ValueError:
        return False


def iter_source_files(root: PathLike) -> Iterator[Path]:
    """Yield python source files under `root`, skipping caches and hidden dirs."""
    base = Path(root)
    if base.is_file():
        if base.suffix == ".py":
            yield base
        return
    if not base.is_dir():
        return
    for path in sorted(base.rglob("*.py")):
        parts = path.relative_to(base).parts
        if any(part.startswith(".") or part == "__pycache__" for part in parts):
            continue
        yield path


def ensure_parent(path: PathLike) -> Path:
    """Create the parent directory of `path` if missing. Idempotent."""
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    return p


__all__ = ["ROOT", "resolve_path", "is_within", "iter_source_files", "ensure_parent"]
