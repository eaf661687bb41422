"""Controller source index.

Scans the configured controllers root, parses handler modules with ``ast``
and caches the trees per (path, mtime). Nothing here imports or executes the
scanned modules.
"""
from __future__ import annotations

import ast
import threading
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from apiconsole.core.logging import get_logger
from apiconsole.core.paths import is_within, iter_source_files, resolve_path
from apiconsole.models.route import HandlerRef

logger = get_logger("inference")

FunctionNode = Union[ast.FunctionDef, ast.AsyncFunctionDef]


class ControllerIndex:
    def __init__(self, root: Union[str, Path]):
        self.root = resolve_path(root)
        self._cache: Dict[Path, Tuple[int, ast.Module]] = {}
        self._lock = threading.Lock()

    def scan(self) -> List[Path]:
        """Return every handler source file under the root."""
        return list(iter_source_files(self.root))

    def contains(self, file: Optional[str]) -> bool:
        return bool(file) and is_within(file, self.root)  # type: ignore[arg-type]

    def load(self, file: Union[str, Path]) -> ast.Module:
        """Parse `file`, reusing the cached tree while its mtime is unchanged."""
        path = Path(file).resolve()
        mtime = path.stat().st_mtime_ns
        with self._lock:
            cached = self._cache.get(path)
            if cached and cached[0] == mtime:
                return cached[1]
        tree = ast.parse(path.read_text(encoding="utf-8"), filename=str(path))
        with self._lock:
            self._cache[path] = (mtime, tree)
        return tree

    def locate(self, ref: HandlerRef) -> Optional[Tuple[ast.Module, FunctionNode]]:
        """Find the function node for `ref`; None when outside the root or missing."""
        if not self.contains(ref.file):
            return None
        tree = self.load(ref.file)  # type: ignore[arg-type]
        node = find_function(tree, ref)
        if node is None:
            logger.debug("handler %s not found in %s", ref.label, ref.file)
            return None
        return tree, node

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()


def _first_line(node: FunctionNode) -> int:
    lines = [node.lineno] + [d.lineno for d in node.decorator_list]
    return min(lines)


def find_function(tree: ast.Module, ref: HandlerRef) -> Optional[FunctionNode]:
    """Match by first line (def or decorator), falling back to a unique name."""
    by_name: List[FunctionNode] = []
    for node in ast.walk(tree):
        if not isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
            continue
        if ref.lineno is not None and ref.lineno in (node.lineno, _first_line(node)):
            if ref.name is None or node.name == ref.name:
                return node
        if node.name == ref.name:
            by_name.append(node)
    return by_name[0] if len(by_name) == 1 else None


__all__ = ["ControllerIndex", "find_function", "FunctionNode"]
