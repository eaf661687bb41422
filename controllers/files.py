"""Demo file routes: a named file and a catch-all tree under /files.

The catch-all shadows the named route for single-segment paths, which the
console reports as a conflict.
"""
from fastapi import APIRouter, HTTPException

from apiconsole.adapters import console_meta

router = APIRouter(prefix="/files", tags=["files"])

_FILES = {
    "readme.txt": "Welcome to the demo host.",
    "docs/guide.md": "# Guide\n",
}


@router.get("/{name}")
@console_meta(response={"200": {"name": "string!", "size": "number!"}})
async def file_info(name: str):
    content = _FILES.get(name)
    if content is None:
        raise HTTPException(status_code=404, detail="file not found")
    return {"name": name, "size": len(content)}


@router.get("/{rest:path}")
async def file_tree(rest: str):
    matches = sorted(k for k in _FILES if k.startswith(rest))
    return {"prefix": rest, "files": matches}


__all__ = ["router"]
