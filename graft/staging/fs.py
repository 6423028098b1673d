"""Async filesystem provider used by every pipeline stage.

Blocking calls run in a worker thread via ``asyncio.to_thread``.  Any
``OSError`` is wrapped in ``InstallIOError`` with the original error kept as
``__cause__``.
"""

from __future__ import annotations

import asyncio
import shutil
from dataclasses import dataclass
from pathlib import Path

from graft.errors import InstallIOError


@dataclass(frozen=True)
class DirEntry:
    """An immediate subdirectory found by ``read_directory_flat``."""

    name: str
    path: Path


async def read_directory_flat(path: str | Path) -> list[DirEntry]:
    """Return the immediate subdirectories of *path*, sorted by name.

    A missing directory yields an empty list so callers can apply their own
    emptiness policy.
    """
    root = Path(path)

    def _scan() -> list[DirEntry]:
        if not root.is_dir():
            return []
        return sorted(
            (DirEntry(name=p.name, path=p) for p in root.iterdir() if p.is_dir()),
            key=lambda entry: entry.name,
        )

    try:
        return await asyncio.to_thread(_scan)
    except OSError as exc:
        raise InstallIOError("read directory", root, exc) from exc


async def exists(path: str | Path) -> bool:
    return await asyncio.to_thread(Path(path).exists)


async def read_text(path: str | Path) -> str:
    file_path = Path(path)
    try:
        return await asyncio.to_thread(file_path.read_text, "utf-8")
    except OSError as exc:
        raise InstallIOError("read", file_path, exc) from exc


async def write_file(path: str | Path, content: str) -> None:
    """Write *content* to *path*, creating parent directories."""
    file_path = Path(path)
    try:
        await asyncio.to_thread(_write_file, file_path, content)
    except OSError as exc:
        raise InstallIOError("write", file_path, exc) from exc


async def remove_path(path: str | Path) -> None:
    """Remove a file or directory tree.  Missing paths are ignored."""
    target = Path(path)
    try:
        await asyncio.to_thread(_remove, target)
    except OSError as exc:
        raise InstallIOError("remove", target, exc) from exc


async def copy_path(src: str | Path, dst: str | Path) -> None:
    """Copy a file or directory tree from *src* to *dst*."""
    source = Path(src)
    dest = Path(dst)
    try:
        await asyncio.to_thread(_copy, source, dest)
    except OSError as exc:
        raise InstallIOError("copy", source, exc) from exc


async def move_path(src: str | Path, dst: str | Path) -> None:
    source = Path(src)
    dest = Path(dst)
    try:
        await asyncio.to_thread(_move, source, dest)
    except OSError as exc:
        raise InstallIOError("move", source, exc) from exc


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _write_file(path: Path, content: str) -> None:
    """Synchronous helper: create parent dirs and write content."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def _remove(path: Path) -> None:
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    elif path.exists() or path.is_symlink():
        path.unlink()


def _copy(src: Path, dst: Path) -> None:
    dst.parent.mkdir(parents=True, exist_ok=True)
    if src.is_dir():
        shutil.copytree(src, dst)
    else:
        shutil.copy2(src, dst)


def _move(src: Path, dst: Path) -> None:
    dst.parent.mkdir(parents=True, exist_ok=True)
    shutil.move(str(src), str(dst))
