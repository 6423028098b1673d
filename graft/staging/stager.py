"""Grouped copy of bundle directories into the project tree.

A bundle has three directory groups, staged strictly in this order:

* ``modules``  -> ``<app>/modules``
* ``defaults`` -> component defaults directory
* ``docs``     -> component docs directory

Within a group every subdirectory is replaced concurrently (existing
destination removed, source copied).  The group is joined only once every copy
has settled; the first failure is then raised.  A failing group does not undo
groups staged before it.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from pathlib import Path

from graft.config import Config
from graft.errors import (
    EmptyDefaultsDirectory,
    EmptyDocsDirectory,
    EmptyGroupDirectory,
    EmptyModulesDirectory,
    NamespaceMissingFromGroup,
)
from graft.staging import fs
from graft.staging.fs import DirEntry
from graft.staging.journal import InstallJournal
from graft.utils import console, gather_settled

AfterCopy = Callable[[DirEntry], Awaitable[None]]

GROUP_ORDER: tuple[str, ...] = ("modules", "defaults", "docs")

_EMPTY_ERRORS: dict[str, type[EmptyGroupDirectory]] = {
    "modules": EmptyModulesDirectory,
    "defaults": EmptyDefaultsDirectory,
    "docs": EmptyDocsDirectory,
}


@dataclass(frozen=True)
class StagingGroup:
    """One bundle directory group and where it lands in the project."""

    name: str
    source: Path
    destination: Path

    @property
    def empty_error(self) -> type[EmptyGroupDirectory]:
        return _EMPTY_ERRORS[self.name]


class FilesystemStager:
    """Copies bundle groups into the project and journals every replacement.

    When *keep_backups* is set, a destination that already exists is moved to
    ``<project>/.graft/backup`` instead of being deleted, so the journal can
    restore it.  Backups are discarded when the journal commits.
    """

    def __init__(
        self,
        config: Config,
        journal: InstallJournal | None = None,
        keep_backups: bool = False,
    ) -> None:
        self.config = config
        self.journal = journal or InstallJournal()
        self.keep_backups = keep_backups
        self.backup_root = config.project_dir / config.state_dir / "backup"
        if keep_backups:
            self.journal.on_commit(lambda: fs.remove_path(self.backup_root))

    def groups(self, bundle_root: str | Path) -> list[StagingGroup]:
        """Return the three groups of *bundle_root* in staging order."""
        root = Path(bundle_root)
        destinations = {
            "modules": self.config.modules_path,
            "defaults": self.config.defaults_path,
            "docs": self.config.docs_path,
        }
        return [
            StagingGroup(name=name, source=root / name, destination=destinations[name])
            for name in GROUP_ORDER
        ]

    async def stage_group(
        self,
        group: StagingGroup,
        namespaces: Iterable[str] = (),
        after_copy: AfterCopy | None = None,
    ) -> list[DirEntry]:
        """Replace every subdirectory of *group* in the project.

        Args:
            group: The group to stage.
            namespaces: Manifest namespaces that must each have a directory in
                the group.
            after_copy: Awaited right after each successful copy, with the
                copied entry.

        Returns:
            The staged entries, sorted by name.

        Raises:
            EmptyGroupDirectory: The matching subclass if the group has no
                subdirectories.
            NamespaceMissingFromGroup: If a manifest namespace has no entry.
            InstallIOError: If a remove or copy fails.
        """
        entries = await fs.read_directory_flat(group.source)
        if not entries:
            raise group.empty_error(group.source)

        present = {entry.name for entry in entries}
        missing = [ns for ns in namespaces if ns not in present]
        if missing:
            raise NamespaceMissingFromGroup(group.name, missing)

        semaphore = asyncio.Semaphore(self.config.max_parallel_copies)

        async def _stage_one(entry: DirEntry) -> None:
            async with semaphore:
                await self._replace(group, entry)
            if after_copy is not None:
                await after_copy(entry)

        await gather_settled(_stage_one(entry) for entry in entries)

        console.print(
            f"  [green]+[/green] {group.name}: staged {len(entries)} "
            f"director{'y' if len(entries) == 1 else 'ies'} into {group.destination}"
        )
        return entries

    async def _replace(self, group: StagingGroup, entry: DirEntry) -> None:
        dest = group.destination / entry.name
        backup: Path | None = None

        if await fs.exists(dest):
            if self.keep_backups:
                backup = self.backup_root / group.name / entry.name
                await fs.remove_path(backup)
                await fs.move_path(dest, backup)
            else:
                await fs.remove_path(dest)

        async def _undo() -> None:
            await fs.remove_path(dest)
            if backup is not None:
                await fs.move_path(backup, dest)

        self.journal.record(f"copy {group.name}/{entry.name}", _undo)
        await fs.copy_path(entry.path, dest)
