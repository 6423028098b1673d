"""Dry-run namespace collision check.

Compares the module directories actually present in a bundle against the
modules already installed in the project.  Nothing is written; repeated or
concurrent calls against the same project and bundle give the same plan.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from graft.config import Config
from graft.errors import EmptyModulesDirectory
from graft.manifest import Manifest, load_manifest
from graft.project.storage import ProjectStorage
from graft.staging import fs


@dataclass
class InstallPlan:
    """Result of a dry run."""

    bundle_root: Path
    already_installed: set[str] = field(default_factory=set)
    bundle_namespaces: list[str] = field(default_factory=list)
    manifest: Manifest | None = None

    @property
    def new_namespaces(self) -> list[str]:
        return [ns for ns in self.bundle_namespaces if ns not in self.already_installed]

    @property
    def has_conflicts(self) -> bool:
        return bool(self.already_installed)

    def as_dict(self) -> dict[str, Any]:
        """Caller-facing shape: ``{namespacesSrcDirPath, existingNamespaceDirs}``."""
        return {
            "namespacesSrcDirPath": str(self.bundle_root),
            "existingNamespaceDirs": sorted(self.already_installed),
        }


class ConflictDetector:
    """Builds an ``InstallPlan`` for a local bundle."""

    def __init__(self, config: Config, storage: ProjectStorage | None = None) -> None:
        self.config = config
        self.storage = storage or ProjectStorage(config)

    async def plan(self, bundle_root: str | Path) -> InstallPlan:
        """Report which bundle namespaces are already installed.

        Raises:
            ManifestMissing / ManifestMalformed: If the bundle manifest is bad.
            EmptyModulesDirectory: If ``<bundle>/modules`` has no subdirectories.
        """
        root = Path(bundle_root)
        manifest = load_manifest(root, self.config)
        index = await self.storage.get_component_tree()

        modules_src = root / "modules"
        module_dirs = await fs.read_directory_flat(modules_src)
        if not module_dirs:
            raise EmptyModulesDirectory(modules_src)

        names = [entry.name for entry in module_dirs]
        return InstallPlan(
            bundle_root=root,
            already_installed={name for name in names if name in index.modules},
            bundle_namespaces=names,
            manifest=manifest,
        )
