"""Read-only view of the host project's component registry.

``ProjectStorage`` scans the generated application for installed namespace
modules and loads the current text of the three aggregation files.  A fresh
``ProjectIndex`` snapshot is taken at the start of every pipeline run; nothing
here locks the project against concurrent edits.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from graft.config import Config
from graft.manifest import DependencyRef
from graft.project.dependencies import DependencyInstaller
from graft.staging import fs

_COMPONENT_DIRS = ("components", "containers")


class AnchorKind(str, Enum):
    """Which aggregation file an injection targets."""

    REDUCER = "reducer"
    SAGA = "saga"
    COMPONENT_INDEX = "component_index"


@dataclass
class ModuleInfo:
    """An installed namespace module found under the project modules dir."""

    name: str
    path: Path
    has_reducer: bool = False
    has_sagas: bool = False
    components: list[str] = field(default_factory=list)


@dataclass
class AggregationFile:
    """Path and current text of one aggregation file."""

    kind: AnchorKind
    path: Path
    text: str


@dataclass
class ProjectIndex:
    """Snapshot of the project's generated-component registry."""

    modules: dict[str, ModuleInfo]
    reducers: AggregationFile
    sagas: AggregationFile
    components: AggregationFile

    def aggregation_files(self) -> list[AggregationFile]:
        return [self.reducers, self.sagas, self.components]


class ProjectStorage:
    """Project index provider backed by the local filesystem."""

    def __init__(
        self,
        config: Config,
        dependency_installer: DependencyInstaller | None = None,
    ) -> None:
        self.config = config
        self.dependency_installer = dependency_installer or DependencyInstaller(config)

    async def get_component_tree(self) -> ProjectIndex:
        """Scan installed modules and read the aggregation files.

        Raises:
            InstallIOError: If an aggregation file cannot be read.
        """
        module_dirs = await fs.read_directory_flat(self.config.modules_path)
        infos = await asyncio.gather(*(_describe_module(d.name, d.path) for d in module_dirs))

        reducers, sagas, components = await asyncio.gather(
            _read_aggregation(AnchorKind.REDUCER, self.config.reducers_path),
            _read_aggregation(AnchorKind.SAGA, self.config.sagas_path),
            _read_aggregation(AnchorKind.COMPONENT_INDEX, self.config.components_path),
        )

        return ProjectIndex(
            modules={info.name: info for info in infos},
            reducers=reducers,
            sagas=sagas,
            components=components,
        )

    async def install_dependencies(self, dependencies: list[DependencyRef]) -> list[str]:
        """Make sure *dependencies* are present in the project.

        Returns:
            The package specs that were actually installed.
        """
        return await self.dependency_installer.install(dependencies)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _read_aggregation(kind: AnchorKind, path: Path) -> AggregationFile:
    return AggregationFile(kind=kind, path=path, text=await fs.read_text(path))


async def _describe_module(name: str, path: Path) -> ModuleInfo:
    def _scan() -> ModuleInfo:
        components: list[str] = []
        for sub in _COMPONENT_DIRS:
            sub_dir = path / sub
            if sub_dir.is_dir():
                components.extend(p.name for p in sub_dir.iterdir() if p.is_dir())
        return ModuleInfo(
            name=name,
            path=path,
            has_reducer=(path / "reducer.js").is_file(),
            has_sagas=(path / "sagas.js").is_file(),
            components=sorted(components),
        )

    return await asyncio.to_thread(_scan)
