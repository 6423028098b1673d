"""Graft project access -- component registry snapshot and dependency installs."""

from graft.project.dependencies import DependencyInstaller
from graft.project.storage import (
    AggregationFile,
    AnchorKind,
    ModuleInfo,
    ProjectIndex,
    ProjectStorage,
)

__all__ = [
    "AggregationFile",
    "AnchorKind",
    "DependencyInstaller",
    "ModuleInfo",
    "ProjectIndex",
    "ProjectStorage",
]
