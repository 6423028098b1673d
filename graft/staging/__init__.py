"""Graft staging -- async filesystem provider and grouped bundle copying."""

from graft.staging.fs import DirEntry
from graft.staging.journal import InstallJournal, StagedStep
from graft.staging.stager import GROUP_ORDER, FilesystemStager, StagingGroup

__all__ = [
    "GROUP_ORDER",
    "DirEntry",
    "FilesystemStager",
    "InstallJournal",
    "StagedStep",
    "StagingGroup",
]
