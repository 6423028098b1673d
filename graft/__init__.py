"""Graft -- install pre-built namespace modules into a generated project.

Quick usage::

    from graft import Config, InstallPipeline

    pipeline = InstallPipeline(Config(project_dir=Path("./my-app")))
    plan = await pipeline.pre_install(dir_path="./bundle")
    result = await pipeline.install_from_local_dir("./bundle")
"""

from graft.config import Config, DuplicatePolicy
from graft.conflicts import ConflictDetector, InstallPlan
from graft.pipeline import InstallPipeline, InstallResult, InstallStage

__version__ = "0.1.0"

__all__ = [
    "Config",
    "ConflictDetector",
    "DuplicatePolicy",
    "InstallPipeline",
    "InstallPlan",
    "InstallResult",
    "InstallStage",
]
