"""Graft configuration.

Typed configuration for the install pipeline.  Every setting lives on a
Pydantic v2 model so it is validated at construction time and can be
serialised to/from JSON or read from environment variables.
"""

from __future__ import annotations

import os
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field


class DuplicatePolicy(str, Enum):
    """What to do when a namespace being installed is already registered."""

    ALLOW = "allow"
    SKIP = "skip"
    REJECT = "reject"


class LayoutConfig(BaseModel):
    """Locations inside a generated project, relative to the project root.

    The defaults match the layout produced by the project generator: generated
    application code under ``.structor/app`` and component metadata under
    ``.structor/defaults`` and ``.structor/docs/components``.
    """

    app_dir: str = Field(default=".structor/app")
    modules_dir: str = Field(default="modules", description="Relative to app_dir")
    defaults_dir: str = Field(default=".structor/defaults")
    docs_dir: str = Field(default=".structor/docs/components")
    reducers_file: str = Field(default="reducers.js", description="Relative to app_dir")
    sagas_file: str = Field(default="sagas.js", description="Relative to app_dir")
    components_file: str = Field(default="components.js", description="Relative to app_dir")
    package_json: str = Field(default="package.json")


class AnchorConfig(BaseModel):
    """Marker lines recognised inside the aggregation files.

    New import lines are inserted directly above the ``*_imports`` marker and
    new registration entries directly above the ``*_entries`` marker.
    """

    reducer_imports: str = Field(default="// graft:reducer-imports")
    reducer_entries: str = Field(default="// graft:reducer-entries")
    saga_imports: str = Field(default="// graft:saga-imports")
    saga_entries: str = Field(default="// graft:saga-entries")
    component_imports: str = Field(default="// graft:component-imports")
    component_entries: str = Field(default="// graft:component-entries")


class Config(BaseModel):
    """Global graft configuration.

    Created once by the CLI (or by a caller embedding the pipeline) and passed
    to ``InstallPipeline``; all collaborators read paths from here.
    """

    project_dir: Path = Field(default=Path("."))
    manifest_filename: str = Field(default="structor-namespaces.json")
    state_dir: str = Field(default=".graft")
    layout: LayoutConfig = Field(default_factory=LayoutConfig)
    anchors: AnchorConfig = Field(default_factory=AnchorConfig)
    templates_dir: Path | None = Field(
        default=None, description="Optional directory overriding the snippet templates"
    )

    package_manager: str = Field(default="npm")
    dependency_timeout: int = Field(
        default=600, ge=10, description="Package manager timeout in seconds"
    )
    max_parallel_copies: int = Field(
        default=8, ge=1, description="Concurrent directory copies within one group"
    )
    duplicate_policy: DuplicatePolicy = Field(default=DuplicatePolicy.ALLOW)
    rollback_on_failure: bool = Field(default=False)

    # ------------------------------------------------------------------
    # Derived paths (read-only properties)
    # ------------------------------------------------------------------

    @property
    def app_path(self) -> Path:
        """Root of the generated application sources."""
        return self.project_dir / self.layout.app_dir

    @property
    def modules_path(self) -> Path:
        """Destination for the ``modules`` group."""
        return self.app_path / self.layout.modules_dir

    @property
    def defaults_path(self) -> Path:
        """Destination for the ``defaults`` group."""
        return self.project_dir / self.layout.defaults_dir

    @property
    def docs_path(self) -> Path:
        """Destination for the ``docs`` group."""
        return self.project_dir / self.layout.docs_dir

    @property
    def reducers_path(self) -> Path:
        return self.app_path / self.layout.reducers_file

    @property
    def sagas_path(self) -> Path:
        return self.app_path / self.layout.sagas_file

    @property
    def components_path(self) -> Path:
        return self.app_path / self.layout.components_file

    @property
    def package_json_path(self) -> Path:
        return self.project_dir / self.layout.package_json

    @property
    def state_path(self) -> Path:
        """Path to the persisted install state JSON file."""
        return self.project_dir / self.state_dir / "install-state.json"

    @property
    def lock_path(self) -> Path:
        """Advisory lock file held while an install runs."""
        return self.project_dir / self.state_dir / "install.lock"

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------

    def save(self, path: Path | None = None) -> Path:
        """Persist the configuration to a JSON file.

        Args:
            path: Destination file. Defaults to ``<project>/.graft/config.json``.

        Returns:
            The path where the file was written.
        """
        target = path or (self.project_dir / self.state_dir / "config.json")
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.model_dump_json(indent=2), encoding="utf-8")
        return target

    @classmethod
    def load(cls, path: Path) -> "Config":
        """Load a previously-saved configuration from JSON."""
        raw = Path(path).read_text(encoding="utf-8")
        return cls.model_validate_json(raw)

    @classmethod
    def from_env(cls) -> "Config":
        """Build a ``Config`` from environment variables.

        Recognised variables (all optional):
            GRAFT_PROJECT_DIR, GRAFT_PACKAGE_MANAGER, GRAFT_DUPLICATE_POLICY,
            GRAFT_ROLLBACK, GRAFT_MAX_PARALLEL_COPIES, GRAFT_DEPENDENCY_TIMEOUT,
            GRAFT_TEMPLATES_DIR.
        """
        kwargs: dict[str, Any] = {}
        if os.environ.get("GRAFT_PROJECT_DIR"):
            kwargs["project_dir"] = Path(os.environ["GRAFT_PROJECT_DIR"])
        if os.environ.get("GRAFT_PACKAGE_MANAGER"):
            kwargs["package_manager"] = os.environ["GRAFT_PACKAGE_MANAGER"]
        if os.environ.get("GRAFT_DUPLICATE_POLICY"):
            kwargs["duplicate_policy"] = DuplicatePolicy(
                os.environ["GRAFT_DUPLICATE_POLICY"].strip().lower()
            )
        if os.environ.get("GRAFT_ROLLBACK"):
            kwargs["rollback_on_failure"] = os.environ["GRAFT_ROLLBACK"].strip().lower() in (
                "1",
                "true",
                "yes",
                "on",
            )
        if os.environ.get("GRAFT_MAX_PARALLEL_COPIES"):
            kwargs["max_parallel_copies"] = int(os.environ["GRAFT_MAX_PARALLEL_COPIES"])
        if os.environ.get("GRAFT_DEPENDENCY_TIMEOUT"):
            kwargs["dependency_timeout"] = int(os.environ["GRAFT_DEPENDENCY_TIMEOUT"])
        if os.environ.get("GRAFT_TEMPLATES_DIR"):
            kwargs["templates_dir"] = Path(os.environ["GRAFT_TEMPLATES_DIR"])

        return cls(**kwargs)
