"""Graft install pipeline orchestrator.

Installs a namespace bundle into a generated project in strictly sequential
stages:

MANIFEST_LOADED        -- read ``structor-namespaces.json`` from the bundle.
DEPENDENCIES_INSTALLED -- install missing packages the bundle needs.
INDEX_READ             -- snapshot the project's component registry.
REDUCERS_INJECTED      -- register every namespace reducer, write once.
SAGAS_INJECTED         -- register every namespace saga list, write once.
MODULES_STAGED         -- copy ``modules/*`` into the app.
DEFAULTS_STAGED        -- copy ``defaults/*``, registering each in the component index.
DOCS_STAGED            -- copy ``docs/*``.

Any failure moves the pipeline to FAILED and is re-raised unchanged.  Nothing
is retried.  Unless ``rollback_on_failure`` is set, work done by earlier
stages stays on disk, and re-running the install injects registry entries a
second time.

Only one install may run against a project at a time; the CLI enforces this
with ``project_lock``.

Usage::

    python -m graft.pipeline preinstall ./bundle --project ./my-app
    python -m graft.pipeline install ./bundle --project ./my-app
"""

from __future__ import annotations

import asyncio
import json
import os
import sys
import time
import traceback
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Any

from rich.panel import Panel
from rich.table import Table

from graft.config import Config, DuplicatePolicy
from graft.conflicts import ConflictDetector, InstallPlan
from graft.errors import (
    EmptyModulesDirectory,
    InstallError,
    InstallLocked,
    ModuleSourceMissing,
    NamespaceAlreadyInstalled,
    RemoteBundleNotSupported,
)
from graft.injector import SourceBuffer, SourceInjector, component_identifiers
from graft.manifest import Manifest, load_manifest
from graft.project.storage import ProjectIndex, ProjectStorage
from graft.staging import fs
from graft.staging.fs import DirEntry
from graft.staging.journal import InstallJournal
from graft.staging.stager import FilesystemStager
from graft.utils import (
    console,
    format_duration,
    gather_settled,
    print_error,
    print_stage_header,
    print_success,
    print_summary_table,
    print_warning,
    save_json,
)

# ---------------------------------------------------------------------------
# Stages
# ---------------------------------------------------------------------------


class InstallStage(str, Enum):
    """Install pipeline states, in execution order."""

    IDLE = "idle"
    MANIFEST_LOADED = "manifest_loaded"
    DEPENDENCIES_INSTALLED = "dependencies_installed"
    INDEX_READ = "index_read"
    REDUCERS_INJECTED = "reducers_injected"
    SAGAS_INJECTED = "sagas_injected"
    MODULES_STAGED = "modules_staged"
    DEFAULTS_STAGED = "defaults_staged"
    DOCS_STAGED = "docs_staged"
    DONE = "done"
    FAILED = "failed"


_GROUP_STAGES: dict[str, InstallStage] = {
    "modules": InstallStage.MODULES_STAGED,
    "defaults": InstallStage.DEFAULTS_STAGED,
    "docs": InstallStage.DOCS_STAGED,
}


@dataclass
class InstallResult:
    """Summary of a successful install."""

    bundle_root: Path
    namespaces: list[str]
    installed_dependencies: list[str] = field(default_factory=list)
    staged: dict[str, list[str]] = field(default_factory=dict)
    stages: list[InstallStage] = field(default_factory=list)
    steps: list[str] = field(default_factory=list)
    duration: float = 0.0

    def as_dict(self) -> dict[str, Any]:
        return {
            "bundle_root": str(self.bundle_root),
            "namespaces": self.namespaces,
            "installed_dependencies": self.installed_dependencies,
            "staged": self.staged,
            "stages": [stage.value for stage in self.stages],
            "steps": self.steps,
            "duration": format_duration(self.duration),
        }


# ---------------------------------------------------------------------------
# Pipeline Orchestrator
# ---------------------------------------------------------------------------


class InstallPipeline:
    """Drives one namespace install against one project.

    Attributes:
        config: Project layout and install policies.
        storage: Project index provider (registry snapshot + dependency install).
        injector: Text injector used for all three aggregation files.
        stage: Current pipeline state.
        state: Mutable record of the run, persisted after every stage.
    """

    def __init__(
        self,
        config: Config,
        storage: ProjectStorage | None = None,
        injector: SourceInjector | None = None,
    ) -> None:
        self.config = config
        self.storage = storage or ProjectStorage(config)
        self.injector = injector or SourceInjector.from_config(config)
        self.stage = InstallStage.IDLE
        self.state: dict[str, Any] = {}

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def pre_install(
        self, dir_path: str | Path | None = None, url: str | None = None
    ) -> InstallPlan:
        """Dry run: report which bundle namespaces already exist in the project."""
        if dir_path is None:
            if url:
                raise RemoteBundleNotSupported(url)
            raise ValueError("pre_install requires dir_path or url")

        detector = ConflictDetector(self.config, self.storage)
        plan = await detector.plan(dir_path)

        print_summary_table(
            {
                "Bundle": str(plan.bundle_root),
                "Namespaces": ", ".join(plan.bundle_namespaces),
                "Already installed": ", ".join(sorted(plan.already_installed)) or "-",
            },
            title="Install Plan",
        )
        if plan.has_conflicts:
            print_warning(
                "  Existing namespaces will be overwritten and their registry "
                "entries injected again."
            )
        return plan

    async def install_from_url(self, url: str) -> InstallResult:
        raise RemoteBundleNotSupported(url)

    async def install_from_local_dir(self, dir_path: str | Path) -> InstallResult:
        """Install every namespace in the bundle at *dir_path*.

        Returns:
            An ``InstallResult`` describing what was done.

        Raises:
            InstallError: The failure of whichever stage failed, unchanged.
        """
        bundle_root = Path(dir_path)
        started = time.monotonic()
        journal = InstallJournal()
        stager = FilesystemStager(
            self.config, journal, keep_backups=self.config.rollback_on_failure
        )
        buffers: list[SourceBuffer] = []
        result = InstallResult(bundle_root=bundle_root, namespaces=[])

        self.stage = InstallStage.IDLE
        self.state = {
            "bundle_root": str(bundle_root.resolve()),
            "started_at": datetime.now(timezone.utc).isoformat(),
            "stages": [],
            "success": False,
        }

        console.print(
            Panel(
                f"[bold bright_cyan]Namespace install[/bold bright_cyan]\n"
                f"Bundle  : {bundle_root.resolve()}\n"
                f"Project : {self.config.project_dir.resolve()}",
                title="[bold]Install Start[/bold]",
                border_style="bright_cyan",
            )
        )

        try:
            print_stage_header("manifest", "Manifest")
            manifest = load_manifest(bundle_root, self.config)
            result.namespaces = manifest.namespace_names
            console.print(f"  Namespaces: [bold]{', '.join(result.namespaces)}[/bold]")
            await self._advance(InstallStage.MANIFEST_LOADED, result)

            print_stage_header("dependencies", "Dependencies")
            result.installed_dependencies = await self.storage.install_dependencies(
                manifest.dependencies
            )
            await self._advance(InstallStage.DEPENDENCIES_INSTALLED, result)

            print_stage_header("index", "Project index")
            index = await self.storage.get_component_tree()
            self._check_duplicates(manifest, index)
            console.print(f"  {len(index.modules)} module(s) currently installed")
            await self._advance(InstallStage.INDEX_READ, result)

            print_stage_header("inject", "Registry injection")
            reducers = SourceBuffer(index.reducers, self.injector)
            sagas = SourceBuffer(index.sagas, self.injector)
            components = SourceBuffer(index.components, self.injector)
            buffers = [reducers, sagas, components]

            await self._verify_module_sources(bundle_root, manifest)
            component_ids = await self._component_identifiers(bundle_root, index)

            for namespace, meta in manifest.namespaces.items():
                reducers.apply(
                    meta.reducer_prop_name,
                    meta.reducer_identifier,
                    self._module_import_path(namespace, "reducer.js"),
                )
            await reducers.write_back()
            console.print(f"  [green]+[/green] {reducers.injections} reducer(s) registered")
            await self._advance(InstallStage.REDUCERS_INJECTED, result)

            for namespace in manifest.namespaces:
                sagas.apply(
                    None,
                    Manifest.saga_identifier(namespace),
                    self._module_import_path(namespace, "sagas.js"),
                )
            await sagas.write_back()
            console.print(f"  [green]+[/green] {sagas.injections} saga list(s) registered")
            await self._advance(InstallStage.SAGAS_INJECTED, result)

            print_stage_header("stage", "Staging")
            index_lock = asyncio.Lock()

            async def _register_component(entry: DirEntry) -> None:
                async with index_lock:
                    components.apply(
                        entry.name,
                        component_ids[entry.name],
                        self._module_import_path(entry.name),
                    )
                    await components.write_back()

            for group in stager.groups(bundle_root):
                after_copy = _register_component if group.name == "defaults" else None
                entries = await stager.stage_group(
                    group, manifest.namespace_names, after_copy=after_copy
                )
                result.staged[group.name] = [entry.name for entry in entries]
                await self._advance(_GROUP_STAGES[group.name], result)

            await journal.commit()
            result.steps = journal.descriptions
            result.duration = time.monotonic() - started
            self.state["success"] = True
            self.state["finished_at"] = datetime.now(timezone.utc).isoformat()
            await self._advance(InstallStage.DONE, result)

        except InstallError as exc:
            await self._fail(exc, journal, buffers)
            print_error(f"Install FAILED: {exc}")
            raise

        except Exception as exc:
            await self._fail(exc, journal, buffers)
            print_error(f"Install FAILED: {exc}")
            console.print(f"[dim]{traceback.format_exc()}[/dim]")
            raise

        self._print_final_summary(result)
        return result

    # ------------------------------------------------------------------
    # Stage helpers
    # ------------------------------------------------------------------

    def _module_import_path(self, namespace: str, filename: str | None = None) -> PurePosixPath:
        """Import path of a namespace module relative to the app directory."""
        path = PurePosixPath(self.config.layout.modules_dir, namespace)
        return path / filename if filename else path

    def _check_duplicates(self, manifest: Manifest, index: ProjectIndex) -> None:
        if self.config.duplicate_policy is not DuplicatePolicy.REJECT:
            return
        existing = [ns for ns in manifest.namespaces if ns in index.modules]
        if existing:
            raise NamespaceAlreadyInstalled(existing)

    async def _verify_module_sources(self, bundle_root: Path, manifest: Manifest) -> None:
        """Every manifest namespace must ship ``reducer.js`` and ``sagas.js``."""
        modules_src = bundle_root / "modules"
        if not await fs.read_directory_flat(modules_src):
            raise EmptyModulesDirectory(modules_src)

        async def _check(namespace: str) -> None:
            for filename in ("reducer.js", "sagas.js"):
                path = modules_src / namespace / filename
                if not await fs.exists(path):
                    raise ModuleSourceMissing(namespace, path)

        await gather_settled(_check(ns) for ns in manifest.namespaces)

    async def _component_identifiers(
        self, bundle_root: Path, index: ProjectIndex
    ) -> dict[str, str]:
        """Component-index identifiers for every ``defaults`` entry, checked before any write."""
        entries = await fs.read_directory_flat(bundle_root / "defaults")
        return component_identifiers(
            [entry.name for entry in entries], installed=index.modules
        )

    async def _advance(self, stage: InstallStage, result: InstallResult) -> None:
        self.stage = stage
        result.stages.append(stage)
        self.state["stage"] = stage.value
        self.state["stages"].append(stage.value)
        await self._save_state()

    async def _fail(
        self,
        exc: BaseException,
        journal: InstallJournal,
        buffers: list[SourceBuffer],
    ) -> None:
        failed_at = self.stage
        self.stage = InstallStage.FAILED
        if isinstance(exc, InstallError) and exc.stage is None:
            exc.stage = failed_at.value
        self.state["stage"] = InstallStage.FAILED.value
        self.state["failed_after"] = failed_at.value
        self.state["error"] = str(exc)
        self.state["error_type"] = type(exc).__name__
        self.state["applied_steps"] = journal.descriptions

        if self.config.rollback_on_failure:
            console.print("  [yellow]Rolling back applied steps...[/yellow]")
            self.state["rollback_failures"] = await self._rollback(journal, buffers)

        self.state["finished_at"] = datetime.now(timezone.utc).isoformat()
        try:
            await self._save_state()
        except OSError as state_exc:
            print_warning(f"  Could not record install state: {state_exc}")

    async def _rollback(
        self, journal: InstallJournal, buffers: list[SourceBuffer]
    ) -> list[str]:
        failures = await journal.rollback()
        for buffer in buffers:
            if not buffer.dirty:
                continue
            try:
                await buffer.restore()
            except InstallError as exc:
                print_warning(f"  Could not restore {buffer.file.path}: {exc}")
                failures.append(f"restore {buffer.file.path}")
        return failures

    async def _save_state(self) -> None:
        """Persist the run state to ``.graft/install-state.json``."""
        self.state["updated_at"] = datetime.now(timezone.utc).isoformat()
        await save_json(self.state, self.config.state_path)

    def _print_final_summary(self, result: InstallResult) -> None:
        print_summary_table(
            {
                "Namespaces": ", ".join(result.namespaces),
                "Dependencies installed": ", ".join(result.installed_dependencies) or "-",
                "Modules": ", ".join(result.staged.get("modules", [])),
                "Defaults": ", ".join(result.staged.get("defaults", [])),
                "Docs": ", ".join(result.staged.get("docs", [])),
                "Duration": format_duration(result.duration),
            },
            title="Install Results",
        )
        print_success("Namespace install completed")


# ---------------------------------------------------------------------------
# Single-writer lock
# ---------------------------------------------------------------------------


@contextmanager
def project_lock(config: Config) -> Iterator[Path]:
    """Hold the advisory install lock for the project.

    A lock left behind by a process that no longer exists is reclaimed.

    Raises:
        InstallLocked: If a live process holds the lock.
    """
    lock_path = config.lock_path
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    try:
        fd = os.open(str(lock_path), os.O_CREAT | os.O_EXCL | os.O_WRONLY)
    except FileExistsError as exc:
        if not _lock_is_stale(lock_path):
            raise InstallLocked(lock_path) from exc
        print_warning(f"  Removing stale install lock: {lock_path}")
        lock_path.unlink(missing_ok=True)
        try:
            fd = os.open(str(lock_path), os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        except FileExistsError as retry_exc:
            raise InstallLocked(lock_path) from retry_exc
    try:
        os.write(fd, str(os.getpid()).encode("ascii"))
    finally:
        os.close(fd)
    try:
        yield lock_path
    finally:
        lock_path.unlink(missing_ok=True)


def _lock_is_stale(lock_path: Path) -> bool:
    """True if the PID recorded in *lock_path* is no longer running."""
    try:
        pid = int(lock_path.read_text(encoding="ascii").strip())
    except FileNotFoundError:
        return True
    except (OSError, ValueError):
        # Unreadable or still being written by its holder.
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return True
    except PermissionError:
        return False
    return False


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------


def build_config(args: Any) -> Config:
    """Create the ``Config`` for a CLI invocation."""
    config = Config.load(Path(args.config)) if args.config else Config.from_env()
    updates: dict[str, Any] = {}
    if args.project:
        updates["project_dir"] = Path(args.project)
    if getattr(args, "duplicates", None):
        updates["duplicate_policy"] = DuplicatePolicy(args.duplicates)
    if getattr(args, "rollback", False):
        updates["rollback_on_failure"] = True
    if getattr(args, "package_manager", None):
        updates["package_manager"] = args.package_manager
    return config.model_copy(update=updates)


async def _cmd_preinstall(config: Config, args: Any) -> int:
    plan = await InstallPipeline(config).pre_install(dir_path=args.bundle)
    if args.json:
        console.print_json(json.dumps(plan.as_dict()))
    return 0


async def _cmd_install(config: Config, args: Any) -> int:
    with project_lock(config):
        pipeline = InstallPipeline(config)
        if args.bundle.startswith(("http://", "https://")):
            await pipeline.install_from_url(args.bundle)
        else:
            await pipeline.install_from_local_dir(args.bundle)
    return 0


async def _cmd_index(config: Config, args: Any) -> int:
    index = await ProjectStorage(config).get_component_tree()
    table = Table(title="Installed namespaces", show_header=True, header_style="bold cyan")
    table.add_column("Namespace", no_wrap=True)
    table.add_column("Reducer")
    table.add_column("Sagas")
    table.add_column("Components")
    for name, info in sorted(index.modules.items()):
        table.add_row(
            name,
            "yes" if info.has_reducer else "-",
            "yes" if info.has_sagas else "-",
            ", ".join(info.components) or "-",
        )
    console.print(table)
    return 0


def main(argv: list[str] | None = None) -> int:
    """CLI entry point for ``graft`` / ``python -m graft.pipeline``."""
    import argparse

    parser = argparse.ArgumentParser(
        prog="graft",
        description="Install pre-built namespace modules into a generated project",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  graft preinstall ./bundle --project ./my-app\n"
            "  graft install ./bundle --project ./my-app --rollback\n"
            "  graft index --project ./my-app\n"
        ),
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--project", "-p", default=None, help="Project root (default: .)")
    common.add_argument("--config", default=None, help="JSON config file saved by Config.save()")
    sub = parser.add_subparsers(dest="cmd", required=True)

    sp = sub.add_parser(
        "preinstall", parents=[common], help="Dry run: list namespaces already installed"
    )
    sp.add_argument("bundle", help="Bundle directory")
    sp.add_argument("--json", action="store_true", help="Also print the plan as JSON")
    sp.set_defaults(func=_cmd_preinstall)

    sp = sub.add_parser("install", parents=[common], help="Install a namespace bundle")
    sp.add_argument("bundle", help="Bundle directory")
    sp.add_argument(
        "--duplicates",
        choices=[policy.value for policy in DuplicatePolicy],
        default=None,
        help="Policy for namespaces that are already installed (default: allow)",
    )
    sp.add_argument("--rollback", action="store_true", help="Undo applied steps on failure")
    sp.add_argument("--package-manager", default=None, help="Package manager executable")
    sp.set_defaults(func=_cmd_install)

    sp = sub.add_parser("index", parents=[common], help="Show the project's installed namespaces")
    sp.set_defaults(func=_cmd_index)

    args = parser.parse_args(argv)
    config = build_config(args)

    try:
        return asyncio.run(args.func(config, args))
    except InstallError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
