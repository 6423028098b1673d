"""Installation of the packages a bundle depends on.

Packages already declared in the project's ``package.json`` are skipped; the
rest are handed to the configured package manager in a single invocation.
"""

from __future__ import annotations

import json

from graft.config import Config
from graft.errors import DependencyInstallFailed
from graft.manifest import DependencyRef
from graft.utils import console, load_json, run_command

_DECLARED_SECTIONS = ("dependencies", "devDependencies", "peerDependencies")


class DependencyInstaller:
    """Runs ``<package_manager> install`` for missing bundle dependencies."""

    def __init__(self, config: Config) -> None:
        self.config = config

    def declared_packages(self) -> set[str]:
        """Return every package name declared in the project ``package.json``."""
        path = self.config.package_json_path
        if not path.is_file():
            return set()
        try:
            data = load_json(path)
        except (OSError, json.JSONDecodeError) as exc:
            raise DependencyInstallFailed(f"Cannot read {path}: {exc}") from exc

        declared: set[str] = set()
        if isinstance(data, dict):
            for section in _DECLARED_SECTIONS:
                entries = data.get(section)
                if isinstance(entries, dict):
                    declared.update(entries)
        return declared

    def missing(self, dependencies: list[DependencyRef]) -> list[DependencyRef]:
        declared = self.declared_packages()
        seen: set[str] = set()
        result: list[DependencyRef] = []
        for dep in dependencies:
            if dep.name in declared or dep.name in seen:
                continue
            seen.add(dep.name)
            result.append(dep)
        return result

    async def install(self, dependencies: list[DependencyRef]) -> list[str]:
        """Install any of *dependencies* the project does not declare yet.

        Returns:
            The install specs passed to the package manager (empty if none).

        Raises:
            DependencyInstallFailed: If the package manager is missing, times
                out or exits non-zero.
        """
        if not dependencies:
            return []

        to_install = self.missing(dependencies)
        if not to_install:
            console.print("  [dim]All dependencies already declared[/dim]")
            return []

        specs = [dep.spec for dep in to_install]
        cmd = [self.config.package_manager, "install", *specs]
        cmd_str = " ".join(cmd)
        console.print(f"  Installing dependencies: [bold]{', '.join(specs)}[/bold]")

        try:
            returncode, _, stderr = await run_command(
                cmd,
                cwd=self.config.project_dir,
                timeout=self.config.dependency_timeout,
            )
        except FileNotFoundError as exc:
            raise DependencyInstallFailed(
                f"Package manager not found: {self.config.package_manager}",
                command=cmd_str,
            ) from exc

        if returncode != 0:
            raise DependencyInstallFailed(
                f"Dependency install failed (exit {returncode}): {cmd_str}\n{stderr}",
                command=cmd_str,
                stderr=stderr,
            )

        return specs
