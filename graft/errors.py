"""Exception hierarchy for the install pipeline.

Every failure the pipeline can surface derives from ``InstallError``.  Stages
raise these directly and the orchestrator re-raises them unchanged, so callers
can branch on the concrete class.
"""

from __future__ import annotations

from pathlib import Path


class InstallError(Exception):
    """Base class for all install pipeline failures."""

    def __init__(self, message: str, stage: str | None = None) -> None:
        self.stage = stage
        super().__init__(message)


class ManifestMissing(InstallError):
    """Raised when the bundle has no namespace manifest."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        super().__init__(f"Namespace manifest not found: {self.path}")


class ManifestMalformed(InstallError):
    """Raised when the manifest cannot be parsed into namespaces + dependencies."""

    def __init__(self, path: str | Path, reason: str) -> None:
        self.path = Path(path)
        self.reason = reason
        super().__init__(f"Namespace manifest {self.path} is malformed: {reason}")


class EmptyGroupDirectory(InstallError):
    """Raised when a bundle directory group contains no subdirectories."""

    group = ""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        super().__init__(f"{self.group.capitalize()} directory is empty: {self.path}")


class EmptyModulesDirectory(EmptyGroupDirectory):
    group = "modules"


class EmptyDefaultsDirectory(EmptyGroupDirectory):
    group = "defaults"


class EmptyDocsDirectory(EmptyGroupDirectory):
    group = "docs"


class NamespaceMissingFromGroup(InstallError):
    """Raised when a manifest namespace has no directory in a bundle group."""

    def __init__(self, group: str, namespaces: list[str]) -> None:
        self.group = group
        self.namespaces = namespaces
        super().__init__(
            f"Bundle {group} directory has no entry for namespace(s): {', '.join(namespaces)}"
        )


class ModuleSourceMissing(InstallError):
    """Raised when a namespace module lacks its reducer or sagas source file."""

    def __init__(self, namespace: str, path: str | Path) -> None:
        self.namespace = namespace
        self.path = Path(path)
        super().__init__(f"Namespace '{namespace}' is missing {self.path.name}: {self.path}")


class DependencyInstallFailed(InstallError):
    """Raised when the package manager could not install bundle dependencies."""

    def __init__(self, message: str, command: str = "", stderr: str = "") -> None:
        self.command = command
        self.stderr = stderr
        super().__init__(message)


class InstallIOError(InstallError):
    """Raised when a filesystem operation fails.  The original error is the cause."""

    def __init__(self, operation: str, path: str | Path, cause: BaseException) -> None:
        self.operation = operation
        self.path = Path(path)
        super().__init__(f"Failed to {operation} {self.path}: {cause}")
        self.__cause__ = cause


class InjectionAnchorMissing(InstallError):
    """Raised when an aggregation file has no recognised insertion anchor."""

    def __init__(self, anchor: str, kind: str) -> None:
        self.anchor = anchor
        self.kind = kind
        super().__init__(f"Anchor '{anchor}' not found in {kind} aggregation source")


class ComponentIdentifierInvalid(InstallError):
    """Raised when a namespace cannot be imported into the component index.

    Either its identifier is empty or a JS reserved word, or another namespace
    already maps to the same identifier.
    """

    def __init__(self, identifier: str, namespaces: list[str], reason: str) -> None:
        self.identifier = identifier
        self.namespaces = namespaces
        super().__init__(
            f"Cannot register {', '.join(repr(ns) for ns in namespaces)} in the "
            f"component index as '{identifier}': {reason}"
        )


class NamespaceAlreadyInstalled(InstallError):
    """Raised under the ``reject`` duplicate policy."""

    def __init__(self, namespaces: list[str]) -> None:
        self.namespaces = namespaces
        super().__init__(f"Namespace(s) already installed: {', '.join(namespaces)}")


class RemoteBundleNotSupported(InstallError):
    """Raised when a bundle is requested by URL instead of a local directory."""

    def __init__(self, url: str) -> None:
        self.url = url
        super().__init__(f"Installing namespaces from a URL is not supported: {url}")


class InstallLocked(InstallError):
    """Raised when another install already holds the project lock."""

    def __init__(self, lock_path: str | Path) -> None:
        self.lock_path = Path(lock_path)
        super().__init__(
            f"Another install is running against this project (lock: {self.lock_path}). "
            "If no install is running, delete the lock file and retry."
        )
