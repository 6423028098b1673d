"""Namespace manifest loading and validation.

A bundle describes its namespaces in ``structor-namespaces.json``::

    {
      "namespaces": {"auth": {"reducerPropName": "auth"}},
      "dependencies": ["redux-saga@^1.1.0", {"name": "lodash"}]
    }

A YAML manifest (``structor-namespaces.yaml`` / ``.yml``) with the same shape
is accepted when the JSON file is absent.  The manifest is read fresh on every
call and never cached.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from graft.config import Config
from graft.errors import ManifestMalformed, ManifestMissing
from graft.utils import load_json, load_yaml

_YAML_SUFFIXES = (".yaml", ".yml")


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class NamespaceMeta(BaseModel):
    """Per-namespace metadata declared in the manifest."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    reducer_prop_name: str = Field(..., alias="reducerPropName", min_length=1)

    @property
    def reducer_identifier(self) -> str:
        """Identifier the module's reducer is imported as."""
        return f"{self.reducer_prop_name}Reducer"


class DependencyRef(BaseModel):
    """A package the namespace code needs in the host project."""

    name: str = Field(..., min_length=1)
    version: str = Field(default="latest")

    @model_validator(mode="before")
    @classmethod
    def _parse_spec_string(cls, value: Any) -> Any:
        if isinstance(value, str):
            return _split_package_spec(value)
        return value

    @property
    def spec(self) -> str:
        """Package-manager install argument, e.g. ``redux-saga@^1.1.0``."""
        if not self.version or self.version == "latest":
            return self.name
        return f"{self.name}@{self.version}"


class Manifest(BaseModel):
    """Parsed bundle manifest."""

    namespaces: dict[str, NamespaceMeta]
    dependencies: list[DependencyRef] = Field(default_factory=list)

    @field_validator("dependencies", mode="before")
    @classmethod
    def _dependencies_from_mapping(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, dict):
            return [{"name": name, "version": str(version)} for name, version in value.items()]
        return value

    @staticmethod
    def saga_identifier(namespace: str) -> str:
        """Identifier a namespace's sagas are imported as."""
        return f"{namespace}Sagas"

    @property
    def namespace_names(self) -> list[str]:
        return list(self.namespaces)


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------


def find_manifest(bundle_root: str | Path, config: Config | None = None) -> Path:
    """Locate the manifest file inside *bundle_root*.

    Raises:
        ManifestMissing: If neither the JSON nor a YAML variant exists.
    """
    filename = config.manifest_filename if config else Config().manifest_filename
    primary = Path(bundle_root) / filename
    if primary.is_file():
        return primary

    stem = primary.with_suffix("")
    for suffix in _YAML_SUFFIXES:
        candidate = stem.with_suffix(suffix)
        if candidate.is_file():
            return candidate

    raise ManifestMissing(primary)


def load_manifest(bundle_root: str | Path, config: Config | None = None) -> Manifest:
    """Read and validate the bundle manifest.

    Args:
        bundle_root: Bundle directory containing the manifest.
        config: Optional configuration overriding the manifest filename.

    Returns:
        A validated ``Manifest``.

    Raises:
        ManifestMissing: If the manifest file does not exist.
        ManifestMalformed: If it cannot be parsed or has the wrong shape.
    """
    path = find_manifest(bundle_root, config)

    try:
        raw = load_yaml(path) if path.suffix in _YAML_SUFFIXES else load_json(path)
    except (json.JSONDecodeError, yaml.YAMLError, UnicodeDecodeError) as exc:
        raise ManifestMalformed(path, f"cannot be parsed ({exc})") from exc

    if not isinstance(raw, dict):
        raise ManifestMalformed(path, "top-level value must be an object")
    if "namespaces" not in raw:
        raise ManifestMalformed(path, "missing 'namespaces'")

    try:
        return Manifest.model_validate(raw)
    except ValidationError as exc:
        raise ManifestMalformed(path, _summarise_validation_error(exc)) from exc


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _split_package_spec(spec: str) -> dict[str, str]:
    """Split ``name@version`` (scoped names keep their leading ``@``)."""
    spec = spec.strip()
    head, sep, version = spec[1:].rpartition("@") if spec.startswith("@") else spec.rpartition("@")
    if not sep:
        return {"name": spec}
    name = f"@{head}" if spec.startswith("@") else head
    return {"name": name, "version": version or "latest"}


def _summarise_validation_error(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ()))
        parts.append(f"{location}: {error.get('msg', 'invalid')}")
    return "; ".join(parts)
