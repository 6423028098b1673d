"""Unit tests for manifest loading (graft.manifest).

Tests cover:
- Valid JSON and YAML manifests
- ManifestMissing / ManifestMalformed
- DependencyRef parsing from strings, objects and mappings
- Derived reducer and saga identifiers
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from graft.config import Config
from graft.errors import ManifestMalformed, ManifestMissing
from graft.manifest import DependencyRef, Manifest, NamespaceMeta, find_manifest, load_manifest

pytestmark = pytest.mark.unit


def _write(root: Path, data: object, name: str = "structor-namespaces.json") -> Path:
    path = root / name
    path.write_text(data if isinstance(data, str) else json.dumps(data), encoding="utf-8")
    return path


class TestLoadManifest:
    def test_valid_manifest(self, tmp_path: Path):
        _write(
            tmp_path,
            {
                "namespaces": {"auth": {"reducerPropName": "auth"}},
                "dependencies": ["redux-saga@^1.1.0"],
            },
        )
        manifest = load_manifest(tmp_path)

        assert manifest.namespace_names == ["auth"]
        assert manifest.namespaces["auth"].reducer_prop_name == "auth"
        assert manifest.dependencies == [DependencyRef(name="redux-saga", version="^1.1.0")]

    def test_dependencies_default_to_empty(self, tmp_path: Path):
        _write(tmp_path, {"namespaces": {"auth": {"reducerPropName": "auth"}}})
        assert load_manifest(tmp_path).dependencies == []

    def test_namespace_order_preserved(self, tmp_path: Path):
        _write(
            tmp_path,
            {
                "namespaces": {
                    "zeta": {"reducerPropName": "zeta"},
                    "alpha": {"reducerPropName": "alpha"},
                },
                "dependencies": [],
            },
        )
        assert load_manifest(tmp_path).namespace_names == ["zeta", "alpha"]

    def test_extra_namespace_keys_allowed(self, tmp_path: Path):
        _write(
            tmp_path,
            {"namespaces": {"auth": {"reducerPropName": "auth", "label": "Auth"}}},
        )
        assert load_manifest(tmp_path).namespaces["auth"].reducer_identifier == "authReducer"

    def test_missing_manifest(self, tmp_path: Path):
        with pytest.raises(ManifestMissing) as exc_info:
            load_manifest(tmp_path)
        assert exc_info.value.path == tmp_path / "structor-namespaces.json"

    def test_invalid_json(self, tmp_path: Path):
        _write(tmp_path, "{not json")
        with pytest.raises(ManifestMalformed, match="cannot be parsed"):
            load_manifest(tmp_path)

    def test_top_level_array(self, tmp_path: Path):
        _write(tmp_path, [])
        with pytest.raises(ManifestMalformed, match="must be an object"):
            load_manifest(tmp_path)

    def test_missing_namespaces(self, tmp_path: Path):
        _write(tmp_path, {"dependencies": []})
        with pytest.raises(ManifestMalformed, match="namespaces"):
            load_manifest(tmp_path)

    def test_namespaces_not_a_mapping(self, tmp_path: Path):
        _write(tmp_path, {"namespaces": ["auth"], "dependencies": []})
        with pytest.raises(ManifestMalformed):
            load_manifest(tmp_path)

    def test_namespace_without_reducer_prop_name(self, tmp_path: Path):
        _write(tmp_path, {"namespaces": {"auth": {}}, "dependencies": []})
        with pytest.raises(ManifestMalformed, match="reducerPropName"):
            load_manifest(tmp_path)

    def test_dependencies_wrong_type(self, tmp_path: Path):
        _write(
            tmp_path,
            {"namespaces": {"auth": {"reducerPropName": "auth"}}, "dependencies": 5},
        )
        with pytest.raises(ManifestMalformed):
            load_manifest(tmp_path)

    def test_malformed_keeps_validation_cause(self, tmp_path: Path):
        _write(tmp_path, {"namespaces": {"auth": {}}})
        with pytest.raises(ManifestMalformed) as exc_info:
            load_manifest(tmp_path)
        assert exc_info.value.__cause__ is not None


class TestYamlManifest:
    def test_yaml_fallback(self, tmp_path: Path):
        _write(
            tmp_path,
            "namespaces:\n  auth:\n    reducerPropName: auth\ndependencies:\n  - lodash\n",
            name="structor-namespaces.yaml",
        )
        manifest = load_manifest(tmp_path)
        assert manifest.namespace_names == ["auth"]
        assert manifest.dependencies[0].name == "lodash"

    def test_yml_extension(self, tmp_path: Path):
        _write(tmp_path, "namespaces:\n  auth:\n    reducerPropName: auth\n", name="structor-namespaces.yml")
        assert find_manifest(tmp_path).name == "structor-namespaces.yml"

    def test_json_preferred_over_yaml(self, tmp_path: Path):
        _write(tmp_path, {"namespaces": {"json": {"reducerPropName": "json"}}})
        _write(tmp_path, "namespaces:\n  yaml:\n    reducerPropName: yaml\n", name="structor-namespaces.yaml")
        assert load_manifest(tmp_path).namespace_names == ["json"]

    def test_invalid_yaml(self, tmp_path: Path):
        _write(tmp_path, "namespaces: [unclosed\n", name="structor-namespaces.yaml")
        with pytest.raises(ManifestMalformed):
            load_manifest(tmp_path)

    def test_custom_manifest_filename(self, tmp_path: Path):
        _write(tmp_path, {"namespaces": {"auth": {"reducerPropName": "auth"}}}, name="bundle.json")
        config = Config(manifest_filename="bundle.json")
        assert load_manifest(tmp_path, config).namespace_names == ["auth"]


class TestDependencyRef:
    @pytest.mark.parametrize(
        "spec, name, version",
        [
            ("lodash", "lodash", "latest"),
            ("redux-saga@^1.1.0", "redux-saga", "^1.1.0"),
            ("@scope/pkg", "@scope/pkg", "latest"),
            ("@scope/pkg@2.0.0", "@scope/pkg", "2.0.0"),
        ],
    )
    def test_from_string(self, spec: str, name: str, version: str):
        dep = DependencyRef.model_validate(spec)
        assert dep.name == name
        assert dep.version == version

    def test_spec_rendering(self):
        assert DependencyRef(name="lodash").spec == "lodash"
        assert DependencyRef(name="redux-saga", version="^1.1.0").spec == "redux-saga@^1.1.0"

    def test_mapping_form(self):
        manifest = Manifest.model_validate(
            {
                "namespaces": {"auth": {"reducerPropName": "auth"}},
                "dependencies": {"lodash": "^4.17.0", "redux-form": "8"},
            }
        )
        assert [d.spec for d in manifest.dependencies] == ["lodash@^4.17.0", "redux-form@8"]


class TestIdentifiers:
    def test_reducer_identifier(self):
        meta = NamespaceMeta(reducerPropName="session")
        assert meta.reducer_identifier == "sessionReducer"

    def test_populate_by_field_name(self):
        assert NamespaceMeta(reducer_prop_name="auth").reducer_prop_name == "auth"

    def test_saga_identifier(self):
        assert Manifest.saga_identifier("auth") == "authSagas"
