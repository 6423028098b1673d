"""Shared pytest fixtures for the graft test suite.

Provides reusable fixtures for:
- A generated host project with the three aggregation files
- A factory for namespace bundles on disk
- A ProjectStorage whose dependency installer is mocked
"""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from graft.config import Config
from graft.project.storage import ProjectStorage


# ---------------------------------------------------------------------------
# Aggregation file sources
# ---------------------------------------------------------------------------

REDUCERS_SOURCE = """\
import { combineReducers } from 'redux';
// graft:reducer-imports

export default combineReducers({
    // graft:reducer-entries
});
"""

SAGAS_SOURCE = """\
import { all, fork } from 'redux-saga/effects';
// graft:saga-imports

const sagas = [
    // graft:saga-entries
];

export default function* mainSaga() {
    yield all(sagas.map(saga => fork(saga)));
}
"""

COMPONENTS_SOURCE = """\
// graft:component-imports

export default {
    // graft:component-entries
};
"""


# ---------------------------------------------------------------------------
# Host project
# ---------------------------------------------------------------------------

@pytest.fixture
def project_config(tmp_path: Path) -> Config:
    """Config pointing at a freshly generated host project with no modules."""
    project = tmp_path / "project"
    config = Config(project_dir=project)

    config.modules_path.mkdir(parents=True)
    config.defaults_path.mkdir(parents=True)
    config.docs_path.mkdir(parents=True)
    config.reducers_path.write_text(REDUCERS_SOURCE, encoding="utf-8")
    config.sagas_path.write_text(SAGAS_SOURCE, encoding="utf-8")
    config.components_path.write_text(COMPONENTS_SOURCE, encoding="utf-8")
    config.package_json_path.write_text(
        json.dumps({"name": "host-app", "dependencies": {"redux": "^4.2.0"}}),
        encoding="utf-8",
    )
    return config


@pytest.fixture
def install_existing_module(project_config: Config) -> Callable[[str], Path]:
    """Factory that places an installed namespace module into the project."""

    def factory(name: str) -> Path:
        module_dir = project_config.modules_path / name
        (module_dir / "containers" / "Existing").mkdir(parents=True)
        (module_dir / "reducer.js").write_text("export default () => ({});\n", encoding="utf-8")
        (module_dir / "sagas.js").write_text("export default [];\n", encoding="utf-8")
        return module_dir

    return factory


@pytest.fixture
def mock_installer() -> MagicMock:
    """Dependency installer stand-in that installs nothing."""
    installer = MagicMock()
    installer.install = AsyncMock(return_value=[])
    return installer


@pytest.fixture
def storage(project_config: Config, mock_installer: MagicMock) -> ProjectStorage:
    return ProjectStorage(project_config, dependency_installer=mock_installer)


# ---------------------------------------------------------------------------
# Bundles
# ---------------------------------------------------------------------------

@pytest.fixture
def make_bundle(tmp_path: Path) -> Callable[..., Path]:
    """Factory that writes a namespace bundle to disk.

    Usage:
        def test_install(make_bundle):
            bundle = make_bundle({"auth": "auth"}, groups=("modules", "defaults"))
    """
    counter = {"n": 0}

    def factory(
        namespaces: dict[str, str] | None = None,
        *,
        groups: tuple[str, ...] = ("modules", "defaults", "docs"),
        dependencies: list[Any] | None = None,
        manifest: dict[str, Any] | None = None,
        write_manifest: bool = True,
    ) -> Path:
        counter["n"] += 1
        root = tmp_path / f"bundle-{counter['n']}"
        root.mkdir()
        namespaces = {"auth": "auth"} if namespaces is None else namespaces

        for group in ("modules", "defaults", "docs"):
            (root / group).mkdir()

        for name, prop in namespaces.items():
            if "modules" in groups:
                module_dir = root / "modules" / name
                (module_dir / "containers" / "LoginForm").mkdir(parents=True)
                (module_dir / "reducer.js").write_text(
                    f"export default function {prop}Reducer(state = {{}}) {{ return state; }}\n",
                    encoding="utf-8",
                )
                (module_dir / "sagas.js").write_text("export default [];\n", encoding="utf-8")
                (module_dir / "containers" / "LoginForm" / "index.js").write_text(
                    "export default function LoginForm() {}\n", encoding="utf-8"
                )
            if "defaults" in groups:
                defaults_dir = root / "defaults" / name
                defaults_dir.mkdir()
                (defaults_dir / "LoginForm.json").write_text(
                    json.dumps([{"type": "LoginForm", "props": {}}]), encoding="utf-8"
                )
            if "docs" in groups:
                docs_dir = root / "docs" / name
                docs_dir.mkdir()
                (docs_dir / "LoginForm.md").write_text("# LoginForm\n", encoding="utf-8")

        if write_manifest:
            data = manifest or {
                "namespaces": {
                    name: {"reducerPropName": prop} for name, prop in namespaces.items()
                },
                "dependencies": dependencies or [],
            }
            (root / "structor-namespaces.json").write_text(json.dumps(data), encoding="utf-8")
        return root

    return factory
