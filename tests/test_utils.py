"""Unit tests for utility functions (graft.utils).

Tests cover:
- run_command (success, failure, timeout, cwd, env)
- gather_settled
- load_json / load_yaml / save_json
- format_duration
- Rich output helpers
"""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from unittest.mock import patch

import pytest

from graft.utils import (
    STAGE_COLORS,
    format_duration,
    gather_settled,
    load_json,
    load_yaml,
    print_error,
    print_stage_header,
    print_success,
    print_summary_table,
    print_warning,
    run_command,
    save_json,
)


# ---------------------------------------------------------------------------
# run_command
# ---------------------------------------------------------------------------


class TestRunCommand:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_successful_command(self):
        returncode, stdout, _ = await run_command([sys.executable, "-c", "print('hello')"])
        assert returncode == 0
        assert stdout == "hello"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_failed_command(self):
        returncode, _, _ = await run_command([sys.executable, "-c", "import sys; sys.exit(3)"])
        assert returncode == 3

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_stderr_captured(self):
        _, _, stderr = await run_command(
            [sys.executable, "-c", "import sys; sys.stderr.write('boom\\n')"]
        )
        assert stderr == "boom"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_cwd(self, tmp_path: Path):
        returncode, stdout, _ = await run_command(
            [sys.executable, "-c", "import os; print(os.getcwd())"], cwd=tmp_path
        )
        assert returncode == 0
        assert Path(stdout).resolve() == tmp_path.resolve()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_env(self):
        _, stdout, _ = await run_command(
            [sys.executable, "-c", "import os; print(os.environ['GRAFT_TEST'])"],
            env={"GRAFT_TEST": "value"},
        )
        assert stdout == "value"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_timeout(self):
        returncode, _, stderr = await run_command(
            [sys.executable, "-c", "import time; time.sleep(10)"], timeout=1
        )
        assert returncode == -1
        assert "timed out" in stderr

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_program(self):
        with pytest.raises(FileNotFoundError):
            await run_command(["graft-no-such-binary-12345"])


# ---------------------------------------------------------------------------
# gather_settled
# ---------------------------------------------------------------------------


class TestGatherSettled:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_returns_results_in_order(self):
        async def value(v: int) -> int:
            await asyncio.sleep(0)
            return v

        assert await gather_settled(value(i) for i in range(3)) == [0, 1, 2]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_waits_for_siblings_before_raising(self):
        finished: list[str] = []

        async def fail() -> None:
            raise RuntimeError("first")

        async def slow() -> None:
            await asyncio.sleep(0.05)
            finished.append("slow")

        with pytest.raises(RuntimeError, match="first"):
            await gather_settled([fail(), slow()])
        assert finished == ["slow"]


# ---------------------------------------------------------------------------
# JSON / YAML I/O
# ---------------------------------------------------------------------------


class TestJsonYaml:
    @pytest.mark.unit
    def test_load_json(self, tmp_path: Path):
        path = tmp_path / "data.json"
        path.write_text('{"a": 1}', encoding="utf-8")
        assert load_json(path) == {"a": 1}

    @pytest.mark.unit
    def test_load_json_missing(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            load_json(tmp_path / "missing.json")

    @pytest.mark.unit
    def test_load_yaml(self, tmp_path: Path):
        path = tmp_path / "data.yaml"
        path.write_text("a: 1\nb: [x, y]\n", encoding="utf-8")
        assert load_yaml(path) == {"a": 1, "b": ["x", "y"]}

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_save_json_creates_parents(self, tmp_path: Path):
        path = tmp_path / "nested" / "state.json"
        await save_json({"stage": "done", "path": Path("x")}, path)
        assert json.loads(path.read_text(encoding="utf-8")) == {"stage": "done", "path": "x"}


# ---------------------------------------------------------------------------
# format_duration
# ---------------------------------------------------------------------------


class TestFormatDuration:
    @pytest.mark.unit
    def test_seconds(self):
        assert format_duration(3.7) == "3.7s"

    @pytest.mark.unit
    def test_minutes(self):
        assert format_duration(65.2) == "1m 5s"

    @pytest.mark.unit
    def test_negative(self):
        assert format_duration(-1) == "0.0s"


# ---------------------------------------------------------------------------
# Rich output helpers
# ---------------------------------------------------------------------------


class TestOutputHelpers:
    @pytest.mark.unit
    def test_helpers_print(self):
        with patch("graft.utils.console") as mock_console:
            print_stage_header("inject", "Registry injection")
            print_summary_table({"Namespaces": "auth"}, title="Plan")
            print_success("ok")
            print_warning("careful")
            print_error("bad")
        assert mock_console.print.call_count >= 5

    @pytest.mark.unit
    def test_stage_colors(self):
        assert set(STAGE_COLORS) >= {"manifest", "dependencies", "index", "inject", "stage"}
