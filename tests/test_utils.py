"""Unit tests for utility functions (stackforge.utils).

Tests cover:
- run_command (list vs string, timeout, missing executable, env merge)
- load_json / save_json (use tmp_path)
- ensure_dir / write_text
- format_duration
- Rich output helpers
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from unittest.mock import patch

import pytest

from stackforge.utils import (
    ensure_dir,
    format_duration,
    load_json,
    print_error,
    print_header,
    print_success,
    print_summary_table,
    print_warning,
    run_command,
    save_json,
    write_text,
)


# ---------------------------------------------------------------------------
# run_command
# ---------------------------------------------------------------------------


class TestRunCommand:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_list_uses_exec(self, mock_subprocess):
        proc = mock_subprocess(stdout="  hello \n", stderr="warn\n", returncode=0)
        with patch("asyncio.create_subprocess_exec", return_value=proc) as mock_exec:
            returncode, stdout, stderr = await run_command(["tsc", "--noEmit"], cwd="/tmp/proj")
        assert (returncode, stdout, stderr) == (0, "hello", "warn")
        assert mock_exec.call_args.args == ("tsc", "--noEmit")
        assert mock_exec.call_args.kwargs["cwd"] == "/tmp/proj"
        assert mock_exec.call_args.kwargs["env"] is None

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_string_uses_shell(self, mock_subprocess):
        proc = mock_subprocess(returncode=2)
        with patch("asyncio.create_subprocess_shell", return_value=proc) as mock_shell:
            returncode, _, _ = await run_command("npx tsc")
        assert returncode == 2
        assert mock_shell.call_args.args == ("npx tsc",)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_env_is_merged(self, mock_subprocess):
        proc = mock_subprocess()
        with patch.dict("os.environ", {"BASE": "1"}, clear=True):
            with patch("asyncio.create_subprocess_exec", return_value=proc) as mock_exec:
                await run_command(["tsc"], env={"EXTRA": "2"})
        assert mock_exec.call_args.kwargs["env"] == {"BASE": "1", "EXTRA": "2"}

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_executable(self):
        error = FileNotFoundError(2, "No such file or directory", "tsc")
        with patch("asyncio.create_subprocess_exec", side_effect=error):
            returncode, stdout, stderr = await run_command(["tsc"])
        assert returncode == 127
        assert stdout == ""
        assert stderr == "Command not found: tsc"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_timeout_kills_process(self, mock_subprocess):
        proc = mock_subprocess()

        async def hang():
            await asyncio.sleep(10)

        proc.communicate.side_effect = hang
        with patch("asyncio.create_subprocess_exec", return_value=proc):
            returncode, stdout, stderr = await run_command(["tsc", "--noEmit"], timeout=0.01)
        assert returncode == -1
        assert stderr == "Command timed out after 0.01s: tsc --noEmit"
        proc.kill.assert_called_once()


# ---------------------------------------------------------------------------
# JSON and file helpers
# ---------------------------------------------------------------------------


class TestJson:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_save_and_load(self, tmp_path: Path):
        path = tmp_path / "deep" / "index.json"
        await save_json({"b": 1, "a": [1, 2]}, path)
        raw = path.read_text(encoding="utf-8")
        assert raw.index('"a"') < raw.index('"b"')
        assert raw.endswith("\n")
        assert load_json(path) == {"a": [1, 2], "b": 1}

    @pytest.mark.unit
    def test_load_non_object(self, tmp_path: Path):
        path = tmp_path / "list.json"
        path.write_text(json.dumps([1, 2]), encoding="utf-8")
        assert load_json(path) == {"_root": [1, 2]}

    @pytest.mark.unit
    def test_load_missing(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            load_json(tmp_path / "nope.json")


class TestFileHelpers:
    @pytest.mark.unit
    def test_ensure_dir(self, tmp_path: Path):
        created = ensure_dir(tmp_path / "a" / "b")
        assert created.is_dir()
        assert ensure_dir(created) == created

    @pytest.mark.unit
    def test_write_text_creates_parents(self, tmp_path: Path):
        target = tmp_path / "src" / "routes" / "index.ts"
        write_text(target, "export {};\n")
        assert target.read_text(encoding="utf-8") == "export {};\n"


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------


class TestFormatDuration:
    @pytest.mark.unit
    @pytest.mark.parametrize(
        "seconds, expected",
        [(0, "0.0s"), (3.7, "3.7s"), (65.2, "1m 5s"), (3661.0, "1h 1m 1s"), (-1, "0.0s")],
    )
    def test_format(self, seconds: float, expected: str):
        assert format_duration(seconds) == expected


class TestRichHelpers:
    @pytest.mark.unit
    def test_helpers_print(self):
        with patch("stackforge.utils.console") as mock_console:
            print_header("Scaffold")
            print_summary_table({"files": "3"})
            print_success("ok")
            print_warning("careful")
            print_error("bad")
        assert mock_console.print.call_count >= 6
