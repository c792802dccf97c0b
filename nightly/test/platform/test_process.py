"""Tests for nightly.platform.process module."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

from nightly.core.result import Err, Ok
from nightly.platform.process import ProcessError, format_command, run


class TestProcessError:
    def test_str_short_command(self) -> None:
        error = ProcessError(
            command=("git", "status"),
            returncode=1,
            stdout="",
            stderr="fatal: not a git repository",
        )
        assert str(error) == "git status failed (exit 1)"

    def test_str_long_command_truncated(self) -> None:
        error = ProcessError(
            command=("cargo", "+nightly-2023-02-15", "build", "--bin", "qsv"),
            returncode=101,
            stdout="",
            stderr="error[E0432]",
        )
        assert str(error) == "cargo +nightly-2023-02-15 build ... failed (exit 101)"

    def test_frozen(self) -> None:
        error = ProcessError(("cmd",), 1, "", "")
        with pytest.raises(AttributeError):
            error.returncode = 2  # type: ignore[misc]


class TestFormatCommand:
    def test_plain(self) -> None:
        assert format_command(["rustup", "show"]) == "rustup show"

    def test_env_prefix_and_quoting(self) -> None:
        line = format_command(["cargo", "build"], {"RUSTFLAGS": "--emit=asm -C x"})
        assert line == "RUSTFLAGS='--emit=asm -C x' cargo build"


class TestRun:
    def test_success_returns_stdout(self, tmp_path: Path) -> None:
        result = run([sys.executable, "-c", "print('hello')"], cwd=tmp_path)

        assert isinstance(result, Ok)
        assert "hello" in result.value

    def test_failure_keeps_stderr(self, tmp_path: Path) -> None:
        script = "import sys; sys.stderr.write('bad'); sys.exit(42)"
        result = run([sys.executable, "-c", script], cwd=tmp_path)

        assert isinstance(result, Err)
        assert result.error.returncode == 42
        assert result.error.stderr == "bad"

    def test_env_is_layered(self, tmp_path: Path) -> None:
        script = "import os; print(os.environ['QSV_KIND'], 'PATH' in os.environ)"
        result = run([sys.executable, "-c", script], cwd=tmp_path, env={"QSV_KIND": "x"})

        assert isinstance(result, Ok)
        assert result.value.split() == ["x", "True"]

    def test_command_not_found(self, tmp_path: Path) -> None:
        result = run(["nonexistent_command_12345"], cwd=tmp_path)

        assert isinstance(result, Err)
        assert result.error.returncode == -1

    def test_timeout(self, tmp_path: Path) -> None:
        script = "import time; time.sleep(5)"
        result = run([sys.executable, "-c", script], cwd=tmp_path, timeout=0.2)

        assert isinstance(result, Err)
        assert result.error.returncode == -1
        assert "timed out" in result.error.stderr
