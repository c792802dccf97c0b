from __future__ import annotations

from pathlib import Path

import pytest

from nightly.core.config import ConfigError
from nightly.core.errors import ErrorCode
from nightly.git.repository import TagResolutionError
from nightly.output.console import MockConsole
from nightly.output.errors import (
    abort_exit_code,
    describe_job_error,
    job_error_exit_code,
    print_abort,
    print_build_diagnostics,
)
from nightly.services.errors import (
    BuildError,
    Cancelled,
    InternalError,
    JobError,
    MatrixError,
    MergeError,
    PackagingError,
    PrepError,
    PublishError,
    RunAbort,
    SourceError,
)

JOB = "x86_64-apple-darwin"


@pytest.mark.parametrize(
    ("error", "code"),
    [
        (PrepError(JOB, ("sudo", "apt-get"), 100, ""), ErrorCode.BUILD_ERROR),
        (BuildError(JOB, "qsv", "compile_failed", 101, ""), ErrorCode.BUILD_ERROR),
        (PackagingError(JOB, "disk full"), ErrorCode.BUILD_ERROR),
        (PackagingError(JOB, "disk full", None, "io_failed"), ErrorCode.IO_ERROR),
        (MergeError(JOB, "a.zip", "download_failed", "x"), ErrorCode.NETWORK_ERROR),
        (PublishError(JOB, "a.zip", "quota", "x"), ErrorCode.NETWORK_ERROR),
        (Cancelled(JOB), ErrorCode.BUILD_ERROR),
        (InternalError(JOB, "KeyError"), ErrorCode.BUILD_ERROR),
    ],
)
def test_job_error_exit_code(error: JobError, code: ErrorCode) -> None:
    assert job_error_exit_code(error) == code


def test_describe_build_error() -> None:
    error = BuildError(JOB, "qsvlite", "compile_failed", 101, "error[E0432]")
    assert describe_job_error(error) == "qsvlite: build failed (exit 101)"


def test_describe_missing_output() -> None:
    error = BuildError(JOB, "qsv", "output_missing", 0, "")
    assert "produced no binary" in describe_job_error(error)


def test_describe_publish_error_names_kind() -> None:
    error = PublishError(JOB, "qsv-0.91.0-x86_64-apple-darwin.zip", "auth", "HTTP 401")
    text = describe_job_error(error)
    assert "auth" in text
    assert "qsv-0.91.0-x86_64-apple-darwin.zip" in text


def test_diagnostics_keep_raw_tail() -> None:
    console = MockConsole()
    lines = "\n".join(f"line {i}" for i in range(100))
    print_build_diagnostics(BuildError(JOB, "qsv", "compile_failed", 101, lines), console)

    shown = console.for_job(JOB)
    assert len(shown) == 40
    assert shown[-1] == "line 99"


def test_diagnostics_ignore_non_build_errors() -> None:
    console = MockConsole()
    print_build_diagnostics(PublishError(JOB, "a.zip", "network", "reset"), console)
    assert console.outputs == []


@pytest.mark.parametrize(
    ("error", "code"),
    [
        (ConfigError("bad", path=Path("nightly.toml")), ErrorCode.USER_ERROR),
        (MatrixError("duplicate targets"), ErrorCode.USER_ERROR),
        (TagResolutionError(kind="unknown_tag", message="x"), ErrorCode.USER_ERROR),
        (TagResolutionError(kind="no_tags", message="x"), ErrorCode.ENV_ERROR),
        (SourceError(ref="0.91.0", message="x"), ErrorCode.ENV_ERROR),
    ],
)
def test_abort_exit_code(error: RunAbort, code: ErrorCode) -> None:
    assert abort_exit_code(error) == code


def test_print_abort_tag_error_includes_hint() -> None:
    console = MockConsole()
    print_abort(TagResolutionError(kind="no_tags", message="no tags", hint="fetch"), console)
    assert console.has_error()
    assert "no tags (hint: fetch)" in console.text
