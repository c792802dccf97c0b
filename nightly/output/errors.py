"""Error presentation utilities.

One-line descriptions and exit code mapping for every error a run can
produce, so the CLI and the per-job log lines read the same way.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from nightly.core.config import ConfigError
from nightly.core.errors import ErrorCode
from nightly.git.repository import TagResolutionError
from nightly.output.console import Style
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

if TYPE_CHECKING:
    from nightly.output.console import ConsoleProtocol

__all__ = [
    "abort_exit_code",
    "describe_job_error",
    "job_error_exit_code",
    "print_abort",
    "print_build_diagnostics",
]

_DIAGNOSTIC_TAIL_LINES = 40


def describe_job_error(error: JobError) -> str:
    match error:
        case PrepError(command=command, returncode=rc):
            return f"prep step failed (exit {rc}): {' '.join(command)}"
        case BuildError(binary=binary, kind="output_missing"):
            return f"{binary}: cargo reported success but produced no binary"
        case BuildError(binary=binary, kind="toolchain_failed", returncode=rc):
            return f"toolchain report failed (exit {rc})"
        case BuildError(binary=binary, returncode=rc):
            return f"{binary}: build failed (exit {rc})"
        case PackagingError(message=message):
            return f"packaging: {message}"
        case MergeError(asset=asset, kind=kind, message=message):
            return f"merge {asset}: {kind}: {message}"
        case PublishError(asset=asset, kind=kind, message=message):
            return f"publish {asset}: {kind}: {message}"
        case Cancelled():
            return "cancelled"
        case InternalError(message=message):
            return f"internal error: {message}"


def job_error_exit_code(error: JobError) -> ErrorCode:
    match error:
        case PackagingError(kind="io_failed"):
            return ErrorCode.IO_ERROR
        case PrepError() | BuildError() | PackagingError() | Cancelled() | InternalError():
            return ErrorCode.BUILD_ERROR
        case MergeError() | PublishError():
            return ErrorCode.NETWORK_ERROR


def print_build_diagnostics(error: JobError, console: ConsoleProtocol) -> None:
    """Print the tail of the raw toolchain output for a failed build or prep."""
    match error:
        case BuildError(diagnostics=text) | PrepError(diagnostics=text):
            lines = text.rstrip().splitlines()
            for line in lines[-_DIAGNOSTIC_TAIL_LINES:]:
                console.job(error.job_id, line, Style.DIM)
        case _:
            return


def abort_exit_code(error: RunAbort) -> ErrorCode:
    match error:
        case ConfigError() | MatrixError():
            return ErrorCode.USER_ERROR
        case TagResolutionError(kind="unknown_tag"):
            return ErrorCode.USER_ERROR
        case TagResolutionError() | SourceError():
            return ErrorCode.ENV_ERROR


def print_abort(error: RunAbort, console: ConsoleProtocol) -> None:
    """Print an error that stopped the run before any job started."""
    match error:
        case ConfigError(message=message, path=path):
            console.error(message)
            if path is not None:
                console.print(f"config: {path}", Style.DIM)
        case MatrixError(message=message):
            console.error(f"invalid build matrix: {message}")
        case TagResolutionError() as tag_error:
            console.error(f"tag resolution failed: {tag_error.pretty()}")
        case SourceError(ref=ref, message=message):
            console.error(f"checkout of {ref} failed: {message}")
