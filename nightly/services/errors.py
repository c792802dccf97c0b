"""Job-local error types.

Each stage of a job returns one of these inside an Err. None of them ever
crosses into a sibling job. RunAbort lists the errors that stop a whole run
before any job starts.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from nightly.core.config import ConfigError
from nightly.git.repository import TagResolutionError

StoreErrorKind = Literal["auth", "network", "quota", "store_failed"]


@dataclass(frozen=True, slots=True)
class MatrixError:
    """Static configuration does not describe a valid matrix."""

    message: str
    target: str | None = None


@dataclass(frozen=True, slots=True)
class SourceError:
    """The tagged source tree could not be checked out."""

    ref: str
    message: str


@dataclass(frozen=True, slots=True)
class PrepError:
    job_id: str
    command: tuple[str, ...]
    returncode: int
    diagnostics: str


@dataclass(frozen=True, slots=True)
class BuildError:
    """cargo (or rustup) failed for one binary of one job.

    Attributes:
        diagnostics: Raw toolchain stderr, untouched.
    """

    job_id: str
    binary: str
    kind: Literal["compile_failed", "output_missing", "toolchain_failed"]
    returncode: int
    diagnostics: str


@dataclass(frozen=True, slots=True)
class PackagingError:
    """Staging failed. kind="io_failed" when the filesystem refused a write."""

    job_id: str
    message: str
    path: Path | None = None
    kind: Literal["io_failed", "invariant"] = "invariant"


@dataclass(frozen=True, slots=True)
class MergeError:
    """The prior archive could not be fetched or read. Remote asset untouched."""

    job_id: str
    asset: str
    kind: Literal["download_failed", "corrupt_archive", "bundle_unreadable"]
    message: str


@dataclass(frozen=True, slots=True)
class PublishError:
    job_id: str
    asset: str
    kind: StoreErrorKind
    message: str


@dataclass(frozen=True, slots=True)
class Cancelled:
    job_id: str


@dataclass(frozen=True, slots=True)
class InternalError:
    """A job raised instead of returning an Err."""

    job_id: str
    message: str


JobError = (
    PrepError
    | BuildError
    | PackagingError
    | MergeError
    | PublishError
    | Cancelled
    | InternalError
)

# Errors that stop the whole run before any job starts.
RunAbort = ConfigError | MatrixError | TagResolutionError | SourceError
