"""Release store adapters.

The merge and publish stages only need two operations:

    read(name)  -> bytes of the asset on the latest release, or None
    write(name, data) -> upload to the run's tag, replacing any asset of that name

GhReleaseStore shells out to the GitHub CLI. DirectoryReleaseStore keeps
assets in a local folder (local runs, staging). MemoryReleaseStore backs the
tests.
"""

from __future__ import annotations

import shutil
import tempfile
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from nightly.core.result import Err, Ok, Result
from nightly.platform.files import atomic_write_bytes
from nightly.platform.process import ProcessError
from nightly.platform.process import run as run_process
from nightly.services.errors import StoreErrorKind
from nightly.services.timeouts import GH_TRANSFER_TIMEOUT_SECONDS

__all__ = [
    "DirectoryReleaseStore",
    "GhReleaseStore",
    "MemoryReleaseStore",
    "ReleaseStore",
    "StoreError",
    "ensure_gh_available",
]


@dataclass(frozen=True, slots=True)
class StoreError:
    kind: StoreErrorKind
    message: str


class ReleaseStore(Protocol):
    def read(self, name: str) -> Result[bytes | None, StoreError]:
        """Fetch an asset from the latest published release; None if absent."""
        ...

    def write(self, name: str, data: bytes) -> Result[None, StoreError]:
        """Attach an asset to the run's release, overwriting one of the same name."""
        ...


_AUTH_MARKERS = (
    "gh auth login",
    "authentication",
    "bad credentials",
    "http 401",
    "requires authentication",
    "resource not accessible",
)
_QUOTA_MARKERS = (
    "rate limit",
    "quota",
    "storage",
    "http 413",
    "http 429",
    "exceeds",
)
_NETWORK_MARKERS = (
    "timed out",
    "timeout",
    "connection reset",
    "connection refused",
    "temporarily unavailable",
    "service unavailable",
    "bad gateway",
    "gateway timeout",
    "network is unreachable",
    "no such host",
    "http 500",
    "http 502",
    "http 503",
    "http 504",
)
_NOT_FOUND_MARKERS = (
    "no assets match",
    "release not found",
    "could not find any release",
    "http 404",
)


def classify_gh_error(error: ProcessError) -> StoreErrorKind:
    text = f"{error.stderr}\n{error.stdout}".lower()
    if any(m in text for m in _AUTH_MARKERS):
        return "auth"
    if any(m in text for m in _QUOTA_MARKERS):
        return "quota"
    if error.returncode == -1 or any(m in text for m in _NETWORK_MARKERS):
        return "network"
    return "store_failed"


def _is_not_found(error: ProcessError) -> bool:
    text = f"{error.stderr}\n{error.stdout}".lower()
    return any(m in text for m in _NOT_FOUND_MARKERS)


def ensure_gh_available() -> Result[None, StoreError]:
    if shutil.which("gh") is None:
        return Err(StoreError(kind="store_failed", message="gh: missing (https://cli.github.com/)"))
    return Ok(None)


class GhReleaseStore:
    """GitHub Releases through the `gh` CLI.

    Reads come from the repository's latest release, writes go to the release
    tagged `tag`. Uses GH_TOKEN / GITHUB_TOKEN from the environment.
    """

    def __init__(self, *, repo: str, tag: str, scratch_dir: Path) -> None:
        self.repo = repo
        self.tag = tag
        self.scratch_dir = scratch_dir

    def read(self, name: str) -> Result[bytes | None, StoreError]:
        self.scratch_dir.mkdir(parents=True, exist_ok=True)
        with tempfile.TemporaryDirectory(dir=self.scratch_dir) as tmp:
            result = run_process(
                [
                    "gh",
                    "release",
                    "download",
                    "--repo",
                    self.repo,
                    "--pattern",
                    name,
                    "--dir",
                    tmp,
                    "--clobber",
                ],
                cwd=self.scratch_dir,
                timeout=GH_TRANSFER_TIMEOUT_SECONDS,
            )
            if isinstance(result, Err):
                if _is_not_found(result.error):
                    return Ok(None)
                return Err(
                    StoreError(
                        kind=classify_gh_error(result.error),
                        message=result.error.stderr.strip() or str(result.error),
                    )
                )

            path = Path(tmp) / name
            if not path.is_file():
                return Ok(None)
            try:
                return Ok(path.read_bytes())
            except OSError as e:
                return Err(StoreError(kind="store_failed", message=f"cannot read download: {e}"))

    def write(self, name: str, data: bytes) -> Result[None, StoreError]:
        self.scratch_dir.mkdir(parents=True, exist_ok=True)
        with tempfile.TemporaryDirectory(dir=self.scratch_dir) as tmp:
            path = Path(tmp) / name
            try:
                path.write_bytes(data)
            except OSError as e:
                return Err(StoreError(kind="store_failed", message=f"cannot stage upload: {e}"))

            # --clobber deletes the existing asset of the same name first.
            result = run_process(
                ["gh", "release", "upload", self.tag, str(path), "--clobber", "--repo", self.repo],
                cwd=self.scratch_dir,
                timeout=GH_TRANSFER_TIMEOUT_SECONDS,
            )
            if isinstance(result, Err):
                return Err(
                    StoreError(
                        kind=classify_gh_error(result.error),
                        message=result.error.stderr.strip() or str(result.error),
                    )
                )
        return Ok(None)


class DirectoryReleaseStore:
    """Assets as plain files under one directory."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def read(self, name: str) -> Result[bytes | None, StoreError]:
        path = self.root / name
        if not path.is_file():
            return Ok(None)
        try:
            return Ok(path.read_bytes())
        except OSError as e:
            return Err(StoreError(kind="store_failed", message=str(e)))

    def write(self, name: str, data: bytes) -> Result[None, StoreError]:
        try:
            atomic_write_bytes(self.root / name, data)
        except OSError as e:
            return Err(StoreError(kind="store_failed", message=str(e)))
        return Ok(None)


def _empty_assets() -> dict[str, bytes]:
    return {}


def _empty_failures() -> dict[str, StoreError]:
    return {}


@dataclass
class MemoryReleaseStore:
    """In-memory store. Set read_failures/write_failures to inject errors per asset."""

    assets: dict[str, bytes] = field(default_factory=_empty_assets)
    read_failures: dict[str, StoreError] = field(default_factory=_empty_failures)
    write_failures: dict[str, StoreError] = field(default_factory=_empty_failures)
    uploads: list[str] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def read(self, name: str) -> Result[bytes | None, StoreError]:
        with self._lock:
            if name in self.read_failures:
                return Err(self.read_failures[name])
            return Ok(self.assets.get(name))

    def write(self, name: str, data: bytes) -> Result[None, StoreError]:
        with self._lock:
            if name in self.write_failures:
                return Err(self.write_failures[name])
            self.assets[name] = data
            self.uploads.append(name)
        return Ok(None)
