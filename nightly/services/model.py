from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, auto
from pathlib import Path

from nightly.core.config import ToolchainConfig


class Platform(Enum):
    """Operating system family of a build target."""

    LINUX = auto()
    MACOS = auto()
    WINDOWS = auto()

    def __str__(self) -> str:
        return self.name.lower()

    @classmethod
    def parse(cls, value: str) -> Platform | None:
        return {"linux": cls.LINUX, "macos": cls.MACOS, "windows": cls.WINDOWS}.get(
            value.strip().lower()
        )

    @property
    def exe_suffix(self) -> str:
        return ".exe" if self == Platform.WINDOWS else ""

    def exe_name(self, name: str) -> str:
        """exe_name("qsv") -> "qsv.exe" on Windows, "qsv" elsewhere."""
        return f"{name}{self.exe_suffix}"


@dataclass(frozen=True, slots=True)
class BinaryVariant:
    """One binary a job builds and the exact feature flags passed to cargo."""

    name: str
    features: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class BuildJob:
    """A single (target, feature set) cell of the build matrix.

    Attributes:
        target: Target triple; doubles as the platform id in asset names
        platform: OS family of the target
        arch: CPU architecture (first component of the triple)
        binaries: Binaries to build, in order
        default_features: False passes --no-default-features
        prep: Command run before the first build, empty for none
        toolchain: Pinned toolchain channel
    """

    target: str
    platform: Platform
    arch: str
    binaries: tuple[BinaryVariant, ...]
    default_features: bool
    prep: tuple[str, ...]
    toolchain: str

    @property
    def job_id(self) -> str:
        return self.target

    @property
    def platform_id(self) -> str:
        return self.target

    @property
    def binary_names(self) -> tuple[str, ...]:
        return tuple(b.name for b in self.binaries)

    @property
    def needs_prep(self) -> bool:
        return bool(self.prep)


@dataclass(frozen=True, slots=True)
class BuiltArtifact:
    """A binary produced by cargo for one job.

    Attributes:
        binary_name: Cargo bin name (e.g. "qsvlite")
        platform_id: Target triple it was built for
        path: The produced executable
        size: Size in bytes
        sidecars: Companion files cargo left next to it (e.g. qsv.d)
    """

    binary_name: str
    platform_id: str
    path: Path
    size: int
    sidecars: tuple[Path, ...] = ()


@dataclass(frozen=True, slots=True)
class BundleFile:
    name: str
    path: Path
    mode: int


@dataclass(frozen=True, slots=True)
class Bundle:
    """The sealed output of one job, ready to be merged into the release zip."""

    tag: str
    platform_id: str
    staging_dir: Path
    files: tuple[BundleFile, ...]
    sealed_at: datetime

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(f.name for f in self.files)


@dataclass(frozen=True, slots=True)
class RunContext:
    """Everything a job needs to know about the run it belongs to.

    The tag and channel are resolved once and passed explicitly to every
    stage; nothing reads them from ambient state.
    """

    tag: str
    channel: str
    project: str
    repo: str
    source_dir: Path
    workdir: Path
    toolchain: ToolchainConfig = field(default_factory=ToolchainConfig)
    compression_level: int = 9

    def asset_name(self, platform_id: str) -> str:
        """qsv-0.91.0-x86_64-unknown-linux-gnu.zip"""
        return f"{self.project}-{self.tag}-{platform_id}.zip"

    def job_dir(self, job: BuildJob) -> Path:
        return self.workdir / job.job_id

    def public_name(self, binary_name: str, platform: Platform) -> str:
        """qsvlite -> qsvlite_nightly (.exe on Windows)."""
        return platform.exe_name(f"{binary_name}_{self.channel}")

    @property
    def report_name(self) -> str:
        return f"{self.project}_{self.channel}_rust_version_info.txt"
