"""Typed configuration loading and access.

This module provides dataclasses for the nightly.toml structure. A missing
file means "use the built-in matrix", which reproduces the historical qsv
nightly workflow.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from .result import Err, Ok, Result
from .structured import (
    StrDict,
    as_str_dict,
    get_bool,
    get_int,
    get_list,
    get_str,
    get_str_list,
    get_table,
)

__all__ = [
    "ArchiveConfig",
    "BinaryConfig",
    "Config",
    "ConfigError",
    "JobConfig",
    "ProjectConfig",
    "RunConfig",
    "ToolchainConfig",
    "CONFIG_FILENAME",
    "load_config",
    "load_config_or_default",
]

CONFIG_FILENAME = "nightly.toml"

# A pinned channel names a dated snapshot or an exact version, never a moving one.
_PINNED_CHANNEL = re.compile(r"^(?:(?:nightly|beta|stable)-\d{4}-\d{2}-\d{2}|\d+\.\d+(?:\.\d+)?)$")


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Error when config cannot be loaded or parsed."""

    message: str
    path: Path | None = None


@dataclass(frozen=True, slots=True)
class ProjectConfig:
    """The tool being built and where its releases live."""

    name: str = "qsv"
    repo: str = "jqnatividad/qsv"
    channel: str = "nightly"


@dataclass(frozen=True, slots=True)
class ToolchainConfig:
    """Compiler snapshot and the release-nightly profile flags."""

    channel: str = "nightly-2023-02-15"
    profile: str = "release-nightly"
    rustflags: str = "--emit=asm"
    build_std: tuple[str, ...] = ("std", "panic_abort")
    build_std_features: tuple[str, ...] = ("panic_immediate_abort",)
    install_profile: str = "minimal"
    components: tuple[str, ...] = ("rust-src",)
    env: tuple[tuple[str, str], ...] = (("QSV_KIND", "prebuilt-nightly"),)


@dataclass(frozen=True, slots=True)
class ArchiveConfig:
    compression_level: int = 9


@dataclass(frozen=True, slots=True)
class RunConfig:
    workers: int | None = None
    workdir: str = "target/nightly"


@dataclass(frozen=True, slots=True)
class BinaryConfig:
    """A binary every job builds, with the features that select it."""

    name: str
    features: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class JobConfig:
    """One row of the build matrix.

    Attributes:
        target: Target triple (e.g. x86_64-unknown-linux-gnu)
        os: OS family: linux, macos or windows
        features: Extra features per binary name
        default_features: False passes --no-default-features
        prep: Command run before building, empty for none
    """

    target: str
    os: str
    features: tuple[tuple[str, tuple[str, ...]], ...] = ()
    default_features: bool = True
    prep: tuple[str, ...] = ()

    def features_for(self, binary: str) -> tuple[str, ...]:
        for name, flags in self.features:
            if name == binary:
                return flags
        return ()


_FULL_FEATURES = ("apply", "generate", "luau", "fetch", "foreach", "nightly", "to", "self_update")

DEFAULT_BINARIES: tuple[BinaryConfig, ...] = (
    BinaryConfig(name="qsv", features=("full",)),
    BinaryConfig(name="qsvlite", features=("lite", "self_update")),
    BinaryConfig(name="qsvdp", features=("datapusher_plus",)),
)

DEFAULT_JOBS: tuple[JobConfig, ...] = (
    JobConfig(
        target="x86_64-unknown-linux-gnu",
        os="linux",
        features=(("qsv", _FULL_FEATURES), ("qsvdp", ("luau",))),
    ),
    JobConfig(
        target="x86_64-unknown-linux-musl",
        os="linux",
        features=(("qsv", tuple(f for f in _FULL_FEATURES if f != "luau")),),
        prep=("sudo", "apt-get", "install", "-y", "musl-tools"),
    ),
    JobConfig(
        target="x86_64-pc-windows-msvc",
        os="windows",
        features=(
            ("qsv", tuple(f for f in _FULL_FEATURES if f != "foreach")),
            ("qsvdp", ("luau",)),
        ),
    ),
    JobConfig(
        target="x86_64-pc-windows-gnu",
        os="windows",
        features=(
            ("qsv", ("apply", "generate", "luau", "fetch", "nightly", "self_update")),
            ("qsvdp", ("luau",)),
        ),
        default_features=False,
    ),
    JobConfig(
        target="x86_64-apple-darwin",
        os="macos",
        features=(("qsv", _FULL_FEATURES), ("qsvdp", ("luau",))),
    ),
)


@dataclass(frozen=True, slots=True)
class Config:
    """Main configuration container."""

    project: ProjectConfig = field(default_factory=ProjectConfig)
    toolchain: ToolchainConfig = field(default_factory=ToolchainConfig)
    archive: ArchiveConfig = field(default_factory=ArchiveConfig)
    run: RunConfig = field(default_factory=RunConfig)
    binaries: tuple[BinaryConfig, ...] = DEFAULT_BINARIES
    jobs: tuple[JobConfig, ...] = DEFAULT_JOBS

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> Config:
        """Create Config from a mapping (parsed TOML).

        Raises:
            ValueError: a value is present but invalid.
        """
        project: StrDict = get_table(data, "project") or {}
        toolchain: StrDict = get_table(data, "toolchain") or {}
        archive: StrDict = get_table(data, "archive") or {}
        run: StrDict = get_table(data, "run") or {}

        default_project = ProjectConfig()
        defaults = ToolchainConfig()
        channel = get_str(toolchain, "channel") or defaults.channel
        if not _PINNED_CHANNEL.match(channel):
            raise ValueError(
                f"toolchain.channel must be pinned (e.g. nightly-2023-02-15), got {channel!r}"
            )

        env_table = get_table(toolchain, "env")
        env = defaults.env
        if env_table is not None:
            env = tuple((k, str(v)) for k, v in sorted(env_table.items()))

        level = get_int(archive, "compression_level")
        if level is None:
            level = ArchiveConfig().compression_level
        if not 0 <= level <= 9:
            raise ValueError(f"archive.compression_level must be 0-9, got {level}")

        workers = get_int(run, "workers")
        if workers is not None and workers < 1:
            raise ValueError(f"run.workers must be >= 1, got {workers}")

        return cls(
            project=ProjectConfig(
                name=get_str(project, "name") or default_project.name,
                repo=get_str(project, "repo") or default_project.repo,
                channel=get_str(project, "channel") or default_project.channel,
            ),
            toolchain=ToolchainConfig(
                channel=channel,
                profile=get_str(toolchain, "profile") or defaults.profile,
                rustflags=get_str(toolchain, "rustflags") or defaults.rustflags,
                build_std=tuple(get_str_list(toolchain, "build_std") or defaults.build_std),
                build_std_features=tuple(
                    get_str_list(toolchain, "build_std_features") or defaults.build_std_features
                ),
                install_profile=get_str(toolchain, "install_profile") or defaults.install_profile,
                components=tuple(get_str_list(toolchain, "components") or defaults.components),
                env=env,
            ),
            archive=ArchiveConfig(compression_level=level),
            run=RunConfig(
                workers=workers,
                workdir=get_str(run, "workdir") or RunConfig().workdir,
            ),
            binaries=_parse_binaries(data),
            jobs=_parse_jobs(data),
        )


def _parse_binaries(data: Mapping[str, object]) -> tuple[BinaryConfig, ...]:
    raw = get_list(data, "binaries")
    if raw is None:
        return DEFAULT_BINARIES

    out: list[BinaryConfig] = []
    for item in raw:
        table = as_str_dict(item)
        if table is None:
            raise ValueError("[[binaries]] entries must be tables")
        name = get_str(table, "name")
        if name is None:
            raise ValueError("[[binaries]] entry missing name")
        out.append(BinaryConfig(name=name, features=tuple(get_str_list(table, "features") or ())))
    if not out:
        raise ValueError("at least one [[binaries]] entry is required")
    return tuple(out)


def _parse_jobs(data: Mapping[str, object]) -> tuple[JobConfig, ...]:
    raw = get_list(data, "jobs")
    if raw is None:
        return DEFAULT_JOBS

    out: list[JobConfig] = []
    for item in raw:
        table = as_str_dict(item)
        if table is None:
            raise ValueError("[[jobs]] entries must be tables")
        target = get_str(table, "target")
        os_name = get_str(table, "os")
        if target is None or os_name is None:
            raise ValueError("[[jobs]] entry requires target and os")

        features: list[tuple[str, tuple[str, ...]]] = []
        feature_table = get_table(table, "features") or {}
        for binary in sorted(feature_table):
            flags = get_str_list(feature_table, binary)
            if flags is None:
                raise ValueError(f"jobs.features.{binary} must be a list of strings ({target})")
            features.append((binary, tuple(flags)))

        default_features = get_bool(table, "default_features")
        out.append(
            JobConfig(
                target=target,
                os=os_name,
                features=tuple(features),
                default_features=True if default_features is None else default_features,
                prep=tuple(get_str_list(table, "prep") or ()),
            )
        )
    return tuple(out)


def _parse_toml(path: Path) -> Result[StrDict, ConfigError]:
    """Parse a TOML file, handling read and parse errors."""
    import tomllib

    try:
        content = path.read_bytes()
        data_obj: object = tomllib.loads(content.decode("utf-8"))
        data = as_str_dict(data_obj)
        if data is None:
            return Err(ConfigError("Config root must be a TOML table", path=path))
        return Ok(data)
    except FileNotFoundError:
        return Err(ConfigError(f"Config file not found: {path}", path=path))
    except PermissionError:
        return Err(ConfigError(f"Permission denied reading: {path}", path=path))
    except tomllib.TOMLDecodeError as e:
        return Err(ConfigError(f"Invalid TOML syntax: {e}", path=path))
    except UnicodeDecodeError as e:
        return Err(ConfigError(f"Error reading config: {e}", path=path))


def load_config(path: Path) -> Result[Config, ConfigError]:
    """Load and parse configuration from a TOML file.

    Args:
        path: Path to nightly.toml

    Returns:
        Ok(Config) on success, Err(ConfigError) on failure
    """
    result = _parse_toml(path)
    if isinstance(result, Err):
        return result

    try:
        return Ok(Config.from_dict(result.value))
    except (KeyError, TypeError, ValueError) as e:
        return Err(ConfigError(f"Invalid config: {e}", path=path))


def load_config_or_default(path: Path) -> Result[Config, ConfigError]:
    """Load config if the file exists, otherwise return the built-in defaults.

    Unlike a missing file, a present but broken file is still an error.
    """
    if not path.exists():
        return Ok(Config())
    return load_config(path)
