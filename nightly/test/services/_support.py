from __future__ import annotations

from pathlib import Path

from nightly.core.config import Config
from nightly.core.result import Ok
from nightly.services.matrix import build_matrix
from nightly.services.model import BinaryVariant, BuildJob, Platform, RunContext

LINUX = "x86_64-unknown-linux-gnu"
MUSL = "x86_64-unknown-linux-musl"
MSVC = "x86_64-pc-windows-msvc"
WIN_GNU = "x86_64-pc-windows-gnu"
DARWIN = "x86_64-apple-darwin"


def make_ctx(tmp_path: Path, *, tag: str = "0.91.0") -> RunContext:
    source = tmp_path / "src"
    source.mkdir(parents=True, exist_ok=True)
    return RunContext(
        tag=tag,
        channel="nightly",
        project="qsv",
        repo="jqnatividad/qsv",
        source_dir=source,
        workdir=tmp_path / "work",
    )


def make_job(
    target: str = LINUX,
    *,
    platform: Platform = Platform.LINUX,
    binaries: tuple[str, ...] = ("qsv",),
    prep: tuple[str, ...] = (),
) -> BuildJob:
    return BuildJob(
        target=target,
        platform=platform,
        arch=target.split("-", 1)[0],
        binaries=tuple(BinaryVariant(name=b, features=("full",)) for b in binaries),
        default_features=True,
        prep=prep,
        toolchain="nightly-2023-02-15",
    )


def default_jobs() -> tuple[BuildJob, ...]:
    result = build_matrix(Config())
    assert isinstance(result, Ok)
    return result.value
