from __future__ import annotations

import stat
from datetime import UTC, datetime
from pathlib import Path

from nightly.core.result import Err, Ok, Result
from nightly.services.errors import PackagingError
from nightly.services.model import Bundle, BuiltArtifact, Platform, RunContext
from nightly.services.packager import package, render_report

from ._support import LINUX, MSVC, make_ctx, make_job

REPORT = "active toolchain\n----------------\nnightly-2023-02-15-x86_64 (overridden)\n"


def _artifact(tmp_path: Path, name: str, data: bytes, platform_id: str = LINUX) -> BuiltArtifact:
    path = tmp_path / "cargo-out" / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return BuiltArtifact(
        binary_name=path.stem, platform_id=platform_id, path=path, size=len(data)
    )


def _fixed(hour: int) -> datetime:
    return datetime(2023, 2, 16, hour, 0, 0, tzinfo=UTC)


def _package(
    ctx: RunContext, tmp_path: Path, hour: int = 1
) -> Result[Bundle, PackagingError]:
    job = make_job(binaries=("qsv", "qsvlite"))
    artifacts = [
        _artifact(tmp_path, "qsv", b"qsv-bytes"),
        _artifact(tmp_path, "qsvlite", b"lite-bytes"),
    ]
    return package(ctx, job, artifacts, REPORT, clock=lambda: _fixed(hour))


def test_render_report_first_line() -> None:
    text = render_report(REPORT, _fixed(3))
    assert text.splitlines()[0] == "generated: 2023-02-16T03:00:00Z"
    assert text.endswith("(overridden)\n")


def test_bundle_layout(tmp_path: Path) -> None:
    ctx = make_ctx(tmp_path)
    result = _package(ctx, tmp_path)
    assert isinstance(result, Ok)
    bundle = result.value

    assert bundle.names == ("qsv_nightly", "qsvlite_nightly", "qsv_nightly_rust_version_info.txt")
    assert bundle.platform_id == LINUX
    assert bundle.tag == "0.91.0"
    assert bundle.staging_dir == tmp_path / "work" / LINUX / "qsv-0.91.0"
    assert (bundle.staging_dir / "qsv_nightly").read_bytes() == b"qsv-bytes"
    mode = stat.S_IMODE((bundle.staging_dir / "qsv_nightly").stat().st_mode)
    assert mode & stat.S_IXUSR


def test_windows_names_keep_exe(tmp_path: Path) -> None:
    ctx = make_ctx(tmp_path)
    job = make_job(MSVC, platform=Platform.WINDOWS)
    artifact = _artifact(tmp_path, "qsv.exe", b"MZ", platform_id=MSVC)
    result = package(ctx, job, [artifact], REPORT, clock=lambda: _fixed(1))
    assert isinstance(result, Ok)
    assert result.value.names[0] == "qsv_nightly.exe"


def test_sidecar_never_packaged(tmp_path: Path) -> None:
    ctx = make_ctx(tmp_path)
    job = make_job()
    qsv = _artifact(tmp_path, "qsv", b"qsv")
    sidecar = _artifact(tmp_path, "qsv.d", b"deps")
    result = package(ctx, job, [qsv, sidecar], REPORT, clock=lambda: _fixed(1))
    assert isinstance(result, Ok)
    assert not any(n.endswith(".d") for n in result.value.names)
    assert sorted(p.name for p in result.value.staging_dir.iterdir()) == sorted(
        result.value.names
    )


def test_deterministic_except_first_report_line(tmp_path: Path) -> None:
    first = _package(make_ctx(tmp_path), tmp_path, hour=1)
    assert isinstance(first, Ok)
    snapshot = {f.name: f.path.read_bytes() for f in first.value.files}

    second = _package(make_ctx(tmp_path), tmp_path, hour=5)
    assert isinstance(second, Ok)
    again = {f.name: f.path.read_bytes() for f in second.value.files}

    assert snapshot.keys() == again.keys()
    for name in snapshot:
        a, b = snapshot[name], again[name]
        if name.endswith("_rust_version_info.txt"):
            assert a.splitlines()[1:] == b.splitlines()[1:]
            assert a != b
        else:
            assert a == b


def test_restaging_drops_stale_files(tmp_path: Path) -> None:
    ctx = make_ctx(tmp_path)
    first = _package(ctx, tmp_path)
    assert isinstance(first, Ok)
    (first.value.staging_dir / "stale").write_text("x", encoding="utf-8")

    second = _package(ctx, tmp_path)
    assert isinstance(second, Ok)
    assert not (second.value.staging_dir / "stale").exists()


def test_no_binaries(tmp_path: Path) -> None:
    result = package(make_ctx(tmp_path), make_job(), [], REPORT)
    assert isinstance(result, Err)
    assert "no binaries" in result.error.message


def test_duplicate_public_name(tmp_path: Path) -> None:
    a = _artifact(tmp_path, "qsv", b"1")
    result = package(make_ctx(tmp_path), make_job(), [a, a], REPORT)
    assert isinstance(result, Err)
    assert "qsv_nightly" in result.error.message


def test_unwritable_workdir_is_io_failure(tmp_path: Path) -> None:
    ctx = make_ctx(tmp_path)
    ctx.workdir.write_text("not a directory", encoding="utf-8")
    result = _package(ctx, tmp_path)
    assert isinstance(result, Err)
    assert result.error.kind == "io_failed"
    assert "staging dir" in result.error.message


def test_invariant_failures_are_not_io(tmp_path: Path) -> None:
    result = package(make_ctx(tmp_path), make_job(), [], REPORT)
    assert isinstance(result, Err)
    assert result.error.kind == "invariant"
