"""Packager: turn a job's built binaries into a sealed bundle.

Staging layout (one directory per job, recreated on every run):

    <workdir>/<target>/<project>-<tag>/
        qsv_nightly[.exe]
        qsvlite_nightly[.exe]
        qsvdp_nightly[.exe]
        qsv_nightly_rust_version_info.txt

Given the same artifacts and report text, the staged bytes are identical
except for the first line of the version report.
"""

from __future__ import annotations

import shutil
from collections.abc import Callable, Sequence
from datetime import UTC, datetime

from nightly.core.result import Err, Ok, Result
from nightly.platform.files import reset_dir
from nightly.services.errors import PackagingError
from nightly.services.model import Bundle, BundleFile, BuildJob, BuiltArtifact, RunContext

# cargo dependency-tracking files; nothing downstream reads them.
SIDECAR_SUFFIXES = frozenset({".d"})

_EXEC_MODE = 0o755
_FILE_MODE = 0o644


def _utc_now() -> datetime:
    return datetime.now(UTC)


def render_report(report: str, generated_at: datetime) -> str:
    stamp = generated_at.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")
    return f"generated: {stamp}\n{report.rstrip()}\n"


def package(
    ctx: RunContext,
    job: BuildJob,
    artifacts: Sequence[BuiltArtifact],
    report: str,
    *,
    clock: Callable[[], datetime] = _utc_now,
) -> Result[Bundle, PackagingError]:
    """Stage, rename and seal the artifacts of one job."""
    staging = ctx.job_dir(job) / f"{ctx.project}-{ctx.tag}"
    try:
        reset_dir(staging)
    except OSError as e:
        return Err(
            PackagingError(job.job_id, f"cannot create staging dir: {e}", staging, "io_failed")
        )

    files: list[BundleFile] = []
    seen: set[str] = set()
    for artifact in artifacts:
        if artifact.path.suffix in SIDECAR_SUFFIXES:
            continue
        public = ctx.public_name(artifact.binary_name, job.platform)
        if public in seen:
            return Err(PackagingError(job.job_id, f"two artifacts map to {public}"))
        seen.add(public)

        dest = staging / public
        try:
            shutil.copyfile(artifact.path, dest)
            dest.chmod(_EXEC_MODE)
        except OSError as e:
            return Err(
                PackagingError(
                    job.job_id, f"cannot stage {artifact.path}: {e}", artifact.path, "io_failed"
                )
            )
        files.append(BundleFile(name=public, path=dest, mode=_EXEC_MODE))

    if not files:
        return Err(PackagingError(job.job_id, "no binaries to package"))

    sealed_at = clock()
    report_path = staging / ctx.report_name
    try:
        report_path.write_text(render_report(report, sealed_at), encoding="utf-8", newline="\n")
    except OSError as e:
        return Err(
            PackagingError(
                job.job_id, f"cannot write version report: {e}", report_path, "io_failed"
            )
        )
    files.append(BundleFile(name=ctx.report_name, path=report_path, mode=_FILE_MODE))

    return Ok(
        Bundle(
            tag=ctx.tag,
            platform_id=job.platform_id,
            staging_dir=staging,
            files=tuple(files),
            sealed_at=sealed_at,
        )
    )
