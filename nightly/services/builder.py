"""Toolchain wrapper: rustup install and prep, cargo builds, plus the version report.

Every cargo invocation for a job writes into that job's own --target-dir, so
jobs running side by side never share build output.
"""

from __future__ import annotations

from nightly.core.result import Err, Ok, Result
from nightly.platform.process import run as run_process
from nightly.services.errors import BuildError, PrepError
from nightly.services.model import BinaryVariant, BuildJob, BuiltArtifact, RunContext
from nightly.services.timeouts import (
    CARGO_BUILD_TIMEOUT_SECONDS,
    PREP_TIMEOUT_SECONDS,
    RUSTUP_TIMEOUT_SECONDS,
    TOOLCHAIN_INSTALL_TIMEOUT_SECONDS,
)


def target_dir(ctx: RunContext, job: BuildJob) -> str:
    return str(ctx.job_dir(job) / "target")


def cargo_command(ctx: RunContext, job: BuildJob, binary: BinaryVariant) -> list[str]:
    """The full cargo invocation for one binary of one job."""
    tc = ctx.toolchain
    cmd = [
        "cargo",
        f"+{job.toolchain}",
        "build",
        "--profile",
        tc.profile,
        "--bin",
        binary.name,
    ]
    if tc.build_std:
        cmd += ["-Z", f"build-std={','.join(tc.build_std)}"]
    if tc.build_std_features:
        cmd += ["-Z", f"build-std-features={','.join(tc.build_std_features)}"]
    cmd += ["--target", job.target]
    if binary.features:
        cmd.append(f"--features={','.join(binary.features)}")
    if not job.default_features:
        cmd.append("--no-default-features")
    cmd += ["--target-dir", target_dir(ctx, job)]
    return cmd


def cargo_env(ctx: RunContext) -> dict[str, str]:
    env = dict(ctx.toolchain.env)
    if ctx.toolchain.rustflags:
        env["RUSTFLAGS"] = ctx.toolchain.rustflags
    return env


def toolchain_install_command(ctx: RunContext, job: BuildJob) -> list[str]:
    """rustup invocation that installs the pinned toolchain for the job's target."""
    tc = ctx.toolchain
    cmd = ["rustup", "toolchain", "install", job.toolchain, "--profile", tc.install_profile]
    for component in tc.components:
        cmd += ["--component", component]
    cmd += ["--target", job.target]
    return cmd


def _run_prep_step(
    ctx: RunContext, job: BuildJob, cmd: list[str], timeout: float
) -> Result[None, PrepError]:
    result = run_process(cmd, cwd=ctx.source_dir, timeout=timeout)
    if isinstance(result, Err):
        return Err(
            PrepError(
                job_id=job.job_id,
                command=tuple(cmd),
                returncode=result.error.returncode,
                diagnostics=result.error.stderr.strip(),
            )
        )
    return Ok(None)


def run_prep(ctx: RunContext, job: BuildJob) -> Result[None, PrepError]:
    """Install the pinned toolchain, then whatever the platform needs (e.g. musl-tools)."""
    installed = _run_prep_step(
        ctx, job, toolchain_install_command(ctx, job), TOOLCHAIN_INSTALL_TIMEOUT_SECONDS
    )
    if isinstance(installed, Err) or not job.needs_prep:
        return installed
    return _run_prep_step(ctx, job, list(job.prep), PREP_TIMEOUT_SECONDS)

    result = run_process(list(job.prep), cwd=ctx.source_dir, timeout=PREP_TIMEOUT_SECONDS)
    if isinstance(result, Err):
        return Err(
            PrepError(
                job_id=job.job_id,
                command=job.prep,
                returncode=result.error.returncode,
                diagnostics=result.error.stderr.strip(),
            )
        )
    return Ok(None)


def build(
    ctx: RunContext, job: BuildJob, binary: BinaryVariant
) -> Result[BuiltArtifact, BuildError]:
    """Build one binary and locate it in the job's target dir."""
    result = run_process(
        cargo_command(ctx, job, binary),
        cwd=ctx.source_dir,
        env=cargo_env(ctx),
        timeout=CARGO_BUILD_TIMEOUT_SECONDS,
    )
    if isinstance(result, Err):
        return Err(
            BuildError(
                job_id=job.job_id,
                binary=binary.name,
                kind="compile_failed",
                returncode=result.error.returncode,
                diagnostics=result.error.stderr,
            )
        )

    out_dir = ctx.job_dir(job) / "target" / job.target / ctx.toolchain.profile
    exe = out_dir / job.platform.exe_name(binary.name)
    if not exe.is_file():
        return Err(
            BuildError(
                job_id=job.job_id,
                binary=binary.name,
                kind="output_missing",
                returncode=0,
                diagnostics=f"cargo succeeded but {exe} does not exist",
            )
        )

    sidecars = tuple(
        sorted(p for p in out_dir.iterdir() if p.is_file() and p != exe and p.stem == binary.name)
    )
    return Ok(
        BuiltArtifact(
            binary_name=binary.name,
            platform_id=job.platform_id,
            path=exe,
            size=exe.stat().st_size,
            sidecars=sidecars,
        )
    )


def version_report(ctx: RunContext, job: BuildJob) -> Result[str, BuildError]:
    """Output of `rustup show` for the job's pinned toolchain."""
    result = run_process(
        ["rustup", "show"],
        cwd=ctx.source_dir,
        env={"RUSTUP_TOOLCHAIN": job.toolchain},
        timeout=RUSTUP_TIMEOUT_SECONDS,
    )
    if isinstance(result, Err):
        return Err(
            BuildError(
                job_id=job.job_id,
                binary="rustup",
                kind="toolchain_failed",
                returncode=result.error.returncode,
                diagnostics=result.error.stderr,
            )
        )
    return Ok(result.value)


def plan_commands(ctx: RunContext, job: BuildJob) -> list[tuple[list[str], dict[str, str]]]:
    """Commands a job would run, in order (for --dry-run)."""
    plan: list[tuple[list[str], dict[str, str]]] = []
    plan.append((toolchain_install_command(ctx, job), {}))
    if job.needs_prep:
        plan.append((list(job.prep), {}))
    env = cargo_env(ctx)
    for binary in job.binaries:
        plan.append((cargo_command(ctx, job, binary), env))
    plan.append((["rustup", "show"], {"RUSTUP_TOOLCHAIN": job.toolchain}))
    return plan
