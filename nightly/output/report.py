"""Run summary: one row per job with its terminal state."""

from __future__ import annotations

from typing import TYPE_CHECKING

from nightly.output.console import Style
from nightly.output.errors import describe_job_error

if TYPE_CHECKING:
    from collections.abc import Sequence

    from nightly.output.console import ConsoleProtocol
    from nightly.services.model import BuildJob, RunContext
    from nightly.services.pipeline import JobOutcome, RunReport


def _detail(outcome: JobOutcome) -> str:
    if outcome.published is not None:
        p = outcome.published
        return f"{p.asset} ({p.entries} entries, {p.size} bytes)"
    if outcome.error is not None:
        return describe_job_error(outcome.error)
    return ""


def summary_rows(report: RunReport) -> list[list[str]]:
    rows: list[list[str]] = []
    for o in report.outcomes:
        state = str(o.state)
        if o.failed_stage is not None:
            state = f"{state} ({o.failed_stage})"
        rows.append([o.job_id, state, _detail(o)])
    return rows


def print_report(report: RunReport, console: ConsoleProtocol) -> None:
    console.table(
        f"nightly {report.tag}",
        ["target", "state", "detail"],
        summary_rows(report),
    )
    total = len(report.outcomes)
    done = len(report.published)
    if report.ok:
        console.success(f"{done}/{total} published")
    else:
        console.error(f"{total - done}/{total} not published (exit {int(report.exit_code)})")


def print_matrix(jobs: Sequence[BuildJob], console: ConsoleProtocol) -> None:
    rows: list[list[str]] = []
    for job in jobs:
        for binary in job.binaries:
            rows.append(
                [
                    job.target,
                    f"{job.platform}/{job.arch}",
                    binary.name,
                    ",".join(binary.features),
                    "yes" if job.default_features else "no",
                    " ".join(job.prep) or "-",
                ]
            )
    console.table(
        "build matrix",
        ["target", "os/arch", "binary", "features", "default features", "prep"],
        rows,
    )


def print_plan(
    ctx: RunContext, plan: Sequence[tuple[BuildJob, list[str]]], console: ConsoleProtocol
) -> None:
    """Print what a run would do without doing it (--dry-run)."""
    console.header(f"nightly {ctx.tag} (dry run)")
    console.print(f"source: {ctx.source_dir}", Style.DIM)
    for job, commands in plan:
        console.job(job.job_id, f"asset: {ctx.asset_name(job.platform_id)}", Style.BOLD)
        for command in commands:
            console.job(job.job_id, command, Style.DIM)
