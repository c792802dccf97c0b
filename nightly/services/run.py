"""A nightly run from start to finish.

    plan_run:  matrix -> previous tag -> source checkout -> RunPlan
    execute:   RunPlan -> worker pool -> RunReport

Everything that can abort the run happens in plan_run, before any job
starts. Once execute is called, failures stay inside their job.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from pathlib import Path

from nightly.core.config import Config
from nightly.core.result import Err, Ok, Result
from nightly.git.repository import Repository, resolve_previous_tag
from nightly.output.console import ConsoleProtocol
from nightly.platform.process import format_command
from nightly.services.builder import plan_commands
from nightly.services.errors import RunAbort, SourceError
from nightly.services.matrix import build_matrix
from nightly.services.model import BuildJob, RunContext
from nightly.services.pipeline import RunReport, run_jobs
from nightly.services.store import ReleaseStore


@dataclass(frozen=True, slots=True)
class RunOptions:
    """Operator choices for one run (CLI flags layered over the config).

    Attributes:
        repo_path: Source repository with full tag history
        tag: Skip resolution and use this tag
        only: Restrict the matrix to these targets
        workdir: Job-scoped output root (default: <repo>/<run.workdir>)
        source: Build this existing tree instead of checking out the tag
    """

    repo_path: Path
    config: Config
    tag: str | None = None
    only: tuple[str, ...] = ()
    workers: int | None = None
    workdir: Path | None = None
    source: Path | None = None


@dataclass(frozen=True, slots=True)
class RunPlan:
    ctx: RunContext
    jobs: tuple[BuildJob, ...]
    workers: int | None


def plan_run(options: RunOptions, *, checkout: bool = True) -> Result[RunPlan, RunAbort]:
    """Resolve everything a run needs; any error here aborts the run.

    Args:
        options: Run options.
        checkout: Create the tag's worktree (False for --dry-run).
    """
    config = options.config
    jobs = build_matrix(config, only=options.only)
    if isinstance(jobs, Err):
        return jobs

    repo = Repository(options.repo_path)
    tag = resolve_previous_tag(repo, override=options.tag)
    if isinstance(tag, Err):
        return tag

    workdir = options.workdir or options.repo_path / config.run.workdir
    source = options.source
    if source is None:
        source = workdir / f"src-{tag.value}"
        if checkout:
            added = repo.add_worktree(source, tag.value)
            if isinstance(added, Err):
                return Err(SourceError(ref=tag.value, message=added.error.message))

    ctx = RunContext(
        tag=tag.value,
        channel=config.project.channel,
        project=config.project.name,
        repo=config.project.repo,
        source_dir=source,
        workdir=workdir,
        toolchain=config.toolchain,
        compression_level=config.archive.compression_level,
    )
    return Ok(RunPlan(ctx=ctx, jobs=jobs.value, workers=options.workers or config.run.workers))


def dry_run(plan: RunPlan) -> list[tuple[BuildJob, list[str]]]:
    """Shell-ready commands per job, without running any of them."""
    out: list[tuple[BuildJob, list[str]]] = []
    for job in plan.jobs:
        commands = [format_command(cmd, env) for cmd, env in plan_commands(plan.ctx, job)]
        out.append((job, commands))
    return out


def execute(
    plan: RunPlan,
    store: ReleaseStore,
    console: ConsoleProtocol,
    *,
    cancel: threading.Event | None = None,
) -> RunReport:
    console.header(f"nightly {plan.ctx.tag}: {len(plan.jobs)} job(s)")
    return run_jobs(plan.ctx, plan.jobs, store, console, workers=plan.workers, cancel=cancel)
