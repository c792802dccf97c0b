from __future__ import annotations

import os
from pathlib import Path

import typer

from nightly.cli.context import build_context
from nightly.core.errors import ErrorCode
from nightly.core.result import Err
from nightly.output.errors import abort_exit_code, print_abort, print_build_diagnostics
from nightly.output.report import print_plan, print_report
from nightly.services.run import RunOptions, dry_run, execute, plan_run
from nightly.services.store import (
    DirectoryReleaseStore,
    GhReleaseStore,
    ReleaseStore,
    ensure_gh_available,
)


def publish(
    repo: Path = typer.Option(Path("."), "--repo", help="Source repository (full history)"),
    config: Path | None = typer.Option(
        None, "--config", help="Config file (default: <repo>/nightly.toml)"
    ),
    tag: str | None = typer.Option(
        None, "--tag", help="Build against this tag instead of resolving"
    ),
    only: list[str] = typer.Option([], "--only", help="Restrict to target (repeatable)"),
    workers: int | None = typer.Option(None, "--workers", "-j", min=1, help="Parallel jobs"),
    workdir: Path | None = typer.Option(None, "--workdir", help="Job output root"),
    source: Path | None = typer.Option(
        None, "--source", help="Build this tree instead of checking out the tag"
    ),
    store_dir: Path | None = typer.Option(
        None, "--store-dir", help="Publish into a local directory instead of GitHub"
    ),
    dry: bool = typer.Option(False, "--dry-run", help="Print commands without running them"),
) -> None:
    """Build every target and publish the nightly binaries."""
    ctx = build_context(repo=repo, config_path=config)
    options = RunOptions(
        repo_path=ctx.repo_path,
        config=ctx.config,
        tag=tag,
        only=tuple(only),
        workers=workers,
        workdir=workdir.expanduser().resolve() if workdir is not None else None,
        source=source.expanduser().resolve() if source is not None else None,
    )

    planned = plan_run(options, checkout=not dry)
    if isinstance(planned, Err):
        print_abort(planned.error, ctx.console)
        raise typer.Exit(code=int(abort_exit_code(planned.error)))
    plan = planned.value

    if dry:
        print_plan(plan.ctx, dry_run(plan), ctx.console)
        return

    store: ReleaseStore
    if store_dir is not None:
        store = DirectoryReleaseStore(store_dir.expanduser().resolve())
    else:
        gh = ensure_gh_available()
        if isinstance(gh, Err):
            ctx.console.error(gh.error.message)
            raise typer.Exit(code=int(ErrorCode.ENV_ERROR))
        repo_slug = os.environ.get("NIGHTLY_RELEASE_REPO") or plan.ctx.repo
        store = GhReleaseStore(
            repo=repo_slug, tag=plan.ctx.tag, scratch_dir=plan.ctx.workdir / "gh"
        )

    report = execute(plan, store, ctx.console)
    for outcome in report.unpublished:
        if outcome.error is not None:
            print_build_diagnostics(outcome.error, ctx.console)
    print_report(report, ctx.console)

    if not report.ok:
        raise typer.Exit(code=int(report.exit_code))
