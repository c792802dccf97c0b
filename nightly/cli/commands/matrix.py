from __future__ import annotations

from pathlib import Path

import typer

from nightly.cli.context import build_context
from nightly.core.result import Err
from nightly.output.errors import abort_exit_code, print_abort
from nightly.output.report import print_matrix
from nightly.services.matrix import build_matrix


def matrix(
    repo: Path = typer.Option(Path("."), "--repo", help="Source repository"),
    config: Path | None = typer.Option(
        None, "--config", help="Config file (default: <repo>/nightly.toml)"
    ),
    only: list[str] = typer.Option([], "--only", help="Restrict to target (repeatable)"),
) -> None:
    """Show the build matrix."""
    ctx = build_context(repo=repo, config_path=config)
    jobs = build_matrix(ctx.config, only=tuple(only))
    if isinstance(jobs, Err):
        print_abort(jobs.error, ctx.console)
        raise typer.Exit(code=int(abort_exit_code(jobs.error)))
    print_matrix(jobs.value, ctx.console)
