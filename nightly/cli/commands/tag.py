from __future__ import annotations

from pathlib import Path

import typer

from nightly.core.errors import ErrorCode
from nightly.core.result import Err
from nightly.git.repository import Repository, resolve_previous_tag


def tag(
    repo: Path = typer.Option(Path("."), "--repo", help="Source repository"),
) -> None:
    """Print the tag a nightly run would build against."""
    result = resolve_previous_tag(Repository(repo.expanduser().resolve()))
    if isinstance(result, Err):
        typer.echo(f"error: {result.error.pretty()}", err=True)
        raise typer.Exit(code=int(ErrorCode.ENV_ERROR))
    typer.echo(result.value)
