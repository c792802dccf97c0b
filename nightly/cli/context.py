from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import typer

from nightly.core.config import CONFIG_FILENAME, Config, load_config_or_default
from nightly.core.errors import ErrorCode
from nightly.core.result import Err
from nightly.output.console import ConsoleProtocol, RichConsole
from nightly.output.errors import abort_exit_code, print_abort


@dataclass(frozen=True, slots=True)
class CLIContext:
    repo_path: Path
    config: Config
    console: ConsoleProtocol


def build_context(*, repo: Path, config_path: Path | None = None) -> CLIContext:
    console = RichConsole()
    try:
        repo_path = repo.expanduser().resolve()
    except OSError as e:
        typer.echo(f"error: invalid --repo: {e}", err=True)
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))

    if not repo_path.is_dir():
        typer.echo(f"error: --repo '{repo_path}' is not a directory", err=True)
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))

    path = config_path if config_path is not None else repo_path / CONFIG_FILENAME
    loaded = load_config_or_default(path)
    if isinstance(loaded, Err):
        print_abort(loaded.error, console)
        raise typer.Exit(code=int(abort_exit_code(loaded.error)))

    return CLIContext(repo_path=repo_path, config=loaded.value, console=console)
