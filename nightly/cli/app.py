from __future__ import annotations

import typer

from nightly import __version__
from nightly.cli.commands.matrix import matrix
from nightly.cli.commands.publish import publish
from nightly.cli.commands.tag import tag

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    invoke_without_command=True,
    rich_markup_mode="rich",
    help="Build nightly binaries for every target and layer them onto the release zips.",
)

app.command()(publish)
app.command()(matrix)
app.command()(tag)


@app.callback()
def _main(  # pyright: ignore[reportUnusedFunction]
    version: bool = typer.Option(False, "--version", help="Show version and exit."),
) -> None:
    if version:
        typer.echo(__version__)
        raise typer.Exit(code=0)


def main() -> None:
    app()
