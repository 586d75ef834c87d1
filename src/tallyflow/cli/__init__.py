from typing import Annotated

import typer

from tallyflow.utils import get_version

from .count import count as count_func

app = typer.Typer()
app.command(name="count")(count_func)


def _version_callback(value: bool):
    if value:
        typer.echo(get_version())
        raise typer.Exit()


@app.callback()
def callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            help="Show the version and exit.",
            callback=_version_callback,
            is_eager=True,
        ),
    ] = False,
):
    """
    Concurrent word-frequency counting over many text files.
    """
