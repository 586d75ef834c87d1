import json
from enum import Enum
from pathlib import Path
from typing import Annotated

import typer
from rich import print
from rich.table import Table
from rich.text import Text

from tallyflow.dispatcher import Dispatcher
from tallyflow.models import (
    BatchResult,
    BoundedPoolConfig,
    PoolConfig,
    UnboundedPoolConfig,
)
from tallyflow.ranking import find_top_words
from tallyflow.settings import settings


class PoolKind(str, Enum):
    BOUNDED = "bounded"
    UNBOUNDED = "unbounded"


def count(
    files: Annotated[
        list[Path],
        typer.Argument(
            help="Text files to count words in",
            show_default=False,
        ),
    ],
    top: Annotated[
        int,
        typer.Option(
            "--top",
            "-k",
            min=0,
            help="Number of most frequent words to report.",
        ),
    ] = 5,
    pool: Annotated[
        PoolKind | None,
        typer.Option(
            help="Worker pool policy [default: TALLYFLOW_POOL or bounded]",
            show_default=False,
        ),
    ] = None,
    max_workers: Annotated[
        int | None,
        typer.Option(
            min=1,
            help="Worker threads for the bounded pool, not valid with --pool unbounded [default: TALLYFLOW_MAX_WORKERS or 4]",
            show_default=False,
        ),
    ] = None,
    drain_timeout: Annotated[
        float | None,
        typer.Option(
            help="Seconds to wait for all files before cancelling [default: TALLYFLOW_DRAIN_TIMEOUT or 60]",
            show_default=False,
        ),
    ] = None,
    output_json: Annotated[
        bool,
        typer.Option(
            "--json",
            help="Output results in JSON format for machine consumption.",
        ),
    ] = False,
):
    """
    Count words across files and report the most frequent ones.
    """
    pool_config = _make_pool_config(pool, max_workers)

    try:
        dispatcher = Dispatcher(pool=pool_config, drain_timeout=drain_timeout)
    except ValueError as e:
        raise typer.BadParameter(str(e), param_hint="'--drain-timeout'")

    result = dispatcher.process_files(files)
    top_words = find_top_words(result.counts, top)

    if output_json:
        _output_json(result, top_words)
    else:
        _output_rich(result, top_words)

    # Exit codes: 0 = complete, 1 = timed out, 128 + signal = interrupted
    if result.received_signal is not None:
        raise typer.Exit(128 + result.received_signal)
    if not result.is_complete:
        raise typer.Exit(1)


def _make_pool_config(
    pool: PoolKind | None,
    max_workers: int | None,
) -> PoolConfig:
    kind = pool.value if pool is not None else settings.pool
    if kind == PoolKind.UNBOUNDED.value and max_workers is not None:
        raise typer.BadParameter(
            "only applies to the bounded pool",
            param_hint="'--max-workers'",
        )
    if kind == PoolKind.BOUNDED.value:
        return BoundedPoolConfig(
            kind="bounded",
            max_workers=max_workers or settings.max_workers,
        )
    return UnboundedPoolConfig(
        kind="unbounded",
        max_open_files=settings.max_open_files,
    )


def _output_json(result: BatchResult, top_words: list[tuple[str, int]]):
    """Output results in JSON format."""
    data = {
        "complete": result.is_complete,
        "timed_out": result.timed_out,
        "interrupted": result.interrupted,
        "distinct_words": len(result.counts),
        "top_words": [{"word": word, "count": n} for word, n in top_words],
        "outcomes": [
            {
                "path": str(outcome.path),
                "status": outcome.status.value,
                "failure": outcome.failure.value if outcome.failure else None,
                "words": outcome.n_words,
            }
            for outcome in result.outcomes
        ],
    }
    typer.echo(json.dumps(data, indent=2))


def _output_rich(result: BatchResult, top_words: list[tuple[str, int]]):
    """Output results with rich formatting."""
    table = Table(title="Top words")
    table.add_column("Word")
    table.add_column("Count", justify="right", style="blue")
    for word, n in top_words:
        table.add_row(word, str(n))
    print(table)

    if result.failures:
        print()
        failures = Table(title="Failures")
        failures.add_column("File")
        failures.add_column("Reason", style="red")
        for outcome in result.failures:
            failures.add_row(Text(str(outcome.path)), Text(outcome.detail or ""))
        print(failures)

    print()
    print(
        f"Files: {result.n_completed}/{len(result.outcomes)} processed, "
        f"{len(result.failures)} failed, {len(result.cancelled)} cancelled; "
        f"{len(result.counts)} distinct words"
    )
    if result.timed_out:
        print("[bold yellow]Drain timeout elapsed; results are partial[/bold yellow]")
    elif result.interrupted:
        print("[bold yellow]Interrupted; results are partial[/bold yellow]")
