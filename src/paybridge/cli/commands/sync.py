"""Sync commands for PayBridge CLI.

These commands drive connector streams through the sync engine and persist
their progress in the profile's DuckDB database.
"""

import logging
from typing import Annotated

import typer

from paybridge.config import get_settings
from paybridge.engine import create_engine

app = typer.Typer(help="Fetch new data from providers", no_args_is_help=True)
logger = logging.getLogger(__name__)


@app.command("run")
def sync_run(
    connector: Annotated[str, typer.Argument(help="Connector name, e.g. plaid")],
    stream: Annotated[str, typer.Argument(help="Stream name, e.g. transactions")],
    page_size: Annotated[
        int | None,
        typer.Option("--page-size", min=1, help="Records per fetch call"),
    ] = None,
    full: Annotated[
        bool,
        typer.Option("--full", help="Reset the stream state and resync from scratch"),
    ] = False,
    max_batches: Annotated[
        int | None,
        typer.Option("--max-batches", min=1, help="Stop after this many batches"),
    ] = None,
) -> None:
    """Sync one stream until it is caught up.

    Example:
        paybridge sync run generic payments --page-size 50
    """
    try:
        settings = get_settings()
        engine = create_engine(settings, [connector])

        if full:
            engine.reset_stream(connector, stream)
            logger.info(f"Full resync of {connector}/{stream} requested")

        summary = engine.sync_stream(
            connector,
            stream,
            max_batches=max_batches or settings.sync.max_batches,
            page_size=page_size,
        )
        print(summary)

    except Exception as e:
        logger.error(f"❌ Sync failed: {e}")
        raise typer.Exit(1) from e


@app.command("all")
def sync_all(
    connector: Annotated[str, typer.Argument(help="Connector name, e.g. generic")],
    max_batches: Annotated[
        int | None,
        typer.Option("--max-batches", min=1, help="Stop each stream after this many batches"),
    ] = None,
) -> None:
    """Sync every stream of a connector.

    Example:
        paybridge sync all generic
    """
    try:
        settings = get_settings()
        engine = create_engine(settings, [connector])
        summaries = engine.sync_connector(
            connector, max_batches=max_batches or settings.sync.max_batches
        )
        for summary in summaries:
            print(summary)

    except Exception as e:
        logger.error(f"❌ Sync failed: {e}")
        raise typer.Exit(1) from e
