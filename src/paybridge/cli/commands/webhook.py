"""Webhook commands for PayBridge CLI."""

import logging
from pathlib import Path
from typing import Annotated

import typer

from paybridge.config import get_settings
from paybridge.engine import create_engine

app = typer.Typer(help="Webhook-triggered fetches", no_args_is_help=True)
logger = logging.getLogger(__name__)


@app.command("replay")
def replay_webhook(
    connector: Annotated[str, typer.Argument(help="Connector that received the webhook")],
    body_file: Annotated[
        Path,
        typer.Argument(
            exists=True, dir_okay=False, readable=True, help="File with the raw webhook body"
        ),
    ],
) -> None:
    """Translate a stored webhook body and run the fetch it triggers.

    Stream state is not modified; the fetched records are upserted.

    Example:
        paybridge webhook replay plaid webhook.json
    """
    try:
        engine = create_engine(get_settings(), [connector])
        outcome = engine.handle_webhook(connector, body_file.read_bytes())
    except Exception as e:
        logger.error(f"❌ Webhook replay failed: {e}")
        raise typer.Exit(1) from e

    if outcome.ignored:
        print("Webhook ignored: event carries no data to fetch")
        return
    print(
        f"{connector}/{outcome.stream} for {outcome.entity_id}: "
        f"{outcome.records} records, {outcome.deleted} deleted"
    )
