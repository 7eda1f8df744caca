"""Main CLI application for PayBridge.

This module provides the unified entry point for all PayBridge CLI
operations: running syncs, inspecting and resetting cursor state, and
replaying webhooks.
"""

import logging
from typing import Annotated

import typer

from ..config import LoggingConfig, get_settings, set_current_profile
from ..logging import setup_logging
from .commands import state, sync, webhook

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="paybridge",
    help="PayBridge: resumable incremental sync from financial providers",
    add_completion=False,
    rich_markup_mode="rich",
    no_args_is_help=True,
)


@app.callback()
def main_callback(
    profile: Annotated[
        str,
        typer.Option(
            "--profile",
            "-p",
            help="Configuration profile to use (loads .env.{profile}). Default: default",
            envvar="PAYBRIDGE_PROFILE",
        ),
    ] = "default",
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Enable verbose debug logging",
        ),
    ] = False,
) -> None:
    """Global options for PayBridge CLI.

    Each profile loads its settings from a .env.{profile} file, so separate
    environments (sandbox, production) keep separate credentials and
    databases.

    Examples:
      paybridge --profile=sandbox sync run plaid transactions
      paybridge state show generic payments

    Can also be set via PAYBRIDGE_PROFILE environment variable.
    """
    try:
        set_current_profile(profile)
    except ValueError as e:
        raise typer.BadParameter(
            f"Invalid profile name: {profile}. "
            "Use only alphanumeric characters, dashes, and underscores"
        ) from e

    try:
        settings = get_settings()
    except ValueError as e:
        setup_logging(LoggingConfig(log_to_file=False), cli_mode=True, verbose=verbose)
        logger.error(f"❌ {e}")
        raise typer.Exit(1) from e

    setup_logging(settings.logging, cli_mode=True, verbose=verbose)

    logger.debug(f"Using profile: {profile}")


app.add_typer(sync.app, name="sync", help="Fetch new data from providers")
app.add_typer(state.app, name="state", help="Inspect and reset cursor state")
app.add_typer(webhook.app, name="webhook", help="Webhook-triggered fetches")


def main() -> None:
    """Entry point for the PayBridge CLI application."""
    app()


if __name__ == "__main__":
    main()
