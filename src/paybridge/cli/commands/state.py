"""Cursor state commands for PayBridge CLI.

These commands work on the profile's database directly, so they need no
provider credentials.
"""

import json
import logging
from typing import Annotated

import typer

from paybridge.config import get_settings
from paybridge.storage import SyncStore

app = typer.Typer(help="Inspect and reset cursor state", no_args_is_help=True)
logger = logging.getLogger(__name__)


@app.command("show")
def show_state(
    connector: Annotated[str, typer.Argument(help="Connector name")],
    stream: Annotated[str, typer.Argument(help="Stream name")],
) -> None:
    """Print the persisted cursor state of a stream as JSON.

    Example:
        paybridge state show plaid transactions
    """
    try:
        store = SyncStore(get_settings().database.path)
        state = store.load_state(connector, stream)
    except Exception as e:
        logger.error(f"❌ Failed to read state: {e}")
        raise typer.Exit(1) from e

    if state is None:
        logger.warning(f"No state stored for {connector}/{stream}")
        raise typer.Exit(1)

    try:
        print(json.dumps(json.loads(state), indent=2, sort_keys=True))
    except (UnicodeDecodeError, json.JSONDecodeError):
        print(state.decode("utf-8", errors="replace"))


@app.command("reset")
def reset_state(
    connector: Annotated[str, typer.Argument(help="Connector name")],
    stream: Annotated[str, typer.Argument(help="Stream name")],
    yes: Annotated[
        bool, typer.Option("--yes", "-y", help="Skip confirmation prompt")
    ] = False,
) -> None:
    """Forget a stream's state so the next sync starts from scratch.

    Example:
        paybridge state reset generic payments --yes
    """
    if not yes and not typer.confirm(
        f"Reset {connector}/{stream}? The next sync will refetch everything."
    ):
        print("❌ Cancelled")
        raise typer.Exit(0)

    try:
        store = SyncStore(get_settings().database.path)
        existed = store.reset_state(connector, stream)
    except Exception as e:
        logger.error(f"❌ Failed to reset state: {e}")
        raise typer.Exit(1) from e

    if existed:
        print(f"✅ Reset state for {connector}/{stream}")
    else:
        print(f"No state stored for {connector}/{stream}")
