"""Logging setup for PayBridge.

Handlers are built from the ``logging`` section of the profile's settings,
so ``PAYBRIDGE_LOGGING__LEVEL``, ``PAYBRIDGE_LOGGING__LOG_TO_FILE`` and the
rotation options apply to the CLI, the sync engine and the connectors alike.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler

from ..config import LoggingConfig, get_settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
CLI_LOG_FORMAT = "%(message)s"

# Ceiling for chatty third-party loggers, even in verbose mode
LIBRARY_LOG_LEVELS = {
    "urllib3": logging.WARNING,
    "requests": logging.WARNING,
    "plaid": logging.INFO,
}


def _file_handler(config: LoggingConfig) -> logging.Handler:
    config.log_file_path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        config.log_file_path,
        maxBytes=config.max_file_size_mb * 1024 * 1024,
        backupCount=config.backup_count,
    )
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    return handler


def setup_logging(
    config: LoggingConfig | None = None,
    cli_mode: bool = False,
    verbose: bool = False,
    force: bool = False,
) -> None:
    """Configure the root logger.

    Console output goes to stderr so command output on stdout stays parseable.

    Args:
        config: Logging settings. Defaults to the current profile's
            ``logging`` section.
        cli_mode: If True, print bare messages on the console
        verbose: If True, log at DEBUG regardless of ``config.level``
        force: Replace handlers already attached to the root logger
    """
    if config is None:
        config = get_settings().logging

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(
        logging.Formatter(CLI_LOG_FORMAT if cli_mode else LOG_FORMAT)
    )
    handlers: list[logging.Handler] = [console_handler]
    if config.log_to_file:
        handlers.append(_file_handler(config))

    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, config.level),
        handlers=handlers,
        force=force,
    )

    for name, level in LIBRARY_LOG_LEVELS.items():
        logging.getLogger(name).setLevel(level)
