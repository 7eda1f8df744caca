"""PayBridge CLI package.

This package provides the command-line interface for running syncs,
managing cursor state and replaying webhooks.
"""

from .main import app, main

__all__ = ["app", "main"]
