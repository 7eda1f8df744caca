"""Centralized logging configuration for PayBridge.

Standard usage:
    ```python
    import logging
    from paybridge.config import get_settings
    from paybridge.logging import setup_logging

    # Configure once at application startup
    setup_logging(get_settings().logging)

    # Get loggers in each module
    logger = logging.getLogger(__name__)
    ```
"""

from .config import setup_logging

__all__ = ["setup_logging"]
