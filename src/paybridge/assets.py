"""Asset code grammar and filtering.

An asset code is an upper-case symbol with an optional minor-unit precision
suffix: ``BTC``, ``USD/2``, ``ETH_TEST5/18``. Validity is purely syntactic;
precision lookup for currencies lives in :mod:`paybridge.amounts`.
"""

import logging
import re
from collections.abc import Callable, Iterable, Iterator
from typing import TypeVar

logger = logging.getLogger(__name__)

ASSET_PATTERN = re.compile(r"[A-Z][A-Z0-9_]{0,16}(?:/(\d{1,6}))?", re.ASCII)

T = TypeVar("T")


def is_valid(code: str) -> bool:
    """Return True if ``code`` matches the asset grammar."""
    return ASSET_PATTERN.fullmatch(code) is not None


def asset_precision(code: str) -> int | None:
    """Return the ``/N`` precision suffix of a valid asset code.

    Returns:
        int | None: The precision, or None if the code has no suffix

    Raises:
        ValueError: If the code is not a valid asset
    """
    match = ASSET_PATTERN.fullmatch(code)
    if match is None:
        raise ValueError(f"Invalid asset code: {code!r}")
    suffix = match.group(1)
    return int(suffix) if suffix is not None else None


def filter_valid_assets(
    items: Iterable[T], key: Callable[[T], str]
) -> Iterator[T]:
    """Yield only the items whose asset code is valid.

    Skipped items are logged with their asset code so that nothing disappears
    silently; the surrounding batch carries on.

    Args:
        items: Provider items or records
        key: Extracts the asset code of an item
    """
    for item in items:
        code = key(item)
        if is_valid(code):
            yield item
        else:
            logger.warning(f"Skipping item with invalid asset code {code!r}")
