"""Fetch strategies: one per provider pagination style."""

from .base import FetchStrategy, RecordMapper, StrategyKind
from .diff_sync import DiffSyncStrategy, SyncPage, SyncPageSource
from .token import TokenCursorStrategy, TokenPage, TokenPageSource
from .watermark import WatermarkPage, WatermarkPageSource, WatermarkPageStrategy

__all__ = [
    "DiffSyncStrategy",
    "FetchStrategy",
    "RecordMapper",
    "StrategyKind",
    "SyncPage",
    "SyncPageSource",
    "TokenCursorStrategy",
    "TokenPage",
    "TokenPageSource",
    "WatermarkPage",
    "WatermarkPageSource",
    "WatermarkPageStrategy",
]
