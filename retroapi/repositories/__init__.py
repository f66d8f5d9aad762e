# Repository layer - Data access with Pydantic responses

from .base import BaseRepository
from .ledger_repository import LedgerAppendResult, LedgerRepository
from .shop_repository import ShopRepository
from .stats_sources import CanonicalStatsSource, LegacyStatsSource, StatsRecord

__all__ = [
    "BaseRepository",
    "LedgerAppendResult",
    "LedgerRepository",
    "ShopRepository",
    "CanonicalStatsSource",
    "LegacyStatsSource",
    "StatsRecord",
]
