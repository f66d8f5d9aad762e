from .wallet import (
    LedgerEntryResponse,
    LedgerHistoryResponse,
    ProgressionResult,
    WalletBalanceResponse,
    WalletSnapshot,
)
from .shop import ShopItemListResponse, ShopItemResponse
from .health import HealthCheckResponse
