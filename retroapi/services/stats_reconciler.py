"""
정본(user_stats) + legacy(user_progress, wallet_balances) 병합 정책

필드별 우선순위:
1. 정본 값이 0 이 아니면 정본
2. 정본이 0 이거나 행이 없으면 legacy 값
3. 둘 다 없으면 0

games_played 는 정본에만 있다.
레벨은 정본 행이 아예 없고 legacy 에 저장된 레벨이 있을 때만 그 값을 쓰고,
그 외에는 병합된 exp 로 계산한다.
"""

import logging
from typing import Dict, Optional, Tuple

from retroapi.progression.level import MAX_LEVEL, experience_cap, level_from_experience
from retroapi.repositories.stats_sources import StatsRecord, StatsSource
from retroapi.schemas.wallet import WalletSnapshot

logger = logging.getLogger(__name__)

DRIFT_FIELDS = ("coins", "exp", "tickets")


def _pick(canonical: int, legacy: int) -> int:
    if canonical:
        return canonical
    return legacy or 0


def merge_records(
    canonical: Optional[StatsRecord], legacy: Optional[StatsRecord]
) -> WalletSnapshot:
    """두 소스의 레코드를 하나의 스냅샷으로 병합 (저장소 접근 없음)"""
    base = canonical or StatsRecord()
    fallback = legacy or StatsRecord()

    coins = _pick(base.coins, fallback.coins)
    exp = _pick(base.exp, fallback.exp)
    tickets = _pick(base.tickets, fallback.tickets)

    if canonical is None and legacy is not None and legacy.level and legacy.level > 0:
        level = min(legacy.level, MAX_LEVEL)
    else:
        level = level_from_experience(exp)

    legacy_used = any(
        not getattr(base, field) and getattr(fallback, field)
        for field in DRIFT_FIELDS
    )
    if canonical is None:
        source = "legacy" if legacy is not None else "none"
    elif legacy_used:
        source = "merged"
    else:
        source = "user_stats"

    return WalletSnapshot(
        coins=coins,
        exp=exp,
        tickets=tickets,
        games_played=base.games_played,
        level=level,
        xp_cap=experience_cap(level),
        source=source,
    )


class StatsReconciler:
    def __init__(self, canonical: StatsSource, legacy: StatsSource):
        self.canonical = canonical
        self.legacy = legacy

    def load_snapshot(self, account_id: str) -> WalletSnapshot:
        """
        계정의 지갑/진행도 스냅샷

        정본 행이 있고 coins/exp/tickets 중 하나라도 0 이 아니면 legacy 는 읽지 않는다.
        """
        canonical = self.canonical.load(account_id)
        if canonical is not None and canonical.has_balance:
            return merge_records(canonical, None)

        legacy = self.legacy.load(account_id)
        return merge_records(canonical, legacy)

    def load_with_drift(
        self, account_id: str
    ) -> Tuple[WalletSnapshot, Dict[str, Dict[str, int]]]:
        """스냅샷 + 드리프트 (각 소스를 한 번씩만 읽는다)"""
        canonical = self.canonical.load(account_id)
        legacy = self.legacy.load(account_id)
        if canonical is not None and canonical.has_balance:
            snapshot = merge_records(canonical, None)
        else:
            snapshot = merge_records(canonical, legacy)
        return snapshot, self._drift(account_id, canonical, legacy)

    def audit_drift(self, account_id: str) -> Dict[str, Dict[str, int]]:
        """
        양쪽 모두 0 이 아닌데 값이 다른 필드 목록

        결과는 보고용이며 스냅샷 값은 바뀌지 않는다 (정본 우선).
        """
        return self._drift(
            account_id,
            self.canonical.load(account_id),
            self.legacy.load(account_id),
        )

    @staticmethod
    def _drift(
        account_id: str,
        canonical: Optional[StatsRecord],
        legacy: Optional[StatsRecord],
    ) -> Dict[str, Dict[str, int]]:
        if canonical is None or legacy is None:
            return {}

        drift: Dict[str, Dict[str, int]] = {}
        for field in DRIFT_FIELDS:
            left = getattr(canonical, field)
            right = getattr(legacy, field)
            if left and right and left != right:
                drift[field] = {"canonical": left, "legacy": right}

        if drift:
            logger.warning(f"Wallet drift detected for account {account_id}: {drift}")
        return drift
