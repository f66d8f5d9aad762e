"""
지갑/진행도 조회 소스 (Strategy)

- CanonicalStatsSource: user_stats (정본, UUID user_id)
- LegacyStatsSource: user_progress + wallet_balances (TEXT user_id, 읽기 전용)

어떤 소스든 행 모양을 StatsRecord 로 정규화해서 돌려준다.
테이블이 없거나 행이 없으면 None. 그 외 DB 오류는 전파한다.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from retroapi.models.legacy import UserProgress, WalletBalance
from retroapi.models.wallet import UserStats
from retroapi.progression.numeric import normalize
from retroapi.repositories.base import BaseRepository, to_account_uuid
from retroapi.schemas.wallet import WalletSnapshot


@dataclass(frozen=True)
class StatsRecord:
    coins: int = 0
    exp: int = 0
    tickets: int = 0
    games_played: int = 0
    level: Optional[int] = None  # 저장된 레벨 (legacy 만 가짐)

    @property
    def has_balance(self) -> bool:
        return any((self.coins, self.exp, self.tickets))


class StatsSource(BaseRepository, ABC):
    name: str = ""

    def __init__(self, model_class, db: Session):
        super().__init__(model_class, WalletSnapshot, db)

    @abstractmethod
    def load(self, account_id: str) -> Optional[StatsRecord]:
        ...


class CanonicalStatsSource(StatsSource):
    name = "user_stats"

    def __init__(self, db: Session):
        super().__init__(UserStats, db)

    def load(self, account_id: str) -> Optional[StatsRecord]:
        stmt = select(
            UserStats.coins, UserStats.exp, UserStats.tickets, UserStats.games_played
        ).where(UserStats.user_id == to_account_uuid(account_id))
        row = self._read_or_default(lambda: self.db.execute(stmt).first(), None)
        if row is None:
            return None

        return StatsRecord(
            coins=normalize(row.coins),
            exp=normalize(row.exp),
            tickets=normalize(row.tickets),
            games_played=normalize(row.games_played),
        )


class LegacyStatsSource(StatsSource):
    """진행도와 잔액 테이블은 각각 독립적으로 없을 수 있다"""

    name = "legacy"

    def __init__(self, db: Session):
        super().__init__(UserProgress, db)

    def load(self, account_id: str) -> Optional[StatsRecord]:
        user_id = str(account_id).strip()

        progress_stmt = select(
            UserProgress.exp, UserProgress.level, UserProgress.tickets
        ).where(UserProgress.user_id == user_id)
        balance_stmt = select(WalletBalance.balance).where(
            WalletBalance.user_id == user_id
        )

        progress = self._read_or_default(
            lambda: self.db.execute(progress_stmt).first(), None
        )
        balance = self._read_or_default(
            lambda: self.db.execute(balance_stmt).scalar_one_or_none(), None
        )
        if progress is None and balance is None:
            return None

        return StatsRecord(
            coins=normalize(balance),
            exp=normalize(progress.exp) if progress else 0,
            tickets=normalize(progress.tickets) if progress else 0,
            games_played=0,
            level=normalize(progress.level) if progress else None,
        )
