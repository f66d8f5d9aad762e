from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from retroapi.progression.numeric import MAX_SAFE_INTEGER


class WalletSnapshot(BaseModel):
    """계정 지갑/진행도 스냅샷 (조회 시점에 계산, 저장하지 않음)"""

    coins: int = Field(0, ge=0, description="코인(포인트) 잔액")
    exp: int = Field(0, ge=0, description="누적 경험치")
    tickets: int = Field(0, ge=0, description="보유 티켓")
    games_played: int = Field(
        0, ge=0, serialization_alias="gamesPlayed", description="플레이 횟수"
    )
    level: int = Field(1, ge=1, description="exp 기반 레벨")
    xp_cap: int = Field(1000, ge=1, serialization_alias="xpCap", description="레벨 × 1000")
    source: str = Field("none", description="user_stats | legacy | merged | none")

    class Config:
        from_attributes = True

    @property
    def points(self) -> int:
        return self.coins

    @property
    def plays(self) -> int:
        return self.games_played

    def stats_view(self) -> Dict[str, int]:
        return {
            "coins": self.coins,
            "exp": self.exp,
            "tickets": self.tickets,
            "gamesPlayed": self.games_played,
            "level": self.level,
            "xpCap": self.xp_cap,
        }

    def wallet_view(self) -> Dict[str, int]:
        return {
            "points": self.points,
            "tickets": self.tickets,
            "exp": self.exp,
            "plays": self.plays,
            "level": self.level,
            "xpCap": self.xp_cap,
        }


class WalletBalanceResponse(BaseModel):
    ok: bool = True
    balance: int = Field(..., description="최종 코인 잔액")
    wallet: Dict[str, int]
    stats: Dict[str, int]

    @classmethod
    def from_snapshot(cls, snapshot: WalletSnapshot) -> "WalletBalanceResponse":
        return cls(
            balance=snapshot.coins,
            wallet=snapshot.wallet_view(),
            stats=snapshot.stats_view(),
        )


class LedgerEntryResponse(BaseModel):
    """원장 항목"""

    id: int
    type: str
    amount: int
    exp_delta: int
    tickets_delta: int
    plays_delta: int
    balance_after: Optional[int] = None
    reason: Optional[str] = None
    ref_table: Optional[str] = None
    ref_id: Optional[str] = None
    created_at: str

    class Config:
        from_attributes = True


class LedgerHistoryResponse(BaseModel):
    entries: List[LedgerEntryResponse]
    total_count: int
    has_next: bool


class DeltaResponse(BaseModel):
    coins: int
    exp: int
    tickets: int
    plays: int
    reason: Optional[str] = None
    meta: Optional[Dict[str, Any]] = None


class GameFinishRequest(BaseModel):
    game: str = Field(..., min_length=1, max_length=64, description="게임 slug")
    score: float = Field(..., le=MAX_SAFE_INTEGER, description="최종 점수")
    run_id: Optional[str] = Field(
        None, alias="runId", max_length=128, description="한 판을 대표하는 식별자"
    )
    meta: Optional[Dict[str, Any]] = None

    class Config:
        populate_by_name = True


class RewardRequest(BaseModel):
    coins: int = Field(0, ge=0)
    exp: int = Field(0, ge=0)
    tickets: int = Field(0, ge=0)
    reason: str = Field("event_reward", min_length=1, max_length=255)


class PurchaseRequest(BaseModel):
    item_key: str = Field(..., alias="itemKey", min_length=1, max_length=128)
    pay_with: Optional[str] = Field(None, alias="payWith", pattern="^(coins|tickets)$")

    class Config:
        populate_by_name = True


class PaidResponse(BaseModel):
    pay_with: str = Field(..., serialization_alias="payWith")
    coins: int
    tickets: int


class ProgressionResult(BaseModel):
    """델타 반영 결과 + 반영 후 스냅샷"""

    ok: bool = True
    applied: bool = Field(..., description="이번 요청으로 실제 반영되었는지 (중복이면 False)")
    transaction_id: Optional[int] = None
    delta: DeltaResponse
    wallet: Dict[str, int]
    stats: Dict[str, int]
    paid: Optional[PaidResponse] = None
