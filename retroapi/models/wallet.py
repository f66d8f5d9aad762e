"""
지갑/진행도 정본(canonical) 데이터 모델

- user_stats: 계정별 코인/경험치/티켓/플레이 횟수 누계 (정본 스냅샷)
- transactions: 모든 자원 변동을 기록하는 단일 원장(Ledger)

user_stats 는 transactions 에 기록된 델타를 적용하는 방식으로만 변경된다.
(LedgerRepository.append 의 apply 단계, 원장 insert 와 같은 트랜잭션)
"""

import uuid
from typing import Optional

from sqlalchemy import BigInteger, Index, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.schema import UniqueConstraint

from retroapi.models.base import (
    BaseModel,
    BigIntPK,
    CreatedAtMixin,
    JSONType,
    UpdatedAtMixin,
)


class UserStats(BaseModel, UpdatedAtMixin):
    """계정당 1행, 자원 누계의 정본"""

    __tablename__ = "user_stats"

    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    coins: Mapped[int] = mapped_column(
        BigInteger, nullable=False, default=0, server_default="0"
    )
    exp: Mapped[int] = mapped_column(
        BigInteger, nullable=False, default=0, server_default="0"
    )
    tickets: Mapped[int] = mapped_column(
        BigInteger, nullable=False, default=0, server_default="0"
    )
    games_played: Mapped[int] = mapped_column(
        BigInteger, nullable=False, default=0, server_default="0"
    )


class LedgerEntry(BaseModel, CreatedAtMixin):
    """
    원장 테이블 - 불변(append-only)

    - amount: 코인 변동량 (양수=적립, 음수=차감, 0 허용)
    - idempotency_key: 같은 키는 최대 1번만 반영 (NULL 은 제약 대상 아님)
    - balance_after: 이 항목 적용 직후의 코인 잔액
    """

    __tablename__ = "transactions"
    __table_args__ = (
        UniqueConstraint("idempotency_key", name="uq_transactions_idempotency_key"),
        Index("idx_transactions_user_time", "user_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    type: Mapped[str] = mapped_column(Text, nullable=False)
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    exp_delta: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    tickets_delta: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    plays_delta: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    balance_after: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    ref_table: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    ref_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    idempotency_key: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    meta: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
