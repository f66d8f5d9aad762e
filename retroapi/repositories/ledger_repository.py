"""
원장(Ledger) 리포지토리 - 지갑/진행도 변경의 유일한 쓰기 경로

핵심 특징:
- 모든 변동은 transactions 에 1행으로 남는다 (append-only)
- idempotency_key 가 있으면 ON CONFLICT DO NOTHING 으로 최대 1번만 반영
- 원장 insert 와 user_stats 반영(apply 단계)은 같은 트랜잭션에서 처리
- user_stats 행은 FOR UPDATE 로 잠가 같은 계정의 동시 요청을 직렬화
- 누계 컬럼은 [0, MAX_SAFE_INTEGER] 범위로 고정된다 (GREATEST(0, ...) 와 동일한 하한)
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Optional

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from retroapi.database.resilience import is_missing_relation
from retroapi.database.schema import ensure_progression_schema
from retroapi.models.wallet import LedgerEntry, UserStats
from retroapi.progression.delta import ProgressionDelta
from retroapi.progression.numeric import MAX_SAFE_INTEGER, to_signed_int
from retroapi.repositories.base import BaseRepository, to_account_uuid
from retroapi.schemas.wallet import LedgerEntryResponse, LedgerHistoryResponse

logger = logging.getLogger(__name__)

_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


def _clamp_total(value: int) -> int:
    return min(max(0, value), MAX_SAFE_INTEGER)


class InsufficientFundsError(Exception):
    """enforce_balance 델타 적용 시 잔액이 모자람 (아무것도 기록되지 않음)"""

    def __init__(self, field: str, available: int, required: int):
        self.field = field
        self.available = available
        self.required = required
        super().__init__(f"insufficient {field}: available={available}, required={required}")


class DeltaOutOfRangeError(ValueError):
    """증감치 절대값이 MAX_SAFE_INTEGER 를 넘음 (아무것도 기록되지 않음)"""


@dataclass(frozen=True)
class LedgerAppendResult:
    applied: bool
    transaction_id: Optional[int] = None
    balance_after: Optional[int] = None


class LedgerRepository(BaseRepository[LedgerEntry, LedgerEntryResponse]):
    def __init__(self, db: Session):
        super().__init__(LedgerEntry, LedgerEntryResponse, db)

    def _insert(self):
        dialect = self.db.get_bind().dialect.name
        try:
            return _INSERTS[dialect]
        except KeyError:
            raise NotImplementedError(f"Unsupported database dialect: {dialect}")

    def _to_entry(self, row: LedgerEntry) -> LedgerEntryResponse:
        return LedgerEntryResponse(
            id=row.id,
            type=row.type,
            amount=row.amount,
            exp_delta=row.exp_delta,
            tickets_delta=row.tickets_delta,
            plays_delta=row.plays_delta,
            balance_after=row.balance_after,
            reason=row.reason,
            ref_table=row.ref_table,
            ref_id=row.ref_id,
            created_at=(
                row.created_at.strftime("%Y-%m-%d %H:%M:%S") if row.created_at else ""
            ),
        )

    def ensure_stats_row(self, account_id: Any) -> None:
        """
        user_stats 행이 없으면 0 으로 만든다 (이미 있으면 아무것도 안 함)

        커밋하지 않는다. append 트랜잭션의 일부로 실행된다.
        """
        stmt = (
            self._insert()(UserStats.__table__)
            .values(user_id=to_account_uuid(account_id))
            .on_conflict_do_nothing(index_elements=["user_id"])
        )
        self.db.execute(stmt)

    def append(self, delta: ProgressionDelta) -> LedgerAppendResult:
        """
        델타를 원장에 기록하고 user_stats 에 반영

        Returns:
            LedgerAppendResult: applied=False 이면 빈 델타였거나 이미 반영된 키

        Raises:
            ValueError: account_id 가 UUID 형태가 아님
            DeltaOutOfRangeError: 증감치가 MAX_SAFE_INTEGER 범위를 벗어남
            SQLAlchemyError: 스키마 보강 후 재시도까지 실패했거나 그 외 DB 오류
        """
        if delta.is_empty:
            return LedgerAppendResult(applied=False)
        if not delta.is_within_safe_range:
            raise DeltaOutOfRangeError(
                f"delta out of range for account {delta.account_id}: "
                f"coins={delta.coins} exp={delta.exp} tickets={delta.tickets} plays={delta.plays}"
            )

        account_uuid = to_account_uuid(delta.account_id)
        try:
            return self._append_once(delta, account_uuid)
        except SQLAlchemyError as e:
            self.db.rollback()
            if not is_missing_relation(e):
                raise

        # 초기 배포(마이그레이션 전) → 테이블 생성 후 딱 1번만 재시도
        ensure_progression_schema(self.db.get_bind())
        try:
            return self._append_once(delta, account_uuid)
        except SQLAlchemyError:
            self.db.rollback()
            raise

    def _append_once(
        self, delta: ProgressionDelta, account_uuid: uuid.UUID
    ) -> LedgerAppendResult:
        coins = to_signed_int(delta.coins)
        exp = to_signed_int(delta.exp)
        tickets = to_signed_int(delta.tickets)
        plays = to_signed_int(delta.plays)
        idempotency_key = (delta.idempotency_key or "").strip() or None

        self.ensure_stats_row(account_uuid)
        current = self.db.execute(
            select(
                UserStats.coins,
                UserStats.exp,
                UserStats.tickets,
                UserStats.games_played,
            )
            .where(UserStats.user_id == account_uuid)
            .with_for_update()
        ).one()

        if delta.enforce_balance:
            # 재요청이면 잔액 검사보다 "이미 반영됨" 이 우선
            if idempotency_key and self._find_applied(idempotency_key) is not None:
                return self._already_applied(idempotency_key)
            for field, current_value, change in (
                ("coins", current.coins, coins),
                ("tickets", current.tickets, tickets),
            ):
                if change < 0 and current_value + change < 0:
                    self.db.rollback()
                    raise InsufficientFundsError(field, current_value, -change)

        totals: Dict[str, int] = {
            "coins": _clamp_total(current.coins + coins),
            "exp": _clamp_total(current.exp + exp),
            "tickets": _clamp_total(current.tickets + tickets),
            "games_played": _clamp_total(current.games_played + plays),
        }

        stmt = self._insert()(LedgerEntry.__table__).values(
            user_id=account_uuid,
            type=delta.transaction_type,
            amount=coins,
            exp_delta=exp,
            tickets_delta=tickets,
            plays_delta=plays,
            balance_after=totals["coins"],
            reason=delta.reason,
            ref_table=delta.ref_table,
            ref_id=str(delta.ref_id) if delta.ref_id is not None else None,
            idempotency_key=idempotency_key,
            meta=delta.meta,
        )
        if idempotency_key:
            stmt = stmt.on_conflict_do_nothing(index_elements=["idempotency_key"])

        transaction_id = self.db.execute(
            stmt.returning(LedgerEntry.__table__.c.id)
        ).scalar_one_or_none()

        if transaction_id is None:
            # 같은 키가 이미 반영됨 → apply 단계 생략
            return self._already_applied(idempotency_key)

        # apply 단계: 원장 insert 와 같은 트랜잭션에서 누계 반영
        self.db.execute(
            update(UserStats.__table__)
            .where(UserStats.__table__.c.user_id == account_uuid)
            .values(**totals, updated_at=func.now())
        )
        self.db.commit()

        return LedgerAppendResult(
            applied=True,
            transaction_id=transaction_id,
            balance_after=totals["coins"],
        )

    def _find_applied(self, idempotency_key: str):
        return self.db.execute(
            select(LedgerEntry.id, LedgerEntry.balance_after).where(
                LedgerEntry.idempotency_key == idempotency_key
            )
        ).first()

    def _already_applied(self, idempotency_key: Optional[str]) -> LedgerAppendResult:
        existing = self._find_applied(idempotency_key) if idempotency_key else None
        self.db.commit()
        logger.info(f"Ledger entry already applied (idempotency_key={idempotency_key})")
        return LedgerAppendResult(
            applied=False,
            transaction_id=existing.id if existing else None,
            balance_after=existing.balance_after if existing else None,
        )

    def list_entries(
        self, account_id: Any, limit: int = 50, offset: int = 0
    ) -> LedgerHistoryResponse:
        """계정의 원장 내역 (최신순) + 전체 건수"""
        account_uuid = to_account_uuid(account_id)
        empty = LedgerHistoryResponse(entries=[], total_count=0, has_next=False)

        def query() -> LedgerHistoryResponse:
            total_count = self.db.execute(
                select(func.count())
                .select_from(LedgerEntry)
                .where(LedgerEntry.user_id == account_uuid)
            ).scalar_one()
            rows = (
                self.db.execute(
                    select(LedgerEntry)
                    .where(LedgerEntry.user_id == account_uuid)
                    .order_by(LedgerEntry.created_at.desc(), LedgerEntry.id.desc())
                    .limit(limit)
                    .offset(offset)
                )
                .scalars()
                .all()
            )
            return LedgerHistoryResponse(
                entries=[self._to_entry(row) for row in rows],
                total_count=total_count,
                has_next=offset + len(rows) < total_count,
            )

        return self._read_or_default(query, empty)
