import hashlib
import logging
import re
import uuid
from dataclasses import replace
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from retroapi.core.exceptions import (
    IdempotencyKeyError,
    InsufficientBalanceError,
    NotFoundError,
    ValidationError,
)
from retroapi.database.resilience import RetryPolicy
from retroapi.progression.delta import ProgressionDelta, compute_game_delta
from retroapi.progression.numeric import MAX_SAFE_INTEGER, normalize, to_decimal
from retroapi.progression.rules import RewardRuleBook, normalize_game_id
from retroapi.repositories.ledger_repository import (
    DeltaOutOfRangeError,
    InsufficientFundsError,
    LedgerAppendResult,
    LedgerRepository,
)
from retroapi.repositories.shop_repository import ShopRepository
from retroapi.repositories.stats_sources import (
    CanonicalStatsSource,
    LegacyStatsSource,
)
from retroapi.schemas.shop import ShopItemResponse
from retroapi.schemas.wallet import (
    DeltaResponse,
    LedgerHistoryResponse,
    PaidResponse,
    ProgressionResult,
    WalletSnapshot,
)
from retroapi.services.stats_reconciler import StatsReconciler

logger = logging.getLogger(__name__)

IDEMPOTENCY_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.:\-]{1,128}$")
PAY_WITH_OPTIONS = ("coins", "tickets")


def validate_account_id(account_id: Any) -> str:
    try:
        return str(uuid.UUID(str(account_id).strip()))
    except (TypeError, ValueError):
        raise ValidationError("Invalid account id", {"account_id": str(account_id)})


def validate_idempotency_key(key: Optional[str], required: bool = False) -> Optional[str]:
    """1~128자, [A-Za-z0-9_.:-] 만 허용"""
    value = (key or "").strip()
    if not value:
        if required:
            raise IdempotencyKeyError("Idempotency key is required")
        return None
    if not IDEMPOTENCY_KEY_PATTERN.match(value):
        raise IdempotencyKeyError(
            "Malformed idempotency key",
            {"pattern": IDEMPOTENCY_KEY_PATTERN.pattern, "length": len(value)},
        )
    return value


def derive_run_key(account: str, run_id: str) -> str:
    """
    run:<account>:<run_id>

    run_id 가 키 패턴을 벗어나거나 너무 길면 sha256 앞 32자로 대체한다.
    """
    key = f"run:{account}:{run_id}"
    if IDEMPOTENCY_KEY_PATTERN.match(key):
        return key
    digest = hashlib.sha256(run_id.encode("utf-8")).hexdigest()[:32]
    return f"run:{account}:sha256-{digest}"


def validate_score(score: Any) -> Any:
    """MAX_SAFE_INTEGER 를 넘는 유한 점수는 거부 (NaN/음수/파싱 불가는 0 점으로 처리됨)"""
    value = to_decimal(score)
    if value is not None and value > MAX_SAFE_INTEGER:
        raise ValidationError(
            "Score out of range", {"score": str(score), "max": MAX_SAFE_INTEGER}
        )
    return score


class ProgressionService:
    """게임 종료 / 이벤트 보상 / 상점 구매 / 잔액·내역 조회"""

    def __init__(self, db: Session, rules: RewardRuleBook, retry_policy: RetryPolicy):
        self.db = db
        self.rules = rules
        self.retry_policy = retry_policy
        self.ledger_repo = LedgerRepository(db)
        self.shop_repo = ShopRepository(db)
        self.reconciler = StatsReconciler(
            CanonicalStatsSource(db), LegacyStatsSource(db)
        )

    def _append(self, delta: ProgressionDelta) -> LedgerAppendResult:
        try:
            return self.retry_policy.run(
                self.db, lambda: self.ledger_repo.append(delta)
            )
        except DeltaOutOfRangeError as e:
            raise ValidationError(
                "Delta out of range", {"max": MAX_SAFE_INTEGER, "reason": str(e)}
            )

    def _result(
        self,
        account_id: str,
        delta: ProgressionDelta,
        appended: LedgerAppendResult,
        paid: Optional[PaidResponse] = None,
    ) -> ProgressionResult:
        snapshot = self.get_snapshot(account_id)
        return ProgressionResult(
            applied=appended.applied,
            transaction_id=appended.transaction_id,
            delta=DeltaResponse(
                coins=delta.coins,
                exp=delta.exp,
                tickets=delta.tickets,
                plays=delta.plays,
                reason=delta.reason,
                meta=delta.meta,
            ),
            wallet=snapshot.wallet_view(),
            stats=snapshot.stats_view(),
            paid=paid,
        )

    def finish_game(
        self,
        account_id: str,
        game: str,
        score: Any,
        meta: Optional[Dict[str, Any]] = None,
        idempotency_key: Optional[str] = None,
        run_id: Optional[str] = None,
    ) -> ProgressionResult:
        """
        게임 한 판 결과 반영

        멱등 키 우선순위: Idempotency-Key 헤더 > run:<account>:<run_id> (derive_run_key) > 없음
        """
        account = validate_account_id(account_id)
        if not normalize_game_id(game):
            raise ValidationError("Game id is required")

        validate_score(score)

        key = validate_idempotency_key(idempotency_key)
        run = (run_id or "").strip() or None
        if key is None and run is not None:
            key = derive_run_key(account, run)

        delta = compute_game_delta(account, game, score, rules=self.rules, meta=meta)
        delta = delta.with_idempotency_key(key)
        if run is not None:
            delta = replace(delta, ref_table="game_runs", ref_id=run)

        appended = self._append(delta)
        logger.info(
            f"finish_game account={account} game={normalize_game_id(game)} "
            f"applied={appended.applied} coins={delta.coins} exp={delta.exp}"
        )
        return self._result(account, delta, appended)

    def grant_reward(
        self,
        account_id: str,
        coins: int = 0,
        exp: int = 0,
        tickets: int = 0,
        reason: str = "event_reward",
        idempotency_key: Optional[str] = None,
    ) -> ProgressionResult:
        """이벤트 보상 지급 (멱등 키 필수, 코인 변동이 없으면 type=event)"""
        account = validate_account_id(account_id)
        key = validate_idempotency_key(idempotency_key, required=True)

        delta = ProgressionDelta(
            account_id=account,
            coins=normalize(coins),
            exp=normalize(exp),
            tickets=normalize(tickets),
            reason=(reason or "").strip() or "event_reward",
            ref_table="wallet_reward",
            idempotency_key=key,
            fallback_type="event",
        )
        if delta.is_empty:
            raise ValidationError("Reward must grant at least one resource")

        appended = self._append(delta)
        logger.info(
            f"grant_reward account={account} key={key} applied={appended.applied}"
        )
        return self._result(account, delta, appended)

    @staticmethod
    def _decide_pay_with(item: ShopItemResponse, requested: Optional[str]) -> str:
        """결제 수단: 요청 > 상품 price_type > 가격 값으로 추론"""
        choice = (requested or "").strip().lower()
        if choice in PAY_WITH_OPTIONS:
            return choice

        price_type = (item.price_type or "").strip().lower()
        if price_type in PAY_WITH_OPTIONS:
            return price_type

        if normalize(item.price_tickets) > 0 and normalize(item.price_coins) <= 0:
            return "tickets"
        return "coins"

    def purchase_item(
        self,
        account_id: str,
        item_key: str,
        pay_with: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> ProgressionResult:
        account = validate_account_id(account_id)
        key = validate_idempotency_key(idempotency_key, required=True)

        item = self.retry_policy.run(
            self.db, lambda: self.shop_repo.get_active_item(item_key)
        )
        if item is None:
            raise NotFoundError("Shop item not found", {"item_key": item_key})

        method = self._decide_pay_with(item, pay_with)
        cost_coins = normalize(item.price_coins) if method == "coins" else 0
        cost_tickets = normalize(item.price_tickets) if method == "tickets" else 0
        if cost_coins <= 0 and cost_tickets <= 0:
            raise ValidationError(
                f"Item has no {method} price", {"item_key": item.item_key}
            )

        delta = ProgressionDelta(
            account_id=account,
            coins=item.wallet_coins_delta - cost_coins,
            exp=item.wallet_exp_delta,
            tickets=item.wallet_tickets_delta - cost_tickets,
            plays=item.wallet_plays_delta,
            reason="SHOP_PURCHASE",
            ref_table="shop_items",
            ref_id=str(item.id),
            idempotency_key=key,
            meta={
                "itemKey": item.item_key,
                "payWith": method,
                "costCoins": cost_coins,
                "costTickets": cost_tickets,
            },
            fallback_type="spend",
            enforce_balance=True,
        )

        try:
            appended = self._append(delta)
        except InsufficientFundsError as e:
            raise InsufficientBalanceError(
                f"Not enough {e.field}",
                {"field": e.field, "available": e.available, "required": e.required},
            )

        logger.info(
            f"purchase_item account={account} item={item.item_key} "
            f"pay_with={method} applied={appended.applied}"
        )
        paid = PaidResponse(pay_with=method, coins=cost_coins, tickets=cost_tickets)
        return self._result(account, delta, appended, paid=paid)

    def list_shop_items(self, item_type: Optional[str] = None) -> List[ShopItemResponse]:
        return self.retry_policy.run(
            self.db, lambda: self.shop_repo.list_active_items(item_type)
        )

    def get_snapshot(self, account_id: str) -> WalletSnapshot:
        account = validate_account_id(account_id)
        return self.retry_policy.run(
            self.db, lambda: self.reconciler.load_snapshot(account)
        )

    def get_balance(
        self, account_id: str
    ) -> Tuple[WalletSnapshot, Dict[str, Dict[str, int]]]:
        """잔액 조회용 스냅샷 + 드리프트 (정본/legacy 를 한 번씩만 읽음)"""
        account = validate_account_id(account_id)
        return self.retry_policy.run(
            self.db, lambda: self.reconciler.load_with_drift(account)
        )

    def audit_drift(self, account_id: str) -> Dict[str, Dict[str, int]]:
        account = validate_account_id(account_id)
        return self.retry_policy.run(
            self.db, lambda: self.reconciler.audit_drift(account)
        )

    def get_history(
        self, account_id: str, limit: int = 50, offset: int = 0
    ) -> LedgerHistoryResponse:
        account = validate_account_id(account_id)
        if limit < 1 or offset < 0:
            raise ValidationError("limit must be >= 1 and offset >= 0")
        return self.retry_policy.run(
            self.db,
            lambda: self.ledger_repo.list_entries(account, limit=limit, offset=offset),
        )
