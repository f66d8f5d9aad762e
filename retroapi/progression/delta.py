"""
진행도 델타(증감치) 계산

여기서는 "정책"만 정의하고 실제 DB 반영은 LedgerRepository.append 가 담당한다.
이 모듈의 함수들은 저장소를 건드리지 않는 순수 함수다.
"""

from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Any, Dict, Optional

from retroapi.progression.numeric import MAX_SAFE_INTEGER, to_decimal, to_signed_int
from retroapi.progression.rules import RewardRuleBook, normalize_game_id


@dataclass(frozen=True)
class ProgressionDelta:
    """
    "얼마나 변경할 것인가"

    - coins: 코인(포인트) 증감, 양수=적립 / 음수=차감
    - exp, tickets, plays: 경험치 / 티켓 / 플레이 횟수 증감
    - idempotency_key: 같은 키로 여러 번 반영되어도 1번만 적용
    - fallback_type: 코인 변동이 0 일 때 원장 type 태그 (reward / event)
    - enforce_balance: True 면 차감 후 잔액이 음수가 되는 경우 반영하지 않음 (구매)
    """

    account_id: str
    coins: int = 0
    exp: int = 0
    tickets: int = 0
    plays: int = 0
    reason: Optional[str] = None
    ref_table: Optional[str] = None
    ref_id: Optional[str] = None
    idempotency_key: Optional[str] = None
    meta: Optional[Dict[str, Any]] = field(default=None, compare=False)
    fallback_type: str = "reward"
    enforce_balance: bool = False

    @property
    def is_empty(self) -> bool:
        return not any(
            to_signed_int(v) for v in (self.coins, self.exp, self.tickets, self.plays)
        )

    @property
    def transaction_type(self) -> str:
        amount = to_signed_int(self.coins)
        if amount > 0:
            return "earn"
        if amount < 0:
            return "spend"
        return self.fallback_type

    @property
    def is_within_safe_range(self) -> bool:
        """모든 증감치의 절대값이 MAX_SAFE_INTEGER 이하"""
        return all(
            abs(to_signed_int(v)) <= MAX_SAFE_INTEGER
            for v in (self.coins, self.exp, self.tickets, self.plays)
        )

    def with_idempotency_key(self, key: Optional[str]) -> "ProgressionDelta":
        return replace(self, idempotency_key=key)


def _plain_number(value: Decimal):
    """JSON 메타에 넣을 수 있는 int/float 로 변환"""
    return int(value) if value == value.to_integral_value() else float(value)


def _safe_score(score: Any) -> Decimal:
    value = to_decimal(score)
    if value is None or value <= 0:
        return Decimal(0)
    return value


def compute_game_delta(
    account_id: str,
    game: str,
    score: Any,
    rules: Optional[RewardRuleBook] = None,
    meta: Optional[Dict[str, Any]] = None,
) -> ProgressionDelta:
    """게임 한 판 결과 → 경험치/코인/티켓/플레이 델타"""
    rules = rules or RewardRuleBook.default()
    game_id = normalize_game_id(game)
    rule = rules.lookup(game_id)
    safe_score = _safe_score(score)

    base_meta = {**(meta or {}), "game": game_id, "score": _plain_number(safe_score)}
    reason = f"play_{game_id}"

    if rule.min_score_for_reward and safe_score < rule.min_score_for_reward:
        # 최저 점수 미달 → 보상 없이 플레이 횟수만 +1
        return ProgressionDelta(
            account_id=account_id,
            plays=1,
            reason=reason,
            meta={**base_meta, "noReward": True},
        )

    # Decimal 곱셈 후 int() 로 버림 (반올림 아님), MAX_SAFE_INTEGER 로 상한
    return ProgressionDelta(
        account_id=account_id,
        coins=min(int(safe_score * rule.coin_per_score), MAX_SAFE_INTEGER),
        exp=min(int(safe_score * rule.xp_per_score), MAX_SAFE_INTEGER),
        tickets=rule.tickets_per_play,
        plays=1,
        reason=reason,
        meta=base_meta,
    )


def merge_deltas(*deltas: ProgressionDelta) -> ProgressionDelta:
    """
    여러 델타를 하나로 합친다.

    - account_id 가 다르면 ValueError
    - reason / ref / idempotency_key 는 마지막으로 값을 가진 델타 기준
    - meta 는 순서대로 덮어쓰며 병합
    """
    if not deltas:
        raise ValueError("merge_deltas: at least one delta is required")

    base_account = (deltas[0].account_id or "").strip()
    if not base_account:
        raise ValueError("merge_deltas: first delta must have account_id")

    coins = exp = tickets = plays = 0
    reason = ref_table = ref_id = idempotency_key = None
    meta: Optional[Dict[str, Any]] = None
    fallback_type = deltas[0].fallback_type
    enforce_balance = False

    for delta in deltas:
        if (delta.account_id or "").strip() != base_account:
            raise ValueError("merge_deltas: all deltas must have the same account_id")

        coins += to_signed_int(delta.coins)
        exp += to_signed_int(delta.exp)
        tickets += to_signed_int(delta.tickets)
        plays += to_signed_int(delta.plays)

        if delta.reason is not None:
            reason = delta.reason
        if delta.ref_table is not None:
            ref_table = delta.ref_table
        if delta.ref_id is not None:
            ref_id = delta.ref_id
        if delta.idempotency_key is not None:
            idempotency_key = delta.idempotency_key
        if delta.meta:
            meta = {**(meta or {}), **delta.meta}
        fallback_type = delta.fallback_type
        enforce_balance = enforce_balance or delta.enforce_balance

    return ProgressionDelta(
        account_id=base_account,
        coins=coins,
        exp=exp,
        tickets=tickets,
        plays=plays,
        reason=reason,
        ref_table=ref_table,
        ref_id=ref_id,
        idempotency_key=idempotency_key,
        meta=meta,
        fallback_type=fallback_type,
        enforce_balance=enforce_balance,
    )
