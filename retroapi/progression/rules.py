"""
게임별 보상 규칙

규칙표는 불변 객체(RewardRuleBook)로 만들어 DeltaCalculator 에 주입한다.
테스트나 이벤트 기간에는 다른 규칙표를 만들어 넘기면 된다.
"""

from dataclasses import dataclass
from decimal import Decimal
from types import MappingProxyType
from typing import Mapping, Optional


@dataclass(frozen=True)
class RewardRule:
    xp_per_score: Decimal  # 점수 1점당 경험치
    coin_per_score: Decimal  # 점수 1점당 코인
    tickets_per_play: int  # 1판당 티켓
    min_score_for_reward: Optional[Decimal] = None  # 이 점수 미만이면 보상 없음

    @classmethod
    def of(
        cls,
        xp_per_score,
        coin_per_score,
        tickets_per_play: int = 0,
        min_score_for_reward=None,
    ) -> "RewardRule":
        return cls(
            xp_per_score=Decimal(str(xp_per_score)),
            coin_per_score=Decimal(str(coin_per_score)),
            tickets_per_play=int(tickets_per_play),
            min_score_for_reward=(
                Decimal(str(min_score_for_reward))
                if min_score_for_reward is not None
                else None
            ),
        )


DEFAULT_GAME_RULE = RewardRule.of(
    xp_per_score=1, coin_per_score=0, tickets_per_play=0, min_score_for_reward=0
)

GAME_RULES: Mapping[str, RewardRule] = MappingProxyType(
    {
        "brick-breaker": RewardRule.of(1, "0.01", 1, 10),
        "tetris": RewardRule.of("0.5", "0.005", 1, 5),
        "dino-runner": RewardRule.of("0.2", "0.002", 0, 0),
    }
)


def normalize_game_id(game: Optional[str]) -> str:
    return (game or "").strip().lower()


class RewardRuleBook:
    """게임 식별자 → RewardRule 조회 (등록되지 않은 게임은 기본 규칙)"""

    def __init__(
        self,
        rules: Mapping[str, RewardRule],
        default_rule: RewardRule = DEFAULT_GAME_RULE,
    ):
        self._rules = MappingProxyType(
            {normalize_game_id(game): rule for game, rule in rules.items()}
        )
        self.default_rule = default_rule

    @classmethod
    def default(cls) -> "RewardRuleBook":
        return cls(GAME_RULES, DEFAULT_GAME_RULE)

    @property
    def rules(self) -> Mapping[str, RewardRule]:
        return self._rules

    def lookup(self, game: Optional[str]) -> RewardRule:
        return self._rules.get(normalize_game_id(game), self.default_rule)

    def __contains__(self, game: object) -> bool:
        return isinstance(game, str) and normalize_game_id(game) in self._rules
