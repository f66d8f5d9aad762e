"""
exp(경험치) → level 계산 정책

- 0 ~ 999 → 1레벨, 1000 ~ 1999 → 2레벨, ...
- 상한 999 레벨로 클램프
- xp_cap = level × 1000

잔액 조회, 게임 종료, 상점 구매 응답 등 진행도를 내려주는 모든 곳에서
이 함수만 사용해야 레벨 표시가 일관된다.
"""

from typing import Any

from retroapi.progression.numeric import normalize

EXP_PER_LEVEL = 1000
MIN_LEVEL = 1
MAX_LEVEL = 999


def level_from_experience(exp: Any) -> int:
    experience = normalize(exp)
    if experience <= 0:
        return MIN_LEVEL
    level = experience // EXP_PER_LEVEL + 1
    return max(MIN_LEVEL, min(level, MAX_LEVEL))


def experience_cap(level: Any) -> int:
    return max(MIN_LEVEL, normalize(level)) * EXP_PER_LEVEL
