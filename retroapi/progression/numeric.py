"""
숫자 정규화 유틸

드라이버/컬럼에 따라 int, Decimal(numeric), str 등으로 들어오는 값을
안전한 정수로 맞춘다. 두 함수 모두 예외를 던지지 않는다.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Optional

# JS Number.MAX_SAFE_INTEGER 와 동일한 상한 (프론트가 그대로 number 로 다룰 수 있는 최대값)
MAX_SAFE_INTEGER = 2**53 - 1


def to_decimal(value: Any) -> Optional[Decimal]:
    """유한한 Decimal 로 변환, 불가능하면 None"""
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        return Decimal(value)
    elif isinstance(value, float):
        # repr 기반 변환: 0.1 이 0.1000000000000000055... 로 늘어나지 않게
        result = Decimal(repr(value)) if value == value else Decimal("NaN")
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            result = Decimal(text)
        except InvalidOperation:
            return None
    else:
        return None

    return result if result.is_finite() else None


def normalize(value: Any) -> int:
    """
    지갑/스탯 노출용 0 이상 정수

    - None / NaN / Infinity / 파싱 불가 → 0
    - 음수 → 0
    - 소수 → 버림
    - MAX_SAFE_INTEGER 초과 → MAX_SAFE_INTEGER
    """
    number = to_decimal(value)
    if number is None or number <= 0:
        return 0
    return min(int(number), MAX_SAFE_INTEGER)


def to_signed_int(value: Any) -> int:
    """델타용 부호 있는 정수 (0 방향 버림, 변환 불가 → 0)"""
    number = to_decimal(value)
    if number is None:
        return 0
    return int(number)
