"""
DB 호출 복원력 유틸

- 일시적 오류(타임아웃/연결 끊김/직렬화 실패 등) 판별
- "relation does not exist" 류의 스키마 미존재 오류 판별
- 지수 백오프 재시도 정책 (RetryPolicy)

쿼리 1회 타임아웃은 connection.get_engine 에서 Postgres statement_timeout 으로 건다.
타임아웃이 발생하면 57014(query_canceled) 로 실패하며, 여기서 일시적 오류로 분류된다.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

from sqlalchemy.exc import DBAPIError, DisconnectionError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

T = TypeVar("T")

# query_canceled(statement_timeout), serialization_failure, deadlock_detected,
# too_many_connections, cannot_connect_now
TRANSIENT_PGCODES = {"57014", "40001", "40P01", "53300", "57P03"}

TRANSIENT_MESSAGE_HINTS = (
    "timeout",
    "timed out",
    "temporar",
    "connection",
    "network",
    "reset",
    "try again",
    "server closed",
    "503",
    "502",
    "429",
)

MISSING_RELATION_PGCODE = "42P01"


def _pgcode(exc: BaseException) -> Optional[str]:
    orig = getattr(exc, "orig", None)
    return getattr(orig, "pgcode", None) or getattr(exc, "pgcode", None)


def is_missing_relation(exc: BaseException) -> bool:
    """테이블/뷰 미존재 오류 여부 (마이그레이션 전 초기 배포 상태)"""
    if _pgcode(exc) == MISSING_RELATION_PGCODE:
        return True

    msg = str(exc).lower()
    return (
        "no such table" in msg
        or "unknown relation" in msg
        or ("relation" in msg and "does not exist" in msg)
    )


def is_transient_error(exc: BaseException) -> bool:
    """재시도해볼 만한 일시적인 오류인지 판별"""
    if isinstance(exc, (PoolTimeoutError, DisconnectionError)):
        return True

    if not isinstance(exc, SQLAlchemyError):
        return False

    if is_missing_relation(exc):
        return False

    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return True

    code = _pgcode(exc)
    if code is not None:
        # Class 08: connection exception
        return code in TRANSIENT_PGCODES or code.startswith("08")

    msg = str(getattr(exc, "orig", None) or exc).lower()
    return any(hint in msg for hint in TRANSIENT_MESSAGE_HINTS)


@dataclass(frozen=True)
class RetryPolicy:
    """
    지수 백오프 재시도 정책

    max_retries=3, base_delay=0.2, factor=2 이면
    최초 시도 + 재시도 3회 = 최대 4번, 대기 0.2 → 0.4 → 0.8 초
    """

    max_retries: int = 3
    base_delay: float = 0.2
    backoff_factor: float = 2.0
    sleep: Callable[[float], None] = time.sleep

    @classmethod
    def from_settings(cls, settings) -> "RetryPolicy":
        return cls(
            max_retries=settings.DB_MAX_RETRIES,
            base_delay=settings.DB_RETRY_BASE_DELAY_MS / 1000,
            backoff_factor=settings.DB_RETRY_BACKOFF_FACTOR,
        )

    def delay_for(self, attempt: int) -> float:
        return self.base_delay * (self.backoff_factor**attempt)

    def run(self, db: Session, operation: Callable[[], T]) -> T:
        """operation 을 실행하고, 일시적 오류면 세션을 롤백한 뒤 재시도"""
        attempt = 0
        while True:
            try:
                return operation()
            except Exception as e:
                if attempt >= self.max_retries or not is_transient_error(e):
                    raise

                delay = self.delay_for(attempt)
                logger.warning(
                    f"Transient database error (attempt {attempt + 1}/{self.max_retries + 1}), "
                    f"retrying in {delay:.2f}s: {e}"
                )
                if db.in_transaction():
                    db.rollback()
                self.sleep(delay)
                attempt += 1
