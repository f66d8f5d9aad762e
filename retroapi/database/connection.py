from functools import lru_cache

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import sessionmaker

from retroapi.config import settings


@lru_cache
def get_engine(database_url: str) -> Engine:
    """URL 단위로 엔진을 1개만 생성해서 재사용 (요청 간 재연결 비용 방지)"""
    url = make_url(database_url)
    if url.get_backend_name() != "postgresql":
        return create_engine(url, echo=settings.DEBUG)

    return create_engine(
        url,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_pre_ping=True,  # 연결 유효성 검사
        pool_recycle=3600,  # 1시간마다 연결 재생성
        echo=settings.DEBUG,  # 디버그 모드에서 SQL 로깅
        connect_args={
            "connect_timeout": settings.DB_CONNECT_TIMEOUT_SECONDS,
            # 서버 측 쿼리 타임아웃, 초과 시 57014(query_canceled)
            "options": f"-c statement_timeout={settings.DB_STATEMENT_TIMEOUT_MS}",
        },
    )


@lru_cache
def get_session_factory(database_url: str) -> sessionmaker:
    # Use expire_on_commit=False to avoid DetachedInstanceError when accessing
    # attributes after commit within the same request scope (common FastAPI pattern).
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=get_engine(database_url),
        expire_on_commit=False,
    )


def redact_database_url(database_url: str) -> str:
    """로그/에러 메시지용: 비밀번호만 *** 로 가린 URL"""
    try:
        return make_url(database_url).render_as_string(hide_password=True)
    except Exception:
        return "invalid://***"
