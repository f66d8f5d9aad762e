import os
import uuid

os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from retroapi.database.resilience import RetryPolicy  # noqa: E402
from retroapi.models import legacy, shop, wallet  # noqa: E402,F401
from retroapi.models.base import Base  # noqa: E402


def _memory_engine():
    return create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


@pytest.fixture
def bare_engine():
    """테이블이 하나도 없는 인메모리 DB (마이그레이션 전 상태)"""
    engine = _memory_engine()
    yield engine
    engine.dispose()


@pytest.fixture
def engine(bare_engine):
    Base.metadata.create_all(bind=bare_engine)
    return bare_engine


def _session(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)()


@pytest.fixture
def db_session(engine):
    session = _session(engine)
    yield session
    session.close()


@pytest.fixture
def bare_session(bare_engine):
    session = _session(bare_engine)
    yield session
    session.close()


@pytest.fixture
def account_id():
    return str(uuid.uuid4())


@pytest.fixture
def retry_policy():
    """sleep 없이 동작하는 재시도 정책"""
    return RetryPolicy(max_retries=3, base_delay=0.2, backoff_factor=2.0, sleep=lambda _: None)
