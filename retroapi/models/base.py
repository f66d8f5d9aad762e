from sqlalchemy import JSON, BigInteger, Column, DateTime, Integer, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base, declared_attr

Base = declarative_base()

# SQLite 는 INTEGER PRIMARY KEY 만 자동 증가하므로 variant 로 맞춘다
BigIntPK = BigInteger().with_variant(Integer(), "sqlite")
JSONType = JSON().with_variant(JSONB(), "postgresql")


class CreatedAtMixin:
    @declared_attr
    def created_at(cls):
        return Column(
            DateTime(timezone=True), server_default=func.now(), nullable=False
        )


class UpdatedAtMixin:
    @declared_attr
    def updated_at(cls):
        return Column(
            DateTime(timezone=True),
            server_default=func.now(),
            onupdate=func.now(),
            nullable=False,
        )


class BaseModel(Base):
    """모든 모델의 베이스 클래스"""

    __abstract__ = True
