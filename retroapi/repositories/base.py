import logging
import uuid
from abc import ABC
from typing import Any, Callable, Generic, Optional, Type, TypeVar, Union

from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from retroapi.database.resilience import is_missing_relation

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")
SchemaType = TypeVar("SchemaType", bound=BaseModel)


def to_account_uuid(account_id: Union[str, uuid.UUID]) -> uuid.UUID:
    """계정 식별자 → uuid.UUID (UUID 형태가 아니면 ValueError)"""
    if isinstance(account_id, uuid.UUID):
        return account_id
    return uuid.UUID(str(account_id).strip())


class BaseRepository(Generic[T, SchemaType], ABC):
    """모든 리포지토리의 베이스 클래스 - Pydantic 응답 보장"""

    def __init__(
        self, model_class: Type[T], schema_class: Type[SchemaType], db: Session
    ):
        self.model_class = model_class
        self.schema_class = schema_class
        self.db = db

    def _to_schema(self, model_instance: Any) -> Optional[SchemaType]:
        """SQLAlchemy 모델을 Pydantic 스키마로 변환"""
        if model_instance is None:
            return None
        return self.schema_class.model_validate(model_instance)

    def _read_or_default(self, query: Callable[[], R], default: R) -> R:
        """
        읽기 전용 쿼리 실행

        테이블이 아직 없으면(마이그레이션 전) 세션을 롤백하고 default 를 돌려준다.
        그 외 DB 오류는 그대로 전파한다.
        """
        try:
            return query()
        except SQLAlchemyError as e:
            if not is_missing_relation(e):
                raise
            logger.info(f"{self.model_class.__name__}: relation missing, using default")
            self.db.rollback()
            return default
