import logging

from sqlalchemy.engine import Connection, Engine
from typing import Union

from retroapi.models.base import Base
from retroapi.models.wallet import LedgerEntry, UserStats

logger = logging.getLogger(__name__)

PROGRESSION_TABLES = [UserStats.__table__, LedgerEntry.__table__]


def ensure_progression_schema(bind: Union[Engine, Connection]) -> None:
    """정본 테이블(user_stats, transactions)을 create if not exists 로 보강"""
    logger.warning("Progression schema missing, creating tables if not exist")
    Base.metadata.create_all(bind=bind, tables=PROGRESSION_TABLES, checkfirst=True)
