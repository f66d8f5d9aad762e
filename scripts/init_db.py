import logging
import os
import sys

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from retroapi.config import settings  # noqa: E402
from retroapi.database.connection import get_engine, redact_database_url  # noqa: E402
from retroapi.logging_config import setup_logging  # noqa: E402
from retroapi.models import legacy, shop, wallet  # noqa: E402,F401
from retroapi.models.base import Base  # noqa: E402

logger = logging.getLogger("retroapi")


def init_db():
    """데이터베이스 초기화 (정본/legacy/상점 테이블 create if not exists)"""
    engine = get_engine(settings.DATABASE_URL)
    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
        logger.info(
            f"Database initialized: {redact_database_url(settings.DATABASE_URL)}"
        )
    except Exception:
        logger.exception("Database initialization failed")
        raise


if __name__ == "__main__":
    setup_logging(settings.LOG_LEVEL)
    init_db()
