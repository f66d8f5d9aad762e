from retroapi.config import settings
from retroapi.database.connection import get_session_factory


def get_db():
    db = get_session_factory(settings.DATABASE_URL)()
    try:
        yield db
    except Exception:
        if db.in_transaction():
            db.rollback()
        raise
    finally:
        db.close()
