"""
기본 상점 상품 시드 스크립트
티켓 패키지 3종 + 경험치 부스트 2종 (item_key 기준, 여러 번 실행해도 안전)
"""

import logging
import os
import sys

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import select  # noqa: E402

from retroapi.config import settings  # noqa: E402
from retroapi.database.connection import get_session_factory  # noqa: E402
from retroapi.logging_config import setup_logging  # noqa: E402
from retroapi.models.shop import ShopItem  # noqa: E402

logger = logging.getLogger("retroapi")

# (item_key, item_type, title, description, price_coins, tickets_delta, exp_delta)
DEFAULT_SHOP_ITEMS = [
    ("ticket_small", "ticket", "티켓 소량 패키지", "게임 보상용 티켓 5장을 즉시 획득합니다.", 500, 5, 0),
    ("ticket_medium", "ticket", "티켓 중간 패키지", "티켓 10장을 획득하는 중간 패키지입니다.", 900, 10, 0),
    ("ticket_large", "ticket", "티켓 대량 패키지", "티켓 20장을 한 번에 획득하는 대량 패키지입니다.", 1700, 20, 0),
    ("exp_boost_10", "booster", "경험치 부스트 (소)", "경험치 100을 즉시 획득합니다.", 300, 0, 100),
    ("exp_boost_20", "booster", "경험치 부스트 (대)", "경험치 250을 즉시 획득합니다.", 600, 0, 250),
]


def seed_shop_items():
    """기본 상점 상품 시드 (이미 있으면 가격/보상만 갱신)"""
    db = get_session_factory(settings.DATABASE_URL)()
    try:
        for order, (key, item_type, title, description, price, tickets, exp) in enumerate(
            DEFAULT_SHOP_ITEMS, start=1
        ):
            item = db.execute(
                select(ShopItem).where(ShopItem.item_key == key)
            ).scalar_one_or_none()
            if item is None:
                item = ShopItem(item_key=key)
                db.add(item)

            item.item_type = item_type
            item.title = title
            item.description = description
            item.price_type = "coins"
            item.price_coins = price
            item.price_tickets = 0
            item.wallet_tickets_delta = tickets
            item.wallet_exp_delta = exp
            item.is_active = True
            item.archived = False
            item.sort_order = order * 10

        db.commit()
        logger.info(f"Seeded {len(DEFAULT_SHOP_ITEMS)} shop items")
    except Exception:
        db.rollback()
        logger.exception("Shop item seed failed")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    setup_logging(settings.LOG_LEVEL)
    seed_shop_items()
