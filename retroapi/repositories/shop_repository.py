from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from retroapi.models.shop import ShopItem
from retroapi.repositories.base import BaseRepository
from retroapi.schemas.shop import ShopItemResponse


class ShopRepository(BaseRepository[ShopItem, ShopItemResponse]):
    """상점 상품 조회 (읽기 전용)"""

    def __init__(self, db: Session):
        super().__init__(ShopItem, ShopItemResponse, db)

    def _visible(self):
        return select(ShopItem).where(
            ShopItem.is_active.is_(True), ShopItem.archived.is_(False)
        )

    def get_active_item(self, item_key: str) -> Optional[ShopItemResponse]:
        key = (item_key or "").strip()
        if not key:
            return None

        stmt = self._visible().where(ShopItem.item_key == key)
        item = self._read_or_default(
            lambda: self.db.execute(stmt).scalar_one_or_none(), None
        )
        return self._to_schema(item)

    def list_active_items(
        self, item_type: Optional[str] = None
    ) -> List[ShopItemResponse]:
        """
        진열 중인 상품 목록

        정렬: sort_order (NULL 은 뒤로) → price_coins → title
        shop_items 테이블이 없으면 빈 목록
        """
        stmt = self._visible()
        kind = (item_type or "").strip()
        if kind:
            stmt = stmt.where(ShopItem.item_type == kind)
        stmt = stmt.order_by(
            ShopItem.sort_order.asc().nulls_last(),
            ShopItem.price_coins.asc(),
            ShopItem.title.asc(),
        )

        items = self._read_or_default(
            lambda: self.db.execute(stmt).scalars().all(), []
        )
        return [self._to_schema(item) for item in items]
