from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class ShopItemResponse(BaseModel):
    """상점 상품 (목록 노출 + 구매 처리에 필요한 필드)"""

    id: UUID
    item_key: str
    title: str = ""
    description: Optional[str] = None
    item_type: Optional[str] = None
    price_type: Optional[str] = None
    price_coins: int = 0
    price_tickets: int = 0
    wallet_coins_delta: int = 0
    wallet_tickets_delta: int = 0
    wallet_exp_delta: int = 0
    wallet_plays_delta: int = 0
    sort_order: Optional[int] = None
    is_active: bool = True

    class Config:
        from_attributes = True


class ShopItemListResponse(BaseModel):
    ok: bool = True
    items: List[ShopItemResponse]
    count: int = Field(..., ge=0)

    @classmethod
    def of(cls, items: List[ShopItemResponse]) -> "ShopItemListResponse":
        return cls(items=items, count=len(items))
