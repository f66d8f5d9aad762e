import uuid
from typing import Optional

from sqlalchemy import BigInteger, Boolean, Integer, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from retroapi.models.base import BaseModel


class ShopItem(BaseModel):
    """상점 상품 - 가격(코인/티켓)과 구매 시 지급되는 보상 델타"""

    __tablename__ = "shop_items"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    item_key: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    title: Mapped[str] = mapped_column(Text, nullable=False, default="")
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    item_type: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # price_type: 'coins' | 'tickets' | NULL (가격 값으로 추론)
    price_type: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    price_coins: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    price_tickets: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    wallet_coins_delta: Mapped[int] = mapped_column(
        BigInteger, nullable=False, default=0
    )
    wallet_tickets_delta: Mapped[int] = mapped_column(
        BigInteger, nullable=False, default=0
    )
    wallet_exp_delta: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    wallet_plays_delta: Mapped[int] = mapped_column(
        BigInteger, nullable=False, default=0
    )

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    # archived=True 면 목록에서 숨김 (구매도 불가)
    archived: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    sort_order: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
