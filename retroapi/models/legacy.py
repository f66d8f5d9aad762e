"""
LEGACY / BRIDGE 테이블 (TEXT 기반 user_id)

정본은 user_stats + transactions 이며, 이 테이블들은 마이그레이션 이전 계정을
읽기 위한 fallback 용도로만 남겨둔다. 이 서비스는 더 이상 쓰지 않는다.
"""

from sqlalchemy import BigInteger, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from retroapi.models.base import BaseModel, UpdatedAtMixin


class UserProgress(BaseModel, UpdatedAtMixin):
    __tablename__ = "user_progress"

    user_id: Mapped[str] = mapped_column(Text, primary_key=True)
    exp: Mapped[int] = mapped_column(BigInteger, nullable=False, server_default="0")
    level: Mapped[int] = mapped_column(
        Integer, nullable=False, server_default="1"
    )
    tickets: Mapped[int] = mapped_column(
        BigInteger, nullable=False, server_default="0"
    )


class WalletBalance(BaseModel):
    __tablename__ = "wallet_balances"

    user_id: Mapped[str] = mapped_column(Text, primary_key=True)
    balance: Mapped[int] = mapped_column(
        BigInteger, nullable=False, server_default="0"
    )
