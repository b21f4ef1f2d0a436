import enum
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Enum, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from coinapi.models.base import BaseModel


class AccountStatus(str, enum.Enum):
    """계정 상태 (소프트 상태만 존재, 하드 삭제 없음)"""

    STANDARD = "STANDARD"
    PREMIUM = "PREMIUM"
    BANNED = "BANNED"


class Account(BaseModel):
    """
    지갑 주소로 식별되는 계정

    - wallet_address 는 대소문자를 구분하는 불투명 문자열
    - referrer_address 는 생성 시 한 번만 기록되며 이후 변경되지 않음
      (이미 존재하는 계정만 추천인이 될 수 있으므로 순환이 생기지 않음)
    - left_node/right_node/total_eq 는 외부 이진 트리에서 보고된 값 (스태미나 계산용)
    """

    __tablename__ = "accounts"
    __table_args__ = (Index("idx_accounts_referrer", "referrer_address"),)

    wallet_address: Mapped[str] = mapped_column(String(64), primary_key=True)
    referrer_address: Mapped[Optional[str]] = mapped_column(
        String(64), ForeignKey("accounts.wallet_address"), nullable=True
    )
    status: Mapped[AccountStatus] = mapped_column(
        Enum(AccountStatus), default=AccountStatus.STANDARD, nullable=False
    )
    last_active_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    left_node: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    right_node: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_eq: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    def __repr__(self):
        return f"<Account(wallet_address={self.wallet_address}, status={self.status})>"

    @property
    def is_banned(self) -> bool:
        return self.status == AccountStatus.BANNED
