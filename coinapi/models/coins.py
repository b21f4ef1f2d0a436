"""
코인 시스템 데이터 모델

계정별 4종 하위 잔액(Experience/Achievement/Social/Premium)과 합계를 보관하는
잔액 테이블, 그리고 모든 변동을 기록하는 불변 원장(CoinTransaction)을 정의합니다.
잔액 행은 LedgerService 를 통해서만 변경됩니다.
"""

import enum
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    JSON,
    BigInteger,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from coinapi.models.base import BaseModel


class CoinType(str, enum.Enum):
    EXPERIENCE = "EXPERIENCE"
    ACHIEVEMENT = "ACHIEVEMENT"
    SOCIAL = "SOCIAL"
    PREMIUM = "PREMIUM"


class CoinTransactionType(str, enum.Enum):
    EARNED = "EARNED"
    SPENT = "SPENT"
    TRANSFERRED = "TRANSFERRED"
    NONE = "NONE"


class CoinSourceType(str, enum.Enum):
    GAME_PLAY = "GAME_PLAY"
    TOURNAMENT = "TOURNAMENT"
    TRANSFER = "TRANSFER"
    WITHDRAWAL = "WITHDRAWAL"
    DEPOSIT = "DEPOSIT"
    ADMIN = "ADMIN"
    REFERRAL = "REFERRAL"
    REGISTRATION = "REGISTRATION"
    ACHIEVEMENT = "ACHIEVEMENT"
    DAILY_LOGIN = "DAILY_LOGIN"
    BONUS = "BONUS"
    OTHER = "OTHER"


class CoinBalance(BaseModel):
    """
    계정별 코인 잔액

    불변식: total_coins == 네 하위 잔액의 합, 모든 하위 잔액 >= 0
    """

    __tablename__ = "coin_balances"
    __table_args__ = (
        CheckConstraint("experience_coins >= 0", name="ck_balance_experience_non_negative"),
        CheckConstraint("achievement_coins >= 0", name="ck_balance_achievement_non_negative"),
        CheckConstraint("social_coins >= 0", name="ck_balance_social_non_negative"),
        CheckConstraint("premium_coins >= 0", name="ck_balance_premium_non_negative"),
    )

    wallet_address: Mapped[str] = mapped_column(
        String(64), ForeignKey("accounts.wallet_address"), primary_key=True
    )
    experience_coins: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    achievement_coins: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    social_coins: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    premium_coins: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    total_coins: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    last_updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )


# 통화 → 잔액 컬럼 매핑 (문자열 조합으로 컬럼명을 만들지 않음)
COIN_BALANCE_FIELDS = {
    CoinType.EXPERIENCE: "experience_coins",
    CoinType.ACHIEVEMENT: "achievement_coins",
    CoinType.SOCIAL: "social_coins",
    CoinType.PREMIUM: "premium_coins",
}


class CoinTransaction(BaseModel):
    """
    코인 원장 - 불변, 추가 전용

    id 는 커밋 순서를 나타내며, 동일 (계정, 통화)에 대해
    i 번째 항목의 balance_after == i+1 번째 항목의 balance_before 가 유지됩니다.
    """

    __tablename__ = "coin_transactions"
    __table_args__ = (
        Index("idx_coin_tx_wallet_type", "wallet_address", "coin_type", "id"),
    )

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer(), "sqlite"), primary_key=True, autoincrement=True
    )
    wallet_address: Mapped[str] = mapped_column(
        String(64), ForeignKey("accounts.wallet_address"), nullable=False
    )
    coin_type: Mapped[CoinType] = mapped_column(Enum(CoinType), nullable=False)
    # 부호 있는 변동량 (양수 = 증가, 음수 = 감소)
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    balance_before: Mapped[int] = mapped_column(BigInteger, nullable=False)
    balance_after: Mapped[int] = mapped_column(BigInteger, nullable=False)
    transaction_type: Mapped[CoinTransactionType] = mapped_column(
        Enum(CoinTransactionType), nullable=False
    )
    source_type: Mapped[CoinSourceType] = mapped_column(Enum(CoinSourceType), nullable=False)
    source_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    source_metadata: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
