from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from coinapi.models.base import BaseModel


class ReferralBalanceSummary(BaseModel):
    """
    추천 트리 요약 캐시

    ReferralService.refresh 로만 재계산되는 파생 데이터 (진실의 원천 아님)
    """

    __tablename__ = "referral_balance_summaries"

    wallet_address: Mapped[str] = mapped_column(
        String(64), ForeignKey("accounts.wallet_address"), primary_key=True
    )
    direct_referrals: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_referrals: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    left_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    right_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    equilibrium_point: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_balanced: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    refreshed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
