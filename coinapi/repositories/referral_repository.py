from datetime import datetime
from typing import List, Optional

from sqlalchemy import asc, desc
from sqlalchemy.orm import Session

from coinapi.models.referral import ReferralBalanceSummary
from coinapi.schemas.referral import ReferralSummaryResponse
from coinapi.repositories.base import BaseRepository


class ReferralRepository(BaseRepository[ReferralBalanceSummary, ReferralSummaryResponse]):
    """추천 요약 캐시 저장소"""

    def __init__(self, db: Session):
        super().__init__(ReferralBalanceSummary, ReferralSummaryResponse, db)

    def get_summary(self, wallet_address: str) -> Optional[ReferralSummaryResponse]:
        return self._to_schema(self.db.get(self.model_class, wallet_address))

    def upsert_summary(
        self,
        wallet_address: str,
        direct_referrals: int,
        total_referrals: int,
        left_count: int,
        right_count: int,
        equilibrium_point: int,
        is_balanced: bool,
        refreshed_at: datetime,
    ) -> ReferralSummaryResponse:
        summary = self.db.get(self.model_class, wallet_address)
        if summary is None:
            summary = self.model_class(wallet_address=wallet_address)
            self.db.add(summary)

        summary.direct_referrals = direct_referrals
        summary.total_referrals = total_referrals
        summary.left_count = left_count
        summary.right_count = right_count
        summary.equilibrium_point = equilibrium_point
        summary.is_balanced = is_balanced
        summary.refreshed_at = refreshed_at
        self.db.flush()
        return self._to_schema(summary)

    def leaderboard(self, limit: int = 50) -> List[ReferralSummaryResponse]:
        instances = (
            self.db.query(self.model_class)
            .order_by(desc(self.model_class.equilibrium_point), asc(self.model_class.wallet_address))
            .limit(limit)
            .all()
        )
        return [self._to_schema(instance) for instance in instances]
