from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class ReferralTreeNode(BaseModel):
    """추천 트리 노드 - 직접 추천한 계정만 children 에 포함"""

    wallet_address: str
    level: int = Field(..., description="루트 기준 깊이 (루트 = 0)")
    created_at: Optional[datetime] = None
    referral_count: int = Field(0, description="이 계정의 직접 추천 수")
    children: List["ReferralTreeNode"] = Field(default_factory=list)

    def iter_nodes(self):
        yield self
        for child in self.children:
            yield from child.iter_nodes()


ReferralTreeNode.model_rebuild()


class ReferralSummaryResponse(BaseModel):
    wallet_address: str
    direct_referrals: int
    total_referrals: int
    left_count: int
    right_count: int
    equilibrium_point: int
    is_balanced: bool
    refreshed_at: datetime

    class Config:
        from_attributes = True
