from typing import List

from fastapi import APIRouter, Depends, Query

from coinapi.config import settings
from coinapi.deps import get_current_account, get_referral_service
from coinapi.schemas.account import AccountResponse
from coinapi.schemas.referral import ReferralSummaryResponse, ReferralTreeNode
from coinapi.services.referral_service import ReferralService

router = APIRouter(prefix="/referral", tags=["referral"])


@router.get("/tree", response_model=ReferralTreeNode)
def get_referral_tree(
    max_depth: int = Query(
        settings.REFERRAL_TREE_MAX_DEPTH, ge=1, le=settings.REFERRAL_TREE_MAX_DEPTH
    ),
    account: AccountResponse = Depends(get_current_account),
    referral_service: ReferralService = Depends(get_referral_service),
) -> ReferralTreeNode:
    """내 추천 서브트리 (루트 = 레벨 0)"""
    return referral_service.build_subtree(account.wallet_address, max_depth=max_depth)


@router.get("/stats", response_model=ReferralSummaryResponse)
def get_referral_stats(
    account: AccountResponse = Depends(get_current_account),
    referral_service: ReferralService = Depends(get_referral_service),
) -> ReferralSummaryResponse:
    """캐시된 추천 요약 (없으면 계산 후 저장)"""
    return referral_service.get_summary(account.wallet_address)


@router.post("/refresh", response_model=ReferralSummaryResponse)
def refresh_referral_stats(
    account: AccountResponse = Depends(get_current_account),
    referral_service: ReferralService = Depends(get_referral_service),
) -> ReferralSummaryResponse:
    return referral_service.refresh(account.wallet_address)


@router.get("/leaderboard", response_model=List[ReferralSummaryResponse])
def get_referral_leaderboard(
    limit: int = Query(50, ge=1, le=100),
    referral_service: ReferralService = Depends(get_referral_service),
) -> List[ReferralSummaryResponse]:
    return referral_service.leaderboard(limit=limit)
