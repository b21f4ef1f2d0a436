"""
추천 트리 서비스

추천인 → 피추천인 방향으로 추천 그래프를 너비 우선 탐색합니다.
모든 탐색은 깊이와 방문 노드 수로 제한되며, 레벨마다 한 번의 쿼리만 실행합니다.
핫 패스(토너먼트 참가 자격, 스태미나)는 캐시된 ReferralBalanceSummary 만 읽고,
요약 재계산은 refresh 를 통해서만 이루어집니다.
"""

import logging
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from coinapi.config import Settings, settings as default_settings
from coinapi.core.exceptions import UnknownAccountError, ValidationError
from coinapi.database.session import atomic
from coinapi.repositories.account_repository import AccountRepository
from coinapi.repositories.referral_repository import ReferralRepository
from coinapi.schemas.referral import ReferralSummaryResponse, ReferralTreeNode
from coinapi.utils.timezone_utils import utc_now

logger = logging.getLogger(__name__)


class ReferralService:
    def __init__(self, db: Session, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or default_settings
        self.account_repo = AccountRepository(db)
        self.referral_repo = ReferralRepository(db)
        # 루트별 전체 추천 수 메모 (refresh 시 무효화)
        self._total_cache: Dict[str, int] = {}

    def build_subtree(
        self, root_address: str, max_depth: Optional[int] = None
    ) -> ReferralTreeNode:
        """루트 기준 추천 서브트리 생성

        Args:
            root_address: 루트 지갑 주소
            max_depth: 포함할 레벨 수 (루트 = 레벨 0, 기본 5)

        Returns:
            ReferralTreeNode: 루트 노드 (children 에 직접 추천한 계정만 포함)
        """
        if max_depth is None:
            max_depth = self.settings.REFERRAL_TREE_MAX_DEPTH
        if max_depth < 1:
            raise ValidationError("max_depth must be at least 1")

        root_account = self.account_repo.get(root_address)
        if not root_account:
            raise UnknownAccountError(root_address)

        max_nodes = self.settings.REFERRAL_MAX_VISITED_NODES
        root = ReferralTreeNode(
            wallet_address=root_address, level=0, created_at=root_account.created_at
        )
        nodes: Dict[str, ReferralTreeNode] = {root_address: root}
        frontier: List[str] = [root_address]

        for level in range(1, max_depth):
            if not frontier or len(nodes) >= max_nodes:
                break
            next_frontier: List[str] = []
            for wallet, referrer, created_at in self.account_repo.list_referred(frontier):
                if wallet in nodes:
                    continue
                if len(nodes) >= max_nodes:
                    logger.warning(
                        f"Referral subtree of {root_address} truncated at {max_nodes} nodes"
                    )
                    break
                node = ReferralTreeNode(
                    wallet_address=wallet, level=level, created_at=created_at
                )
                nodes[wallet] = node
                nodes[referrer].children.append(node)
                next_frontier.append(wallet)
            frontier = next_frontier

        counts = self.account_repo.count_referred_grouped(nodes.keys())
        for wallet, node in nodes.items():
            node.referral_count = counts.get(wallet, 0)

        logger.debug(f"Built referral subtree for {root_address}: {len(nodes)} nodes")
        return root

    def count_total_referrals(
        self, root_address: str, max_nodes: Optional[int] = None
    ) -> int:
        """전체 하위 추천 수 (방문 노드 수 상한 적용, 인스턴스 단위 메모)"""
        if root_address in self._total_cache:
            return self._total_cache[root_address]

        if max_nodes is None:
            max_nodes = self.settings.REFERRAL_MAX_VISITED_NODES

        visited = {root_address}
        frontier: List[str] = [root_address]
        total = 0
        truncated = False

        while frontier and not truncated:
            next_frontier: List[str] = []
            for wallet, _, _ in self.account_repo.list_referred(frontier):
                if wallet in visited:
                    continue
                if total >= max_nodes:
                    truncated = True
                    break
                visited.add(wallet)
                next_frontier.append(wallet)
                total += 1
            frontier = next_frontier

        if truncated:
            logger.warning(
                f"Referral count for {root_address} stopped at node cap {max_nodes}"
            )

        self._total_cache[root_address] = total
        return total

    def refresh(self, wallet_address: str, commit: bool = True) -> ReferralSummaryResponse:
        """추천 요약 재계산 후 저장 (멱등)"""
        if not self.account_repo.exists(wallet_address):
            raise UnknownAccountError(wallet_address)

        self._total_cache.pop(wallet_address, None)
        direct_referrals = self.account_repo.count_direct_referrals(wallet_address)
        total_referrals = self.count_total_referrals(wallet_address)

        with atomic(self.db, commit=commit):
            summary = self.referral_repo.upsert_summary(
                wallet_address=wallet_address,
                direct_referrals=direct_referrals,
                total_referrals=total_referrals,
                left_count=total_referrals // 2,
                right_count=total_referrals - total_referrals // 2,
                equilibrium_point=total_referrals,
                is_balanced=direct_referrals == total_referrals,
                refreshed_at=utc_now(),
            )

        # 다른 루트의 메모는 이 계정의 하위 트리 변경을 반영하지 못하므로 함께 비움
        self._total_cache.clear()
        logger.info(
            f"Refreshed referral summary for {wallet_address}: "
            f"direct={direct_referrals} total={total_referrals}"
        )
        return summary

    def get_summary(
        self, wallet_address: str, refresh_if_missing: bool = True, commit: bool = True
    ) -> Optional[ReferralSummaryResponse]:
        """캐시된 추천 요약 조회 (없으면 필요 시 재계산)"""
        summary = self.referral_repo.get_summary(wallet_address)
        if summary is not None:
            return summary
        if not self.account_repo.exists(wallet_address):
            raise UnknownAccountError(wallet_address)
        if not refresh_if_missing:
            return None
        return self.refresh(wallet_address, commit=commit)

    def leaderboard(self, limit: int = 50) -> List[ReferralSummaryResponse]:
        limit = max(1, min(limit, 100))
        return self.referral_repo.leaderboard(limit=limit)
