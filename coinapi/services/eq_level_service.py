import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from coinapi.config import Settings, settings as default_settings
from coinapi.core.exceptions import NotFoundError, UnknownAccountError, ValidationError
from coinapi.database.session import atomic
from coinapi.models.eq_level import EqLevel
from coinapi.repositories.account_repository import AccountRepository
from coinapi.repositories.eq_level_repository import EqLevelRepository
from coinapi.schemas.eq_level import (
    EqLevelCreateRequest,
    EqLevelResponse,
    EqLevelStats,
    EqLevelStatsResponse,
    EqLevelUpdateRequest,
    WalletLevelResponse,
)

logger = logging.getLogger(__name__)


class EqLevelService:
    """totalEq 구간별 레벨 관리

    구간은 양 끝을 포함하며 서로 겹칠 수 없습니다.
    어떤 구간에도 속하지 않는 totalEq 의 레벨은 None 입니다.
    """

    def __init__(self, db: Session, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or default_settings
        self.level_repo = EqLevelRepository(db)
        self.account_repo = AccountRepository(db)

    def _require_level(self, level_id: int) -> EqLevel:
        level = self.level_repo.get_model(level_id)
        if level is None:
            raise NotFoundError(
                f"EQ level not found: {level_id}", details={"level_id": level_id}
            )
        return level

    def _check_overlap(self, min_eq: int, max_eq: int, exclude_id: Optional[int] = None) -> None:
        if min_eq < 0 or min_eq > max_eq:
            raise ValidationError(
                "min_eq must be non-negative and <= max_eq",
                details={"min_eq": min_eq, "max_eq": max_eq},
            )
        overlapping = self.level_repo.find_overlapping(min_eq, max_eq, exclude_id=exclude_id)
        if overlapping is not None:
            raise ValidationError(
                "EQ range overlaps with existing level",
                details={
                    "level_id": overlapping.id,
                    "min_eq": overlapping.min_eq,
                    "max_eq": overlapping.max_eq,
                },
            )

    def list_levels(self) -> List[EqLevelResponse]:
        return self.level_repo.list_levels()

    def count_levels(self) -> int:
        return self.level_repo.count()

    def create_level(self, request: EqLevelCreateRequest) -> EqLevelResponse:
        self._check_overlap(request.min_eq, request.max_eq)

        with atomic(self.db):
            level = self.level_repo.add(
                EqLevel(
                    min_eq=request.min_eq,
                    max_eq=request.max_eq,
                    level_value=request.level_value,
                    description=request.description,
                )
            )
            self.db.refresh(level)
            created = self.level_repo._to_schema(level)

        logger.info(
            f"Created EQ level {created.id}: [{created.min_eq}, {created.max_eq}] -> {created.level_value}"
        )
        return created

    def update_level(self, level_id: int, request: EqLevelUpdateRequest) -> EqLevelResponse:
        """구간 수정 - 자신을 제외한 다른 구간과 겹치면 거부"""
        level = self._require_level(level_id)
        min_eq = request.min_eq if request.min_eq is not None else level.min_eq
        max_eq = request.max_eq if request.max_eq is not None else level.max_eq
        self._check_overlap(min_eq, max_eq, exclude_id=level_id)

        with atomic(self.db):
            level.min_eq = min_eq
            level.max_eq = max_eq
            if request.level_value is not None:
                level.level_value = request.level_value
            if request.description is not None:
                level.description = request.description
            self.db.flush()
            updated = self.level_repo._to_schema(level)

        logger.info(f"Updated EQ level {level_id}: [{min_eq}, {max_eq}] -> {updated.level_value}")
        return updated

    def delete_level(self, level_id: int) -> None:
        with atomic(self.db):
            self.level_repo.delete(self._require_level(level_id))
        logger.info(f"Deleted EQ level {level_id}")

    def level_for(self, wallet_address: str) -> WalletLevelResponse:
        """지갑의 totalEq 가 속한 레벨"""
        account = self.account_repo.get(wallet_address)
        if account is None:
            raise UnknownAccountError(wallet_address)
        return WalletLevelResponse(
            wallet_address=wallet_address,
            total_eq=account.total_eq,
            level=self.level_repo.find_for_eq(account.total_eq),
        )

    def stats(self) -> EqLevelStatsResponse:
        levels = self.level_repo.list_levels()
        return EqLevelStatsResponse(
            total_levels=len(levels),
            total_accounts=self.level_repo.count_accounts(),
            levels=[
                EqLevelStats(
                    level=level,
                    account_count=self.level_repo.count_accounts_in_range(
                        level.min_eq, level.max_eq
                    ),
                )
                for level in levels
            ],
        )
