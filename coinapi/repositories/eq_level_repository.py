from typing import List, Optional

from sqlalchemy import asc, func
from sqlalchemy.orm import Session

from coinapi.models.account import Account
from coinapi.models.eq_level import EqLevel
from coinapi.schemas.eq_level import EqLevelResponse
from coinapi.repositories.base import BaseRepository


class EqLevelRepository(BaseRepository[EqLevel, EqLevelResponse]):
    """EQ 레벨 구간 저장소"""

    def __init__(self, db: Session):
        super().__init__(EqLevel, EqLevelResponse, db)

    def get_model(self, level_id: int) -> Optional[EqLevel]:
        return self.db.get(self.model_class, level_id)

    def list_levels(self) -> List[EqLevelResponse]:
        instances = (
            self.db.query(self.model_class)
            .order_by(asc(self.model_class.min_eq), asc(self.model_class.id))
            .all()
        )
        return [self._to_schema(instance) for instance in instances]

    def find_overlapping(
        self, min_eq: int, max_eq: int, exclude_id: Optional[int] = None
    ) -> Optional[EqLevel]:
        """[min_eq, max_eq] 와 겹치는 첫 구간 (양 끝 포함)"""
        query = self.db.query(self.model_class).filter(
            self.model_class.min_eq <= max_eq,
            self.model_class.max_eq >= min_eq,
        )
        if exclude_id is not None:
            query = query.filter(self.model_class.id != exclude_id)
        return query.order_by(asc(self.model_class.min_eq)).first()

    def find_for_eq(self, total_eq: int) -> Optional[EqLevelResponse]:
        instance = (
            self.db.query(self.model_class)
            .filter(self.model_class.min_eq <= total_eq, self.model_class.max_eq >= total_eq)
            .order_by(asc(self.model_class.min_eq))
            .first()
        )
        return self._to_schema(instance)

    def count_accounts_in_range(self, min_eq: int, max_eq: int) -> int:
        return (
            self.db.query(func.count(Account.wallet_address))
            .filter(Account.total_eq >= min_eq, Account.total_eq <= max_eq)
            .scalar()
            or 0
        )

    def count_accounts(self) -> int:
        return self.db.query(func.count(Account.wallet_address)).scalar() or 0

    def delete(self, instance: EqLevel) -> None:
        self.db.delete(instance)
        self.db.flush()
