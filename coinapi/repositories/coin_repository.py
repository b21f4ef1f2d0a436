"""
코인 리포지토리 - 잔액 행과 원장에 대한 데이터베이스 접근

핵심 특징:
- 잔액 변경은 하나의 조건부 UPDATE ... RETURNING 으로 수행되어
  애플리케이션 레벨의 read-then-write 로 인한 갱신 손실이 없습니다
- 차감은 WHERE 절에서 하위 잔액을 검사하므로 음수 잔액이 만들어지지 않습니다
- 원장 항목은 추가만 가능하며 수정/삭제 메서드가 없습니다
"""

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import asc, desc, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from coinapi.models.coins import (
    COIN_BALANCE_FIELDS,
    CoinBalance,
    CoinTransaction as CoinTransactionModel,
    CoinType,
)
from coinapi.schemas.coins import CoinBalanceResponse, TransactionRecord
from coinapi.repositories.base import BaseRepository


class CoinRepository(BaseRepository[CoinTransactionModel, TransactionRecord]):
    """코인 잔액/원장 저장소"""

    def __init__(self, db: Session):
        super().__init__(CoinTransactionModel, TransactionRecord, db)

    # ---- 잔액 ----

    def get_balance_row(self, wallet_address: str) -> Optional[CoinBalance]:
        return (
            self.db.query(CoinBalance)
            .filter(CoinBalance.wallet_address == wallet_address)
            .populate_existing()
            .first()
        )

    def get_balance(self, wallet_address: str) -> Optional[CoinBalanceResponse]:
        row = self.get_balance_row(wallet_address)
        return CoinBalanceResponse.model_validate(row) if row else None

    def ensure_balance_row(self, wallet_address: str) -> None:
        """잔액 행이 없으면 0 으로 생성 (INSERT ... ON CONFLICT DO NOTHING)"""
        dialect = self.db.get_bind().dialect.name
        insert_fn = sqlite_insert if dialect == "sqlite" else pg_insert
        stmt = (
            insert_fn(CoinBalance)
            .values(
                wallet_address=wallet_address,
                experience_coins=0,
                achievement_coins=0,
                social_coins=0,
                premium_coins=0,
                total_coins=0,
                last_updated_at=datetime.now(timezone.utc),
            )
            .on_conflict_do_nothing(index_elements=[CoinBalance.wallet_address])
        )
        self.db.execute(stmt)

    def apply_delta(self, wallet_address: str, coin_type: CoinType, delta: int):
        """하위 잔액과 합계를 원자적으로 증감하고 변경 후 잔액 행을 반환

        차감(delta < 0)은 하위 잔액이 충분할 때만 적용됩니다.
        대상 행이 없거나 잔액이 부족하면 None 을 반환합니다.
        """
        column = getattr(CoinBalance, COIN_BALANCE_FIELDS[coin_type])
        stmt = (
            update(CoinBalance)
            .where(CoinBalance.wallet_address == wallet_address)
            .values(
                {
                    column: column + delta,
                    CoinBalance.total_coins: CoinBalance.total_coins + delta,
                    CoinBalance.last_updated_at: datetime.now(timezone.utc),
                }
            )
            .returning(
                CoinBalance.experience_coins,
                CoinBalance.achievement_coins,
                CoinBalance.social_coins,
                CoinBalance.premium_coins,
                CoinBalance.total_coins,
            )
            .execution_options(synchronize_session=False)
        )
        if delta < 0:
            stmt = stmt.where(column >= -delta)
        return self.db.execute(stmt).first()

    def top_balances(
        self, limit: int = 100, coin_type: Optional[CoinType] = None
    ) -> List[CoinBalance]:
        order_column = (
            getattr(CoinBalance, COIN_BALANCE_FIELDS[coin_type])
            if coin_type
            else CoinBalance.total_coins
        )
        return (
            self.db.query(CoinBalance)
            .order_by(desc(order_column), asc(CoinBalance.wallet_address))
            .limit(limit)
            .all()
        )

    # ---- 원장 ----

    def append_transaction(self, **kwargs) -> CoinTransactionModel:
        return self.add(self.model_class(**kwargs))

    def to_record(self, model_instance: CoinTransactionModel) -> TransactionRecord:
        return self._to_schema(model_instance)

    def list_transactions(
        self,
        wallet_address: str,
        coin_type: Optional[CoinType] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[TransactionRecord]:
        """원장 조회 (최신순)"""
        query = self.db.query(self.model_class).filter(
            self.model_class.wallet_address == wallet_address
        )
        if coin_type:
            query = query.filter(self.model_class.coin_type == coin_type)
        model_instances = (
            query.order_by(desc(self.model_class.id)).limit(limit).offset(offset).all()
        )
        return [self._to_schema(instance) for instance in model_instances]

    def count_transactions(
        self, wallet_address: str, coin_type: Optional[CoinType] = None
    ) -> int:
        filters = {"wallet_address": wallet_address}
        if coin_type:
            filters["coin_type"] = coin_type
        return self.count(filters)

    def transactions_in_commit_order(
        self, wallet_address: str
    ) -> List[CoinTransactionModel]:
        return (
            self.db.query(self.model_class)
            .filter(self.model_class.wallet_address == wallet_address)
            .order_by(asc(self.model_class.id))
            .all()
        )
