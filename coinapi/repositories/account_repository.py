from typing import Dict, Iterable, Iterator, List, Optional, Tuple
from datetime import datetime

from sqlalchemy import func
from sqlalchemy.orm import Session

from coinapi.models.account import Account as AccountModel
from coinapi.schemas.account import AccountResponse
from coinapi.repositories.base import BaseRepository

# IN 절 바인드 파라미터 수 제한 대응
IN_CLAUSE_BATCH_SIZE = 500


def _chunks(items: List[str], size: int = IN_CLAUSE_BATCH_SIZE) -> Iterator[List[str]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


class AccountRepository(BaseRepository[AccountModel, AccountResponse]):
    """계정 디렉터리 - 지갑 주소 → 계정"""

    def __init__(self, db: Session):
        super().__init__(AccountModel, AccountResponse, db)

    def get_model(self, wallet_address: str) -> Optional[AccountModel]:
        return self.db.get(self.model_class, wallet_address)

    def get(self, wallet_address: str) -> Optional[AccountResponse]:
        return self._to_schema(self.get_model(wallet_address))

    def exists(self, wallet_address: str) -> bool:
        return self.get_model(wallet_address) is not None

    def count_direct_referrals(self, wallet_address: str) -> int:
        """referrer == wallet_address 인 계정 수"""
        return (
            self.db.query(func.count(self.model_class.wallet_address))
            .filter(self.model_class.referrer_address == wallet_address)
            .scalar()
            or 0
        )

    def list_referred(
        self, referrer_addresses: Iterable[str]
    ) -> List[Tuple[str, str, Optional[datetime]]]:
        """주어진 추천인들이 직접 추천한 계정 목록 (wallet, referrer, created_at)"""
        results: List[Tuple[str, str, Optional[datetime]]] = []
        for batch in _chunks(list(referrer_addresses)):
            rows = (
                self.db.query(
                    self.model_class.wallet_address,
                    self.model_class.referrer_address,
                    self.model_class.created_at,
                )
                .filter(self.model_class.referrer_address.in_(batch))
                .order_by(self.model_class.created_at, self.model_class.wallet_address)
                .all()
            )
            results.extend((row[0], row[1], row[2]) for row in rows)
        return results

    def count_referred_grouped(self, referrer_addresses: Iterable[str]) -> Dict[str, int]:
        """추천인별 직접 추천 수"""
        counts: Dict[str, int] = {}
        for batch in _chunks(list(referrer_addresses)):
            rows = (
                self.db.query(
                    self.model_class.referrer_address,
                    func.count(self.model_class.wallet_address),
                )
                .filter(self.model_class.referrer_address.in_(batch))
                .group_by(self.model_class.referrer_address)
                .all()
            )
            counts.update({referrer: count for referrer, count in rows})
        return counts
