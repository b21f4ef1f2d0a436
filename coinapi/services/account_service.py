import logging
import re
from typing import Optional

from sqlalchemy.orm import Session

from coinapi.config import Settings, settings as default_settings
from coinapi.core.exceptions import UnknownAccountError, ValidationError
from coinapi.database.session import atomic
from coinapi.models.account import Account as AccountModel, AccountStatus
from coinapi.repositories.account_repository import AccountRepository
from coinapi.schemas.account import AccountResponse
from coinapi.utils.timezone_utils import utc_now

logger = logging.getLogger(__name__)


class AccountService:
    """계정 디렉터리 - 지갑 주소를 계정으로 매핑

    계정은 첫 접촉 시 지연 생성되며 하드 삭제되지 않습니다.
    추천인은 생성 시 한 번만 기록되고 이미 존재하는 계정만 지정할 수 있으므로
    추천 그래프에는 순환이 생기지 않습니다.
    """

    def __init__(self, db: Session, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or default_settings
        self.account_repo = AccountRepository(db)
        self._wallet_pattern = re.compile(self.settings.WALLET_ADDRESS_PATTERN)

    def validate_wallet_address(self, wallet_address: str) -> str:
        if not isinstance(wallet_address, str) or not self._wallet_pattern.match(
            wallet_address
        ):
            raise ValidationError(
                "Invalid wallet address", details={"wallet_address": wallet_address}
            )
        return wallet_address

    def get_or_create(
        self,
        wallet_address: str,
        referrer_address: Optional[str] = None,
        commit: bool = True,
    ) -> AccountResponse:
        """계정 조회, 없으면 생성

        Args:
            wallet_address: 지갑 주소 (대소문자 구분)
            referrer_address: 추천인 지갑 주소 (생성 시에만 반영)
            commit: False 이면 상위 작업 단위에 참여

        Returns:
            AccountResponse: 계정 정보
        """
        self.validate_wallet_address(wallet_address)

        existing = self.account_repo.get(wallet_address)
        if existing:
            if referrer_address and referrer_address != existing.referrer_address:
                logger.info(
                    f"Ignoring referrer {referrer_address} for existing account {wallet_address}"
                )
            return existing

        if referrer_address is not None:
            self.validate_wallet_address(referrer_address)
            if referrer_address == wallet_address:
                raise ValidationError("An account cannot refer itself")
            if not self.account_repo.exists(referrer_address):
                raise UnknownAccountError(referrer_address)

        with atomic(self.db, commit=commit):
            account = self.account_repo.add(
                AccountModel(
                    wallet_address=wallet_address,
                    referrer_address=referrer_address,
                    status=AccountStatus.STANDARD,
                    last_active_at=utc_now(),
                )
            )
            self.db.refresh(account)
            created = self.account_repo._to_schema(account)

        logger.info(
            f"Created account {wallet_address} (referrer={referrer_address or '-'})"
        )
        return created

    def get(self, wallet_address: str) -> AccountResponse:
        account = self.account_repo.get(wallet_address)
        if not account:
            raise UnknownAccountError(wallet_address)
        return account

    def exists(self, wallet_address: str) -> bool:
        return self.account_repo.exists(wallet_address)

    def _require_model(self, wallet_address: str) -> AccountModel:
        account = self.account_repo.get_model(wallet_address)
        if account is None:
            raise UnknownAccountError(wallet_address)
        return account

    def set_status(self, wallet_address: str, status: AccountStatus) -> AccountResponse:
        """계정 상태 변경 (차단/해제/프리미엄)"""
        with atomic(self.db):
            account = self._require_model(wallet_address)
            previous = account.status
            account.status = status
            self.db.flush()
            result = self.account_repo._to_schema(account)

        logger.info(f"Account {wallet_address} status {previous.value} -> {status.value}")
        return result

    def touch(self, wallet_address: str) -> AccountResponse:
        with atomic(self.db):
            account = self._require_model(wallet_address)
            account.last_active_at = utc_now()
            self.db.flush()
            return self.account_repo._to_schema(account)

    def record_equilibrium_nodes(
        self, wallet_address: str, left_node: int, right_node: int, total_eq: int
    ) -> AccountResponse:
        """외부 이진 트리에서 보고된 좌/우 노드 수와 totalEq 저장 (스태미나 입력값)"""
        if min(left_node, right_node, total_eq) < 0:
            raise ValidationError("Equilibrium node counts must be non-negative")

        with atomic(self.db):
            account = self._require_model(wallet_address)
            account.left_node = left_node
            account.right_node = right_node
            account.total_eq = total_eq
            self.db.flush()
            result = self.account_repo._to_schema(account)

        logger.info(
            f"Recorded equilibrium nodes for {wallet_address}: "
            f"left={left_node} right={right_node} total_eq={total_eq}"
        )
        return result
