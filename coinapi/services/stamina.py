import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from coinapi.config import Settings, settings as default_settings
from coinapi.core.exceptions import ValidationError
from coinapi.models.account import AccountStatus
from coinapi.schemas.account import StaminaResponse
from coinapi.services.account_service import AccountService
from coinapi.utils.timezone_utils import to_utc, utc_now

logger = logging.getLogger(__name__)


def calculate_stamina(
    account_age_days: int,
    total_eq: int,
    is_banned: bool = False,
    settings: Optional[Settings] = None,
) -> int:
    """계정 나이와 totalEq 로 스태미나(보상 한도) 계산

    차단 계정은 항상 0, 신규 계정(30일 미만)은 다른 규칙보다 우선합니다.
    """
    settings = settings or default_settings
    if account_age_days < 0:
        raise ValidationError("Account age cannot be negative")

    if is_banned:
        return 0
    if account_age_days < settings.STAMINA_NEW_ACCOUNT_DAYS:
        return settings.STAMINA_NEW_ACCOUNT
    if total_eq >= 2:
        return settings.STAMINA_HIGH_EQ
    if total_eq == 1:
        if account_age_days <= settings.STAMINA_VETERAN_ACCOUNT_DAYS:
            return settings.STAMINA_SINGLE_EQ
        return settings.STAMINA_BASE
    if account_age_days > settings.STAMINA_VETERAN_ACCOUNT_DAYS:
        return settings.STAMINA_BASE
    return settings.STAMINA_DEFAULT


class StaminaService:
    """계정 디렉터리에서 입력값을 조회해 스태미나를 계산"""

    def __init__(self, db: Session, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or default_settings
        self.account_service = AccountService(db, self.settings)

    def get_stamina(
        self, wallet_address: str, now: Optional[datetime] = None
    ) -> StaminaResponse:
        account = self.account_service.get(wallet_address)
        now = to_utc(now) if now else utc_now()
        created_at = to_utc(account.created_at) or now
        age_days = max(0, (now - created_at).days)
        is_banned = account.status == AccountStatus.BANNED

        stamina = calculate_stamina(
            age_days, account.total_eq, is_banned=is_banned, settings=self.settings
        )
        logger.debug(
            f"Stamina for {wallet_address}: age={age_days}d total_eq={account.total_eq} -> {stamina}"
        )
        return StaminaResponse(
            wallet_address=wallet_address,
            account_age_days=age_days,
            total_eq=account.total_eq,
            is_banned=is_banned,
            stamina=stamina,
        )
