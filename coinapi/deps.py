from fastapi import Depends, Request
from sqlalchemy.orm import Session

from coinapi.core.auth_middleware import get_current_wallet
from coinapi.database.session import get_db
from coinapi.schemas.account import AccountResponse
from coinapi.schemas.auth import WalletIdentity

# Services
from coinapi.services.account_service import AccountService
from coinapi.services.eq_level_service import EqLevelService
from coinapi.services.ledger_service import LedgerService
from coinapi.services.referral_service import ReferralService
from coinapi.services.stamina import StaminaService
from coinapi.services.tournament_service import TournamentService


def get_account_service(request: Request, db: Session = Depends(get_db)) -> AccountService:
    return request.app.container.services.account_service(db=db)


def get_ledger_service(request: Request, db: Session = Depends(get_db)) -> LedgerService:
    return request.app.container.services.ledger_service(db=db)


def get_tournament_service(
    request: Request, db: Session = Depends(get_db)
) -> TournamentService:
    return request.app.container.services.tournament_service(db=db)


def get_referral_service(request: Request, db: Session = Depends(get_db)) -> ReferralService:
    return request.app.container.services.referral_service(db=db)


def get_stamina_service(request: Request, db: Session = Depends(get_db)) -> StaminaService:
    return request.app.container.services.stamina_service(db=db)


def get_eq_level_service(request: Request, db: Session = Depends(get_db)) -> EqLevelService:
    return request.app.container.services.eq_level_service(db=db)


def get_current_account(
    identity: WalletIdentity = Depends(get_current_wallet),
    account_service: AccountService = Depends(get_account_service),
) -> AccountResponse:
    """호출자 계정 (첫 접촉 시 지연 생성)"""
    return account_service.get_or_create(identity.wallet_address)
