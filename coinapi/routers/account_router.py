import logging

from fastapi import APIRouter, Depends, Path

from coinapi.core.auth_middleware import get_current_wallet, require_admin
from coinapi.deps import get_account_service, get_current_account, get_stamina_service
from coinapi.schemas.account import (
    AccountRegisterRequest,
    AccountResponse,
    AccountStatusUpdateRequest,
    EquilibriumNodesRequest,
    StaminaResponse,
)
from coinapi.schemas.auth import WalletIdentity
from coinapi.services.account_service import AccountService
from coinapi.services.stamina import StaminaService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/accounts", tags=["accounts"])


@router.post("/register", response_model=AccountResponse)
def register_account(
    request: AccountRegisterRequest,
    identity: WalletIdentity = Depends(get_current_wallet),
    account_service: AccountService = Depends(get_account_service),
) -> AccountResponse:
    """계정 생성 (추천인은 최초 생성 시에만 기록)"""
    return account_service.get_or_create(
        identity.wallet_address, referrer_address=request.referrer_address
    )


@router.get("/me", response_model=AccountResponse)
def get_me(
    account: AccountResponse = Depends(get_current_account),
    account_service: AccountService = Depends(get_account_service),
) -> AccountResponse:
    return account_service.touch(account.wallet_address)


@router.get("/me/stamina", response_model=StaminaResponse)
def get_my_stamina(
    account: AccountResponse = Depends(get_current_account),
    stamina_service: StaminaService = Depends(get_stamina_service),
) -> StaminaResponse:
    return stamina_service.get_stamina(account.wallet_address)


@router.put("/admin/{wallet_address}/status", response_model=AccountResponse)
def update_account_status(
    request: AccountStatusUpdateRequest,
    wallet_address: str = Path(...),
    admin: WalletIdentity = Depends(require_admin),
    account_service: AccountService = Depends(get_account_service),
) -> AccountResponse:
    logger.info(
        f"Admin {admin.wallet_address} setting {wallet_address} status to {request.status.value}"
    )
    return account_service.set_status(wallet_address, request.status)


@router.put("/admin/{wallet_address}/equilibrium", response_model=AccountResponse)
def record_equilibrium_nodes(
    request: EquilibriumNodesRequest,
    wallet_address: str = Path(...),
    _: WalletIdentity = Depends(require_admin),
    account_service: AccountService = Depends(get_account_service),
) -> AccountResponse:
    return account_service.record_equilibrium_nodes(
        wallet_address, request.left_node, request.right_node, request.total_eq
    )
