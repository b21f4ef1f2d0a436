"""
코인 API 라우터

사용자용 엔드포인트:
- GET /coins/balance: 내 코인 잔액
- GET /coins/transactions: 내 원장 조회 (최신순)
- POST /coins/transfer: 다른 계정으로 이체
- GET /coins/leaderboard: 잔액 순위
- GET /coins/integrity/my: 내 원장 정합성 검증

관리자용 엔드포인트:
- POST /coins/admin/credit, /coins/admin/debit, /coins/admin/adjust
- GET /coins/admin/balance/{wallet_address}
- GET /coins/admin/integrity/{wallet_address}
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query

from coinapi.core.auth_middleware import require_admin
from coinapi.deps import get_current_account, get_ledger_service
from coinapi.models.coins import CoinType
from coinapi.schemas.account import AccountResponse
from coinapi.schemas.auth import WalletIdentity
from coinapi.schemas.coins import (
    AdminCoinAdjustmentRequest,
    CoinBalanceResponse,
    CoinCreditRequest,
    CoinLeaderboardEntry,
    CoinTransferRequest,
    CoinTransferResponse,
    LedgerIntegrityResponse,
    TransactionHistoryResponse,
    TransactionRecord,
)
from coinapi.services.ledger_service import LedgerService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/coins", tags=["coins"])


@router.get("/balance", response_model=CoinBalanceResponse)
def get_my_balance(
    account: AccountResponse = Depends(get_current_account),
    ledger_service: LedgerService = Depends(get_ledger_service),
) -> CoinBalanceResponse:
    """내 코인 잔액 (잔액 행이 없으면 0)"""
    return ledger_service.balance(account.wallet_address)


@router.get("/transactions", response_model=TransactionHistoryResponse)
def get_my_transactions(
    coin_type: Optional[CoinType] = Query(None, description="통화 필터"),
    limit: int = Query(50, ge=1, le=100, description="페이지 크기"),
    offset: int = Query(0, ge=0, description="오프셋"),
    account: AccountResponse = Depends(get_current_account),
    ledger_service: LedgerService = Depends(get_ledger_service),
) -> TransactionHistoryResponse:
    return ledger_service.get_transactions(
        account.wallet_address, coin_type=coin_type, limit=limit, offset=offset
    )


@router.post("/transfer", response_model=CoinTransferResponse)
def transfer_coins(
    request: CoinTransferRequest,
    account: AccountResponse = Depends(get_current_account),
    ledger_service: LedgerService = Depends(get_ledger_service),
) -> CoinTransferResponse:
    """
    코인 이체 - 보내는 쪽은 인증된 호출자

    HTTP Status:
        200: 이체 성공
        400: 잔액 부족 (BALANCE_001)
        404: 받는 계정 없음 (ACCOUNT_001)
        422: 잘못된 금액/통화 또는 자기 자신에게 이체
    """
    debit, credit = ledger_service.transfer(
        account.wallet_address,
        request.to_wallet_address,
        request.coin_type,
        request.amount,
        description=request.description,
    )
    return CoinTransferResponse(debit=debit, credit=credit)


@router.get("/leaderboard", response_model=List[CoinLeaderboardEntry])
def get_leaderboard(
    coin_type: Optional[CoinType] = Query(None, description="정렬 기준 통화 (미지정 시 합계)"),
    limit: int = Query(100, ge=1, le=100),
    ledger_service: LedgerService = Depends(get_ledger_service),
) -> List[CoinLeaderboardEntry]:
    return ledger_service.top_balances(limit=limit, coin_type=coin_type)


@router.get("/integrity/my", response_model=LedgerIntegrityResponse)
def verify_my_integrity(
    account: AccountResponse = Depends(get_current_account),
    ledger_service: LedgerService = Depends(get_ledger_service),
) -> LedgerIntegrityResponse:
    return ledger_service.verify_integrity(account.wallet_address)


# ---- 관리자 ----


@router.post("/admin/credit", response_model=TransactionRecord)
def admin_credit(
    request: CoinCreditRequest,
    admin: WalletIdentity = Depends(require_admin),
    ledger_service: LedgerService = Depends(get_ledger_service),
) -> TransactionRecord:
    logger.info(f"Admin {admin.wallet_address} crediting {request.wallet_address}")
    return ledger_service.credit(
        request.wallet_address,
        request.coin_type,
        request.amount,
        source_type=request.source_type,
        description=request.description,
        metadata={"admin": admin.wallet_address},
    )


@router.post("/admin/debit", response_model=TransactionRecord)
def admin_debit(
    request: CoinCreditRequest,
    admin: WalletIdentity = Depends(require_admin),
    ledger_service: LedgerService = Depends(get_ledger_service),
) -> TransactionRecord:
    logger.info(f"Admin {admin.wallet_address} debiting {request.wallet_address}")
    return ledger_service.debit(
        request.wallet_address,
        request.coin_type,
        request.amount,
        source_type=request.source_type,
        description=request.description,
        metadata={"admin": admin.wallet_address},
    )


@router.post("/admin/adjust", response_model=TransactionRecord)
def admin_adjust(
    request: AdminCoinAdjustmentRequest,
    admin: WalletIdentity = Depends(require_admin),
    ledger_service: LedgerService = Depends(get_ledger_service),
) -> TransactionRecord:
    return ledger_service.adjust(
        request.wallet_address,
        request.coin_type,
        request.amount,
        reason=request.reason,
        admin_wallet=admin.wallet_address,
    )


@router.get("/admin/balance/{wallet_address}", response_model=CoinBalanceResponse)
def admin_get_balance(
    wallet_address: str = Path(..., description="지갑 주소"),
    _: WalletIdentity = Depends(require_admin),
    ledger_service: LedgerService = Depends(get_ledger_service),
) -> CoinBalanceResponse:
    return ledger_service.balance(wallet_address)


@router.get("/admin/integrity/{wallet_address}", response_model=LedgerIntegrityResponse)
def admin_verify_integrity(
    wallet_address: str = Path(..., description="지갑 주소"),
    _: WalletIdentity = Depends(require_admin),
    ledger_service: LedgerService = Depends(get_ledger_service),
) -> LedgerIntegrityResponse:
    return ledger_service.verify_integrity(wallet_address)
