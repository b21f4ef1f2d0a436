"""
토너먼트 API 라우터

사용자용:
- GET /tournaments, GET /tournaments/{id}, GET /tournaments/{id}/participants
- GET /tournaments/history/{wallet_address}
- POST /tournaments/{id}/join, POST /tournaments/{id}/leave

운영자용 (role=admin):
- POST /tournaments
- POST /tournaments/{id}/start | end | cancel | settle
- POST /tournaments/{id}/scores
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Path, Query

from coinapi.core.auth_middleware import require_admin
from coinapi.deps import get_current_account, get_tournament_service
from coinapi.models.tournament import TournamentStatus, TournamentType
from coinapi.schemas.account import AccountResponse
from coinapi.schemas.auth import WalletIdentity
from coinapi.schemas.coins import TransactionRecord
from coinapi.schemas.tournament import (
    JoinTournamentRequest,
    ParticipantResponse,
    RecordScoreRequest,
    SettleTournamentRequest,
    SettlementResult,
    TournamentCreateRequest,
    TournamentHistoryResponse,
    TournamentListResponse,
    TournamentResponse,
)
from coinapi.services.tournament_service import TournamentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tournaments", tags=["tournaments"])


@router.get("", response_model=TournamentListResponse)
def list_tournaments(
    status: Optional[TournamentStatus] = Query(None),
    tournament_type: Optional[TournamentType] = Query(None, alias="type"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    tournament_service: TournamentService = Depends(get_tournament_service),
) -> TournamentListResponse:
    return tournament_service.list_tournaments(
        status=status, tournament_type=tournament_type, limit=limit, offset=offset
    )


@router.get("/history/{wallet_address}", response_model=TournamentHistoryResponse)
def get_tournament_history(
    wallet_address: str = Path(...),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    tournament_service: TournamentService = Depends(get_tournament_service),
) -> TournamentHistoryResponse:
    """지갑의 참가 기록 (최근 참가 순)"""
    return tournament_service.history(wallet_address, limit=limit, offset=offset)


@router.get("/{tournament_id}", response_model=TournamentResponse)
def get_tournament(
    tournament_id: int = Path(..., ge=1),
    tournament_service: TournamentService = Depends(get_tournament_service),
) -> TournamentResponse:
    return tournament_service.get_tournament(tournament_id)


@router.get("/{tournament_id}/participants", response_model=List[ParticipantResponse])
def list_participants(
    tournament_id: int = Path(..., ge=1),
    tournament_service: TournamentService = Depends(get_tournament_service),
) -> List[ParticipantResponse]:
    return tournament_service.list_participants(tournament_id)


@router.post("/{tournament_id}/join", response_model=ParticipantResponse)
def join_tournament(
    request: JoinTournamentRequest,
    tournament_id: int = Path(..., ge=1),
    account: AccountResponse = Depends(get_current_account),
    tournament_service: TournamentService = Depends(get_tournament_service),
) -> ParticipantResponse:
    """
    토너먼트 참가 - 참가 통화에서 coins_burned 만큼 에스크로

    HTTP Status:
        200: 참가 성공
        400: 최소 참가 코인 미달 (TOURNAMENT_003) 또는 잔액 부족 (BALANCE_001)
        403: 참가 자격 없음 (TOURNAMENT_004)
        404: 토너먼트 없음
        409: 참가 불가 상태/기간 (STATE_001) 또는 이미 참가 (TOURNAMENT_001)
    """
    return tournament_service.join(tournament_id, account.wallet_address, request.coins_burned)


@router.post("/{tournament_id}/leave", response_model=TransactionRecord)
def leave_tournament(
    tournament_id: int = Path(..., ge=1),
    account: AccountResponse = Depends(get_current_account),
    tournament_service: TournamentService = Depends(get_tournament_service),
) -> TransactionRecord:
    return tournament_service.leave(tournament_id, account.wallet_address)


# ---- 운영자 ----


@router.post("", response_model=TournamentResponse)
def create_tournament(
    request: TournamentCreateRequest,
    admin: WalletIdentity = Depends(require_admin),
    tournament_service: TournamentService = Depends(get_tournament_service),
) -> TournamentResponse:
    logger.info(f"Admin {admin.wallet_address} creating tournament '{request.name}'")
    return tournament_service.create_tournament(request)


@router.post("/{tournament_id}/start", response_model=TournamentResponse)
def start_tournament(
    tournament_id: int = Path(..., ge=1),
    _: WalletIdentity = Depends(require_admin),
    tournament_service: TournamentService = Depends(get_tournament_service),
) -> TournamentResponse:
    return tournament_service.start(tournament_id)


@router.post("/{tournament_id}/end", response_model=TournamentResponse)
def end_tournament(
    tournament_id: int = Path(..., ge=1),
    _: WalletIdentity = Depends(require_admin),
    tournament_service: TournamentService = Depends(get_tournament_service),
) -> TournamentResponse:
    return tournament_service.end(tournament_id)


@router.post("/{tournament_id}/cancel", response_model=TournamentResponse)
def cancel_tournament(
    tournament_id: int = Path(..., ge=1),
    _: WalletIdentity = Depends(require_admin),
    tournament_service: TournamentService = Depends(get_tournament_service),
) -> TournamentResponse:
    return tournament_service.cancel(tournament_id)


@router.post("/{tournament_id}/scores", response_model=ParticipantResponse)
def record_score(
    request: RecordScoreRequest,
    tournament_id: int = Path(..., ge=1),
    _: WalletIdentity = Depends(require_admin),
    tournament_service: TournamentService = Depends(get_tournament_service),
) -> ParticipantResponse:
    return tournament_service.record_score(
        tournament_id, request.wallet_address, request.score
    )


@router.post("/{tournament_id}/settle", response_model=SettlementResult)
def settle_tournament(
    tournament_id: int = Path(..., ge=1),
    request: Optional[SettleTournamentRequest] = Body(None),
    admin: WalletIdentity = Depends(require_admin),
    tournament_service: TournamentService = Depends(get_tournament_service),
) -> SettlementResult:
    """
    토너먼트 정산 (ENDED 또는 중단된 SETTLING 상태에서 재개)

    HTTP Status:
        200: 정산 완료
        409: 이미 정산됨 (TOURNAMENT_002) 또는 정산 불가 상태 (STATE_001)
    """
    logger.info(f"Admin {admin.wallet_address} settling tournament {tournament_id}")
    request = request or SettleTournamentRequest()
    return tournament_service.settle(
        tournament_id, prize_rule=request.prize_rule, payout_bps=request.payout_bps
    )
