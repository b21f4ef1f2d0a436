import logging
from typing import List

from fastapi import APIRouter, Depends, Path

from coinapi.core.auth_middleware import require_admin
from coinapi.deps import get_eq_level_service
from coinapi.schemas.auth import WalletIdentity
from coinapi.schemas.eq_level import (
    EqLevelCreateRequest,
    EqLevelResponse,
    EqLevelStatsResponse,
    EqLevelUpdateRequest,
    WalletLevelResponse,
)
from coinapi.services.eq_level_service import EqLevelService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/eq-levels", tags=["eq-levels"])


@router.get("", response_model=List[EqLevelResponse])
def list_levels(
    service: EqLevelService = Depends(get_eq_level_service),
) -> List[EqLevelResponse]:
    """레벨 구간 목록 (min_eq 오름차순)"""
    return service.list_levels()


@router.get("/count")
def count_levels(service: EqLevelService = Depends(get_eq_level_service)) -> dict:
    return {"count": service.count_levels()}


@router.get("/stats", response_model=EqLevelStatsResponse)
def level_stats(
    _: WalletIdentity = Depends(require_admin),
    service: EqLevelService = Depends(get_eq_level_service),
) -> EqLevelStatsResponse:
    """레벨별 계정 수 (운영자)"""
    return service.stats()


@router.get("/check/{wallet_address}", response_model=WalletLevelResponse)
def check_wallet_level(
    wallet_address: str = Path(...),
    service: EqLevelService = Depends(get_eq_level_service),
) -> WalletLevelResponse:
    return service.level_for(wallet_address)


@router.post("", response_model=EqLevelResponse)
def create_level(
    request: EqLevelCreateRequest,
    admin: WalletIdentity = Depends(require_admin),
    service: EqLevelService = Depends(get_eq_level_service),
) -> EqLevelResponse:
    logger.info(
        f"Admin {admin.wallet_address} creating EQ level [{request.min_eq}, {request.max_eq}]"
    )
    return service.create_level(request)


@router.put("/{level_id}", response_model=EqLevelResponse)
def update_level(
    request: EqLevelUpdateRequest,
    level_id: int = Path(...),
    _: WalletIdentity = Depends(require_admin),
    service: EqLevelService = Depends(get_eq_level_service),
) -> EqLevelResponse:
    return service.update_level(level_id, request)


@router.delete("/{level_id}")
def delete_level(
    level_id: int = Path(...),
    _: WalletIdentity = Depends(require_admin),
    service: EqLevelService = Depends(get_eq_level_service),
) -> dict:
    service.delete_level(level_id)
    return {"deleted": True, "level_id": level_id}
