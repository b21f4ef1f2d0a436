from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from coinapi.models.coins import (
    COIN_BALANCE_FIELDS,
    CoinSourceType,
    CoinTransactionType,
    CoinType,
)


class CoinBalanceResponse(BaseModel):
    """코인 잔액 스냅샷"""

    wallet_address: str = Field(..., description="지갑 주소")
    experience_coins: int = Field(0, description="Experience 잔액")
    achievement_coins: int = Field(0, description="Achievement 잔액")
    social_coins: int = Field(0, description="Social 잔액")
    premium_coins: int = Field(0, description="Premium 잔액")
    total_coins: int = Field(0, description="하위 잔액 합계")
    last_updated_at: Optional[datetime] = Field(None, description="마지막 변경 시각")

    class Config:
        from_attributes = True

    def amount_of(self, coin_type: CoinType) -> int:
        return getattr(self, COIN_BALANCE_FIELDS[coin_type])


class TransactionRecord(BaseModel):
    """원장 항목"""

    id: int = Field(..., description="원장 항목 ID (커밋 순서)")
    wallet_address: str = Field(..., description="지갑 주소")
    coin_type: CoinType = Field(..., description="통화 종류")
    amount: int = Field(..., description="부호 있는 변동량")
    balance_before: int = Field(..., description="변동 전 하위 잔액")
    balance_after: int = Field(..., description="변동 후 하위 잔액")
    transaction_type: CoinTransactionType = Field(..., description="거래 유형")
    source_type: CoinSourceType = Field(..., description="발생 출처")
    source_id: Optional[str] = Field(None, description="출처 참조 ID")
    source_metadata: Optional[Dict[str, Any]] = Field(None, description="부가 정보")
    description: Optional[str] = Field(None, description="설명")
    created_at: Optional[datetime] = Field(None, description="생성 시각")

    class Config:
        from_attributes = True


class TransactionHistoryResponse(BaseModel):
    """원장 조회 응답 (최신순)"""

    wallet_address: str
    entries: List[TransactionRecord] = Field(..., description="원장 항목 목록")
    total_count: int = Field(..., description="전체 항목 수")
    has_next: bool = Field(..., description="다음 페이지 존재 여부")


class CoinCreditRequest(BaseModel):
    """관리자 적립/차감 요청"""

    wallet_address: str = Field(..., description="대상 지갑 주소")
    coin_type: CoinType = Field(CoinType.EXPERIENCE, description="통화 종류")
    amount: int = Field(..., gt=0, description="금액")
    source_type: CoinSourceType = Field(CoinSourceType.ADMIN, description="발생 출처")
    description: Optional[str] = Field(None, max_length=255, description="설명")


class CoinTransferRequest(BaseModel):
    """코인 이체 요청 (보내는 쪽은 인증된 호출자)"""

    to_wallet_address: str = Field(..., description="받는 지갑 주소")
    coin_type: CoinType = Field(CoinType.EXPERIENCE, description="통화 종류")
    amount: int = Field(..., gt=0, description="이체 금액")
    description: Optional[str] = Field(None, max_length=255, description="설명")


class CoinTransferResponse(BaseModel):
    debit: TransactionRecord = Field(..., description="보내는 쪽 원장 항목")
    credit: TransactionRecord = Field(..., description="받는 쪽 원장 항목")


class AdminCoinAdjustmentRequest(BaseModel):
    """관리자 코인 조정 요청"""

    wallet_address: str = Field(..., description="대상 지갑 주소")
    coin_type: CoinType = Field(CoinType.EXPERIENCE, description="통화 종류")
    amount: int = Field(..., description="조정할 금액 (양수: 추가, 음수: 차감)")
    reason: str = Field(..., min_length=1, max_length=255, description="조정 사유")


class CoinLeaderboardEntry(BaseModel):
    rank: int
    wallet_address: str
    experience_coins: int
    achievement_coins: int
    social_coins: int
    premium_coins: int
    total_coins: int


class LedgerIntegrityResponse(BaseModel):
    """원장 정합성 검증 결과"""

    status: str = Field(..., description="검증 상태 (OK, MISMATCH)")
    wallet_address: str = Field(..., description="지갑 주소")
    entry_count: int = Field(..., description="검증한 항목 수")
    error: Optional[str] = Field(None, description="오류 메시지")
    entry_id: Optional[int] = Field(None, description="오류 발생 항목 ID")
    verified_at: str = Field(..., description="검증 시간")
