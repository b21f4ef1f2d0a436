from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from coinapi.models.coins import CoinType
from coinapi.models.tournament import (
    PrizeRule,
    RankingMode,
    TournamentStatus,
    TournamentType,
)


class TournamentCreateRequest(BaseModel):
    """토너먼트 생성 요청 (운영자)"""

    name: str = Field(..., min_length=3, max_length=100)
    tournament_type: TournamentType = TournamentType.BALANCED
    prize_pool: int = Field(..., gt=0, description="상금 풀")
    start_date: datetime
    end_date: datetime
    min_coins: int = Field(0, ge=0, description="최소 참가 코인")
    max_participants: Optional[int] = Field(None, gt=0, description="최대 참가자 수")
    equilibrium_min: Optional[int] = Field(None, ge=0)
    equilibrium_max: Optional[int] = Field(None, ge=0)
    entry_currency: Optional[CoinType] = None
    prize_currency: Optional[CoinType] = None
    ranking_mode: RankingMode = RankingMode.COINS_BURNED
    prize_rule: PrizeRule = PrizeRule.WINNER_TAKE_ALL
    payout_bps: Optional[List[int]] = Field(None, description="RANKED 규칙의 순위별 지급 비율")
    prize_token_address: Optional[str] = None
    chain_id: Optional[int] = None

    @model_validator(mode="after")
    def validate_window(self) -> "TournamentCreateRequest":
        if self.start_date >= self.end_date:
            raise ValueError("End date must be after start date")
        if (
            self.equilibrium_min is not None
            and self.equilibrium_max is not None
            and self.equilibrium_min > self.equilibrium_max
        ):
            raise ValueError("equilibrium_min must be <= equilibrium_max")
        return self


class TournamentResponse(BaseModel):
    id: int
    name: str
    tournament_type: TournamentType
    status: TournamentStatus
    prize_pool: int
    min_coins: int
    max_participants: Optional[int] = None
    equilibrium_min: Optional[int] = None
    equilibrium_max: Optional[int] = None
    entry_currency: CoinType
    prize_currency: CoinType
    ranking_mode: RankingMode
    prize_rule: PrizeRule
    payout_bps: Optional[List[int]] = None
    prize_token_address: Optional[str] = None
    chain_id: Optional[int] = None
    start_date: datetime
    end_date: datetime
    settled_at: Optional[datetime] = None
    settlement_reference: Optional[str] = None

    class Config:
        from_attributes = True


class ParticipantResponse(BaseModel):
    id: int
    tournament_id: int
    wallet_address: str
    coins_burned: int
    eligibility_type: TournamentType
    score: int
    final_rank: Optional[int] = None
    prize_amount: Optional[int] = None
    prize_share_bps: Optional[int] = None
    paid_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TournamentListResponse(BaseModel):
    tournaments: List[TournamentResponse]
    total_count: int
    has_next: bool


class TournamentHistoryEntry(BaseModel):
    """지갑의 토너먼트 참가 기록 한 건"""

    tournament_id: int
    name: str
    tournament_type: TournamentType
    status: TournamentStatus
    prize_pool: int
    prize_currency: CoinType
    start_date: datetime
    end_date: datetime
    coins_burned: int
    score: int
    final_rank: Optional[int] = None
    prize_amount: Optional[int] = None
    paid_at: Optional[datetime] = None
    joined_at: Optional[datetime] = None


class TournamentHistoryResponse(BaseModel):
    wallet_address: str
    entries: List[TournamentHistoryEntry]
    total_count: int
    has_next: bool


class JoinTournamentRequest(BaseModel):
    coins_burned: int = Field(..., gt=0, description="에스크로할 코인 수")


class RecordScoreRequest(BaseModel):
    wallet_address: str
    score: int = Field(..., ge=0)


class SettleTournamentRequest(BaseModel):
    """정산 규칙 (미지정 시 토너먼트 설정 사용)"""

    prize_rule: Optional[PrizeRule] = None
    payout_bps: Optional[List[int]] = None


class SettlementEntry(BaseModel):
    wallet_address: str
    final_rank: int
    prize_share_bps: int
    prize_amount: int
    paid: bool


class SettlementResult(BaseModel):
    """정산 결과"""

    tournament_id: int
    status: TournamentStatus
    settlement_reference: Optional[str] = None
    settled_at: Optional[datetime] = None
    prize_currency: CoinType
    entries: List[SettlementEntry] = Field(default_factory=list)
    total_distributed: int = 0
    undistributed: int = 0
    paid_this_run: int = Field(0, description="이번 호출에서 지급한 참가자 수")
