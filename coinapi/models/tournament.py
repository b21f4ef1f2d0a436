import enum
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    JSON,
    BigInteger,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.schema import UniqueConstraint

from coinapi.models.base import BaseModel
from coinapi.models.coins import CoinType


class TournamentStatus(str, enum.Enum):
    UPCOMING = "UPCOMING"  # 생성됨, 참가 가능 (기간 내)
    ACTIVE = "ACTIVE"  # 운영자가 시작함, 참가 가능 (기간 내)
    ENDED = "ENDED"  # 종료, 정산 대기
    SETTLING = "SETTLING"  # 순위 확정, 상금 지급 진행 중 (재시도 가능)
    SETTLED = "SETTLED"  # 정산 완료 (종료 상태)
    CANCELLED = "CANCELLED"  # 취소됨 (종료 상태)


class TournamentType(str, enum.Enum):
    BALANCED = "BALANCED"
    UNBALANCED = "UNBALANCED"


class RankingMode(str, enum.Enum):
    COINS_BURNED = "COINS_BURNED"
    SCORE = "SCORE"


class PrizeRule(str, enum.Enum):
    WINNER_TAKE_ALL = "WINNER_TAKE_ALL"
    PROPORTIONAL = "PROPORTIONAL"
    RANKED = "RANKED"


class Tournament(BaseModel):
    """
    토너먼트

    상태 전이와 정산 필드 외에는 생성 후 변경되지 않습니다.
    """

    __tablename__ = "tournaments"
    __table_args__ = (Index("idx_tournaments_status", "status"),)

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer(), "sqlite"), primary_key=True, autoincrement=True
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    tournament_type: Mapped[TournamentType] = mapped_column(
        Enum(TournamentType), default=TournamentType.BALANCED, nullable=False
    )
    status: Mapped[TournamentStatus] = mapped_column(
        Enum(TournamentStatus), default=TournamentStatus.UPCOMING, nullable=False
    )
    prize_pool: Mapped[int] = mapped_column(BigInteger, nullable=False)
    prize_token_address: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    chain_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    min_coins: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    max_participants: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    equilibrium_min: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    equilibrium_max: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    entry_currency: Mapped[CoinType] = mapped_column(
        Enum(CoinType), default=CoinType.EXPERIENCE, nullable=False
    )
    prize_currency: Mapped[CoinType] = mapped_column(
        Enum(CoinType), default=CoinType.PREMIUM, nullable=False
    )
    ranking_mode: Mapped[RankingMode] = mapped_column(
        Enum(RankingMode), default=RankingMode.COINS_BURNED, nullable=False
    )
    prize_rule: Mapped[PrizeRule] = mapped_column(
        Enum(PrizeRule), default=PrizeRule.WINNER_TAKE_ALL, nullable=False
    )
    # RANKED 규칙일 때 순위별 지급 비율 (basis points)
    payout_bps: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    settled_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    settlement_reference: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    def __repr__(self):
        return f"<Tournament(id={self.id}, name={self.name}, status={self.status})>"


class TournamentParticipant(BaseModel):
    """(토너먼트, 계정) 쌍마다 하나. 정산 시에만 갱신되며, 시작 전 탈퇴 시에만 삭제됨"""

    __tablename__ = "tournament_participants"
    __table_args__ = (
        UniqueConstraint("tournament_id", "wallet_address", name="uq_tournament_participant"),
    )

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer(), "sqlite"), primary_key=True, autoincrement=True
    )
    tournament_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("tournaments.id"), nullable=False, index=True
    )
    wallet_address: Mapped[str] = mapped_column(
        String(64), ForeignKey("accounts.wallet_address"), nullable=False
    )
    coins_burned: Mapped[int] = mapped_column(BigInteger, nullable=False)
    eligibility_type: Mapped[TournamentType] = mapped_column(
        Enum(TournamentType), nullable=False
    )
    score: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    final_rank: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    prize_amount: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    prize_share_bps: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    # 상금 지급 완료 시각 (정산 재시도 시 이중 지급 방지)
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def is_paid(self) -> bool:
        return self.paid_at is not None
