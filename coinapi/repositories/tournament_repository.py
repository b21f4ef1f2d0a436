from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import asc, desc, func, update
from sqlalchemy.orm import Session

from coinapi.models.tournament import (
    Tournament as TournamentModel,
    TournamentParticipant,
    TournamentStatus,
    TournamentType,
)
from coinapi.schemas.tournament import ParticipantResponse, TournamentResponse
from coinapi.repositories.base import BaseRepository


class TournamentRepository(BaseRepository[TournamentModel, TournamentResponse]):
    """토너먼트/참가자 저장소"""

    def __init__(self, db: Session):
        super().__init__(TournamentModel, TournamentResponse, db)

    def get_model(
        self, tournament_id: int, for_update: bool = False
    ) -> Optional[TournamentModel]:
        """토너먼트 조회 (for_update=True 이면 행 잠금으로 상태 전이를 직렬화)"""
        query = self.db.query(self.model_class).filter(self.model_class.id == tournament_id)
        if for_update:
            query = query.with_for_update()
        return query.populate_existing().first()

    def list_tournaments(
        self,
        status: Optional[TournamentStatus] = None,
        tournament_type: Optional[TournamentType] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> List[TournamentResponse]:
        query = self.db.query(self.model_class)
        if status:
            query = query.filter(self.model_class.status == status)
        if tournament_type:
            query = query.filter(self.model_class.tournament_type == tournament_type)
        instances = (
            query.order_by(asc(self.model_class.start_date), asc(self.model_class.id))
            .limit(limit)
            .offset(offset)
            .all()
        )
        return [self._to_schema(instance) for instance in instances]

    def count_tournaments(
        self,
        status: Optional[TournamentStatus] = None,
        tournament_type: Optional[TournamentType] = None,
    ) -> int:
        filters = {}
        if status:
            filters["status"] = status
        if tournament_type:
            filters["tournament_type"] = tournament_type
        return self.count(filters)

    # ---- 참가자 ----

    def get_participant(
        self, tournament_id: int, wallet_address: str
    ) -> Optional[TournamentParticipant]:
        return (
            self.db.query(TournamentParticipant)
            .filter(
                TournamentParticipant.tournament_id == tournament_id,
                TournamentParticipant.wallet_address == wallet_address,
            )
            .first()
        )

    def list_participants(self, tournament_id: int) -> List[TournamentParticipant]:
        """참가 순서(가입 시각, id)대로 참가자 목록"""
        return (
            self.db.query(TournamentParticipant)
            .filter(TournamentParticipant.tournament_id == tournament_id)
            .order_by(asc(TournamentParticipant.created_at), asc(TournamentParticipant.id))
            .all()
        )

    def list_participants_by_rank(self, tournament_id: int) -> List[TournamentParticipant]:
        return (
            self.db.query(TournamentParticipant)
            .filter(TournamentParticipant.tournament_id == tournament_id)
            .order_by(asc(TournamentParticipant.final_rank), asc(TournamentParticipant.id))
            .populate_existing()
            .all()
        )

    def list_participant_responses(self, tournament_id: int) -> List[ParticipantResponse]:
        participants = (
            self.db.query(TournamentParticipant)
            .filter(TournamentParticipant.tournament_id == tournament_id)
            .order_by(desc(TournamentParticipant.coins_burned), asc(TournamentParticipant.id))
            .all()
        )
        return [ParticipantResponse.model_validate(p) for p in participants]

    def count_participants(self, tournament_id: int) -> int:
        return (
            self.db.query(func.count(TournamentParticipant.id))
            .filter(TournamentParticipant.tournament_id == tournament_id)
            .scalar()
            or 0
        )

    def add_participant(self, **kwargs) -> TournamentParticipant:
        participant = TournamentParticipant(**kwargs)
        self.db.add(participant)
        self.db.flush()
        return participant

    def delete_participant(self, participant: TournamentParticipant) -> None:
        self.db.delete(participant)
        self.db.flush()

    def claim_payout(self, participant_id: int, paid_at: datetime):
        """미지급 참가자의 paid_at 을 조건부 UPDATE 로 선점하고 지급 정보를 반환

        이미 지급(또는 다른 작업자가 선점)됐거나 상금이 없는 참가자이면 None 을 반환합니다.
        선점은 호출자의 작업 단위와 함께 커밋되거나 롤백됩니다.
        """
        stmt = (
            update(TournamentParticipant)
            .where(
                TournamentParticipant.id == participant_id,
                TournamentParticipant.paid_at.is_(None),
                TournamentParticipant.prize_amount > 0,
            )
            .values(paid_at=paid_at)
            .returning(
                TournamentParticipant.wallet_address,
                TournamentParticipant.prize_amount,
                TournamentParticipant.final_rank,
                TournamentParticipant.prize_share_bps,
            )
            .execution_options(synchronize_session=False)
        )
        return self.db.execute(stmt).first()

    def list_history(
        self, wallet_address: str, limit: int = 50, offset: int = 0
    ) -> List[Tuple[TournamentParticipant, TournamentModel]]:
        """지갑의 참가 기록 (최근 참가 순)"""
        return (
            self.db.query(TournamentParticipant, self.model_class)
            .join(self.model_class, self.model_class.id == TournamentParticipant.tournament_id)
            .filter(TournamentParticipant.wallet_address == wallet_address)
            .order_by(desc(TournamentParticipant.created_at), desc(TournamentParticipant.id))
            .limit(limit)
            .offset(offset)
            .populate_existing()
            .all()
        )

    def count_history(self, wallet_address: str) -> int:
        return (
            self.db.query(func.count(TournamentParticipant.id))
            .filter(TournamentParticipant.wallet_address == wallet_address)
            .scalar()
            or 0
        )
