"""
토너먼트 엔진

상태 전이 (암묵적 전이 없음):
    UPCOMING --start--> ACTIVE --end--> ENDED --settle--> SETTLING --> SETTLED
    UPCOMING --cancel--> CANCELLED
SETTLED, CANCELLED 는 종료 상태입니다.

참가/탈퇴/취소는 원장 변경과 참가자 변경을 하나의 작업 단위로 커밋합니다.
정산은 순위 확정(SETTLING 전이)을 한 번 커밋한 뒤 참가자별 지급을 각각 커밋하므로,
중간에 실패해도 다시 호출하면 미지급 참가자만 이어서 지급합니다.
"""

import logging
import uuid
from datetime import datetime
from typing import List, Optional, Sequence

from sqlalchemy.orm import Session

from coinapi.config import Settings, settings as default_settings
from coinapi.core.exceptions import (
    AlreadyJoinedError,
    AlreadySettledError,
    BelowMinimumError,
    InternalConsistencyError,
    InvalidStateError,
    NotEligibleError,
    NotFoundError,
    UnknownAccountError,
    ValidationError,
)
from coinapi.database.session import atomic
from coinapi.models.coins import CoinSourceType, CoinType
from coinapi.models.tournament import (
    PrizeRule,
    RankingMode,
    Tournament as TournamentModel,
    TournamentParticipant,
    TournamentStatus,
    TournamentType,
)
from coinapi.providers.notifications import (
    Notifier,
    TournamentSettledEvent,
    publish_safely,
)
from coinapi.repositories.account_repository import AccountRepository
from coinapi.repositories.tournament_repository import TournamentRepository
from coinapi.schemas.coins import TransactionRecord
from coinapi.schemas.tournament import (
    ParticipantResponse,
    SettlementEntry,
    SettlementResult,
    TournamentCreateRequest,
    TournamentHistoryEntry,
    TournamentHistoryResponse,
    TournamentListResponse,
    TournamentResponse,
)
from coinapi.services.ledger_service import LedgerService
from coinapi.services.referral_service import ReferralService
from coinapi.utils.timezone_utils import to_utc, utc_now

logger = logging.getLogger(__name__)

BPS_DENOMINATOR = 10000
JOINABLE_STATES = (TournamentStatus.UPCOMING, TournamentStatus.ACTIVE)


def validate_payout_bps(payout_bps: Optional[Sequence[int]]) -> List[int]:
    """RANKED 규칙의 순위별 지급 비율 검증"""
    if not payout_bps:
        raise ValidationError("RANKED prize rule requires payout_bps")
    if any(isinstance(bps, bool) or not isinstance(bps, int) or bps < 0 for bps in payout_bps):
        raise ValidationError("payout_bps must be non-negative integers")
    if sum(payout_bps) > BPS_DENOMINATOR:
        raise ValidationError(
            "payout_bps must not exceed 10000 in total",
            details={"sum": sum(payout_bps)},
        )
    return list(payout_bps)


def compute_prize_shares(
    prize_rule: PrizeRule,
    metrics: Sequence[int],
    payout_bps: Optional[Sequence[int]] = None,
) -> List[int]:
    """순위순으로 정렬된 참가자 지표로부터 순위별 지급 비율(bps) 계산"""
    count = len(metrics)
    if count == 0:
        return []

    if prize_rule == PrizeRule.WINNER_TAKE_ALL:
        return [BPS_DENOMINATOR] + [0] * (count - 1)

    if prize_rule == PrizeRule.RANKED:
        bps = validate_payout_bps(payout_bps)
        return [bps[rank] if rank < len(bps) else 0 for rank in range(count)]

    total_metric = sum(metrics)
    if total_metric <= 0:
        # 모든 지표가 0 이면 균등 분배
        return [BPS_DENOMINATOR // count] * count
    return [metric * BPS_DENOMINATOR // total_metric for metric in metrics]


class TournamentService:
    """토너먼트 수명주기, 참가 에스크로, 정산"""

    def __init__(
        self,
        db: Session,
        settings: Optional[Settings] = None,
        notifier: Optional[Notifier] = None,
    ):
        self.db = db
        self.settings = settings or default_settings
        self.notifier = notifier
        self.tournament_repo = TournamentRepository(db)
        self.account_repo = AccountRepository(db)
        self.ledger = LedgerService(db, self.settings, notifier)
        self.referral_service = ReferralService(db, self.settings)

    # ---- 조회 ----

    def _require_tournament(
        self, tournament_id: int, for_update: bool = False
    ) -> TournamentModel:
        tournament = self.tournament_repo.get_model(tournament_id, for_update=for_update)
        if tournament is None:
            raise NotFoundError(
                f"Tournament not found: {tournament_id}",
                details={"tournament_id": tournament_id},
            )
        return tournament

    def get_tournament(self, tournament_id: int) -> TournamentResponse:
        return TournamentResponse.model_validate(self._require_tournament(tournament_id))

    def list_tournaments(
        self,
        status: Optional[TournamentStatus] = None,
        tournament_type: Optional[TournamentType] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> TournamentListResponse:
        limit = max(1, min(limit, 100))
        offset = max(0, offset)
        tournaments = self.tournament_repo.list_tournaments(
            status=status, tournament_type=tournament_type, limit=limit, offset=offset
        )
        total_count = self.tournament_repo.count_tournaments(status, tournament_type)
        return TournamentListResponse(
            tournaments=tournaments,
            total_count=total_count,
            has_next=offset + len(tournaments) < total_count,
        )

    def list_participants(self, tournament_id: int) -> List[ParticipantResponse]:
        self._require_tournament(tournament_id)
        return self.tournament_repo.list_participant_responses(tournament_id)

    def history(
        self, wallet_address: str, limit: int = 50, offset: int = 0
    ) -> TournamentHistoryResponse:
        """지갑의 토너먼트 참가 기록 (최근 참가 순)

        탈퇴한 토너먼트는 참가 행이 삭제되므로 포함되지 않습니다.
        """
        if not self.account_repo.exists(wallet_address):
            raise UnknownAccountError(wallet_address)

        limit = max(1, min(limit, 100))
        offset = max(0, offset)
        rows = self.tournament_repo.list_history(wallet_address, limit=limit, offset=offset)
        total_count = self.tournament_repo.count_history(wallet_address)
        entries = [
            TournamentHistoryEntry(
                tournament_id=tournament.id,
                name=tournament.name,
                tournament_type=tournament.tournament_type,
                status=tournament.status,
                prize_pool=tournament.prize_pool,
                prize_currency=tournament.prize_currency,
                start_date=tournament.start_date,
                end_date=tournament.end_date,
                coins_burned=participant.coins_burned,
                score=participant.score,
                final_rank=participant.final_rank,
                prize_amount=participant.prize_amount,
                paid_at=participant.paid_at,
                joined_at=participant.created_at,
            )
            for participant, tournament in rows
        ]
        return TournamentHistoryResponse(
            wallet_address=wallet_address,
            entries=entries,
            total_count=total_count,
            has_next=offset + len(entries) < total_count,
        )

    # ---- 운영자 ----

    def create_tournament(self, request: TournamentCreateRequest) -> TournamentResponse:
        """토너먼트 생성 (UPCOMING)"""
        start_date = to_utc(request.start_date)
        end_date = to_utc(request.end_date)
        if start_date >= end_date:
            raise ValidationError("End date must be after start date")

        payout_bps = request.payout_bps
        if request.prize_rule == PrizeRule.RANKED or payout_bps:
            payout_bps = validate_payout_bps(payout_bps)

        entry_currency = request.entry_currency or CoinType(
            self.settings.DEFAULT_ENTRY_CURRENCY
        )
        prize_currency = request.prize_currency or CoinType(
            self.settings.DEFAULT_PRIZE_CURRENCY
        )

        with atomic(self.db):
            tournament = self.tournament_repo.add(
                TournamentModel(
                    name=request.name,
                    tournament_type=request.tournament_type,
                    status=TournamentStatus.UPCOMING,
                    prize_pool=request.prize_pool,
                    prize_token_address=request.prize_token_address,
                    chain_id=request.chain_id,
                    min_coins=request.min_coins,
                    max_participants=request.max_participants,
                    equilibrium_min=request.equilibrium_min,
                    equilibrium_max=request.equilibrium_max,
                    entry_currency=entry_currency,
                    prize_currency=prize_currency,
                    ranking_mode=request.ranking_mode,
                    prize_rule=request.prize_rule,
                    payout_bps=payout_bps,
                    start_date=start_date,
                    end_date=end_date,
                )
            )
            response = TournamentResponse.model_validate(tournament)

        logger.info(
            f"Created tournament {response.id} '{response.name}' "
            f"(pool={response.prize_pool} {prize_currency.value}, rule={response.prize_rule.value})"
        )
        return response

    def _transition(
        self,
        tournament_id: int,
        from_status: TournamentStatus,
        to_status: TournamentStatus,
    ) -> TournamentResponse:
        with atomic(self.db):
            tournament = self._require_tournament(tournament_id, for_update=True)
            if tournament.status != from_status:
                raise InvalidStateError(
                    f"Cannot move tournament from {tournament.status.value} to {to_status.value}",
                    details={
                        "tournament_id": tournament_id,
                        "status": tournament.status.value,
                    },
                )
            tournament.status = to_status
            self.db.flush()
            response = TournamentResponse.model_validate(tournament)

        logger.info(
            f"Tournament {tournament_id}: {from_status.value} -> {to_status.value}"
        )
        return response

    def start(self, tournament_id: int) -> TournamentResponse:
        return self._transition(
            tournament_id, TournamentStatus.UPCOMING, TournamentStatus.ACTIVE
        )

    def end(self, tournament_id: int) -> TournamentResponse:
        return self._transition(
            tournament_id, TournamentStatus.ACTIVE, TournamentStatus.ENDED
        )

    def cancel(self, tournament_id: int) -> TournamentResponse:
        """시작 전 토너먼트 취소 - 모든 에스크로를 환불하고 참가자를 제거"""
        try:
            with atomic(self.db):
                tournament = self._require_tournament(tournament_id, for_update=True)
                if tournament.status != TournamentStatus.UPCOMING:
                    raise InvalidStateError(
                        "Only upcoming tournaments can be cancelled",
                        details={"status": tournament.status.value},
                    )

                participants = self.tournament_repo.list_participants(tournament_id)
                for participant in participants:
                    self.ledger.credit(
                        participant.wallet_address,
                        tournament.entry_currency,
                        participant.coins_burned,
                        source_type=CoinSourceType.TOURNAMENT,
                        description=f"Tournament {tournament_id} cancelled: refund",
                        source_id=str(tournament_id),
                        commit=False,
                    )
                    self.tournament_repo.delete_participant(participant)

                tournament.status = TournamentStatus.CANCELLED
                self.db.flush()
                response = TournamentResponse.model_validate(tournament)
        except Exception:
            self.ledger.discard_pending()
            raise

        self.ledger.publish_pending()
        logger.info(
            f"Tournament {tournament_id} cancelled, refunded {len(participants)} participants"
        )
        return response

    # ---- 참가 ----

    def join(
        self,
        tournament_id: int,
        wallet_address: str,
        amount: int,
        now: Optional[datetime] = None,
    ) -> ParticipantResponse:
        """토너먼트 참가 - 참가 통화에서 amount 를 차감하고 참가자 행을 생성

        차감과 참가자 생성은 함께 커밋되거나 함께 롤백됩니다.
        """
        if isinstance(amount, bool) or not isinstance(amount, int):
            raise ValidationError("Amount must be an integer", details={"amount": amount})
        now = to_utc(now) if now else utc_now()

        with atomic(self.db):
            tournament = self._require_tournament(tournament_id, for_update=True)

            if tournament.status not in JOINABLE_STATES:
                raise InvalidStateError(
                    "Tournament is not open for joining",
                    details={"status": tournament.status.value},
                )
            if not (to_utc(tournament.start_date) <= now < to_utc(tournament.end_date)):
                raise InvalidStateError(
                    "Tournament is outside its entry window",
                    details={
                        "start_date": to_utc(tournament.start_date).isoformat(),
                        "end_date": to_utc(tournament.end_date).isoformat(),
                    },
                )

            account = self.account_repo.get_model(wallet_address)
            if account is None:
                raise UnknownAccountError(wallet_address)

            if self.tournament_repo.get_participant(tournament_id, wallet_address):
                raise AlreadyJoinedError(
                    details={"tournament_id": tournament_id, "wallet_address": wallet_address}
                )

            if amount <= 0 or amount < tournament.min_coins:
                raise BelowMinimumError(
                    f"Minimum entry is {tournament.min_coins} coins",
                    details={"min_coins": tournament.min_coins, "amount": amount},
                )

            self._check_eligibility(tournament, account)

            if tournament.max_participants is not None:
                joined = self.tournament_repo.count_participants(tournament_id)
                if joined >= tournament.max_participants:
                    raise InvalidStateError(
                        "Tournament is full",
                        details={"max_participants": tournament.max_participants},
                    )

            self.ledger.debit(
                wallet_address,
                tournament.entry_currency,
                amount,
                source_type=CoinSourceType.TOURNAMENT,
                description=f"Tournament {tournament_id} entry",
                source_id=str(tournament_id),
                commit=False,
            )
            participant = self.tournament_repo.add_participant(
                tournament_id=tournament_id,
                wallet_address=wallet_address,
                coins_burned=amount,
                eligibility_type=tournament.tournament_type,
                score=0,
            )
            self.db.refresh(participant)
            response = ParticipantResponse.model_validate(participant)

        logger.info(
            f"{wallet_address} joined tournament {tournament_id} with {amount} "
            f"{tournament.entry_currency.value}"
        )
        return response

    def _check_eligibility(self, tournament: TournamentModel, account) -> None:
        if account.is_banned:
            raise NotEligibleError(
                "Banned accounts cannot join tournaments",
                details={"wallet_address": account.wallet_address},
            )

        summary = self.referral_service.get_summary(account.wallet_address, commit=False)
        account_type = (
            TournamentType.BALANCED if summary.is_balanced else TournamentType.UNBALANCED
        )
        if tournament.tournament_type != account_type:
            raise NotEligibleError(
                f"Only {tournament.tournament_type.value} accounts can join this tournament",
                details={"account_type": account_type.value},
            )

        point = summary.equilibrium_point
        if tournament.equilibrium_min is not None and point < tournament.equilibrium_min:
            raise NotEligibleError(
                "Equilibrium too low",
                details={"equilibrium_point": point, "equilibrium_min": tournament.equilibrium_min},
            )
        if tournament.equilibrium_max is not None and point > tournament.equilibrium_max:
            raise NotEligibleError(
                "Equilibrium too high",
                details={"equilibrium_point": point, "equilibrium_max": tournament.equilibrium_max},
            )

    def leave(self, tournament_id: int, wallet_address: str) -> TransactionRecord:
        """시작 전 탈퇴 - 에스크로 환불과 참가자 삭제를 함께 커밋"""
        try:
            with atomic(self.db):
                tournament = self._require_tournament(tournament_id, for_update=True)
                if tournament.status != TournamentStatus.UPCOMING:
                    raise InvalidStateError(
                        "Cannot leave a tournament that has already started",
                        details={"status": tournament.status.value},
                    )

                participant = self.tournament_repo.get_participant(
                    tournament_id, wallet_address
                )
                if participant is None:
                    raise NotFoundError(
                        "Not participating in this tournament",
                        details={"tournament_id": tournament_id, "wallet_address": wallet_address},
                    )

                refund = self.ledger.credit(
                    wallet_address,
                    tournament.entry_currency,
                    participant.coins_burned,
                    source_type=CoinSourceType.TOURNAMENT,
                    description=f"Tournament {tournament_id} refund",
                    source_id=str(tournament_id),
                    commit=False,
                )
                self.tournament_repo.delete_participant(participant)
        except Exception:
            self.ledger.discard_pending()
            raise

        self.ledger.publish_pending()
        logger.info(
            f"{wallet_address} left tournament {tournament_id}, refunded {refund.amount}"
        )
        return refund

    def record_score(
        self, tournament_id: int, wallet_address: str, score: int
    ) -> ParticipantResponse:
        if isinstance(score, bool) or not isinstance(score, int) or score < 0:
            raise ValidationError("Score must be a non-negative integer")

        with atomic(self.db):
            tournament = self._require_tournament(tournament_id)
            if tournament.status != TournamentStatus.ACTIVE:
                raise InvalidStateError(
                    "Scores can only be recorded while the tournament is active",
                    details={"status": tournament.status.value},
                )
            participant = self.tournament_repo.get_participant(tournament_id, wallet_address)
            if participant is None:
                raise NotFoundError(
                    "Not participating in this tournament",
                    details={"tournament_id": tournament_id, "wallet_address": wallet_address},
                )
            participant.score = score
            self.db.flush()
            return ParticipantResponse.model_validate(participant)

    # ---- 정산 ----

    @staticmethod
    def _ranking_metric(tournament: TournamentModel, participant: TournamentParticipant) -> int:
        if tournament.ranking_mode == RankingMode.SCORE:
            return participant.score
        return participant.coins_burned

    def _rank_participants(
        self, tournament: TournamentModel, prize_rule: PrizeRule, payout_bps
    ) -> None:
        """순위와 상금 확정 후 SETTLING 으로 전이 (호출자가 커밋)"""
        participants = self.tournament_repo.list_participants(tournament.id)
        ranked = sorted(
            participants,
            key=lambda p: (
                -self._ranking_metric(tournament, p),
                to_utc(p.created_at) or utc_now(),
                p.id,
            ),
        )
        shares = compute_prize_shares(
            prize_rule,
            [self._ranking_metric(tournament, p) for p in ranked],
            payout_bps,
        )

        total_prizes = 0
        for rank, (participant, share_bps) in enumerate(zip(ranked, shares), start=1):
            participant.final_rank = rank
            participant.prize_share_bps = share_bps
            participant.prize_amount = tournament.prize_pool * share_bps // BPS_DENOMINATOR
            total_prizes += participant.prize_amount

        if total_prizes > tournament.prize_pool:
            raise InternalConsistencyError(
                "Settlement exceeds prize pool",
                details={
                    "tournament_id": tournament.id,
                    "prize_pool": tournament.prize_pool,
                    "total_prizes": total_prizes,
                },
            )

        tournament.status = TournamentStatus.SETTLING
        tournament.settlement_reference = (
            f"settlement_{tournament.id}_{uuid.uuid4().hex[:12]}"
        )
        self.db.flush()
        logger.info(
            f"Tournament {tournament.id} ranked {len(ranked)} participants "
            f"(rule={prize_rule.value}, prizes={total_prizes}/{tournament.prize_pool})"
        )

    def _pay_participant(
        self, tournament: TournamentModel, participant_id: int
    ) -> bool:
        """참가자 한 명 지급

        paid_at 선점(조건부 UPDATE)과 원장 적립을 하나의 작업 단위로 커밋합니다.
        다른 정산 작업이 먼저 선점했다면 적립 없이 False 를 반환합니다.
        """
        try:
            with atomic(self.db):
                claim = self.tournament_repo.claim_payout(participant_id, utc_now())
                if claim is None:
                    return False
                self.ledger.credit(
                    claim.wallet_address,
                    tournament.prize_currency,
                    claim.prize_amount,
                    source_type=CoinSourceType.TOURNAMENT,
                    description=f"Tournament {tournament.id} prize (rank {claim.final_rank})",
                    source_id=tournament.settlement_reference,
                    metadata={
                        "tournament_id": tournament.id,
                        "final_rank": claim.final_rank,
                        "prize_share_bps": claim.prize_share_bps,
                    },
                    commit=False,
                )
        except Exception as e:
            self.ledger.discard_pending()
            logger.error(
                f"Prize payment failed for tournament {tournament.id} "
                f"participant {participant_id}: {str(e)}"
            )
            raise

        self.ledger.publish_pending()
        return True

    def settle(
        self,
        tournament_id: int,
        prize_rule: Optional[PrizeRule] = None,
        payout_bps: Optional[Sequence[int]] = None,
    ) -> SettlementResult:
        """토너먼트 정산

        ENDED: 순위/상금 확정 후 지급. SETTLING: 미지급 참가자만 이어서 지급.
        SETTLED: AlreadySettledError (재지급 없음).

        Args:
            tournament_id: 토너먼트 ID
            prize_rule: 지급 규칙 (미지정 시 토너먼트 설정)
            payout_bps: RANKED 규칙의 순위별 지급 비율 (미지정 시 토너먼트 설정)

        Returns:
            SettlementResult: 정산 결과
        """
        tournament = self._require_tournament(tournament_id)
        if tournament.status == TournamentStatus.SETTLED:
            raise AlreadySettledError(
                details={
                    "tournament_id": tournament_id,
                    "settlement_reference": tournament.settlement_reference,
                }
            )

        if tournament.status == TournamentStatus.ENDED:
            with atomic(self.db):
                tournament = self._require_tournament(tournament_id, for_update=True)
                if tournament.status != TournamentStatus.ENDED:
                    raise InvalidStateError(
                        "Tournament state changed during settlement",
                        details={"status": tournament.status.value},
                    )
                self._rank_participants(
                    tournament,
                    prize_rule or tournament.prize_rule,
                    payout_bps if payout_bps is not None else tournament.payout_bps,
                )
        elif tournament.status == TournamentStatus.SETTLING:
            logger.warning(
                f"Resuming settlement of tournament {tournament_id} "
                f"({tournament.settlement_reference})"
            )
        else:
            raise InvalidStateError(
                "Only ended tournaments can be settled",
                details={"status": tournament.status.value},
            )

        paid_this_run = 0
        for participant in self.tournament_repo.list_participants_by_rank(tournament_id):
            if participant.is_paid or not participant.prize_amount:
                continue
            if self._pay_participant(tournament, participant.id):
                paid_this_run += 1

        with atomic(self.db):
            tournament = self._require_tournament(tournament_id, for_update=True)
            finished_here = tournament.status == TournamentStatus.SETTLING
            if finished_here:
                tournament.status = TournamentStatus.SETTLED
                tournament.settled_at = utc_now()
                self.db.flush()

        result = self._settlement_result(tournament, paid_this_run)
        if not finished_here:
            logger.warning(
                f"Tournament {tournament_id} was finalized by a concurrent settlement "
                f"(paid_this_run={paid_this_run})"
            )
            return result

        logger.info(
            f"Tournament {tournament_id} settled: distributed={result.total_distributed} "
            f"undistributed={result.undistributed} paid_this_run={paid_this_run}"
        )
        publish_safely(
            self.notifier,
            TournamentSettledEvent(
                tournament_id=tournament_id,
                settlement_reference=result.settlement_reference,
                winners=[e.wallet_address for e in result.entries if e.prize_amount > 0],
                total_distributed=result.total_distributed,
            ),
        )
        return result

    def _settlement_result(
        self, tournament: TournamentModel, paid_this_run: int
    ) -> SettlementResult:
        participants = self.tournament_repo.list_participants_by_rank(tournament.id)
        entries = [
            SettlementEntry(
                wallet_address=p.wallet_address,
                final_rank=p.final_rank,
                prize_share_bps=p.prize_share_bps or 0,
                prize_amount=p.prize_amount or 0,
                paid=p.is_paid,
            )
            for p in participants
        ]
        total_distributed = sum(e.prize_amount for e in entries if e.paid)
        return SettlementResult(
            tournament_id=tournament.id,
            status=tournament.status,
            settlement_reference=tournament.settlement_reference,
            settled_at=tournament.settled_at,
            prize_currency=tournament.prize_currency,
            entries=entries,
            total_distributed=total_distributed,
            undistributed=tournament.prize_pool - total_distributed,
            paid_this_run=paid_this_run,
        )
