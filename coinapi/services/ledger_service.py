"""
원장 서비스

계정별 4종 하위 잔액에 대한 적립/차감/이체를 담당합니다.
잔액 행은 이 서비스를 통해서만 변경되며, 모든 변경은 원장 항목을 하나씩 남깁니다.

- 잔액 변경은 저장소 레벨의 원자적 증감(UPDATE ... RETURNING)으로 수행되어
  같은 계정에 대한 동시 변경이 DB 행 잠금으로 직렬화됩니다
- 차감 가능 여부는 Total 이 아닌 해당 통화의 하위 잔액으로 판단합니다
- 변경 직후 Total == 하위 잔액 합계를 검사하며, 위반 시 커밋 전에 중단합니다
"""

import logging
import uuid
from typing import Any, Dict, List, Optional, Tuple, Union

from sqlalchemy.orm import Session

from coinapi.config import Settings, settings as default_settings
from coinapi.core.exceptions import (
    InsufficientFundsError,
    InternalConsistencyError,
    UnknownAccountError,
    ValidationError,
)
from coinapi.database.session import atomic
from coinapi.models.coins import (
    COIN_BALANCE_FIELDS,
    CoinSourceType,
    CoinTransactionType,
    CoinType,
)
from coinapi.providers.notifications import (
    CoinsCreditedEvent,
    NotificationEvent,
    Notifier,
    publish_safely,
)
from coinapi.repositories.account_repository import AccountRepository
from coinapi.repositories.coin_repository import CoinRepository
from coinapi.schemas.coins import (
    CoinBalanceResponse,
    CoinLeaderboardEntry,
    LedgerIntegrityResponse,
    TransactionHistoryResponse,
    TransactionRecord,
)
from coinapi.utils.timezone_utils import utc_now

logger = logging.getLogger(__name__)

MAX_HISTORY_PAGE_SIZE = 100


class LedgerService:
    """코인 원장 비즈니스 로직"""

    def __init__(
        self,
        db: Session,
        settings: Optional[Settings] = None,
        notifier: Optional[Notifier] = None,
    ):
        self.db = db
        self.settings = settings or default_settings
        self.coin_repo = CoinRepository(db)
        self.account_repo = AccountRepository(db)
        self.notifier = notifier
        self._pending_events: List[NotificationEvent] = []

    # ---- 입력 검증 ----

    @staticmethod
    def _coerce_coin_type(coin_type: Union[CoinType, str]) -> CoinType:
        try:
            return CoinType(coin_type)
        except ValueError:
            raise ValidationError(
                f"Unknown coin type: {coin_type}",
                details={"allowed": [c.value for c in CoinType]},
            )

    @staticmethod
    def _validate_amount(amount: Any) -> int:
        if isinstance(amount, bool) or not isinstance(amount, int):
            raise ValidationError("Amount must be an integer", details={"amount": amount})
        if amount <= 0:
            raise ValidationError("Amount must be positive", details={"amount": amount})
        return amount

    # ---- 내부 헬퍼 ----

    def _check_invariant(self, wallet_address: str, row) -> None:
        """변경 후 잔액 행의 불변식 검사 (Total == 합계, 음수 없음)"""
        sub_balances = {
            field: getattr(row, field) for field in COIN_BALANCE_FIELDS.values()
        }
        total = row.total_coins
        if total != sum(sub_balances.values()) or any(
            value < 0 for value in sub_balances.values()
        ):
            logger.critical(
                f"Balance invariant violated for {wallet_address}: "
                f"total={total} sub_balances={sub_balances}"
            )
            raise InternalConsistencyError(
                "Balance invariant violated",
                details={
                    "wallet_address": wallet_address,
                    "total_coins": total,
                    **sub_balances,
                },
            )

    def _append_entry(
        self,
        wallet_address: str,
        coin_type: CoinType,
        signed_amount: int,
        row,
        transaction_type: CoinTransactionType,
        source_type: CoinSourceType,
        source_id: Optional[str],
        metadata: Optional[Dict[str, Any]],
        description: Optional[str],
    ) -> TransactionRecord:
        balance_after = getattr(row, COIN_BALANCE_FIELDS[coin_type])
        entry = self.coin_repo.append_transaction(
            wallet_address=wallet_address,
            coin_type=coin_type,
            amount=signed_amount,
            balance_before=balance_after - signed_amount,
            balance_after=balance_after,
            transaction_type=transaction_type,
            source_type=source_type,
            source_id=source_id,
            source_metadata=metadata,
            description=description,
        )
        self.db.refresh(entry)
        return self.coin_repo.to_record(entry)

    def publish_pending(self) -> None:
        """커밋 이후 대기 중인 알림 발행"""
        events, self._pending_events = self._pending_events, []
        for event in events:
            publish_safely(self.notifier, event)

    def discard_pending(self) -> None:
        self._pending_events = []

    def _finish(self, commit: bool) -> None:
        if commit:
            self.publish_pending()

    # ---- 공개 연산 ----

    def credit(
        self,
        wallet_address: str,
        coin_type: Union[CoinType, str],
        amount: int,
        source_type: CoinSourceType = CoinSourceType.OTHER,
        description: Optional[str] = None,
        source_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        transaction_type: CoinTransactionType = CoinTransactionType.EARNED,
        commit: bool = True,
    ) -> TransactionRecord:
        """코인 적립

        Args:
            wallet_address: 지갑 주소
            coin_type: 통화 종류
            amount: 적립 금액 (양의 정수)
            source_type: 발생 출처
            description: 설명
            source_id: 출처 참조 ID (토너먼트 ID, 이체 참조 등)
            metadata: 부가 정보
            transaction_type: 거래 유형 (이체 수신 시 TRANSFERRED)
            commit: False 이면 상위 작업 단위에 참여

        Returns:
            TransactionRecord: 생성된 원장 항목
        """
        coin_type = self._coerce_coin_type(coin_type)
        amount = self._validate_amount(amount)

        with atomic(self.db, commit=commit):
            if not self.account_repo.exists(wallet_address):
                raise UnknownAccountError(wallet_address)

            self.coin_repo.ensure_balance_row(wallet_address)
            row = self.coin_repo.apply_delta(wallet_address, coin_type, amount)
            if row is None:
                raise InternalConsistencyError(
                    "Balance row missing after creation",
                    details={"wallet_address": wallet_address},
                )
            self._check_invariant(wallet_address, row)

            record = self._append_entry(
                wallet_address,
                coin_type,
                amount,
                row,
                transaction_type,
                source_type,
                source_id,
                metadata,
                description,
            )

        self._pending_events.append(
            CoinsCreditedEvent(
                wallet_address=wallet_address,
                coin_type=coin_type.value,
                amount=amount,
                balance_after=record.balance_after,
                source_type=source_type.value,
                transaction_id=record.id,
            )
        )
        self._finish(commit)

        logger.info(
            f"Credited {amount} {coin_type.value} to {wallet_address} "
            f"({source_type.value}, balance={record.balance_after})"
        )
        return record

    def debit(
        self,
        wallet_address: str,
        coin_type: Union[CoinType, str],
        amount: int,
        source_type: CoinSourceType = CoinSourceType.OTHER,
        description: Optional[str] = None,
        source_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        transaction_type: CoinTransactionType = CoinTransactionType.SPENT,
        commit: bool = True,
    ) -> TransactionRecord:
        """코인 차감

        해당 통화의 하위 잔액이 부족하면 InsufficientFundsError 를 발생시키며
        어떤 잔액도 변경되지 않습니다.
        """
        coin_type = self._coerce_coin_type(coin_type)
        amount = self._validate_amount(amount)

        with atomic(self.db, commit=commit):
            if not self.account_repo.exists(wallet_address):
                raise UnknownAccountError(wallet_address)

            row = self.coin_repo.apply_delta(wallet_address, coin_type, -amount)
            if row is None:
                current = self.coin_repo.get_balance(wallet_address)
                available = current.amount_of(coin_type) if current else 0
                logger.warning(
                    f"Insufficient {coin_type.value} for {wallet_address}: "
                    f"requested={amount} available={available}"
                )
                raise InsufficientFundsError(
                    f"Insufficient {coin_type.value} balance",
                    details={
                        "wallet_address": wallet_address,
                        "coin_type": coin_type.value,
                        "requested": amount,
                        "available": available,
                    },
                )
            self._check_invariant(wallet_address, row)

            record = self._append_entry(
                wallet_address,
                coin_type,
                -amount,
                row,
                transaction_type,
                source_type,
                source_id,
                metadata,
                description,
            )

        logger.info(
            f"Debited {amount} {coin_type.value} from {wallet_address} "
            f"({source_type.value}, balance={record.balance_after})"
        )
        return record

    def transfer(
        self,
        from_wallet: str,
        to_wallet: str,
        coin_type: Union[CoinType, str],
        amount: int,
        description: Optional[str] = None,
        commit: bool = True,
    ) -> Tuple[TransactionRecord, TransactionRecord]:
        """계정 간 이체 - 차감과 적립이 함께 커밋되거나 함께 롤백됩니다

        Returns:
            (보내는 쪽 원장 항목, 받는 쪽 원장 항목)
        """
        coin_type = self._coerce_coin_type(coin_type)
        amount = self._validate_amount(amount)
        if from_wallet == to_wallet:
            raise ValidationError("Cannot transfer to the same account")

        reference = f"transfer_{uuid.uuid4().hex}"
        metadata = {"from": from_wallet, "to": to_wallet}

        def _debit():
            return self.debit(
                from_wallet,
                coin_type,
                amount,
                source_type=CoinSourceType.TRANSFER,
                description=description,
                source_id=reference,
                metadata=metadata,
                transaction_type=CoinTransactionType.SPENT,
                commit=False,
            )

        def _credit():
            return self.credit(
                to_wallet,
                coin_type,
                amount,
                source_type=CoinSourceType.TRANSFER,
                description=description,
                source_id=reference,
                metadata=metadata,
                transaction_type=CoinTransactionType.TRANSFERRED,
                commit=False,
            )

        try:
            with atomic(self.db, commit=commit):
                if not self.account_repo.exists(to_wallet):
                    raise UnknownAccountError(to_wallet)

                # 행 잠금 순서를 지갑 주소 순으로 고정 (교착 방지)
                if from_wallet < to_wallet:
                    debit_record = _debit()
                    credit_record = _credit()
                else:
                    credit_record = _credit()
                    debit_record = _debit()
        except Exception:
            self.discard_pending()
            raise

        self._finish(commit)
        logger.info(
            f"Transferred {amount} {coin_type.value} {from_wallet} -> {to_wallet} ({reference})"
        )
        return debit_record, credit_record

    def balance(self, wallet_address: str) -> CoinBalanceResponse:
        """잔액 조회 - 잔액 행이 없으면 생성하지 않고 0 을 반환"""
        balance = self.coin_repo.get_balance(wallet_address)
        if balance is None:
            return CoinBalanceResponse(wallet_address=wallet_address)
        return balance

    def get_transactions(
        self,
        wallet_address: str,
        coin_type: Optional[Union[CoinType, str]] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> TransactionHistoryResponse:
        """원장 조회 (최신순, 최대 100건)"""
        if coin_type is not None:
            coin_type = self._coerce_coin_type(coin_type)
        limit = max(1, min(limit, MAX_HISTORY_PAGE_SIZE))
        offset = max(0, offset)

        entries = self.coin_repo.list_transactions(
            wallet_address, coin_type=coin_type, limit=limit, offset=offset
        )
        total_count = self.coin_repo.count_transactions(wallet_address, coin_type)
        return TransactionHistoryResponse(
            wallet_address=wallet_address,
            entries=entries,
            total_count=total_count,
            has_next=offset + len(entries) < total_count,
        )

    def adjust(
        self,
        wallet_address: str,
        coin_type: Union[CoinType, str],
        delta: int,
        reason: str,
        admin_wallet: Optional[str] = None,
    ) -> TransactionRecord:
        """관리자 조정 (양수: 적립, 음수: 차감)"""
        if isinstance(delta, bool) or not isinstance(delta, int) or delta == 0:
            raise ValidationError("Adjustment amount must be a non-zero integer")

        metadata = {"admin": admin_wallet, "reason": reason}
        description = f"Admin adjustment: {reason}"
        if delta > 0:
            record = self.credit(
                wallet_address,
                coin_type,
                delta,
                source_type=CoinSourceType.ADMIN,
                description=description,
                metadata=metadata,
            )
        else:
            record = self.debit(
                wallet_address,
                coin_type,
                -delta,
                source_type=CoinSourceType.ADMIN,
                description=description,
                metadata=metadata,
            )

        logger.info(
            f"Admin {admin_wallet or '-'} adjusted {wallet_address} by {delta}: {reason}"
        )
        return record

    def top_balances(
        self, limit: int = 100, coin_type: Optional[Union[CoinType, str]] = None
    ) -> List[CoinLeaderboardEntry]:
        if coin_type is not None:
            coin_type = self._coerce_coin_type(coin_type)
        limit = max(1, min(limit, MAX_HISTORY_PAGE_SIZE))

        rows = self.coin_repo.top_balances(limit=limit, coin_type=coin_type)
        return [
            CoinLeaderboardEntry(
                rank=index,
                wallet_address=row.wallet_address,
                experience_coins=row.experience_coins,
                achievement_coins=row.achievement_coins,
                social_coins=row.social_coins,
                premium_coins=row.premium_coins,
                total_coins=row.total_coins,
            )
            for index, row in enumerate(rows, start=1)
        ]

    def verify_integrity(self, wallet_address: str) -> LedgerIntegrityResponse:
        """원장 재생(replay)으로 잔액과 순서 불변식을 검증 (읽기 전용, 보정하지 않음)"""
        entries = self.coin_repo.transactions_in_commit_order(wallet_address)
        verified_at = utc_now().isoformat()

        def _mismatch(error: str, entry_id: Optional[int] = None) -> LedgerIntegrityResponse:
            logger.error(f"Ledger mismatch for {wallet_address}: {error} (entry={entry_id})")
            return LedgerIntegrityResponse(
                status="MISMATCH",
                wallet_address=wallet_address,
                entry_count=len(entries),
                error=error,
                entry_id=entry_id,
                verified_at=verified_at,
            )

        running = {coin_type: 0 for coin_type in CoinType}
        for entry in entries:
            if entry.balance_before != running[entry.coin_type]:
                return _mismatch(
                    f"{entry.coin_type.value} balance_before {entry.balance_before} "
                    f"!= previous balance_after {running[entry.coin_type]}",
                    entry.id,
                )
            if entry.balance_after - entry.balance_before != entry.amount:
                return _mismatch(
                    f"Entry amount {entry.amount} does not match balance change", entry.id
                )
            running[entry.coin_type] = entry.balance_after

        stored = self.balance(wallet_address)
        for coin_type, expected in running.items():
            if stored.amount_of(coin_type) != expected:
                return _mismatch(
                    f"Stored {coin_type.value} balance {stored.amount_of(coin_type)} "
                    f"!= ledger balance {expected}"
                )
        if stored.total_coins != sum(running.values()):
            return _mismatch(
                f"Stored total {stored.total_coins} != sum of sub-balances {sum(running.values())}"
            )

        return LedgerIntegrityResponse(
            status="OK",
            wallet_address=wallet_address,
            entry_count=len(entries),
            verified_at=verified_at,
        )
