from types import SimpleNamespace
from unittest.mock import Mock

import pytest
from sqlalchemy import update

from coinapi.core.exceptions import (
    InsufficientFundsError,
    InternalConsistencyError,
    UnknownAccountError,
    ValidationError,
)
from coinapi.models.coins import (
    CoinBalance,
    CoinSourceType,
    CoinTransaction,
    CoinTransactionType,
    CoinType,
)
from coinapi.providers.notifications import CoinsCreditedEvent
from coinapi.services.ledger_service import LedgerService


def _assert_conserved(balance):
    assert balance.total_coins == (
        balance.experience_coins
        + balance.achievement_coins
        + balance.social_coins
        + balance.premium_coins
    )


class TestCreditDebit:
    """적립/차감 테스트"""

    def test_credit_creates_balance_row(self, ledger_service, funded_account, wallets):
        """첫 적립 시 잔액 행이 0 에서 생성됨"""
        # Arrange
        wallet = funded_account(wallets[0])

        # Act
        record = ledger_service.credit(
            wallet, CoinType.ACHIEVEMENT, 40, source_type=CoinSourceType.ACHIEVEMENT
        )

        # Assert
        assert record.amount == 40
        assert record.balance_before == 0
        assert record.balance_after == 40
        assert record.transaction_type == CoinTransactionType.EARNED
        balance = ledger_service.balance(wallet)
        assert balance.achievement_coins == 40
        assert balance.total_coins == 40

    def test_balance_without_row_returns_zero(self, ledger_service, funded_account, db_session, wallets):
        """잔액 행이 없으면 생성하지 않고 0 반환"""
        wallet = funded_account(wallets[0])

        balance = ledger_service.balance(wallet)

        assert balance.total_coins == 0
        assert balance.premium_coins == 0
        assert db_session.query(CoinBalance).count() == 0

    def test_debit_insufficient_funds_leaves_balance(self, ledger_service, funded_account, db_session, wallets):
        """잔액 100 에서 150 차감 시 InsufficientFunds, 잔액 유지"""
        # Arrange
        wallet = funded_account(wallets[0], experience=100)

        # Act / Assert
        with pytest.raises(InsufficientFundsError) as exc_info:
            ledger_service.debit(wallet, CoinType.EXPERIENCE, 150, source_type=CoinSourceType.GAME_PLAY)

        assert exc_info.value.details["available"] == 100
        assert ledger_service.balance(wallet).experience_coins == 100
        assert db_session.query(CoinTransaction).count() == 1

    def test_debit_bound_by_sub_balance_not_total(self, ledger_service, funded_account, wallets):
        """다른 통화의 잔액으로 차감을 충당할 수 없음"""
        wallet = funded_account(wallets[0], experience=100)
        ledger_service.credit(wallet, CoinType.PREMIUM, 500)

        with pytest.raises(InsufficientFundsError):
            ledger_service.debit(wallet, CoinType.EXPERIENCE, 150)

        balance = ledger_service.balance(wallet)
        assert balance.experience_coins == 100
        assert balance.premium_coins == 500
        assert balance.total_coins == 600

    def test_debit_without_balance_row(self, ledger_service, funded_account, wallets):
        wallet = funded_account(wallets[0])

        with pytest.raises(InsufficientFundsError):
            ledger_service.debit(wallet, CoinType.SOCIAL, 1)

    def test_debit_records_spent_entry(self, ledger_service, funded_account, wallets):
        wallet = funded_account(wallets[0], experience=100)

        record = ledger_service.debit(wallet, CoinType.EXPERIENCE, 30, description="Shop")

        assert record.amount == -30
        assert record.balance_before == 100
        assert record.balance_after == 70
        assert record.transaction_type == CoinTransactionType.SPENT
        _assert_conserved(ledger_service.balance(wallet))

    def test_credit_unknown_account(self, ledger_service, wallets):
        with pytest.raises(UnknownAccountError):
            ledger_service.credit(wallets[0], CoinType.EXPERIENCE, 10)

    @pytest.mark.parametrize("amount", [0, -5, 1.5, True, "10"])
    def test_invalid_amount(self, ledger_service, funded_account, wallets, amount):
        wallet = funded_account(wallets[0])

        with pytest.raises(ValidationError):
            ledger_service.credit(wallet, CoinType.EXPERIENCE, amount)

    def test_invalid_coin_type(self, ledger_service, funded_account, wallets):
        wallet = funded_account(wallets[0])

        with pytest.raises(ValidationError):
            ledger_service.credit(wallet, "GOLD", 10)

    def test_coin_type_accepts_string_value(self, ledger_service, funded_account, wallets):
        wallet = funded_account(wallets[0])

        record = ledger_service.credit(wallet, "SOCIAL", 10)

        assert record.coin_type == CoinType.SOCIAL


class TestTransfer:
    """이체 테스트"""

    def test_transfer_moves_coins(self, ledger_service, funded_account, wallets):
        # Arrange
        sender = funded_account(wallets[0], experience=200)
        receiver = funded_account(wallets[1])

        # Act
        debit, credit = ledger_service.transfer(sender, receiver, CoinType.EXPERIENCE, 75)

        # Assert
        assert debit.amount == -75
        assert credit.amount == 75
        assert debit.transaction_type == CoinTransactionType.SPENT
        assert credit.transaction_type == CoinTransactionType.TRANSFERRED
        assert debit.source_type == credit.source_type == CoinSourceType.TRANSFER
        assert debit.source_id == credit.source_id
        assert ledger_service.balance(sender).experience_coins == 125
        assert ledger_service.balance(receiver).experience_coins == 75

    def test_transfer_in_reverse_wallet_order(self, ledger_service, funded_account, wallets):
        """보내는 주소가 더 커도 결과는 동일"""
        sender = funded_account(wallets[4], experience=50)
        receiver = funded_account(wallets[0])

        ledger_service.transfer(sender, receiver, CoinType.EXPERIENCE, 50)

        assert ledger_service.balance(sender).experience_coins == 0
        assert ledger_service.balance(receiver).experience_coins == 50

    def test_transfer_insufficient_funds_is_atomic(self, ledger_service, funded_account, db_session, wallets):
        sender = funded_account(wallets[0], experience=10)
        receiver = funded_account(wallets[1], experience=5)
        entries_before = db_session.query(CoinTransaction).count()

        with pytest.raises(InsufficientFundsError):
            ledger_service.transfer(sender, receiver, CoinType.EXPERIENCE, 20)

        assert ledger_service.balance(sender).experience_coins == 10
        assert ledger_service.balance(receiver).experience_coins == 5
        assert db_session.query(CoinTransaction).count() == entries_before

    def test_transfer_credit_failure_rolls_back_debit(self, ledger_service, funded_account, wallets):
        """받는 쪽 적립이 실패하면 보내는 쪽 차감도 롤백"""
        # wallets[0] < wallets[4] 이므로 차감이 먼저 실행된 뒤 적립이 실패
        sender = funded_account(wallets[0], experience=100)
        receiver = funded_account(wallets[4])
        ledger_service.credit = Mock(side_effect=RuntimeError("storage failure"))

        with pytest.raises(RuntimeError):
            ledger_service.transfer(sender, receiver, CoinType.EXPERIENCE, 40)

        fresh = LedgerService(ledger_service.db)
        assert fresh.balance(sender).experience_coins == 100
        assert fresh.balance(receiver).experience_coins == 0
        assert fresh.verify_integrity(sender).status == "OK"

    def test_transfer_to_unknown_account(self, ledger_service, funded_account, wallets):
        sender = funded_account(wallets[0], experience=100)

        with pytest.raises(UnknownAccountError):
            ledger_service.transfer(sender, wallets[3], CoinType.EXPERIENCE, 10)

        assert ledger_service.balance(sender).experience_coins == 100

    def test_transfer_to_self(self, ledger_service, funded_account, wallets):
        sender = funded_account(wallets[0], experience=100)

        with pytest.raises(ValidationError):
            ledger_service.transfer(sender, sender, CoinType.EXPERIENCE, 10)


class TestInvariants:
    """보존/순서 불변식 테스트"""

    def test_ledger_ordering_and_conservation(self, ledger_service, funded_account, db_session, wallets):
        # Arrange
        alice = funded_account(wallets[0], experience=500)
        bob = funded_account(wallets[1], experience=100)

        # Act
        ledger_service.credit(alice, CoinType.PREMIUM, 70)
        ledger_service.debit(alice, CoinType.EXPERIENCE, 120)
        ledger_service.transfer(alice, bob, CoinType.EXPERIENCE, 80)
        ledger_service.transfer(bob, alice, CoinType.EXPERIENCE, 30)
        with pytest.raises(InsufficientFundsError):
            ledger_service.debit(bob, CoinType.PREMIUM, 1)
        ledger_service.credit(bob, CoinType.SOCIAL, 9)

        # Assert
        for wallet in (alice, bob):
            _assert_conserved(ledger_service.balance(wallet))
            entries = (
                db_session.query(CoinTransaction)
                .filter(CoinTransaction.wallet_address == wallet)
                .order_by(CoinTransaction.id)
                .all()
            )
            for coin_type in CoinType:
                series = [e for e in entries if e.coin_type == coin_type]
                for previous, current in zip(series, series[1:]):
                    assert previous.balance_after == current.balance_before
            assert ledger_service.verify_integrity(wallet).status == "OK"

        assert ledger_service.balance(alice).experience_coins == 330
        assert ledger_service.balance(bob).experience_coins == 150

    def test_invariant_violation_aborts_before_commit(self, ledger_service, funded_account, db_session, wallets):
        """Total != 합계인 잔액 행이 반환되면 InternalConsistencyError, 원장 항목 없음"""
        wallet = funded_account(wallets[0], experience=10)
        entries_before = db_session.query(CoinTransaction).count()
        broken_row = SimpleNamespace(
            experience_coins=20,
            achievement_coins=0,
            social_coins=0,
            premium_coins=0,
            total_coins=21,
        )
        ledger_service.coin_repo.apply_delta = Mock(return_value=broken_row)

        with pytest.raises(InternalConsistencyError):
            ledger_service.credit(wallet, CoinType.EXPERIENCE, 10)

        assert db_session.query(CoinTransaction).count() == entries_before
        assert LedgerService(db_session).balance(wallet).experience_coins == 10

    def test_verify_integrity_detects_tampering(self, ledger_service, funded_account, db_session, wallets):
        wallet = funded_account(wallets[0], experience=100)
        db_session.execute(
            update(CoinBalance)
            .where(CoinBalance.wallet_address == wallet)
            .values(experience_coins=150, total_coins=150)
        )
        db_session.commit()

        report = ledger_service.verify_integrity(wallet)

        assert report.status == "MISMATCH"
        assert "EXPERIENCE" in report.error


class TestLedgerQueries:
    def test_get_transactions_newest_first(self, ledger_service, funded_account, wallets):
        wallet = funded_account(wallets[0])
        for amount in (1, 2, 3, 4, 5):
            ledger_service.credit(wallet, CoinType.EXPERIENCE, amount)

        page = ledger_service.get_transactions(wallet, limit=2)

        assert [e.amount for e in page.entries] == [5, 4]
        assert page.total_count == 5
        assert page.has_next is True

        last_page = ledger_service.get_transactions(wallet, limit=2, offset=4)
        assert [e.amount for e in last_page.entries] == [1]
        assert last_page.has_next is False

    def test_get_transactions_filters_coin_type(self, ledger_service, funded_account, wallets):
        wallet = funded_account(wallets[0], experience=10)
        ledger_service.credit(wallet, CoinType.PREMIUM, 3)

        page = ledger_service.get_transactions(wallet, coin_type=CoinType.PREMIUM)

        assert page.total_count == 1
        assert page.entries[0].coin_type == CoinType.PREMIUM

    def test_adjust(self, ledger_service, funded_account, wallets):
        wallet = funded_account(wallets[0], experience=100)

        added = ledger_service.adjust(wallet, CoinType.EXPERIENCE, 25, "bonus", admin_wallet=wallets[4])
        removed = ledger_service.adjust(wallet, CoinType.EXPERIENCE, -50, "abuse", admin_wallet=wallets[4])

        assert added.source_type == CoinSourceType.ADMIN
        assert added.source_metadata == {"admin": wallets[4], "reason": "bonus"}
        assert removed.amount == -50
        assert ledger_service.balance(wallet).experience_coins == 75

        with pytest.raises(ValidationError):
            ledger_service.adjust(wallet, CoinType.EXPERIENCE, 0, "noop")

    def test_top_balances(self, ledger_service, funded_account, wallets):
        funded_account(wallets[0], experience=10)
        funded_account(wallets[1], experience=30)
        funded_account(wallets[2], experience=20)
        ledger_service.credit(wallets[0], CoinType.PREMIUM, 100)

        by_total = ledger_service.top_balances(limit=3)
        by_experience = ledger_service.top_balances(limit=3, coin_type=CoinType.EXPERIENCE)

        assert [e.wallet_address for e in by_total] == [wallets[0], wallets[1], wallets[2]]
        assert [e.wallet_address for e in by_experience] == [wallets[1], wallets[2], wallets[0]]
        assert by_total[0].rank == 1


class TestNotifications:
    def test_credit_publishes_after_commit(self, db_session, funded_account, wallets):
        notifier = Mock()
        service = LedgerService(db_session, notifier=notifier)
        wallet = funded_account(wallets[0])

        record = service.credit(wallet, CoinType.EXPERIENCE, 10, source_type=CoinSourceType.GAME_PLAY)

        notifier.publish.assert_called_once()
        event = notifier.publish.call_args[0][0]
        assert isinstance(event, CoinsCreditedEvent)
        assert event.transaction_id == record.id
        assert event.balance_after == 10

    def test_failed_transfer_publishes_nothing(self, db_session, funded_account, wallets):
        notifier = Mock()
        service = LedgerService(db_session, notifier=notifier)
        sender = funded_account(wallets[4], experience=5)
        receiver = funded_account(wallets[0])

        # wallets[0] < wallets[4] 이므로 받는 쪽 적립이 먼저 실행된 뒤 차감이 실패
        with pytest.raises(InsufficientFundsError):
            service.transfer(sender, receiver, CoinType.EXPERIENCE, 10)

        notifier.publish.assert_not_called()

    def test_notifier_failure_does_not_break_credit(self, db_session, funded_account, wallets):
        notifier = Mock()
        notifier.publish.side_effect = RuntimeError("queue down")
        service = LedgerService(db_session, notifier=notifier)
        wallet = funded_account(wallets[0])

        record = service.credit(wallet, CoinType.EXPERIENCE, 10)

        assert record.balance_after == 10
        assert service.balance(wallet).experience_coins == 10
