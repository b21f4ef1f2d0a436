import pytest

from coinapi.core.exceptions import UnknownAccountError, ValidationError
from coinapi.models.account import AccountStatus
from coinapi.utils.timezone_utils import to_utc


class TestAccountDirectory:
    def test_get_or_create_creates_standard_account(self, account_service, wallets):
        account = account_service.get_or_create(wallets[0])

        assert account.wallet_address == wallets[0]
        assert account.status == AccountStatus.STANDARD
        assert account.referrer_address is None
        assert account.created_at is not None
        assert account_service.exists(wallets[0])

    def test_get_or_create_is_idempotent(self, account_service, wallets):
        account_service.get_or_create(wallets[0])
        first = account_service.get_or_create(wallets[1], referrer_address=wallets[0])

        # 기존 계정의 추천인은 변경되지 않음
        second = account_service.get_or_create(wallets[1], referrer_address=wallets[2])

        assert first.referrer_address == wallets[0]
        assert second.referrer_address == wallets[0]

    def test_wallet_address_is_case_sensitive(self, account_service):
        lower = "0x" + "ab" * 20
        upper = "0x" + "AB" * 20

        account_service.get_or_create(lower)

        assert account_service.exists(lower)
        assert not account_service.exists(upper)

    def test_unknown_referrer(self, account_service, wallets):
        with pytest.raises(UnknownAccountError):
            account_service.get_or_create(wallets[0], referrer_address=wallets[1])

        assert not account_service.exists(wallets[0])

    def test_self_referral(self, account_service, wallets):
        with pytest.raises(ValidationError):
            account_service.get_or_create(wallets[0], referrer_address=wallets[0])

    @pytest.mark.parametrize("wallet", ["", "0x123", "not-a-wallet", "0x" + "g" * 40])
    def test_invalid_wallet_address(self, account_service, wallet):
        with pytest.raises(ValidationError):
            account_service.get_or_create(wallet)

    def test_get_unknown(self, account_service, wallets):
        with pytest.raises(UnknownAccountError):
            account_service.get(wallets[0])


class TestAccountUpdates:
    def test_set_status(self, account_service, wallets):
        account_service.get_or_create(wallets[0])

        banned = account_service.set_status(wallets[0], AccountStatus.BANNED)
        restored = account_service.set_status(wallets[0], AccountStatus.STANDARD)

        assert banned.status == AccountStatus.BANNED
        assert restored.status == AccountStatus.STANDARD

    def test_set_status_unknown(self, account_service, wallets):
        with pytest.raises(UnknownAccountError):
            account_service.set_status(wallets[0], AccountStatus.BANNED)

    def test_touch_updates_last_active(self, account_service, wallets):
        created = account_service.get_or_create(wallets[0])

        touched = account_service.touch(wallets[0])

        assert to_utc(touched.last_active_at) >= to_utc(created.last_active_at)

    def test_record_equilibrium_nodes(self, account_service, wallets):
        account_service.get_or_create(wallets[0])

        account = account_service.record_equilibrium_nodes(wallets[0], 3, 2, 2)

        assert (account.left_node, account.right_node, account.total_eq) == (3, 2, 2)

    def test_record_equilibrium_nodes_rejects_negative(self, account_service, wallets):
        account_service.get_or_create(wallets[0])

        with pytest.raises(ValidationError):
            account_service.record_equilibrium_nodes(wallets[0], -1, 0, 0)
