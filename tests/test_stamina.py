from datetime import timedelta

import pytest

from coinapi.core.exceptions import UnknownAccountError, ValidationError
from coinapi.models.account import AccountStatus
from coinapi.services.stamina import StaminaService, calculate_stamina
from coinapi.utils.timezone_utils import to_utc


@pytest.mark.parametrize(
    "age_days, total_eq, expected",
    [
        (0, 0, 2000),
        (29, 5, 2000),
        (30, 2, 2500),
        (400, 7, 2500),
        (30, 1, 1500),
        (90, 1, 1500),
        (91, 1, 500),
        (30, 0, 1600),
        (90, 0, 1600),
        (91, 0, 500),
    ],
)
def test_stamina_ladder(age_days, total_eq, expected):
    assert calculate_stamina(age_days, total_eq) == expected


def test_banned_account_has_no_stamina():
    assert calculate_stamina(5, 3, is_banned=True) == 0
    assert calculate_stamina(200, 0, is_banned=True) == 0


def test_negative_age_rejected():
    with pytest.raises(ValidationError):
        calculate_stamina(-1, 0)


class TestStaminaService:
    def _created_at(self, account_service, wallet):
        return to_utc(account_service.get(wallet).created_at)

    def test_new_account(self, db_session, account_service, funded_account, wallets):
        wallet = funded_account(wallets[0])
        created_at = self._created_at(account_service, wallet)

        result = StaminaService(db_session).get_stamina(wallet, now=created_at + timedelta(days=10))

        assert result.account_age_days == 10
        assert result.stamina == 2000
        assert result.is_banned is False

    def test_uses_reported_total_eq(self, db_session, account_service, funded_account, wallets):
        wallet = funded_account(wallets[0])
        account_service.record_equilibrium_nodes(wallet, left_node=1, right_node=0, total_eq=1)
        created_at = self._created_at(account_service, wallet)
        service = StaminaService(db_session)

        assert service.get_stamina(wallet, now=created_at + timedelta(days=60)).stamina == 1500
        assert service.get_stamina(wallet, now=created_at + timedelta(days=100)).stamina == 500

    def test_banned_account(self, db_session, account_service, funded_account, wallets):
        wallet = funded_account(wallets[0])
        account_service.set_status(wallet, AccountStatus.BANNED)

        result = StaminaService(db_session).get_stamina(wallet)

        assert result.is_banned is True
        assert result.stamina == 0

    def test_unknown_account(self, db_session, wallets):
        with pytest.raises(UnknownAccountError):
            StaminaService(db_session).get_stamina(wallets[0])
