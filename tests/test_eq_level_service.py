import pytest
from pydantic import ValidationError as PydanticValidationError

from coinapi.core.exceptions import NotFoundError, UnknownAccountError, ValidationError
from coinapi.schemas.eq_level import EqLevelCreateRequest, EqLevelUpdateRequest


@pytest.fixture
def tiers(eq_level_service):
    """[0, 99] → 1, [100, 499] → 2, [500, 999] → 3"""
    return [
        eq_level_service.create_level(
            EqLevelCreateRequest(min_eq=low, max_eq=high, level_value=value)
        )
        for low, high, value in [(0, 99, 1), (100, 499, 2), (500, 999, 3)]
    ]


@pytest.fixture
def account_with_eq(account_service):
    def _create(wallet: str, total_eq: int):
        account_service.get_or_create(wallet)
        account_service.record_equilibrium_nodes(wallet, 0, 0, total_eq)
        return wallet

    return _create


class TestLevelManagement:
    def test_levels_are_ordered_by_min_eq(self, eq_level_service):
        eq_level_service.create_level(EqLevelCreateRequest(min_eq=500, max_eq=999, level_value=3))
        eq_level_service.create_level(
            EqLevelCreateRequest(min_eq=0, max_eq=99, level_value=1, description="Starter")
        )

        levels = eq_level_service.list_levels()

        assert [(level.min_eq, level.level_value) for level in levels] == [(0, 1), (500, 3)]
        assert levels[0].description == "Starter"
        assert eq_level_service.count_levels() == 2

    @pytest.mark.parametrize(
        "min_eq, max_eq",
        [
            (50, 150),  # 두 구간에 걸침
            (99, 99),  # 경계값 포함
            (200, 300),  # 기존 구간 내부
            (0, 2000),  # 모든 구간 포함
        ],
    )
    def test_overlapping_range_is_rejected(self, eq_level_service, tiers, min_eq, max_eq):
        with pytest.raises(ValidationError) as exc_info:
            eq_level_service.create_level(
                EqLevelCreateRequest(min_eq=min_eq, max_eq=max_eq, level_value=9)
            )

        assert exc_info.value.message == "EQ range overlaps with existing level"
        assert eq_level_service.count_levels() == 3

    def test_adjacent_range_is_accepted(self, eq_level_service, tiers):
        created = eq_level_service.create_level(
            EqLevelCreateRequest(min_eq=1000, max_eq=4999, level_value=4)
        )

        assert created.id is not None
        assert eq_level_service.count_levels() == 4

    def test_inverted_range_is_rejected_by_schema(self):
        with pytest.raises(PydanticValidationError):
            EqLevelCreateRequest(min_eq=10, max_eq=5, level_value=1)

    def test_update_ignores_own_range(self, eq_level_service, tiers):
        updated = eq_level_service.update_level(
            tiers[1].id, EqLevelUpdateRequest(max_eq=450, level_value=5)
        )

        assert (updated.min_eq, updated.max_eq, updated.level_value) == (100, 450, 5)

    def test_update_rejects_overlap_and_inversion(self, eq_level_service, tiers):
        with pytest.raises(ValidationError):
            eq_level_service.update_level(tiers[1].id, EqLevelUpdateRequest(max_eq=600))
        with pytest.raises(ValidationError):
            eq_level_service.update_level(tiers[1].id, EqLevelUpdateRequest(min_eq=480, max_eq=120))

        unchanged = eq_level_service.list_levels()[1]
        assert (unchanged.min_eq, unchanged.max_eq) == (100, 499)

    def test_delete(self, eq_level_service, tiers):
        eq_level_service.delete_level(tiers[0].id)

        assert [level.id for level in eq_level_service.list_levels()] == [tiers[1].id, tiers[2].id]
        with pytest.raises(NotFoundError):
            eq_level_service.delete_level(tiers[0].id)
        with pytest.raises(NotFoundError):
            eq_level_service.update_level(tiers[0].id, EqLevelUpdateRequest(level_value=1))


class TestWalletLevel:
    @pytest.mark.parametrize(
        "total_eq, expected_level",
        [(0, 1), (99, 1), (100, 2), (499, 2), (999, 3), (1000, None)],
    )
    def test_level_for_wallet(
        self, eq_level_service, tiers, account_with_eq, wallets, total_eq, expected_level
    ):
        wallet = account_with_eq(wallets[0], total_eq)

        result = eq_level_service.level_for(wallet)

        assert result.total_eq == total_eq
        if expected_level is None:
            assert result.level is None
        else:
            assert result.level.level_value == expected_level

    def test_level_for_unknown_wallet(self, eq_level_service, wallets):
        with pytest.raises(UnknownAccountError):
            eq_level_service.level_for(wallets[0])

    def test_stats(self, eq_level_service, tiers, account_with_eq, wallets):
        for wallet, total_eq in zip(wallets, [10, 50, 150, 700, 5000]):
            account_with_eq(wallet, total_eq)

        stats = eq_level_service.stats()

        assert stats.total_levels == 3
        assert stats.total_accounts == 5
        assert [(s.level.level_value, s.account_count) for s in stats.levels] == [
            (1, 2),
            (2, 1),
            (3, 1),
        ]
