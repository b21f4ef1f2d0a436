import pytest
from sqlalchemy import event, insert

from coinapi.config import settings
from coinapi.core.exceptions import UnknownAccountError, ValidationError
from coinapi.models.account import Account
from coinapi.services.referral_service import ReferralService


@pytest.fixture
def chain(funded_account, wallets):
    """A → B → C → D 추천 체인"""
    funded_account(wallets[0])
    for referrer, wallet in zip(wallets, wallets[1:4]):
        funded_account(wallet, referrer=referrer)
    return wallets[:4]


class TestReferralSummary:
    def test_chain_summary(self, referral_service, chain):
        """A 의 직접 추천 1, 전체 3 → 불균형"""
        summary = referral_service.refresh(chain[0])

        assert summary.direct_referrals == 1
        assert summary.total_referrals == 3
        assert summary.is_balanced is False
        assert summary.left_count == 1
        assert summary.right_count == 2
        assert summary.equilibrium_point == 3

    def test_leaf_is_balanced(self, referral_service, chain):
        summary = referral_service.refresh(chain[3])

        assert summary.direct_referrals == 0
        assert summary.total_referrals == 0
        assert summary.is_balanced is True
        assert summary.equilibrium_point == 0

    def test_star_is_balanced(self, referral_service, funded_account, wallets):
        root = funded_account(wallets[0])
        for wallet in wallets[1:4]:
            funded_account(wallet, referrer=root)

        summary = referral_service.refresh(root)

        assert summary.direct_referrals == 3
        assert summary.total_referrals == 3
        assert summary.is_balanced is True

    def test_refresh_is_idempotent(self, referral_service, chain):
        first = referral_service.refresh(chain[0])
        second = referral_service.refresh(chain[0])

        assert first.model_dump(exclude={"refreshed_at"}) == second.model_dump(
            exclude={"refreshed_at"}
        )

    def test_get_summary_when_missing(self, referral_service, chain):
        assert referral_service.get_summary(chain[1], refresh_if_missing=False) is None

        summary = referral_service.get_summary(chain[1])

        assert summary.total_referrals == 2
        assert referral_service.get_summary(chain[1], refresh_if_missing=False) is not None

    def test_unknown_account(self, referral_service, wallets):
        with pytest.raises(UnknownAccountError):
            referral_service.refresh(wallets[0])
        with pytest.raises(UnknownAccountError):
            referral_service.get_summary(wallets[0])
        with pytest.raises(UnknownAccountError):
            referral_service.build_subtree(wallets[0])

    def test_leaderboard_orders_by_equilibrium(self, referral_service, chain):
        for wallet in chain:
            referral_service.refresh(wallet)

        board = referral_service.leaderboard(limit=2)

        assert [s.wallet_address for s in board] == [chain[0], chain[1]]


class TestReferralTotals:
    def test_total_is_memoized_until_refresh(self, referral_service, funded_account, chain, wallets):
        assert referral_service.count_total_referrals(chain[0]) == 3

        funded_account(wallets[4], referrer=chain[3])

        assert referral_service.count_total_referrals(chain[0]) == 3
        assert referral_service.refresh(chain[0]).total_referrals == 4

    def test_total_respects_node_cap(self, referral_service, chain):
        assert referral_service.count_total_referrals(chain[0], max_nodes=2) == 2


class TestReferralTree:
    def test_subtree_shape(self, referral_service, chain):
        root = referral_service.build_subtree(chain[0])

        assert root.wallet_address == chain[0]
        assert root.level == 0
        assert root.referral_count == 1
        assert [n.wallet_address for n in root.iter_nodes()] == chain
        assert [n.level for n in root.iter_nodes()] == [0, 1, 2, 3]
        assert root.children[0].children[0].children[0].referral_count == 0

    def test_subtree_depth_limit(self, referral_service, chain):
        root = referral_service.build_subtree(chain[0], max_depth=2)

        assert [n.wallet_address for n in root.iter_nodes()] == chain[:2]
        # 잘린 노드도 자신의 직접 추천 수는 보고
        assert root.children[0].referral_count == 1

    def test_subtree_rejects_zero_depth(self, referral_service, chain):
        with pytest.raises(ValidationError):
            referral_service.build_subtree(chain[0], max_depth=0)

    def test_subtree_node_cap(self, db_session, funded_account, wallets):
        root = funded_account(wallets[0])
        for wallet in wallets[1:5]:
            funded_account(wallet, referrer=root)
        capped = settings.model_copy(update={"REFERRAL_MAX_VISITED_NODES": 3})

        tree = ReferralService(db_session, capped).build_subtree(root)

        assert len(list(tree.iter_nodes())) == 3

    def test_deep_chain_is_bounded(self, db_session, engine, funded_account, wallet_factory):
        """10,000 단계 체인에서도 깊이 제한만큼만 조회"""
        # Arrange
        root = funded_account(wallet_factory(1))
        rows = [
            {"wallet_address": wallet_factory(i), "referrer_address": wallet_factory(i - 1)}
            for i in range(2, 10002)
        ]
        db_session.execute(insert(Account), rows)
        db_session.commit()

        statements = []

        def count_statement(conn, cursor, statement, parameters, context, executemany):
            statements.append(statement)

        event.listen(engine, "before_cursor_execute", count_statement)
        try:
            # Act
            tree = ReferralService(db_session).build_subtree(root, max_depth=5)
        finally:
            event.remove(engine, "before_cursor_execute", count_statement)

        # Assert
        nodes = list(tree.iter_nodes())
        assert len(nodes) == 5
        assert nodes[-1].wallet_address == wallet_factory(5)
        assert nodes[-1].referral_count == 1
        assert len(statements) <= 8
