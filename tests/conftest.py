import os

# 설정 객체가 import 시점에 생성되므로 coinapi import 전에 지정
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("NOTIFICATIONS_ENABLED", "false")

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import coinapi.models  # noqa: F401
from coinapi.core.security import create_access_token
from coinapi.database.session import get_db
from coinapi.main import create_app
from coinapi.models.base import Base
from coinapi.models.coins import CoinSourceType, CoinType
from coinapi.schemas.tournament import TournamentCreateRequest
from coinapi.services.account_service import AccountService
from coinapi.services.eq_level_service import EqLevelService
from coinapi.services.ledger_service import LedgerService
from coinapi.services.referral_service import ReferralService
from coinapi.services.tournament_service import TournamentService
from coinapi.utils.timezone_utils import utc_now


def make_wallet(index: int) -> str:
    return f"0x{index:040x}"


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db_session(engine):
    TestingSession = sessionmaker(
        bind=engine, autocommit=False, autoflush=False, expire_on_commit=False
    )
    session = TestingSession()
    yield session
    session.close()


@pytest.fixture
def wallet_factory():
    return make_wallet


@pytest.fixture
def wallets():
    return [make_wallet(i) for i in range(1, 6)]


@pytest.fixture
def account_service(db_session):
    return AccountService(db_session)


@pytest.fixture
def ledger_service(db_session):
    return LedgerService(db_session)


@pytest.fixture
def referral_service(db_session):
    return ReferralService(db_session)


@pytest.fixture
def tournament_service(db_session):
    return TournamentService(db_session)


@pytest.fixture
def eq_level_service(db_session):
    return EqLevelService(db_session)


@pytest.fixture
def funded_account(account_service, ledger_service):
    """계정 생성 후 Experience 코인 적립"""

    def _create(wallet: str, experience: int = 0, referrer: str = None):
        account_service.get_or_create(wallet, referrer_address=referrer)
        if experience:
            ledger_service.credit(
                wallet,
                CoinType.EXPERIENCE,
                experience,
                source_type=CoinSourceType.DEPOSIT,
            )
        return wallet

    return _create


@pytest.fixture
def open_tournament(tournament_service):
    """현재 참가 가능한 기간의 UPCOMING 토너먼트 생성"""

    def _create(**overrides):
        now = utc_now()
        params = dict(
            name="Test Cup",
            prize_pool=1000,
            start_date=now - timedelta(hours=1),
            end_date=now + timedelta(hours=1),
            min_coins=50,
        )
        params.update(overrides)
        return tournament_service.create_tournament(TournamentCreateRequest(**params))

    return _create


@pytest.fixture
def client(db_session):
    """테스트 세션을 사용하는 API 클라이언트"""
    app = create_app()

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    def _headers(wallet: str, admin: bool = False):
        token = create_access_token(
            {"sub": wallet, "role": "admin" if admin else "user"}
        )
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def admin_headers(auth_headers):
    return auth_headers(make_wallet(999), admin=True)
