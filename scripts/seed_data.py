"""
로컬 개발용 시드 스크립트
추천 체인으로 연결된 데모 계정, 초기 Experience 코인, 진행 예정 토너먼트를 생성
"""

import sys
import os

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from datetime import timedelta

from coinapi.database.connection import SessionLocal
from coinapi.models.coins import CoinSourceType, CoinType
from coinapi.models.tournament import PrizeRule, RankingMode, TournamentType
from coinapi.schemas.eq_level import EqLevelCreateRequest
from coinapi.schemas.tournament import TournamentCreateRequest
from coinapi.services.account_service import AccountService
from coinapi.services.eq_level_service import EqLevelService
from coinapi.services.ledger_service import LedgerService
from coinapi.services.referral_service import ReferralService
from coinapi.services.tournament_service import TournamentService
from coinapi.utils.timezone_utils import utc_now

DEMO_WALLETS = [f"0x{index:040x}" for index in range(1, 6)]
STARTING_EXPERIENCE = 1000


def seed_accounts():
    """데모 계정 생성 (각 계정은 직전 계정이 추천)"""
    db = SessionLocal()
    try:
        account_service = AccountService(db)
        ledger_service = LedgerService(db)
        referrer = None
        for wallet in DEMO_WALLETS:
            account_service.get_or_create(wallet, referrer_address=referrer)
            ledger_service.credit(
                wallet,
                CoinType.EXPERIENCE,
                STARTING_EXPERIENCE,
                source_type=CoinSourceType.REGISTRATION,
                description="Seed balance",
            )
            referrer = wallet

        summary = ReferralService(db).refresh(DEMO_WALLETS[0])
        print(f"✅ 데모 계정 생성 완료: {len(DEMO_WALLETS)}개")
        print(f"🌳 루트 추천 요약: total={summary.total_referrals} direct={summary.direct_referrals}")
    except Exception as e:
        db.rollback()
        print(f"❌ 데모 계정 생성 실패: {str(e)}")
        raise
    finally:
        db.close()


def seed_tournament():
    """진행 예정 토너먼트 생성"""
    db = SessionLocal()
    try:
        now = utc_now()
        tournament = TournamentService(db).create_tournament(
            TournamentCreateRequest(
                name="Weekly Burn Cup",
                tournament_type=TournamentType.UNBALANCED,
                prize_pool=5000,
                start_date=now,
                end_date=now + timedelta(days=7),
                min_coins=50,
                ranking_mode=RankingMode.COINS_BURNED,
                prize_rule=PrizeRule.RANKED,
                payout_bps=[5000, 3000, 2000],
            )
        )
        print(f"🏆 토너먼트 생성 완료: #{tournament.id} {tournament.name}")
    except Exception as e:
        db.rollback()
        print(f"❌ 토너먼트 생성 실패: {str(e)}")
        raise
    finally:
        db.close()


def seed_eq_levels():
    """기본 EQ 레벨 구간 생성"""
    db = SessionLocal()
    try:
        service = EqLevelService(db)
        for min_eq, max_eq, level_value in [(0, 9, 1), (10, 99, 2), (100, 999, 3)]:
            service.create_level(
                EqLevelCreateRequest(min_eq=min_eq, max_eq=max_eq, level_value=level_value)
            )
        print(f"📊 EQ 레벨 생성 완료: {service.count_levels()}개")
    except Exception as e:
        db.rollback()
        print(f"❌ EQ 레벨 생성 실패: {str(e)}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    seed_accounts()
    seed_tournament()
    seed_eq_levels()
