# ORM 모델 등록 (Base.metadata 에 모든 테이블이 포함되도록 import)

from .base import Base, BaseModel
from .account import Account, AccountStatus
from .coins import (
    COIN_BALANCE_FIELDS,
    CoinBalance,
    CoinSourceType,
    CoinTransaction,
    CoinTransactionType,
    CoinType,
)
from .tournament import (
    PrizeRule,
    RankingMode,
    Tournament,
    TournamentParticipant,
    TournamentStatus,
    TournamentType,
)
from .referral import ReferralBalanceSummary
from .eq_level import EqLevel
