# Repository layer - Data access with Pydantic responses

from .base import BaseRepository
from .account_repository import AccountRepository
from .coin_repository import CoinRepository
from .tournament_repository import TournamentRepository
from .referral_repository import ReferralRepository
from .eq_level_repository import EqLevelRepository

__all__ = [
    "BaseRepository",
    "AccountRepository",
    "CoinRepository",
    "TournamentRepository",
    "ReferralRepository",
    "EqLevelRepository",
]
