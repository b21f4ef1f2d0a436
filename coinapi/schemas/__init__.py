from .account import AccountResponse, StaminaResponse
from .coins import CoinBalanceResponse, TransactionRecord
from .tournament import ParticipantResponse, SettlementResult, TournamentResponse
from .referral import ReferralSummaryResponse, ReferralTreeNode
from .eq_level import EqLevelResponse, WalletLevelResponse
