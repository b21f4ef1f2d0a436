from dependency_injector import containers, providers

from coinapi.config import settings
from coinapi.providers.notifications import build_notifier
from coinapi.services.account_service import AccountService
from coinapi.services.eq_level_service import EqLevelService
from coinapi.services.ledger_service import LedgerService
from coinapi.services.referral_service import ReferralService
from coinapi.services.stamina import StaminaService
from coinapi.services.tournament_service import TournamentService


class ConfigModule(containers.DeclarativeContainer):
    """Application configuration."""

    config = providers.Object(settings)


class NotificationModule(containers.DeclarativeContainer):
    """Fire-and-forget notification dispatcher."""

    config = providers.DependenciesContainer()

    notifier = providers.Singleton(build_notifier, settings=config.config)


class ServiceModule(containers.DeclarativeContainer):
    """Service layer dependencies.

    세션은 요청마다 get_db 에서 생성되므로 서비스 팩토리는 호출 시 db 를 받습니다.
    """

    config = providers.DependenciesContainer()
    notifications = providers.DependenciesContainer()

    account_service = providers.Factory(AccountService, settings=config.config)
    ledger_service = providers.Factory(
        LedgerService, settings=config.config, notifier=notifications.notifier
    )
    tournament_service = providers.Factory(
        TournamentService, settings=config.config, notifier=notifications.notifier
    )
    referral_service = providers.Factory(ReferralService, settings=config.config)
    stamina_service = providers.Factory(StaminaService, settings=config.config)
    eq_level_service = providers.Factory(EqLevelService, settings=config.config)


class Container(containers.DeclarativeContainer):
    """Application container."""

    config = providers.Container(ConfigModule)
    notifications = providers.Container(NotificationModule, config=config)
    services = providers.Container(
        ServiceModule, config=config, notifications=notifications
    )
