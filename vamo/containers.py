from dependency_injector import containers, providers

from vamo.config import Settings
from vamo.services.reward_ledger_service import RewardLedgerService
from vamo.services.redemption_service import RedemptionService


class ConfigModule(containers.DeclarativeContainer):
    """Application configuration."""

    config = providers.Singleton(Settings)


class ServiceModule(containers.DeclarativeContainer):
    """Service layer dependencies.

    DB 세션은 요청마다 FastAPI의 get_db가 열고 닫으므로 호출 시점에 db=로 전달합니다.
    """

    config = providers.DependenciesContainer()

    reward_ledger_service = providers.Factory(RewardLedgerService, settings=config.config)
    redemption_service = providers.Factory(RedemptionService, settings=config.config)


class Container(containers.DeclarativeContainer):
    """Application container."""

    wiring_config = containers.WiringConfiguration(
        modules=[
            "vamo.routers.reward_router",
            "vamo.routers.redeem_router",
            "vamo.routers.wallet_router",
            "vamo.routers.admin_router",
        ],
    )

    config = providers.Container(ConfigModule)
    services = providers.Container(ServiceModule, config=config)
