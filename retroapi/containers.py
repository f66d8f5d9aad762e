from dependency_injector import containers, providers

from retroapi.config import Settings
from retroapi.database.resilience import RetryPolicy
from retroapi.progression.rules import RewardRuleBook
from retroapi.services.progression_service import ProgressionService


class ConfigModule(containers.DeclarativeContainer):
    """Application configuration."""

    config = providers.Singleton(Settings)


class PolicyModule(containers.DeclarativeContainer):
    """Immutable policies shared across requests."""

    config = providers.DependenciesContainer()

    reward_rules = providers.Singleton(RewardRuleBook.default)
    retry_policy = providers.Singleton(RetryPolicy.from_settings, settings=config.config)


class ServiceModule(containers.DeclarativeContainer):
    """Service layer dependencies. db 세션은 요청마다 호출 시점에 주입한다."""

    policies = providers.DependenciesContainer()

    progression_service = providers.Factory(
        ProgressionService,
        rules=policies.reward_rules,
        retry_policy=policies.retry_policy,
    )


class Container(containers.DeclarativeContainer):
    """Application container."""

    wiring_config = containers.WiringConfiguration(
        modules=[
            "retroapi.deps",
        ],
    )

    config = providers.Container(ConfigModule)
    policies = providers.Container(PolicyModule, config=config)
    services = providers.Container(ServiceModule, policies=policies)
