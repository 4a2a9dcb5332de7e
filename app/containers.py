# Dependency injection container for the account mirror
from dependency_injector import containers, providers

from core.config.settings import Settings
from services.auth.service import AuthService


class AppContainer(containers.DeclarativeContainer):
    """Application dependency injection container"""

    # Configuration
    settings = providers.Singleton(Settings)

    # Login/logout owns the mirror session lifecycle
    auth_service = providers.Singleton(
        AuthService,
        settings=settings,
    )
