# Headless entry point: log in, mirror the account until a signal, log out.

import asyncio
import signal
import sys
from typing import Optional

from app.containers import AppContainer
from core.config.settings import Settings
from core.logging import configure_logging, get_logger
from core.utils.exceptions import ConfigurationError
from services.auth.exceptions import InvalidCredentialsError
from services.mirror.store import Collection


class ApplicationOrchestrator:
    """Runs one mirror session for the configured credentials."""

    def __init__(self, settings: Optional[Settings] = None):
        self.container = AppContainer()
        if settings is not None:
            self.container.settings.override(settings)
        self._shutdown_event = asyncio.Event()
        self._unsubscribe = None

        self.settings = self.container.settings()
        configure_logging(self.settings)
        self.logger = get_logger("account_mirror.main", component="application")
        self.auth_service = self.container.auth_service()

    async def startup(self):
        credentials = self.settings.session
        if not credentials.username:
            raise ConfigurationError(
                "No session username configured (SESSION__USERNAME)",
                config_field="session.username",
                config_value=None,
            )

        self.logger.info("Logging in", username=credentials.username)
        response = await self.auth_service.login(
            credentials.username,
            credentials.password or "",
            credentials.api_key or "",
        )
        if not response.success:
            raise InvalidCredentialsError(response.message, username=credentials.username)

        session = self.auth_service.session
        self._unsubscribe = session.store.subscribe(self._on_store_change)
        self.logger.info("Mirror session running", backend=response.backend_label)

    def _on_store_change(self, collection: Collection):
        session = self.auth_service.session
        if session is None:
            return
        store = session.store
        if collection == Collection.ACCOUNT:
            account = store.account
            self.logger.info("Account", balance=account.balance, equity=account.equity, pnl=account.pnl)
        elif collection == Collection.STATUS:
            self.logger.info(
                "System status",
                status=store.status.status.value,
                stream_health=session.stream_health.value,
            )
        elif collection == Collection.POSITIONS:
            self.logger.info("Positions", count=len(store.positions))
        elif collection == Collection.ORDERS:
            self.logger.info("Orders", count=len(store.orders))
        elif collection == Collection.NOTIFICATIONS:
            self.logger.info("Notifications", unread=store.unread_notification_count)
        elif collection == Collection.LOGS and store.logs:
            line = store.logs[0]
            self.logger.info("Console", severity=line.severity.value, message=line.message)

    async def shutdown(self):
        """Gracefully shutdown application."""
        self.logger.info("Shutting down account mirror...")
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None
        try:
            await self.auth_service.logout()
        except Exception as e:
            self.logger.error("Error during logout", error=str(e))
        self.logger.info("Account mirror shutdown complete.")

    def _signal_handler(self, signum, frame):
        """Handle shutdown signals."""
        self.logger.info("Received shutdown signal", signal=signal.strsignal(signum))
        self._shutdown_event.set()

    async def run(self):
        """Run the application until shutdown."""
        signal.signal(signal.SIGTERM, self._signal_handler)
        signal.signal(signal.SIGINT, self._signal_handler)

        try:
            try:
                await self.startup()
            except (ConfigurationError, InvalidCredentialsError) as e:
                self.logger.critical("Startup failed", error=e.message)
                sys.exit(1)
            self.logger.info("Application is now running. Press Ctrl+C to exit.")
            await self._shutdown_event.wait()
        finally:
            await self.shutdown()


async def main():
    """Application entry point"""
    app = ApplicationOrchestrator()
    await app.run()

if __name__ == "__main__":
    asyncio.run(main())
