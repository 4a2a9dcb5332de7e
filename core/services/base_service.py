"""
Base service class for standardized service lifecycle management.
"""

from abc import ABC, abstractmethod
from typing import Optional
from enum import Enum

from core.logging import get_logger


class ServiceStatus(str, Enum):
    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    ERROR = "error"


class BaseService(ABC):
    """Base class for long-lived mirror services"""

    def __init__(self, service_name: str, component: Optional[str] = None):
        self.service_name = service_name
        self.logger = get_logger(f"account_mirror.{service_name}", component=component or service_name)
        self.status = ServiceStatus.STOPPED

    async def start(self) -> None:
        """Start the service with standardized lifecycle"""
        if self.status != ServiceStatus.STOPPED:
            self.logger.warning("Service already started or starting", service=self.service_name)
            return

        self.status = ServiceStatus.STARTING
        self.logger.info("Starting service", service=self.service_name)

        try:
            await self._start_implementation()
            self.status = ServiceStatus.RUNNING
            self.logger.info("Service started", service=self.service_name)
        except Exception as e:
            self.status = ServiceStatus.ERROR
            self.logger.error("Failed to start service", service=self.service_name, error=str(e))
            raise

    async def stop(self) -> None:
        """Stop the service with standardized lifecycle"""
        if self.status in [ServiceStatus.STOPPED, ServiceStatus.STOPPING]:
            return

        self.status = ServiceStatus.STOPPING
        self.logger.info("Stopping service", service=self.service_name)

        try:
            await self._stop_implementation()
            self.status = ServiceStatus.STOPPED
            self.logger.info("Service stopped", service=self.service_name)
        except Exception as e:
            self.logger.error("Error stopping service", service=self.service_name, error=str(e))
            self.status = ServiceStatus.ERROR
            # Don't raise during shutdown - just log

    @abstractmethod
    async def _start_implementation(self) -> None:
        """Service-specific start implementation"""
        pass

    @abstractmethod
    async def _stop_implementation(self) -> None:
        """Service-specific stop implementation"""
        pass

    def is_running(self) -> bool:
        """Check if service is running"""
        return self.status == ServiceStatus.RUNNING

