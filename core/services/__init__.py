"""
Service lifecycle base for account mirror components.
"""

from .base_service import BaseService, ServiceStatus

__all__ = ["BaseService", "ServiceStatus"]