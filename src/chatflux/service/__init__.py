"""Chat delivery services."""

from .base import DELEGATED_METHODS, DeliveryService, ServiceDelegate, is_service_like
from .memory import MemoryService

__all__ = ["DELEGATED_METHODS", "DeliveryService", "MemoryService", "ServiceDelegate", "is_service_like"]
