"""Service discovery, liveness and lifecycle."""

from servicemaster.services.lifecycle import ServiceManager, sort_services
from servicemaster.services.models import ServiceConfig, ServiceDescriptor

__all__ = [
    "ServiceConfig",
    "ServiceDescriptor",
    "ServiceManager",
    "sort_services",
]
