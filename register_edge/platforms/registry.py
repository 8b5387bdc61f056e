from typing import Dict, Optional

import httpx

from register_edge.core.config import Settings
from register_edge.core.errors import PlatformNotConfiguredError

from .base import PlatformOrderService
from .http import HttpOrderService
from .offline import OfflineOrderService


class PlatformRegistry:
    """Maps a platform name to the ``PlatformOrderService`` that handles it.

    Orders without a platform go to ``default``. New integrations are added
    with ``register``; nothing here switches on platform names.
    """

    def __init__(self, default: str = "offline"):
        self.default = default
        self._services: Dict[str, PlatformOrderService] = {}

    def register(self, service: PlatformOrderService, name: Optional[str] = None) -> None:
        self._services[name or service.name] = service

    def get(self, platform: Optional[str] = None) -> PlatformOrderService:
        key = platform or self.default
        try:
            return self._services[key]
        except KeyError:
            raise PlatformNotConfiguredError(key) from None

    def names(self):
        return sorted(self._services)


def build_platform_registry(settings: Settings, client: httpx.AsyncClient) -> PlatformRegistry:
    registry = PlatformRegistry(default=settings.DEFAULT_PLATFORM)
    registry.register(OfflineOrderService())
    if settings.PLATFORM_API_URL:
        registry.register(HttpOrderService(
            settings.PLATFORM_API_URL,
            client,
            token=settings.PLATFORM_API_TOKEN,
            timeout=settings.PLATFORM_TIMEOUT_SECONDS,
        ))
    return registry
