"""
Name-based dispatch from a task's provider name to a configured provider.
"""

from typing import Callable, Optional

import httpx

from .base import DnsProvider, DnsProviderConfig
from .callback import CallbackProvider
from .cloudflare import CloudflareProvider


ProviderConstructor = Callable[[], DnsProvider]


class DnsProviderFactory:
    """
    Registry of provider constructors keyed by lower-cased name.

    Every create() builds a fresh instance, so no configuration is shared
    between callers. Unknown names yield None rather than an error.
    """

    def __init__(self) -> None:
        self._constructors: dict[str, ProviderConstructor] = {}

    def register(self, name: str, constructor: ProviderConstructor) -> None:
        self._constructors[name.strip().lower()] = constructor

    def create(self, name: str, config: DnsProviderConfig) -> Optional[DnsProvider]:
        constructor = self._constructors.get((name or "").strip().lower())
        if constructor is None:
            return None
        provider = constructor()
        provider.configure(config)
        return provider

    def registered_providers(self) -> list[str]:
        return sorted(self._constructors)

    def provider_infos(self) -> list[tuple[str, str]]:
        """(name, display name) for every registered provider."""
        infos = []
        for name in self.registered_providers():
            provider = self._constructors[name]()
            infos.append((name, getattr(provider, "display_name", name)))
        return infos


def create_default_factory(
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> DnsProviderFactory:
    """Factory with the bundled callback and Cloudflare providers registered."""
    factory = DnsProviderFactory()
    factory.register("callback", lambda: CallbackProvider(transport=transport))
    factory.register("cloudflare", lambda: CloudflareProvider(transport=transport))
    return factory
