"""DNS-hosting provider contract, bundled providers and factory."""

from .base import (
    DnsProvider,
    DnsProviderConfig,
    DnsRecordInfo,
    ProviderFailure,
    ProviderResult,
    ProviderSuccess,
    full_domain,
)
from .callback import CallbackProvider
from .cloudflare import CloudflareProvider
from .factory import DnsProviderFactory, create_default_factory

__all__ = [
    "CallbackProvider",
    "CloudflareProvider",
    "DnsProvider",
    "DnsProviderConfig",
    "DnsProviderFactory",
    "DnsRecordInfo",
    "ProviderFailure",
    "ProviderResult",
    "ProviderSuccess",
    "create_default_factory",
    "full_domain",
]
