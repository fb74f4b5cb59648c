"""
Read-only ISP reference data used to label resolution results.
"""

from typing import Iterable, Optional

from .config import IspConfig
from .models import IspProvider


class IspRegistry:
    """In-memory lookup of ISP providers, built once from configuration."""

    def __init__(self, providers: Iterable[IspProvider]) -> None:
        self._providers = list(providers)

    @classmethod
    def from_config(cls, isps: Iterable[IspConfig]) -> "IspRegistry":
        return cls(
            IspProvider.create(isp.id, isp.name, isp.primary_dns, isp.secondary_dns or None)
            for isp in isps
        )

    def get_all(self) -> list[IspProvider]:
        return list(self._providers)

    def find_by_id(self, isp_id: str) -> Optional[IspProvider]:
        for provider in self._providers:
            if provider.id == isp_id:
                return provider
        return None

    def find_by_dns_server(self, address: str) -> Optional[IspProvider]:
        for provider in self._providers:
            if provider.has_dns_server(address):
                return provider
        return None
