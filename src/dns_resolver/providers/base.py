"""
Provider contract shared by every DNS-hosting integration.

A provider lists hosted domains and manages records on them. Every operation
returns a ProviderResult: either ProviderSuccess carrying a payload or
ProviderFailure carrying a ProviderErrorCode and a readable message.
Providers never raise for API or transport failures.
"""

from abc import abstractmethod
from dataclasses import dataclass, field
from typing import Generic, Optional, Protocol, TypeVar, Union, runtime_checkable

from ..enums import ProviderErrorCode


T = TypeVar("T")

APEX = "@"


@dataclass
class DnsProviderConfig:
    """Credentials handed to a provider for one use; never cached by the factory."""

    id: str
    secret: str
    extra_params: dict[str, str] = field(default_factory=dict)

    def get_param(self, name: str, default: Optional[str] = None) -> Optional[str]:
        value = self.extra_params.get(name)
        return value if value else default


@dataclass(frozen=True)
class DnsRecordInfo:
    """A record as the hosting provider sees it."""

    record_id: str
    domain: str
    sub_domain: str
    full_domain: str
    record_type: str
    value: str
    ttl: int
    enabled: bool = True


@dataclass(frozen=True)
class ProviderSuccess(Generic[T]):
    data: T

    @property
    def success(self) -> bool:
        return True


@dataclass(frozen=True)
class ProviderFailure:
    code: ProviderErrorCode
    message: str

    @property
    def success(self) -> bool:
        return False

    @property
    def data(self) -> None:
        return None


ProviderResult = Union[ProviderSuccess[T], ProviderFailure]


def ok(data: T) -> ProviderSuccess[T]:
    return ProviderSuccess(data)


def fail(code: ProviderErrorCode, message: str) -> ProviderFailure:
    return ProviderFailure(code=code, message=message)


def full_domain(sub_domain: Optional[str], domain: str) -> str:
    """Join a sub-domain and its zone; the apex ("@" or empty) is the zone itself."""
    if not sub_domain or sub_domain == APEX:
        return domain
    return f"{sub_domain}.{domain}"


@runtime_checkable
class DnsProvider(Protocol):
    """Protocol every DNS-hosting provider implements."""

    name: str
    display_name: str

    @abstractmethod
    def configure(self, config: DnsProviderConfig) -> None:
        """Replace any previous configuration with ``config``."""
        ...

    @abstractmethod
    async def list_domains(self) -> ProviderResult[list[str]]:
        ...

    @abstractmethod
    async def list_records(
        self,
        domain: str,
        sub_domain: Optional[str] = None,
        record_type: Optional[str] = None,
    ) -> ProviderResult[list[DnsRecordInfo]]:
        ...

    @abstractmethod
    async def add_record(
        self,
        domain: str,
        sub_domain: str,
        record_type: str,
        value: str,
        ttl: int = 600,
    ) -> ProviderResult[DnsRecordInfo]:
        ...

    @abstractmethod
    async def update_record(
        self,
        domain: str,
        record_id: str,
        value: str,
        ttl: Optional[int] = None,
    ) -> ProviderResult[DnsRecordInfo]:
        """
        Point an existing record at a new value.

        Args:
            domain: Zone the record lives in
            record_id: Provider-specific record identifier
            value: New record content (an IP address for DDNS)
            ttl: New TTL, or None to keep the current one
        """
        ...

    @abstractmethod
    async def delete_record(self, domain: str, record_id: str) -> ProviderResult[None]:
        ...
