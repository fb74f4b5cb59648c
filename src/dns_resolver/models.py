"""
Data models for DNS resolution and comparison.

This module defines ISP reference data, the per-attempt DnsQuery and the
ResolveResult tagged union it completes with.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Sequence, Union

from .value_objects import DnsRecord, DnsServer, DomainName, RecordType


DEFAULT_ISP_NAME = "Custom DNS"


@dataclass(frozen=True)
class IspProvider:
    """A DNS server endpoint attributed to a network operator."""

    id: str
    name: str
    primary_dns: DnsServer
    secondary_dns: Optional[DnsServer] = None

    @classmethod
    def create(
        cls,
        id: str,
        name: str,
        primary_dns: str,
        secondary_dns: Optional[str] = None,
    ) -> "IspProvider":
        return cls(
            id=id,
            name=name,
            primary_dns=DnsServer.create(primary_dns),
            secondary_dns=DnsServer.create(secondary_dns) if secondary_dns else None,
        )

    def has_dns_server(self, address: str) -> bool:
        if self.primary_dns.address == address:
            return True
        return self.secondary_dns is not None and self.secondary_dns.address == address


@dataclass(frozen=True)
class ResolveSuccess:
    """A completed resolution with its answers and elapsed time."""

    records: tuple[DnsRecord, ...]
    query_time_ms: int

    @property
    def success(self) -> bool:
        return True

    @property
    def error_message(self) -> Optional[str]:
        return None


@dataclass(frozen=True)
class ResolveFailure:
    """A failed resolution; it never carries records or timing."""

    error_message: str

    @property
    def success(self) -> bool:
        return False

    @property
    def records(self) -> tuple[DnsRecord, ...]:
        return ()

    @property
    def query_time_ms(self) -> int:
        return 0


ResolveResult = Union[ResolveSuccess, ResolveFailure]


def resolve_succeeded(records: Sequence[DnsRecord], query_time_ms: int) -> ResolveSuccess:
    return ResolveSuccess(records=tuple(records), query_time_ms=max(0, int(query_time_ms)))


def resolve_failed(error_message: str) -> ResolveFailure:
    return ResolveFailure(error_message=error_message or "Unknown error")


@dataclass
class DnsQuery:
    """
    One resolution attempt against one server.

    A query starts without a result and is completed exactly once via
    set_result or set_error. Queries are never persisted.
    """

    domain: DomainName
    record_type: RecordType
    dns_server: DnsServer
    isp_name: str = DEFAULT_ISP_NAME
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    _result: Optional[ResolveResult] = field(default=None, init=False, repr=False)

    @classmethod
    def create(
        cls,
        domain: DomainName,
        record_type: RecordType,
        dns_server: DnsServer,
        isp_name: Optional[str] = None,
    ) -> "DnsQuery":
        return cls(
            domain=domain,
            record_type=record_type,
            dns_server=dns_server,
            isp_name=isp_name or DEFAULT_ISP_NAME,
        )

    @property
    def result(self) -> Optional[ResolveResult]:
        return self._result

    @property
    def completed(self) -> bool:
        return self._result is not None

    def set_result(self, records: Sequence[DnsRecord], query_time_ms: int) -> None:
        self._ensure_open()
        self._result = resolve_succeeded(records, query_time_ms)

    def set_error(self, error_message: str) -> None:
        self._ensure_open()
        self._result = resolve_failed(error_message)

    def _ensure_open(self) -> None:
        if self._result is not None:
            raise RuntimeError(f"DnsQuery {self.id} already has a result")

    def to_dict(self) -> dict:
        """Flatten the query into the shape API layers render."""
        result = self.result
        return {
            "id": self.id,
            "domain": self.domain.value,
            "record_type": self.record_type.value,
            "dns_server": str(self.dns_server),
            "isp_name": self.isp_name,
            "created_at": self.created_at.isoformat(),
            "records": [r.to_dict() for r in result.records] if result else [],
            "query_time_ms": result.query_time_ms if result else 0,
            "success": result.success if result else False,
            "error_message": result.error_message if result else None,
        }
