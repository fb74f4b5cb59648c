"""
DNS resolution engine.

Resolves one domain/record-type pair against one name server, or fans the
same query out to many ISP servers concurrently for comparison. Protocol
answers are normalized into DnsRecord values and every failure is folded
into the returned DnsQuery instead of being raised.
"""

import asyncio
import threading
import time
from typing import Any, Callable, Iterable, Optional

import dns.asyncresolver
import dns.exception
import dns.rdatatype
import dns.resolver

from .audit_logger import AuditLogger
from .config import ResolverConfig
from .enums import ResolveErrorKind
from .models import DnsQuery, IspProvider
from .value_objects import DnsRecord, DnsServer, DomainName, RecordType


COMPONENT = "DnsResolutionService"

ResolverFactory = Callable[[DnsServer, ResolverConfig], Any]


def create_resolver(server: DnsServer, config: ResolverConfig) -> dns.asyncresolver.Resolver:
    """Build a dnspython async resolver bound to a single server."""
    resolver = dns.asyncresolver.Resolver(configure=False)
    # The port must be set first; nameservers capture it when assigned
    resolver.port = server.port
    resolver.nameservers = [server.address]
    resolver.timeout = config.query_timeout_seconds
    # dnspython has no retry count; the lifetime bounds the total attempts
    resolver.lifetime = config.query_timeout_seconds * (max(0, config.retries) + 1)
    return resolver


def _name(value: Any) -> str:
    return value.to_text(omit_final_dot=True)


def extract_value(rdata: Any) -> str:
    """Render one answer rdata in the textual form shown to users."""
    rdtype = rdata.rdtype
    if rdtype in (dns.rdatatype.A, dns.rdatatype.AAAA):
        return rdata.address
    if rdtype in (dns.rdatatype.CNAME, dns.rdatatype.NS):
        return _name(rdata.target)
    if rdtype == dns.rdatatype.MX:
        return f"{rdata.preference} {_name(rdata.exchange)}"
    if rdtype == dns.rdatatype.TXT:
        return " ".join(s.decode("utf-8", errors="replace") for s in rdata.strings)
    if rdtype == dns.rdatatype.SOA:
        return f"{_name(rdata.mname)} {_name(rdata.rname)}"
    return rdata.to_text()


def extract_records(answer: Any, record_type: RecordType) -> list[DnsRecord]:
    """
    Map every rrset in the answer section to DnsRecords.

    CNAME hops preceding the requested type are included, tagged with the
    requested record type, so a comparison shows the whole chain.
    """
    response = getattr(answer, "response", None)
    rrsets = list(response.answer) if response is not None else []
    if not rrsets and getattr(answer, "rrset", None) is not None:
        rrsets = [answer.rrset]

    records: list[DnsRecord] = []
    for rrset in rrsets:
        for rdata in rrset:
            records.append(DnsRecord(value=extract_value(rdata), ttl=int(rrset.ttl), type=record_type))
    return records


def classify_error(error: BaseException) -> tuple[ResolveErrorKind, str]:
    """Map an exception raised during a query to its error class and message."""
    if isinstance(error, dns.exception.Timeout) or isinstance(error, asyncio.TimeoutError):
        return ResolveErrorKind.TIMEOUT, "Query timed out"
    if isinstance(error, dns.resolver.NXDOMAIN):
        return ResolveErrorKind.PROTOCOL, "DNS response error: NXDOMAIN"
    if isinstance(error, dns.resolver.NoNameservers):
        return ResolveErrorKind.PROTOCOL, "DNS response error: no name server answered"
    if isinstance(error, dns.exception.DNSException):
        return ResolveErrorKind.PROTOCOL, f"DNS response error: {error}"
    if isinstance(error, OSError):
        return ResolveErrorKind.NETWORK, f"Network error: {error.strerror or error}"
    return ResolveErrorKind.UNKNOWN, str(error) or type(error).__name__


class DnsResolutionService:
    """
    Resolves DNS queries against explicit name servers.

    One resolver client is created per distinct server and reused for the
    life of the service. Creation is guarded by a lock so concurrent first
    use of the same server never builds two clients.
    """

    def __init__(
        self,
        config: Optional[ResolverConfig] = None,
        logger: Optional[AuditLogger] = None,
        resolver_factory: Optional[ResolverFactory] = None,
    ) -> None:
        """
        Args:
            config: Query timeout and retry settings
            logger: Optional audit logger
            resolver_factory: Builds a resolver for a server; defaults to a
                dnspython async resolver
        """
        self._config = config or ResolverConfig()
        self._logger = logger
        self._resolver_factory = resolver_factory or create_resolver
        self._clients: dict[str, Any] = {}
        self._clients_lock = threading.Lock()

    @property
    def cached_servers(self) -> list[str]:
        return list(self._clients)

    def get_client(self, server: DnsServer) -> Any:
        """Return the resolver bound to ``server``, creating it at most once."""
        key = server.cache_key
        client = self._clients.get(key)
        if client is not None:
            return client
        with self._clients_lock:
            client = self._clients.get(key)
            if client is None:
                client = self._resolver_factory(server, self._config)
                self._clients[key] = client
            return client

    async def resolve(
        self,
        domain: DomainName,
        record_type: RecordType,
        dns_server: DnsServer,
        isp_name: Optional[str] = None,
        deadline: Optional[float] = None,
    ) -> DnsQuery:
        """
        Resolve one domain/record-type pair against one server.

        Args:
            domain: Domain to resolve
            record_type: Record type to ask for
            dns_server: Server to ask
            isp_name: Optional label for comparison output
            deadline: Optional overall deadline in seconds; expiry counts as
                a timeout failure

        Returns:
            The completed DnsQuery; failures are recorded on it, never raised
        """
        query = DnsQuery.create(domain, record_type, dns_server, isp_name)
        start_time = time.perf_counter()

        try:
            client = self.get_client(dns_server)
            lookup = client.resolve(
                domain.value,
                record_type.value,
                search=False,
                raise_on_no_answer=False,
            )
            if deadline is not None:
                answer = await asyncio.wait_for(lookup, timeout=deadline)
            else:
                answer = await lookup

            elapsed_ms = int((time.perf_counter() - start_time) * 1000)
            records = extract_records(answer, record_type)
            query.set_result(records, elapsed_ms)
            self._log_info(
                f"Resolved {domain} -> {len(records)} record(s) in {elapsed_ms}ms",
                {"domain": domain.value, "type": record_type.value, "server": str(dns_server)},
            )
        except Exception as e:
            kind, message = classify_error(e)
            query.set_error(message)
            self._log_failure(kind, domain, dns_server, e)

        return query

    async def batch_resolve(
        self,
        domain: DomainName,
        record_type: RecordType,
        providers: Iterable[IspProvider],
        deadline: Optional[float] = None,
    ) -> list[DnsQuery]:
        """
        Resolve the same query against each provider's primary server at once.

        Returns:
            One completed DnsQuery per provider, in the order given
        """
        queries = [
            self.resolve(domain, record_type, provider.primary_dns, provider.name, deadline)
            for provider in providers
        ]
        if not queries:
            return []
        return list(await asyncio.gather(*queries))

    def _log_info(self, message: str, data: dict) -> None:
        if self._logger:
            self._logger.info(COMPONENT, message, data)

    def _log_failure(
        self,
        kind: ResolveErrorKind,
        domain: DomainName,
        dns_server: DnsServer,
        error: BaseException,
    ) -> None:
        if not self._logger:
            return
        data = {"domain": domain.value, "server": str(dns_server), "kind": kind.value}
        if kind is ResolveErrorKind.UNKNOWN:
            self._logger.error(COMPONENT, f"Resolution of {domain} failed", error=error, data=data)
        else:
            data["error_message"] = str(error)
            self._logger.warn(COMPONENT, f"Resolution of {domain} via {dns_server} failed", data)
