"""
Tests for the DNS resolution engine.

No network is used: a fake resolver is injected through resolver_factory and
answers are built from real dnspython rrsets.
"""

import asyncio
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from types import SimpleNamespace

import dns.exception
import dns.resolver
import dns.rrset
from hypothesis import given, settings
from hypothesis import strategies as st

from dns_resolver.audit_logger import AuditLogger
from dns_resolver.config import ResolverConfig
from dns_resolver.enums import LogLevel, ResolveErrorKind
from dns_resolver.models import IspProvider
from dns_resolver.resolution import (
    DnsResolutionService,
    classify_error,
    create_resolver,
)
from dns_resolver.value_objects import DnsServer, DomainName, RecordType


def run_async(coro):
    """Helper to run async code in tests."""
    return asyncio.new_event_loop().run_until_complete(coro)


def answer_of(*rrsets):
    return SimpleNamespace(
        response=SimpleNamespace(answer=list(rrsets)),
        rrset=rrsets[-1] if rrsets else None,
    )


class FakeResolver:
    """Stands in for dns.asyncresolver.Resolver."""

    def __init__(self, answer=None, error=None, delay=0.0):
        self.answer = answer
        self.error = error
        self.delay = delay
        self.calls = []

    async def resolve(self, qname, rdtype, search=False, raise_on_no_answer=True):
        self.calls.append((qname, rdtype, search, raise_on_no_answer))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.answer


def service_with(resolver, logger=None) -> DnsResolutionService:
    return DnsResolutionService(
        ResolverConfig(),
        logger=logger,
        resolver_factory=lambda server, config: resolver,
    )


DOMAIN = DomainName.create("example.com")
SERVER = DnsServer.create("192.0.2.53")


class TestValueExtraction:
    """Per-type extraction of answer values."""

    def _resolve(self, rrset, record_type: RecordType):
        service = service_with(FakeResolver(answer=answer_of(rrset)))
        return run_async(service.resolve(DOMAIN, record_type, SERVER))

    def test_a_records(self) -> None:
        rrset = dns.rrset.from_text("example.com.", 300, "IN", "A", "93.184.216.34", "93.184.216.35")
        query = self._resolve(rrset, RecordType.A)
        assert query.result.success
        assert [r.value for r in query.result.records] == ["93.184.216.34", "93.184.216.35"]
        assert all(r.ttl == 300 and r.type is RecordType.A for r in query.result.records)

    def test_aaaa_records(self) -> None:
        rrset = dns.rrset.from_text("example.com.", 60, "IN", "AAAA", "2001:db8::1")
        query = self._resolve(rrset, RecordType.AAAA)
        assert [r.value for r in query.result.records] == ["2001:db8::1"]

    def test_cname_drops_final_dot(self) -> None:
        rrset = dns.rrset.from_text("www.example.com.", 120, "IN", "CNAME", "example.com.")
        query = self._resolve(rrset, RecordType.CNAME)
        assert [r.value for r in query.result.records] == ["example.com"]

    def test_mx_is_preference_and_exchange(self) -> None:
        rrset = dns.rrset.from_text("example.com.", 3600, "IN", "MX", "10 mail.example.com.")
        query = self._resolve(rrset, RecordType.MX)
        assert [r.value for r in query.result.records] == ["10 mail.example.com"]

    def test_txt_segments_joined_with_spaces(self) -> None:
        rrset = dns.rrset.from_text("example.com.", 300, "IN", "TXT", '"v=spf1" "-all"')
        query = self._resolve(rrset, RecordType.TXT)
        assert [r.value for r in query.result.records] == ["v=spf1 -all"]

    def test_ns_records(self) -> None:
        rrset = dns.rrset.from_text("example.com.", 86400, "IN", "NS", "a.iana-servers.net.")
        query = self._resolve(rrset, RecordType.NS)
        assert [r.value for r in query.result.records] == ["a.iana-servers.net"]

    def test_soa_is_mname_and_rname(self) -> None:
        rrset = dns.rrset.from_text(
            "example.com.", 3600, "IN", "SOA",
            "ns.icann.org. noc.dns.icann.org. 2024 7200 3600 1209600 3600",
        )
        query = self._resolve(rrset, RecordType.SOA)
        assert [r.value for r in query.result.records] == ["ns.icann.org noc.dns.icann.org"]

    def test_cname_chain_included(self) -> None:
        cname = dns.rrset.from_text("www.example.com.", 300, "IN", "CNAME", "example.com.")
        a = dns.rrset.from_text("example.com.", 60, "IN", "A", "93.184.216.34")
        service = service_with(FakeResolver(answer=answer_of(cname, a)))
        query = run_async(service.resolve(DomainName.create("www.example.com"), RecordType.A, SERVER))
        assert [(r.value, r.ttl) for r in query.result.records] == [
            ("example.com", 300),
            ("93.184.216.34", 60),
        ]

    def test_no_answer_is_success_with_zero_records(self) -> None:
        service = service_with(FakeResolver(answer=answer_of()))
        query = run_async(service.resolve(DOMAIN, RecordType.AAAA, SERVER))
        assert query.result.success
        assert query.result.records == ()

    def test_query_is_sent_without_search_and_without_raising_on_no_answer(self) -> None:
        fake = FakeResolver(answer=answer_of())
        run_async(service_with(fake).resolve(DOMAIN, RecordType.MX, SERVER, "Google"))
        assert fake.calls == [("example.com", "MX", False, False)]


class TestErrorClassification:
    """Every failure becomes set_error on the query; resolve never raises."""

    def _resolve_failing(self, error):
        logger = AuditLogger(output_stream=_NullStream(), min_level=LogLevel.DEBUG)
        service = service_with(FakeResolver(error=error), logger=logger)
        return run_async(service.resolve(DOMAIN, RecordType.A, SERVER)), logger

    def test_timeout(self) -> None:
        query, _ = self._resolve_failing(dns.exception.Timeout())
        assert not query.result.success
        assert query.result.error_message == "Query timed out"

    def test_nxdomain_is_protocol_error(self) -> None:
        query, _ = self._resolve_failing(dns.resolver.NXDOMAIN())
        assert "NXDOMAIN" in query.result.error_message

    def test_network_error(self) -> None:
        query, _ = self._resolve_failing(ConnectionRefusedError(111, "Connection refused"))
        assert query.result.error_message.startswith("Network error")

    def test_unknown_error_is_logged_as_error(self) -> None:
        query, logger = self._resolve_failing(RuntimeError("kaboom"))
        assert query.result.error_message == "kaboom"
        assert any(e.level is LogLevel.ERROR for e in logger.entries)

    def test_deadline_expiry_is_a_timeout(self) -> None:
        service = service_with(FakeResolver(answer=answer_of(), delay=1.0))
        query = run_async(service.resolve(DOMAIN, RecordType.A, SERVER, deadline=0.01))
        assert query.result.error_message == "Query timed out"

    def test_classification_order(self) -> None:
        # dnspython's Timeout is itself a DNSException
        assert classify_error(dns.exception.Timeout())[0] is ResolveErrorKind.TIMEOUT
        assert classify_error(asyncio.TimeoutError())[0] is ResolveErrorKind.TIMEOUT
        assert classify_error(dns.resolver.NoNameservers())[0] is ResolveErrorKind.PROTOCOL
        assert classify_error(dns.exception.DNSException("x"))[0] is ResolveErrorKind.PROTOCOL
        assert classify_error(OSError("down"))[0] is ResolveErrorKind.NETWORK
        assert classify_error(ValueError("?"))[0] is ResolveErrorKind.UNKNOWN


class TestBatchResolve:
    """
    Property-based tests for batch resolution.

    *For any* list of providers, the output SHALL have the same length and
    order as the input, and one failing provider SHALL NOT affect the others.
    """

    def _providers(self, count: int) -> list[IspProvider]:
        return [
            IspProvider.create(f"isp{i}", f"ISP {i}", f"192.0.2.{i + 1}")
            for i in range(count)
        ]

    def test_one_timeout_among_three(self) -> None:
        a = dns.rrset.from_text("example.com.", 300, "IN", "A", "93.184.216.34")
        resolvers = {
            "192.0.2.1:53": FakeResolver(answer=answer_of(a), delay=0.05),
            "192.0.2.2:53": FakeResolver(error=dns.exception.Timeout()),
            "192.0.2.3:53": FakeResolver(answer=answer_of(a)),
        }
        service = DnsResolutionService(
            ResolverConfig(),
            resolver_factory=lambda server, config: resolvers[server.cache_key],
        )

        queries = run_async(service.batch_resolve(DOMAIN, RecordType.A, self._providers(3)))

        assert len(queries) == 3
        assert [q.isp_name for q in queries] == ["ISP 0", "ISP 1", "ISP 2"]
        assert [q.result.success for q in queries] == [True, False, True]
        assert sum(1 for q in queries if not q.result.success) == 1

    @given(
        delays=st.lists(st.sampled_from([0.0, 0.001, 0.005]), min_size=0, max_size=6),
        failing=st.sets(st.integers(min_value=0, max_value=5)),
    )
    @settings(max_examples=25, deadline=None)
    def test_order_and_isolation(self, delays: list[float], failing: set[int]) -> None:
        providers = self._providers(len(delays))
        a = dns.rrset.from_text("example.com.", 300, "IN", "A", "93.184.216.34")
        resolvers = {
            p.primary_dns.cache_key: FakeResolver(
                answer=answer_of(a),
                error=dns.exception.Timeout() if i in failing else None,
                delay=delays[i],
            )
            for i, p in enumerate(providers)
        }
        service = DnsResolutionService(
            resolver_factory=lambda server, config: resolvers[server.cache_key],
        )

        queries = run_async(service.batch_resolve(DOMAIN, RecordType.A, providers))

        assert [q.dns_server for q in queries] == [p.primary_dns for p in providers]
        for i, query in enumerate(queries):
            assert query.completed
            assert query.result.success is (i not in failing)

    def test_empty_provider_list(self) -> None:
        service = service_with(FakeResolver())
        assert run_async(service.batch_resolve(DOMAIN, RecordType.A, [])) == []


class TestClientCache:
    """The resolver client for a server is created at most once."""

    def test_concurrent_async_first_use_creates_one_client(self) -> None:
        created = []

        def factory(server, config):
            created.append(server)
            return FakeResolver(answer=answer_of(), delay=0.001)

        service = DnsResolutionService(resolver_factory=factory)

        async def many():
            return await asyncio.gather(*[
                service.resolve(DOMAIN, RecordType.A, SERVER) for _ in range(20)
            ])

        run_async(many())
        assert len(created) == 1
        assert service.cached_servers == [SERVER.cache_key]

    def test_threaded_first_use_creates_one_client(self) -> None:
        created = []
        lock = threading.Lock()

        def factory(server, config):
            with lock:
                created.append(server)
            time.sleep(0.01)
            return object()

        service = DnsResolutionService(resolver_factory=factory)
        with ThreadPoolExecutor(max_workers=8) as pool:
            clients = list(pool.map(lambda _: service.get_client(SERVER), range(32)))

        assert len(created) == 1
        assert all(c is clients[0] for c in clients)

    def test_distinct_ports_get_distinct_clients(self) -> None:
        service = DnsResolutionService(resolver_factory=lambda server, config: object())
        a = service.get_client(DnsServer.create("192.0.2.1"))
        b = service.get_client(DnsServer.create("192.0.2.1", 5353))
        assert a is not b


class TestDefaultResolverFactory:
    def test_binds_server_and_timing(self) -> None:
        resolver = create_resolver(DnsServer.create("192.0.2.1", 5353), ResolverConfig(2.0, 2))
        nameservers = list(resolver.nameservers)
        assert len(nameservers) == 1
        # dnspython may hand back plain strings or Nameserver objects
        assert getattr(nameservers[0], "address", nameservers[0]) == "192.0.2.1"
        assert getattr(nameservers[0], "port", resolver.port) == 5353
        assert resolver.port == 5353
        assert resolver.timeout == 2.0
        assert resolver.lifetime == 6.0


class _NullStream:
    def write(self, _text: str) -> int:
        return 0

    def flush(self) -> None:
        pass
