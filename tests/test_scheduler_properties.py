"""
Property-based tests for the DDNS scheduler.

Discovery and providers are replaced with in-process fakes and the clock is
injected, so every tick is deterministic.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from dns_resolver.config import SchedulerConfig
from dns_resolver.ddns_task import DdnsTask
from dns_resolver.enums import ProviderErrorCode, TaskOutcome
from dns_resolver.exceptions import PersistenceError
from dns_resolver.ip_discovery import PublicIpFound, PublicIpNotFound
from dns_resolver.providers import DnsProviderConfig, DnsProviderFactory, DnsRecordInfo
from dns_resolver.providers.base import fail, ok
from dns_resolver.scheduler import DdnsScheduler
from dns_resolver.task_store import InMemoryTaskStore


def run_async(coro):
    """Helper to run async code in tests."""
    return asyncio.new_event_loop().run_until_complete(coro)


BASE_TIME = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime = BASE_TIME) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, minutes: float) -> None:
        self.now += timedelta(minutes=minutes)


class FakeDiscovery:
    """Returns a scripted public IP (or failure) and counts calls."""

    def __init__(self, ip: Optional[str] = "203.0.113.1", delay: float = 0.0) -> None:
        self.ip = ip
        self.delay = delay
        self.calls = 0

    async def get_current_public_ip(self, preferred_source=None, deadline=None):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.ip is None:
            return PublicIpNotFound("Unable to obtain public IP from any source")
        return PublicIpFound(ip=self.ip, source="fake")


class FakeProvider:
    """Records update calls; per-record behavior can be scripted."""

    name = "fake"
    display_name = "Fake"

    def __init__(self) -> None:
        self.updates: list[tuple[str, str, str, Optional[int]]] = []
        self.raise_for: set[str] = set()
        self.fail_for: set[str] = set()
        self.configs: list[DnsProviderConfig] = []

    def configure(self, config: DnsProviderConfig) -> None:
        self.configs.append(config)

    async def list_domains(self):
        return ok([])

    async def list_records(self, domain, sub_domain=None, record_type=None):
        return ok([])

    async def add_record(self, domain, sub_domain, record_type, value, ttl=600):
        return fail(ProviderErrorCode.INVALID_PARAMETER, "unsupported")

    async def update_record(self, domain, record_id, value, ttl=None):
        if record_id in self.raise_for:
            raise RuntimeError("provider exploded")
        if record_id in self.fail_for:
            return fail(ProviderErrorCode.AUTHENTICATION_FAILED, "bad credentials")
        self.updates.append((domain, record_id, value, ttl))
        return ok(DnsRecordInfo(
            record_id=record_id,
            domain=domain,
            sub_domain="home",
            full_domain=f"home.{domain}",
            record_type="A",
            value=value,
            ttl=ttl if ttl is not None else 600,
        ))

    async def delete_record(self, domain, record_id):
        return ok(None)


def make_task(record_id: str = "rec-1", provider_name: str = "fake", **overrides) -> DdnsTask:
    fields = dict(
        name=f"task-{record_id}",
        provider_name=provider_name,
        provider_id="pid",
        provider_secret="psecret",
        domain="example.com",
        record_id=record_id,
        sub_domain="home",
        ttl=300,
        interval_minutes=5,
        now=BASE_TIME - timedelta(days=1),
    )
    fields.update(overrides)
    return DdnsTask.create(**fields)


class Harness:
    def __init__(self, ip: Optional[str] = "203.0.113.1", tick_seconds: float = 60.0) -> None:
        self.store = InMemoryTaskStore()
        self.discovery = FakeDiscovery(ip)
        self.provider = FakeProvider()
        factory = DnsProviderFactory()
        factory.register("fake", lambda: self.provider)
        self.clock = FakeClock()
        self.scheduler = DdnsScheduler(
            self.store,
            self.discovery,
            factory,
            config=SchedulerConfig(tick_interval_seconds=tick_seconds),
            clock=self.clock,
        )

    async def add(self, *tasks: DdnsTask) -> None:
        for task in tasks:
            await self.store.add(task)


class TestReconciliation:
    def test_ip_change_updates_provider(self) -> None:
        h = Harness("203.0.113.1")
        task = make_task()

        async def scenario():
            await h.add(task)
            summary = await h.scheduler.run_tick()
            return summary, await h.store.get_by_id(task.id)

        summary, stored = run_async(scenario())

        assert summary.outcomes[task.id] is TaskOutcome.UPDATED
        assert h.provider.updates == [("example.com", "rec-1", "203.0.113.1", 300)]
        assert stored.last_known_ip == "203.0.113.1"
        assert stored.last_update_time == BASE_TIME
        assert stored.last_check_time == BASE_TIME
        assert stored.last_error is None

    def test_provider_receives_task_credentials(self) -> None:
        h = Harness()
        task = make_task(extra_params={"url": "https://hook.test/"})

        async def scenario():
            await h.add(task)
            await h.scheduler.run_tick()

        run_async(scenario())
        config = h.provider.configs[0]
        assert (config.id, config.secret) == ("pid", "psecret")
        assert config.extra_params == {"url": "https://hook.test/"}

    def test_unchanged_ip_never_reaches_provider(self) -> None:
        h = Harness("203.0.113.1")
        task = make_task()

        async def scenario():
            await h.add(task)
            first = await h.scheduler.run_tick()
            h.clock.advance(6)
            second = await h.scheduler.run_tick()
            return first, second, await h.store.get_by_id(task.id)

        first, second, stored = run_async(scenario())

        assert first.outcomes[task.id] is TaskOutcome.UPDATED
        assert second.outcomes[task.id] is TaskOutcome.UNCHANGED
        assert len(h.provider.updates) == 1
        assert stored.last_check_time == BASE_TIME + timedelta(minutes=6)
        assert stored.last_update_time == BASE_TIME

    def test_not_due_task_is_skipped(self) -> None:
        h = Harness()
        task = make_task()

        async def scenario():
            await h.add(task)
            await h.scheduler.run_tick()
            h.clock.advance(4)
            return await h.scheduler.run_tick()

        summary = run_async(scenario())
        assert summary.outcomes[task.id] is TaskOutcome.SKIPPED
        assert h.discovery.calls == 1

    def test_disabled_task_is_ignored(self) -> None:
        h = Harness()
        task = make_task()
        task.disable()

        async def scenario():
            await h.add(task)
            return await h.scheduler.run_tick()

        summary = run_async(scenario())
        assert summary.outcomes == {}
        assert h.discovery.calls == 0

    def test_discovery_failure_records_error(self) -> None:
        h = Harness(ip=None)
        task = make_task()

        async def scenario():
            await h.add(task)
            summary = await h.scheduler.run_tick()
            return summary, await h.store.get_by_id(task.id)

        summary, stored = run_async(scenario())

        assert summary.outcomes[task.id] is TaskOutcome.FAILED
        assert h.provider.updates == []
        assert stored.last_error.startswith("Unable to obtain public IP")
        assert stored.last_check_time == BASE_TIME
        assert stored.last_known_ip is None

    def test_unknown_provider(self) -> None:
        h = Harness()
        task = make_task(provider_name="nope")

        async def scenario():
            await h.add(task)
            summary = await h.scheduler.run_tick()
            return summary, await h.store.get_by_id(task.id)

        summary, stored = run_async(scenario())
        assert summary.outcomes[task.id] is TaskOutcome.FAILED
        assert stored.last_error == "Provider 'nope' not found"
        assert stored.last_known_ip is None

    def test_provider_failure_keeps_last_known_ip(self) -> None:
        h = Harness("203.0.113.1")
        task = make_task()

        async def scenario():
            await h.add(task)
            await h.scheduler.run_tick()
            h.discovery.ip = "203.0.113.2"
            h.provider.fail_for.add("rec-1")
            h.clock.advance(5)
            summary = await h.scheduler.run_tick()
            return summary, await h.store.get_by_id(task.id)

        summary, stored = run_async(scenario())
        assert summary.outcomes[task.id] is TaskOutcome.FAILED
        assert stored.last_error == "bad credentials"
        assert stored.last_known_ip == "203.0.113.1"
        assert stored.last_update_time == BASE_TIME

    def test_recovery_clears_error(self) -> None:
        h = Harness(ip=None)
        task = make_task()

        async def scenario():
            await h.add(task)
            await h.scheduler.run_tick()
            h.discovery.ip = "203.0.113.9"
            h.clock.advance(5)
            await h.scheduler.run_tick()
            return await h.store.get_by_id(task.id)

        stored = run_async(scenario())
        assert stored.last_error is None
        assert stored.last_known_ip == "203.0.113.9"


class TestFaultIsolation:
    """
    Property-based tests for per-task isolation.

    *For any* subset of tasks whose provider raises, every other due task
    SHALL still be reconciled in the same tick.
    """

    def test_exception_in_one_task_does_not_stop_the_next(self) -> None:
        h = Harness("203.0.113.1")
        bad = make_task("rec-a")
        good = make_task("rec-b")
        h.provider.raise_for.add("rec-a")

        async def scenario():
            await h.add(bad, good)
            summary = await h.scheduler.run_tick()
            return summary, await h.store.get_by_id(bad.id), await h.store.get_by_id(good.id)

        summary, stored_bad, stored_good = run_async(scenario())

        assert summary.outcomes[bad.id] is TaskOutcome.FAILED
        assert summary.outcomes[good.id] is TaskOutcome.UPDATED
        assert stored_bad.last_error == "Processing error: provider exploded"
        assert stored_good.last_known_ip == "203.0.113.1"

    @given(raising=st.lists(st.booleans(), min_size=1, max_size=6))
    @settings(max_examples=30, deadline=None)
    def test_outcomes_match_raising_pattern(self, raising: list[bool]) -> None:
        h = Harness("203.0.113.1")
        tasks = [make_task(f"rec-{i}") for i in range(len(raising))]
        for task, raises in zip(tasks, raising):
            if raises:
                h.provider.raise_for.add(task.record_id)

        async def scenario():
            await h.add(*tasks)
            return await h.scheduler.run_tick()

        summary = run_async(scenario())

        assert summary.checked == len(tasks)
        assert summary.failed == sum(raising)
        assert summary.updated == len(tasks) - sum(raising)
        for task, raises in zip(tasks, raising):
            expected = TaskOutcome.FAILED if raises else TaskOutcome.UPDATED
            assert summary.outcomes[task.id] is expected


class TestOverlappingTicks:
    """Two passes racing over the same due task reconcile it once."""

    def test_concurrent_ticks_update_once(self) -> None:
        h = Harness("203.0.113.1")
        h.discovery.delay = 0.05
        task = make_task()

        async def scenario():
            await h.add(task)
            return await asyncio.gather(h.scheduler.run_tick(), h.scheduler.run_tick())

        first, second = run_async(scenario())
        outcomes = [first.outcomes[task.id], second.outcomes[task.id]]

        assert len(h.provider.updates) == 1
        assert h.discovery.calls == 1
        assert outcomes.count(TaskOutcome.UPDATED) == 1
        assert outcomes.count(TaskOutcome.SKIPPED) == 1


class TestSchedulerLoop:
    def test_run_stops_on_event(self) -> None:
        h = Harness(tick_seconds=0.01)
        task = make_task()

        async def scenario():
            await h.add(task)
            stop = asyncio.Event()
            runner = asyncio.ensure_future(h.scheduler.run(stop))
            await asyncio.sleep(0.05)
            assert h.scheduler.is_running()
            stop.set()
            await asyncio.wait_for(runner, timeout=1.0)

        run_async(scenario())

        assert not h.scheduler.is_running()
        # Clock does not move, so the task is due exactly once
        assert len(h.provider.updates) == 1

    def test_preset_stop_event_runs_no_tick(self) -> None:
        h = Harness()

        async def scenario():
            await h.add(make_task())
            stop = asyncio.Event()
            stop.set()
            await h.scheduler.run(stop)

        run_async(scenario())
        assert h.discovery.calls == 0

    def test_unreadable_store_fails_startup(self) -> None:
        class BrokenStore(InMemoryTaskStore):
            async def get_enabled(self):
                raise OSError("disk gone")

        scheduler = DdnsScheduler(BrokenStore(), FakeDiscovery(), DnsProviderFactory())
        with pytest.raises(PersistenceError) as exc_info:
            run_async(scheduler.run(asyncio.Event()))
        assert exc_info.value.code == "store_unavailable"
        assert not scheduler.is_running()

    def test_tick_error_does_not_end_loop(self) -> None:
        h = Harness(tick_seconds=0.01)
        calls = {"n": 0}
        original = h.store.get_enabled

        async def flaky():
            calls["n"] += 1
            # First call is the startup check; the second tick fails
            if calls["n"] == 2:
                raise RuntimeError("transient")
            return await original()

        h.store.get_enabled = flaky

        async def scenario():
            await h.add(make_task())
            stop = asyncio.Event()
            runner = asyncio.ensure_future(h.scheduler.run(stop))
            await asyncio.sleep(0.1)
            stop.set()
            await asyncio.wait_for(runner, timeout=1.0)

        run_async(scenario())
        assert calls["n"] > 2
        assert len(h.provider.updates) == 1
