"""
DDNS reconciliation scheduler.

A single long-lived loop that, once per tick, walks the enabled tasks and
brings each due task's provider record in line with the current public IP:

    due? -> discover IP -> record check -> compare -> (unchanged | update) -> persist

An unchanged IP never reaches the provider. Each task is processed under its
own lock and any exception while processing it is recorded on the task, so
one failing task never aborts the tick.
"""

import asyncio
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

from .audit_logger import AuditLogger
from .config import SchedulerConfig
from .ddns_task import DdnsTask, utcnow
from .enums import TaskOutcome
from .exceptions import PersistenceError
from .ip_discovery import PublicIpDiscovery
from .providers.base import DnsProviderConfig
from .providers.factory import DnsProviderFactory
from .task_store import TaskStore


COMPONENT = "DdnsScheduler"


@dataclass
class TickSummary:
    """Per-tick counters, mostly for logging and tests."""

    checked: int = 0
    skipped: int = 0
    updated: int = 0
    unchanged: int = 0
    failed: int = 0
    outcomes: dict[str, TaskOutcome] = field(default_factory=dict)

    def add(self, task_id: str, outcome: TaskOutcome) -> None:
        self.outcomes[task_id] = outcome
        if outcome is TaskOutcome.SKIPPED:
            self.skipped += 1
            return
        self.checked += 1
        if outcome is TaskOutcome.UPDATED:
            self.updated += 1
        elif outcome is TaskOutcome.UNCHANGED:
            self.unchanged += 1
        else:
            self.failed += 1


class DdnsScheduler:
    """Background reconciliation loop for DDNS tasks."""

    def __init__(
        self,
        store: TaskStore,
        ip_discovery: PublicIpDiscovery,
        provider_factory: DnsProviderFactory,
        config: Optional[SchedulerConfig] = None,
        logger: Optional[AuditLogger] = None,
        clock: Optional[Callable[[], datetime]] = None,
        preferred_source: Optional[str] = None,
    ) -> None:
        """
        Args:
            store: Task persistence
            ip_discovery: Public-IP discovery chain
            provider_factory: Resolves a task's provider name to a provider
            config: Tick timing
            logger: Optional audit logger
            clock: Returns the current UTC time (injectable for tests)
            preferred_source: Discovery source to try first
        """
        self._store = store
        self._ip_discovery = ip_discovery
        self._provider_factory = provider_factory
        self._config = config or SchedulerConfig()
        self._logger = logger
        self._clock = clock or utcnow
        self._preferred_source = preferred_source
        self._task_locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._running = False

    def is_running(self) -> bool:
        return self._running

    async def run(self, stop_event: asyncio.Event) -> None:
        """
        Run ticks until ``stop_event`` is set.

        Raises:
            PersistenceError: If the task store cannot be read at startup
        """
        try:
            await self._store.get_enabled()
        except Exception as e:
            self._log_error("Task store unavailable at startup", e)
            if isinstance(e, PersistenceError):
                raise
            raise PersistenceError(
                code="store_unavailable",
                message=f"Task store unavailable: {e}",
            ) from e

        self._running = True
        self._log_info("DDNS scheduler started", {"tick_seconds": self._config.tick_interval_seconds})
        try:
            while not stop_event.is_set():
                try:
                    summary = await self.run_tick(stop_event)
                    if summary.checked:
                        self._log_info("Tick finished", {
                            "checked": summary.checked,
                            "updated": summary.updated,
                            "unchanged": summary.unchanged,
                            "failed": summary.failed,
                        })
                except Exception as e:
                    self._log_error("Error processing DDNS tasks", e)

                try:
                    await asyncio.wait_for(stop_event.wait(), timeout=self._config.tick_interval_seconds)
                except asyncio.TimeoutError:
                    pass
        finally:
            self._running = False
            self._log_info("DDNS scheduler stopped", {})

    async def run_tick(self, stop_event: Optional[asyncio.Event] = None) -> TickSummary:
        """Process every due enabled task once."""
        summary = TickSummary()
        tasks = await self._store.get_enabled()

        for task in tasks:
            if stop_event is not None and stop_event.is_set():
                break
            if not task.is_due(self._clock()):
                summary.add(task.id, TaskOutcome.SKIPPED)
                continue

            async with self._task_locks[task.id]:
                current = await self._store.get_by_id(task.id)
                # Another pass may have handled or removed the task meanwhile
                if current is None or not current.is_due(self._clock()):
                    summary.add(task.id, TaskOutcome.SKIPPED)
                    continue
                summary.add(task.id, await self.process_task(current))

        return summary

    async def process_task(self, task: DdnsTask) -> TaskOutcome:
        """Reconcile one task; never raises for per-task failures."""
        try:
            return await self._reconcile(task)
        except Exception as e:
            self._log_error(f"Error processing DDNS task {task.id} - {task.name}", e)
            task.record_error(f"Processing error: {e}", now=self._clock())
            try:
                await self._store.update(task)
            except Exception as persist_error:
                self._log_error(f"Failed to persist error state for task {task.id}", persist_error)
            return TaskOutcome.FAILED

    async def _reconcile(self, task: DdnsTask) -> TaskOutcome:
        self._log_info(f"Checking DDNS task {task.id} - {task.name}", {"task_id": task.id})

        ip_result = await self._ip_discovery.get_current_public_ip(self._preferred_source)
        task.record_check(now=self._clock())

        if not ip_result.success or not ip_result.ip:
            error = ip_result.error_message or "Failed to get public IP"
            self._log_warn(f"Failed to get IP for task {task.id}", {"error_message": error})
            task.record_error(error, now=self._clock())
            await self._store.update(task)
            return TaskOutcome.FAILED

        current_ip = ip_result.ip
        if current_ip == task.last_known_ip:
            self._log_debug(f"IP unchanged for task {task.id}", {"ip": current_ip})
            await self._store.update(task)
            return TaskOutcome.UNCHANGED

        self._log_info(
            f"IP changed for task {task.id}",
            {"old_ip": task.last_known_ip or "none", "new_ip": current_ip},
        )

        provider = self._provider_factory.create(
            task.provider_name,
            DnsProviderConfig(
                id=task.provider_id,
                secret=task.provider_secret,
                extra_params=task.extra_params,
            ),
        )
        if provider is None:
            error = f"Provider '{task.provider_name}' not found"
            self._log_warn(f"Failed to create provider for task {task.id}", {"error_message": error})
            task.record_error(error, now=self._clock())
            await self._store.update(task)
            return TaskOutcome.FAILED

        result = await provider.update_record(task.domain, task.record_id, current_ip, task.ttl)
        if result.success:
            self._log_info(
                f"Updated DNS record for task {task.id}",
                {"domain": task.domain, "ip": current_ip},
            )
            task.update_ip(current_ip, now=self._clock())
            outcome = TaskOutcome.UPDATED
        else:
            error = result.message or "Update failed"
            self._log_warn(
                f"Failed to update DNS record for task {task.id}",
                {"error_message": error, "code": result.code.value},
            )
            task.record_error(error, now=self._clock())
            outcome = TaskOutcome.FAILED

        await self._store.update(task)
        return outcome

    def _log_debug(self, message: str, data: dict) -> None:
        if self._logger:
            self._logger.debug(COMPONENT, message, data)

    def _log_info(self, message: str, data: dict) -> None:
        if self._logger:
            self._logger.info(COMPONENT, message, data)

    def _log_warn(self, message: str, data: dict) -> None:
        if self._logger:
            self._logger.warn(COMPONENT, message, data)

    def _log_error(self, message: str, error: BaseException) -> None:
        if self._logger:
            self._logger.error(COMPONENT, message, error=error)
