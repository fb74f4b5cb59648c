"""
Command handlers used by the CLI (and any other front end).

DnsQueryHandler turns raw user input into value types and runs single or
comparison resolutions. DdnsTaskHandler exposes the task lifecycle on top of
a TaskStore. Unknown ids are reported as None/False, never raised.
"""

from typing import Iterable, Optional

from .audit_logger import AuditLogger
from .ddns_task import DEFAULT_INTERVAL_MINUTES, DEFAULT_TTL, DdnsTask
from .models import DEFAULT_ISP_NAME, DnsQuery
from .isp_registry import IspRegistry
from .resolution import DnsResolutionService
from .task_store import TaskStore
from .value_objects import DEFAULT_DNS_PORT, DnsServer, DomainName, RecordType


COMPONENT = "CommandHandlers"


class DnsQueryHandler:
    """Runs resolve and compare requests."""

    def __init__(
        self,
        resolution_service: DnsResolutionService,
        isp_registry: IspRegistry,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        self._resolution = resolution_service
        self._registry = isp_registry
        self._logger = logger

    async def resolve(
        self,
        domain: str,
        record_type: str,
        dns_server: str,
        port: int = DEFAULT_DNS_PORT,
    ) -> DnsQuery:
        """
        Resolve against one server, labelling it with its ISP when known.

        Raises:
            ValidationError: If the domain, record type or server is invalid
        """
        server = DnsServer.create(dns_server, port)
        provider = self._registry.find_by_dns_server(server.address)
        isp_name = provider.name if provider else DEFAULT_ISP_NAME
        return await self._resolution.resolve(
            DomainName.create(domain),
            RecordType.create(record_type),
            server,
            isp_name,
        )

    async def compare(
        self,
        domain: str,
        record_type: str,
        isp_ids: Optional[Iterable[str]] = None,
    ) -> list[DnsQuery]:
        """
        Resolve against several ISPs at once.

        Args:
            isp_ids: ISPs to ask, in output order; None means all. Unknown
                ids are skipped.
        """
        name = DomainName.create(domain)
        rtype = RecordType.create(record_type)

        if isp_ids is None:
            providers = self._registry.get_all()
        else:
            providers = []
            for isp_id in isp_ids:
                provider = self._registry.find_by_id(isp_id)
                if provider is None:
                    if self._logger:
                        self._logger.warn(COMPONENT, f"Unknown ISP '{isp_id}' skipped", {"isp_id": isp_id})
                    continue
                providers.append(provider)

        return await self._resolution.batch_resolve(name, rtype, providers)


class DdnsTaskHandler:
    """Task lifecycle operations."""

    def __init__(self, store: TaskStore, logger: Optional[AuditLogger] = None) -> None:
        self._store = store
        self._logger = logger

    async def create_task(
        self,
        name: str,
        provider_name: str,
        provider_id: str,
        provider_secret: str,
        domain: str,
        record_id: str,
        sub_domain: Optional[str] = None,
        ttl: int = DEFAULT_TTL,
        interval_minutes: int = DEFAULT_INTERVAL_MINUTES,
        extra_params: Optional[dict[str, str]] = None,
    ) -> DdnsTask:
        task = DdnsTask.create(
            name=name,
            provider_name=provider_name,
            provider_id=provider_id,
            provider_secret=provider_secret,
            domain=domain,
            record_id=record_id,
            sub_domain=sub_domain,
            ttl=ttl,
            interval_minutes=interval_minutes,
            extra_params=extra_params,
        )
        await self._store.add(task)
        self._log_info(f"Created DDNS task {task.id}", task.to_dict(include_secret=False))
        return task

    async def update_task(
        self,
        task_id: str,
        enabled: Optional[bool] = None,
        interval_minutes: Optional[int] = None,
        provider_id: Optional[str] = None,
        provider_secret: Optional[str] = None,
    ) -> Optional[DdnsTask]:
        """
        Apply the requested changes and persist them.

        Credentials change only when both id and secret are given.

        Returns:
            The updated task, or None if no task has this id
        """
        task = await self._store.get_by_id(task_id)
        if task is None:
            return None

        if enabled is True:
            task.enable()
        elif enabled is False:
            task.disable()
        if interval_minutes is not None:
            task.update_interval(interval_minutes)
        if provider_id is not None and provider_secret is not None:
            task.update_credentials(provider_id, provider_secret)

        await self._store.update(task)
        self._log_info(f"Updated DDNS task {task.id}", task.to_dict(include_secret=False))
        return task

    async def delete_task(self, task_id: str) -> bool:
        deleted = await self._store.delete(task_id)
        if deleted:
            self._log_info(f"Deleted DDNS task {task_id}", {"task_id": task_id})
        return deleted

    async def get_task(self, task_id: str) -> Optional[DdnsTask]:
        return await self._store.get_by_id(task_id)

    async def list_tasks(self) -> list[DdnsTask]:
        return await self._store.get_all()

    def _log_info(self, message: str, data: dict) -> None:
        if self._logger:
            self._logger.info(COMPONENT, message, data)
