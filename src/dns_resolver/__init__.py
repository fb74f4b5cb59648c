"""
DNS Resolver - multi-server DNS comparison and dynamic DNS reconciliation.

This package resolves domains against many name servers concurrently to
compare their answers, and keeps provider-hosted DNS records pointed at the
machine's current public IP address.
"""

__version__ = "0.1.0"
__author__ = "DNS Resolver Team"

from dns_resolver.exceptions import (
    DnsResolverError,
    ValidationError,
    InvalidDomainError,
    NetworkError,
    ProtocolError,
    PersistenceError,
    TamperingError,
    ConfigError,
)
from dns_resolver.enums import (
    LogLevel,
    ValidationErrorCode,
    ResolveErrorKind,
    ProviderErrorCode,
    TaskOutcome,
)
from dns_resolver.value_objects import (
    DomainName,
    RecordType,
    DnsServer,
    DnsRecord,
)
from dns_resolver.models import (
    IspProvider,
    DnsQuery,
    ResolveResult,
    ResolveSuccess,
    ResolveFailure,
)
from dns_resolver.config import (
    IpSource,
    ResolverConfig,
    IpDiscoveryConfig,
    SchedulerConfig,
    IspConfig,
    PersistenceConfig,
    LoggingConfig,
    SystemConfig,
)
from dns_resolver.audit_logger import (
    AuditLogger,
    LogEntry,
)
from dns_resolver.isp_registry import (
    IspRegistry,
)
from dns_resolver.ip_discovery import (
    PublicIpDiscovery,
    PublicIpFound,
    PublicIpNotFound,
    PublicIpResult,
)
from dns_resolver.resolution import (
    DnsResolutionService,
)
from dns_resolver.providers import (
    DnsProvider,
    DnsProviderConfig,
    DnsProviderFactory,
    DnsRecordInfo,
    ProviderResult,
    ProviderSuccess,
    ProviderFailure,
    CallbackProvider,
    CloudflareProvider,
    create_default_factory,
)
from dns_resolver.ddns_task import (
    DdnsTask,
)
from dns_resolver.task_store import (
    TaskStore,
    InMemoryTaskStore,
    JsonTaskStore,
)
from dns_resolver.scheduler import (
    DdnsScheduler,
    TickSummary,
)
from dns_resolver.handlers import (
    DnsQueryHandler,
    DdnsTaskHandler,
)
from dns_resolver.cli import (
    main as cli_main,
    create_parser,
    create_default_config,
    load_config_from_file,
    save_config_to_file,
)

__all__ = [
    # Exceptions
    "DnsResolverError",
    "ValidationError",
    "InvalidDomainError",
    "NetworkError",
    "ProtocolError",
    "PersistenceError",
    "TamperingError",
    "ConfigError",
    # Enums
    "LogLevel",
    "ValidationErrorCode",
    "ResolveErrorKind",
    "ProviderErrorCode",
    "TaskOutcome",
    # Value types
    "DomainName",
    "RecordType",
    "DnsServer",
    "DnsRecord",
    # Models
    "IspProvider",
    "DnsQuery",
    "ResolveResult",
    "ResolveSuccess",
    "ResolveFailure",
    # Configuration
    "IpSource",
    "ResolverConfig",
    "IpDiscoveryConfig",
    "SchedulerConfig",
    "IspConfig",
    "PersistenceConfig",
    "LoggingConfig",
    "SystemConfig",
    # Audit Logger
    "AuditLogger",
    "LogEntry",
    # ISP registry
    "IspRegistry",
    # Public IP discovery
    "PublicIpDiscovery",
    "PublicIpFound",
    "PublicIpNotFound",
    "PublicIpResult",
    # Resolution
    "DnsResolutionService",
    # Providers
    "DnsProvider",
    "DnsProviderConfig",
    "DnsProviderFactory",
    "DnsRecordInfo",
    "ProviderResult",
    "ProviderSuccess",
    "ProviderFailure",
    "CallbackProvider",
    "CloudflareProvider",
    "create_default_factory",
    # DDNS
    "DdnsTask",
    "TaskStore",
    "InMemoryTaskStore",
    "JsonTaskStore",
    "DdnsScheduler",
    "TickSummary",
    # Handlers
    "DnsQueryHandler",
    "DdnsTaskHandler",
    # CLI
    "cli_main",
    "create_parser",
    "create_default_config",
    "load_config_from_file",
    "save_config_to_file",
]
