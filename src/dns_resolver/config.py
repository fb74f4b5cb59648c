"""
Configuration dataclasses for the DNS resolver system.

This module defines all configuration structures used throughout the system:
resolver timeouts, the public-IP source table, scheduler timing, the ISP
reference table, persistence and logging.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


@dataclass(frozen=True)
class IpSource:
    """One external "what is my IP" endpoint."""

    id: str
    name: str
    url: str
    supports_ipv6: bool = False
    json_field: Optional[str] = None  # None for plain-text bodies


DEFAULT_IP_SOURCES: tuple[IpSource, ...] = (
    IpSource(
        id="ipify",
        name="ipify",
        url="https://api.ipify.org?format=json",
        json_field="ip",
    ),
    IpSource(
        id="ipify64",
        name="ipify (IPv6)",
        url="https://api64.ipify.org?format=json",
        supports_ipv6=True,
        json_field="ip",
    ),
    IpSource(
        id="ip-api",
        name="ip-api.com",
        url="http://ip-api.com/json/?fields=query",
        json_field="query",
    ),
    IpSource(
        id="icanhazip",
        name="icanhazip",
        url="https://icanhazip.com",
        supports_ipv6=True,
    ),
    IpSource(
        id="ifconfig",
        name="ifconfig.me",
        url="https://ifconfig.me/ip",
        supports_ipv6=True,
    ),
)


@dataclass
class ResolverConfig:
    """Per-server DNS query behavior."""

    query_timeout_seconds: float = 5.0
    retries: int = 2


@dataclass
class IpDiscoveryConfig:
    """Public-IP discovery behavior."""

    timeout_seconds: float = 10.0
    preferred_source: Optional[str] = None
    sources: list[IpSource] = field(default_factory=lambda: list(DEFAULT_IP_SOURCES))


@dataclass
class SchedulerConfig:
    """DDNS scheduler timing."""

    tick_interval_seconds: float = 60.0


@dataclass
class IspConfig:
    """Raw ISP entry as it appears in a configuration file."""

    id: str
    name: str
    primary_dns: str
    secondary_dns: Optional[str] = None


DEFAULT_ISPS: list[IspConfig] = [
    IspConfig(id="google", name="Google", primary_dns="8.8.8.8", secondary_dns="8.8.4.4"),
    IspConfig(id="cloudflare", name="Cloudflare", primary_dns="1.1.1.1", secondary_dns="1.0.0.1"),
    IspConfig(id="quad9", name="Quad9", primary_dns="9.9.9.9", secondary_dns="149.112.112.112"),
    IspConfig(id="opendns", name="OpenDNS", primary_dns="208.67.222.222", secondary_dns="208.67.220.220"),
    IspConfig(id="alidns", name="AliDNS", primary_dns="223.5.5.5", secondary_dns="223.6.6.6"),
    IspConfig(id="dnspod", name="DNSPod", primary_dns="119.29.29.29", secondary_dns="182.254.116.116"),
    IspConfig(id="114dns", name="114DNS", primary_dns="114.114.114.114", secondary_dns="114.114.115.115"),
]


@dataclass
class PersistenceConfig:
    """Task store configuration."""

    state_file_path: Path
    hmac_secret: str


@dataclass
class LoggingConfig:
    """Logging and audit configuration."""

    level: str = "info"
    audit_mode: bool = False
    audit_signing_key: Optional[str] = None
    output_format: str = "text"  # 'json', 'text', 'both'


@dataclass
class SystemConfig:
    """Main system configuration combining all sub-configurations."""

    resolver: ResolverConfig
    ip_discovery: IpDiscoveryConfig
    scheduler: SchedulerConfig
    isps: list[IspConfig]
    persistence: PersistenceConfig
    logging: LoggingConfig
