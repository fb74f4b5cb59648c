"""
Command-line interface for the DNS resolver system.

This module provides the main CLI entry point with commands for:
- resolve / compare: Query one server or compare answers across ISPs
- isps / public-ip / providers: Inspect reference data and discovery
- task: DDNS task lifecycle management
- run: The DDNS reconciliation loop
- config: Configuration management
"""

import argparse
import asyncio
import json
import os
import signal
import sys
from dataclasses import replace
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from . import __version__
from .audit_logger import AuditLogger
from .config import (
    DEFAULT_IP_SOURCES,
    DEFAULT_ISPS,
    IpDiscoveryConfig,
    IpSource,
    IspConfig,
    LoggingConfig,
    PersistenceConfig,
    ResolverConfig,
    SchedulerConfig,
    SystemConfig,
)
from .ddns_task import DEFAULT_INTERVAL_MINUTES, DEFAULT_TTL, DdnsTask
from .exceptions import ConfigError, DnsResolverError
from .handlers import DdnsTaskHandler, DnsQueryHandler
from .ip_discovery import PublicIpDiscovery
from .isp_registry import IspRegistry
from .models import DnsQuery
from .providers.factory import create_default_factory
from .resolution import DnsResolutionService
from .scheduler import DdnsScheduler
from .task_store import JsonTaskStore
from .value_objects import DEFAULT_DNS_PORT


DEFAULT_HOME = Path.home() / ".dns_resolver"
DEFAULT_CONFIG_PATH = DEFAULT_HOME / "config.json"
DEFAULT_STATE_FILE = DEFAULT_HOME / "tasks.json"
DEFAULT_HMAC_SECRET = "default-secret-change-me"

ENV_STATE_FILE = "DNS_RESOLVER_STATE_FILE"
ENV_HMAC_SECRET = "DNS_RESOLVER_HMAC_SECRET"
ENV_LOG_LEVEL = "DNS_RESOLVER_LOG_LEVEL"


def create_default_config(
    state_file: Optional[Path] = None,
    hmac_secret: str = DEFAULT_HMAC_SECRET,
) -> SystemConfig:
    """
    Create a default system configuration.

    Args:
        state_file: Path to the task file
        hmac_secret: Secret for HMAC protection of the task file

    Returns:
        SystemConfig with default settings
    """
    return SystemConfig(
        resolver=ResolverConfig(),
        ip_discovery=IpDiscoveryConfig(),
        scheduler=SchedulerConfig(),
        isps=list(DEFAULT_ISPS),
        persistence=PersistenceConfig(
            state_file_path=state_file or DEFAULT_STATE_FILE,
            hmac_secret=hmac_secret,
        ),
        logging=LoggingConfig(level="info", output_format="text"),
    )


def load_config_from_file(config_path: Path) -> Optional[SystemConfig]:
    """
    Load configuration from a JSON file.

    Missing sections fall back to their defaults.

    Returns:
        SystemConfig if successful, None if the file does not exist

    Raises:
        ConfigError: If the file exists but is not a valid configuration
    """
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        return None
    except (json.JSONDecodeError, OSError) as e:
        raise ConfigError(
            code="config_unreadable",
            message=f"Could not read config {config_path}: {e}",
            details={"path": str(config_path)},
        ) from e

    try:
        resolver_data = data.get("resolver", {})
        resolver = ResolverConfig(
            query_timeout_seconds=float(resolver_data.get("query_timeout_seconds", 5.0)),
            retries=int(resolver_data.get("retries", 2)),
        )

        discovery_data = data.get("ip_discovery", {})
        sources = [
            IpSource(
                id=s["id"],
                name=s.get("name", s["id"]),
                url=s["url"],
                supports_ipv6=s.get("supports_ipv6", False),
                json_field=s.get("json_field"),
            )
            for s in discovery_data.get("sources", [])
        ] or list(DEFAULT_IP_SOURCES)
        ip_discovery = IpDiscoveryConfig(
            timeout_seconds=float(discovery_data.get("timeout_seconds", 10.0)),
            preferred_source=discovery_data.get("preferred_source"),
            sources=sources,
        )

        scheduler_data = data.get("scheduler", {})
        scheduler = SchedulerConfig(
            tick_interval_seconds=float(scheduler_data.get("tick_interval_seconds", 60.0)),
        )

        isps = [
            IspConfig(
                id=i["id"],
                name=i["name"],
                primary_dns=i["primary_dns"],
                secondary_dns=i.get("secondary_dns"),
            )
            for i in data.get("isps", [])
        ] or list(DEFAULT_ISPS)

        persistence_data = data.get("persistence", {})
        state_file_path = persistence_data.get("state_file_path")
        persistence = PersistenceConfig(
            state_file_path=Path(state_file_path) if state_file_path else DEFAULT_STATE_FILE,
            hmac_secret=persistence_data.get("hmac_secret", DEFAULT_HMAC_SECRET),
        )

        logging_data = data.get("logging", {})
        logging_config = LoggingConfig(
            level=logging_data.get("level", "info"),
            audit_mode=logging_data.get("audit_mode", False),
            audit_signing_key=logging_data.get("audit_signing_key"),
            output_format=logging_data.get("output_format", "text"),
        )
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise ConfigError(
            code="config_invalid",
            message=f"Invalid config {config_path}: {e}",
            details={"path": str(config_path)},
        ) from e

    return SystemConfig(
        resolver=resolver,
        ip_discovery=ip_discovery,
        scheduler=scheduler,
        isps=isps,
        persistence=persistence,
        logging=logging_config,
    )


def save_config_to_file(config: SystemConfig, config_path: Path) -> bool:
    """
    Save configuration to a JSON file.

    Returns:
        True if successful, False otherwise
    """
    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "resolver": {
                "query_timeout_seconds": config.resolver.query_timeout_seconds,
                "retries": config.resolver.retries,
            },
            "ip_discovery": {
                "timeout_seconds": config.ip_discovery.timeout_seconds,
                "preferred_source": config.ip_discovery.preferred_source,
                "sources": [
                    {
                        "id": s.id,
                        "name": s.name,
                        "url": s.url,
                        "supports_ipv6": s.supports_ipv6,
                        "json_field": s.json_field,
                    }
                    for s in config.ip_discovery.sources
                ],
            },
            "scheduler": {
                "tick_interval_seconds": config.scheduler.tick_interval_seconds,
            },
            "isps": [
                {
                    "id": i.id,
                    "name": i.name,
                    "primary_dns": i.primary_dns,
                    "secondary_dns": i.secondary_dns,
                }
                for i in config.isps
            ],
            "persistence": {
                "state_file_path": str(config.persistence.state_file_path),
                "hmac_secret": config.persistence.hmac_secret,
            },
            "logging": {
                "level": config.logging.level,
                "audit_mode": config.logging.audit_mode,
                "audit_signing_key": config.logging.audit_signing_key,
                "output_format": config.logging.output_format,
            },
        }

        with open(config_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)

        return True

    except (OSError, TypeError) as e:
        print(f"Error saving config: {e}", file=sys.stderr)
        return False


def apply_env_overrides(config: SystemConfig) -> SystemConfig:
    """Apply DNS_RESOLVER_* variables from the environment (and a .env file)."""
    load_dotenv()

    persistence = config.persistence
    state_file = os.environ.get(ENV_STATE_FILE)
    if state_file:
        persistence = replace(persistence, state_file_path=Path(state_file))
    secret = os.environ.get(ENV_HMAC_SECRET)
    if secret:
        persistence = replace(persistence, hmac_secret=secret)

    logging_config = config.logging
    level = os.environ.get(ENV_LOG_LEVEL)
    if level:
        logging_config = replace(logging_config, level=level.strip().lower())

    return replace(config, persistence=persistence, logging=logging_config)


def resolve_config(args: argparse.Namespace) -> SystemConfig:
    """
    Configuration for a command: --config file, else the default file if it
    exists, else built-in defaults; environment overrides apply last.
    """
    path = Path(args.config) if getattr(args, "config", None) else DEFAULT_CONFIG_PATH
    config = load_config_from_file(path)
    if config is None:
        if getattr(args, "config", None):
            raise ConfigError(
                code="config_missing",
                message=f"Could not load config from {path}",
                details={"path": str(path)},
            )
        config = create_default_config()
    return apply_env_overrides(config)


def create_logger(config: SystemConfig) -> AuditLogger:
    logger = AuditLogger.from_level_name(
        config.logging.level,
        output_format=config.logging.output_format,
    )
    if config.logging.audit_mode and config.logging.audit_signing_key:
        logger.enable_audit_mode(config.logging.audit_signing_key)
    return logger


def create_task_store(config: SystemConfig) -> JsonTaskStore:
    return JsonTaskStore(
        file_path=config.persistence.state_file_path,
        hmac_secret=config.persistence.hmac_secret,
    )


def create_ip_discovery(config: SystemConfig, logger: Optional[AuditLogger]) -> PublicIpDiscovery:
    return PublicIpDiscovery(
        sources=config.ip_discovery.sources,
        timeout=config.ip_discovery.timeout_seconds,
        logger=logger,
    )


def format_query(query: DnsQuery) -> str:
    result = query.result
    header = (
        f"{query.domain} {query.record_type} @ {query.dns_server} "
        f"({query.isp_name})"
    )
    if result is None:
        return f"{header}: pending"
    if not result.success:
        return f"{header}: FAILED - {result.error_message}"

    lines = [f"{header}: {len(result.records)} record(s) in {result.query_time_ms}ms"]
    for record in result.records:
        lines.append(f"  {record.value}  TTL={record.ttl}")
    return "\n".join(lines)


def format_task(task: DdnsTask) -> str:
    status = "enabled" if task.enabled else "disabled"
    lines = [
        f"{task.id}  {task.name}  [{status}]",
        f"  Provider: {task.provider_name}",
        f"  Record: {task.domain} / {task.record_id}"
        + (f" (sub-domain {task.sub_domain})" if task.sub_domain else ""),
        f"  TTL: {task.ttl}  Interval: {task.interval_minutes} min",
        f"  Last IP: {task.last_known_ip or '-'}",
        f"  Last check: {task.last_check_time.isoformat() if task.last_check_time else '-'}",
        f"  Last update: {task.last_update_time.isoformat() if task.last_update_time else '-'}",
    ]
    if task.last_error:
        lines.append(f"  Last error: {task.last_error}")
    return "\n".join(lines)


def parse_params(values: Optional[list[str]]) -> dict[str, str]:
    """Parse repeated KEY=VALUE options into a dict."""
    params: dict[str, str] = {}
    for item in values or []:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise ConfigError(
                code="invalid_param",
                message=f"Expected KEY=VALUE, got: {item}",
            )
        params[key.strip()] = value
    return params


def cmd_resolve(args: argparse.Namespace) -> int:
    """Handle the 'resolve' command."""
    config = resolve_config(args)
    logger = create_logger(config)
    handler = DnsQueryHandler(
        DnsResolutionService(config.resolver, logger=logger),
        IspRegistry.from_config(config.isps),
        logger=logger,
    )
    query = asyncio.run(handler.resolve(args.domain, args.type, args.server, args.port))

    if args.json:
        print(json.dumps(query.to_dict(), indent=2, ensure_ascii=False))
    else:
        print(format_query(query))
    return 0 if query.result and query.result.success else 1


def cmd_compare(args: argparse.Namespace) -> int:
    """Handle the 'compare' command."""
    config = resolve_config(args)
    logger = create_logger(config)
    handler = DnsQueryHandler(
        DnsResolutionService(config.resolver, logger=logger),
        IspRegistry.from_config(config.isps),
        logger=logger,
    )
    queries = asyncio.run(handler.compare(args.domain, args.type, args.isp))

    if args.json:
        print(json.dumps([q.to_dict() for q in queries], indent=2, ensure_ascii=False))
    else:
        for query in queries:
            print(format_query(query))
    return 0 if queries else 1


def cmd_isps(args: argparse.Namespace) -> int:
    """Handle the 'isps' command."""
    config = resolve_config(args)
    for provider in IspRegistry.from_config(config.isps).get_all():
        secondary = f", {provider.secondary_dns}" if provider.secondary_dns else ""
        print(f"{provider.id:<12} {provider.name:<16} {provider.primary_dns}{secondary}")
    return 0


def cmd_public_ip(args: argparse.Namespace) -> int:
    """Handle the 'public-ip' command."""
    config = resolve_config(args)
    discovery = create_ip_discovery(config, create_logger(config))
    result = asyncio.run(discovery.get_current_public_ip(
        args.source or config.ip_discovery.preferred_source
    ))
    if not result.success:
        print(f"Error: {result.error_message}", file=sys.stderr)
        return 1
    print(f"{result.ip} (via {result.source})")
    return 0


def cmd_providers(args: argparse.Namespace) -> int:
    """Handle the 'providers' command."""
    for name, display_name in create_default_factory().provider_infos():
        print(f"{name:<12} {display_name}")
    return 0


async def _task_action(args: argparse.Namespace, handler: DdnsTaskHandler) -> int:
    if args.action == "add":
        task = await handler.create_task(
            name=args.name,
            provider_name=args.provider,
            provider_id=args.provider_id or "",
            provider_secret=args.provider_secret or "",
            domain=args.domain,
            record_id=args.record_id,
            sub_domain=args.sub_domain,
            ttl=args.ttl,
            interval_minutes=args.interval,
            extra_params=parse_params(args.param),
        )
        print(f"Task created: {task.id}")
        return 0

    if args.action == "list":
        tasks = await handler.list_tasks()
        if not tasks:
            print("No DDNS tasks configured.")
        for task in tasks:
            print(format_task(task))
        return 0

    if args.action == "show":
        task = await handler.get_task(args.task_id)
        if task is None:
            print(f"Task not found: {args.task_id}", file=sys.stderr)
            return 1
        print(format_task(task))
        return 0

    if args.action == "delete":
        if not await handler.delete_task(args.task_id):
            print(f"Task not found: {args.task_id}", file=sys.stderr)
            return 1
        print(f"Task deleted: {args.task_id}")
        return 0

    if args.action == "enable":
        task = await handler.update_task(args.task_id, enabled=True)
    elif args.action == "disable":
        task = await handler.update_task(args.task_id, enabled=False)
    elif args.action == "interval":
        task = await handler.update_task(args.task_id, interval_minutes=args.minutes)
    elif args.action == "credentials":
        task = await handler.update_task(
            args.task_id,
            provider_id=args.provider_id,
            provider_secret=args.provider_secret,
        )
    else:
        return 1

    if task is None:
        print(f"Task not found: {args.task_id}", file=sys.stderr)
        return 1
    print(format_task(task))
    return 0


def cmd_task(args: argparse.Namespace) -> int:
    """Handle the 'task' command."""
    config = resolve_config(args)
    logger = create_logger(config)
    handler = DdnsTaskHandler(create_task_store(config), logger=logger)
    return asyncio.run(_task_action(args, handler))


async def run_scheduler(config: SystemConfig, logger: AuditLogger) -> None:
    """Run the DDNS loop until SIGINT/SIGTERM."""
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except (NotImplementedError, RuntimeError):
            # Not supported on this platform; KeyboardInterrupt still stops the loop
            pass

    scheduler = DdnsScheduler(
        store=create_task_store(config),
        ip_discovery=create_ip_discovery(config, logger),
        provider_factory=create_default_factory(),
        config=config.scheduler,
        logger=logger,
        preferred_source=config.ip_discovery.preferred_source,
    )
    await scheduler.run(stop_event)


def cmd_run(args: argparse.Namespace) -> int:
    """Handle the 'run' command."""
    config = resolve_config(args)
    if args.interval is not None:
        config = replace(config, scheduler=SchedulerConfig(tick_interval_seconds=args.interval))
    logger = create_logger(config)
    try:
        asyncio.run(run_scheduler(config, logger))
    except KeyboardInterrupt:
        pass
    return 0


def cmd_config(args: argparse.Namespace) -> int:
    """Handle the 'config' command."""
    config_path = Path(args.config) if args.config else DEFAULT_CONFIG_PATH

    if args.action == "show":
        config = load_config_from_file(config_path)
        if config is None:
            print(f"No configuration found at: {config_path}")
            print("Use 'config init' to create a default configuration.")
            return 1

        print(f"Configuration from: {config_path}")
        print(f"  Query timeout: {config.resolver.query_timeout_seconds}s "
              f"(retries: {config.resolver.retries})")
        print(f"  IP sources: {', '.join(s.id for s in config.ip_discovery.sources)}")
        print(f"  Preferred IP source: {config.ip_discovery.preferred_source or '-'}")
        print(f"  Tick interval: {config.scheduler.tick_interval_seconds}s")
        print(f"  ISPs: {', '.join(i.id for i in config.isps)}")
        print(f"  Task file: {config.persistence.state_file_path}")
        print(f"  Log level: {config.logging.level}")
        print(f"  Audit mode: {config.logging.audit_mode}")
        return 0

    if args.action == "init":
        if config_path.exists() and not args.force:
            print(f"Configuration already exists at: {config_path}")
            print("Use --force to overwrite.")
            return 1

        if save_config_to_file(create_default_config(), config_path):
            print(f"Configuration created at: {config_path}")
            return 0
        return 1

    return 1


def _add_config_option(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config", "-c",
        help=f"Path to configuration file (default: {DEFAULT_CONFIG_PATH})",
    )


def _add_task_id(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("task_id", help="Task ID")


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="dns-resolver",
        description="Multi-server DNS comparison and dynamic DNS updater",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # 'resolve' command
    resolve_parser = subparsers.add_parser("resolve", help="Resolve a domain against one server")
    resolve_parser.add_argument("domain", help="Domain to resolve (e.g., example.com)")
    resolve_parser.add_argument("--type", "-t", default="A", help="Record type (default: A)")
    resolve_parser.add_argument("--server", "-s", default="8.8.8.8", help="DNS server IP (default: 8.8.8.8)")
    resolve_parser.add_argument("--port", "-p", type=int, default=DEFAULT_DNS_PORT, help="DNS server port")
    resolve_parser.add_argument("--json", action="store_true", help="Print the result as JSON")
    _add_config_option(resolve_parser)
    resolve_parser.set_defaults(func=cmd_resolve)

    # 'compare' command
    compare_parser = subparsers.add_parser("compare", help="Compare answers across ISP resolvers")
    compare_parser.add_argument("domain", help="Domain to resolve")
    compare_parser.add_argument("--type", "-t", default="A", help="Record type (default: A)")
    compare_parser.add_argument(
        "--isp",
        action="append",
        help="ISP id to include (repeatable; default: all)",
    )
    compare_parser.add_argument("--json", action="store_true", help="Print the results as JSON")
    _add_config_option(compare_parser)
    compare_parser.set_defaults(func=cmd_compare)

    # 'isps' command
    isps_parser = subparsers.add_parser("isps", help="List known ISP resolvers")
    _add_config_option(isps_parser)
    isps_parser.set_defaults(func=cmd_isps)

    # 'public-ip' command
    public_ip_parser = subparsers.add_parser("public-ip", help="Show the current public IP")
    public_ip_parser.add_argument("--source", help="IP source to try first (e.g., ipify)")
    _add_config_option(public_ip_parser)
    public_ip_parser.set_defaults(func=cmd_public_ip)

    # 'providers' command
    providers_parser = subparsers.add_parser("providers", help="List DNS providers")
    _add_config_option(providers_parser)
    providers_parser.set_defaults(func=cmd_providers)

    # 'task' command
    task_parser = subparsers.add_parser("task", help="Manage DDNS tasks")
    _add_config_option(task_parser)
    task_actions = task_parser.add_subparsers(dest="action", required=True)

    add_parser = task_actions.add_parser("add", help="Create a DDNS task")
    add_parser.add_argument("--name", required=True, help="Task name")
    add_parser.add_argument("--provider", required=True, help="Provider name (e.g., cloudflare)")
    add_parser.add_argument("--provider-id", help="Provider credential ID")
    add_parser.add_argument("--provider-secret", help="Provider credential secret")
    add_parser.add_argument("--domain", required=True, help="Zone (e.g., example.com)")
    add_parser.add_argument("--record-id", required=True, help="Provider record ID")
    add_parser.add_argument("--sub-domain", help="Sub-domain (e.g., home)")
    add_parser.add_argument("--ttl", type=int, default=DEFAULT_TTL, help="Record TTL")
    add_parser.add_argument(
        "--interval", type=int, default=DEFAULT_INTERVAL_MINUTES,
        help="Check interval in minutes",
    )
    add_parser.add_argument(
        "--param", action="append",
        help="Provider parameter KEY=VALUE (repeatable)",
    )

    task_actions.add_parser("list", help="List DDNS tasks")
    for action in ("show", "enable", "disable", "delete"):
        _add_task_id(task_actions.add_parser(action, help=f"{action.capitalize()} a DDNS task"))

    interval_parser = task_actions.add_parser("interval", help="Change the check interval")
    _add_task_id(interval_parser)
    interval_parser.add_argument("minutes", type=int, help="Interval in minutes (>= 1)")

    credentials_parser = task_actions.add_parser("credentials", help="Replace provider credentials")
    _add_task_id(credentials_parser)
    credentials_parser.add_argument("--provider-id", required=True, help="Provider credential ID")
    credentials_parser.add_argument("--provider-secret", required=True, help="Provider credential secret")
    task_parser.set_defaults(func=cmd_task)

    # 'run' command
    run_parser = subparsers.add_parser("run", help="Run the DDNS scheduler until interrupted")
    run_parser.add_argument("--interval", type=float, help="Tick interval in seconds")
    _add_config_option(run_parser)
    run_parser.set_defaults(func=cmd_run)

    # 'config' command
    config_parser = subparsers.add_parser("config", help="Configuration management")
    config_parser.add_argument("action", choices=["show", "init"], help="Configuration action")
    config_parser.add_argument(
        "--force", "-f",
        action="store_true",
        help="Force overwrite existing configuration",
    )
    _add_config_option(config_parser)
    config_parser.set_defaults(func=cmd_config)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    try:
        return args.func(args)
    except DnsResolverError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
