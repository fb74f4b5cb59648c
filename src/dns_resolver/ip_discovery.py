"""
Public-IP discovery chain.

This module asks an ordered table of external "what is my IP" endpoints for
the caller's public address, falling through to the next endpoint whenever
one fails, times out or answers with something that is not an IP address.
Every call is a fresh attempt; nothing is cached and nothing is retried
within a single source.
"""

import asyncio
import ipaddress
import json
from dataclasses import dataclass
from typing import Optional, Sequence, Union

import httpx

from .audit_logger import AuditLogger
from .config import DEFAULT_IP_SOURCES, IpSource


COMPONENT = "PublicIpDiscovery"

# Keys tried after the source-specific field when a body is a JSON object
COMMON_JSON_FIELDS = ("ip", "query", "address")


@dataclass(frozen=True)
class PublicIpFound:
    """The address a source reported and the id of that source."""

    ip: str
    source: str

    @property
    def success(self) -> bool:
        return True

    @property
    def error_message(self) -> Optional[str]:
        return None


@dataclass(frozen=True)
class PublicIpNotFound:
    """Every source was tried and none produced a valid address."""

    error_message: str

    @property
    def success(self) -> bool:
        return False

    @property
    def ip(self) -> Optional[str]:
        return None

    @property
    def source(self) -> Optional[str]:
        return None


PublicIpResult = Union[PublicIpFound, PublicIpNotFound]


def parse_ip_response(body: str, json_field: Optional[str] = None) -> Optional[str]:
    """
    Extract an IP address from a discovery endpoint's response body.

    Handles a JSON object carrying the address under ``json_field`` (or one of
    the common field names) and a plain-text body holding only the address.

    Returns:
        The normalized address, or None if the body holds no valid address
    """
    text = (body or "").strip()
    if not text:
        return None

    candidate: Optional[str] = None
    if text.startswith("{"):
        try:
            data = json.loads(text)
        except ValueError:
            return None
        if not isinstance(data, dict):
            return None
        fields = ((json_field,) if json_field else ()) + COMMON_JSON_FIELDS
        for name in fields:
            value = data.get(name)
            if isinstance(value, str) and value.strip():
                candidate = value.strip()
                break
    else:
        candidate = text.splitlines()[0].strip()

    if not candidate:
        return None
    try:
        return str(ipaddress.ip_address(candidate))
    except ValueError:
        return None


class PublicIpDiscovery:
    """
    Ordered fallback over public-IP sources.

    The source table is injected at construction and never mutated, so the
    order and preferred-source override can be exercised without touching
    process state.
    """

    def __init__(
        self,
        sources: Sequence[IpSource] = DEFAULT_IP_SOURCES,
        timeout: float = 10.0,
        logger: Optional[AuditLogger] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Args:
            sources: Ordered source table
            timeout: Per-source request timeout in seconds
            logger: Optional audit logger
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self._sources: tuple[IpSource, ...] = tuple(sources)
        self._timeout = timeout
        self._logger = logger
        self._transport = transport

    @property
    def sources(self) -> tuple[IpSource, ...]:
        return self._sources

    def ordered_sources(self, preferred_source: Optional[str] = None) -> list[IpSource]:
        """
        Return the attempt order for a call.

        A known preferred source (matched case-insensitively after trimming)
        goes first; the rest keep their table order. An unknown preferred id
        leaves the table order unchanged.
        """
        ordered = list(self._sources)
        if not preferred_source:
            return ordered

        wanted = preferred_source.strip().lower()
        for index, source in enumerate(ordered):
            if source.id.lower() == wanted:
                return [source] + ordered[:index] + ordered[index + 1:]
        return ordered

    async def get_current_public_ip(
        self,
        preferred_source: Optional[str] = None,
        deadline: Optional[float] = None,
    ) -> PublicIpResult:
        """
        Determine the current public IP address.

        Args:
            preferred_source: Optional source id to try first (e.g. "ipify")
            deadline: Optional overall deadline in seconds across all sources

        Returns:
            PublicIpFound on the first source that yields a valid address,
            otherwise PublicIpNotFound. Never raises for network failures.
        """
        if deadline is None:
            return await self._discover(preferred_source)
        try:
            return await asyncio.wait_for(self._discover(preferred_source), timeout=deadline)
        except asyncio.TimeoutError:
            message = f"Unable to obtain public IP from any source (timed out after {deadline}s)"
            self._log_warn(message, {"deadline": deadline})
            return PublicIpNotFound(error_message=message)

    async def _discover(self, preferred_source: Optional[str]) -> PublicIpResult:
        attempts = self.ordered_sources(preferred_source)
        failures: list[str] = []

        async with httpx.AsyncClient(
            timeout=httpx.Timeout(self._timeout),
            follow_redirects=True,
            transport=self._transport,
            headers={"Accept": "application/json, text/plain"},
        ) as client:
            for source in attempts:
                ip = await self._try_source(client, source, failures)
                if ip is not None:
                    self._log_info(
                        f"Public IP {ip} obtained from {source.id}",
                        {"ip": ip, "source": source.id},
                    )
                    return PublicIpFound(ip=ip, source=source.id)

        message = "Unable to obtain public IP from any source"
        if failures:
            message = f"{message} ({'; '.join(failures)})"
        self._log_warn(message, {"sources": [s.id for s in attempts]})
        return PublicIpNotFound(error_message=message)

    async def _try_source(
        self,
        client: httpx.AsyncClient,
        source: IpSource,
        failures: list[str],
    ) -> Optional[str]:
        self._log_debug(f"Querying {source.id}", {"url": source.url})
        try:
            response = await client.get(source.url)
        except httpx.TimeoutException:
            failures.append(f"{source.id}: timed out after {self._timeout}s")
            return None
        except httpx.HTTPError as e:
            failures.append(f"{source.id}: {type(e).__name__}: {e}")
            return None
        except httpx.InvalidURL as e:
            failures.append(f"{source.id}: invalid URL: {e}")
            return None

        if response.status_code != 200:
            failures.append(f"{source.id}: HTTP {response.status_code}")
            return None

        ip = parse_ip_response(response.text, source.json_field)
        if ip is None:
            failures.append(f"{source.id}: no valid address in response")
        return ip

    def _log_debug(self, message: str, data: dict) -> None:
        if self._logger:
            self._logger.debug(COMPONENT, message, data)

    def _log_info(self, message: str, data: dict) -> None:
        if self._logger:
            self._logger.info(COMPONENT, message, data)

    def _log_warn(self, message: str, data: dict) -> None:
        if self._logger:
            self._logger.warn(COMPONENT, message, data)
