"""
Generic HTTP callback provider.

Instead of talking to a hosting API, the callback provider calls a
user-supplied URL whenever a record should change. URL, body and header
values are templates; the placeholders below are substituted per call:

    {domain} {subdomain} {fulldomain} {type} {value} {ttl} {action}

Extra parameters read from the provider configuration:
    url      - required request URL template
    method   - HTTP method (default GET)
    body     - optional body template, ignored for GET
    headers  - optional JSON object of header templates
"""

import json
from typing import Optional

import httpx

from ..enums import ProviderErrorCode
from .base import (
    DnsProviderConfig,
    DnsRecordInfo,
    ProviderResult,
    fail,
    full_domain,
    ok,
)


DEFAULT_TTL = 600


def render_template(
    template: str,
    domain: str,
    sub_domain: str,
    record_type: str,
    value: str,
    ttl: int,
    action: str,
) -> str:
    """Substitute the callback placeholders in ``template``."""
    replacements = {
        "{domain}": domain,
        "{subdomain}": sub_domain,
        "{type}": record_type,
        "{value}": value,
        "{ttl}": str(ttl),
        "{action}": action,
        "{fulldomain}": full_domain(sub_domain, domain),
    }
    for placeholder, replacement in replacements.items():
        template = template.replace(placeholder, replacement)
    return template


def split_record_id(record_id: str) -> tuple[str, str]:
    """Split a ``"<sub>_<TYPE>"`` record id; the type defaults to A."""
    sub_domain, _, record_type = record_id.partition("_")
    return sub_domain, record_type or "A"


class CallbackProvider:
    """Fires a templated HTTP request for each record change."""

    name = "callback"
    display_name = "Custom Callback"

    def __init__(
        self,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._timeout = timeout
        self._transport = transport
        self._config: Optional[DnsProviderConfig] = None

    def configure(self, config: DnsProviderConfig) -> None:
        self._config = config

    async def list_domains(self) -> ProviderResult[list[str]]:
        return fail(
            ProviderErrorCode.INVALID_PARAMETER,
            "Callback provider does not support listing domains",
        )

    async def list_records(
        self,
        domain: str,
        sub_domain: Optional[str] = None,
        record_type: Optional[str] = None,
    ) -> ProviderResult[list[DnsRecordInfo]]:
        return fail(
            ProviderErrorCode.INVALID_PARAMETER,
            "Callback provider does not support listing records",
        )

    async def add_record(
        self,
        domain: str,
        sub_domain: str,
        record_type: str,
        value: str,
        ttl: int = DEFAULT_TTL,
    ) -> ProviderResult[DnsRecordInfo]:
        return await self._execute(domain, sub_domain, record_type, value, ttl, "add")

    async def update_record(
        self,
        domain: str,
        record_id: str,
        value: str,
        ttl: Optional[int] = None,
    ) -> ProviderResult[DnsRecordInfo]:
        sub_domain, record_type = split_record_id(record_id)
        return await self._execute(
            domain, sub_domain, record_type, value, ttl if ttl is not None else DEFAULT_TTL, "update"
        )

    async def delete_record(self, domain: str, record_id: str) -> ProviderResult[None]:
        sub_domain, record_type = split_record_id(record_id)
        result = await self._execute(domain, sub_domain, record_type, "", 0, "delete")
        if not result.success:
            return result
        return ok(None)

    async def _execute(
        self,
        domain: str,
        sub_domain: str,
        record_type: str,
        value: str,
        ttl: int,
        action: str,
    ) -> ProviderResult[DnsRecordInfo]:
        config = self._config or DnsProviderConfig(id="", secret="")
        url = config.get_param("url")
        if not url:
            return fail(ProviderErrorCode.INVALID_PARAMETER, "Callback URL is required")

        method = (config.get_param("method") or "GET").upper()

        def render(template: str) -> str:
            return render_template(template, domain, sub_domain, record_type, value, ttl, action)

        try:
            headers = self._build_headers(config.get_param("headers"), render)
        except ValueError as e:
            return fail(ProviderErrorCode.INVALID_PARAMETER, f"Invalid headers parameter: {e}")

        body = config.get_param("body")
        content = render(body).encode("utf-8") if body and method != "GET" else None
        if content is not None:
            headers.setdefault("Content-Type", "application/json")

        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout),
                transport=self._transport,
            ) as client:
                response = await client.request(method, render(url), headers=headers, content=content)
        except httpx.HTTPError as e:
            return fail(ProviderErrorCode.NETWORK_ERROR, str(e) or type(e).__name__)
        except httpx.InvalidURL as e:
            return fail(ProviderErrorCode.INVALID_PARAMETER, f"Invalid callback URL: {e}")

        if not response.is_success:
            return fail(
                ProviderErrorCode.UNKNOWN_ERROR,
                response.text or f"Callback returned HTTP {response.status_code}",
            )

        return ok(DnsRecordInfo(
            record_id=f"{sub_domain}_{record_type}",
            domain=domain,
            sub_domain=sub_domain,
            full_domain=full_domain(sub_domain, domain),
            record_type=record_type,
            value=value,
            ttl=ttl,
        ))

    @staticmethod
    def _build_headers(raw: Optional[str], render) -> dict[str, str]:
        if not raw:
            return {}
        parsed = json.loads(raw)
        if not isinstance(parsed, dict):
            raise ValueError("expected a JSON object")
        return {str(k): render(str(v)) for k, v in parsed.items()}
