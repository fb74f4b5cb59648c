"""
Cloudflare DNS provider (API v4, bearer-token authentication).
"""

from typing import Any, Optional

import httpx

from ..enums import ProviderErrorCode
from .base import (
    APEX,
    DnsProviderConfig,
    DnsRecordInfo,
    ProviderResult,
    fail,
    full_domain,
    ok,
)


API_ENDPOINT = "https://api.cloudflare.com/client/v4"


class CloudflareApiError(Exception):
    """Raised internally when a Cloudflare call fails; converted to ProviderFailure."""

    def __init__(self, code: ProviderErrorCode, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


def _status_error(response: httpx.Response) -> Optional[CloudflareApiError]:
    if response.status_code in (401, 403):
        return CloudflareApiError(ProviderErrorCode.AUTHENTICATION_FAILED, "Authentication failed")
    if response.status_code == 429:
        return CloudflareApiError(ProviderErrorCode.RATE_LIMITED, "Rate limited by Cloudflare")
    return None


def _first_error(payload: Any, default: str) -> str:
    errors = payload.get("errors") if isinstance(payload, dict) else None
    if errors and isinstance(errors[0], dict) and errors[0].get("message"):
        return str(errors[0]["message"])
    return default


class CloudflareProvider:
    """Manages records in Cloudflare zones."""

    name = "cloudflare"
    display_name = "Cloudflare"

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

    def _headers(self) -> dict[str, str]:
        token = self._config.secret if self._config else ""
        return {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=API_ENDPOINT,
            headers=self._headers(),
            timeout=httpx.Timeout(self._timeout),
            transport=self._transport,
        )

    async def _call(
        self,
        client: httpx.AsyncClient,
        method: str,
        path: str,
        **kwargs: Any,
    ) -> Any:
        response = await client.request(method, path, **kwargs)
        error = _status_error(response)
        if error is not None:
            raise error
        try:
            payload = response.json()
        except ValueError:
            raise CloudflareApiError(
                ProviderErrorCode.UNKNOWN_ERROR,
                f"Unexpected response (HTTP {response.status_code})",
            ) from None
        if not isinstance(payload, dict) or not payload.get("success"):
            raise CloudflareApiError(
                ProviderErrorCode.UNKNOWN_ERROR,
                _first_error(payload, f"Request failed (HTTP {response.status_code})"),
            )
        return payload.get("result")

    async def _zone_id(self, client: httpx.AsyncClient, domain: str) -> str:
        zones = await self._call(client, "GET", "/zones", params={"name": domain})
        if not zones:
            raise CloudflareApiError(ProviderErrorCode.DOMAIN_NOT_FOUND, f"Zone not found: {domain}")
        return zones[0]["id"]

    async def _guarded(self, operation) -> ProviderResult[Any]:
        try:
            async with self._client() as client:
                return await operation(client)
        except CloudflareApiError as e:
            return fail(e.code, e.message)
        except httpx.HTTPError as e:
            return fail(ProviderErrorCode.NETWORK_ERROR, str(e) or type(e).__name__)
        except httpx.InvalidURL as e:
            return fail(ProviderErrorCode.INVALID_PARAMETER, f"Invalid request URL: {e}")

    @staticmethod
    def _to_record(raw: dict, domain: str) -> DnsRecordInfo:
        name = raw.get("name", "")
        if name == domain:
            sub_domain = APEX
        elif name.endswith(f".{domain}"):
            sub_domain = name[: -len(domain) - 1]
        else:
            sub_domain = name
        return DnsRecordInfo(
            record_id=raw.get("id", ""),
            domain=domain,
            sub_domain=sub_domain,
            full_domain=name,
            record_type=raw.get("type", ""),
            value=raw.get("content", ""),
            ttl=int(raw.get("ttl", 1)),
            enabled=True,
        )

    async def list_domains(self) -> ProviderResult[list[str]]:
        async def operation(client):
            zones = await self._call(client, "GET", "/zones")
            return ok([zone["name"] for zone in zones or []])

        return await self._guarded(operation)

    async def list_records(
        self,
        domain: str,
        sub_domain: Optional[str] = None,
        record_type: Optional[str] = None,
    ) -> ProviderResult[list[DnsRecordInfo]]:
        async def operation(client):
            zone_id = await self._zone_id(client, domain)
            params = {"type": record_type} if record_type else None
            raw = await self._call(client, "GET", f"/zones/{zone_id}/dns_records", params=params)
            records = [self._to_record(r, domain) for r in raw or []]
            if sub_domain:
                records = [r for r in records if r.sub_domain == sub_domain]
            return ok(records)

        return await self._guarded(operation)

    async def add_record(
        self,
        domain: str,
        sub_domain: str,
        record_type: str,
        value: str,
        ttl: int = 600,
    ) -> ProviderResult[DnsRecordInfo]:
        async def operation(client):
            zone_id = await self._zone_id(client, domain)
            name = full_domain(sub_domain, domain)
            body = {"type": record_type, "name": name, "content": value, "ttl": ttl}
            raw = await self._call(client, "POST", f"/zones/{zone_id}/dns_records", json=body)
            return ok(DnsRecordInfo(
                record_id=raw["id"],
                domain=domain,
                sub_domain=sub_domain,
                full_domain=name,
                record_type=record_type,
                value=value,
                ttl=ttl,
            ))

        return await self._guarded(operation)

    async def update_record(
        self,
        domain: str,
        record_id: str,
        value: str,
        ttl: Optional[int] = None,
    ) -> ProviderResult[DnsRecordInfo]:
        async def operation(client):
            zone_id = await self._zone_id(client, domain)
            raw = await self._call(client, "GET", f"/zones/{zone_id}/dns_records")
            existing = next(
                (self._to_record(r, domain) for r in raw or [] if r.get("id") == record_id),
                None,
            )
            if existing is None:
                return fail(ProviderErrorCode.RECORD_NOT_FOUND, f"Record not found: {record_id}")

            new_ttl = ttl if ttl is not None else existing.ttl
            body = {
                "type": existing.record_type,
                "name": existing.full_domain,
                "content": value,
                "ttl": new_ttl,
            }
            await self._call(client, "PUT", f"/zones/{zone_id}/dns_records/{record_id}", json=body)
            return ok(DnsRecordInfo(
                record_id=existing.record_id,
                domain=domain,
                sub_domain=existing.sub_domain,
                full_domain=existing.full_domain,
                record_type=existing.record_type,
                value=value,
                ttl=new_ttl,
            ))

        return await self._guarded(operation)

    async def delete_record(self, domain: str, record_id: str) -> ProviderResult[None]:
        async def operation(client):
            zone_id = await self._zone_id(client, domain)
            await self._call(client, "DELETE", f"/zones/{zone_id}/dns_records/{record_id}")
            return ok(None)

        return await self._guarded(operation)
