"""
DDNS task aggregate.

A DdnsTask binds one provider-hosted record to the machine's public IP. Its
reconciliation state only changes through the named operations below, each
of which takes an optional ``now`` so callers (and tests) control the clock.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from .enums import ValidationErrorCode
from .exceptions import ValidationError


DEFAULT_TTL = 600
DEFAULT_INTERVAL_MINUTES = 5
MIN_INTERVAL_MINUTES = 1


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _format_time(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _require(value: Optional[str], field_name: str, label: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(
            code=ValidationErrorCode.MISSING_FIELD.value,
            message=f"{label} cannot be empty",
            details={"field": field_name},
        )
    return str(value).strip()


def _check_interval(interval_minutes: Any) -> int:
    if (
        isinstance(interval_minutes, bool)
        or not isinstance(interval_minutes, int)
        or interval_minutes < MIN_INTERVAL_MINUTES
    ):
        raise ValidationError(
            code=ValidationErrorCode.INVALID_INTERVAL.value,
            message=f"Interval must be at least {MIN_INTERVAL_MINUTES} minute",
            details={"interval_minutes": interval_minutes},
        )
    return interval_minutes


class DdnsTask:
    """
    The unit of DDNS reconciliation.

    Invariants:
    - interval_minutes is always >= 1
    - last_check_time advances on every check attempt, whatever the outcome
    - last_known_ip and last_update_time change only on a successful update,
      which also clears last_error
    """

    def __init__(
        self,
        id: str,
        name: str,
        provider_name: str,
        provider_id: str,
        provider_secret: str,
        domain: str,
        record_id: str,
        sub_domain: Optional[str],
        ttl: int,
        interval_minutes: int,
        enabled: bool,
        extra_params: Optional[dict[str, str]],
        created_at: datetime,
        updated_at: datetime,
        last_known_ip: Optional[str] = None,
        last_check_time: Optional[datetime] = None,
        last_update_time: Optional[datetime] = None,
        last_error: Optional[str] = None,
    ) -> None:
        self._id = id
        self._name = name
        self._provider_name = provider_name
        self._provider_id = provider_id
        self._provider_secret = provider_secret
        self._domain = domain
        self._record_id = record_id
        self._sub_domain = sub_domain
        self._ttl = ttl
        self._interval_minutes = _check_interval(interval_minutes)
        self._enabled = enabled
        self._extra_params = dict(extra_params or {})
        self._created_at = created_at
        self._updated_at = updated_at
        self._last_known_ip = last_known_ip
        self._last_check_time = last_check_time
        self._last_update_time = last_update_time
        self._last_error = last_error

    @classmethod
    def create(
        cls,
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
        now: Optional[datetime] = None,
    ) -> "DdnsTask":
        """
        Create a new, enabled task.

        Raises:
            ValidationError: If name, provider name, domain or record id is
                empty, or the interval is below one minute
        """
        created = now or utcnow()
        return cls(
            id=str(uuid.uuid4()),
            name=_require(name, "name", "Task name"),
            provider_name=_require(provider_name, "provider_name", "Provider name"),
            provider_id=provider_id or "",
            provider_secret=provider_secret or "",
            domain=_require(domain, "domain", "Domain"),
            record_id=_require(record_id, "record_id", "Record ID"),
            sub_domain=sub_domain or None,
            ttl=ttl,
            interval_minutes=_check_interval(interval_minutes),
            enabled=True,
            extra_params=extra_params,
            created_at=created,
            updated_at=created,
        )

    # Read-only view

    @property
    def id(self) -> str:
        return self._id

    @property
    def name(self) -> str:
        return self._name

    @property
    def provider_name(self) -> str:
        return self._provider_name

    @property
    def provider_id(self) -> str:
        return self._provider_id

    @property
    def provider_secret(self) -> str:
        return self._provider_secret

    @property
    def domain(self) -> str:
        return self._domain

    @property
    def record_id(self) -> str:
        return self._record_id

    @property
    def sub_domain(self) -> Optional[str]:
        return self._sub_domain

    @property
    def ttl(self) -> int:
        return self._ttl

    @property
    def interval_minutes(self) -> int:
        return self._interval_minutes

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def extra_params(self) -> dict[str, str]:
        return dict(self._extra_params)

    @property
    def last_known_ip(self) -> Optional[str]:
        return self._last_known_ip

    @property
    def last_check_time(self) -> Optional[datetime]:
        return self._last_check_time

    @property
    def last_update_time(self) -> Optional[datetime]:
        return self._last_update_time

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    @property
    def created_at(self) -> datetime:
        return self._created_at

    @property
    def updated_at(self) -> datetime:
        return self._updated_at

    # Named operations

    def enable(self, now: Optional[datetime] = None) -> None:
        self._enabled = True
        self._touch(now)

    def disable(self, now: Optional[datetime] = None) -> None:
        self._enabled = False
        self._touch(now)

    def update_interval(self, interval_minutes: int, now: Optional[datetime] = None) -> None:
        self._interval_minutes = _check_interval(interval_minutes)
        self._touch(now)

    def update_credentials(
        self, provider_id: str, provider_secret: str, now: Optional[datetime] = None
    ) -> None:
        self._provider_id = provider_id
        self._provider_secret = provider_secret
        self._touch(now)

    def record_check(self, now: Optional[datetime] = None) -> None:
        now = now or utcnow()
        self._last_check_time = now
        self._updated_at = now

    def record_error(self, error: str, now: Optional[datetime] = None) -> None:
        now = now or utcnow()
        self._last_error = error
        self._last_check_time = now
        self._updated_at = now

    def update_ip(self, new_ip: str, now: Optional[datetime] = None) -> None:
        now = now or utcnow()
        self._last_known_ip = new_ip
        self._last_update_time = now
        self._last_error = None
        self._updated_at = now

    def is_due(self, now: Optional[datetime] = None) -> bool:
        """Enabled and either never checked or at least one interval since the last check."""
        if not self._enabled:
            return False
        if self._last_check_time is None:
            return True
        now = now or utcnow()
        return now >= self._last_check_time + timedelta(minutes=self._interval_minutes)

    def _touch(self, now: Optional[datetime]) -> None:
        self._updated_at = now or utcnow()

    # Serialization

    def to_dict(self, include_secret: bool = True) -> dict[str, Any]:
        return {
            "id": self._id,
            "name": self._name,
            "provider_name": self._provider_name,
            "provider_id": self._provider_id,
            "provider_secret": self._provider_secret if include_secret else "***",
            "domain": self._domain,
            "record_id": self._record_id,
            "sub_domain": self._sub_domain,
            "ttl": self._ttl,
            "interval_minutes": self._interval_minutes,
            "enabled": self._enabled,
            "extra_params": dict(self._extra_params),
            "last_known_ip": self._last_known_ip,
            "last_check_time": _format_time(self._last_check_time),
            "last_update_time": _format_time(self._last_update_time),
            "last_error": self._last_error,
            "created_at": _format_time(self._created_at),
            "updated_at": _format_time(self._updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DdnsTask":
        """
        Rebuild a task from its persisted form.

        Raises:
            ValidationError: If a required field is missing or invalid
        """
        try:
            return cls(
                id=_require(data.get("id"), "id", "Task ID"),
                name=_require(data.get("name"), "name", "Task name"),
                provider_name=_require(data.get("provider_name"), "provider_name", "Provider name"),
                provider_id=data.get("provider_id") or "",
                provider_secret=data.get("provider_secret") or "",
                domain=_require(data.get("domain"), "domain", "Domain"),
                record_id=_require(data.get("record_id"), "record_id", "Record ID"),
                sub_domain=data.get("sub_domain") or None,
                ttl=int(data.get("ttl", DEFAULT_TTL)),
                interval_minutes=data.get("interval_minutes", DEFAULT_INTERVAL_MINUTES),
                enabled=bool(data.get("enabled", True)),
                extra_params=data.get("extra_params") or {},
                created_at=_parse_time(data.get("created_at")) or utcnow(),
                updated_at=_parse_time(data.get("updated_at")) or utcnow(),
                last_known_ip=data.get("last_known_ip"),
                last_check_time=_parse_time(data.get("last_check_time")),
                last_update_time=_parse_time(data.get("last_update_time")),
                last_error=data.get("last_error"),
            )
        except (TypeError, ValueError) as e:
            raise ValidationError(
                code=ValidationErrorCode.MISSING_FIELD.value,
                message=f"Invalid task record: {e}",
                details={"id": data.get("id") if isinstance(data, dict) else None},
            ) from e

    def __repr__(self) -> str:
        return (
            f"DdnsTask(id={self._id!r}, name={self._name!r}, "
            f"provider={self._provider_name!r}, enabled={self._enabled})"
        )
