"""
Value types shared by the resolution engine and the DDNS scheduler.

Each type validates and normalizes raw input at construction time and is
immutable afterwards. Invalid input raises ValidationError (or its
InvalidDomainError subclass) carrying a ValidationErrorCode.
"""

import ipaddress
import re
from dataclasses import dataclass
from enum import Enum

import idna

from .enums import ValidationErrorCode
from .exceptions import InvalidDomainError, ValidationError


DOMAIN_PATTERN = re.compile(
    r"^[a-z0-9]([a-z0-9\-]{0,61}[a-z0-9])?"
    r"(\.[a-z0-9]([a-z0-9\-]{0,61}[a-z0-9])?)*"
    r"\.[a-z]{2,}$"
)

DEFAULT_DNS_PORT = 53


@dataclass(frozen=True)
class DomainName:
    """A normalized (trimmed, lower-cased, IDNA-encoded) domain name."""

    value: str

    @classmethod
    def create(cls, raw: str) -> "DomainName":
        """
        Validate and normalize a raw domain string.

        Args:
            raw: Domain as entered by a user (e.g. ``" EXAMPLE.com "``)

        Returns:
            DomainName holding the canonical form

        Raises:
            InvalidDomainError: If the input is empty, cannot be IDNA-encoded
                or does not match the domain syntax
        """
        if raw is None or not str(raw).strip():
            raise InvalidDomainError(
                code=ValidationErrorCode.EMPTY_INPUT.value,
                message="Domain name cannot be empty",
                details={"raw_input": raw},
            )

        normalized = str(raw).strip().lower()

        if any(ord(c) > 127 for c in normalized):
            try:
                normalized = idna.encode(normalized, uts46=True).decode("ascii")
            except idna.IDNAError as e:
                raise InvalidDomainError(
                    code=ValidationErrorCode.IDNA_ERROR.value,
                    message=f"IDNA encoding failed: {e}",
                    details={"raw_input": raw},
                )

        if not DOMAIN_PATTERN.match(normalized):
            raise InvalidDomainError(
                code=ValidationErrorCode.INVALID_DOMAIN.value,
                message=f"Invalid domain name: {raw}",
                details={"raw_input": raw, "normalized": normalized},
            )

        return cls(normalized)

    def __str__(self) -> str:
        return self.value


class RecordType(Enum):
    """The DNS record types the resolver understands."""

    A = "A"
    AAAA = "AAAA"
    CNAME = "CNAME"
    MX = "MX"
    TXT = "TXT"
    NS = "NS"
    SOA = "SOA"

    @classmethod
    def create(cls, raw: str) -> "RecordType":
        """Parse a record type case-insensitively; anything outside the set fails."""
        normalized = str(raw).strip().upper() if raw is not None else ""
        try:
            return cls(normalized)
        except ValueError:
            raise ValidationError(
                code=ValidationErrorCode.INVALID_RECORD_TYPE.value,
                message=f"Unsupported record type: {raw}",
                details={"raw_input": raw, "supported": [t.value for t in cls]},
            ) from None

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class DnsServer:
    """A name server endpoint: IP address plus UDP/TCP port."""

    address: str
    port: int = DEFAULT_DNS_PORT

    @classmethod
    def create(cls, address: str, port: int = DEFAULT_DNS_PORT) -> "DnsServer":
        """
        Validate a name server address and port.

        Raises:
            ValidationError: If the address is not an IP literal or the port
                is outside 1-65535
        """
        candidate = (address or "").strip()
        try:
            ipaddress.ip_address(candidate)
        except ValueError:
            raise ValidationError(
                code=ValidationErrorCode.INVALID_ADDRESS.value,
                message=f"Invalid DNS server address: {address}",
                details={"address": address},
            ) from None

        if isinstance(port, bool) or not isinstance(port, int) or not 1 <= port <= 65535:
            raise ValidationError(
                code=ValidationErrorCode.INVALID_PORT.value,
                message=f"Invalid port: {port}",
                details={"port": port},
            )

        return cls(candidate, port)

    @property
    def cache_key(self) -> str:
        return f"{self.address}:{self.port}"

    def __str__(self) -> str:
        if self.port == DEFAULT_DNS_PORT:
            return self.address
        return f"{self.address}:{self.port}"


@dataclass(frozen=True)
class DnsRecord:
    """A single normalized answer: textual value, TTL and record type."""

    value: str
    ttl: int
    type: RecordType

    def to_dict(self) -> dict:
        return {"value": self.value, "ttl": self.ttl, "type": self.type.value}
