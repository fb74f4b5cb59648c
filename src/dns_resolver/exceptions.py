"""
Exception classes for the DNS resolver system.

All exceptions inherit from DnsResolverError and carry a machine-readable
code, a human-readable message and optional structured details. Only
construction-time validation and storage failures are raised; transport and
provider failures travel as tagged result values instead.
"""

from typing import Optional


class DnsResolverError(Exception):
    """Base exception for all DNS resolver errors."""

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[dict] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"

    def to_dict(self) -> dict:
        """Convert exception to dictionary for serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(DnsResolverError):
    """Raised when a value type or entity rejects its input."""

    pass


class InvalidDomainError(ValidationError):
    """Raised when a domain name is empty or malformed."""

    pass


class NetworkError(DnsResolverError):
    """Raised when network operations fail."""

    pass


class ProtocolError(DnsResolverError):
    """Raised when a remote endpoint answers with something unparseable."""

    pass


class PersistenceError(DnsResolverError):
    """Raised when the task store cannot be read or written."""

    pass


class TamperingError(PersistenceError):
    """Raised when HMAC validation fails, indicating data tampering."""

    pass


class ConfigError(DnsResolverError):
    """Raised when a configuration file cannot be loaded."""

    pass
