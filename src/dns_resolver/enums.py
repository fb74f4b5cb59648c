"""
Enumeration types for the DNS resolver system.

These enums provide type-safe constants for error codes, error classes
and logging levels throughout the system.
"""

from enum import Enum


class LogLevel(Enum):
    """Logging severity levels."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]


_SEVERITY = {
    LogLevel.DEBUG: 10,
    LogLevel.INFO: 20,
    LogLevel.WARN: 30,
    LogLevel.ERROR: 40,
}


class ValidationErrorCode(Enum):
    """Error codes for value type validation failures."""

    EMPTY_INPUT = "empty_input"
    INVALID_DOMAIN = "invalid_domain"
    IDNA_ERROR = "idna_error"
    INVALID_RECORD_TYPE = "invalid_record_type"
    INVALID_ADDRESS = "invalid_address"
    INVALID_PORT = "invalid_port"
    INVALID_INTERVAL = "invalid_interval"
    MISSING_FIELD = "missing_field"


class ResolveErrorKind(Enum):
    """Classification of a failed DNS resolution."""

    PROTOCOL = "protocol"
    TIMEOUT = "timeout"
    NETWORK = "network"
    UNKNOWN = "unknown"


class ProviderErrorCode(Enum):
    """Closed set of failure codes a DNS hosting provider may report."""

    AUTHENTICATION_FAILED = "authentication_failed"
    DOMAIN_NOT_FOUND = "domain_not_found"
    RECORD_NOT_FOUND = "record_not_found"
    RECORD_EXISTS = "record_exists"
    RATE_LIMITED = "rate_limited"
    INVALID_PARAMETER = "invalid_parameter"
    NETWORK_ERROR = "network_error"
    UNKNOWN_ERROR = "unknown_error"


class TaskOutcome(Enum):
    """What happened to a single DDNS task during a scheduler tick."""

    SKIPPED = "skipped"
    UNCHANGED = "unchanged"
    UPDATED = "updated"
    FAILED = "failed"
