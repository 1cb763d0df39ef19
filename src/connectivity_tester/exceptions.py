"""Custom exceptions for the connectivity tester.

Provides structured error handling with:
- Error codes naming the step that failed
- An error kind mapped from pymongo exceptions where one is known
- Detailed context for debugging
"""

import ssl
from enum import Enum
from typing import Any, Dict, Optional

from pymongo.errors import (
    AutoReconnect,
    ConfigurationError,
    ConnectionFailure,
    InvalidURI,
    NetworkTimeout,
    OperationFailure,
    ServerSelectionTimeoutError,
)


# =============================================================================
# ERROR KINDS
# =============================================================================

class ErrorKind(str, Enum):
    """Failure categories that carry troubleshooting guidance."""

    AUTHENTICATION = "authentication"
    TIMEOUT = "timeout"
    DNS = "dns"
    TLS = "tls"
    DATABASE = "database"
    CONNECTION_REFUSED = "connection_refused"
    UNKNOWN = "unknown"


# Server error codes returned in OperationFailure
_AUTHENTICATION_FAILED_CODE = 18
_UNAUTHORIZED_CODE = 13
_INVALID_NAMESPACE_CODE = 73


def kind_from_exception(exc: BaseException) -> ErrorKind:
    """Infer the error kind from a pymongo (or lower level) exception."""
    if isinstance(exc, OperationFailure):
        if exc.code in (_AUTHENTICATION_FAILED_CODE, _UNAUTHORIZED_CODE):
            return ErrorKind.AUTHENTICATION
        if exc.code == _INVALID_NAMESPACE_CODE:
            return ErrorKind.DATABASE
        return ErrorKind.UNKNOWN
    if isinstance(exc, (ServerSelectionTimeoutError, NetworkTimeout)):
        return ErrorKind.TIMEOUT
    if isinstance(exc, ssl.SSLError):
        return ErrorKind.TLS
    if isinstance(exc, ConfigurationError) and "dns" in str(exc).lower():
        return ErrorKind.DNS
    if isinstance(exc, ConnectionRefusedError):
        return ErrorKind.CONNECTION_REFUSED
    if isinstance(exc, (AutoReconnect, ConnectionFailure)):
        # Only refusals; closed or reset sockets carry no specific guidance
        if isinstance(exc.__cause__, ConnectionRefusedError) or "refused" in str(exc).lower():
            return ErrorKind.CONNECTION_REFUSED
    return ErrorKind.UNKNOWN


# =============================================================================
# EXCEPTION CLASSES
# =============================================================================

class ConnectivityError(Exception):
    """Base exception for every step of a connectivity test.

    Attributes:
        message: Human-readable error description, printed verbatim
        code: Error code naming the failed step (e.g., "PARSE_ERROR")
        kind: ErrorKind used for direct guidance lookup
        details: Additional error context
    """

    default_code = "CONNECTIVITY_ERROR"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        kind: ErrorKind = ErrorKind.UNKNOWN,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code or self.default_code
        self.kind = kind
        self.details = details or {}
        super().__init__(self.message)

    @classmethod
    def from_exception(
        cls,
        exc: BaseException,
        message: Optional[str] = None,
        kind: Optional[ErrorKind] = None,
    ) -> "ConnectivityError":
        """Wrap a library exception, keeping its text and inferred kind."""
        return cls(
            message=message or str(exc),
            kind=kind or kind_from_exception(exc),
            details={"error_type": type(exc).__name__},
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to a structured error record."""
        return {
            "success": False,
            "error": {
                "code": self.code,
                "kind": self.kind.value,
                "message": self.message,
                "details": self.details,
            },
        }

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return f"{type(self).__name__}(message={self.message!r}, code={self.code!r}, kind={self.kind.value!r})"


class ParseError(ConnectivityError):
    """Malformed connection string."""

    default_code = "PARSE_ERROR"


class SetupError(ConnectivityError):
    """The execution context could not be created."""

    default_code = "SETUP_ERROR"


class ResolveError(ConnectivityError):
    """Parsed options could not be turned into client options."""

    default_code = "RESOLVE_ERROR"

    @classmethod
    def from_exception(
        cls,
        exc: BaseException,
        message: Optional[str] = None,
        kind: Optional[ErrorKind] = None,
    ) -> "ResolveError":
        error = super().from_exception(exc, message, kind)
        if isinstance(exc, InvalidURI):
            error.details["invalid_uri"] = True
        if isinstance(exc, OSError) and exc.filename is not None:
            error.details["path"] = exc.filename
        return error


class ConnectError(ConnectivityError):
    """Network, authentication, TLS or server-side failure while connecting."""

    default_code = "CONNECT_ERROR"


__all__ = [
    "ConnectError",
    "ConnectivityError",
    "ErrorKind",
    "ParseError",
    "ResolveError",
    "SetupError",
    "kind_from_exception",
]
