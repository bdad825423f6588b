"""
Shared utilities for Vestry.

Provides access to common functionality used across Gate implementations.
"""

from vestry.shared.gate import (
    GateLogger,
    GateHealth,
    ConfigLoader,
    build_health_status,
)
from vestry.shared.errors import (
    ErrorKind,
    VestryError,
    PathInvalid,
    NotFound,
    Conflict,
    IOFailure,
    GitOperationFailure,
    AuthRequired,
    OperationTimeout,
    http_status_for,
)

__all__ = [
    # Gate utilities
    "GateLogger",
    "GateHealth",
    "ConfigLoader",
    "build_health_status",
    # Errors
    "ErrorKind",
    "VestryError",
    "PathInvalid",
    "NotFound",
    "Conflict",
    "IOFailure",
    "GitOperationFailure",
    "AuthRequired",
    "OperationTimeout",
    "http_status_for",
]
