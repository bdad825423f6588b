"""
Error taxonomy shared by all Vestry gates.

Gate internals raise these; gate facades turn them into result envelopes
(OperationResult, GitStatus) carrying the matching ErrorKind.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Failure classes surfaced to API callers."""
    PATH_INVALID = "path_invalid"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    IO_FAILURE = "io_failure"
    GIT_FAILURE = "git_failure"
    AUTH_REQUIRED = "auth_required"
    TIMEOUT = "timeout"


HTTP_STATUS = {
    ErrorKind.PATH_INVALID: 400,
    ErrorKind.CONFLICT: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.AUTH_REQUIRED: 401,
    ErrorKind.IO_FAILURE: 500,
    ErrorKind.GIT_FAILURE: 500,
    ErrorKind.TIMEOUT: 504,
}


def http_status_for(kind: ErrorKind | None) -> int:
    """Map an error kind to its HTTP status code (200 for no error)."""
    if kind is None:
        return 200
    return HTTP_STATUS.get(kind, 500)


class VestryError(Exception):
    """Base class for all gate errors."""
    kind: ErrorKind = ErrorKind.IO_FAILURE

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def status_code(self) -> int:
        return http_status_for(self.kind)


class PathInvalid(VestryError):
    """Raised when a path fails traversal or format validation."""
    kind = ErrorKind.PATH_INVALID


class NotFound(VestryError):
    """Raised when a file, branch or remote does not exist."""
    kind = ErrorKind.NOT_FOUND


class Conflict(VestryError):
    """Raised when the current state blocks the operation."""
    kind = ErrorKind.CONFLICT


class IOFailure(VestryError):
    """Raised when a disk operation fails mid-flight."""
    kind = ErrorKind.IO_FAILURE


class GitOperationFailure(VestryError):
    """Raised when a git operation fails; wraps the libgit2 message."""
    kind = ErrorKind.GIT_FAILURE


class AuthRequired(VestryError):
    """Raised when the caller's identity proof is missing or wrong."""
    kind = ErrorKind.AUTH_REQUIRED


class OperationTimeout(VestryError):
    """Raised when a network-facing git call exceeds its deadline."""
    kind = ErrorKind.TIMEOUT
