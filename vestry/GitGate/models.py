"""
GitGate Pydantic models.

Credentials, operation results, repository status and the persisted
auto-pull configuration.
"""

from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from vestry.shared.errors import ErrorKind, VestryError


class NoCredentials(BaseModel):
    """Anonymous access (public remotes, local paths)."""
    kind: Literal["none"] = "none"


class UsernameToken(BaseModel):
    """HTTPS basic auth with a username and a personal access token."""
    kind: Literal["username_token"] = "username_token"
    username: str
    token: str

    def __repr__(self) -> str:
        return f"UsernameToken(username={self.username!r}, token='***')"

    __str__ = __repr__


Credentials = Union[NoCredentials, UsernameToken]


def credentials_from_request(
    username: Optional[str] = None,
    token: Optional[str] = None,
) -> Credentials:
    """Both username and token are needed; anything less is anonymous."""
    if username and token:
        return UsernameToken(username=username, token=token)
    return NoCredentials()


class GitStatus(BaseModel):
    """Result of a git mutation."""
    success: bool
    message: str
    commit_hash: Optional[str] = None
    error_kind: Optional[ErrorKind] = None

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")

    @classmethod
    def ok(cls, message: str, commit_hash: Optional[str] = None) -> "GitStatus":
        return cls(success=True, message=message, commit_hash=commit_hash)

    @classmethod
    def fail(cls, error: VestryError) -> "GitStatus":
        return cls(success=False, message=error.message, error_kind=error.kind)


class GitFileStatus(BaseModel):
    """One changed path in the working copy."""
    path: str
    status: str = Field(
        description="staged_new, staged_modified, staged_deleted, staged_renamed, "
        "modified, deleted or renamed"
    )


class GitRepoStatus(BaseModel):
    """Read-only snapshot of the working copy."""
    success: bool
    message: str
    current_branch: Optional[str] = None
    current_commit: Optional[str] = None
    remote_commit: Optional[str] = None
    behind_count: int = 0
    ahead_count: int = 0
    has_changes: bool = False
    has_staged_changes: bool = False
    has_unstaged_changes: bool = False
    changed_files: List[GitFileStatus] = Field(default_factory=list)
    untracked_files: List[str] = Field(default_factory=list)
    error_kind: Optional[ErrorKind] = None

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


class RepoState(str, Enum):
    """Coarse lifecycle state of the working copy."""
    ABSENT = "absent"
    CLEAN = "clean"
    DIRTY = "dirty"
    DIVERGED = "diverged"
    UNKNOWN = "unknown"      # the working copy could not be inspected


class AutoPullConfig(BaseModel):
    """Scheduled pull settings, persisted outside the site root."""
    enabled: bool = False
    interval_minutes: int = Field(default=30, ge=1)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")
