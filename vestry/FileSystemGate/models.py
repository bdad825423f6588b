"""
FileSystemGate Pydantic models.

Defines directory entries, upload parts, and operation results.
"""

from dataclasses import dataclass
from typing import Optional, Any, Dict, BinaryIO, Union
from pydantic import BaseModel, Field

from vestry.shared.errors import ErrorKind, VestryError


class FileEntry(BaseModel):
    """A child of a listed directory."""
    path: str = Field(description="Path relative to the site root, '/'-separated")
    is_dir: bool

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for JSON serialization."""
        return self.model_dump(mode="json")


class OperationResult(BaseModel):
    """Result of a file system operation."""
    success: bool
    operation: str = Field(description="Operation type: list/read/write/delete/move/upload")
    path: str = ""
    message: str = ""
    data: Optional[Any] = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for JSON serialization."""
        return self.model_dump(mode="json")

    @classmethod
    def ok(cls, operation: str, path: str = "", message: str = "", data: Any = None) -> "OperationResult":
        """Create a successful result."""
        return cls(success=True, operation=operation, path=path, message=message, data=data)

    @classmethod
    def fail(cls, operation: str, error: VestryError, path: str = "", data: Any = None) -> "OperationResult":
        """Create a failed result from a gate error."""
        return cls(
            success=False,
            operation=operation,
            path=path,
            message=error.message,
            data=data,
            error=error.message,
            error_kind=error.kind,
        )


@dataclass
class UploadPart:
    """One file part of a multipart upload.

    ``filename`` is the raw client-declared name and may contain
    subdirectories. ``content`` is either the bytes or a readable
    binary stream.
    """
    filename: Optional[str]
    content: Union[bytes, BinaryIO]
