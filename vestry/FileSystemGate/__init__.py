"""
FileSystemGate - Root-confined file management for Vestry.

Provides:
- Directory listing, read, write, delete and move below the site root
- Bulk multipart upload
- Traversal, symlink and percent-encoding escape prevention

Usage:
    from vestry.FileSystemGate import FileSystemGate

    gate = FileSystemGate("/public_site")

    result = await gate.list_dir("css")
    result = await gate.write_file("index.html", "<h1>Hello</h1>")
    result = await gate.move("index.html", "old/index.html")
"""

import asyncio
import os
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from vestry.shared.gate import GateLogger, build_health_status

from .models import FileEntry, OperationResult, UploadPart
from .security import canonical_root
from .operations import (
    list_directory as op_list_directory,
    read_file as op_read_file,
    resolve_file as op_resolve_file,
    write_file as op_write_file,
    delete_path as op_delete_path,
    move_entry as op_move_entry,
    bulk_upload as op_bulk_upload,
)

_log = GateLogger.get("FileSystemGate")


class FileSystemGate:
    """
    File operations confined to one site root.

    Each method runs the blocking operation on a worker thread.
    """

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)

    @property
    def root_canonical(self) -> Path:
        return canonical_root(self.root)

    def ensure_root(self) -> None:
        """Create the site root if it does not exist yet."""
        if not self.root.exists():
            _log.info(f"Creating site root {self.root}")
        self.root.mkdir(parents=True, exist_ok=True)

    # ==================== Health ====================

    def is_healthy(self) -> bool:
        return self.root.is_dir() and os.access(self.root, os.R_OK | os.W_OK)

    def get_health_status(self) -> Dict[str, Any]:
        exists = self.root.is_dir()
        return build_health_status(
            gate_name="FileSystemGate",
            initialized=True,
            dependencies=["filesystem"],
            checks={
                "root_exists": exists,
                "root_writable": exists and os.access(self.root, os.W_OK),
            },
            details={"root": str(self.root)},
        )

    # ==================== Operations ====================

    async def list_dir(self, path: Optional[str] = "") -> OperationResult:
        return await asyncio.to_thread(op_list_directory, self.root, path)

    async def read_file(self, path: str) -> OperationResult:
        return await asyncio.to_thread(op_read_file, self.root, path)

    async def resolve_file(self, path: str) -> Path:
        """Resolve a readable file for streaming. Raises PathInvalid/NotFound."""
        return await asyncio.to_thread(op_resolve_file, self.root, path)

    async def write_file(self, path: str, content: Union[str, bytes]) -> OperationResult:
        return await asyncio.to_thread(op_write_file, self.root, path, content)

    async def delete(self, path: str) -> OperationResult:
        return await asyncio.to_thread(op_delete_path, self.root, path)

    async def move(self, from_path: str, to_path: str) -> OperationResult:
        return await asyncio.to_thread(op_move_entry, self.root, from_path, to_path)

    async def upload(
        self,
        parts: Iterable[UploadPart],
        base_path: Optional[str] = "",
    ) -> OperationResult:
        parts = list(parts)
        return await asyncio.to_thread(op_bulk_upload, self.root, parts, base_path)


__all__ = [
    "FileSystemGate",
    "FileEntry",
    "OperationResult",
    "UploadPart",
]
