"""
FileSystemGate operations.

Directory listing, file read/write/delete/move and bulk upload, all
confined to the site root. Every function returns an OperationResult;
gate errors are converted at this layer.
"""

import os
import shutil
from pathlib import Path
from typing import Iterable, List, Optional, Union

from vestry.shared.errors import (
    Conflict,
    IOFailure,
    NotFound,
    PathInvalid,
    VestryError,
)
from vestry.shared.gate import GateLogger
from vestry.FileSystemGate.models import FileEntry, OperationResult, UploadPart
from vestry.FileSystemGate.security import (
    canonical_root,
    clean_path,
    relative_to_root,
    resolve_destination,
    resolve_existing,
    resolve_listing,
    resolve_relative_destination,
    resolve_removable,
    sanitize_upload_name,
    validate_relative,
)

_log = GateLogger.get("FileSystemGate")

# Uploads are copied to disk in chunks of this size
UPLOAD_CHUNK_SIZE = 1024 * 1024


def list_directory(root: Union[str, Path], path: Optional[str] = "") -> OperationResult:
    """
    List the immediate children of a directory below the root.

    A missing or unreadable directory lists as empty.

    Args:
        root: Site root
        path: Relative directory path ("" for the root)

    Returns:
        OperationResult with data = list of FileEntry dicts
    """
    try:
        directory = resolve_listing(root, path)
    except PathInvalid as e:
        return OperationResult.fail("list", e, path=path or "")

    if directory is None or not directory.is_dir():
        return OperationResult.ok("list", path=path or "", data=[])

    root_canon = canonical_root(root)
    entries: List[dict] = []
    try:
        with os.scandir(directory) as it:
            for item in it:
                try:
                    is_dir = item.is_dir()
                except OSError:
                    is_dir = False
                rel = relative_to_root(directory / item.name, root_canon)
                entries.append(FileEntry(path=rel, is_dir=is_dir).to_dict())
    except OSError as e:
        _log.warning(f"Could not list {directory}: {e}")
        return OperationResult.ok("list", path=path or "", data=[])

    entries.sort(key=lambda e: (not e["is_dir"], e["path"].lower()))
    return OperationResult.ok(
        "list",
        path=path or "",
        message=f"Found {len(entries)} entries",
        data=entries,
    )


def resolve_file(root: Union[str, Path], path: str) -> Path:
    """
    Resolve a path that must be an existing regular file.

    Raises:
        PathInvalid: If the path is malformed or escapes the root
        NotFound: If the path is missing or is a directory
    """
    target = resolve_existing(root, path)
    if not target.is_file():
        raise NotFound(f"File not found: {path}")
    return target


def read_file(root: Union[str, Path], path: str) -> OperationResult:
    """
    Read a file's bytes.

    Args:
        root: Site root
        path: Relative file path

    Returns:
        OperationResult with data = file bytes
    """
    try:
        target = resolve_file(root, path)
        try:
            content = target.read_bytes()
        except OSError as e:
            raise IOFailure(f"Could not read {path}: {e}")
    except VestryError as e:
        return OperationResult.fail("read", e, path=path)

    return OperationResult.ok("read", path=path, data=content)


def write_file(
    root: Union[str, Path],
    path: str,
    content: Union[str, bytes],
) -> OperationResult:
    """
    Create or overwrite a file, creating missing parent directories.

    Text content is written as UTF-8.

    Args:
        root: Site root
        path: Relative file path
        content: New file content

    Returns:
        OperationResult
    """
    try:
        target = resolve_destination(root, path)
        if target.is_dir():
            raise PathInvalid(f"Path is a directory: {path}")

        data = content.encode("utf-8") if isinstance(content, str) else content
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as e:
            raise IOFailure(f"Could not write {path}: {e}")
    except VestryError as e:
        return OperationResult.fail("write", e, path=path)

    _log.info(f"Wrote {path} ({len(data)} bytes)")
    return OperationResult.ok("write", path=path, message="File saved successfully")


def delete_path(root: Union[str, Path], path: str) -> OperationResult:
    """
    Delete a file, a symlink, or a directory tree.

    Deleting something that does not exist succeeds. Symlinks are removed
    as links; their targets are left alone.

    Args:
        root: Site root
        path: Relative path

    Returns:
        OperationResult
    """
    try:
        target = resolve_removable(root, path)
    except VestryError as e:
        return OperationResult.fail("delete", e, path=path)

    if target is None:
        return OperationResult.ok("delete", path=path, message="Nothing to delete")

    # Best effort: a partially removed tree still reports success
    try:
        if target.is_symlink() or not target.is_dir():
            target.unlink()
        else:
            shutil.rmtree(target)
    except OSError as e:
        _log.warning(f"Delete of {path} incomplete: {e}")

    _log.info(f"Deleted {path}")
    return OperationResult.ok("delete", path=path, message="Deleted successfully")


def move_entry(root: Union[str, Path], from_path: str, to_path: str) -> OperationResult:
    """
    Move or rename a file or directory.

    Missing destination parents are created. A directory cannot be moved
    into itself or one of its descendants.

    Args:
        root: Site root
        from_path: Relative source path
        to_path: Relative destination path

    Returns:
        OperationResult with data = {"from": ..., "to": ...}
    """
    try:
        source = resolve_existing(root, from_path)
        if source == canonical_root(root):
            raise PathInvalid("Cannot move the site root")

        destination = resolve_destination(root, to_path)

        if source.is_dir() and (destination == source or destination.is_relative_to(source)):
            raise Conflict(f"Cannot move a directory into itself: {from_path} -> {to_path}")

        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            os.rename(source, destination)
        except OSError as e:
            raise IOFailure(f"Could not move {from_path} to {to_path}: {e}")
    except VestryError as e:
        return OperationResult.fail("move", e, path=from_path)

    _log.info(f"Moved {from_path} -> {to_path}")
    return OperationResult.ok(
        "move",
        path=to_path,
        message="Moved successfully",
        data={"from": from_path, "to": to_path},
    )


def _write_part(destination: Path, content) -> None:
    destination.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(content, (bytes, bytearray)):
        destination.write_bytes(content)
        return
    with open(destination, "wb") as out:
        shutil.copyfileobj(content, out, UPLOAD_CHUNK_SIZE)


def bulk_upload(
    root: Union[str, Path],
    parts: Iterable[UploadPart],
    base_path: Optional[str] = "",
) -> OperationResult:
    """
    Write every named upload part below ``base_path``.

    Parts without a file name are skipped. Processing stops at the first
    failing part; files already written stay on disk and are listed in
    ``data["written"]``.

    Args:
        root: Site root
        parts: Upload parts in request order
        base_path: Relative directory the uploads land in

    Returns:
        OperationResult with data = {"written": [relative paths]}
    """
    written: List[str] = []
    root_canon = canonical_root(root)

    try:
        base = validate_relative(clean_path(base_path), allow_empty=True).strip("/")
    except PathInvalid as e:
        return OperationResult.fail("upload", e, path=base_path or "", data={"written": written})

    for part in parts:
        if not part.filename:
            continue

        try:
            name = validate_relative(sanitize_upload_name(part.filename))
            rel = f"{base}/{name}" if base else name
            validate_relative(rel)
            destination = resolve_relative_destination(root_canon, rel)
            if destination.is_dir():
                raise PathInvalid(f"Upload target is a directory: {rel}")
            try:
                _write_part(destination, part.content)
            except OSError as e:
                raise IOFailure(f"Could not write upload {rel}: {e}")
        except VestryError as e:
            _log.error(f"Upload rejected {part.filename!r}: {e.message}")
            return OperationResult.fail(
                "upload", e, path=base_path or "", data={"written": written}
            )

        _log.info(f"Uploaded {rel}")
        written.append(rel)

    return OperationResult.ok(
        "upload",
        path=base_path or "",
        message=f"Uploaded {len(written)} files",
        data={"written": written},
    )
