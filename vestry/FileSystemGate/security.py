"""
FileSystemGate security module.

Confines user-supplied relative paths to the site root. Every path goes
through the same pipeline:

    raw -> percent-decoded -> normalized -> validated -> canonicalized

and the canonical form is re-checked against the canonical root. Only the
parts of a path that must already exist are canonicalized, so new files can
be created while symlinked directories still cannot be used to escape.
"""

import os
import re
from pathlib import Path, PurePosixPath
from typing import List, Optional
from urllib.parse import unquote

from vestry.shared.errors import NotFound, PathInvalid

# Characters refused in uploaded file names
UPLOAD_FORBIDDEN_CHARS = frozenset('<>:"|?*')

_DRIVE_PREFIX = re.compile(r"^[A-Za-z]:(/|$)")


def canonical_root(root: os.PathLike | str) -> Path:
    """Canonical form of the site root (symlinks resolved)."""
    return Path(os.path.realpath(root))


def is_within(path: Path, root: Path) -> bool:
    """True if ``path`` is ``root`` or lies below it."""
    return path == root or path.is_relative_to(root)


def clean_path(raw: Optional[str]) -> str:
    """
    Decode and normalize a raw request path.

    Percent-decoding falls back to the raw string when the escapes do not
    form valid UTF-8. Backslashes become forward slashes and a single
    leading slash is stripped.

    Args:
        raw: Path as received from the request (may be None)

    Returns:
        Normalized relative path string (possibly empty)
    """
    if raw is None:
        return ""

    try:
        decoded = unquote(raw, errors="strict")
    except UnicodeDecodeError:
        decoded = raw

    normalized = decoded.replace("\\", "/")
    if normalized.startswith("/"):
        normalized = normalized[1:]
    return normalized


def validate_relative(rel: str, allow_empty: bool = False) -> str:
    """
    Reject paths that could name something outside the root.

    Args:
        rel: Cleaned relative path
        allow_empty: Whether an empty path (meaning the root) is acceptable

    Returns:
        The same path, if valid

    Raises:
        PathInvalid: On NUL bytes, absolute paths, '..' segments,
            or an empty path when not allowed
    """
    if "\x00" in rel:
        raise PathInvalid("Path contains null bytes")

    if not rel.strip():
        if allow_empty:
            return ""
        raise PathInvalid("Path is empty")

    if rel.startswith("/") or _DRIVE_PREFIX.match(rel):
        raise PathInvalid(f"Absolute paths are not allowed: {rel}")

    if any(segment == ".." for segment in rel.split("/")):
        raise PathInvalid(f"Parent directory references are not allowed: {rel}")

    return rel


def sanitize_upload_name(name: str) -> str:
    """
    Validate a client-declared upload name.

    Upload names are stricter than editor paths: besides NUL they may not
    contain any of ``< > : " | ? *``. Backslashes are normalized to slashes.

    Args:
        name: Raw file name from the multipart part

    Returns:
        Normalized relative name

    Raises:
        PathInvalid: If the name contains forbidden characters
    """
    if "\x00" in name:
        raise PathInvalid("Upload name contains null bytes")

    bad = sorted(set(name) & UPLOAD_FORBIDDEN_CHARS)
    if bad:
        raise PathInvalid(f"Upload name contains forbidden characters: {''.join(bad)}")

    return name.replace("\\", "/")


def _parts(rel: str) -> List[str]:
    """Split a validated relative path into its meaningful components."""
    return [p for p in PurePosixPath(rel).parts if p not in ("", ".")]


def resolve_existing(root: os.PathLike | str, raw: Optional[str]) -> Path:
    """
    Resolve a path that must already exist (reads, deletes, move sources).

    Args:
        root: Site root
        raw: Raw relative path from the request

    Returns:
        Canonical absolute path below the canonical root

    Raises:
        PathInvalid: If the path is malformed or resolves outside the root
        NotFound: If nothing exists at the path
    """
    rel = validate_relative(clean_path(raw))
    return _resolve_existing_relative(canonical_root(root), rel)


def _resolve_existing_relative(root_canon: Path, rel: str) -> Path:
    """Strictly canonicalize a validated relative path and confine it."""
    try:
        canon = Path(os.path.realpath(root_canon / rel, strict=True))
    except OSError:
        raise NotFound(f"Path does not exist: {rel}")

    if not is_within(canon, root_canon):
        raise PathInvalid(f"Path escapes the site root: {rel}")

    return canon


def resolve_relative_destination(root_canon: Path, rel: str) -> Path:
    """
    Resolve an already cleaned and validated relative path as a destination.

    The nearest existing ancestor of the parent directory is canonicalized
    and must lie below the root; components below it do not exist yet and
    carry no '..', so they cannot climb back out. An existing leaf that is a
    symlink must also point inside the root.

    Args:
        root_canon: Canonical site root
        rel: Validated relative path

    Returns:
        Absolute destination path (the leaf may not exist)

    Raises:
        PathInvalid: If the destination would land outside the root
    """
    parts = _parts(rel)
    if not parts:
        raise PathInvalid("Path must name an entry below the site root")

    parent_parts, leaf = parts[:-1], parts[-1]

    anchor = root_canon
    remaining: List[str] = []
    for depth in range(len(parent_parts), -1, -1):
        candidate = root_canon.joinpath(*parent_parts[:depth])
        if os.path.lexists(candidate):
            anchor = candidate
            remaining = parent_parts[depth:]
            break

    try:
        anchor_canon = Path(os.path.realpath(anchor, strict=True))
    except OSError:
        raise PathInvalid(f"Parent directory cannot be resolved: {rel}")

    if not is_within(anchor_canon, root_canon):
        raise PathInvalid(f"Path escapes the site root: {rel}")

    destination = anchor_canon.joinpath(*remaining, leaf)

    if os.path.islink(destination):
        link_target = Path(os.path.realpath(destination))
        if not is_within(link_target, root_canon):
            raise PathInvalid(f"Symlink points outside the site root: {rel}")

    return destination


def resolve_destination(root: os.PathLike | str, raw: Optional[str]) -> Path:
    """
    Resolve a path that may not exist yet (writes, move targets).

    Args:
        root: Site root
        raw: Raw relative path from the request

    Returns:
        Absolute destination path below the canonical root

    Raises:
        PathInvalid: If the path is malformed or would escape the root
    """
    rel = validate_relative(clean_path(raw))
    return resolve_relative_destination(canonical_root(root), rel)


def resolve_listing(root: os.PathLike | str, raw: Optional[str]) -> Optional[Path]:
    """
    Resolve a directory to list. An empty path means the root itself.

    Returns:
        Canonical directory path, or None if it does not exist

    Raises:
        PathInvalid: If the path is malformed or resolves outside the root
    """
    rel = validate_relative(clean_path(raw), allow_empty=True)
    root_canon = canonical_root(root)
    if not rel:
        return root_canon

    try:
        return _resolve_existing_relative(root_canon, rel)
    except NotFound:
        return None


def resolve_removable(root: os.PathLike | str, raw: Optional[str]) -> Optional[Path]:
    """
    Resolve a path for deletion without following the leaf.

    The parent directory is canonicalized and must lie below the root; the
    leaf itself is left as-is so deleting a symlink removes the link, not
    its target.

    Returns:
        Absolute path of the entry, or None if it does not exist

    Raises:
        PathInvalid: If the path is malformed, escapes, or names the root
    """
    rel = validate_relative(clean_path(raw))
    root_canon = canonical_root(root)

    parts = _parts(rel)
    if not parts:
        raise PathInvalid("Cannot delete the site root")

    try:
        parent = Path(os.path.realpath(root_canon.joinpath(*parts[:-1]), strict=True))
    except OSError:
        return None

    if not is_within(parent, root_canon):
        raise PathInvalid(f"Path escapes the site root: {rel}")

    entry = parent / parts[-1]
    if not os.path.lexists(entry):
        return None
    if entry == root_canon:
        raise PathInvalid("Cannot delete the site root")
    return entry


def relative_to_root(path: Path, root_canon: Path) -> str:
    """Render an absolute path below the root as a '/'-separated relative path."""
    return path.relative_to(root_canon).as_posix()
