"""
Tests for site-root path confinement.
"""

import os
import random
import pytest
from pathlib import Path

from vestry.shared.errors import NotFound, PathInvalid
from vestry.FileSystemGate.security import (
    canonical_root,
    clean_path,
    is_within,
    resolve_destination,
    resolve_existing,
    resolve_listing,
    resolve_removable,
    sanitize_upload_name,
    validate_relative,
)


class TestCleanPath:
    """Tests for decoding and normalization."""

    def test_percent_decoding(self):
        """Percent escapes should be decoded."""
        assert clean_path("css%2Fapp.css") == "css/app.css"

    def test_encoded_traversal_is_decoded(self):
        """Encoded '..' should surface so validation can reject it."""
        assert clean_path("%2e%2e%2fetc%2fpasswd") == "../etc/passwd"

    def test_invalid_utf8_keeps_raw(self):
        """Escapes that are not valid UTF-8 fall back to the raw string."""
        assert clean_path("bad%ffname") == "bad%ffname"

    def test_backslashes_and_leading_slash(self):
        """Backslashes become slashes and one leading slash is stripped."""
        assert clean_path("\\css\\app.css") == "css/app.css"
        assert clean_path("/index.html") == "index.html"

    def test_none_is_empty(self):
        assert clean_path(None) == ""


class TestValidateRelative:
    """Tests for lexical validation."""

    @pytest.mark.parametrize("bad", [
        "../etc/passwd",
        "css/../../x",
        "..",
        "/etc/passwd",
        "C:/Windows",
        "a\x00b",
    ])
    def test_rejects_escapes(self, bad):
        """Traversal, absolute paths and NUL bytes are rejected."""
        with pytest.raises(PathInvalid):
            validate_relative(bad)

    def test_empty_rejected_unless_allowed(self):
        with pytest.raises(PathInvalid):
            validate_relative("")
        assert validate_relative("", allow_empty=True) == ""

    def test_dotted_names_allowed(self):
        """Names that merely contain dots are fine."""
        assert validate_relative("a..b/file.txt") == "a..b/file.txt"


class TestUploadNames:
    """Tests for upload name sanitization."""

    @pytest.mark.parametrize("name", ["a<b", "x>y", "c:d", 'q"r', "p|q", "w?", "*.txt"])
    def test_forbidden_characters(self, name):
        with pytest.raises(PathInvalid):
            sanitize_upload_name(name)

    def test_nul_rejected(self):
        with pytest.raises(PathInvalid):
            sanitize_upload_name("a\x00.txt")

    def test_backslashes_normalized(self):
        assert sanitize_upload_name("img\\logo.png") == "img/logo.png"


class TestResolveExisting:
    """Tests for resolving paths that must exist."""

    def test_resolves_inside_root(self, site_root):
        path = resolve_existing(site_root, "css/app.css")
        assert path == canonical_root(site_root) / "css" / "app.css"

    def test_missing_is_not_found(self, site_root):
        with pytest.raises(NotFound):
            resolve_existing(site_root, "nope.txt")

    def test_encoded_traversal_rejected(self, site_root, outside_dir):
        with pytest.raises(PathInvalid):
            resolve_existing(site_root, "%2e%2e%2foutside%2fsecret.txt")

    def test_symlink_escape_rejected(self, site_root, outside_dir):
        """A symlink pointing outside the root cannot be followed."""
        os.symlink(outside_dir, site_root / "link")
        with pytest.raises(PathInvalid):
            resolve_existing(site_root, "link/secret.txt")

    def test_symlink_inside_root_allowed(self, site_root):
        os.symlink(site_root / "css", site_root / "styles")
        path = resolve_existing(site_root, "styles/app.css")
        assert is_within(path, canonical_root(site_root))


class TestResolveDestination:
    """Tests for resolving paths that may not exist yet."""

    def test_new_nested_file(self, site_root):
        """Missing parents are allowed; they are created later."""
        path = resolve_destination(site_root, "new/deeper/page.html")
        assert path == canonical_root(site_root) / "new" / "deeper" / "page.html"

    def test_parent_symlink_escape_rejected(self, site_root, outside_dir):
        os.symlink(outside_dir, site_root / "link")
        with pytest.raises(PathInvalid):
            resolve_destination(site_root, "link/new.txt")

    def test_leaf_symlink_escape_rejected(self, site_root, outside_dir):
        os.symlink(outside_dir / "secret.txt", site_root / "evil.txt")
        with pytest.raises(PathInvalid):
            resolve_destination(site_root, "evil.txt")

    def test_traversal_rejected(self, site_root):
        with pytest.raises(PathInvalid):
            resolve_destination(site_root, "css/../../x.txt")


class TestResolveListing:
    """Tests for resolving directories to list."""

    def test_empty_means_root(self, site_root):
        assert resolve_listing(site_root, "") == canonical_root(site_root)
        assert resolve_listing(site_root, None) == canonical_root(site_root)

    def test_missing_is_none(self, site_root):
        assert resolve_listing(site_root, "missing") is None

    def test_traversal_rejected(self, site_root):
        with pytest.raises(PathInvalid):
            resolve_listing(site_root, "..")


class TestResolveRemovable:
    """Tests for resolving deletion targets."""

    def test_symlink_not_followed(self, site_root, outside_dir):
        os.symlink(outside_dir, site_root / "link")
        path = resolve_removable(site_root, "link")
        assert path == canonical_root(site_root) / "link"

    def test_root_rejected(self, site_root):
        with pytest.raises(PathInvalid):
            resolve_removable(site_root, ".")

    def test_missing_is_none(self, site_root):
        assert resolve_removable(site_root, "ghost.txt") is None


FRAGMENTS = [
    "..", ".", "%2e%2e", "%2e%2e%2f", "%2E%2E%5C", "..%2f", "%2f", "/", "\\",
    "\x00", "%00", "%ff", "css", "app.css", "img", "index.html", "escape",
    "inner", "secret.txt", "new", "a b", "",
]


def random_raw_paths(seed: int, count: int = 40):
    rng = random.Random(seed)
    for _ in range(count):
        pieces = [rng.choice(FRAGMENTS) for _ in range(rng.randint(1, 6))]
        sep = rng.choice(["/", "\\", "%2f", ""])
        yield sep.join(pieces)


@pytest.fixture
def linked_root(site_root, outside_dir) -> Path:
    """Site root with one symlink escaping it and one staying inside."""
    os.symlink(outside_dir, site_root / "escape")
    os.symlink(site_root / "css", site_root / "inner")
    return site_root


class TestConfinementProperty:
    """Generated paths either resolve inside the root or are refused."""

    @pytest.mark.parametrize("seed", range(25))
    def test_existing_stays_inside(self, linked_root, seed):
        root_canon = canonical_root(linked_root)

        for raw in random_raw_paths(seed):
            try:
                path = resolve_existing(linked_root, raw)
            except (PathInvalid, NotFound):
                continue
            assert is_within(Path(os.path.realpath(path)), root_canon), raw

    @pytest.mark.parametrize("seed", range(25))
    def test_destination_stays_inside(self, linked_root, seed):
        root_canon = canonical_root(linked_root)

        for raw in random_raw_paths(seed):
            try:
                path = resolve_destination(linked_root, raw)
            except (PathInvalid, NotFound):
                continue
            assert is_within(Path(os.path.realpath(path)), root_canon), raw
            assert "\x00" not in str(path)
