"""
Tests for ThemeGate theme storage.
"""

import json
import pytest

from vestry.shared.errors import ErrorKind
from vestry.ThemeGate import Theme, ThemeGate, is_valid_theme_name


@pytest.fixture
def gate(data_dir, site_root) -> ThemeGate:
    return ThemeGate(data_dir, site_root)


class TestThemeNames:
    """Tests for theme name validation."""

    @pytest.mark.parametrize("name", ["dusk", "Solar-Light", "my_theme_2"])
    def test_valid(self, name):
        assert is_valid_theme_name(name) is True

    @pytest.mark.parametrize("name", ["", "../evil", "a/b", "sp ace", "dot.json"])
    def test_invalid(self, name):
        assert is_valid_theme_name(name) is False


class TestThemeStorage:
    """Tests for save, get, list and delete."""

    def test_save_and_get(self, gate, data_dir):
        theme = Theme(name="dusk", colors={"keyword": "#ff0000"})

        saved = gate.save_sync(theme)
        loaded = gate.get_sync("dusk")

        assert saved.success is True
        assert saved.message == "Theme 'dusk' saved successfully"
        assert loaded.success is True
        assert loaded.message == "Theme retrieved successfully"
        assert loaded.theme == theme
        on_disk = (data_dir / "themes" / "dusk.json").read_text()
        assert "\n" in on_disk
        assert json.loads(on_disk) == {"name": "dusk", "colors": {"keyword": "#ff0000"}}

    def test_save_overwrites(self, gate):
        gate.save_sync(Theme(name="dusk", colors={"a": "#000"}))
        gate.save_sync(Theme(name="dusk", colors={"a": "#fff"}))

        assert gate.get_sync("dusk").theme.colors == {"a": "#fff"}

    def test_list_sorted(self, gate):
        for name in ["zeta", "alpha", "mid"]:
            gate.save_sync(Theme(name=name))

        assert gate.list_sync().themes == ["alpha", "mid", "zeta"]

    def test_empty_name_rejected(self, gate):
        result = gate.save_sync(Theme(name=""))

        assert result.success is False
        assert result.message == "Theme name cannot be empty"

    def test_bad_name_rejected(self, gate, data_dir):
        result = gate.save_sync(Theme(name="../escape"))

        assert result.success is False
        assert result.message == "Theme name can only contain letters, numbers, hyphens, and underscores"
        assert result.error_kind == ErrorKind.PATH_INVALID
        assert not (data_dir / "escape.json").exists()

    def test_get_missing(self, gate):
        result = gate.get_sync("nope")

        assert result.success is False
        assert result.message == "Theme not found"
        assert result.error_kind == ErrorKind.NOT_FOUND

    def test_get_invalid_name_is_not_found(self, gate):
        assert gate.get_sync("../../etc/passwd").message == "Theme not found"

    def test_get_corrupt_file(self, gate, data_dir):
        gate.ensure_ready()
        (data_dir / "themes" / "broken.json").write_text("{oops")

        result = gate.get_sync("broken")

        assert result.success is False
        assert result.message == "Invalid theme file format"

    def test_delete(self, gate):
        gate.save_sync(Theme(name="dusk"))

        result = gate.delete_sync("dusk")

        assert result.success is True
        assert result.message == "Theme 'dusk' deleted successfully"
        assert gate.list_sync().themes == []

    def test_delete_missing(self, gate):
        result = gate.delete_sync("ghost")

        assert result.success is False
        assert result.message == "Theme not found"

    @pytest.mark.asyncio
    async def test_async_wrappers(self, gate):
        await gate.save(Theme(name="night", colors={"bg": "#111"}))

        assert (await gate.list()).themes == ["night"]
        assert (await gate.get("night")).success is True
        assert (await gate.delete("night")).success is True


class TestLegacyMigration:
    """Tests for moving themes out of the site root."""

    def test_legacy_themes_migrated(self, gate, site_root, data_dir):
        legacy = site_root / ".themes"
        legacy.mkdir()
        (legacy / "old.json").write_text(json.dumps({"name": "old", "colors": {}}))
        (legacy / "notes.txt").write_text("not a theme")

        names = gate.list_sync().themes

        assert names == ["old"]
        assert (data_dir / "themes" / "old.json").exists()
        assert not legacy.exists()

    def test_migration_runs_once(self, gate, site_root):
        gate.list_sync()
        legacy = site_root / ".themes"
        legacy.mkdir()
        (legacy / "late.json").write_text(json.dumps({"name": "late", "colors": {}}))

        assert gate.list_sync().themes == []
        assert legacy.exists()
