"""
ThemeGate - Custom editor themes for Vestry.

Themes are stored one JSON file per theme under ``<data_dir>/themes``,
outside the git-synchronized site root. Themes left in the legacy
``<site_root>/.themes`` directory are moved over on first access.

Usage:
    from vestry.ThemeGate import ThemeGate, Theme

    gate = ThemeGate(data_dir="/app/data", site_root="/public_site")
    await gate.save(Theme(name="dusk", colors={"keyword": "#ff0000"}))
    names = await gate.list()
"""

import asyncio
import json
import shutil
import threading
from pathlib import Path
from typing import Any, Dict, List, Union

from pydantic import ValidationError

from vestry.shared.errors import ErrorKind
from vestry.shared.gate import GateLogger, build_health_status

from .models import Theme, ThemeListResponse, ThemeResponse

_log = GateLogger.get("ThemeGate")

THEMES_DIRNAME = "themes"
LEGACY_DIRNAME = ".themes"


def is_valid_theme_name(name: str) -> bool:
    """Letters, digits, hyphens and underscores only."""
    return bool(name) and all(c.isalnum() or c in "-_" for c in name)


class ThemeGate:
    """Theme storage rooted at ``<data_dir>/themes``."""

    def __init__(self, data_dir: Union[str, Path], site_root: Union[str, Path]):
        self.themes_dir = Path(data_dir) / THEMES_DIRNAME
        self.legacy_dir = Path(site_root) / LEGACY_DIRNAME
        self._migrated = False
        self._migrate_lock = threading.Lock()

    def _theme_path(self, name: str) -> Path:
        return self.themes_dir / f"{name}.json"

    # ==================== Migration ====================

    def ensure_ready(self) -> None:
        """Create the themes directory and migrate legacy themes once."""
        self.themes_dir.mkdir(parents=True, exist_ok=True)

        with self._migrate_lock:
            if self._migrated:
                return
            self._migrated = True
            self._migrate_legacy()

    def _migrate_legacy(self) -> None:
        if not self.legacy_dir.is_dir():
            return

        _log.info(f"Migrating themes from {self.legacy_dir}")
        # Migration is best effort: failures are logged and dropped
        try:
            for entry in self.legacy_dir.glob("*.json"):
                try:
                    shutil.copyfile(entry, self.themes_dir / entry.name)
                except OSError as e:
                    _log.warning(f"Could not migrate theme {entry.name}: {e}")
            shutil.rmtree(self.legacy_dir)
        except OSError as e:
            _log.warning(f"Legacy theme migration incomplete: {e}")

    # ==================== Operations ====================

    def list_sync(self) -> ThemeListResponse:
        self.ensure_ready()
        names = sorted(p.stem for p in self.themes_dir.glob("*.json") if p.is_file())
        return ThemeListResponse(themes=names)

    def get_sync(self, name: str) -> ThemeResponse:
        self.ensure_ready()

        # Invalid names never reach the filesystem
        if not is_valid_theme_name(name):
            return ThemeResponse.fail("Theme not found", ErrorKind.NOT_FOUND)

        try:
            content = self._theme_path(name).read_text(encoding="utf-8")
        except OSError:
            return ThemeResponse.fail("Theme not found", ErrorKind.NOT_FOUND)

        try:
            theme = Theme.model_validate(json.loads(content))
        except (ValueError, ValidationError):
            return ThemeResponse.fail("Invalid theme file format", ErrorKind.IO_FAILURE)

        return ThemeResponse(success=True, message="Theme retrieved successfully", theme=theme)

    def save_sync(self, theme: Theme) -> ThemeResponse:
        self.ensure_ready()

        if not theme.name:
            return ThemeResponse.fail("Theme name cannot be empty", ErrorKind.PATH_INVALID)
        if not is_valid_theme_name(theme.name):
            return ThemeResponse.fail(
                "Theme name can only contain letters, numbers, hyphens, and underscores",
                ErrorKind.PATH_INVALID,
            )

        try:
            self._theme_path(theme.name).write_text(
                json.dumps(theme.model_dump(mode="json"), indent=2),
                encoding="utf-8",
            )
        except OSError as e:
            _log.error(f"Failed to save theme '{theme.name}': {e}")
            return ThemeResponse.fail("Failed to save theme file", ErrorKind.IO_FAILURE)

        _log.info(f"Saved theme '{theme.name}'")
        return ThemeResponse(
            success=True,
            message=f"Theme '{theme.name}' saved successfully",
            theme=theme,
        )

    def delete_sync(self, name: str) -> ThemeResponse:
        self.ensure_ready()

        path = self._theme_path(name) if is_valid_theme_name(name) else None
        if path is None or not path.exists():
            return ThemeResponse.fail("Theme not found", ErrorKind.NOT_FOUND)

        try:
            path.unlink()
        except OSError as e:
            _log.error(f"Failed to delete theme '{name}': {e}")
            return ThemeResponse.fail("Failed to delete theme file", ErrorKind.IO_FAILURE)

        _log.info(f"Deleted theme '{name}'")
        return ThemeResponse(success=True, message=f"Theme '{name}' deleted successfully")

    async def list(self) -> ThemeListResponse:
        return await asyncio.to_thread(self.list_sync)

    async def get(self, name: str) -> ThemeResponse:
        return await asyncio.to_thread(self.get_sync, name)

    async def save(self, theme: Theme) -> ThemeResponse:
        return await asyncio.to_thread(self.save_sync, theme)

    async def delete(self, name: str) -> ThemeResponse:
        return await asyncio.to_thread(self.delete_sync, name)

    # ==================== Health ====================

    def is_healthy(self) -> bool:
        return self.themes_dir.is_dir() or not self.themes_dir.exists()

    def get_health_status(self) -> Dict[str, Any]:
        return build_health_status(
            gate_name="ThemeGate",
            initialized=True,
            dependencies=["filesystem"],
            checks={"themes_dir_usable": self.is_healthy()},
            details={
                "themes_dir": str(self.themes_dir),
                "legacy_migrated": self._migrated,
            },
        )


__all__ = [
    "ThemeGate",
    "Theme",
    "ThemeResponse",
    "ThemeListResponse",
    "is_valid_theme_name",
]
