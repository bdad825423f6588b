"""
Vestry configuration.

Values come from, in order of precedence:
1. overrides passed to ConfigManager (tests, embedding)
2. the process environment
3. the .env file (read with python-dotenv, never exported)
4. schema defaults

Configuration is read once, when the app is built.
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

from dotenv import dotenv_values

from vestry.shared.gate import GateLogger
from vestry.Config.schema import (
    CONFIG_SCHEMA,
    ConfigField,
    ConfigSection,
    ConfigType,
    get_required_fields,
    get_schema_by_key,
)

_log = GateLogger.get("Config")

ENV_FILE = Path.cwd() / ".env"


class ConfigManager:
    """Typed view of the configuration schema."""

    def __init__(
        self,
        env_file: Optional[Path] = None,
        overrides: Optional[Mapping[str, Any]] = None,
    ):
        self.env_file = Path(env_file) if env_file is not None else ENV_FILE
        self._overrides = dict(overrides or {})
        self._values: Dict[str, Any] = {}
        self._errors: List[str] = []

        file_values = dotenv_values(self.env_file) if self.env_file.is_file() else {}
        for field in CONFIG_SCHEMA:
            raw = self._lookup(field, file_values)
            self._values[field.key] = self._convert(field, raw)

    def _lookup(self, field: ConfigField, file_values: Mapping[str, Optional[str]]) -> Any:
        for source in (self._overrides, os.environ, file_values):
            value = source.get(field.key)
            if value is not None and value != "":
                return value
        return field.default

    def _convert(self, field: ConfigField, raw: Any) -> Any:
        if raw is None:
            return None

        kind = field.config_type
        if kind is ConfigType.INTEGER:
            try:
                return int(raw)
            except (TypeError, ValueError):
                self._errors.append(f"Invalid integer for {field.key}: {raw}")
                _log.warning(f"{field.key}={raw!r} is not an integer, using {field.default}")
                return field.default
        if kind is ConfigType.LIST:
            if isinstance(raw, (list, tuple)):
                return list(raw)
            return [item.strip() for item in str(raw).split(",") if item.strip()]
        if kind is ConfigType.PATH:
            return Path(str(raw)).expanduser()
        return str(raw)

    def get(self, key: str, default: Any = None) -> Any:
        value = self._values.get(key)
        return default if value is None else value

    @property
    def site_root(self) -> Path:
        return self.get("VESTRY_SITE_ROOT")

    @property
    def data_dir(self) -> Path:
        return self.get("VESTRY_DATA_DIR")

    @property
    def admin_token(self) -> Optional[str]:
        return self.get("ADMIN_TOKEN")

    @property
    def git_timeout(self) -> float:
        return float(self.get("VESTRY_GIT_TIMEOUT_SECONDS", 120))

    @property
    def cors_origins(self) -> List[str]:
        return list(self.get("VESTRY_CORS_ORIGINS", []))

    def get_all(self, include_secrets: bool = False) -> Dict[str, Any]:
        """
        Every configured value, keyed by field.

        Secrets are masked unless ``include_secrets`` is set: long ones keep
        their last four characters, short ones are fully hidden.
        """
        result: Dict[str, Any] = {}
        for field in CONFIG_SCHEMA:
            value = self._values.get(field.key)
            if isinstance(value, Path):
                value = str(value)
            if field.secret and value and not include_secrets:
                value = "***" + value[-4:] if len(value) > 12 else "****"
            result[field.key] = value
        return result

    def validate(self) -> Tuple[bool, List[str]]:
        """Check required fields, integer bounds and choices."""
        errors = list(self._errors)
        for field in CONFIG_SCHEMA:
            value = self._values.get(field.key)
            if value is None or value == "":
                if field.required:
                    errors.append(f"Required config missing: {field.key}")
                continue
            if field.minimum is not None and isinstance(value, int) and value < field.minimum:
                errors.append(f"{field.key} must be at least {field.minimum}")
            if field.choices and value not in field.choices:
                errors.append(f"Invalid option for {field.key}: {value}")
        return not errors, errors

    def create_env_template(self) -> str:
        """Text of a .env file listing every field with its default."""
        lines = ["# Vestry configuration", ""]
        section = None
        for field in CONFIG_SCHEMA:
            if field.section is not section:
                section = field.section
                lines += [f"# --- {section.value} ---", ""]
            lines.append(f"# {field.description}")
            if field.required:
                lines.append("# (required)")
            if field.choices:
                lines.append(f"# One of: {', '.join(field.choices)}")
            default = "" if field.secret or field.default is None else field.default
            lines += [f"{field.key}={default}", ""]
        return "\n".join(lines)


__all__ = [
    "ConfigManager",
    "ConfigField",
    "ConfigType",
    "ConfigSection",
    "CONFIG_SCHEMA",
    "get_schema_by_key",
    "get_required_fields",
]
