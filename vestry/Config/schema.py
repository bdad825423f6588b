"""
Configuration fields understood by Vestry.

Each field is read from the environment variable of the same name.
"""

from dataclasses import dataclass, field as dataclass_field
from enum import Enum
from typing import Any, List, Optional


class ConfigType(Enum):
    STRING = "string"
    SECRET = "secret"      # never shown in get_all() unless asked
    INTEGER = "integer"
    PATH = "path"
    LIST = "list"          # comma-separated


class ConfigSection(Enum):
    PATHS = "Paths"
    SECURITY = "Security"
    GIT = "Git"
    SERVER = "Server"


@dataclass(frozen=True)
class ConfigField:
    key: str
    description: str
    config_type: ConfigType
    section: ConfigSection
    default: Any = None
    required: bool = False
    minimum: Optional[int] = None
    choices: List[str] = dataclass_field(default_factory=list)

    @property
    def secret(self) -> bool:
        return self.config_type is ConfigType.SECRET


CONFIG_SCHEMA: List[ConfigField] = [
    ConfigField(
        key="VESTRY_SITE_ROOT",
        description="Directory served as the site and synchronized with git",
        config_type=ConfigType.PATH,
        section=ConfigSection.PATHS,
        default="/public_site",
    ),
    ConfigField(
        key="VESTRY_DATA_DIR",
        description="State kept outside the site root: themes and auto-pull config",
        config_type=ConfigType.PATH,
        section=ConfigSection.PATHS,
        default="/app/data",
    ),
    ConfigField(
        key="ADMIN_TOKEN",
        description="Bearer token required on every /api request",
        config_type=ConfigType.SECRET,
        section=ConfigSection.SECURITY,
        required=True,
    ),
    ConfigField(
        key="VESTRY_GIT_TIMEOUT_SECONDS",
        description="Deadline for clone, fetch, push and connection tests",
        config_type=ConfigType.INTEGER,
        section=ConfigSection.GIT,
        default=120,
        minimum=1,
    ),
    ConfigField(
        key="VESTRY_CORS_ORIGINS",
        description="Origins allowed to call the API, comma-separated",
        config_type=ConfigType.LIST,
        section=ConfigSection.SERVER,
        default="http://localhost:8080",
    ),
    ConfigField(
        key="VESTRY_HOST",
        description="Interface the HTTP server binds to",
        config_type=ConfigType.STRING,
        section=ConfigSection.SERVER,
        default="0.0.0.0",
    ),
    ConfigField(
        key="VESTRY_PORT",
        description="Port the HTTP server listens on",
        config_type=ConfigType.INTEGER,
        section=ConfigSection.SERVER,
        default=8000,
        minimum=1,
    ),
    ConfigField(
        key="VESTRY_LOG_LEVEL",
        description="Level for the vestry logger tree",
        config_type=ConfigType.STRING,
        section=ConfigSection.SERVER,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    ),
]

_BY_KEY = {f.key: f for f in CONFIG_SCHEMA}


def get_schema_by_key(key: str) -> Optional[ConfigField]:
    return _BY_KEY.get(key)


def get_required_fields() -> List[ConfigField]:
    return [f for f in CONFIG_SCHEMA if f.required]
