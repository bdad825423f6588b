"""
Shared Gate utilities for Vestry.

- GateLogger: one ``vestry.<Gate>`` logger per gate
- GateHealth: what /health expects from a gate
- ConfigLoader: JSON persistence for small state files (auto-pull config)
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import (
    Any,
    Dict,
    List,
    Optional,
    Protocol,
    Type,
    TypeVar,
    Union,
    runtime_checkable,
)

LOGGER_NAMESPACE = "vestry"
LOG_FORMAT = "[%(name)s] %(levelname)s: %(message)s"


class GateLogger:
    """
    Loggers for Vestry gates.

    The ``vestry`` parent logger gets a stream handler the first time any
    gate asks for a logger; gate loggers propagate to it.
    """

    _loggers: Dict[str, logging.Logger] = {}
    _configured = False

    @classmethod
    def _configure_parent(cls) -> logging.Logger:
        parent = logging.getLogger(LOGGER_NAMESPACE)
        if not cls._configured:
            if not parent.handlers:
                handler = logging.StreamHandler()
                handler.setFormatter(logging.Formatter(LOG_FORMAT))
                parent.addHandler(handler)
                parent.setLevel(logging.INFO)
            cls._configured = True
        return parent

    @classmethod
    def get(cls, gate_name: str) -> logging.Logger:
        """Logger named ``vestry.<gate_name>``."""
        cls._configure_parent()
        name = f"{LOGGER_NAMESPACE}.{gate_name}"
        if name not in cls._loggers:
            cls._loggers[name] = logging.getLogger(name)
        return cls._loggers[name]

    @classmethod
    def set_level(cls, level: Union[int, str], gate_name: Optional[str] = None) -> None:
        """
        Set the level of one gate's logger, or of the whole tree.

        Unknown level names fall back to INFO.
        """
        if isinstance(level, str):
            resolved = logging.getLevelName(level.upper())
            level = resolved if isinstance(resolved, int) else logging.INFO

        target = cls.get(gate_name) if gate_name else cls._configure_parent()
        target.setLevel(level)


@runtime_checkable
class GateHealth(Protocol):
    """Every gate reports health so /health can aggregate it."""

    def is_healthy(self) -> bool:
        ...

    def get_health_status(self) -> Dict[str, Any]:
        ...


def build_health_status(
    gate_name: str,
    initialized: bool,
    dependencies: List[str],
    checks: Dict[str, bool],
    details: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Health dict shared by all gates.

    A gate is healthy when it is initialized and every check passed.
    """
    return {
        "gate": gate_name,
        "healthy": initialized and all(checks.values()),
        "initialized": initialized,
        "dependencies": dependencies,
        "checks": checks,
        "details": details or {},
    }


ConfigT = TypeVar("ConfigT")


class ConfigLoader:
    """JSON load/save for pydantic models and classes with to_dict/from_dict."""

    @staticmethod
    def load(
        path: Union[str, Path],
        model_class: Type[ConfigT],
        create_default: bool = True,
    ) -> Optional[ConfigT]:
        """
        Read ``path`` into ``model_class``.

        Returns:
            The loaded instance; ``model_class()`` for a missing file when
            ``create_default`` is set; None for a missing file otherwise or
            for content that does not parse or validate
        """
        path = Path(path)
        if not path.exists():
            return model_class() if create_default else None

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            if hasattr(model_class, "model_validate"):
                return model_class.model_validate(data)
            return model_class.from_dict(data)
        except (OSError, ValueError, TypeError) as e:
            GateLogger.get("ConfigLoader").error(f"Failed to load config from {path}: {e}")
            return None

    @staticmethod
    def save(path: Union[str, Path], config: Any) -> None:
        """
        Write ``config`` as indented JSON, replacing the file atomically.

        Raises:
            OSError: If the directory cannot be created or written
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        if hasattr(config, "model_dump"):
            data = config.model_dump(mode="json")
        else:
            data = config.to_dict()

        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_name, path)
        except OSError:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
