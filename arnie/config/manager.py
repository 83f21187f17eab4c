from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from rich.console import Console

from ..core.session_log import log_warn
from .paths import ArniePaths


DEFAULT_CONFIG: Dict[str, Any] = {
    "model": "sonnet",
    "allow_tools": False,
    "allowed_tools": None,
    "skip_permissions": True,
    "binary": "claude",
    "auto_dismiss_seconds": 2.0,
    "spinner_interval_ms": 100,
    "skills_dir": None,
    "debug": None,
}
TRUE_VALUES = {"1", "true", "yes", "y", "on"}
FALSE_VALUES = {"0", "false", "no", "n", "off"}


@dataclass
class ArnieSettings:
    model: Optional[str]
    allow_tools: bool
    allowed_tools: Optional[list[str]]
    skip_permissions: bool
    binary: str
    auto_dismiss_seconds: float
    spinner_interval_ms: int
    skills_dir: Path
    debug: Any

    @property
    def spinner_interval(self) -> float:
        return self.spinner_interval_ms / 1000.0


class ConfigManager:
    """Merges global, workspace and environment settings for Arnie."""

    def __init__(self, paths: ArniePaths, console: Optional[Console] = None) -> None:
        self.paths = paths
        self.console = console or Console()

    def load_settings(self) -> ArnieSettings:
        """Merge defaults, global config, project config, and environment variables."""
        merged = dict(DEFAULT_CONFIG)
        merged.update(self._read_json(self.paths.global_config_file))
        merged.update(self._read_json(self.paths.config_file))
        merged.update(self._env_settings())
        return self._normalize(merged)

    def _normalize(self, data: Dict[str, Any]) -> ArnieSettings:
        return ArnieSettings(
            model=self._normalize_model(data.get("model")),
            allow_tools=self._to_bool("allow_tools", data.get("allow_tools")),
            allowed_tools=self._normalize_tools(data.get("allowed_tools")),
            skip_permissions=self._to_bool(
                "skip_permissions", data.get("skip_permissions")
            ),
            binary=self._normalize_binary(data.get("binary")),
            auto_dismiss_seconds=self._to_float(
                "auto_dismiss_seconds", data.get("auto_dismiss_seconds")
            ),
            spinner_interval_ms=self._to_int(
                "spinner_interval_ms", data.get("spinner_interval_ms")
            ),
            skills_dir=self._resolve_skills_dir(data.get("skills_dir")),
            debug=data.get("debug"),
        )

    def _normalize_model(self, raw: Any) -> Optional[str]:
        if raw is None:
            return None
        if not isinstance(raw, str):
            self._warn_invalid("model", raw)
            return DEFAULT_CONFIG["model"]
        cleaned = raw.strip()
        if not cleaned or cleaned.lower() == "default":
            return None
        return cleaned

    def _normalize_tools(self, raw: Any) -> Optional[list[str]]:
        if raw is None:
            return None
        if isinstance(raw, str):
            parts = raw.replace(",", " ").split()
            return parts or None
        if isinstance(raw, (list, tuple)):
            tools = [str(item).strip() for item in raw if str(item).strip()]
            return tools or None
        self._warn_invalid("allowed_tools", raw)
        return None

    def _normalize_binary(self, raw: Any) -> str:
        if isinstance(raw, str) and raw.strip():
            return raw.strip()
        if raw is not None:
            self._warn_invalid("binary", raw)
        return DEFAULT_CONFIG["binary"]

    def _resolve_skills_dir(self, raw: Any) -> Path:
        if not isinstance(raw, str) or not raw.strip():
            return self.paths.skills_dir
        path = Path(raw.strip()).expanduser()
        if not path.is_absolute():
            path = self.paths.root / path
        return path

    def _env_settings(self) -> Dict[str, Any]:
        env: Dict[str, Any] = {}
        mapping = {
            "ARNIE_MODEL": "model",
            "ARNIE_ALLOW_TOOLS": "allow_tools",
            "ARNIE_SKIP_PERMISSIONS": "skip_permissions",
            "ARNIE_BINARY": "binary",
            "ARNIE_DEBUG": "debug",
        }
        for name, key in mapping.items():
            value = os.getenv(name)
            if value is not None:
                env[key] = value
        return env

    def _read_json(self, path: Path) -> Dict[str, Any]:
        if not path.exists():
            return {}
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            self.console.print(
                f"[red]Failed to parse JSON config at {path}. Using defaults.[/red]"
            )
            log_warn("config", "config.parse_failed", {"path": str(path)})
            return {}
        if not isinstance(data, dict):
            self.console.print(
                f"[yellow]Ignoring {path}: expected an object.[/yellow]"
            )
            return {}
        return data

    def _to_bool(self, key: str, value: Any) -> bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            cleaned = value.strip().lower()
            if cleaned in TRUE_VALUES:
                return True
            if cleaned in FALSE_VALUES:
                return False
        self._warn_invalid(key, value)
        return bool(DEFAULT_CONFIG[key])

    def _to_int(self, key: str, value: Any) -> int:
        if isinstance(value, bool):
            self._warn_invalid(key, value)
            return int(DEFAULT_CONFIG[key])
        try:
            number = int(value)
        except (TypeError, ValueError):
            self._warn_invalid(key, value)
            return int(DEFAULT_CONFIG[key])
        if number <= 0:
            self._warn_invalid(key, value)
            return int(DEFAULT_CONFIG[key])
        return number

    def _to_float(self, key: str, value: Any) -> float:
        if isinstance(value, bool):
            self._warn_invalid(key, value)
            return float(DEFAULT_CONFIG[key])
        try:
            number = float(value)
        except (TypeError, ValueError):
            self._warn_invalid(key, value)
            return float(DEFAULT_CONFIG[key])
        if number < 0:
            self._warn_invalid(key, value)
            return float(DEFAULT_CONFIG[key])
        return number

    def _warn_invalid(self, key: str, value: Any) -> None:
        self.console.print(
            f"[yellow]Ignoring invalid value for {key}: {value!r}. Using default.[/yellow]"
        )
        log_warn("config", "config.invalid_value", {"key": key, "value": repr(value)})
