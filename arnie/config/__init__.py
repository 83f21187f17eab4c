"""Configuration package."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .manager import ArnieSettings, ConfigManager
    from .paths import ArniePaths

__all__ = ["ConfigManager", "ArnieSettings", "ArniePaths"]


def __getattr__(name: str) -> Any:
    if name in {"ConfigManager", "ArnieSettings"}:
        from .manager import ArnieSettings, ConfigManager

        return {"ConfigManager": ConfigManager, "ArnieSettings": ArnieSettings}[name]
    if name == "ArniePaths":
        from .paths import ArniePaths

        return ArniePaths
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
