from __future__ import annotations

from typing import Optional


class SessionStore:
    """Single slot holding the assistant's last continuation token."""

    def __init__(self, token: Optional[str] = None) -> None:
        self._token = token

    @property
    def token(self) -> Optional[str]:
        return self._token

    @property
    def has_token(self) -> bool:
        return bool(self._token)

    def set(self, token: str) -> None:
        self._token = token

    def clear(self) -> None:
        self._token = None

    def short(self, length: int = 8) -> str:
        if not self._token:
            return ""
        return f"{self._token[:length]}..."
