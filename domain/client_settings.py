# domain/client_settings.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass
class ClientSettings:
    """Transport-level options applied on the next client build. Last write wins."""

    proxy: Optional[str] = None
    user_agent: Optional[str] = None
    compression: bool = True

    def set_proxy(self, proxy: Optional[str]) -> "ClientSettings":
        self.proxy = proxy
        return self

    def set_user_agent(self, user_agent: Optional[str]) -> "ClientSettings":
        self.user_agent = user_agent
        return self

    def set_compression(self, enabled: bool) -> "ClientSettings":
        self.compression = bool(enabled)
        return self

    def enable_compression(self) -> "ClientSettings":
        return self.set_compression(True)

    def disable_compression(self) -> "ClientSettings":
        return self.set_compression(False)

    def is_compressed(self) -> bool:
        return self.compression
