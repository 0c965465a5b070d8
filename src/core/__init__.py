from __future__ import annotations

from src.core.config import Settings, get_settings

__all__ = ["Settings", "get_settings"]
