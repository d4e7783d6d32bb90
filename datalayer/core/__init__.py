"""Core: configuration and shared constants."""

from datalayer.core.config import Settings, get_settings

__all__ = ["Settings", "get_settings"]
