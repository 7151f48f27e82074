"""Storage modules for NyxGuard."""

from .database import Database, StorageError
from .settings import Settings, SettingsStore, normalize_settings

__all__ = ["Database", "StorageError", "Settings", "SettingsStore", "normalize_settings"]
