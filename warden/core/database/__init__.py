"""
Warden - Database Module
========================

SQLite persistence for guild config documents.
"""

from warden.core.database.manager import DatabaseManager, get_db
from warden.core.database.guild_config import deep_merge, _safe_json_loads

__all__ = [
    "DatabaseManager",
    "get_db",
    "deep_merge",
    "_safe_json_loads",
]
