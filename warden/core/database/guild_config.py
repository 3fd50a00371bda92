"""
Warden - Database Guild Config Operations
=========================================

Whole-document reads and writes of per-guild configuration, plus the
security event audit trail.
"""

import json
import time
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from warden.core.logger import logger

if TYPE_CHECKING:
    from warden.core.database.manager import DatabaseManager


# =============================================================================
# Helper Functions
# =============================================================================

def _safe_json_loads(value: Optional[str], default: Any = None) -> Any:
    """Safely parse JSON, returning default on error."""
    if not value:
        return default if default is not None else {}
    try:
        return json.loads(value)
    except (json.JSONDecodeError, ValueError):
        logger.warning(f"Corrupted JSON in database: {value[:50] if len(value) > 50 else value}")
        return default if default is not None else {}


def deep_merge(base: Dict[str, Any], patch: Dict[str, Any]) -> Dict[str, Any]:
    """
    Merge patch into base in place and return base.

    Nested dicts are merged key by key. Any other value, lists included,
    replaces what was there.
    """
    for key, value in patch.items():
        current = base.get(key)
        if isinstance(value, dict) and isinstance(current, dict):
            deep_merge(current, value)
        elif isinstance(value, dict):
            base[key] = deep_merge({}, value)
        else:
            base[key] = value
    return base


# =============================================================================
# Mixin
# =============================================================================

class GuildConfigMixin:
    """Mixin for guild config document operations."""

    def get_guild_document(self: "DatabaseManager", guild_id: int) -> Dict[str, Any]:
        """
        Load a guild's config document.

        Returns:
            The stored document, or an empty dict for unknown guilds.
        """
        row = self.fetchone("SELECT data FROM guild_config WHERE guild_id = ?", (guild_id,))
        if not row:
            return {}
        data = _safe_json_loads(row["data"], {})
        return data if isinstance(data, dict) else {}

    def put_guild_document(self: "DatabaseManager", guild_id: int, data: Dict[str, Any]) -> None:
        """Replace a guild's config document."""
        self.execute(
            "INSERT OR REPLACE INTO guild_config (guild_id, data, updated_at) VALUES (?, ?, ?)",
            (guild_id, json.dumps(data), time.time())
        )

    def patch_guild_document(
        self: "DatabaseManager",
        guild_id: int,
        patch: Dict[str, Any],
    ) -> Dict[str, Any]:
        """
        Deep-merge a patch into a guild's document atomically.

        Returns:
            The merged document.
        """
        with self.transaction() as tx:
            tx.execute("SELECT data FROM guild_config WHERE guild_id = ?", (guild_id,))
            row = tx.fetchone()
            current = _safe_json_loads(row["data"], {}) if row else {}
            if not isinstance(current, dict):
                current = {}
            merged = deep_merge(current, patch)
            tx.execute(
                "INSERT OR REPLACE INTO guild_config (guild_id, data, updated_at) VALUES (?, ?, ?)",
                (guild_id, json.dumps(merged), time.time())
            )
        return merged

    def list_guild_ids(self: "DatabaseManager") -> List[int]:
        """Return every guild with a stored document."""
        rows = self.fetchall("SELECT guild_id FROM guild_config")
        return [row["guild_id"] for row in rows]

    # =========================================================================
    # Security Events
    # =========================================================================

    def add_security_event(
        self: "DatabaseManager",
        guild_id: int,
        event_type: str,
        detail: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.execute(
            "INSERT INTO security_events (guild_id, event_type, detail, created_at) VALUES (?, ?, ?, ?)",
            (guild_id, event_type, json.dumps(detail or {}), time.time())
        )

    def get_security_events(
        self: "DatabaseManager",
        guild_id: int,
        limit: int = 50,
    ) -> List[Dict[str, Any]]:
        """Return the most recent security events for a guild, newest first."""
        rows = self.fetchall(
            """SELECT event_type, detail, created_at FROM security_events
               WHERE guild_id = ? ORDER BY created_at DESC, id DESC LIMIT ?""",
            (guild_id, limit)
        )
        return [
            {
                "event_type": row["event_type"],
                "detail": _safe_json_loads(row["detail"], {}),
                "created_at": row["created_at"],
            }
            for row in rows
        ]


__all__ = ["GuildConfigMixin", "deep_merge", "_safe_json_loads"]
