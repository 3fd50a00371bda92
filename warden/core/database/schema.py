"""
Database Schema Module
======================

Table definitions for the guild config store.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from warden.core.database.manager import DatabaseManager


class SchemaMixin:
    """Mixin for database schema initialization."""

    def _init_tables(self: "DatabaseManager") -> None:
        """Create tables if they do not exist, allowing safe restarts."""
        conn = self._ensure_connection()
        cursor = conn.cursor()

        # -----------------------------------------------------------------
        # Guild Config Table
        # DESIGN: One JSON document per guild, patched by deep merge
        # -----------------------------------------------------------------
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS guild_config (
                guild_id INTEGER PRIMARY KEY,
                data TEXT NOT NULL,
                updated_at REAL NOT NULL
            )
        """)

        # -----------------------------------------------------------------
        # Security Events Table
        # DESIGN: Audit trail of panic transitions and remediation
        # -----------------------------------------------------------------
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS security_events (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                guild_id INTEGER NOT NULL,
                event_type TEXT NOT NULL,
                detail TEXT,
                created_at REAL NOT NULL
            )
        """)
        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_security_events_guild "
            "ON security_events(guild_id, created_at)"
        )

        conn.commit()


__all__ = ["SchemaMixin"]
