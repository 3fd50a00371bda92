"""
Warden - Guild Config Store
===========================

Per-guild configuration documents consumed by the security core.

DESIGN:
    load_config() returns the whole document and raises ConfigUnavailable
    on failure. save_config() deep-merges a partial patch and returns the
    merged document, or None when the write failed; callers must not
    assume success.

    Read-modify-write updates (counters, introduced users, trust scores)
    go through mutate(), which holds a per-guild asyncio.Lock across the
    read and the write so that concurrent handlers for one guild cannot
    lose each other's updates.
"""

import asyncio
import copy
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Iterable, Optional, Sequence

from warden.core.database import DatabaseManager, deep_merge
from warden.core.errors import ConfigUnavailable
from warden.core.logger import logger


Document = Dict[str, Any]
PatchBuilder = Callable[[Document], Optional[Document]]


# =============================================================================
# Document Helpers
# =============================================================================

def get_path(doc: Document, path: Sequence[str], default: Any = None) -> Any:
    """Read a nested value, returning default if any segment is missing."""
    node: Any = doc
    for key in path:
        if not isinstance(node, dict) or key not in node:
            return default
        node = node[key]
    return node


def build_patch(path: Sequence[str], value: Any) -> Document:
    """Wrap value in nested dicts along path."""
    patch: Any = value
    for key in reversed(path):
        patch = {key: patch}
    return patch


# =============================================================================
# Store Interface
# =============================================================================

class ConfigStore(ABC):
    """Guild configuration store."""

    def __init__(self) -> None:
        self._locks: Dict[int, asyncio.Lock] = {}

    @abstractmethod
    async def load_config(self, guild_id: int) -> Document:
        """
        Load the guild's document.

        Raises:
            ConfigUnavailable: If the store cannot be read.
        """

    @abstractmethod
    async def save_config(self, guild_id: int, patch: Document) -> Optional[Document]:
        """Deep-merge patch into the guild's document. Returns None on failure."""

    async def record_event(
        self,
        guild_id: int,
        event_type: str,
        detail: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Append to the guild's security audit trail, if the store keeps one."""
        return None

    def guild_ids(self) -> Iterable[int]:
        """Guilds with a stored document."""
        return []

    # =========================================================================
    # Serialized Updates
    # =========================================================================

    def _lock_for(self, guild_id: int) -> asyncio.Lock:
        lock = self._locks.get(guild_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[guild_id] = lock
        return lock

    async def mutate(self, guild_id: int, builder: PatchBuilder) -> Optional[Document]:
        """
        Serialized read-modify-write for one guild.

        builder receives a private copy of the current document and returns
        the patch to save, or None to skip the write.

        Returns:
            The merged document, or None if nothing was written or the
            store failed.
        """
        async with self._lock_for(guild_id):
            try:
                current = await self.load_config(guild_id)
            except ConfigUnavailable as e:
                logger.warning("Config Mutation Skipped", [
                    ("Guild ID", str(guild_id)),
                    ("Reason", str(e)[:100]),
                ])
                return None

            patch = builder(copy.deepcopy(current))
            if not patch:
                return None

            result = await self.save_config(guild_id, patch)
            if result is None:
                logger.warning("Config Mutation Not Saved", [
                    ("Guild ID", str(guild_id)),
                    ("Keys", ", ".join(patch.keys())),
                ])
            return result

    async def increment(
        self,
        guild_id: int,
        path: Sequence[str],
        amounts: Dict[str, int],
    ) -> Optional[Document]:
        """Add amounts to integer fields of the dict at path."""
        def builder(doc: Document) -> Document:
            section = get_path(doc, path, {})
            if not isinstance(section, dict):
                section = {}
            updated = {}
            for field, amount in amounts.items():
                current = section.get(field, 0)
                if not isinstance(current, int) or isinstance(current, bool):
                    current = 0
                updated[field] = current + amount
            return build_patch(path, updated)

        return await self.mutate(guild_id, builder)


# =============================================================================
# SQLite Store
# =============================================================================

class SqliteConfigStore(ConfigStore):
    """ConfigStore backed by the guild_config table."""

    def __init__(self, db: DatabaseManager) -> None:
        super().__init__()
        self.db = db

    async def load_config(self, guild_id: int) -> Document:
        try:
            return self.db.get_guild_document(guild_id)
        except Exception as e:
            raise ConfigUnavailable(guild_id, f"load failed: {type(e).__name__}") from e

    async def save_config(self, guild_id: int, patch: Document) -> Optional[Document]:
        try:
            return self.db.patch_guild_document(guild_id, patch)
        except Exception as e:
            logger.error("Config Save Failed", [
                ("Guild ID", str(guild_id)),
                ("Error", str(e)[:100]),
                ("Type", type(e).__name__),
            ])
            return None

    async def record_event(
        self,
        guild_id: int,
        event_type: str,
        detail: Optional[Dict[str, Any]] = None,
    ) -> None:
        try:
            self.db.add_security_event(guild_id, event_type, detail)
        except Exception as e:
            logger.warning("Security Event Not Recorded", [
                ("Guild ID", str(guild_id)),
                ("Event", event_type),
                ("Error", str(e)[:100]),
            ])

    def guild_ids(self) -> Iterable[int]:
        return self.db.list_guild_ids()


# =============================================================================
# In-Memory Store
# =============================================================================

class MemoryConfigStore(ConfigStore):
    """
    ConfigStore held in process memory.

    Nothing is persisted across restarts. Used in tests.
    """

    def __init__(self, documents: Optional[Dict[int, Document]] = None) -> None:
        super().__init__()
        self.documents: Dict[int, Document] = copy.deepcopy(documents) if documents else {}
        self.events: Dict[int, list] = {}

    async def load_config(self, guild_id: int) -> Document:
        return copy.deepcopy(self.documents.get(guild_id, {}))

    async def save_config(self, guild_id: int, patch: Document) -> Optional[Document]:
        doc = self.documents.setdefault(guild_id, {})
        deep_merge(doc, copy.deepcopy(patch))
        return copy.deepcopy(doc)

    async def record_event(
        self,
        guild_id: int,
        event_type: str,
        detail: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.events.setdefault(guild_id, []).append((event_type, detail or {}))

    def guild_ids(self) -> Iterable[int]:
        return list(self.documents.keys())


__all__ = [
    "ConfigStore",
    "SqliteConfigStore",
    "MemoryConfigStore",
    "Document",
    "get_path",
    "build_patch",
]
