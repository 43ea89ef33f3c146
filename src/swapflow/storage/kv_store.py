"""Persisted key/value storage.

Values are opaque JSON documents. The SQL store survives process restarts;
the memory store lives as long as the process.
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from swapflow.storage.models import KeyValueEntry

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """Abstract persisted key/value store."""

    @abstractmethod
    async def load(self, key: str) -> Optional[Any]:
        """Return the value stored under ``key``, or None if absent."""
        pass

    @abstractmethod
    async def save(self, value: Any, key: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""
        pass

    async def close(self) -> None:
        """Release resources held by the store."""
        pass


class MemoryKeyValueStore(KeyValueStore):
    """In-process store. Values are JSON round-tripped like the SQL store."""

    def __init__(self):
        self._data: dict[str, str] = {}

    async def load(self, key: str) -> Optional[Any]:
        raw = self._data.get(key)
        return json.loads(raw) if raw is not None else None

    async def save(self, value: Any, key: str) -> None:
        self._data[key] = json.dumps(value)

    def __contains__(self, key: str) -> bool:
        return key in self._data


class SqlKeyValueStore(KeyValueStore):
    """Key/value store backed by the ``key_value_entries`` table."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        engine: Optional[AsyncEngine] = None,
    ):
        self._session_factory = session_factory
        self._engine = engine

    async def load(self, key: str) -> Optional[Any]:
        async with self._session_factory() as session:
            stmt = select(KeyValueEntry).where(KeyValueEntry.key == key)
            result = await session.execute(stmt)
            entry = result.scalar_one_or_none()

        if entry is None:
            return None

        try:
            return json.loads(entry.value)
        except ValueError:
            logger.warning(f"Discarding unreadable value stored under '{key}'")
            return None

    async def save(self, value: Any, key: str) -> None:
        payload = json.dumps(value)
        async with self._session_factory() as session:
            try:
                stmt = select(KeyValueEntry).where(KeyValueEntry.key == key)
                result = await session.execute(stmt)
                entry = result.scalar_one_or_none()

                if entry is None:
                    session.add(KeyValueEntry(key=key, value=payload))
                else:
                    entry.value = payload

                await session.commit()
            except Exception:
                await session.rollback()
                raise
        logger.debug(f"Saved '{key}'")

    async def close(self) -> None:
        """Dispose the engine if this store owns one."""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
