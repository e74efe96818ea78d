"""In-memory Unit of Work"""
import logging
from typing import Optional

from domain.repositories import UnitOfWork
from infrastructure.repositories.in_memory_store import InMemoryStore

logger = logging.getLogger(__name__)


class InMemoryUnitOfWork(UnitOfWork):
    """Serializes multi-record writes and rolls them back on failure.

    Entering takes the store lock and snapshots every table; an exception
    inside the block restores the snapshot before the lock is released.
    Units of work are not re-entrant.
    """

    def __init__(self, store: InMemoryStore):
        self._store = store
        self._snapshot: Optional[dict] = None

    async def __aenter__(self) -> "InMemoryUnitOfWork":
        await self._store.lock.acquire()
        self._snapshot = self._store.snapshot()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        try:
            if exc_type is not None and self._snapshot is not None:
                self._store.restore(self._snapshot)
                logger.warning("Rolled back unit of work after %s: %s", exc_type.__name__, exc)
        finally:
            self._snapshot = None
            self._store.lock.release()
        return False
