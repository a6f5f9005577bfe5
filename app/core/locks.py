from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Tuple

import structlog

logger = structlog.get_logger()


class ProjectLocks:
    """Keyed asyncio locks, one per project id.

    Holding a project's lock serializes assistant lookup, thread rotation and
    the message/run exchange for that project. Locks are not reentrant. An
    entry lives only while someone holds or waits for it.
    """

    def __init__(self, enabled: bool = True) -> None:
        self.enabled = enabled
        # project_id -> (lock, holders and waiters)
        self._locks: Dict[str, Tuple[asyncio.Lock, int]] = {}

    def _acquire_entry(self, project_id: str) -> asyncio.Lock:
        lock, users = self._locks.get(project_id, (None, 0))
        if lock is None:
            lock = asyncio.Lock()
        self._locks[project_id] = (lock, users + 1)
        return lock

    def _release_entry(self, project_id: str) -> None:
        lock, users = self._locks[project_id]
        if users <= 1:
            del self._locks[project_id]
        else:
            self._locks[project_id] = (lock, users - 1)

    def is_locked(self, project_id: str) -> bool:
        entry = self._locks.get(project_id)
        return bool(entry and entry[0].locked())

    def tracked(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, project_id: str) -> AsyncIterator[None]:
        if not self.enabled:
            yield
            return
        lock = self._acquire_entry(project_id)
        try:
            if lock.locked():
                logger.info("Waiting for project session lock", project_id=project_id)
            async with lock:
                yield
        finally:
            self._release_entry(project_id)
