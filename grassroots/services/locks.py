"""
Grassroots Hub Backend — Per-Scope Mutation Locks
===================================================

What:  One asyncio.Lock per trial list, so at most one ranking mutation per
       list is in flight inside this process.
How:   Locks are created on first use and dropped when the last holder or
       waiter leaves, so the map only holds lists currently being edited.

Scope of the guarantee:
    Serializes coroutines of one process (one uvicorn worker). Across workers
    and hosts the database does the same job: the row lock taken by
    TrialRepository.lock_list() on PostgreSQL, and the writer lock taken by
    BEGIN IMMEDIATE at the start of every SQLite transaction. This lock only
    keeps same-process requests from burning retries against each other.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Hashable


class ScopeLocks:
    def __init__(self) -> None:
        self._locks: Dict[Hashable, asyncio.Lock] = {}
        self._holders: Dict[Hashable, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    def is_locked(self, scope: Hashable) -> bool:
        lock = self._locks.get(scope)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, scope: Hashable) -> AsyncIterator[None]:
        """Wait for, then hold, the lock of `scope` for the body of the block."""
        lock = self._locks.setdefault(scope, asyncio.Lock())
        self._holders[scope] = self._holders.get(scope, 0) + 1
        try:
            async with lock:
                yield
        finally:
            # No await between the decrement and the pop: atomic on the event loop
            self._holders[scope] -= 1
            if self._holders[scope] == 0:
                del self._holders[scope]
                self._locks.pop(scope, None)
