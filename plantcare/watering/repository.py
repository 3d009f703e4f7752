"""
Storage contract for plant instances and their watering events.

The ledger and collection service depend only on ``WateringRepository``;
``MongoWateringRepository`` and ``InMemoryWateringRepository`` both satisfy it
structurally.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncContextManager, AsyncIterator, Dict, List, Optional, Protocol, runtime_checkable

from plantcare.plants.models import PlantInstance
from plantcare.watering.models import WateringEvent


def history_sort_key(event: WateringEvent):
    """Sort key for most-recent-first ordering (use with ``reverse=True``).

    Same-day events fall back to the order they were recorded in; the id
    only breaks exact ``recorded_at`` ties.
    """
    return (event.watered_at, event.recorded_at, event.id)


class KeyedLocks:
    """One ``asyncio.Lock`` per key; different keys never contend.

    A key's lock lives only while some coroutine holds or waits for it.
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if not self._users[key]:
                del self._users[key]
                del self._locks[key]


@runtime_checkable
class WateringRepository(Protocol):
    """Persistence for plant instances and watering events."""

    def transaction(self, plant_instance_id: str) -> AsyncContextManager[None]:
        """Critical section for all writes to one plant instance and its events."""
        ...

    # Plant instances

    async def get_plant(self, plant_instance_id: str) -> Optional[PlantInstance]:
        ...

    async def list_plants(self) -> List[PlantInstance]:
        ...

    async def insert_plant(self, fields: Dict[str, Any]) -> PlantInstance:
        ...

    async def update_plant(self, plant_instance_id: str, fields: Dict[str, Any]) -> Optional[PlantInstance]:
        ...

    async def delete_plant(self, plant_instance_id: str) -> bool:
        """Delete a plant instance together with its watering events."""
        ...

    # Watering events

    async def insert_event(
        self,
        plant_instance_id: str,
        watered_at: datetime,
        notes: str,
        recorded_at: datetime,
    ) -> WateringEvent:
        ...

    async def get_event(self, event_id: str) -> Optional[WateringEvent]:
        ...

    async def update_event(self, event_id: str, fields: Dict[str, Any]) -> Optional[WateringEvent]:
        ...

    async def delete_event(self, event_id: str) -> bool:
        ...

    async def latest_event(self, plant_instance_id: str) -> Optional[WateringEvent]:
        """Most recent event by ``watered_at`` desc, then ``recorded_at`` desc."""
        ...

    async def list_events(self, plant_instance_id: str) -> List[WateringEvent]:
        """All events of a plant, most recent first."""
        ...
