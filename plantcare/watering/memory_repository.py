"""Process-local repository, used for tests and STORAGE_BACKEND=memory."""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, Dict, List, Optional

from bson import ObjectId

from plantcare.plants.models import PlantInstance
from plantcare.watering.models import WateringEvent
from plantcare.watering.repository import KeyedLocks, history_sort_key


class InMemoryWateringRepository:
    """Keeps plants and events in dicts. Returned models are copies."""

    def __init__(self):
        self._plants: Dict[str, PlantInstance] = {}
        self._events: Dict[str, WateringEvent] = {}
        self._locks = KeyedLocks()

    @asynccontextmanager
    async def transaction(self, plant_instance_id: str) -> AsyncIterator[None]:
        async with self._locks.hold(plant_instance_id):
            yield

    # ==================== Plant Instances ====================

    async def get_plant(self, plant_instance_id: str) -> Optional[PlantInstance]:
        plant = self._plants.get(plant_instance_id)
        return plant.model_copy() if plant else None

    async def list_plants(self) -> List[PlantInstance]:
        plants = sorted(self._plants.values(), key=lambda p: p.created_at, reverse=True)
        return [p.model_copy() for p in plants]

    async def insert_plant(self, fields: Dict[str, Any]) -> PlantInstance:
        plant = PlantInstance(id=str(ObjectId()), **fields)
        self._plants[plant.id] = plant
        return plant.model_copy()

    async def update_plant(self, plant_instance_id: str, fields: Dict[str, Any]) -> Optional[PlantInstance]:
        plant = self._plants.get(plant_instance_id)
        if plant is None:
            return None
        updated = plant.model_copy(update=fields)
        self._plants[plant_instance_id] = updated
        return updated.model_copy()

    async def delete_plant(self, plant_instance_id: str) -> bool:
        if self._plants.pop(plant_instance_id, None) is None:
            return False
        for event_id in [e.id for e in self._events.values() if e.plant_instance_id == plant_instance_id]:
            del self._events[event_id]
        return True

    # ==================== Watering Events ====================

    async def insert_event(
        self,
        plant_instance_id: str,
        watered_at: datetime,
        notes: str,
        recorded_at: datetime,
    ) -> WateringEvent:
        event = WateringEvent(
            id=str(ObjectId()),
            plant_instance_id=plant_instance_id,
            watered_at=watered_at,
            notes=notes,
            recorded_at=recorded_at,
        )
        self._events[event.id] = event
        return event.model_copy()

    async def get_event(self, event_id: str) -> Optional[WateringEvent]:
        event = self._events.get(event_id)
        return event.model_copy() if event else None

    async def update_event(self, event_id: str, fields: Dict[str, Any]) -> Optional[WateringEvent]:
        event = self._events.get(event_id)
        if event is None:
            return None
        updated = event.model_copy(update=fields)
        self._events[event_id] = updated
        return updated.model_copy()

    async def delete_event(self, event_id: str) -> bool:
        return self._events.pop(event_id, None) is not None

    async def latest_event(self, plant_instance_id: str) -> Optional[WateringEvent]:
        events = await self.list_events(plant_instance_id)
        return events[0] if events else None

    async def list_events(self, plant_instance_id: str) -> List[WateringEvent]:
        events = [e for e in self._events.values() if e.plant_instance_id == plant_instance_id]
        events.sort(key=history_sort_key, reverse=True)
        return [e.model_copy() for e in events]
