"""MongoDB-backed repository for plant instances and watering events."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from contextvars import ContextVar
from datetime import datetime
from typing import Any, AsyncIterator, Dict, List, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorClientSession, AsyncIOMotorDatabase
from pymongo import DESCENDING, ReturnDocument

from plantcare.plants.models import PlantInstance
from plantcare.watering.models import WateringEvent
from plantcare.watering.repository import KeyedLocks

logger = logging.getLogger(__name__)

# Session of the enclosing transaction(), if any; picked up by every call below.
_session: ContextVar[Optional[AsyncIOMotorClientSession]] = ContextVar("_session", default=None)

HISTORY_SORT = [("watered_at", DESCENDING), ("recorded_at", DESCENDING), ("_id", DESCENDING)]


def _object_id(id_str: str) -> Optional[ObjectId]:
    """Malformed ids can never match a document; treat them as missing."""
    if not ObjectId.is_valid(id_str):
        return None
    return ObjectId(id_str)


class MongoWateringRepository:
    """Stores plant instances in `plant_instances` and events in `watering_events`."""

    PLANTS_COLLECTION = "plant_instances"
    EVENTS_COLLECTION = "watering_events"

    def __init__(self, db: AsyncIOMotorDatabase, use_transactions: bool = False):
        self._db = db
        self._use_transactions = use_transactions
        self._locks = KeyedLocks()

    @property
    def db(self) -> AsyncIOMotorDatabase:
        return self._db

    def _plants(self):
        return self._db[self.PLANTS_COLLECTION]

    def _events(self):
        return self._db[self.EVENTS_COLLECTION]

    @asynccontextmanager
    async def transaction(self, plant_instance_id: str) -> AsyncIterator[None]:
        """
        Serialize writers of one plant instance.

        The in-process lock covers a single API worker. With
        MONGO_USE_TRANSACTIONS the block also runs in a multi-document
        transaction so a failed recompute rolls the event write back.
        """
        async with self._locks.hold(plant_instance_id):
            if not self._use_transactions:
                yield
                return

            async with await self._db.client.start_session() as session:
                async with session.start_transaction():
                    token = _session.set(session)
                    try:
                        yield
                    finally:
                        _session.reset(token)

    # ==================== Plant Instances ====================

    async def get_plant(self, plant_instance_id: str) -> Optional[PlantInstance]:
        object_id = _object_id(plant_instance_id)
        if object_id is None:
            return None
        doc = await self._plants().find_one({"_id": object_id}, session=_session.get())
        return self._doc_to_plant(doc) if doc else None

    async def list_plants(self) -> List[PlantInstance]:
        cursor = self._plants().find({}, session=_session.get()).sort("created_at", DESCENDING)
        return [self._doc_to_plant(doc) async for doc in cursor]

    async def insert_plant(self, fields: Dict[str, Any]) -> PlantInstance:
        doc = dict(fields)
        result = await self._plants().insert_one(doc, session=_session.get())
        doc["_id"] = result.inserted_id
        return self._doc_to_plant(doc)

    async def update_plant(self, plant_instance_id: str, fields: Dict[str, Any]) -> Optional[PlantInstance]:
        object_id = _object_id(plant_instance_id)
        if object_id is None:
            return None
        doc = await self._plants().find_one_and_update(
            {"_id": object_id},
            {"$set": fields},
            return_document=ReturnDocument.AFTER,
            session=_session.get(),
        )
        return self._doc_to_plant(doc) if doc else None

    async def delete_plant(self, plant_instance_id: str) -> bool:
        object_id = _object_id(plant_instance_id)
        if object_id is None:
            return False
        session = _session.get()
        result = await self._plants().delete_one({"_id": object_id}, session=session)
        if result.deleted_count == 0:
            return False
        events = await self._events().delete_many({"plant_instance_id": plant_instance_id}, session=session)
        logger.debug(f"Removed {events.deleted_count} watering events of plant {plant_instance_id}")
        return True

    # ==================== Watering Events ====================

    async def insert_event(
        self,
        plant_instance_id: str,
        watered_at: datetime,
        notes: str,
        recorded_at: datetime,
    ) -> WateringEvent:
        doc = {
            "plant_instance_id": plant_instance_id,
            "watered_at": watered_at,
            "notes": notes,
            "recorded_at": recorded_at,
        }
        result = await self._events().insert_one(doc, session=_session.get())
        doc["_id"] = result.inserted_id
        return self._doc_to_event(doc)

    async def get_event(self, event_id: str) -> Optional[WateringEvent]:
        object_id = _object_id(event_id)
        if object_id is None:
            return None
        doc = await self._events().find_one({"_id": object_id}, session=_session.get())
        return self._doc_to_event(doc) if doc else None

    async def update_event(self, event_id: str, fields: Dict[str, Any]) -> Optional[WateringEvent]:
        object_id = _object_id(event_id)
        if object_id is None:
            return None
        doc = await self._events().find_one_and_update(
            {"_id": object_id},
            {"$set": fields},
            return_document=ReturnDocument.AFTER,
            session=_session.get(),
        )
        return self._doc_to_event(doc) if doc else None

    async def delete_event(self, event_id: str) -> bool:
        object_id = _object_id(event_id)
        if object_id is None:
            return False
        result = await self._events().delete_one({"_id": object_id}, session=_session.get())
        return result.deleted_count > 0

    async def latest_event(self, plant_instance_id: str) -> Optional[WateringEvent]:
        cursor = self._events().find(
            {"plant_instance_id": plant_instance_id}, session=_session.get()
        ).sort(HISTORY_SORT).limit(1)
        docs = await cursor.to_list(length=1)
        return self._doc_to_event(docs[0]) if docs else None

    async def list_events(self, plant_instance_id: str) -> List[WateringEvent]:
        cursor = self._events().find(
            {"plant_instance_id": plant_instance_id}, session=_session.get()
        ).sort(HISTORY_SORT)
        return [self._doc_to_event(doc) async for doc in cursor]

    # ==================== Helpers ====================

    @staticmethod
    def _doc_to_plant(doc: dict) -> PlantInstance:
        """Convert MongoDB document to PlantInstance."""
        return PlantInstance(
            id=str(doc["_id"]),
            plant_id=doc.get("plant_id"),
            nickname=doc.get("nickname"),
            location=doc.get("location"),
            notes=doc.get("notes"),
            image_url=doc.get("image_url"),
            watering_frequency_days=max(1, int(doc.get("watering_frequency_days") or 1)),
            last_watered=doc.get("last_watered"),
            next_water_date=doc.get("next_water_date"),
            needs_initial_watering=bool(doc.get("needs_initial_watering", False)),
            created_at=doc["created_at"],
        )

    @staticmethod
    def _doc_to_event(doc: dict) -> WateringEvent:
        """Convert MongoDB document to WateringEvent."""
        return WateringEvent(
            id=str(doc["_id"]),
            plant_instance_id=doc["plant_instance_id"],
            watered_at=doc["watered_at"],
            notes=doc.get("notes") or "",
            recorded_at=doc.get("recorded_at") or doc["watered_at"],
        )
