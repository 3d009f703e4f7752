"""Plant service - plant collection CRUD and status views."""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Callable, Dict, List, Optional

from plantcare.core.exceptions import NotFoundException
from plantcare.plants.care_utils import clean_text, coerce_frequency, coerce_instant, to_storage_precision
from plantcare.plants.models import PlantCreate, PlantInstance, PlantResponse, PlantUpdate
from plantcare.watering.ledger import WateringLedger
from plantcare.watering.models import WateringStatus
from plantcare.watering.repository import WateringRepository
from plantcare.watering.status_engine import classify_plant, filter_by_status, summarize

logger = logging.getLogger(__name__)

INITIAL_WATERING_NOTE = "Initial watering record"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class PlantService:
    """Handles the plant collection; schedule fields are delegated to the ledger."""

    def __init__(
        self,
        repository: WateringRepository,
        ledger: Optional[WateringLedger] = None,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self._repo = repository
        self._clock = clock
        self._ledger = ledger or WateringLedger(repository, clock=clock)

    def today(self) -> date:
        return coerce_instant(self._clock()).date()

    # ==================== Collection CRUD ====================

    async def create_plant(self, plant_data: PlantCreate) -> PlantInstance:
        """
        Add a plant to the collection.

        The plant starts with one synthetic watering event dated to the supplied
        `last_watered` (or now), so its schedule is known from day one. If that
        event cannot be recorded the plant is removed again.
        """
        frequency = coerce_frequency(plant_data.watering_frequency_days)
        now = to_storage_precision(coerce_instant(self._clock()))
        last_watered = coerce_instant(plant_data.last_watered, default=now)

        plant = await self._repo.insert_plant({
            "plant_id": clean_text(plant_data.plant_id),
            "nickname": clean_text(plant_data.nickname),
            "location": clean_text(plant_data.location),
            "notes": clean_text(plant_data.notes),
            "image_url": clean_text(plant_data.image_url),
            "watering_frequency_days": frequency,
            "last_watered": None,
            "next_water_date": None,
            "needs_initial_watering": True,
            "created_at": now,
        })

        try:
            await self._ledger.record(plant.id, watered_at=last_watered, notes=INITIAL_WATERING_NOTE)
        except Exception:
            logger.error(f"Seeding first watering of plant {plant.id} failed; removing it")
            async with self._repo.transaction(plant.id):
                await self._repo.delete_plant(plant.id)
            raise
        logger.info(f"Added plant {plant.id} ({plant.nickname or plant.plant_id}) every {frequency} day(s)")

        return await self.get_plant(plant.id)

    async def get_plant(self, plant_instance_id: str) -> PlantInstance:
        """Get a specific plant by ID."""
        plant = await self._repo.get_plant(plant_instance_id)
        if not plant:
            raise NotFoundException("Plant not found")
        return plant

    async def list_plants(self) -> List[PlantInstance]:
        """Get all plants, newest first."""
        return await self._repo.list_plants()

    async def update_plant(self, plant_instance_id: str, updates: PlantUpdate) -> PlantInstance:
        """Update descriptive fields and, optionally, the watering frequency."""
        fields = updates.model_dump(exclude_unset=True)
        frequency = fields.pop("watering_frequency_days", None)

        text_fields = {k: clean_text(v) for k, v in fields.items()}
        if text_fields:
            async with self._repo.transaction(plant_instance_id):
                if not await self._repo.update_plant(plant_instance_id, text_fields):
                    raise NotFoundException("Plant not found")

        if frequency is not None:
            return await self._ledger.change_frequency(plant_instance_id, frequency)
        return await self.get_plant(plant_instance_id)

    async def delete_plant(self, plant_instance_id: str) -> bool:
        """Delete a plant and its watering history."""
        async with self._repo.transaction(plant_instance_id):
            deleted = await self._repo.delete_plant(plant_instance_id)
        if not deleted:
            raise NotFoundException("Plant not found")

        logger.info(f"Deleted plant {plant_instance_id}")
        return True

    # ==================== Status Views ====================

    async def plants_with_status(self, status: WateringStatus) -> List[PlantInstance]:
        """Plants currently classified as `status` (e.g. the needs-water list)."""
        return filter_by_status(await self._repo.list_plants(), status, self.today())

    async def status_summary(self) -> Dict[WateringStatus, int]:
        """Number of plants per watering status."""
        return summarize(await self._repo.list_plants(), self.today())

    def to_response(self, plant: PlantInstance) -> PlantResponse:
        """Attach the computed watering status to a plant."""
        water_status = classify_plant(plant, self.today())
        return PlantResponse(
            **plant.model_dump(),
            status=water_status.status,
            percent_remaining=water_status.percent_remaining,
            days_until_next=water_status.days_until_next,
            display_text=water_status.display_text,
        )
