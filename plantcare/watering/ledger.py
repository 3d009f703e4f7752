"""Watering ledger - per-plant watering history and its cached schedule.

Every mutation (record, edit, delete, frequency change) runs inside the
repository's per-plant transaction and finishes with the same recompute step,
so a plant's `last_watered` / `next_water_date` always come from the most
recent surviving event.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Tuple, Union

from plantcare.core.exceptions import ConsistencyViolation, NotFoundException
from plantcare.plants.care_utils import coerce_frequency, coerce_instant, to_storage_precision
from plantcare.plants.models import PlantInstance
from plantcare.watering.models import WateringEvent
from plantcare.watering.repository import WateringRepository

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class WateringLedger:
    """Record, edit and delete watering events for plant instances."""

    def __init__(self, repository: WateringRepository, clock: Callable[[], datetime] = _utc_now):
        self._repo = repository
        self._clock = clock

    def _now(self) -> datetime:
        return to_storage_precision(coerce_instant(self._clock()))

    async def _require_plant(self, plant_instance_id: str) -> PlantInstance:
        plant = await self._repo.get_plant(plant_instance_id)
        if not plant:
            raise NotFoundException("Plant not found")
        return plant

    async def _require_event(self, event_id: str) -> WateringEvent:
        event = await self._repo.get_event(event_id)
        if not event:
            raise NotFoundException("Watering event not found")
        return event

    # ==================== Mutations ====================

    async def record(
        self,
        plant_instance_id: str,
        watered_at: Union[datetime, str, None] = None,
        notes: Optional[str] = "",
    ) -> WateringEvent:
        """Append a watering event (defaults to now) and refresh the plant's schedule."""
        async with self._repo.transaction(plant_instance_id):
            await self._require_plant(plant_instance_id)
            now = self._now()
            event = await self._repo.insert_event(
                plant_instance_id,
                watered_at=to_storage_precision(coerce_instant(watered_at, default=now)),
                notes=(notes or "").strip(),
                recorded_at=now,
            )
            await self._recompute(plant_instance_id)

        logger.info(f"Recorded watering {event.id} for plant {plant_instance_id} at {event.watered_at.isoformat()}")
        return event

    async def edit(
        self,
        event_id: str,
        watered_at: Union[datetime, str, None] = None,
        notes: Optional[str] = None,
    ) -> WateringEvent:
        """
        Update an event's date and/or notes; omitted fields are kept.

        The plant's schedule is rebuilt from all surviving events, since the
        edited event may become (or stop being) the most recent one.
        """
        event = await self._require_event(event_id)
        plant_instance_id = event.plant_instance_id

        fields = {}
        if watered_at is not None:
            fields["watered_at"] = to_storage_precision(coerce_instant(watered_at))
        if notes is not None:
            fields["notes"] = notes.strip()

        async with self._repo.transaction(plant_instance_id):
            if fields:
                updated = await self._repo.update_event(event_id, fields)
            else:
                updated = await self._repo.get_event(event_id)
            if not updated:
                raise NotFoundException("Watering event not found")
            await self._recompute(plant_instance_id)

        logger.info(f"Edited watering {event_id} of plant {plant_instance_id}: {sorted(fields)}")
        return updated

    async def delete(self, event_id: str) -> bool:
        """Remove an event. Deleting the last one puts the plant back to needs-initial-watering."""
        await self.remove(event_id)
        return True

    async def remove(self, event_id: str) -> PlantInstance:
        """Like `delete`, but returns the plant with its recomputed schedule."""
        event = await self._require_event(event_id)
        plant_instance_id = event.plant_instance_id

        async with self._repo.transaction(plant_instance_id):
            if not await self._repo.delete_event(event_id):
                raise NotFoundException("Watering event not found")
            plant = await self._recompute(plant_instance_id)

        logger.info(
            f"Deleted watering {event_id} of plant {plant_instance_id} "
            f"(needs_initial_watering={plant.needs_initial_watering})"
        )
        return plant

    async def change_frequency(self, plant_instance_id: str, days: Union[int, float, str]) -> PlantInstance:
        """Set a new watering frequency; next_water_date follows it."""
        frequency = coerce_frequency(days)
        async with self._repo.transaction(plant_instance_id):
            await self._require_plant(plant_instance_id)
            await self._repo.update_plant(plant_instance_id, {"watering_frequency_days": frequency})
            return await self._recompute(plant_instance_id)

    async def recompute_cache(self, plant_instance_id: str) -> PlantInstance:
        """Rebuild the plant's cached schedule from its surviving events."""
        async with self._repo.transaction(plant_instance_id):
            return await self._recompute(plant_instance_id)

    # ==================== Queries ====================

    async def history(self, plant_instance_id: str) -> Tuple[WateringEvent, ...]:
        """Events of a plant, most recent first (same-day events by recording order)."""
        await self._require_plant(plant_instance_id)
        return tuple(await self._repo.list_events(plant_instance_id))

    async def verify_cache(self, plant_instance_id: str) -> PlantInstance:
        """Raise ConsistencyViolation if the stored schedule disagrees with the history."""
        plant = await self._require_plant(plant_instance_id)
        latest = await self._repo.latest_event(plant_instance_id)
        self._check_cache(plant, latest)
        return plant

    # ==================== Helpers ====================

    async def _recompute(self, plant_instance_id: str) -> PlantInstance:
        """Scan-and-assign step. Caller holds the plant's transaction."""
        plant = await self._require_plant(plant_instance_id)
        latest = await self._repo.latest_event(plant_instance_id)
        frequency = plant.watering_frequency_days

        if latest is None:
            # Far enough back that the plant never reads as freshly watered.
            sentinel = self._now() - timedelta(days=frequency + 1)
            fields = {
                "needs_initial_watering": True,
                "last_watered": sentinel,
                "next_water_date": sentinel,
            }
        else:
            fields = {
                "needs_initial_watering": False,
                "last_watered": latest.watered_at,
                "next_water_date": latest.watered_at + timedelta(days=frequency),
            }

        updated = await self._repo.update_plant(plant_instance_id, fields)
        if not updated:
            raise NotFoundException("Plant not found")
        self._check_cache(updated, latest)

        logger.debug(
            f"Recomputed schedule of plant {plant_instance_id}: "
            f"last_watered={updated.last_watered} next_water_date={updated.next_water_date}"
        )
        return updated

    @staticmethod
    def _check_cache(plant: PlantInstance, latest: Optional[WateringEvent]) -> None:
        if latest is None:
            if not plant.needs_initial_watering:
                raise ConsistencyViolation(plant.id, "no watering events but needs_initial_watering is not set")
            return

        if plant.needs_initial_watering:
            raise ConsistencyViolation(plant.id, "has watering events but needs_initial_watering is set")
        if plant.last_watered != latest.watered_at:
            raise ConsistencyViolation(
                plant.id, f"last_watered {plant.last_watered} != latest event {latest.watered_at}"
            )
        expected_next = plant.last_watered + timedelta(days=plant.watering_frequency_days)
        if plant.next_water_date != expected_next:
            raise ConsistencyViolation(
                plant.id, f"next_water_date {plant.next_water_date} != {expected_next}"
            )
