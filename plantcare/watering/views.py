"""Watering event API routes (edit / delete history entries)."""

from fastapi import APIRouter, Depends

from plantcare.core.dependencies import get_ledger, get_plant_service
from plantcare.plants.models import PlantResponse, WateringResponse
from plantcare.plants.service import PlantService
from plantcare.watering.ledger import WateringLedger
from plantcare.watering.models import WateringEventUpdate


router = APIRouter(prefix="/watering-events", tags=["Watering"])


@router.patch("/{event_id}", response_model=WateringResponse)
async def edit_watering_event(
    event_id: str,
    updates: WateringEventUpdate,
    ledger: WateringLedger = Depends(get_ledger),
    service: PlantService = Depends(get_plant_service),
):
    """Change the date and/or notes of a watering; the plant's schedule is recomputed."""
    event = await ledger.edit(event_id, watered_at=updates.watered_at, notes=updates.notes)
    plant = await service.get_plant(event.plant_instance_id)
    return WateringResponse(watering_record=event, plant=service.to_response(plant))


@router.delete("/{event_id}", response_model=PlantResponse)
async def delete_watering_event(
    event_id: str,
    ledger: WateringLedger = Depends(get_ledger),
    service: PlantService = Depends(get_plant_service),
):
    """
    Delete a watering and return the plant with its recomputed schedule.

    Deleting the only watering leaves the plant in the "unknown" state.
    """
    plant = await ledger.remove(event_id)
    return service.to_response(plant)
