"""Plants API routes."""

from typing import List, Optional
from fastapi import APIRouter, Depends, status

from plantcare.core.dependencies import get_ledger, get_plant_service
from plantcare.plants.models import (
    PlantCreate,
    PlantUpdate,
    PlantResponse,
    StatusSummary,
    WateringResponse,
    WateringHistoryResponse,
)
from plantcare.plants.service import PlantService
from plantcare.watering.ledger import WateringLedger
from plantcare.watering.models import WateringEventCreate, WateringStatus


router = APIRouter(prefix="/plants", tags=["Plants"])
status_router = APIRouter(prefix="/plants-status", tags=["Plant Status"])


@router.post("", response_model=PlantResponse, status_code=status.HTTP_201_CREATED)
async def add_plant(
    plant_data: PlantCreate,
    service: PlantService = Depends(get_plant_service),
):
    """Add a plant to the collection; its first watering is recorded automatically."""
    plant = await service.create_plant(plant_data)
    return service.to_response(plant)


@router.get("", response_model=List[PlantResponse])
async def list_plants(service: PlantService = Depends(get_plant_service)):
    """Get all plants in the collection with their watering status."""
    return [service.to_response(p) for p in await service.list_plants()]


@router.get("/{plant_instance_id}", response_model=PlantResponse)
async def get_plant(
    plant_instance_id: str,
    service: PlantService = Depends(get_plant_service),
):
    """Get a specific plant from the collection."""
    return service.to_response(await service.get_plant(plant_instance_id))


@router.patch("/{plant_instance_id}", response_model=PlantResponse)
async def update_plant(
    plant_instance_id: str,
    updates: PlantUpdate,
    service: PlantService = Depends(get_plant_service),
):
    """Update nickname, location, notes, image_url or watering frequency."""
    plant = await service.update_plant(plant_instance_id, updates)
    return service.to_response(plant)


@router.delete("/{plant_instance_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_plant(
    plant_instance_id: str,
    service: PlantService = Depends(get_plant_service),
):
    """Delete a plant and its watering history."""
    await service.delete_plant(plant_instance_id)


@router.post("/{plant_instance_id}/water", response_model=WateringResponse, status_code=status.HTTP_201_CREATED)
async def water_plant(
    plant_instance_id: str,
    request: Optional[WateringEventCreate] = None,
    ledger: WateringLedger = Depends(get_ledger),
    service: PlantService = Depends(get_plant_service),
):
    """Record a watering (now, unless `watered_at` is given)."""
    request = request or WateringEventCreate()
    event = await ledger.record(plant_instance_id, watered_at=request.watered_at, notes=request.notes)
    plant = await service.get_plant(plant_instance_id)
    return WateringResponse(watering_record=event, plant=service.to_response(plant))


@router.get("/{plant_instance_id}/watering-history", response_model=WateringHistoryResponse)
async def get_watering_history(
    plant_instance_id: str,
    ledger: WateringLedger = Depends(get_ledger),
):
    """Watering history, most recent first."""
    events = await ledger.history(plant_instance_id)
    return WateringHistoryResponse(
        plant_instance_id=plant_instance_id,
        events=list(events),
        total_count=len(events),
    )


# ==================== Status Filters ====================


@status_router.get("/summary", response_model=StatusSummary)
async def get_status_summary(service: PlantService = Depends(get_plant_service)):
    """Plant counts per watering status."""
    counts = await service.status_summary()
    return StatusSummary(counts=counts, total=sum(counts.values()))


async def _plants_with_status(service: PlantService, watering_status: WateringStatus) -> List[PlantResponse]:
    return [service.to_response(p) for p in await service.plants_with_status(watering_status)]


@status_router.get("/needs-water", response_model=List[PlantResponse])
async def get_plants_needing_water(service: PlantService = Depends(get_plant_service)):
    """Plants that are due or overdue."""
    return await _plants_with_status(service, WateringStatus.NEEDS_WATER)


@status_router.get("/upcoming", response_model=List[PlantResponse])
async def get_upcoming_plants(service: PlantService = Depends(get_plant_service)):
    """Plants due within the next two days."""
    return await _plants_with_status(service, WateringStatus.UPCOMING)


@status_router.get("/healthy", response_model=List[PlantResponse])
async def get_healthy_plants(service: PlantService = Depends(get_plant_service)):
    """Plants with plenty of time until their next watering."""
    return await _plants_with_status(service, WateringStatus.HEALTHY)


@status_router.get("/unknown", response_model=List[PlantResponse])
async def get_unknown_plants(service: PlantService = Depends(get_plant_service)):
    """Plants without any watering history."""
    return await _plants_with_status(service, WateringStatus.UNKNOWN)
