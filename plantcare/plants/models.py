"""Plant-instance models and schemas."""

from datetime import datetime
from typing import Optional, List, Dict, Union
from pydantic import BaseModel, Field

from plantcare.watering.models import WateringStatus, WateringEvent


class PlantInstance(BaseModel):
    """A plant in the collection, with its cached watering schedule."""
    id: str
    plant_id: Optional[str] = None  # Catalog reference, not validated here
    nickname: Optional[str] = None
    location: Optional[str] = None
    notes: Optional[str] = None
    image_url: Optional[str] = None
    watering_frequency_days: int = Field(..., ge=1)
    last_watered: Optional[datetime] = None
    next_water_date: Optional[datetime] = None
    needs_initial_watering: bool = False
    created_at: datetime


class PlantCreate(BaseModel):
    """Schema to add a plant to the collection."""
    plant_id: Optional[str] = None
    nickname: Optional[str] = None
    location: Optional[str] = None
    notes: Optional[str] = None
    image_url: Optional[str] = None
    # Accepts numbers or phrases like "every 3 days"; rounded and clamped to 1..3650
    watering_frequency_days: Union[int, float, str] = 7
    last_watered: Optional[datetime] = Field(
        None, description="Date of the last watering; defaults to now"
    )


class PlantUpdate(BaseModel):
    """Schema to update a plant. Schedule dates are owned by the watering ledger."""
    nickname: Optional[str] = None
    location: Optional[str] = None
    notes: Optional[str] = None
    image_url: Optional[str] = None
    watering_frequency_days: Optional[Union[int, float, str]] = None


class PlantResponse(BaseModel):
    """Response schema for a plant, including its computed watering status."""
    id: str
    plant_id: Optional[str] = None
    nickname: Optional[str] = None
    location: Optional[str] = None
    notes: Optional[str] = None
    image_url: Optional[str] = None
    watering_frequency_days: int
    last_watered: Optional[datetime] = None
    next_water_date: Optional[datetime] = None
    needs_initial_watering: bool = False
    created_at: datetime
    status: WateringStatus
    percent_remaining: float = Field(..., ge=0, le=100)
    days_until_next: Optional[int] = None
    display_text: str


class WateringResponse(BaseModel):
    """Result of recording a watering."""
    watering_record: WateringEvent
    plant: PlantResponse


class StatusSummary(BaseModel):
    """Plant counts per watering status."""
    counts: Dict[WateringStatus, int]
    total: int


class WateringHistoryResponse(BaseModel):
    """Watering history for one plant, most recent first."""
    plant_instance_id: str
    events: List[WateringEvent]
    total_count: int
