"""Watering-related models and schemas."""

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field


class WateringStatus(str, Enum):
    """Care state of a plant instance."""
    UNKNOWN = "unknown"
    NEEDS_WATER = "needs-water"
    UPCOMING = "upcoming"
    HEALTHY = "healthy"


class WateringEvent(BaseModel):
    """One recorded watering of a plant instance."""
    id: str
    plant_instance_id: str
    watered_at: datetime
    notes: str = ""
    recorded_at: datetime = Field(..., description="Creation time, tiebreaker for same-day events")


class WateringEventCreate(BaseModel):
    """Request schema for "water now"."""
    watered_at: Optional[datetime] = Field(None, description="Defaults to now")
    notes: Optional[str] = None


class WateringEventUpdate(BaseModel):
    """Request schema to edit a watering event (unset fields are kept)."""
    watered_at: Optional[datetime] = None
    notes: Optional[str] = None
