"""Watering status engine.

Deterministic, side-effect-free classification of a plant's care state, used for:
- badges and progress bars (status, percent of the cycle remaining)
- status filters ("needs water", "upcoming", ...) and the care summary

It never invents a schedule for plants without watering history: those are
reported as UNKNOWN rather than overdue.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional

from plantcare.watering.models import WateringStatus

# Plants due within this many days are "upcoming" rather than "healthy".
UPCOMING_WINDOW_DAYS = 2


@dataclass(frozen=True)
class WaterStatus:
    status: WateringStatus
    percent_remaining: float
    days_until_next: Optional[int]  # Negative when overdue; None when there is no cycle
    display_text: str


DisplayFormatter = Callable[[WateringStatus, Optional[int]], str]


def _plural_days(n: int) -> str:
    return f"{n} day" if n == 1 else f"{n} days"


def default_display_text(status: WateringStatus, days_until_next: Optional[int]) -> str:
    """English status line. Presentation layers can pass their own formatter."""
    if status == WateringStatus.UNKNOWN:
        return "Unknown"
    if status == WateringStatus.NEEDS_WATER:
        if days_until_next is None:
            return "Needs water"
        if days_until_next < 0:
            return f"{_plural_days(-days_until_next)} overdue"
        return "Needs water today"
    if status == WateringStatus.UPCOMING:
        return f"Water in {_plural_days(days_until_next)}"
    return "Healthy"


def _as_date(value) -> date:
    """Calendar day in UTC for datetimes; dates pass through."""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    return value


def classify(
    today,
    last_watered: Optional[datetime],
    next_water_date: Optional[datetime],
    watering_frequency_days: int,
    needs_initial_watering: bool,
    *,
    formatter: DisplayFormatter = default_display_text,
) -> WaterStatus:
    """
    Classify a plant's watering state on ``today``.

    Rules:
    - needs_initial_watering -> UNKNOWN, 0%
    - missing last_watered / next_water_date (malformed record) -> NEEDS_WATER, 0%
    - otherwise by whole days until next_water_date:
        <= 0 -> NEEDS_WATER, 1..2 -> UPCOMING, more -> HEALTHY

    percent_remaining is the share of the cycle left before next_water_date,
    clamped to [0, 100].
    """
    if needs_initial_watering:
        status = WateringStatus.UNKNOWN
        return WaterStatus(status, 0.0, None, formatter(status, None))

    if last_watered is None or next_water_date is None:
        status = WateringStatus.NEEDS_WATER
        return WaterStatus(status, 0.0, None, formatter(status, None))

    # Date-based computation keeps the status stable through the day.
    days_until_next = (_as_date(next_water_date) - _as_date(today)).days

    if days_until_next <= 0:
        status = WateringStatus.NEEDS_WATER
    elif days_until_next <= UPCOMING_WINDOW_DAYS:
        status = WateringStatus.UPCOMING
    else:
        status = WateringStatus.HEALTHY

    frequency = max(1, int(watering_frequency_days))
    percent_remaining = min(100.0, max(0.0, 100.0 * days_until_next / frequency))

    return WaterStatus(status, percent_remaining, days_until_next, formatter(status, days_until_next))


def classify_plant(plant, today, *, formatter: DisplayFormatter = default_display_text) -> WaterStatus:
    """Classify any object carrying the cached schedule fields of a plant instance."""
    return classify(
        today,
        plant.last_watered,
        plant.next_water_date,
        plant.watering_frequency_days,
        plant.needs_initial_watering,
        formatter=formatter,
    )


def filter_by_status(plants: Iterable, status: WateringStatus, today) -> List:
    """Plants whose classification on ``today`` equals ``status``."""
    return [p for p in plants if classify_plant(p, today).status == status]


def summarize(plants: Iterable, today) -> Dict[WateringStatus, int]:
    """Count plants per status (every status present, possibly 0)."""
    counts = {status: 0 for status in WateringStatus}
    for plant in plants:
        counts[classify_plant(plant, today).status] += 1
    return counts
