"""Core module - config, database, exceptions."""

from plantcare.core.config import get_settings, Settings
from plantcare.core.database import Database, get_db
from plantcare.core.exceptions import (
    AppException,
    NotFoundException,
    BadRequestException,
    ConsistencyViolation,
)

__all__ = [
    "get_settings",
    "Settings",
    "Database",
    "get_db",
    "AppException",
    "NotFoundException",
    "BadRequestException",
    "ConsistencyViolation",
]
