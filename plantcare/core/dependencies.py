"""
Common dependencies for FastAPI routes.
"""

from fastapi import Depends, status

from plantcare.core.config import get_settings
from plantcare.core.database import Database
from plantcare.core.exceptions import AppException
from plantcare.plants.service import PlantService
from plantcare.watering.ledger import WateringLedger
from plantcare.watering.memory_repository import InMemoryWateringRepository
from plantcare.watering.mongo_repository import MongoWateringRepository
from plantcare.watering.repository import WateringRepository

# Repositories own the per-plant locks, so one instance is shared by all requests.
_repositories: dict = {}


def get_repository() -> WateringRepository:
    """Process-wide repository for the configured storage backend."""
    settings = get_settings()

    if settings.STORAGE_BACKEND == "memory":
        if "memory" not in _repositories:
            _repositories["memory"] = InMemoryWateringRepository()
        return _repositories["memory"]

    if Database.db is None:
        raise AppException("Database is not connected", status_code=status.HTTP_503_SERVICE_UNAVAILABLE)
    repository = _repositories.get("mongo")
    if repository is None or repository.db is not Database.db:
        repository = MongoWateringRepository(Database.db, use_transactions=settings.MONGO_USE_TRANSACTIONS)
        _repositories["mongo"] = repository
    return repository


def get_ledger(repository: WateringRepository = Depends(get_repository)) -> WateringLedger:
    """Request-scoped watering ledger."""
    return WateringLedger(repository)


def get_plant_service(
    repository: WateringRepository = Depends(get_repository),
    ledger: WateringLedger = Depends(get_ledger),
) -> PlantService:
    """Request-scoped plant service sharing the request's ledger."""
    return PlantService(repository, ledger=ledger)
