"""
Custom application exceptions.
"""

from fastapi import HTTPException, status


class AppException(HTTPException):
    """Base application exception."""

    def __init__(self, detail: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR):
        super().__init__(status_code=status_code, detail=detail)


class NotFoundException(AppException):
    """Resource not found exception."""

    def __init__(self, detail: str = "Resource not found"):
        super().__init__(detail=detail, status_code=status.HTTP_404_NOT_FOUND)


class BadRequestException(AppException):
    """Bad request exception (input that cannot be normalized)."""

    def __init__(self, detail: str = "Bad request"):
        super().__init__(detail=detail, status_code=status.HTTP_400_BAD_REQUEST)


class ConsistencyViolation(AssertionError):
    """
    A plant's cached schedule disagrees with its watering history.

    Only reachable when something wrote to storage without going through
    the ledger. Never mapped to an HTTP error and never repaired in place.
    """

    def __init__(self, plant_instance_id: str, detail: str):
        self.plant_instance_id = plant_instance_id
        self.detail = detail
        super().__init__(f"Plant instance {plant_instance_id}: {detail}")
