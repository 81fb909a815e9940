"""Services package."""

from app.services.llm_service import GeminiProvider
from app.services.checkin_ai_service import CheckInGenerator, ResourceSearchService
from app.services.checkin_generation_service import CheckInGenerationService
from app.services.checkin_repository import CheckInRepository

__all__ = [
    "GeminiProvider",
    "CheckInGenerator",
    "ResourceSearchService",
    "CheckInGenerationService",
    "CheckInRepository",
]
