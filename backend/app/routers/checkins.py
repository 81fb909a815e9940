"""Check-ins API router."""

import logging
from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from app.config import get_settings
from app.database import get_db
from app.models import User
from app.routers.auth import get_current_user, get_current_user_optional
from app.schemas import CheckInResponse, CheckInsListResponse
from app.services import checkin_repository as repo
from app.services.checkin_ai_service import CheckInGenerator, ResourceSearchService
from app.services.checkin_generation_service import CheckInGenerationService
from app.services.data_state_service import assess_data_state
from app.services.llm_service import GeminiProvider
from app.services.rate_limit_service import evaluate_cooldown

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/check-ins", tags=["check-ins"])


def get_checkin_generation_service() -> CheckInGenerationService:
    """Wire the pipeline to the database and the Gemini provider."""
    settings = get_settings()
    provider = GeminiProvider()
    return CheckInGenerationService(
        repository=repo.CheckInRepository(),
        generator=CheckInGenerator(provider, temperature=settings.generation_temperature),
        resource_searcher=ResourceSearchService(provider, max_resources=settings.checkin_max_resources),
        settings=settings,
    )


@router.get("", response_model=CheckInsListResponse, response_model_by_alias=True)
def list_check_ins(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """List completed check-ins with generation eligibility."""
    settings = get_settings()
    now = datetime.utcnow()
    today = now.date()
    since = today - timedelta(days=settings.checkin_window_days)

    rows, total = repo.list_completed_check_ins(db, user.id, offset=(page - 1) * limit, limit=limit)

    assessment = assess_data_state(
        repo.list_activity_types(db, user.id),
        repo.list_activities(db, user.id, since, today),
        period_days=settings.checkin_window_days,
    )
    decision = evaluate_cooldown(
        repo.get_latest_completed_check_in_at(db, user.id),
        now,
        timedelta(days=settings.checkin_cooldown_days),
    )

    next_available_date = decision.next_available_at.date() if decision.next_available_at else None
    return CheckInsListResponse(
        check_ins=[CheckInResponse.model_validate(row) for row in rows],
        total=total,
        can_generate_new=decision.allowed and assessment.state != "no_activity_types",
        next_available_date=next_available_date,
        data_state=assessment.state,
        data_state_details=assessment,
    )


@router.post("/generate")
async def generate_check_in(
    user: Optional[User] = Depends(get_current_user_optional),
    service: CheckInGenerationService = Depends(get_checkin_generation_service),
):
    """
    Generate a check-in, streaming progress as server-sent events.

    The run continues in the background if the client disconnects; the
    result is still saved and shows up in the listing.
    """
    channel = service.start(user.id if user else None)

    async def event_stream():
        async for event in channel:
            yield event.to_sse()

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )
