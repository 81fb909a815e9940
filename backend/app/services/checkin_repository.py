"""Storage queries used by check-in generation.

Every query is scoped to a single user. The plain functions take a Session
and are used directly by sync endpoints; ``CheckInRepository`` runs them on
worker threads, each with its own session, so independent reads can be
awaited together.
"""

import asyncio
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from app.database import SessionLocal
from app.models import Activity, ActivityType, VoiceNote, Goal, Achievement, CheckIn
from app.schemas import CheckInResponse


def get_latest_completed_check_in_at(db: Session, user_id: int) -> Optional[datetime]:
    """Creation time of the user's most recent completed check-in."""
    row = (
        db.query(CheckIn.created_at)
        .filter(CheckIn.user_id == user_id, CheckIn.status == "completed")
        .order_by(CheckIn.created_at.desc())
        .first()
    )
    return row[0] if row else None


def list_activities(db: Session, user_id: int, since: date, until: Optional[date] = None) -> List[Activity]:
    query = db.query(Activity).filter(Activity.user_id == user_id, Activity.date >= since)
    if until is not None:
        query = query.filter(Activity.date <= until)
    return query.order_by(Activity.date.asc(), Activity.id.asc()).all()


def list_activity_types(db: Session, user_id: int) -> List[ActivityType]:
    # Soft-deleted types are returned too, callers filter on ``deleted``
    return (
        db.query(ActivityType)
        .filter(ActivityType.user_id == user_id)
        .order_by(ActivityType.display_order.asc(), ActivityType.id.asc())
        .all()
    )


def list_voice_notes(db: Session, user_id: int, since: date, until: Optional[date] = None) -> List[VoiceNote]:
    query = db.query(VoiceNote).filter(VoiceNote.user_id == user_id, VoiceNote.date >= since)
    if until is not None:
        query = query.filter(VoiceNote.date <= until)
    return query.order_by(VoiceNote.date.asc()).all()


def list_goals(db: Session, user_id: int) -> List[Goal]:
    return db.query(Goal).filter(Goal.user_id == user_id).order_by(Goal.id.asc()).all()


def list_achievements(db: Session, user_id: int, since: date) -> List[Achievement]:
    return (
        db.query(Achievement)
        .filter(Achievement.user_id == user_id, Achievement.period_end >= since)
        .order_by(Achievement.period_end.desc(), Achievement.id.desc())
        .all()
    )


def list_completed_check_ins(
    db: Session, user_id: int, offset: int = 0, limit: int = 10
) -> Tuple[List[CheckIn], int]:
    """Page of completed check-ins, newest first, plus the total count."""
    query = db.query(CheckIn).filter(CheckIn.user_id == user_id, CheckIn.status == "completed")
    total = query.count()
    rows = query.order_by(CheckIn.created_at.desc()).offset(offset).limit(limit).all()
    return rows, total


def create_check_in(
    db: Session,
    user_id: int,
    period_start: date,
    period_end: date,
    analysis: Dict[str, Any],
    data_summary: Dict[str, Any],
    created_at: Optional[datetime] = None,
) -> CheckIn:
    """Insert the single completed record for a run."""
    check_in = CheckIn(
        user_id=user_id,
        period_start=period_start,
        period_end=period_end,
        analysis=analysis,
        data_summary=data_summary,
        status="completed",
    )
    if created_at is not None:
        check_in.created_at = created_at
    db.add(check_in)
    db.commit()
    db.refresh(check_in)
    return check_in


class CheckInRepository:
    """Async facade over the queries above."""

    def __init__(self, session_factory=SessionLocal):
        self.session_factory = session_factory

    def _run(self, query, *args, **kwargs):
        with self.session_factory() as db:
            return query(db, *args, **kwargs)

    async def _call(self, query, *args, **kwargs):
        return await asyncio.to_thread(self._run, query, *args, **kwargs)

    async def get_latest_completed_check_in_at(self, user_id: int) -> Optional[datetime]:
        return await self._call(get_latest_completed_check_in_at, user_id)

    async def list_activities(self, user_id: int, since: date, until: Optional[date] = None) -> List[Activity]:
        return await self._call(list_activities, user_id, since, until)

    async def list_activity_types(self, user_id: int) -> List[ActivityType]:
        return await self._call(list_activity_types, user_id)

    async def list_voice_notes(self, user_id: int, since: date, until: Optional[date] = None) -> List[VoiceNote]:
        return await self._call(list_voice_notes, user_id, since, until)

    async def list_goals(self, user_id: int) -> List[Goal]:
        return await self._call(list_goals, user_id)

    async def list_achievements(self, user_id: int, since: date) -> List[Achievement]:
        return await self._call(list_achievements, user_id, since)

    async def create_check_in(
        self,
        user_id: int,
        period_start: date,
        period_end: date,
        analysis: Dict[str, Any],
        data_summary: Dict[str, Any],
        created_at: Optional[datetime] = None,
    ) -> CheckInResponse:
        def _insert(db: Session) -> CheckInResponse:
            check_in = create_check_in(
                db, user_id, period_start, period_end, analysis, data_summary, created_at
            )
            # Convert while the session is still open
            return CheckInResponse.model_validate(check_in)

        return await asyncio.to_thread(self._run, _insert)
