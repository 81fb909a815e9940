"""
Pytest configuration and fixtures.

Tests run against an in-memory SQLite database; the environment is set up
before any app module is imported so the engine and settings pick it up.
"""
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["GEMINI_API_KEY"] = "dummy_key_for_testing"
os.environ["JWT_SECRET_KEY"] = "test-secret"

from datetime import date, datetime, timedelta

import pytest

from app.config import get_settings
from app.database import Base, SessionLocal, engine
from app.models import Achievement, Activity, ActivityType, CheckIn, Goal, User, VoiceNote
from app.schemas import CheckInAnalysis, CheckInResponse, GeneratedCheckIn, PartialCheckInAnalysis


NOW = datetime(2024, 6, 30, 12, 0, 0)
TODAY = NOW.date()
WINDOW_START = TODAY - timedelta(days=30)


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture(scope="function")
def db_session():
    """Fresh schema per test; everything is dropped afterwards."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def user(db_session):
    user = User(email="ada@example.com", name="Ada")
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


# ============== Row builders ==============
# Unsaved rows are enough for the pure services, columns are read as attributes.

def make_type(id, name, unit="", goal_type=None, is_negative=None, ui_type="increment",
              deleted=False, display_order=0, user_id=1):
    return ActivityType(
        id=id, user_id=user_id, name=name, unit=unit, goal_type=goal_type,
        is_negative=is_negative, ui_type=ui_type, deleted=deleted, display_order=display_order,
    )


def make_activity(type_id, day, value=1.0, id=None, user_id=1):
    return Activity(id=id, user_id=user_id, activity_type_id=type_id, date=day, value=value)


def make_goal(id, type_id, name, target_value, date_type="weekly", tracking_type="sum",
              icon="target", user_id=1, **kwargs):
    return Goal(
        id=id, user_id=user_id, activity_type_id=type_id, name=name, target_value=target_value,
        date_type=date_type, tracking_type=tracking_type, icon=icon, **kwargs,
    )


def make_achievement(id, goal_id, period_start, period_end, achieved_value, target_value,
                     achieved_at=None, user_id=1):
    return Achievement(
        id=id, user_id=user_id, goal_id=goal_id, period_start=period_start,
        period_end=period_end, achieved_value=achieved_value, target_value=target_value,
        achieved_at=achieved_at,
    )


def make_voice_note(day, transcription, status="completed", extracted=None, user_id=1):
    return VoiceNote(
        user_id=user_id, date=day, storage_path=f"voice/{day.isoformat()}.webm",
        transcription=transcription, transcription_status=status, extracted_activities=extracted,
    )


def daily(type_id, days, value=1.0, end=TODAY):
    """One entry per day for the ``days`` days ending on ``end``."""
    return [make_activity(type_id, end - timedelta(days=i), value) for i in range(days)]


# ============== Pipeline fakes ==============

class FakeRepository:
    """In-memory stand-in for CheckInRepository."""

    def __init__(self, activity_types=None, activities=None, voice_notes=None, goals=None,
                 achievements=None, last_completed_at=None):
        self.activity_types = activity_types or []
        self.activities = activities or []
        self.voice_notes = voice_notes or []
        self.goals = goals or []
        self.achievements = achievements or []
        self.last_completed_at = last_completed_at
        self.fail_on = set()
        self.saved = []

    def _maybe_fail(self, name):
        if name in self.fail_on:
            raise RuntimeError(f"{name} unavailable")

    async def get_latest_completed_check_in_at(self, user_id):
        self._maybe_fail("get_latest_completed_check_in_at")
        return self.last_completed_at

    async def list_activities(self, user_id, since, until=None):
        self._maybe_fail("list_activities")
        return [a for a in self.activities if a.date >= since and (until is None or a.date <= until)]

    async def list_activity_types(self, user_id):
        self._maybe_fail("list_activity_types")
        return list(self.activity_types)

    async def list_voice_notes(self, user_id, since, until=None):
        self._maybe_fail("list_voice_notes")
        return [n for n in self.voice_notes if n.date >= since and (until is None or n.date <= until)]

    async def list_goals(self, user_id):
        self._maybe_fail("list_goals")
        return list(self.goals)

    async def list_achievements(self, user_id, since):
        self._maybe_fail("list_achievements")
        return [a for a in self.achievements if a.period_end >= since]

    async def create_check_in(self, user_id, period_start, period_end, analysis, data_summary,
                              created_at=None):
        self._maybe_fail("create_check_in")
        record = CheckInResponse(
            id=len(self.saved) + 1,
            user_id=user_id,
            created_at=created_at or NOW,
            period_start=period_start,
            period_end=period_end,
            analysis=analysis,
            data_summary=data_summary,
            status="completed",
        )
        self.saved.append(record)
        return record


GENERATED = GeneratedCheckIn(
    overall_summary="You showed up for yourself this month.",
    celebrations=["A 7 day water streak"],
    insights=["Weekends are your strongest days"],
    recommendations=["Keep a bottle on your desk"],
    weekly_focus="Log water before lunch every day.",
    motivation="Small steps, every day.",
)


class FakeGenerator:
    """Replays a fixed sequence of partials, then returns a final analysis."""

    def __init__(self, partials=None, error=None):
        self.partials = partials or []
        self.error = error
        self.calls = []

    async def generate(self, context, resources, on_partial=None):
        self.calls.append((context, resources))
        for partial in self.partials:
            if on_partial is not None:
                await on_partial(partial)
        if self.error is not None:
            raise self.error
        return CheckInAnalysis(**GENERATED.model_dump(), resources=resources)


class FakeSearcher:
    def __init__(self, resources=None, error=None):
        self.resources = resources or []
        self.error = error
        self.calls = 0

    async def search(self, context):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.resources)


class FakeProvider:
    """Provider double yielding canned text deltas and search sources."""

    def __init__(self, deltas=None, sources=None, search_error=None):
        self.deltas = deltas or []
        self.sources = sources or []
        self.search_error = search_error
        self.prompts = []

    async def complete_stream(self, prompt, system_instruction=None, response_schema=None,
                              temperature=0.7, model=None):
        self.prompts.append(prompt)
        for delta in self.deltas:
            yield delta

    async def search_web(self, prompt, model=None):
        self.prompts.append(prompt)
        if self.search_error is not None:
            raise self.search_error
        return list(self.sources)


def partial(**fields):
    return PartialCheckInAnalysis(**fields)


def fixed_clock():
    return NOW


def persist(db, *rows):
    db.add_all(rows)
    db.commit()
    return rows


def make_check_in(user_id, created_at, status="completed"):
    return CheckIn(
        user_id=user_id,
        created_at=created_at,
        period_start=created_at.date() - timedelta(days=30),
        period_end=created_at.date(),
        analysis={**GENERATED.model_dump(by_alias=True), "resources": []},
        data_summary={"dataState": "sufficient", "totalActivitiesLogged": 7, "uniqueActivityTypes": 1},
        status=status,
    )
