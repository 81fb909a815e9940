"""
Check-in generation pipeline.

A run moves through checking_rate_limit, aggregating_data, analyzing,
searching, streaming_content, saving and complete, emitting one status
event per transition. Any failure other than resource search ends the run
with a single error event. The channel is closed exactly once.
"""

import asyncio
import logging
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Callable, Optional, Set

from app.config import Settings, get_settings
from app.schemas import (
    STREAMING_STATUS_MESSAGES,
    CheckInResponse,
    CheckInStreamingStatus,
    PartialCheckInAnalysis,
)
from app.services.checkin_context_service import compile_checkin_context, create_data_summary
from app.services.checkin_errors import (
    CheckInError,
    DataFetchFailure,
    GenerationFailure,
    NoActivityTypes,
    PersistenceFailure,
    RateLimited,
    RunInProgress,
    SearchFailure,
    Unauthorized,
)
from app.services.data_state_service import assess_data_state
from app.services.rate_limit_service import RateLimitService
from app.services.status_channel import StatusChannel

logger = logging.getLogger(__name__)

SCALAR_FIELDS = ("overall_summary", "weekly_focus", "motivation")
LIST_FIELDS = ("celebrations", "insights", "recommendations", "resources")

# Strong references to runs in flight, the event loop only keeps weak ones
_background_runs: Set[asyncio.Task] = set()


def has_meaningful_change(
    previous: Optional[PartialCheckInAnalysis],
    current: PartialCheckInAnalysis,
) -> bool:
    """
    Whether ``current`` is worth forwarding after ``previous``.

    A scalar counts when it is non-empty and differs; a list counts when its
    length differs (a missing list and an empty one are different). With no
    previous partial, ``current`` is compared against an empty one.
    """
    if previous is None:
        previous = PartialCheckInAnalysis()

    for field in SCALAR_FIELDS:
        value = getattr(current, field)
        if value and value != getattr(previous, field):
            return True

    for field in LIST_FIELDS:
        old, new = getattr(previous, field), getattr(current, field)
        if (None if old is None else len(old)) != (None if new is None else len(new)):
            return True

    return False


class UserRunGuard:
    """In-process mutual exclusion of runs per user."""

    def __init__(self):
        self._active: Set[int] = set()

    def is_running(self, user_id: int) -> bool:
        return user_id in self._active

    @contextmanager
    def hold(self, user_id: int):
        if user_id in self._active:
            raise RunInProgress()
        self._active.add(user_id)
        try:
            yield
        finally:
            self._active.discard(user_id)


default_run_guard = UserRunGuard()


class CheckInGenerationService:
    """Drives one check-in run and reports progress on a status channel."""

    def __init__(
        self,
        repository,
        generator,
        resource_searcher,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
        run_guard: Optional[UserRunGuard] = None,
    ):
        self.repository = repository
        self.generator = generator
        self.resource_searcher = resource_searcher
        self.settings = settings or get_settings()
        self.clock = clock
        self.run_guard = run_guard or default_run_guard
        self.rate_limiter = RateLimitService(repository, self.settings.checkin_cooldown_days)

    def start(self, user_id: Optional[int]) -> StatusChannel:
        """Launch a run in the background and hand back its channel."""
        channel = StatusChannel()
        task = asyncio.create_task(self.run(user_id, channel))
        _background_runs.add(task)
        task.add_done_callback(_background_runs.discard)
        return channel

    @staticmethod
    def _emit(channel: StatusChannel, status: str, **extra) -> None:
        channel.send(
            CheckInStreamingStatus(status=status, message=STREAMING_STATUS_MESSAGES[status], **extra)
        )

    async def run(self, user_id: Optional[int], channel: StatusChannel) -> Optional[CheckInResponse]:
        try:
            if user_id is None:
                raise Unauthorized()

            self._emit(channel, "checking_rate_limit")
            with self.run_guard.hold(user_id):
                return await self._run_pipeline(user_id, channel)

        except CheckInError as e:
            logger.warning(f"Check-in run for user {user_id} failed ({e.status_code}): {e.message}")
            channel.send(
                CheckInStreamingStatus(status="error", message=e.message, status_code=e.status_code)
            )
        except Exception:
            logger.exception(f"Unexpected error in check-in run for user {user_id}")
            channel.send(
                CheckInStreamingStatus(status="error", message="Internal server error", status_code=500)
            )
        finally:
            channel.close()
        return None

    async def _run_pipeline(self, user_id: int, channel: StatusChannel) -> CheckInResponse:
        now = self.clock()
        try:
            decision = await self.rate_limiter.check(user_id, now)
        except Exception as e:
            logger.error(f"Failed to read check-in history for user {user_id}: {e}")
            raise DataFetchFailure() from e
        if not decision.allowed:
            raise RateLimited(decision.next_available_at)

        period_end = now.date()
        period_start = period_end - timedelta(days=self.settings.checkin_window_days)

        self._emit(channel, "aggregating_data")
        results = await asyncio.gather(
            self.repository.list_activities(user_id, period_start, period_end),
            self.repository.list_activity_types(user_id),
            self.repository.list_voice_notes(user_id, period_start, period_end),
            self.repository.list_goals(user_id),
            self.repository.list_achievements(user_id, period_start),
            return_exceptions=True,
        )
        failures = [r for r in results if isinstance(r, BaseException)]
        if failures:
            logger.error(f"Data fetch failed for user {user_id}: {failures[0]!r}")
            raise DataFetchFailure() from failures[0]
        activities, activity_types, voice_notes, goals, achievements = results

        assessment = assess_data_state(
            activity_types,
            activities,
            period_days=self.settings.checkin_window_days,
            baseline_min_days=self.settings.checkin_baseline_min_days,
            sufficient_min_days=self.settings.checkin_sufficient_min_days,
        )
        if assessment.state == "no_activity_types":
            raise NoActivityTypes()

        self._emit(channel, "analyzing")
        context = compile_checkin_context(
            assessment, activities, activity_types, voice_notes, goals, achievements,
            period_start, period_end,
        )
        logger.info(
            f"Compiled check-in context for user {user_id}: state={assessment.state}, "
            f"types={len(context.activity_analysis.by_type)}, days={assessment.days_with_entries}"
        )

        self._emit(channel, "searching")
        try:
            resources = await self.resource_searcher.search(context)
        except SearchFailure as e:
            logger.warning(f"Continuing without resources: {e.message}")
            resources = []
        except Exception as e:
            logger.warning(f"Continuing without resources: {e}")
            resources = []

        self._emit(channel, "streaming_content")
        last_emitted: Optional[PartialCheckInAnalysis] = None

        async def on_partial(partial: PartialCheckInAnalysis) -> None:
            nonlocal last_emitted
            if not has_meaningful_change(last_emitted, partial):
                return
            last_emitted = partial
            self._emit(channel, "streaming_content", partial_analysis=partial)

        try:
            analysis = await self.generator.generate(context, resources, on_partial)
        except GenerationFailure:
            raise
        except Exception as e:
            logger.error(f"Check-in generation failed for user {user_id}: {e}")
            raise GenerationFailure() from e

        self._emit(channel, "saving")
        summary = create_data_summary(context)
        try:
            check_in = await self.repository.create_check_in(
                user_id,
                period_start,
                period_end,
                analysis.model_dump(by_alias=True, mode="json"),
                summary.model_dump(by_alias=True, mode="json"),
                created_at=now,
            )
        except Exception as e:
            logger.error(f"Failed to save check-in for user {user_id}: {e}")
            raise PersistenceFailure() from e

        logger.info(f"Saved check-in {check_in.id} for user {user_id}")
        self._emit(channel, "complete", data=check_in)
        return check_in
