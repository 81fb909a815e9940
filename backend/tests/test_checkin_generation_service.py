"""Tests for the check-in generation pipeline."""

import asyncio
import logging
from datetime import timedelta

import pytest

from app.schemas import CheckInResource, CheckInStreamingStatus
from app.services.checkin_errors import GenerationFailure, SearchFailure
from app.services.checkin_generation_service import (
    CheckInGenerationService,
    UserRunGuard,
    has_meaningful_change,
)
from app.services.checkin_errors import RunInProgress
from app.services.status_channel import StatusChannel
from conftest import (
    NOW,
    TODAY,
    FakeGenerator,
    FakeRepository,
    FakeSearcher,
    daily,
    fixed_clock,
    make_type,
    partial,
)

HAPPY_PATH = [
    "checking_rate_limit",
    "aggregating_data",
    "analyzing",
    "searching",
    "streaming_content",
    "saving",
    "complete",
]


def make_service(repository, generator=None, searcher=None, guard=None, settings=None):
    return CheckInGenerationService(
        repository,
        generator or FakeGenerator(),
        searcher or FakeSearcher(),
        settings=settings,
        clock=fixed_clock,
        run_guard=guard or UserRunGuard(),
    )


async def run_and_collect(service, user_id=1):
    channel = StatusChannel()
    await service.run(user_id, channel)
    assert channel.closed
    return [event async for event in channel]


def statuses(events):
    return [e.status for e in events]


def tracked_user(days=10, **kwargs):
    return FakeRepository(activity_types=[make_type(1, "Water")], activities=daily(1, days), **kwargs)


class TestHappyPath:

    @pytest.mark.asyncio
    async def test_first_check_in_runs_every_stage(self):
        repository = tracked_user()
        resources = [CheckInResource(title="Hydration", url="https://example.com/water")]
        events = await run_and_collect(make_service(repository, searcher=FakeSearcher(resources)))

        assert statuses(events) == HAPPY_PATH
        assert len(repository.saved) == 1
        saved = repository.saved[0]
        assert saved.period_end == TODAY
        assert saved.period_start == TODAY - timedelta(days=30)
        assert saved.created_at == NOW
        assert saved.analysis.resources == resources
        assert saved.data_summary.data_state == "sufficient"

        complete = events[-1]
        assert complete.data.id == saved.id
        assert complete.message == "Done!"

    @pytest.mark.asyncio
    async def test_persisted_payloads_are_camel_case(self):
        repository = tracked_user()
        captured = {}
        create = repository.create_check_in

        async def spy(user_id, period_start, period_end, analysis, data_summary, created_at=None):
            captured.update(analysis=analysis, data_summary=data_summary)
            return await create(user_id, period_start, period_end, analysis, data_summary, created_at)

        repository.create_check_in = spy
        await run_and_collect(make_service(repository))

        assert "overallSummary" in captured["analysis"]
        assert "weeklyFocus" in captured["analysis"]
        assert "dataState" in captured["data_summary"]

    @pytest.mark.asyncio
    async def test_partials_are_deduplicated(self):
        generator = FakeGenerator(partials=[
            partial(overall_summary="You"),
            partial(overall_summary="You"),
            partial(overall_summary="You showed up", celebrations=["A"]),
            partial(overall_summary="You showed up", celebrations=["A streak"]),
            partial(overall_summary="You showed up", celebrations=["A streak", "B"]),
        ])
        events = await run_and_collect(make_service(tracked_user(), generator=generator))

        streamed = [e for e in events if e.status == "streaming_content"]
        # The stage transition itself plus three meaningful partials
        assert len(streamed) == 4
        assert streamed[0].partial_analysis is None
        assert [len(e.partial_analysis.celebrations or []) for e in streamed[1:]] == [0, 1, 2]
        assert statuses(events)[-2:] == ["saving", "complete"]

    @pytest.mark.asyncio
    async def test_building_baseline_state_reaches_generator(self):
        generator = FakeGenerator()
        await run_and_collect(make_service(tracked_user(days=4), generator=generator))
        context, _ = generator.calls[0]
        assert context.data_state == "building_baseline"


class TestStopConditions:

    @pytest.mark.asyncio
    async def test_unauthenticated_caller_gets_single_401(self):
        repository = tracked_user()
        events = await run_and_collect(make_service(repository), user_id=None)
        assert statuses(events) == ["error"]
        assert events[0].status_code == 401
        assert repository.saved == []

    @pytest.mark.asyncio
    async def test_rate_limited_reports_next_date(self):
        repository = tracked_user(last_completed_at=NOW - timedelta(days=3))
        generator = FakeGenerator()
        events = await run_and_collect(make_service(repository, generator=generator))

        assert statuses(events) == ["checking_rate_limit", "error"]
        assert events[-1].status_code == 429
        assert "2024-07-04" in events[-1].message
        assert generator.calls == []

    @pytest.mark.asyncio
    async def test_no_activity_types_is_a_bad_request(self):
        repository = FakeRepository(activity_types=[make_type(1, "Water", deleted=True)])
        events = await run_and_collect(make_service(repository))
        assert statuses(events) == ["checking_rate_limit", "aggregating_data", "error"]
        assert events[-1].status_code == 400
        assert "activity types" in events[-1].message

    @pytest.mark.asyncio
    @pytest.mark.parametrize("source", [
        "list_activities", "list_activity_types", "list_voice_notes", "list_goals", "list_achievements",
    ])
    async def test_any_fetch_failure_is_fatal(self, source):
        repository = tracked_user()
        repository.fail_on.add(source)
        events = await run_and_collect(make_service(repository))
        assert statuses(events) == ["checking_rate_limit", "aggregating_data", "error"]
        assert events[-1].status_code == 500
        assert repository.saved == []

    @pytest.mark.asyncio
    async def test_history_read_failure_is_fatal(self):
        repository = tracked_user()
        repository.fail_on.add("get_latest_completed_check_in_at")
        events = await run_and_collect(make_service(repository))
        assert statuses(events) == ["checking_rate_limit", "error"]
        assert events[-1].status_code == 500

    @pytest.mark.asyncio
    async def test_generation_failure_persists_nothing(self):
        repository = tracked_user()
        generator = FakeGenerator(partials=[partial(overall_summary="Half")], error=RuntimeError("boom"))
        events = await run_and_collect(make_service(repository, generator=generator))

        assert statuses(events)[-1] == "error"
        assert "saving" not in statuses(events)
        assert events[-1].message == GenerationFailure.default_message
        assert repository.saved == []

    @pytest.mark.asyncio
    async def test_persistence_failure_is_distinct(self):
        repository = tracked_user()
        repository.fail_on.add("create_check_in")
        events = await run_and_collect(make_service(repository))

        assert statuses(events)[-2:] == ["saving", "error"]
        assert events[-1].status_code == 500
        assert "could not be saved" in events[-1].message


class TestResourceSearchDegradation:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [SearchFailure("quota"), RuntimeError("network")])
    async def test_search_failure_continues_with_no_resources(self, error):
        repository = tracked_user()
        generator = FakeGenerator()
        events = await run_and_collect(
            make_service(repository, generator=generator, searcher=FakeSearcher(error=error))
        )

        assert statuses(events) == HAPPY_PATH
        _, resources = generator.calls[0]
        assert resources == []
        assert repository.saved[0].analysis.resources == []


class TestConcurrency:

    @pytest.mark.asyncio
    async def test_second_concurrent_run_is_rejected(self):
        repository = tracked_user()
        release = asyncio.Event()

        class SlowSearcher(FakeSearcher):
            async def search(self, context):
                await release.wait()
                return []

        guard = UserRunGuard()
        first = make_service(repository, searcher=SlowSearcher(), guard=guard)
        second = make_service(repository, guard=guard)

        first_channel = first.start(1)
        await asyncio.sleep(0)
        while not guard.is_running(1):
            await asyncio.sleep(0)

        second_events = await run_and_collect(second)
        assert statuses(second_events) == ["checking_rate_limit", "error"]
        assert second_events[-1].status_code == 429

        release.set()
        first_events = [event async for event in first_channel]
        assert statuses(first_events) == HAPPY_PATH
        assert not guard.is_running(1)
        assert len(repository.saved) == 1

    @pytest.mark.asyncio
    async def test_run_keeps_going_without_a_reader(self):
        repository = tracked_user()
        service = make_service(repository)
        channel = StatusChannel()
        # Nobody reads the channel until the run has finished
        await asyncio.wait_for(service.run(1, channel), timeout=5)
        assert len(repository.saved) == 1
        assert channel.closed

    def test_guard_releases_after_error(self):
        guard = UserRunGuard()
        with pytest.raises(ValueError):
            with guard.hold(1):
                raise ValueError()
        assert not guard.is_running(1)
        with guard.hold(1):
            with pytest.raises(RunInProgress):
                with guard.hold(1):
                    pass

    @pytest.mark.asyncio
    async def test_events_after_close_are_dropped_and_logged(self, caplog):
        channel = StatusChannel()
        channel.send(CheckInStreamingStatus(status="saving", message="Saving"))
        channel.close()
        with caplog.at_level(logging.WARNING, logger="app.services.status_channel"):
            channel.send(CheckInStreamingStatus(status="complete", message="Done"))
        assert [e.status async for e in channel] == ["saving"]
        assert "Dropping complete event sent after channel close" in caplog.text


class TestHasMeaningfulChange:

    def test_first_partial_needs_content(self):
        assert not has_meaningful_change(None, partial())
        assert has_meaningful_change(None, partial(overall_summary="Hi"))
        assert has_meaningful_change(None, partial(insights=[]))

    def test_identical_partials_are_not_meaningful(self):
        a = partial(overall_summary="Hi", celebrations=["x"], weekly_focus="Walk")
        b = partial(overall_summary="Hi", celebrations=["x"], weekly_focus="Walk")
        assert not has_meaningful_change(a, b)

    def test_list_item_growing_in_place_is_not_meaningful(self):
        a = partial(celebrations=["Walk"])
        b = partial(celebrations=["Walked every day"])
        assert not has_meaningful_change(a, b)

    def test_list_length_change_is_meaningful(self):
        assert has_meaningful_change(partial(insights=["a"]), partial(insights=["a", "b", "c"]))
        assert has_meaningful_change(partial(insights=["a", "b"]), partial(insights=["a"]))

    def test_scalar_change_must_be_non_empty(self):
        assert has_meaningful_change(partial(motivation="Go"), partial(motivation="Go on"))
        assert not has_meaningful_change(partial(motivation="Go"), partial(motivation=""))
        assert not has_meaningful_change(partial(motivation="Go"), partial(motivation=None))
