"""Tests for the weekly check-in cooldown."""

import logging
from datetime import datetime, timedelta, timezone

import pytest

from app.services.rate_limit_service import RateLimitService, evaluate_cooldown
from conftest import NOW, FakeRepository

WEEK = timedelta(days=7)


class TestEvaluateCooldown:

    def test_first_check_in_is_allowed(self):
        decision = evaluate_cooldown(None, NOW, WEEK)
        assert decision.allowed
        assert decision.next_available_at is None

    def test_within_cooldown_is_rejected_with_next_date(self):
        last = NOW - timedelta(days=3)
        decision = evaluate_cooldown(last, NOW, WEEK)
        assert not decision.allowed
        assert decision.next_available_at == last + WEEK

    def test_exact_boundary_is_allowed(self):
        decision = evaluate_cooldown(NOW - WEEK, NOW, WEEK)
        assert decision.allowed

    def test_one_second_before_boundary_is_rejected(self):
        decision = evaluate_cooldown(NOW - WEEK + timedelta(seconds=1), NOW, WEEK)
        assert not decision.allowed

    def test_aware_timestamps_are_compared_in_utc(self):
        last = datetime(2024, 6, 25, 14, 0, tzinfo=timezone(timedelta(hours=2)))  # 12:00 UTC
        decision = evaluate_cooldown(last, NOW, WEEK)
        assert not decision.allowed
        assert decision.next_available_at == datetime(2024, 7, 2, 12, 0)


class TestRateLimitService:

    @pytest.mark.asyncio
    async def test_reads_latest_completed_check_in(self):
        repository = FakeRepository(last_completed_at=NOW - timedelta(days=1))
        service = RateLimitService(repository, cooldown_days=7)
        decision = await service.check(1, NOW)
        assert not decision.allowed
        assert decision.next_available_at == NOW + timedelta(days=6)

    @pytest.mark.asyncio
    async def test_allows_after_cooldown(self):
        repository = FakeRepository(last_completed_at=NOW - timedelta(days=8))
        decision = await RateLimitService(repository).check(1, NOW)
        assert decision.allowed

    @pytest.mark.asyncio
    async def test_rejection_is_logged_with_next_date(self, caplog):
        repository = FakeRepository(last_completed_at=NOW - timedelta(days=1))
        with caplog.at_level(logging.INFO, logger="app.services.rate_limit_service"):
            await RateLimitService(repository, cooldown_days=7).check(42, NOW)
        assert f"User 42 is rate limited until {(NOW + timedelta(days=6)).isoformat()}" in caplog.text
