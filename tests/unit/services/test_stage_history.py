"""
Tests for the stage history ledger helpers.
"""

from datetime import datetime, timedelta, timezone

import pytest

from api.services import candidates as candidate_service
from api.services import stage_history
from api.services.stage_history import calculate_duration_hours
from core.exceptions import NotFoundError
from tests.helpers import stage_id


class TestCalculateDurationHours:
    """Test duration rounding."""

    def test_fractional_hours(self):
        start = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)
        assert calculate_duration_hours(start, start + timedelta(minutes=90)) == 1.5

    def test_two_decimals(self):
        start = datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert calculate_duration_hours(start, start + timedelta(seconds=100)) == 0.03

    def test_never_negative(self):
        """Clock skew never yields a negative duration."""
        start = datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert calculate_duration_hours(start, start - timedelta(hours=1)) == 0.0

    def test_naive_values_are_utc(self):
        """Naive values read back from SQLite are treated as UTC."""
        start = datetime(2024, 1, 1)
        end = datetime(2024, 1, 2, tzinfo=timezone.utc)
        assert calculate_duration_hours(start, end) == 24.0


class TestLedger:
    """Test ledger reads across transitions."""

    async def test_one_open_entry(self, seed):
        """After several moves exactly one entry is open."""
        company = await seed.company()
        job = await seed.job(company)
        candidate = await seed.candidate(company)
        application = await seed.application(job, candidate)

        for name in ("Applied", "Screening", "Interview"):
            await candidate_service.change_stage(seed.db, application.id, stage_id(job, name))

        history = await stage_history.get_stage_history(seed.db, application.id)
        open_entries = [h for h in history if h.exited_at is None]

        assert [h.stage_name for h in history] == ["Queue", "Applied", "Screening", "Interview"]
        assert len(open_entries) == 1
        assert open_entries[0].stage_id == stage_id(job, "Interview")
        assert all(h.duration_hours is not None for h in history[:-1])

    async def test_candidate_history_spans_jobs(self, seed):
        """The candidate view merges every application, newest first."""
        company = await seed.company()
        first_job = await seed.job(company, title="Backend")
        second_job = await seed.job(company, title="Frontend")
        candidate = await seed.candidate(company)
        await seed.application(first_job, candidate)
        second = await seed.application(second_job, candidate)
        await candidate_service.change_stage(seed.db, second.id, stage_id(second_job, "Applied"))

        history = await stage_history.get_candidate_stage_history(seed.db, candidate.id)

        assert len(history) == 3
        assert history[0].stage_name == "Applied"

    async def test_stage_name_survives_rename(self, seed):
        """Ledger rows keep the name the stage had when it was entered."""
        from api.services import pipelines as pipeline_service

        company = await seed.company()
        job = await seed.job(company)
        candidate = await seed.candidate(company)
        application = await seed.application(job, candidate)

        await pipeline_service.rename_stage(seed.db, stage_id(job, "Queue"), "Inbox")
        history = await stage_history.get_stage_history(seed.db, application.id)

        assert history[0].stage_name == "Queue"

    async def test_unknown_application(self, db):
        """Unknown application raises NotFoundError."""
        with pytest.raises(NotFoundError):
            await stage_history.get_stage_history(db, 404)

    async def test_no_open_entry(self, db):
        """Applications without an open entry have no current entry."""
        assert await stage_history.get_current_stage_entry(db, 404) is None
