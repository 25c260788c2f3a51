"""
Tests for moving applications between pipeline stages.

Tests:
- Adding candidates to jobs
- Stage changes and their ledger entries
- Rejection reason requirement
- Activity timeline entries
- Stage change notifications
"""

import pytest

from api.services import candidates as candidate_service
from api.services import notifications as notification_service
from api.services import stage_history
from core.exceptions import ConflictError, NotFoundError, ValidationError
from database.models import ActivityType, UserRole
from tests.helpers import stage_id


class TestAddCandidateToJob:
    """Test attaching candidates to jobs."""

    async def test_starts_in_first_stage(self, seed):
        """Without a stage the application starts at position 0."""
        company = await seed.company()
        job = await seed.job(company)
        candidate = await seed.candidate(company)

        application = await seed.application(job, candidate)

        assert application.current_stage_id == stage_id(job, "Queue")
        history = await stage_history.get_stage_history(seed.db, application.id)
        assert len(history) == 1
        assert history[0].stage_name == "Queue"
        assert history[0].exited_at is None

    async def test_explicit_stage(self, seed):
        """A stage of the job may be chosen as the entry point."""
        company = await seed.company()
        job = await seed.job(company)
        candidate = await seed.candidate(company)

        application = await seed.application(job, candidate, stage_name="Screening")

        assert application.current_stage_id == stage_id(job, "Screening")

    async def test_records_activity(self, seed):
        """An added_to_job activity is written."""
        company = await seed.company()
        job = await seed.job(company)
        candidate = await seed.candidate(company)

        await seed.application(job, candidate)
        timeline = await candidate_service.get_activity_timeline(seed.db, candidate.id)

        assert [a.activity_type for a in timeline] == [ActivityType.ADDED_TO_JOB]

    async def test_duplicate_application(self, seed):
        """A candidate can apply to a job once."""
        company = await seed.company()
        job = await seed.job(company)
        candidate = await seed.candidate(company)
        first = await seed.application(job, candidate)

        with pytest.raises(ConflictError) as exc_info:
            await seed.application(job, candidate)

        assert exc_info.value.details == {"jobCandidateId": first.id}

    async def test_cross_company(self, seed):
        """Candidates and jobs of different companies cannot be linked."""
        acme = await seed.company("Acme")
        other = await seed.company("Other")
        job = await seed.job(acme)
        candidate = await seed.candidate(other)

        with pytest.raises(ValidationError):
            await seed.application(job, candidate)


class TestChangeStage:
    """Test single stage transitions."""

    async def test_moves_pointer_and_ledger(self, seed):
        """The open entry is closed and a new one opened for the target."""
        company = await seed.company()
        job = await seed.job(company)
        candidate = await seed.candidate(company)
        application = await seed.application(job, candidate)

        result = await candidate_service.change_stage(
            seed.db, application.id, stage_id(job, "Screening")
        )

        assert result.from_stage == "Queue"
        assert result.to_stage == "Screening"
        assert result.job_candidate.current_stage_id == stage_id(job, "Screening")

        history = await stage_history.get_stage_history(seed.db, application.id)
        assert [h.stage_name for h in history] == ["Queue", "Screening"]
        assert history[0].exited_at is not None
        assert history[0].duration_hours >= 0
        assert history[1].exited_at is None

    async def test_any_stage_is_reachable(self, seed):
        """Stages may be skipped in either direction."""
        company = await seed.company()
        job = await seed.job(company)
        candidate = await seed.candidate(company)
        application = await seed.application(job, candidate, stage_name="Offer")

        result = await candidate_service.change_stage(
            seed.db, application.id, stage_id(job, "Applied")
        )

        assert result.to_stage == "Applied"

    async def test_activity_metadata(self, seed):
        """The stage_change activity carries from and to stages."""
        company = await seed.company()
        user = await seed.user(company)
        job = await seed.job(company)
        candidate = await seed.candidate(company)
        application = await seed.application(job, candidate)

        await candidate_service.change_stage(
            seed.db,
            application.id,
            stage_id(job, "Screening"),
            comment="Strong profile",
            moved_by=user.id,
        )
        timeline = await candidate_service.get_activity_timeline(seed.db, candidate.id)
        activity = timeline[0]

        assert activity.activity_type == ActivityType.STAGE_CHANGE
        assert activity.user_id == user.id
        assert activity.description == "Moved from Queue to Screening. Comment: Strong profile"
        assert activity.activity_metadata["fromStageName"] == "Queue"
        assert activity.activity_metadata["toStageName"] == "Screening"
        assert activity.activity_metadata["toStageId"] == stage_id(job, "Screening")
        assert activity.activity_metadata["bulkMove"] is False

    async def test_rejection_requires_reason(self, seed):
        """A rejection without a reason changes nothing."""
        company = await seed.company()
        job = await seed.job(company)
        candidate = await seed.candidate(company)
        application = await seed.application(job, candidate)

        with pytest.raises(ValidationError) as exc_info:
            await candidate_service.change_stage(
                seed.db, application.id, stage_id(job, "Rejected"), rejection_reason="  "
            )

        assert "rejectionReason" in exc_info.value.details
        history = await stage_history.get_stage_history(seed.db, application.id)
        assert len(history) == 1
        timeline = await candidate_service.get_activity_timeline(seed.db, candidate.id)
        assert len(timeline) == 1
        current = await candidate_service.get_job_candidate(seed.db, application.id)
        assert current.current_stage_id == stage_id(job, "Queue")

    async def test_rejection_reason_stored_on_ledger(self, seed):
        """The reason becomes the comment of the new ledger entry."""
        company = await seed.company()
        job = await seed.job(company)
        candidate = await seed.candidate(company)
        application = await seed.application(job, candidate)

        await candidate_service.change_stage(
            seed.db, application.id, stage_id(job, "Rejected"), rejection_reason="Salary mismatch"
        )
        entry = await stage_history.get_current_stage_entry(seed.db, application.id)

        assert entry.stage_name == "Rejected"
        assert entry.comment == "Salary mismatch"

    async def test_same_stage(self, seed):
        """Moving to the current stage is recorded like any other move."""
        company = await seed.company()
        job = await seed.job(company)
        candidate = await seed.candidate(company)
        application = await seed.application(job, candidate)

        result = await candidate_service.change_stage(
            seed.db, application.id, stage_id(job, "Queue")
        )

        assert result.from_stage == "Queue"
        assert result.to_stage == "Queue"
        history = await stage_history.get_stage_history(seed.db, application.id)
        assert [h.stage_name for h in history] == ["Queue", "Queue"]
        assert [h.exited_at is None for h in history] == [False, True]
        timeline = await candidate_service.get_activity_timeline(seed.db, candidate.id)
        assert timeline[0].activity_type == ActivityType.STAGE_CHANGE
        assert timeline[0].description == "Moved from Queue to Queue"

    async def test_stage_of_other_job(self, seed):
        """Only stages of the application's job are valid targets."""
        company = await seed.company()
        job = await seed.job(company)
        other_job = await seed.job(company, title="Designer")
        candidate = await seed.candidate(company)
        application = await seed.application(job, candidate)

        with pytest.raises(ValidationError):
            await candidate_service.change_stage(
                seed.db, application.id, stage_id(other_job, "Screening")
            )

    async def test_unknown_application(self, db):
        """Unknown application raises NotFoundError."""
        with pytest.raises(NotFoundError):
            await candidate_service.change_stage(db, 404, 1)


class TestStageChangeNotifications:
    """Test notifications sent after a stage change."""

    async def test_recruiter_and_managers_notified(self, seed):
        """The assigned recruiter, admins and hiring managers are told, the actor is not."""
        company = await seed.company()
        admin = await seed.user(company, role=UserRole.ADMIN)
        manager = await seed.user(company, role=UserRole.HIRING_MANAGER)
        recruiter = await seed.user(company, role=UserRole.RECRUITER)
        job = await seed.job(company, recruiter=recruiter)
        candidate = await seed.candidate(company, name="Ada Lovelace")
        application = await seed.application(job, candidate)

        await candidate_service.change_stage(
            seed.db, application.id, stage_id(job, "Screening"), moved_by=admin.id
        )

        admin_inbox = await notification_service.get_notifications(seed.db, admin.id)
        assert admin_inbox["items"] == []
        for user in (manager, recruiter):
            inbox = await notification_service.get_notifications(seed.db, user.id)
            assert len(inbox["items"]) == 1
            assert inbox["unread_count"] == 1
            assert inbox["items"][0].message == (
                "Ada Lovelace moved from Queue to Screening for Backend Engineer"
            )
