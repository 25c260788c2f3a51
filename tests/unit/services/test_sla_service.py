"""
Tests for SLA thresholds and breach detection.
"""

from datetime import timedelta

import pytest

from api.services import jobs as job_service
from api.services import notifications as notification_service
from api.services import sla as sla_service
from core.exceptions import NotFoundError, ValidationError
from core.utils.datetime import now
from database.models import NotificationType, UserRole
from tests.helpers import as_current_user, backdate


class TestSLAConfig:
    """Test threshold configuration."""

    async def test_upsert_is_case_insensitive(self, seed):
        """Setting the same stage name in another case updates the row."""
        company = await seed.company()

        first = await sla_service.upsert_sla_config(seed.db, company.id, "Screening", 5)
        second = await sla_service.upsert_sla_config(seed.db, company.id, "screening", 7)
        configs = await sla_service.get_sla_configs(seed.db, company.id)

        assert second.id == first.id
        assert [(c.stage_name, c.threshold_days) for c in configs] == [("Screening", 7)]

    @pytest.mark.parametrize("threshold", [0, -3, 2.5, True, None])
    async def test_invalid_threshold(self, threshold):
        """Thresholds are whole numbers of at least one day."""
        with pytest.raises(ValidationError) as exc_info:
            await sla_service.upsert_sla_config(None, 1, "Screening", threshold)

        assert "thresholdDays" in exc_info.value.details

    async def test_blank_stage_name(self):
        with pytest.raises(ValidationError):
            await sla_service.upsert_sla_config(None, 1, "  ", 3)

    async def test_configs_are_per_company(self, seed):
        acme = await seed.company("Acme")
        other = await seed.company("Other")
        await sla_service.upsert_sla_config(seed.db, acme.id, "Interview", 3)

        assert await sla_service.get_sla_configs(seed.db, other.id) == []

    async def test_delete(self, seed):
        company = await seed.company()
        await sla_service.upsert_sla_config(seed.db, company.id, "Offer", 4)

        await sla_service.delete_sla_config(seed.db, company.id, "OFFER")

        assert await sla_service.get_sla_configs(seed.db, company.id) == []
        with pytest.raises(NotFoundError):
            await sla_service.delete_sla_config(seed.db, company.id, "Offer")


class TestBreaches:
    """Test breach detection."""

    async def test_no_thresholds_no_breaches(self, seed):
        company = await seed.company()
        job = await seed.job(company)
        application = await seed.application(job, await seed.candidate(company))
        await backdate(seed.db, application.id, 40)

        assert await sla_service.check_sla_breaches(seed.db, company.id) == []

    async def test_breach_reported(self, seed):
        """Time in stage beyond the threshold is a breach."""
        company = await seed.company()
        job = await seed.job(company)
        candidate = await seed.candidate(company, name="Slow Poke")
        application = await seed.application(job, candidate)
        await sla_service.upsert_sla_config(seed.db, company.id, "queue", 5)

        breaches = await sla_service.check_sla_breaches(
            seed.db, company.id, at=now() + timedelta(days=10, hours=1)
        )

        assert len(breaches) == 1
        breach = breaches[0]
        assert breach.job_candidate_id == application.id
        assert breach.candidate_name == "Slow Poke"
        assert breach.stage_name == "Queue"
        assert breach.days_in_stage == 10
        assert breach.threshold_days == 5
        assert breach.days_overdue == 5

    async def test_within_threshold(self, seed):
        company = await seed.company()
        job = await seed.job(company)
        await seed.application(job, await seed.candidate(company))
        await sla_service.upsert_sla_config(seed.db, company.id, "Queue", 5)

        breaches = await sla_service.check_sla_breaches(
            seed.db, company.id, at=now() + timedelta(days=4)
        )

        assert breaches == []

    async def test_most_overdue_first(self, seed):
        company = await seed.company()
        job = await seed.job(company)
        recent = await seed.application(job, await seed.candidate(company))
        old = await seed.application(job, await seed.candidate(company))
        await backdate(seed.db, recent.id, 8)
        await backdate(seed.db, old.id, 20)
        await sla_service.upsert_sla_config(seed.db, company.id, "Queue", 5)

        breaches = await sla_service.check_sla_breaches(seed.db, company.id)

        assert [b.job_candidate_id for b in breaches] == [old.id, recent.id]

    async def test_inactive_jobs_ignored(self, seed):
        """Paused and closed jobs are not checked."""
        company = await seed.company()
        admin = await seed.user(company)
        job = await seed.job(company)
        application = await seed.application(job, await seed.candidate(company))
        await backdate(seed.db, application.id, 30)
        await sla_service.upsert_sla_config(seed.db, company.id, "Queue", 5)
        await job_service.update_job_status(seed.db, job.id, "closed", as_current_user(admin))

        assert await sla_service.check_sla_breaches(seed.db, company.id) == []

    async def test_notify_breaches(self, seed):
        """Each breach notifies the job's recruiter and managers."""
        company = await seed.company()
        recruiter = await seed.user(company, role=UserRole.RECRUITER)
        manager = await seed.user(company, role=UserRole.HIRING_MANAGER)
        job = await seed.job(company, title="Data Engineer", recruiter=recruiter)
        candidate = await seed.candidate(company, name="Edsger")
        application = await seed.application(job, candidate)
        await backdate(seed.db, application.id, 12.5)
        await sla_service.upsert_sla_config(seed.db, company.id, "Queue", 10)

        sent = await sla_service.notify_sla_breaches(seed.db, company.id)

        assert sent == 2
        inbox = await notification_service.get_notifications(seed.db, manager.id)
        notification = inbox["items"][0]
        assert notification.type == NotificationType.SLA_BREACH
        assert notification.message == (
            "Edsger has been in Queue for 12 days (2 days overdue) for Data Engineer"
        )
