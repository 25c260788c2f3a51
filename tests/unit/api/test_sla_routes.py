"""Tests for SLA configuration endpoints."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

from api.schemas.sla import SLABreach
from core.exceptions import NotFoundError, ValidationError
from tests.helpers import CREATED, auth_header


ADMIN = auth_header(1, 1, "admin")
MANAGER = auth_header(2, 1, "hiring_manager")


def fake_config(stage_name="Screening", threshold_days=5):
    return SimpleNamespace(
        id=1, company_id=1, stage_name=stage_name, threshold_days=threshold_days, updated_at=CREATED
    )


class TestSLAConfigs:
    """Test threshold management."""

    def test_list(self, client):
        with patch("api.services.sla.get_sla_configs", new=AsyncMock(return_value=[fake_config()])):
            response = client.get("/api/v1/sla/configs", headers=ADMIN)

        assert response.status_code == 200
        assert response.json()[0]["thresholdDays"] == 5

    def test_hiring_manager_cannot_read(self, client):
        assert client.get("/api/v1/sla/configs", headers=MANAGER).status_code == 403

    def test_upsert(self, client):
        with patch(
            "api.services.sla.upsert_sla_config", new=AsyncMock(return_value=fake_config(threshold_days=7))
        ) as upsert:
            response = client.put(
                "/api/v1/sla/configs",
                json={"stageName": "Screening", "thresholdDays": 7},
                headers=ADMIN,
            )

        assert response.status_code == 200
        assert response.json()["stageName"] == "Screening"
        assert upsert.await_args.args[1:] == (1, "Screening", 7)

    def test_invalid_threshold(self, client):
        error = ValidationError({"thresholdDays": ["Threshold must be a positive whole number of days"]})
        with patch("api.services.sla.upsert_sla_config", new=AsyncMock(side_effect=error)):
            response = client.put(
                "/api/v1/sla/configs",
                json={"stageName": "Screening", "thresholdDays": 0},
                headers=ADMIN,
            )

        assert response.status_code == 400

    def test_delete(self, client):
        with patch("api.services.sla.delete_sla_config", new=AsyncMock(return_value=None)) as delete:
            response = client.delete("/api/v1/sla/configs/Screening", headers=ADMIN)

        assert response.status_code == 204
        assert delete.await_args.args[1:] == (1, "Screening")

    def test_delete_unknown(self, client):
        with patch(
            "api.services.sla.delete_sla_config", new=AsyncMock(side_effect=NotFoundError("SLA config"))
        ):
            response = client.delete("/api/v1/sla/configs/Offer", headers=ADMIN)

        assert response.status_code == 404


class TestSLABreaches:
    def test_list_breaches(self, client):
        breach = SLABreach(
            job_candidate_id=20,
            candidate_id=5,
            candidate_name="Edsger",
            job_id=10,
            job_title="Data Engineer",
            stage_name="Queue",
            entered_at=CREATED,
            days_in_stage=12,
            threshold_days=10,
            days_overdue=2,
        )
        with patch("api.services.sla.check_sla_breaches", new=AsyncMock(return_value=[breach])):
            response = client.get("/api/v1/sla/breaches", headers=ADMIN)

        assert response.status_code == 200
        assert response.json()[0]["daysOverdue"] == 2

    def test_notify(self, client):
        with patch("api.services.sla.notify_sla_breaches", new=AsyncMock(return_value=3)):
            response = client.post("/api/v1/sla/breaches/notify", headers=ADMIN)

        assert response.status_code == 200
        assert response.json() == {"notificationsSent": 3}
