"""Tests for notification endpoints."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

from core.exceptions import NotFoundError
from tests.helpers import CREATED, auth_header


RECRUITER = auth_header(3, 1, "recruiter")


def fake_notification(id=1, is_read=False):
    return SimpleNamespace(
        id=id,
        user_id=3,
        type="stage_change",
        title="Candidate moved",
        message="Ada Lovelace moved from Queue to Screening for Backend Engineer",
        entity_type="job_candidate",
        entity_id=20,
        is_read=is_read,
        created_at=CREATED,
    )


class TestNotifications:
    """Test the caller's notification inbox."""

    def test_list(self, client):
        inbox = {"items": [fake_notification()], "unread_count": 1}
        with patch(
            "api.services.notifications.get_notifications", new=AsyncMock(return_value=inbox)
        ) as get_notifications:
            response = client.get("/api/v1/notifications?unreadOnly=true&limit=5", headers=RECRUITER)

        assert response.status_code == 200
        data = response.json()
        assert data["unreadCount"] == 1
        assert data["items"][0]["entityType"] == "job_candidate"
        assert get_notifications.await_args.args[1] == 3
        assert get_notifications.await_args.kwargs == {"unread_only": True, "limit": 5}

    def test_mark_read(self, client):
        with patch(
            "api.services.notifications.mark_as_read", new=AsyncMock(return_value=fake_notification(is_read=True))
        ) as mark:
            response = client.post("/api/v1/notifications/1/read", headers=RECRUITER)

        assert response.status_code == 200
        assert response.json()["isRead"] is True
        assert mark.await_args.args[1:] == (1, 3)

    def test_mark_read_of_another_user(self, client):
        with patch(
            "api.services.notifications.mark_as_read", new=AsyncMock(side_effect=NotFoundError("Notification"))
        ):
            response = client.post("/api/v1/notifications/7/read", headers=RECRUITER)

        assert response.status_code == 404

    def test_mark_all_read(self, client):
        with patch("api.services.notifications.mark_all_as_read", new=AsyncMock(return_value=4)):
            response = client.post("/api/v1/notifications/read-all", headers=RECRUITER)

        assert response.json() == {"updated": 4}

    def test_unauthenticated(self, client):
        assert client.get("/api/v1/notifications").status_code == 401
