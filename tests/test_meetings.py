from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock

import httpx
import pytest

from app.config import settings
from app.schemas.meetings import MeetingCreate
from app.services.errors import MeetingCreationError
from app.services.meetings import (
    GoogleMeetClient,
    Meetings,
    meet_link_from_event,
    mock_meet_link,
)

START = datetime(2030, 5, 1, 15, 0, tzinfo=UTC)


def _payload(**overrides):
    data = {"title": "Demo call", "start_time": START, "end_time": START + timedelta(hours=1)}
    data.update(overrides)
    return MeetingCreate(**data)


def _client(configured=True, event=None, error=None):
    client = MagicMock()
    client.is_configured.return_value = configured
    if error is not None:
        client.create_event.side_effect = error
    else:
        client.create_event.return_value = event or {}
    return client


class TestMeetLink:
    def test_video_entry_point(self):
        event = {
            "conferenceData": {
                "entryPoints": [
                    {"entryPointType": "phone", "uri": "tel:+1"},
                    {"entryPointType": "video", "uri": "https://meet.google.com/abc-defg-hij"},
                ]
            }
        }
        assert meet_link_from_event(event) == "https://meet.google.com/abc-defg-hij"

    def test_hangout_link_fallback(self):
        assert meet_link_from_event({"hangoutLink": "https://meet.google.com/x"}) == (
            "https://meet.google.com/x"
        )

    def test_mock_link_shape(self):
        code = mock_meet_link().rsplit("/", 1)[1]
        assert [len(part) for part in code.split("-")] == [3, 4, 3]


class TestMeetings:
    def test_creates_real_link(self):
        event = {"id": "evt1", "hangoutLink": "https://meet.google.com/aaa-bbbb-ccc"}
        result = Meetings(_client(event=event)).create(_payload())
        assert result.meet_link == "https://meet.google.com/aaa-bbbb-ccc"
        assert result.event_id == "evt1"
        assert result.is_mock is False

    def test_end_before_start(self):
        with pytest.raises(MeetingCreationError):
            Meetings(_client()).create(_payload(end_time=START))

    def test_mock_in_development_when_unconfigured(self):
        result = Meetings(_client(configured=False)).create(_payload())
        assert result.is_mock is True
        assert result.meet_link.startswith("https://meet.google.com/")

    def test_errors_raise_outside_development(self, monkeypatch):
        monkeypatch.setattr(settings, "is_development", False)
        client = _client(error=httpx.ConnectError("down"))
        with pytest.raises(MeetingCreationError):
            Meetings(client).create(_payload())

    def test_malformed_private_key_falls_back_in_development(self, monkeypatch):
        monkeypatch.setattr(settings, "google_client_email", "meet@inrooms-test.iam.gserviceaccount.com")
        monkeypatch.setattr(settings, "google_private_key", "not-a-pem-key")
        result = Meetings(GoogleMeetClient()).create(_payload())
        assert result.is_mock is True

    def test_malformed_private_key_raises_outside_development(self, monkeypatch):
        monkeypatch.setattr(settings, "is_development", False)
        monkeypatch.setattr(settings, "google_client_email", "meet@inrooms-test.iam.gserviceaccount.com")
        monkeypatch.setattr(settings, "google_private_key", "not-a-pem-key")
        with pytest.raises(MeetingCreationError, match="Invalid Google private key"):
            Meetings(GoogleMeetClient()).create(_payload())

    def test_api_returns_mock_link(self, client, admin_headers):
        resp = client.post(
            "/meetings",
            json={
                "title": "Walkthrough",
                "start_time": START.isoformat(),
                "end_time": (START + timedelta(minutes=30)).isoformat(),
            },
            headers=admin_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["is_mock"] is True
