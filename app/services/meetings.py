"""Google Meet links via the Calendar API and a service-account JWT."""

import logging
import secrets
import string
import time
import uuid
from typing import Any

import httpx
from jose import jwt
from jose.exceptions import JOSEError

from app.config import settings
from app.schemas.meetings import MeetingCreate, MeetingRead
from app.services.errors import MeetingCreationError

logger = logging.getLogger(__name__)

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_CALENDAR_URL = "https://www.googleapis.com/calendar/v3/calendars"
CALENDAR_SCOPE = "https://www.googleapis.com/auth/calendar"


def mock_meet_link() -> str:
    letters = string.ascii_lowercase
    parts = ["".join(secrets.choice(letters) for _ in range(n)) for n in (3, 4, 3)]
    return "https://meet.google.com/" + "-".join(parts)


class GoogleMeetClient:
    def is_configured(self) -> bool:
        return bool(settings.google_client_email and settings.google_private_key)

    def _assertion(self) -> str:
        now = int(time.time())
        claims = {
            "iss": settings.google_client_email,
            "scope": CALENDAR_SCOPE,
            "aud": GOOGLE_TOKEN_URL,
            "iat": now,
            "exp": now + 3600,
        }
        private_key = settings.google_private_key.replace("\\n", "\n")
        try:
            return jwt.encode(claims, private_key, algorithm="RS256")
        except JOSEError as exc:
            raise MeetingCreationError(f"Invalid Google private key: {exc}") from exc

    def _access_token(self, client: httpx.Client) -> str:
        resp = client.post(
            GOOGLE_TOKEN_URL,
            data={
                "grant_type": "urn:ietf:params:oauth:grant-type:jwt-bearer",
                "assertion": self._assertion(),
            },
        )
        if resp.status_code != 200:
            raise MeetingCreationError(f"Failed to get access token: {resp.text}")
        token = resp.json().get("access_token")
        if not token:
            raise MeetingCreationError("No access token returned from Google")
        return token

    def create_event(self, payload: MeetingCreate) -> dict[str, Any]:
        event = {
            "summary": payload.title,
            "description": payload.description or "",
            "start": {"dateTime": payload.start_time.isoformat(), "timeZone": "UTC"},
            "end": {"dateTime": payload.end_time.isoformat(), "timeZone": "UTC"},
            "conferenceData": {
                "createRequest": {
                    "requestId": uuid.uuid4().hex,
                    "conferenceSolutionKey": {"type": "hangoutsMeet"},
                }
            },
        }
        with httpx.Client(timeout=30) as client:
            token = self._access_token(client)
            resp = client.post(
                f"{GOOGLE_CALENDAR_URL}/{settings.google_calendar_id}/events",
                params={"conferenceDataVersion": 1},
                json=event,
                headers={"Authorization": f"Bearer {token}"},
            )
        if resp.status_code not in (200, 201):
            raise MeetingCreationError(f"Failed to create calendar event: {resp.text}")
        return resp.json()


def meet_link_from_event(event: dict[str, Any]) -> str | None:
    entry_points = (event.get("conferenceData") or {}).get("entryPoints") or []
    for entry in entry_points:
        if entry.get("entryPointType") == "video" and entry.get("uri"):
            return entry["uri"]
    return event.get("hangoutLink")


class Meetings:
    def __init__(self, client: GoogleMeetClient | None = None) -> None:
        self.client = client or GoogleMeetClient()

    def create(self, payload: MeetingCreate) -> MeetingRead:
        if payload.end_time <= payload.start_time:
            raise MeetingCreationError("end_time must be after start_time")
        try:
            if not self.client.is_configured():
                raise MeetingCreationError("Google service account is not configured")
            event = self.client.create_event(payload)
            link = meet_link_from_event(event)
            if not link:
                raise MeetingCreationError("Google Meet link not found in event response")
        except (MeetingCreationError, httpx.HTTPError) as exc:
            if not settings.is_development:
                if isinstance(exc, MeetingCreationError):
                    raise
                raise MeetingCreationError(f"Calendar request failed: {exc}") from exc
            logger.warning("Using mock meeting link in development: %s", exc)
            return MeetingRead(meet_link=mock_meet_link(), event_id=None, is_mock=True)
        logger.info("Created meeting %s", event.get("id"))
        return MeetingRead(meet_link=link, event_id=event.get("id"), is_mock=False)


meetings = Meetings()
