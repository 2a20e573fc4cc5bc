"""Document store holding the read-optimized ``users/{uid}`` summaries.

One Firestore client is created per process with an explicit open/close
lifecycle (the FastAPI lifespan, or first use in a Celery worker) and handed to
the services that need it. Nothing else initializes Firebase.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import threading
import uuid
from abc import ABC, abstractmethod
from typing import Any

import firebase_admin
from firebase_admin import credentials, firestore
from google.api_core import exceptions as google_exceptions
from google.auth import exceptions as google_auth_exceptions

from app.config import settings
from app.services.errors import DocumentStoreError

logger = logging.getLogger(__name__)


class DocumentStore(ABC):
    """Abstract interface for the user summary documents."""

    @abstractmethod
    def open(self) -> None:
        """Acquire clients. Safe to call more than once."""

    @abstractmethod
    def close(self) -> None:
        """Release clients."""

    @abstractmethod
    def get_user(self, user_id: str) -> dict[str, Any] | None:
        """Return the user document, or None when it does not exist."""

    @abstractmethod
    def merge_user(self, user_id: str, data: dict[str, Any]) -> None:
        """Merge ``data`` into the user document, creating it if needed."""


def parse_service_account(raw: str) -> dict[str, Any]:
    """Accept the service account as raw JSON or base64-encoded JSON."""
    text = raw.strip()
    if not text.startswith("{"):
        try:
            text = base64.b64decode(text, validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as exc:
            raise ValueError("Service account is neither JSON nor base64 JSON") from exc
    try:
        info = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ValueError("Service account is not valid JSON") from exc
    if not isinstance(info, dict):
        raise ValueError("Service account must be a JSON object")
    # Keys pasted into env files often carry escaped newlines.
    if isinstance(info.get("private_key"), str):
        info["private_key"] = info["private_key"].replace("\\n", "\n")
    return info


class FirestoreDocumentStore(DocumentStore):
    def __init__(self, service_account: str, collection: str = "users") -> None:
        self._service_account = service_account
        self.collection = collection
        self._app: firebase_admin.App | None = None
        self._client: Any = None
        self._lock = threading.Lock()

    @property
    def is_open(self) -> bool:
        return self._client is not None

    def open(self) -> None:
        with self._lock:
            if self._client is not None:
                return
            if not self._service_account:
                logger.warning("Firestore is not configured; documents will stay flagged")
                return
            try:
                info = parse_service_account(self._service_account)
                # A named app keeps this client independent of any default app.
                self._app = firebase_admin.initialize_app(
                    credentials.Certificate(info),
                    name=f"inrooms-sync-{uuid.uuid4().hex[:8]}",
                )
            except ValueError as exc:
                raise DocumentStoreError(f"Invalid Firestore service account: {exc}") from exc
            self._client = firestore.client(app=self._app)
            logger.info("Firestore client opened for project %s", info.get("project_id"))

    def close(self) -> None:
        with self._lock:
            if self._app is not None:
                firebase_admin.delete_app(self._app)
                logger.info("Firestore client closed")
            self._app = None
            self._client = None

    def _document(self, user_id: str):
        if self._client is None:
            self.open()
        if self._client is None:
            raise DocumentStoreError("Firestore is not configured")
        return self._client.collection(self.collection).document(user_id)

    def get_user(self, user_id: str) -> dict[str, Any] | None:
        try:
            snapshot = self._document(user_id).get()
        except (
            google_exceptions.GoogleAPIError,
            google_auth_exceptions.GoogleAuthError,
        ) as exc:
            raise DocumentStoreError(f"Firestore read failed for {user_id}: {exc}") from exc
        if not snapshot.exists:
            return None
        return snapshot.to_dict()

    def merge_user(self, user_id: str, data: dict[str, Any]) -> None:
        try:
            self._document(user_id).set(data, merge=True)
        except (
            google_exceptions.GoogleAPIError,
            google_auth_exceptions.GoogleAuthError,
        ) as exc:
            raise DocumentStoreError(f"Firestore write failed for {user_id}: {exc}") from exc


_store: DocumentStore | None = None
_store_lock = threading.Lock()


def get_document_store() -> DocumentStore:
    """Return the process-wide store, creating it on first use."""
    global _store
    with _store_lock:
        if _store is None:
            _store = FirestoreDocumentStore(
                settings.firebase_service_account,
                settings.firestore_users_collection,
            )
        return _store


def close_document_store() -> None:
    global _store
    with _store_lock:
        store, _store = _store, None
    if store is not None:
        store.close()
