"""HTTP client for Google Calendar API v3 and the Google OAuth2 endpoints,
with retry logic, timeout handling and cached access tokens.

Calendar API docs: https://developers.google.com/calendar/api/v3/reference
Each doctor authorises offline access once; the stored refresh token is
exchanged for a short-lived access token before every batch of calls.
"""

from __future__ import annotations

import hashlib
import logging
import threading
import time
from datetime import UTC, datetime
from typing import Any
from urllib.parse import quote

import httpx

from src.config import (
    FRONTEND_URL,
    GOOGLE_CALENDAR_BASE_URL,
    GOOGLE_CLIENT_ID,
    GOOGLE_CLIENT_SECRET,
    GOOGLE_OAUTH_AUTH_URL,
    GOOGLE_OAUTH_TOKEN_URL,
    GOOGLE_USERINFO_URL,
)
from src.services.cache import LRUCache
from src.services.metrics import metrics

logger = logging.getLogger(__name__)

# ── Retry configuration ─────────────────────────────────────────────
MAX_RETRIES = 3
INITIAL_BACKOFF_SECONDS = 1.0
REQUEST_TIMEOUT_SECONDS = 15.0

EVENTS_PAGE_SIZE = 250
# Refresh access tokens a minute before Google expires them
TOKEN_EXPIRY_MARGIN_SECONDS = 60

OAUTH_SCOPES: tuple[str, ...] = (
    "https://www.googleapis.com/auth/userinfo.profile",
    "https://www.googleapis.com/auth/userinfo.email",
    "https://www.googleapis.com/auth/calendar",
)

_CK_ACCESS_TOKEN = "access_token:"


class GoogleCalendarAPIError(Exception):
    """Raised when a Google API call fails after all retries."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class SyncTokenExpiredError(GoogleCalendarAPIError):
    """HTTP 410: the incremental sync token is no longer valid."""


def epoch_millis(value: datetime) -> int:
    """Milliseconds since the epoch; naive datetimes are read as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return int(value.timestamp() * 1000)


class GoogleCalendarClient:
    """Google Calendar REST wrapper with automatic retries.

    Timeouts, connection errors and 5xx answers are retried with
    exponential backoff; 4xx answers are raised immediately.
    """

    def __init__(
        self,
        client_id: str | None = None,
        client_secret: str | None = None,
        base_url: str | None = None,
        *,
        cache: LRUCache | None = None,
    ):
        self._client_id = client_id or GOOGLE_CLIENT_ID
        self._client_secret = client_secret or GOOGLE_CLIENT_SECRET
        self._base_url = (base_url or GOOGLE_CALENDAR_BASE_URL).rstrip("/")
        self._client = httpx.Client(timeout=REQUEST_TIMEOUT_SECONDS)
        self._cache = cache or LRUCache(max_bytes=1 * 1024 * 1024)

    def close(self) -> None:
        self._client.close()

    # ── Internal helpers ─────────────────────────────────────────────

    def _request(
        self,
        method: str,
        url: str,
        *,
        operation: str,
        access_token: str | None = None,
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
        form: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Execute an HTTP request with exponential-backoff retries."""
        headers = {"Authorization": f"Bearer {access_token}"} if access_token else None
        last_error: Exception | None = None
        for attempt in range(1, MAX_RETRIES + 1):
            try:
                with metrics.timed("google_calendar", operation):
                    response = self._client.request(
                        method, url, params=params, json=json_body, data=form, headers=headers,
                    )
                    if response.status_code >= 400:
                        error_cls = (
                            SyncTokenExpiredError if response.status_code == 410 else GoogleCalendarAPIError
                        )
                        kind = "Server" if response.status_code >= 500 else "Client"
                        raise error_cls(
                            f"{kind} error {response.status_code}: {response.text}",
                            status_code=response.status_code,
                        )
                if response.status_code == 204 or not response.content:
                    return {}
                return response.json()

            except (httpx.TimeoutException, httpx.ConnectError) as exc:
                last_error = exc
                logger.warning(
                    "Google API %s attempt %d/%d failed (%s). Retrying in %.1fs…",
                    operation,
                    attempt,
                    MAX_RETRIES,
                    type(exc).__name__,
                    INITIAL_BACKOFF_SECONDS * (2 ** (attempt - 1)),
                )
            except GoogleCalendarAPIError as exc:
                if exc.status_code and exc.status_code >= 500:
                    last_error = exc
                    logger.warning(
                        "Google API %s server error on attempt %d/%d. Retrying…",
                        operation,
                        attempt,
                        MAX_RETRIES,
                    )
                else:
                    raise  # 4xx errors are not retried

            if attempt < MAX_RETRIES:
                time.sleep(INITIAL_BACKOFF_SECONDS * (2 ** (attempt - 1)))

        raise GoogleCalendarAPIError(
            f"Google API request failed after {MAX_RETRIES} retries: {last_error}",
            status_code=getattr(last_error, "status_code", None),
        )

    def _calendar_url(self, path: str) -> str:
        return f"{self._base_url}/calendar/v3{path}"

    def _event_url(self, calendar_id: str, event_id: str) -> str:
        calendar, event = quote(calendar_id, safe=''), quote(event_id, safe='')
        return self._calendar_url(f"/calendars/{calendar}/events/{event}")

    # ── OAuth ────────────────────────────────────────────────────────

    def build_auth_url(self, state: str, redirect_uri: str | None = None) -> str:
        """Consent-screen URL requesting offline calendar access."""
        return str(httpx.URL(GOOGLE_OAUTH_AUTH_URL, params={
            "client_id": self._client_id,
            "redirect_uri": redirect_uri or f"{FRONTEND_URL}/auth/callback",
            "response_type": "code",
            "scope": " ".join(OAUTH_SCOPES),
            "access_type": "offline",
            "prompt": "consent",
            "state": state,
        }))

    def exchange_code(self, code: str, redirect_uri: str | None = None) -> dict[str, Any]:
        """Trade an authorization code for ``{access_token, refresh_token, ...}``."""
        return self._request(
            "POST",
            GOOGLE_OAUTH_TOKEN_URL,
            operation="exchange_code",
            form={
                "code": code,
                "client_id": self._client_id,
                "client_secret": self._client_secret,
                "redirect_uri": redirect_uri or f"{FRONTEND_URL}/auth/callback",
                "grant_type": "authorization_code",
            },
        )

    def get_user_info(self, access_token: str) -> dict[str, Any]:
        """Profile of the signed-in Google account (``id``, ``email``, ``name``, ``picture``)."""
        return self._request("GET", GOOGLE_USERINFO_URL, operation="userinfo", access_token=access_token)

    def refresh_access_token(self, refresh_token: str) -> str:
        """Access token for *refresh_token*, cached until shortly before expiry."""
        cache_key = _CK_ACCESS_TOKEN + hashlib.sha256(refresh_token.encode()).hexdigest()[:32]
        cached = self._cache.get(cache_key)
        if cached is not None:
            return cached

        data = self._request(
            "POST",
            GOOGLE_OAUTH_TOKEN_URL,
            operation="refresh_token",
            form={
                "client_id": self._client_id,
                "client_secret": self._client_secret,
                "refresh_token": refresh_token,
                "grant_type": "refresh_token",
            },
        )
        token = data["access_token"]
        ttl = int(data.get("expires_in", 3600)) - TOKEN_EXPIRY_MARGIN_SECONDS
        if ttl > 0:
            self._cache.put(cache_key, token, ttl_seconds=ttl)
        return token

    # ── Calendar ─────────────────────────────────────────────────────

    def watch_events(
        self,
        refresh_token: str,
        calendar_id: str,
        *,
        channel_id: str,
        address: str,
        token: str,
        expiration: datetime,
    ) -> dict[str, Any]:
        """Open a push-notification channel on *calendar_id*'s events."""
        access_token = self.refresh_access_token(refresh_token)
        return self._request(
            "POST",
            self._calendar_url(f"/calendars/{quote(calendar_id, safe='')}/events/watch"),
            operation="events_watch",
            access_token=access_token,
            json_body={
                "id": channel_id,
                "type": "web_hook",
                "address": address,
                "token": token,
                "expiration": epoch_millis(expiration),
            },
        )

    def stop_channel(self, refresh_token: str, channel_id: str, resource_id: str) -> None:
        access_token = self.refresh_access_token(refresh_token)
        self._request(
            "POST",
            self._calendar_url("/channels/stop"),
            operation="channels_stop",
            access_token=access_token,
            json_body={"id": channel_id, "resourceId": resource_id},
        )

    def list_events(
        self, refresh_token: str, calendar_id: str, sync_token: str | None = None,
    ) -> dict[str, Any]:
        """All events changed since *sync_token* (or every event without one).

        Follows ``nextPageToken`` until the last page and returns
        ``{"items": [...], "nextSyncToken": ...}``.  Raises
        :class:`SyncTokenExpiredError` when Google answers 410.
        """
        access_token = self.refresh_access_token(refresh_token)
        items: list[dict[str, Any]] = []
        page_token: str | None = None
        while True:
            params: dict[str, Any] = {
                "maxResults": EVENTS_PAGE_SIZE, "singleEvents": "true", "showDeleted": "true",
            }
            if sync_token:
                params["syncToken"] = sync_token
            if page_token:
                params["pageToken"] = page_token
            data = self._request(
                "GET",
                self._calendar_url(f"/calendars/{quote(calendar_id, safe='')}/events"),
                operation="events_list",
                access_token=access_token,
                params=params,
            )
            items.extend(data.get("items", []))
            page_token = data.get("nextPageToken")
            if not page_token:
                return {"items": items, "nextSyncToken": data.get("nextSyncToken")}

    def insert_event(self, refresh_token: str, calendar_id: str, event: dict[str, Any]) -> dict[str, Any]:
        access_token = self.refresh_access_token(refresh_token)
        return self._request(
            "POST",
            self._calendar_url(f"/calendars/{quote(calendar_id, safe='')}/events"),
            operation="events_insert",
            access_token=access_token,
            params={"sendUpdates": "all"},
            json_body=event,
        )

    def patch_event(
        self, refresh_token: str, calendar_id: str, event_id: str, changes: dict[str, Any],
    ) -> dict[str, Any]:
        """Merge *changes* into an existing event; attendees are notified."""
        access_token = self.refresh_access_token(refresh_token)
        return self._request(
            "PATCH",
            self._event_url(calendar_id, event_id),
            operation="events_patch",
            access_token=access_token,
            params={"sendUpdates": "all"},
            json_body=changes,
        )

    def delete_event(self, refresh_token: str, calendar_id: str, event_id: str) -> bool:
        """Delete an event; ``False`` when Google no longer has it."""
        access_token = self.refresh_access_token(refresh_token)
        try:
            self._request(
                "DELETE",
                self._event_url(calendar_id, event_id),
                operation="events_delete",
                access_token=access_token,
                params={"sendUpdates": "all"},
            )
        except GoogleCalendarAPIError as exc:
            if exc.status_code not in (404, 410):
                raise
            logger.info("Calendar event %s was already deleted", event_id)
            return False
        return True


# ── Module-level singleton (thread-safe) ────────────────────────────
_client: GoogleCalendarClient | None = None
_client_lock = threading.Lock()


def get_google_calendar_client() -> GoogleCalendarClient:
    """Return a module-level GoogleCalendarClient singleton.

    Uses double-checked locking so that the lock is only acquired during
    the first initialisation, not on every subsequent call.
    """
    global _client
    if _client is None:
        with _client_lock:
            if _client is None:
                _client = GoogleCalendarClient()
    return _client
