"""
Directory (People API) sync client.

Keeps the companion directory eventually consistent with local users by
upserting on publicAddress:

    POST {PEOPLE_API_URL}/api/users/sync   (x-api-key header)
    -> {"user": {...}, "created": true|false}

The sync is strictly best-effort. sync_user() never raises: an unconfigured
directory, a network error or a non-success response all come back as None.
Routes do not call it inline; they schedule run_directory_sync() as a
background task so the primary response is never held up by it.
"""

import logging
import random
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import requests

from app.core.config import settings

logger = logging.getLogger(__name__)


@dataclass
class SyncUserData:
    public_address: str
    username: Optional[str] = None
    name: Optional[str] = None
    profile_picture: Optional[str] = None
    farcaster_id: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        payload = {
            "publicAddress": self.public_address,
            "username": self.username,
            "name": self.name,
            "profilePicture": self.profile_picture,
            "farcasterId": self.farcaster_id,
        }
        return {key: value for key, value in payload.items() if value is not None}


@dataclass
class SyncUserResult:
    user: Dict[str, Any]
    created: bool

    @property
    def people_user_id(self) -> Optional[int]:
        value = self.user.get("id")
        return value if isinstance(value, int) else None


class DirectorySyncError(Exception):
    """One failed sync attempt. retryable marks transient failures."""

    def __init__(self, message: str, retryable: bool):
        super().__init__(message)
        self.retryable = retryable


class DirectorySyncClient:
    def __init__(
        self,
        base_url: Optional[str],
        api_key: Optional[str],
        timeout: float = 10.0,
        http: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/") if base_url else None
        self.api_key = api_key
        self.timeout = timeout
        self.http = http or requests.Session()

    @property
    def configured(self) -> bool:
        return bool(self.base_url and self.api_key)

    def sync_once(self, data: SyncUserData) -> SyncUserResult:
        """Single upsert attempt. Raises DirectorySyncError on any failure."""
        try:
            response = self.http.post(
                f"{self.base_url}/api/users/sync",
                json=data.to_payload(),
                headers={"x-api-key": self.api_key},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise DirectorySyncError(f"directory unreachable: {type(exc).__name__}", retryable=True) from exc

        if not response.ok:
            retryable = response.status_code >= 500 or response.status_code == 429
            raise DirectorySyncError(f"directory returned {response.status_code}", retryable=retryable)

        try:
            body = response.json()
        except ValueError as exc:
            raise DirectorySyncError("directory returned invalid JSON", retryable=False) from exc
        if not isinstance(body, dict) or not isinstance(body.get("user"), dict):
            raise DirectorySyncError("directory response missing user", retryable=False)
        return SyncUserResult(user=body["user"], created=bool(body.get("created", False)))

    def sync_user(self, data: SyncUserData) -> Optional[SyncUserResult]:
        if not self.configured:
            logger.warning("directory sync not configured, skipping %s", data.public_address)
            return None
        try:
            result = self.sync_once(data)
        except DirectorySyncError as exc:
            logger.error("directory sync failed for %s: %s", data.public_address, exc)
            return None
        logger.info("directory sync ok for %s (created=%s)", data.public_address, result.created)
        return result


def _backoff_delay(attempt: int, base_seconds: float) -> float:
    delay = base_seconds * (2 ** attempt)
    return delay + random.uniform(0, delay * 0.1)


def run_directory_sync(
    client: DirectorySyncClient,
    data: SyncUserData,
    on_synced: Optional[Callable[[SyncUserResult], None]] = None,
    max_attempts: Optional[int] = None,
    backoff_seconds: Optional[float] = None,
) -> Optional[SyncUserResult]:
    """
    Background sync with bounded retry on transient failures.

    Meant for BackgroundTasks.add_task(); it never raises. The outcome is
    logged, and on success on_synced(result) is called so callers can keep
    the directory id.
    """
    if not client.configured:
        logger.warning("directory sync not configured, skipping %s", data.public_address)
        return None

    attempts = max(1, max_attempts or settings.DIRECTORY_SYNC_MAX_ATTEMPTS)
    base_delay = settings.DIRECTORY_SYNC_BACKOFF_SECONDS if backoff_seconds is None else backoff_seconds

    result: Optional[SyncUserResult] = None
    for attempt in range(attempts):
        try:
            result = client.sync_once(data)
            break
        except DirectorySyncError as exc:
            if not exc.retryable or attempt >= attempts - 1:
                logger.error(
                    "directory sync gave up for %s after %d attempt(s): %s",
                    data.public_address, attempt + 1, exc,
                )
                return None
            delay = _backoff_delay(attempt, base_delay)
            logger.warning(
                "directory sync attempt %d/%d failed for %s: %s, retrying in %.2fs",
                attempt + 1, attempts, data.public_address, exc, delay,
            )
            time.sleep(delay)

    if result is None:
        return None
    logger.info("directory sync ok for %s (created=%s)", data.public_address, result.created)

    if on_synced is not None:
        try:
            on_synced(result)
        except Exception:
            logger.exception("directory sync callback failed for %s", data.public_address)
    return result


def get_directory_client() -> DirectorySyncClient:
    return DirectorySyncClient(
        settings.PEOPLE_API_URL,
        settings.PEOPLE_API_KEY,
        timeout=settings.HTTP_TIMEOUT_SECONDS,
    )
