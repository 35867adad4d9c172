"""Remote sync gating and a local-first store that mirrors writes remotely."""

from __future__ import annotations

import logging
import threading
from typing import Any, List, Optional

from memory.errors import PersistenceError, ProfileVersionConflict, SyncAuthorizationError, SyncUnavailableError
from memory.profile_store import InteractionEvent, OutfitRecord, ProfileStore, is_valid_uuid
from models.profile import UserProfile
from style_app.logging_config import get_logger, log_event

LOGGER = get_logger(__name__)

_AUTH_CODES = ("401", "403", "42501")
_AUTH_PHRASES = ("authorization", "unauthorized", "row-level security", "permission denied")


def is_auth_error(error: Any) -> bool:
    """Return True when a backend error means our credentials or policies were refused.

    Accepts exceptions or plain dicts carrying ``status``, ``code`` and ``message``.
    """

    if error is None:
        return False
    if isinstance(error, SyncAuthorizationError):
        return True

    def read(name: str) -> Any:
        if isinstance(error, dict):
            return error.get(name)
        return getattr(error, name, None)

    status = read("status")
    response = read("response")
    if status is None and response is not None:
        status = getattr(response, "status_code", None)
    try:
        if int(status) in (401, 403):
            return True
    except (TypeError, ValueError):
        pass

    code = read("code")
    code_text = str(code if code is not None else (status if status is not None else ""))
    if any(marker in code_text for marker in _AUTH_CODES):
        return True

    message = read("message")
    if message is None and isinstance(error, BaseException):
        message = str(error)
    if isinstance(message, str):
        lowered = message.lower()
        return any(phrase in lowered for phrase in _AUTH_PHRASES)
    return False


class SyncStatus:
    """Process-wide switch for remote sync.

    Once an authorization failure is observed the switch stays off for the
    rest of the process; every later remote call is skipped.
    """

    def __init__(self, configured: bool = True) -> None:
        self.configured = configured
        self._auth_available = True
        self._reason: Optional[str] = None
        self._lock = threading.Lock()

    @property
    def available(self) -> bool:
        return self.configured and self._auth_available

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def can_sync(self, user_id: Optional[str]) -> bool:
        return self.available and is_valid_uuid(user_id)

    def mark_unavailable(self, reason: str) -> None:
        with self._lock:
            if not self._auth_available:
                return
            self._auth_available = False
            self._reason = reason
        log_event(LOGGER, logging.WARNING, "sync_disabled", cause=reason)

    def handle_error(self, error: Any) -> bool:
        """Flip the switch for authorization errors. Returns True if it did."""

        if not is_auth_error(error):
            return False
        self.mark_unavailable(str(error) or type(error).__name__)
        return True


DEFAULT_SYNC_STATUS = SyncStatus()


class SyncingProfileStore(ProfileStore):
    """Local-first store that mirrors every write to a remote store while sync is on.

    Local writes always happen first. A remote failure is raised as a
    :class:`PersistenceError` after the local copy is safe, so callers can
    record a warning. Once sync is disabled remote calls are skipped silently.
    """

    def __init__(self, remote: ProfileStore, local: ProfileStore, status: SyncStatus | None = None) -> None:
        self.remote = remote
        self.local = local
        self.status = status or DEFAULT_SYNC_STATUS

    def _mirror(self, user_id: str, operation: str, call, *args: Any) -> None:
        if not self.status.can_sync(user_id):
            return
        try:
            call(*args)
        except SyncUnavailableError:
            return
        except PersistenceError as exc:
            self.status.handle_error(exc)
            raise
        except Exception as exc:
            if self.status.handle_error(exc):
                raise SyncAuthorizationError(f"Remote {operation} refused") from exc
            raise PersistenceError(f"Remote {operation} failed") from exc

    def load_profile(self, user_id: str) -> Optional[UserProfile]:
        profile = self.local.load_profile(user_id)
        if profile is not None or not self.status.can_sync(user_id):
            return profile
        try:
            profile = self.remote.load_profile(user_id)
        except PersistenceError as exc:
            self.status.handle_error(exc)
            log_event(LOGGER, logging.WARNING, "persistence_failed", operation="remote_load", error=str(exc))
            return None
        if profile is not None:
            profile.version = 0
            profile.event_sequence = max(profile.event_sequence, self._remote_sequence(user_id))
            self.local.save_profile(profile)
        return profile

    def _remote_sequence(self, user_id: str) -> int:
        """Highest session number in the remote interaction log.

        The hosted profile row has no event counter, so it is recovered here.
        """

        try:
            events = self.remote.list_interactions(user_id, limit=1)
        except PersistenceError as exc:
            self.status.handle_error(exc)
            log_event(LOGGER, logging.WARNING, "persistence_failed", operation="remote_sequence", error=str(exc))
            return 0
        return max((event.session_no for event in events), default=0)

    def save_profile(self, profile: UserProfile) -> None:
        self.local.save_profile(profile)
        self._mirror(profile.user_id, "save_profile", self.remote.save_profile, profile)

    def upsert_outfit(self, record: OutfitRecord) -> None:
        self.local.upsert_outfit(record)
        if record.user_id is not None:
            self._mirror(record.user_id, "upsert_outfit", self.remote.upsert_outfit, record)

    def record_interaction(self, event: InteractionEvent) -> None:
        self.local.record_interaction(event)
        self._mirror(event.user_id, "record_interaction", self.remote.record_interaction, event)

    def list_interactions(self, user_id: str, limit: int = 50) -> List[InteractionEvent]:
        return self.local.list_interactions(user_id, limit)


__all__ = [
    "DEFAULT_SYNC_STATUS",
    "PersistenceError",
    "ProfileVersionConflict",
    "SyncAuthorizationError",
    "SyncStatus",
    "SyncUnavailableError",
    "SyncingProfileStore",
    "is_auth_error",
]
