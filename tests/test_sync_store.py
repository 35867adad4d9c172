"""Local-first syncing store and the sticky sync-unavailable switch."""

from __future__ import annotations

import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from logic.onboarding import initialize_user_profile  # noqa: E402
from memory.errors import PersistenceError, SyncAuthorizationError  # noqa: E402
from memory.profile_store import InteractionEvent, JSONProfileStore, OutfitRecord, ProfileStore  # noqa: E402
from memory.sync import SyncingProfileStore, SyncStatus  # noqa: E402
from models.profile import UserProfile  # noqa: E402

NOW = datetime(2024, 5, 1, tzinfo=timezone.utc)
USER_ID = "3f2b8c1e-5d4a-4b6c-9e7f-1a2b3c4d5e6f"


class RecordingRemote(ProfileStore):
    def __init__(
        self,
        fail_with: Optional[Exception] = None,
        stored: Optional[UserProfile] = None,
        events: Optional[List[InteractionEvent]] = None,
    ) -> None:
        self.fail_with = fail_with
        self.stored = stored
        self.events = events or []
        self.calls: List[str] = []

    def _call(self, name: str) -> None:
        self.calls.append(name)
        if self.fail_with is not None:
            raise self.fail_with

    def load_profile(self, user_id: str) -> Optional[UserProfile]:
        self._call("load_profile")
        return self.stored

    def save_profile(self, profile: UserProfile) -> None:
        self._call("save_profile")

    def upsert_outfit(self, record: OutfitRecord) -> None:
        self._call("upsert_outfit")

    def record_interaction(self, event: InteractionEvent) -> None:
        self._call("record_interaction")

    def list_interactions(self, user_id: str, limit: int = 50) -> List[InteractionEvent]:
        self._call("list_interactions")
        return self.events[-limit:]


def _profile(user_id: str = USER_ID) -> UserProfile:
    return initialize_user_profile(user_id, {}, now=NOW)


def test_writes_go_local_then_remote(tmp_path: Path) -> None:
    remote = RecordingRemote()
    local = JSONProfileStore(tmp_path)
    store = SyncingProfileStore(remote=remote, local=local, status=SyncStatus())

    store.save_profile(_profile())
    store.record_interaction(InteractionEvent(user_id=USER_ID, outfit_id="o1", action="like", created_at=NOW))
    store.upsert_outfit(OutfitRecord(outfit_id="o1", theme="t", analysis={}, user_id=USER_ID))

    assert remote.calls == ["save_profile", "record_interaction", "upsert_outfit"]
    assert local.load_profile(USER_ID) is not None
    assert len(store.list_interactions(USER_ID)) == 1


def test_authorization_failure_flips_to_local_only(tmp_path: Path) -> None:
    status = SyncStatus()
    remote = RecordingRemote(fail_with=SyncAuthorizationError("403"))
    local = JSONProfileStore(tmp_path)
    store = SyncingProfileStore(remote=remote, local=local, status=status)

    with pytest.raises(SyncAuthorizationError):
        store.save_profile(_profile())
    assert not status.available
    assert local.load_profile(USER_ID).version == 1

    profile = local.load_profile(USER_ID)
    store.save_profile(profile)
    assert remote.calls == ["save_profile"]
    assert local.load_profile(USER_ID).version == 2


def test_raw_auth_exceptions_are_classified(tmp_path: Path) -> None:
    status = SyncStatus()
    remote = RecordingRemote(fail_with=RuntimeError("permission denied for table interactions"))
    store = SyncingProfileStore(remote=remote, local=JSONProfileStore(tmp_path), status=status)

    with pytest.raises(SyncAuthorizationError):
        store.record_interaction(InteractionEvent(user_id=USER_ID, outfit_id="o1", action="like", created_at=NOW))
    assert not status.available


def test_transient_failures_keep_sync_enabled(tmp_path: Path) -> None:
    status = SyncStatus()
    remote = RecordingRemote(fail_with=PersistenceError("503"))
    store = SyncingProfileStore(remote=remote, local=JSONProfileStore(tmp_path), status=status)

    with pytest.raises(PersistenceError):
        store.save_profile(_profile())
    assert status.available


def test_non_uuid_users_stay_local(tmp_path: Path) -> None:
    remote = RecordingRemote()
    store = SyncingProfileStore(remote=remote, local=JSONProfileStore(tmp_path), status=SyncStatus())

    store.save_profile(_profile("local-user"))

    assert remote.calls == []


def test_missing_local_profile_is_pulled_from_remote(tmp_path: Path) -> None:
    remote_profile = _profile()
    remote_profile.preference_weights = {"fit:slim": 0.5}
    remote = RecordingRemote(stored=remote_profile)
    local = JSONProfileStore(tmp_path)
    store = SyncingProfileStore(remote=remote, local=local, status=SyncStatus())

    loaded = store.load_profile(USER_ID)

    assert loaded.preference_weights == {"fit:slim": 0.5}
    assert local.load_profile(USER_ID).preference_weights == {"fit:slim": 0.5}
    store.load_profile(USER_ID)
    assert remote.calls == ["load_profile", "list_interactions"]


def test_unconfigured_sync_never_calls_remote(tmp_path: Path) -> None:
    remote = RecordingRemote()
    store = SyncingProfileStore(remote=remote, local=JSONProfileStore(tmp_path), status=SyncStatus(configured=False))

    assert store.load_profile(USER_ID) is None
    store.save_profile(_profile())
    assert remote.calls == []


def test_pulled_profile_continues_the_remote_event_sequence(tmp_path: Path) -> None:
    events = [
        InteractionEvent(user_id=USER_ID, outfit_id=f"o{n}", action="like", session_no=n, created_at=NOW)
        for n in (1, 2, 3)
    ]
    remote = RecordingRemote(stored=_profile(), events=events)
    local = JSONProfileStore(tmp_path)
    store = SyncingProfileStore(remote=remote, local=local, status=SyncStatus())

    assert store.load_profile(USER_ID).event_sequence == 3
    assert local.load_profile(USER_ID).event_sequence == 3
