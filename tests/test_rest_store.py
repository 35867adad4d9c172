"""PostgREST store wire format and authorization handling, against a fake session."""

from __future__ import annotations

import sys
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List

import pytest
import requests

sys.path.append(str(Path(__file__).resolve().parents[1]))

from logic.onboarding import initialize_user_profile  # noqa: E402
from logic.rejection_tracker import track_rejection  # noqa: E402
from memory.errors import PersistenceError, SyncAuthorizationError, SyncUnavailableError  # noqa: E402
from memory.profile_store import InteractionEvent, OutfitRecord  # noqa: E402
from memory.rest_store import (  # noqa: E402
    DISLIKED_COLORS_KEY,
    LIKED_COLORS_KEY,
    STYLE_VECTOR_KEY,
    RestProfileStore,
    compose_profile,
    map_budget,
)
from memory.sync import SyncStatus, is_auth_error  # noqa: E402

NOW = datetime(2024, 5, 1, tzinfo=timezone.utc)
USER_ID = str(uuid.UUID("3f2b8c1e-5d4a-4b6c-9e7f-1a2b3c4d5e6f"))


class FakeResponse:
    def __init__(self, status_code: int = 200, body: Any = None) -> None:
        self.status_code = status_code
        self._body = body
        self.text = "" if body is None else str(body)
        self.content = b"" if body is None else b"x"

    def json(self) -> Any:
        if self._body is None:
            raise ValueError("no body")
        return self._body


class FakeSession:
    """Records requests and answers from a queue of canned responses."""

    def __init__(self, responses: List[FakeResponse] | None = None) -> None:
        self.calls: List[Dict[str, Any]] = []
        self.responses = list(responses or [])

    def request(self, method, url, params=None, json=None, headers=None, timeout=None):
        self.calls.append(
            {"method": method, "url": url, "params": params, "json": json, "headers": headers, "timeout": timeout}
        )
        if self.responses:
            return self.responses.pop(0)
        return FakeResponse(201)


def _store(session: FakeSession, status: SyncStatus | None = None) -> RestProfileStore:
    return RestProfileStore(
        "https://db.example.com/rest/v1/", "anon-key", session=session, status=status or SyncStatus()
    )


def _profile():
    profile = initialize_user_profile(
        USER_ID, {"colorsToAvoid": ["orange"], "patternsToAvoid": ["plaid"], "budget": "High end"}, now=NOW
    )
    profile.preference_weights = {"fit:slim": 0.4}
    profile.liked_colors = ["navy"]
    track_rejection(profile, "color", "mustard", now=NOW)
    return profile


def test_budget_tiers() -> None:
    assert map_budget(None) == "mid"
    assert map_budget("Low budget") == "low"
    assert map_budget("High end") == "high"
    assert map_budget("Medium") == "mid"


def test_save_profile_speaks_the_hosted_schema() -> None:
    session = FakeSession()
    profile = _profile()

    _store(session).save_profile(profile)

    methods = [(call["method"], call["url"].rsplit("/", 1)[-1]) for call in session.calls]
    assert methods == [
        ("POST", "user_profile"),
        ("POST", "user_preferences"),
        ("DELETE", "user_attr_stats"),
        ("POST", "user_attr_stats"),
    ]
    profile_row = session.calls[0]["json"]
    assert profile_row["budget_tier"] == "high"
    assert profile_row["hard_avoid_colors"] == ["orange"]
    assert session.calls[0]["headers"]["Prefer"] == "resolution=merge-duplicates"
    assert session.calls[0]["headers"]["Authorization"] == "Bearer anon-key"

    weights = session.calls[1]["json"]["weights"]
    assert weights["fit:slim"] == 0.4
    assert weights[LIKED_COLORS_KEY] == ["navy"]
    assert weights[DISLIKED_COLORS_KEY] == []
    assert weights[STYLE_VECTOR_KEY]["comfort"] == 0.7

    rows = {row["attr_key"]: row for row in session.calls[3]["json"]}
    assert rows["color:orange"]["cooldown_until_session"] == -1
    assert rows["pattern:plaid"]["cooldown_until_session"] == -1
    assert rows["color:mustard"]["cooldown_until_session"] is None
    assert rows["color:mustard"]["streak_dislikes"] == 1
    assert rows["color:mustard"]["last_seen_session"] == int(NOW.timestamp())
    assert profile.version == 0


def test_load_profile_reconstructs_pattern_bans_and_reserved_keys() -> None:
    session = FakeSession(
        [
            FakeResponse(200, [{"user_id": USER_ID, "budget_tier": "low", "hard_avoid_colors": ["orange"]}]),
            FakeResponse(
                200,
                [
                    {
                        "user_id": USER_ID,
                        "weights": {
                            "fit:slim": 0.4,
                            STYLE_VECTOR_KEY: {"formality": 0.9},
                            LIKED_COLORS_KEY: ["navy"],
                            DISLIKED_COLORS_KEY: ["brown"],
                            "bogus": "x",
                        },
                    }
                ],
            ),
            FakeResponse(
                200,
                [
                    {"attr_key": "pattern:plaid", "streak_dislikes": 3, "cooldown_until_session": -1,
                     "last_seen_session": int(NOW.timestamp())},
                    {"attr_key": "color:mustard", "dislikes": 2, "cooldown_until_session": None,
                     "last_seen_session": int(NOW.timestamp())},
                ],
            ),
        ]
    )

    profile = _store(session).load_profile(USER_ID)

    assert session.calls[0]["params"] == {"user_id": f"eq.{USER_ID}", "select": "*"}
    assert profile.preference_weights == {"fit:slim": 0.4}
    assert profile.style_vector.formality == 0.9
    assert profile.style_vector.comfort == 0.7
    assert profile.liked_colors == ["navy"]
    assert profile.disliked_colors == ["brown"]
    assert profile.onboarding_constraints.patterns_to_avoid == ["plaid"]
    assert profile.onboarding_constraints.budget == "low"
    mustard = profile.find_rejection("color", "mustard")
    assert mustard.streak == 2 and not mustard.is_hard_ban
    assert mustard.last_rejected == NOW
    assert profile.find_rejection("pattern", "plaid").is_hard_ban


def test_missing_profile_row_loads_as_none() -> None:
    session = FakeSession([FakeResponse(200, [])])
    assert _store(session).load_profile(USER_ID) is None
    assert len(session.calls) == 1


def test_compose_profile_tolerates_missing_preferences() -> None:
    profile = compose_profile({"user_id": USER_ID}, None, [])
    assert profile.preference_weights == {}
    assert profile.onboarding_constraints.budget == "Medium"


def test_authorization_failure_is_sticky() -> None:
    status = SyncStatus()
    session = FakeSession([FakeResponse(403, {"code": "42501", "message": "new row violates row-level security"})])
    store = _store(session, status)

    with pytest.raises(SyncAuthorizationError):
        store.record_interaction(InteractionEvent(user_id=USER_ID, outfit_id="o1", action="like", created_at=NOW))
    assert not status.available

    with pytest.raises(SyncUnavailableError):
        store.save_profile(_profile())
    assert len(session.calls) == 1


def test_server_errors_do_not_disable_sync() -> None:
    status = SyncStatus()
    session = FakeSession([FakeResponse(500, {"message": "boom"})])

    with pytest.raises(PersistenceError) as excinfo:
        _store(session, status).upsert_outfit(OutfitRecord(outfit_id="o1", theme="t", analysis={}, user_id=USER_ID))
    assert not isinstance(excinfo.value, SyncAuthorizationError)
    assert status.available
    assert session.calls[0]["json"]["tags"]["theme"] == "t"


def test_network_errors_become_persistence_errors() -> None:
    class BrokenSession(FakeSession):
        def request(self, *args, **kwargs):
            raise requests.ConnectionError("unreachable")

    with pytest.raises(PersistenceError):
        _store(BrokenSession()).load_profile(USER_ID)


def test_non_uuid_users_are_never_synced() -> None:
    session = FakeSession()
    with pytest.raises(SyncUnavailableError):
        _store(session).load_profile("local-user")
    assert session.calls == []


@pytest.mark.parametrize(
    "error, expected",
    [
        ({"status": 401}, True),
        ({"code": "42501"}, True),
        ({"message": "permission denied for table outfits"}, True),
        ({"status": 500, "message": "timeout"}, False),
        (RuntimeError("Unauthorized"), True),
        (None, False),
    ],
)
def test_auth_error_detection(error, expected) -> None:
    assert is_auth_error(error) is expected
