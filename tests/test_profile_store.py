"""JSON and SQLite profile stores: record layout, versioning and logs."""

from __future__ import annotations

import json
import sqlite3
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from logic.onboarding import initialize_user_profile  # noqa: E402
from logic.rejection_tracker import track_rejection  # noqa: E402
from memory.errors import ProfileVersionConflict  # noqa: E402
from memory.profile_store import (  # noqa: E402
    InteractionEvent,
    JSONProfileStore,
    OutfitRecord,
    SQLiteProfileStore,
    ensure_outfit_id,
    is_valid_uuid,
)

NOW = datetime(2024, 5, 1, tzinfo=timezone.utc)


def _profile():
    profile = initialize_user_profile("user-1", {"colorsToAvoid": ["orange"], "contexts": ["work"]}, now=NOW)
    profile.preference_weights = {"fit:slim": 0.5}
    profile.liked_colors = ["navy"]
    profile.style_vector.formality = 0.8
    track_rejection(profile, "color", "mustard", now=NOW)
    return profile


@pytest.fixture(params=["json", "sqlite"])
def store(request, tmp_path: Path):
    if request.param == "json":
        return JSONProfileStore(base_dir=tmp_path / "profiles")
    return SQLiteProfileStore(tmp_path / "profiles.db")


def test_uuid_helpers() -> None:
    generated = ensure_outfit_id(None)
    assert is_valid_uuid(generated)
    assert ensure_outfit_id(generated) == generated
    assert ensure_outfit_id("look-42") != "look-42"
    assert not is_valid_uuid("123e4567-e89b-12d3-a456-426614174000")


def test_profile_round_trip(store) -> None:
    profile = _profile()

    assert store.load_profile("user-1") is None
    store.save_profile(profile)
    loaded = store.load_profile("user-1")

    assert profile.version == 1
    assert loaded.version == 1
    assert loaded.preference_weights == {"fit:slim": 0.5}
    assert loaded.liked_colors == ["navy"]
    assert loaded.style_vector.formality == 0.8
    assert loaded.onboarding_constraints.colors_to_avoid == ["orange"]
    assert [(r.key, r.streak, r.is_hard_ban) for r in loaded.rejections] == [
        ("color:orange", 3, True),
        ("color:mustard", 1, False),
    ]
    assert loaded.rejections[1].last_rejected == NOW


def test_stale_save_is_rejected(store) -> None:
    store.save_profile(_profile())
    first = store.load_profile("user-1")
    second = store.load_profile("user-1")

    first.preference_weights["color:navy"] = 0.3
    store.save_profile(first)

    with pytest.raises(ProfileVersionConflict) as excinfo:
        store.save_profile(second)
    assert excinfo.value.stored == 2
    assert store.load_profile("user-1").preference_weights["color:navy"] == 0.3


def test_lookalike_user_ids_keep_separate_profiles(store) -> None:
    store.save_profile(initialize_user_profile("alice@example.com", {"colorsToAvoid": ["red"]}, now=NOW))

    assert store.load_profile("alice_example.com") is None

    store.save_profile(initialize_user_profile("alice_example.com", {}, now=NOW))
    store.record_interaction(
        InteractionEvent(user_id="alice@example.com", outfit_id="o1", action="like", created_at=NOW)
    )

    assert store.load_profile("alice@example.com").onboarding_constraints.colors_to_avoid == ["red"]
    assert store.load_profile("alice_example.com").onboarding_constraints.colors_to_avoid == []
    assert store.list_interactions("alice_example.com") == []


def test_interactions_are_append_only_and_ordered(store) -> None:
    for index in range(3):
        store.record_interaction(
            InteractionEvent(
                user_id="user-1",
                outfit_id=f"o{index}",
                action="dislike",
                reasons=("Color",),
                session_no=index + 1,
                created_at=NOW,
            )
        )

    events = store.list_interactions("user-1")
    assert [event.outfit_id for event in events] == ["o0", "o1", "o2"]
    assert events[0].reasons == ("Color",)
    assert [event.outfit_id for event in store.list_interactions("user-1", limit=2)] == ["o1", "o2"]
    assert store.list_interactions("someone-else") == []


def test_outfit_upsert_is_idempotent(store) -> None:
    outfit_id = ensure_outfit_id(None)
    store.upsert_outfit(OutfitRecord(outfit_id=outfit_id, theme="office", analysis={"tags": []}))
    store.upsert_outfit(OutfitRecord(outfit_id=outfit_id, theme="weekend", analysis={"tags": []}, reason="too stiff"))

    stored = store.get_outfit(outfit_id)
    assert stored["theme"] == "weekend"
    assert stored["image_url"] == f"generated://{outfit_id}"


def test_json_store_keeps_three_sections(tmp_path: Path) -> None:
    store = JSONProfileStore(base_dir=tmp_path)
    store.save_profile(_profile())

    (profile_file,) = tmp_path.glob("*.json")
    document = json.loads(profile_file.read_text())

    assert set(document) == {"version", "profile", "preferences", "attribute_stats"}
    assert document["preferences"]["liked_colors"] == ["navy"]
    assert "style_vector" in document["preferences"]
    assert document["attribute_stats"][0]["attr_key"] == "color:orange"


def test_sqlite_store_uses_separate_tables(tmp_path: Path) -> None:
    db_path = tmp_path / "profiles.db"
    SQLiteProfileStore(db_path).save_profile(_profile())

    with sqlite3.connect(db_path) as conn:
        preference = conn.execute("SELECT liked_colors, style_vector FROM user_preferences").fetchone()
        stats = conn.execute("SELECT attr_key, is_hard_ban FROM user_attr_stats ORDER BY rowid").fetchall()

    assert json.loads(preference[0]) == ["navy"]
    assert json.loads(preference[1])["formality"] == 0.8
    assert stats == [("color:orange", 1), ("color:mustard", 0)]
