"""Rejection streaks, hard bans, cooldowns and onboarding constraints."""

from __future__ import annotations

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

from logic.rejection_tracker import (  # noqa: E402
    COOLDOWN_DAYS,
    HARD_BAN_THRESHOLD,
    active_cooldowns,
    build_initial_rejections,
    hard_bans,
    should_avoid_attribute,
    track_rejection,
)
from models.profile import OnboardingConstraints, UserProfile  # noqa: E402

NOW = datetime(2024, 5, 1, 12, tzinfo=timezone.utc)


def test_first_rejection_creates_entry_with_streak_one() -> None:
    profile = UserProfile(user_id="u1")

    rejection = track_rejection(profile, "color", "mustard", now=NOW)

    assert rejection.streak == 1
    assert rejection.last_rejected == NOW
    assert not rejection.is_hard_ban
    assert profile.rejections == [rejection]


def test_streak_escalates_to_permanent_hard_ban() -> None:
    profile = UserProfile(user_id="u1")

    for day in range(HARD_BAN_THRESHOLD):
        rejection = track_rejection(profile, "fit", "oversized", now=NOW + timedelta(days=day * 10))
    assert rejection.is_hard_ban
    assert rejection.streak == HARD_BAN_THRESHOLD

    track_rejection(profile, "fit", "oversized", now=NOW + timedelta(days=90))
    assert rejection.is_hard_ban
    assert rejection.streak == HARD_BAN_THRESHOLD + 1
    assert len(profile.rejections) == 1
    assert should_avoid_attribute(profile, "fit", "oversized", now=NOW + timedelta(days=365))


def test_soft_rejection_cools_down_after_seven_days() -> None:
    profile = UserProfile(user_id="u1")
    track_rejection(profile, "pattern", "paisley", now=NOW)

    assert should_avoid_attribute(profile, "pattern", "paisley", now=NOW + timedelta(days=COOLDOWN_DAYS - 1))
    assert active_cooldowns(profile, now=NOW + timedelta(days=1))
    assert not should_avoid_attribute(profile, "pattern", "paisley", now=NOW + timedelta(days=COOLDOWN_DAYS))
    assert active_cooldowns(profile, now=NOW + timedelta(days=COOLDOWN_DAYS)) == []


def test_onboarding_constraints_are_checked_without_rejections() -> None:
    profile = UserProfile(
        user_id="u1",
        onboarding_constraints=OnboardingConstraints(
            colors_to_avoid=["orange"],
            fits_to_avoid=["skinny"],
            patterns_to_avoid=["plaid"],
            items_to_avoid=["Skinny Jeans"],
        ),
    )

    assert should_avoid_attribute(profile, "color", "orange", now=NOW)
    assert should_avoid_attribute(profile, "fit", "skinny", now=NOW)
    assert should_avoid_attribute(profile, "pattern", "plaid", now=NOW)
    assert should_avoid_attribute(profile, "category", "jeans", now=NOW)
    assert should_avoid_attribute(profile, "category", "black skinny jeans", now=NOW)
    assert not should_avoid_attribute(profile, "category", "blazer", now=NOW)
    assert not should_avoid_attribute(profile, "color", "navy", now=NOW)


def test_initial_rejections_are_seeded_as_hard_bans_in_order() -> None:
    constraints = OnboardingConstraints(
        colors_to_avoid=["orange"], fits_to_avoid=["baggy"], patterns_to_avoid=["plaid"], items_to_avoid=["skirt"]
    )

    seeds = build_initial_rejections(constraints, now=NOW)

    assert [seed.key for seed in seeds] == ["color:orange", "fit:baggy", "pattern:plaid", "category:skirt"]
    assert all(seed.is_hard_ban and seed.streak == HARD_BAN_THRESHOLD for seed in seeds)

    profile = UserProfile(user_id="u1", rejections=seeds)
    assert len(hard_bans(profile)) == 4
    assert active_cooldowns(profile, now=NOW) == []
