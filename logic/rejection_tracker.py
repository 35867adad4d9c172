"""Progressive rejection tracking: dislike streaks, hard bans and cooldowns."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import List, Optional

from models.profile import AttributeRejection, OnboardingConstraints, UserProfile, utc_now

HARD_BAN_THRESHOLD = 3
COOLDOWN_DAYS = 7


def track_rejection(
    profile: UserProfile, attribute: str, value: str, now: Optional[datetime] = None
) -> AttributeRejection:
    """Record one dislike hit on ``attribute:value`` and escalate to a hard ban.

    The streak only ever grows; once ``is_hard_ban`` is set it stays set.
    """

    timestamp = now or utc_now()
    rejection = profile.find_rejection(attribute, value)
    if rejection is None:
        rejection = AttributeRejection(attribute=attribute, value=value, streak=0, last_rejected=timestamp)
        profile.rejections.append(rejection)

    rejection.streak += 1
    rejection.last_rejected = timestamp
    if rejection.streak >= HARD_BAN_THRESHOLD:
        rejection.is_hard_ban = True
    return rejection


def in_cooldown(rejection: AttributeRejection, now: Optional[datetime] = None) -> bool:
    """True while a soft (non-banned) rejection is younger than the cooldown window."""

    if rejection.is_hard_ban:
        return False
    return (now or utc_now()) - rejection.last_rejected < timedelta(days=COOLDOWN_DAYS)


def violates_constraints(constraints: OnboardingConstraints, attribute: str, value: str) -> bool:
    if attribute == "color":
        return value in constraints.colors_to_avoid
    if attribute == "fit":
        return value in constraints.fits_to_avoid
    if attribute == "pattern":
        return value in constraints.patterns_to_avoid
    if attribute == "category":
        lowered = value.lower()
        return any(
            item.lower() in lowered or lowered in item.lower()
            for item in constraints.items_to_avoid
        )
    return False


def should_avoid_attribute(
    profile: UserProfile, attribute: str, value: str, now: Optional[datetime] = None
) -> bool:
    """Decide whether ``attribute:value`` must be kept out of recommendations.

    Checked in order: hard ban, soft cooldown, then the onboarding constraints.
    Category constraints match case-insensitively on substrings in either
    direction, so avoiding ``"skinny jeans"`` also catches ``"jeans"``.
    """

    rejection = profile.find_rejection(attribute, value)
    if rejection is not None:
        if rejection.is_hard_ban:
            return True
        if in_cooldown(rejection, now):
            return True
    return violates_constraints(profile.onboarding_constraints, attribute, value)


def build_initial_rejections(
    constraints: OnboardingConstraints, now: Optional[datetime] = None
) -> List[AttributeRejection]:
    """Seed permanent hard bans from the onboarding avoid-lists."""

    timestamp = now or utc_now()
    seeds = (
        [("color", color) for color in constraints.colors_to_avoid]
        + [("fit", fit) for fit in constraints.fits_to_avoid]
        + [("pattern", pattern) for pattern in constraints.patterns_to_avoid]
        + [("category", item) for item in constraints.items_to_avoid]
    )
    return [
        AttributeRejection(
            attribute=attribute,
            value=value,
            streak=HARD_BAN_THRESHOLD,
            last_rejected=timestamp,
            is_hard_ban=True,
        )
        for attribute, value in seeds
    ]


def hard_bans(profile: UserProfile) -> List[AttributeRejection]:
    return [rejection for rejection in profile.rejections if rejection.is_hard_ban]


def active_cooldowns(profile: UserProfile, now: Optional[datetime] = None) -> List[AttributeRejection]:
    return [rejection for rejection in profile.rejections if in_cooldown(rejection, now)]


__all__ = [
    "COOLDOWN_DAYS",
    "HARD_BAN_THRESHOLD",
    "active_cooldowns",
    "build_initial_rejections",
    "hard_bans",
    "in_cooldown",
    "should_avoid_attribute",
    "track_rejection",
    "violates_constraints",
]
