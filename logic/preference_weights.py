"""Signed preference weights over ``attribute:value`` tag keys.

Likes add ``confidence * 0.3`` to every tag of the outfit. Dislikes only touch
the tags singled out by the user's micro-reasons and subtract
``confidence * 0.4``, so a like followed by a dislike on the same tags nets
negative. Every entry is capped to [-2.0, 2.0] and all weights shrink by
``MONTHLY_DECAY_RATE`` once per processed feedback event.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from logic.rejection_tracker import track_rejection
from models.feedback import FeedbackReason, FeedbackType, matching_tags
from models.outfit_analysis import OutfitAnalysis
from models.profile import UserProfile, utc_now
from models.taxonomy import split_tag_key

MONTHLY_DECAY_RATE = 0.98
LIKE_STEP = 0.3
DISLIKE_STEP = 0.4
WEIGHT_CAP = 2.0


@dataclass(frozen=True)
class WeightedAttribute:
    key: str
    weight: float

    @property
    def attribute(self) -> str:
        return split_tag_key(self.key)[0]

    @property
    def value(self) -> str:
        return split_tag_key(self.key)[1]

    def to_dict(self) -> Dict[str, object]:
        return {"key": self.key, "weight": self.weight}


def _clamp_weight(value: float) -> float:
    return max(-WEIGHT_CAP, min(WEIGHT_CAP, value))


def apply_decay(weights: Dict[str, float]) -> Dict[str, float]:
    """Return a new mapping with every weight shrunk toward zero. Keys are kept."""

    return {key: value * MONTHLY_DECAY_RATE for key, value in weights.items()}


def _move_colors(colors: Iterable[str], into: List[str], out_of: List[str]) -> List[str]:
    palette = list(colors)
    for color in palette:
        if color not in into:
            into.append(color)
    return [color for color in out_of if color not in palette]


def update_color_buckets(
    profile: UserProfile,
    analysis: OutfitAnalysis,
    feedback_type: FeedbackType,
    micro_reasons: Iterable[FeedbackReason] = (),
) -> None:
    """Move palette colors between the liked and disliked lists.

    A color is in at most one of the two lists afterwards.
    """

    if feedback_type is FeedbackType.LIKE:
        profile.disliked_colors = _move_colors(analysis.color_palette, profile.liked_colors, profile.disliked_colors)
    elif FeedbackReason.COLOR in set(micro_reasons):
        profile.liked_colors = _move_colors(analysis.color_palette, profile.disliked_colors, profile.liked_colors)


def update_from_feedback(
    profile: UserProfile,
    analysis: OutfitAnalysis,
    feedback_type: FeedbackType,
    micro_reasons: Optional[Iterable[FeedbackReason]] = None,
    now: Optional[datetime] = None,
) -> UserProfile:
    """Apply one feedback event to ``profile`` in place and return it.

    Persistence is left to the caller.
    """

    timestamp = now or utc_now()
    reasons = list(micro_reasons or [])
    profile.preference_weights = apply_decay(profile.preference_weights)
    weights = profile.preference_weights

    if feedback_type is FeedbackType.LIKE:
        for tag in analysis.tags:
            weights[tag.key] = min(weights.get(tag.key, 0.0) + tag.confidence * LIKE_STEP, WEIGHT_CAP)
    elif feedback_type is FeedbackType.DISLIKE:
        for reason in reasons:
            for tag in matching_tags(analysis.tags, reason):
                weights[tag.key] = max(weights.get(tag.key, 0.0) - tag.confidence * DISLIKE_STEP, -WEIGHT_CAP)
                track_rejection(profile, tag.attribute, tag.value, now=timestamp)

    for key, value in weights.items():
        weights[key] = _clamp_weight(value)

    update_color_buckets(profile, analysis, feedback_type, reasons)
    profile.last_updated = timestamp
    return profile


def get_top_liked_attributes(profile: UserProfile, limit: int = 10) -> List[WeightedAttribute]:
    ranked = sorted(
        ((key, weight) for key, weight in profile.preference_weights.items() if weight > 0),
        key=lambda entry: entry[1],
        reverse=True,
    )
    return [WeightedAttribute(key=key, weight=weight) for key, weight in ranked[:limit]]


def get_top_disliked_attributes(profile: UserProfile, limit: int = 10) -> List[WeightedAttribute]:
    ranked = sorted(
        ((key, weight) for key, weight in profile.preference_weights.items() if weight < 0),
        key=lambda entry: entry[1],
    )
    return [WeightedAttribute(key=key, weight=weight) for key, weight in ranked[:limit]]


__all__ = [
    "DISLIKE_STEP",
    "LIKE_STEP",
    "MONTHLY_DECAY_RATE",
    "WEIGHT_CAP",
    "WeightedAttribute",
    "apply_decay",
    "get_top_disliked_attributes",
    "get_top_liked_attributes",
    "update_color_buckets",
    "update_from_feedback",
]
