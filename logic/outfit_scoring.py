"""Deterministic scoring of candidate outfits against a user profile."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from logic.preference_weights import get_top_disliked_attributes, get_top_liked_attributes
from logic.rejection_tracker import should_avoid_attribute
from models.outfit_analysis import OutfitAnalysis
from models.profile import UserProfile
from models.taxonomy import format_attribute_for_display

VETO_SCORE = -100.0
DROP_THRESHOLD = -50.0
VETO_EXPLANATION = "Contains items you've strongly disliked"
FALLBACK_EXPLANATION = "Selected based on your style preferences"


@dataclass(frozen=True)
class OutfitScore:
    score: float
    explanation: str
    should_avoid: bool

    def to_dict(self) -> Dict[str, object]:
        return {"score": self.score, "explanation": self.explanation, "should_avoid": self.should_avoid}


@dataclass(frozen=True)
class RankedOutfit:
    index: int
    analysis: OutfitAnalysis
    result: OutfitScore


def score_outfit(profile: UserProfile, analysis: OutfitAnalysis, now: Optional[datetime] = None) -> float:
    """Confidence-weighted average of the profile's weights over the outfit's tags.

    Avoided tags are skipped entirely; exclusion is decided by
    :func:`score_outfit_for_user`, not by down-weighting here.
    """

    total_score = 0.0
    total_confidence = 0.0
    for tag in analysis.tags:
        if should_avoid_attribute(profile, tag.attribute, tag.value, now=now):
            continue
        total_score += profile.preference_weights.get(tag.key, 0.0) * tag.confidence
        total_confidence += tag.confidence
    if total_confidence > 0:
        return total_score / total_confidence
    return 0.0


def generate_why_this_explanation(profile: UserProfile, analysis: OutfitAnalysis) -> str:
    """Explain a recommendation from the strongest likes present and dislikes absent."""

    parts: List[str] = []

    matching_likes = [
        like for like in get_top_liked_attributes(profile, 3) if analysis.has_tag(like.attribute, like.value)
    ]
    if matching_likes:
        described = " and ".join(format_attribute_for_display(like.attribute, like.value) for like in matching_likes)
        parts.append(f"Focusing on {described} (your likes).")

    avoided = [
        dislike
        for dislike in get_top_disliked_attributes(profile, 2)
        if not analysis.has_tag(dislike.attribute, dislike.value)
    ]
    if avoided:
        described = " and ".join(format_attribute_for_display(item.attribute, item.value) for item in avoided[:2])
        sentence = f"Avoiding {described}"
        repeated = [
            rejection
            for rejection in profile.rejections
            if rejection.streak > 1 and not analysis.has_tag(rejection.attribute, rejection.value)
        ]
        if repeated:
            first = repeated[0]
            sentence += (
                f" (disliked {format_attribute_for_display(first.attribute, first.value)} {first.streak}×)"
            )
        parts.append(sentence)

    return " ".join(parts) or FALLBACK_EXPLANATION


def score_outfit_for_user(
    profile: UserProfile, analysis: OutfitAnalysis, now: Optional[datetime] = None
) -> OutfitScore:
    """Score one candidate; any avoided tag vetoes the whole outfit."""

    if any(should_avoid_attribute(profile, tag.attribute, tag.value, now=now) for tag in analysis.tags):
        return OutfitScore(score=VETO_SCORE, explanation=VETO_EXPLANATION, should_avoid=True)

    return OutfitScore(
        score=score_outfit(profile, analysis, now=now),
        explanation=generate_why_this_explanation(profile, analysis),
        should_avoid=False,
    )


def rank_outfits(
    profile: UserProfile, analyses: Sequence[OutfitAnalysis], now: Optional[datetime] = None
) -> List[RankedOutfit]:
    """Drop vetoed or very low scoring candidates and sort the rest best-first.

    The sort is stable, so equal scores keep their generation order.
    """

    scored = [
        RankedOutfit(index=index, analysis=analysis, result=score_outfit_for_user(profile, analysis, now=now))
        for index, analysis in enumerate(analyses)
    ]
    survivors = [item for item in scored if not item.result.should_avoid and item.result.score > DROP_THRESHOLD]
    return sorted(survivors, key=lambda item: item.result.score, reverse=True)


__all__ = [
    "DROP_THRESHOLD",
    "FALLBACK_EXPLANATION",
    "OutfitScore",
    "RankedOutfit",
    "VETO_EXPLANATION",
    "VETO_SCORE",
    "generate_why_this_explanation",
    "rank_outfits",
    "score_outfit",
    "score_outfit_for_user",
]
