"""Evaluation scenarios replaying scripted feedback against the preference engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

BASE_TIME = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)


@dataclass
class FeedbackStep:
    feedback_type: str
    analysis: Dict[str, object]
    micro_reasons: List[str] = field(default_factory=list)
    reason: Optional[str] = None
    day: int = 0


@dataclass
class EvaluationScenario:
    name: str
    description: str
    answers: Dict[str, object]
    steps: List[FeedbackStep]
    candidates: List[Dict[str, object]]
    evaluate_on_day: int
    expectations: Dict[str, object]


def _tag(attribute: str, value: str, confidence: float, item_id: str | None = None) -> Dict[str, object]:
    tag: Dict[str, object] = {"attribute": attribute, "value": value, "confidence": confidence}
    if item_id:
        tag["itemId"] = item_id
    return tag


def _analysis(tags: List[Dict[str, object]], palette: List[str], vibe: str = "smart casual") -> Dict[str, object]:
    return {"items": [], "overallVibe": vibe, "colorPalette": palette, "tags": tags, "confidence": 0.9}


NAVY_BLAZER = _analysis(
    [_tag("category", "blazer", 0.9, "top"), _tag("color", "navy", 0.95, "top")],
    ["navy"],
)
NAVY_CHINOS = _analysis(
    [_tag("category", "chinos", 0.8, "bottom"), _tag("color", "navy", 0.95, "bottom")],
    ["navy", "white"],
)
WHITE_TEE = _analysis(
    [_tag("category", "t-shirt", 0.85, "top"), _tag("color", "white", 0.9, "top")],
    ["white"],
    vibe="relaxed",
)
OVERSIZED_HOODIE = _analysis(
    [_tag("category", "hoodie", 0.9, "top"), _tag("fit", "oversized", 0.8, "top")],
    ["gray"],
    vibe="streetwear",
)
SLIM_SHIRT = _analysis(
    [_tag("category", "shirt", 0.9, "top"), _tag("fit", "slim", 0.85, "top")],
    ["light blue"],
)
ORANGE_KNIT = _analysis(
    [_tag("category", "sweater", 0.8, "top"), _tag("color", "orange", 0.9, "top")],
    ["orange"],
)
MINI_SKIRT = _analysis(
    [_tag("category", "mini skirt", 0.9, "bottom"), _tag("color", "black", 0.9, "bottom")],
    ["black"],
)
PLAID_COAT = _analysis(
    [_tag("category", "coat", 0.9, "outerwear"), _tag("pattern", "plaid", 0.85, "outerwear")],
    ["brown"],
)


SCENARIOS: List[EvaluationScenario] = [
    EvaluationScenario(
        name="like_then_color_dislike",
        description="A liked color that is later disliked for its color turns negative and enters cooldown.",
        answers={},
        steps=[
            FeedbackStep("like", NAVY_BLAZER, day=0),
            FeedbackStep("dislike", NAVY_CHINOS, micro_reasons=["Color"], reason="I don't like the colors", day=1),
        ],
        candidates=[NAVY_BLAZER, WHITE_TEE],
        evaluate_on_day=2,
        expectations={
            "negative_weights": ["color:navy"],
            "positive_weights": ["category:blazer"],
            "disliked_colors": ["navy"],
            "cooldowns": ["color:navy"],
            "survivor_indexes": [1],
        },
    ),
    EvaluationScenario(
        name="three_strike_fit_ban",
        description="Three fit complaints spaced beyond the cooldown still escalate to a permanent ban.",
        answers={},
        steps=[
            FeedbackStep("dislike", OVERSIZED_HOODIE, micro_reasons=["Fit"], day=0),
            FeedbackStep("dislike", OVERSIZED_HOODIE, micro_reasons=["Fit"], day=10),
            FeedbackStep("dislike", OVERSIZED_HOODIE, micro_reasons=["Fit"], day=20),
        ],
        candidates=[OVERSIZED_HOODIE, SLIM_SHIRT],
        evaluate_on_day=60,
        expectations={
            "hard_bans": ["fit:oversized"],
            "survivor_indexes": [1],
        },
    ),
    EvaluationScenario(
        name="onboarding_avoidance",
        description="Declared avoid-lists veto matching candidates before any feedback exists.",
        answers={
            "colorsToAvoid": ["orange"],
            "itemsToAvoid": ["skirt"],
            "patternsToAvoid": ["plaid"],
            "budget": "High",
        },
        steps=[],
        candidates=[ORANGE_KNIT, MINI_SKIRT, PLAID_COAT, SLIM_SHIRT],
        evaluate_on_day=0,
        expectations={
            "hard_bans": ["color:orange", "pattern:plaid", "category:skirt"],
            "survivor_indexes": [3],
        },
    ),
    EvaluationScenario(
        name="likes_drive_ranking",
        description="Repeatedly liked attributes rank their outfits first; neutral outfits keep generation order.",
        answers={},
        steps=[
            FeedbackStep("like", SLIM_SHIRT, day=0),
            FeedbackStep("like", SLIM_SHIRT, day=1),
        ],
        candidates=[WHITE_TEE, PLAID_COAT, SLIM_SHIRT],
        evaluate_on_day=2,
        expectations={
            "positive_weights": ["fit:slim", "category:shirt"],
            "survivor_indexes": [2, 0, 1],
        },
    ),
]


__all__ = ["BASE_TIME", "EvaluationScenario", "FeedbackStep", "SCENARIOS"]
