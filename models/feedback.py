"""Feedback vocabulary: like/dislike events and dislike micro-reasons."""

from __future__ import annotations

from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional

from models.outfit_analysis import VisionTag


class InvalidFeedbackError(ValueError):
    """Raised when a feedback event cannot be applied to a profile."""


class FeedbackType(str, Enum):
    LIKE = "like"
    DISLIKE = "dislike"

    @classmethod
    def parse(cls, value: "FeedbackType | str") -> "FeedbackType":
        try:
            return cls(str(value.value if isinstance(value, cls) else value).strip().lower())
        except ValueError as exc:
            raise InvalidFeedbackError(f"Unrecognized feedback type {value!r}") from exc


class FeedbackReason(str, Enum):
    """Closed set of micro-reasons a user can pick when disliking an outfit."""

    TOP = "Top"
    BOTTOM = "Bottom"
    SHOES = "Shoes"
    OUTERWEAR = "Outerwear"
    ACCESSORIES = "Accessories"
    COLOR = "Color"
    FIT = "Fit"
    PATTERN = "Pattern"
    MATERIAL = "Material"
    OVERALL_VIBE = "Overall vibe"

    @classmethod
    def parse(cls, value: "FeedbackReason | str") -> "FeedbackReason":
        if isinstance(value, cls):
            return value
        text = str(value).strip()
        for reason in cls:
            if reason.value.lower() == text.lower() or reason.name.lower() == text.lower():
                return reason
        raise InvalidFeedbackError(f"Unrecognized feedback reason {value!r}")


def _slot_matcher(slot: str) -> Callable[[VisionTag], bool]:
    return lambda tag: tag.item_id == slot


def _attribute_matcher(*attributes: str) -> Callable[[VisionTag], bool]:
    allowed = frozenset(attributes)
    return lambda tag: tag.attribute in allowed


REASON_MATCHERS: Dict[FeedbackReason, Callable[[VisionTag], bool]] = {
    FeedbackReason.TOP: _slot_matcher("top"),
    FeedbackReason.BOTTOM: _slot_matcher("bottom"),
    FeedbackReason.SHOES: _slot_matcher("shoes"),
    FeedbackReason.OUTERWEAR: _slot_matcher("outerwear"),
    FeedbackReason.ACCESSORIES: _slot_matcher("accessories"),
    FeedbackReason.COLOR: _attribute_matcher("color"),
    FeedbackReason.FIT: _attribute_matcher("fit"),
    FeedbackReason.PATTERN: _attribute_matcher("pattern"),
    FeedbackReason.MATERIAL: _attribute_matcher("material"),
    FeedbackReason.OVERALL_VIBE: _attribute_matcher("vibe", "overall_vibe"),
}

_UNMAPPED = set(FeedbackReason) - set(REASON_MATCHERS)
if _UNMAPPED:
    raise RuntimeError(f"Feedback reasons without a tag matcher: {sorted(r.value for r in _UNMAPPED)}")


def tag_matches_reason(tag: VisionTag, reason: FeedbackReason) -> bool:
    return REASON_MATCHERS[reason](tag)


def matching_tags(tags: Iterable[VisionTag], reason: FeedbackReason) -> List[VisionTag]:
    """Return the tags a micro-reason points at. An empty list is a normal outcome."""

    return [tag for tag in tags if tag_matches_reason(tag, reason)]


def parse_reasons(values: Optional[Iterable["FeedbackReason | str"]]) -> List[FeedbackReason]:
    return [FeedbackReason.parse(value) for value in (values or [])]


__all__ = [
    "FeedbackReason",
    "FeedbackType",
    "InvalidFeedbackError",
    "REASON_MATCHERS",
    "matching_tags",
    "parse_reasons",
    "tag_matches_reason",
]
