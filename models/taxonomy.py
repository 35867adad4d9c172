"""Canonical vocabulary for outfit attribute tags.

This module centralises the attribute names emitted by the vision analysis
collaborator, the garment slots a tag can be scoped to, and the helpers that
build and split the ``attribute:value`` tag keys used by the preference model.
"""

from typing import Dict, Iterable, List, Tuple

TAG_KEY_SEPARATOR = ":"

GARMENT_SLOTS: List[str] = ["top", "bottom", "shoes", "outerwear", "accessories"]
SLOT_ALIASES: Dict[str, str] = {"accessory": "accessories", "shoe": "shoes"}

ATTRIBUTES: List[str] = [
    "category",
    "subcategory",
    "color",
    "fit",
    "pattern",
    "material",
    "vibe",
    "overall_vibe",
]

ATTRIBUTE_DISPLAY_NAMES: Dict[str, str] = {
    "color": "colors",
    "fit": "fit",
    "category": "style",
    "material": "materials",
    "pattern": "patterns",
    "vibe": "vibe",
}


def _normalize_key(value: str) -> str:
    """Normalise a free-form string into a taxonomy key."""

    return value.strip().lower().replace(" ", "_")


def tag_key(attribute: str, value: str) -> str:
    """Build the ``attribute:value`` key used to index preference weights."""

    return f"{attribute}{TAG_KEY_SEPARATOR}{value}"


def split_tag_key(key: str) -> Tuple[str, str]:
    """Split a tag key back into ``(attribute, value)``.

    Values may themselves contain the separator, so only the first one splits.
    A key without a value maps to ``(key, "unknown")``.
    """

    attribute, _, value = key.partition(TAG_KEY_SEPARATOR)
    return attribute, value or "unknown"


def validate_slot(value: str) -> str:
    """Validate and normalise a garment slot.

    Raises a :class:`ValueError` if the slot is not part of the canonical list.
    """

    key = _normalize_key(value)
    key = SLOT_ALIASES.get(key, key)
    if key not in GARMENT_SLOTS:
        raise ValueError(f"Unsupported garment slot '{value}'. Allowed: {GARMENT_SLOTS}")
    return key


def format_attribute_for_display(attribute: str, value: str) -> str:
    """Render a tag for user-facing copy, e.g. ``slim fit`` or ``wool materials``."""

    if attribute == "color":
        return value
    if attribute == "fit":
        return f"{value} fit"
    return f"{value} {ATTRIBUTE_DISPLAY_NAMES.get(attribute, attribute)}"


def dedupe_preserving_order(values: Iterable[str]) -> List[str]:
    """Drop blanks and repeats while keeping first-seen order."""

    seen = set()
    ordered: List[str] = []
    for value in values:
        text = str(value).strip()
        if text and text not in seen:
            ordered.append(text)
            seen.add(text)
    return ordered


__all__ = [
    "ATTRIBUTES",
    "ATTRIBUTE_DISPLAY_NAMES",
    "GARMENT_SLOTS",
    "SLOT_ALIASES",
    "TAG_KEY_SEPARATOR",
    "dedupe_preserving_order",
    "format_attribute_for_display",
    "split_tag_key",
    "tag_key",
    "validate_slot",
]
