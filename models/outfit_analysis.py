"""Outfit analysis data model produced by the vision collaborator."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from models.taxonomy import dedupe_preserving_order, tag_key, validate_slot


def _ensure_list(value: Any) -> List[Any]:
    """Coerce a scalar or iterable into a list."""

    if value is None:
        return []
    if isinstance(value, (list, tuple, set)):
        return list(value)
    return [value]


def _validate_confidence(value: Any, label: str) -> float:
    confidence = float(value)
    if not 0.0 <= confidence <= 1.0:
        raise ValueError(f"{label} must be within [0, 1], got {confidence}")
    return confidence


@dataclass(frozen=True)
class VisionTag:
    """A single ``attribute:value`` observation with the model's confidence."""

    attribute: str
    value: str
    confidence: float
    item_id: Optional[str] = None

    def __post_init__(self) -> None:
        attribute = str(self.attribute or "").strip().lower()
        value = str(self.value or "").strip()
        if not attribute or not value:
            raise ValueError("VisionTag requires a non-empty attribute and value")
        object.__setattr__(self, "attribute", attribute)
        object.__setattr__(self, "value", value)
        object.__setattr__(self, "confidence", _validate_confidence(self.confidence, "tag confidence"))
        if self.item_id is not None:
            object.__setattr__(self, "item_id", validate_slot(str(self.item_id)))

    @property
    def key(self) -> str:
        return tag_key(self.attribute, self.value)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "attribute": self.attribute,
            "value": self.value,
            "confidence": self.confidence,
        }
        if self.item_id is not None:
            payload["item_id"] = self.item_id
        return payload


@dataclass(frozen=True)
class ClothingItem:
    """One garment detected in an outfit image."""

    id: str
    category: str
    subcategory: Optional[str] = None
    fit: Optional[str] = None
    colors: List[str] = field(default_factory=list)
    materials: List[str] = field(default_factory=list)
    patterns: List[str] = field(default_factory=list)
    vibe: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "category": self.category,
            "subcategory": self.subcategory,
            "fit": self.fit,
            "colors": list(self.colors),
            "materials": list(self.materials),
            "patterns": list(self.patterns),
            "vibe": self.vibe,
        }


@dataclass(frozen=True)
class OutfitAnalysis:
    """Structured description of a candidate outfit. Read-only to the engine."""

    items: List[ClothingItem] = field(default_factory=list)
    overall_vibe: str = ""
    color_palette: List[str] = field(default_factory=list)
    tags: List[VisionTag] = field(default_factory=list)
    confidence: float = 0.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "items", tuple(self.items))
        object.__setattr__(self, "tags", tuple(self.tags))
        object.__setattr__(self, "color_palette", tuple(dedupe_preserving_order(self.color_palette)))
        object.__setattr__(self, "confidence", _validate_confidence(self.confidence, "analysis confidence"))

    def has_tag(self, attribute: str, value: str) -> bool:
        return any(tag.attribute == attribute and tag.value == value for tag in self.tags)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "items": [item.to_dict() for item in self.items],
            "overall_vibe": self.overall_vibe,
            "color_palette": list(self.color_palette),
            "tags": [tag.to_dict() for tag in self.tags],
            "confidence": self.confidence,
        }


def _first(raw: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in raw and raw[key] is not None:
            return raw[key]
    return None


def tag_from_raw(raw: Dict[str, Any]) -> VisionTag:
    """Build a :class:`VisionTag` from a loose payload (``itemId`` or ``item_id``)."""

    return VisionTag(
        attribute=str(raw.get("attribute", "")),
        value=str(raw.get("value", "")),
        confidence=raw.get("confidence", 0.0),
        item_id=_first(raw, "item_id", "itemId"),
    )


def item_from_raw(raw: Dict[str, Any]) -> ClothingItem:
    if not raw.get("id") or not raw.get("category"):
        raise ValueError("ClothingItem requires 'id' and 'category'")
    return ClothingItem(
        id=str(raw["id"]),
        category=str(raw["category"]),
        subcategory=raw.get("subcategory"),
        fit=raw.get("fit"),
        colors=[str(c) for c in _ensure_list(raw.get("colors"))],
        materials=[str(m) for m in _ensure_list(raw.get("materials"))],
        patterns=[str(p) for p in _ensure_list(raw.get("patterns"))],
        vibe=raw.get("vibe"),
    )


def from_raw_analysis(raw: Dict[str, Any]) -> OutfitAnalysis:
    """Factory to build an :class:`OutfitAnalysis` from collaborator JSON.

    Accepts both the camelCase keys emitted by the vision service
    (``overallVibe``, ``colorPalette``, ``itemId``) and snake_case keys.
    """

    if not isinstance(raw, dict):
        raise ValueError("Outfit analysis payload must be a mapping")
    return OutfitAnalysis(
        items=[item_from_raw(item) for item in _ensure_list(raw.get("items"))],
        overall_vibe=str(_first(raw, "overall_vibe", "overallVibe") or ""),
        color_palette=[str(c) for c in _ensure_list(_first(raw, "color_palette", "colorPalette"))],
        tags=[tag_from_raw(tag) for tag in _ensure_list(raw.get("tags"))],
        confidence=raw.get("confidence", 0.0) or 0.0,
    )


__all__ = [
    "ClothingItem",
    "OutfitAnalysis",
    "VisionTag",
    "from_raw_analysis",
    "item_from_raw",
    "tag_from_raw",
]
