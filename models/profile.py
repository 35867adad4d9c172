"""User profile aggregate and its parts."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from models.taxonomy import dedupe_preserving_order, tag_key

FEEDBACK_HISTORY_LIMIT = 50

STYLE_REASON_ADJUSTMENTS: Dict[str, Dict[str, float]] = {
    "Not my style": {"trendiness": -0.1, "minimalism": -0.05},
    "I don't like the colors": {"color_neutrality": -0.1},
    "Too formal / not casual enough": {"formality": -0.15, "comfort": 0.05},
    "Doesn't fit my body type": {"comfort": -0.1},
    "Looks uncomfortable": {"comfort": -0.15},
    "Wouldn't fit my lifestyle": {"formality": -0.1, "trendiness": -0.05},
}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any, default: Optional[datetime] = None) -> datetime:
    """Parse an ISO-8601 string (or pass through a datetime) as an aware UTC value."""

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return default or utc_now()
    else:
        return default or utc_now()
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _clamp_unit(value: float) -> float:
    return max(0.0, min(1.0, value))


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, (list, tuple)):
        return []
    return [str(item) for item in value]


@dataclass
class StyleVector:
    """Coarse style lean, each component bounded to [0, 1]."""

    formality: float = 0.5
    color_neutrality: float = 0.5
    comfort: float = 0.7
    trendiness: float = 0.5
    minimalism: float = 0.5

    def __post_init__(self) -> None:
        for item in fields(self):
            setattr(self, item.name, _clamp_unit(float(getattr(self, item.name))))

    def adjust(self, deltas: Dict[str, float]) -> None:
        for name, delta in deltas.items():
            if not hasattr(self, name):
                raise ValueError(f"Unknown style vector component '{name}'")
            setattr(self, name, _clamp_unit(getattr(self, name) + delta))

    def apply_reason(self, reason: Optional[str]) -> bool:
        """Apply the fixed adjustment for a free-text reason. Unknown reasons are ignored."""

        adjustment = STYLE_REASON_ADJUSTMENTS.get((reason or "").strip())
        if not adjustment:
            return False
        self.adjust(adjustment)
        return True

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Any) -> "StyleVector":
        if not isinstance(data, dict):
            return cls()
        known = {item.name for item in fields(cls)}
        values = {key: float(value) for key, value in data.items() if key in known and isinstance(value, (int, float))}
        return cls(**values)


@dataclass
class AttributeRejection:
    """Dislike streak for one ``attribute:value`` pair."""

    attribute: str
    value: str
    streak: int = 0
    last_rejected: datetime = field(default_factory=utc_now)
    is_hard_ban: bool = False

    @property
    def key(self) -> str:
        return tag_key(self.attribute, self.value)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "attribute": self.attribute,
            "value": self.value,
            "streak": self.streak,
            "last_rejected": self.last_rejected.isoformat(),
            "is_hard_ban": self.is_hard_ban,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AttributeRejection":
        return cls(
            attribute=str(data.get("attribute", "unknown")),
            value=str(data.get("value", "unknown")),
            streak=max(0, int(data.get("streak", 0) or 0)),
            last_rejected=parse_timestamp(data.get("last_rejected")),
            is_hard_ban=bool(data.get("is_hard_ban", False)),
        )


@dataclass
class OnboardingConstraints:
    """User-declared hard constraints captured at profile creation."""

    contexts: List[str] = field(default_factory=list)
    seasons: List[str] = field(default_factory=list)
    budget: str = "Medium"
    items_to_avoid: List[str] = field(default_factory=list)
    colors_to_avoid: List[str] = field(default_factory=list)
    fits_to_avoid: List[str] = field(default_factory=list)
    patterns_to_avoid: List[str] = field(default_factory=list)
    logo_visibility: str = "ok"

    def __post_init__(self) -> None:
        for name in ("contexts", "seasons", "items_to_avoid", "colors_to_avoid", "fits_to_avoid", "patterns_to_avoid"):
            setattr(self, name, dedupe_preserving_order(getattr(self, name)))

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Any) -> "OnboardingConstraints":
        if not isinstance(data, dict):
            return cls()
        return cls(
            contexts=_string_list(data.get("contexts")),
            seasons=_string_list(data.get("seasons")),
            budget=str(data.get("budget") or "Medium"),
            items_to_avoid=_string_list(data.get("items_to_avoid")),
            colors_to_avoid=_string_list(data.get("colors_to_avoid")),
            fits_to_avoid=_string_list(data.get("fits_to_avoid")),
            patterns_to_avoid=_string_list(data.get("patterns_to_avoid")),
            logo_visibility=str(data.get("logo_visibility") or "ok"),
        )


@dataclass
class FeedbackRecord:
    outfit_id: Optional[str]
    theme: str
    feedback_type: str
    micro_reasons: List[str] = field(default_factory=list)
    reason: Optional[str] = None
    created_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["created_at"] = self.created_at.isoformat()
        return payload

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FeedbackRecord":
        return cls(
            outfit_id=data.get("outfit_id"),
            theme=str(data.get("theme", "")),
            feedback_type=str(data.get("feedback_type", "")),
            micro_reasons=_string_list(data.get("micro_reasons")),
            reason=data.get("reason"),
            created_at=parse_timestamp(data.get("created_at")),
        )


@dataclass
class UserProfile:
    """Aggregate root for one user's learned and declared preferences.

    ``version`` is bumped by stores on each successful save and is used for
    compare-and-set writes. ``event_sequence`` counts ingested feedback events
    and doubles as the interaction log's session number.
    """

    user_id: str
    style_vector: StyleVector = field(default_factory=StyleVector)
    liked_colors: List[str] = field(default_factory=list)
    disliked_colors: List[str] = field(default_factory=list)
    feedback_history: List[FeedbackRecord] = field(default_factory=list)
    preference_weights: Dict[str, float] = field(default_factory=dict)
    rejections: List[AttributeRejection] = field(default_factory=list)
    onboarding_constraints: OnboardingConstraints = field(default_factory=OnboardingConstraints)
    last_updated: datetime = field(default_factory=utc_now)
    age_band: Optional[str] = None
    presenting_gender: Optional[str] = None
    version: int = 0
    event_sequence: int = 0

    def find_rejection(self, attribute: str, value: str) -> Optional[AttributeRejection]:
        key = tag_key(attribute, value)
        for rejection in self.rejections:
            if rejection.key == key:
                return rejection
        return None

    def record_feedback(self, record: FeedbackRecord) -> None:
        self.feedback_history.append(record)
        if len(self.feedback_history) > FEEDBACK_HISTORY_LIMIT:
            self.feedback_history = self.feedback_history[-FEEDBACK_HISTORY_LIMIT:]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "style_vector": self.style_vector.to_dict(),
            "liked_colors": list(self.liked_colors),
            "disliked_colors": list(self.disliked_colors),
            "feedback_history": [record.to_dict() for record in self.feedback_history],
            "preference_weights": dict(self.preference_weights),
            "rejections": [rejection.to_dict() for rejection in self.rejections],
            "onboarding_constraints": self.onboarding_constraints.to_dict(),
            "last_updated": self.last_updated.isoformat(),
            "age_band": self.age_band,
            "presenting_gender": self.presenting_gender,
            "version": self.version,
            "event_sequence": self.event_sequence,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserProfile":
        """Rebuild a profile, filling defaults for anything missing or malformed."""

        if not data.get("user_id"):
            raise ValueError("Profile payload is missing 'user_id'")
        weights = data.get("preference_weights") or {}
        return cls(
            user_id=str(data["user_id"]),
            style_vector=StyleVector.from_dict(data.get("style_vector")),
            liked_colors=_string_list(data.get("liked_colors")),
            disliked_colors=_string_list(data.get("disliked_colors")),
            feedback_history=[FeedbackRecord.from_dict(item) for item in data.get("feedback_history") or []],
            preference_weights={
                str(key): float(value)
                for key, value in weights.items()
                if isinstance(value, (int, float)) and not isinstance(value, bool)
            },
            rejections=[AttributeRejection.from_dict(item) for item in data.get("rejections") or []],
            onboarding_constraints=OnboardingConstraints.from_dict(data.get("onboarding_constraints")),
            last_updated=parse_timestamp(data.get("last_updated")),
            age_band=data.get("age_band"),
            presenting_gender=data.get("presenting_gender"),
            version=int(data.get("version", 0) or 0),
            event_sequence=int(data.get("event_sequence", 0) or 0),
        )


__all__ = [
    "AttributeRejection",
    "FEEDBACK_HISTORY_LIMIT",
    "FeedbackRecord",
    "OnboardingConstraints",
    "STYLE_REASON_ADJUSTMENTS",
    "StyleVector",
    "UserProfile",
    "parse_timestamp",
    "utc_now",
]
