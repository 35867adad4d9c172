"""Pydantic schemas for validating payloads at the ingestion boundary."""

from __future__ import annotations

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from models.feedback import FeedbackReason, FeedbackType
from models.outfit_analysis import OutfitAnalysis, from_raw_analysis


def _coerce_list(value: Any) -> List[Any]:
    """Onboarding answers arrive loosely typed; anything but a list means "none"."""

    if isinstance(value, (list, tuple)):
        return [item for item in value if item is not None]
    return []


class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class VisionTagPayload(_Payload):
    attribute: str = Field(min_length=1)
    value: str = Field(min_length=1)
    confidence: float = Field(ge=0.0, le=1.0)
    item_id: Optional[str] = Field(None, alias="itemId")


class ClothingItemPayload(_Payload):
    id: str = Field(min_length=1)
    category: str = Field(min_length=1)
    subcategory: Optional[str] = None
    fit: Optional[str] = None
    colors: List[str] = Field(default_factory=list)
    materials: List[str] = Field(default_factory=list)
    patterns: List[str] = Field(default_factory=list)
    vibe: Optional[str] = None


class OutfitAnalysisPayload(_Payload):
    """Contract for analyses handed over by the vision collaborator."""

    items: List[ClothingItemPayload] = Field(default_factory=list)
    overall_vibe: str = Field("", alias="overallVibe")
    color_palette: List[str] = Field(default_factory=list, alias="colorPalette")
    tags: List[VisionTagPayload] = Field(default_factory=list)
    confidence: float = Field(0.0, ge=0.0, le=1.0)

    def to_analysis(self) -> OutfitAnalysis:
        return from_raw_analysis(self.model_dump())


class OnboardingAnswers(_Payload):
    """Answers captured once when a profile is created."""

    contexts: List[str] = Field(default_factory=list)
    seasons: List[str] = Field(default_factory=list)
    budget: str = "Medium"
    items_to_avoid: List[str] = Field(default_factory=list, alias="itemsToAvoid")
    colors_to_avoid: List[str] = Field(default_factory=list, alias="colorsToAvoid")
    fits_to_avoid: List[str] = Field(default_factory=list, alias="fitsToAvoid")
    patterns_to_avoid: List[str] = Field(default_factory=list, alias="patternsToAvoid")
    logos_preference: Optional[str] = Field(None, alias="logosPreference")
    age_range: Optional[str] = Field(None, alias="ageRange")
    style_preference: Optional[str] = Field(None, alias="stylePreference")

    @field_validator(
        "contexts", "seasons", "items_to_avoid", "colors_to_avoid", "fits_to_avoid", "patterns_to_avoid",
        mode="before",
    )
    @classmethod
    def _lists_only(cls, value: Any) -> List[Any]:
        return _coerce_list(value)

    @field_validator("budget", mode="before")
    @classmethod
    def _default_budget(cls, value: Any) -> str:
        return str(value) if value else "Medium"


class FeedbackEvent(_Payload):
    """A like/dislike submitted by the UI for one outfit."""

    outfit_id: Optional[str] = Field(None, alias="outfitId")
    theme: str = ""
    feedback_type: FeedbackType = Field(alias="feedbackType")
    outfit_analysis: OutfitAnalysisPayload = Field(alias="outfitAnalysis")
    micro_reasons: List[FeedbackReason] = Field(default_factory=list, alias="microReasons")
    reason: Optional[str] = None
    session_no: Optional[int] = Field(None, ge=0, alias="sessionNo")

    @field_validator("feedback_type", mode="before")
    @classmethod
    def _parse_feedback_type(cls, value: Any) -> FeedbackType:
        return FeedbackType.parse(value)

    @field_validator("micro_reasons", mode="before")
    @classmethod
    def _parse_reasons(cls, value: Any) -> List[FeedbackReason]:
        return [FeedbackReason.parse(item) for item in _coerce_list(value)]


class ScoreRequest(_Payload):
    outfits: List[OutfitAnalysisPayload] = Field(default_factory=list)


__all__ = [
    "ClothingItemPayload",
    "FeedbackEvent",
    "OnboardingAnswers",
    "OutfitAnalysisPayload",
    "ScoreRequest",
    "VisionTagPayload",
]
