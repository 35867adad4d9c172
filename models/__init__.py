"""Model package exports."""

from models.feedback import FeedbackReason, FeedbackType, InvalidFeedbackError
from models.outfit_analysis import ClothingItem, OutfitAnalysis, VisionTag, from_raw_analysis
from models.profile import AttributeRejection, OnboardingConstraints, StyleVector, UserProfile

__all__ = [
    "AttributeRejection",
    "ClothingItem",
    "FeedbackReason",
    "FeedbackType",
    "InvalidFeedbackError",
    "OnboardingConstraints",
    "OutfitAnalysis",
    "StyleVector",
    "UserProfile",
    "VisionTag",
    "from_raw_analysis",
]
