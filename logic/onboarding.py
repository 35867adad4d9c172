"""Profile creation from onboarding answers."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import ValidationError

from logic.rejection_tracker import build_initial_rejections
from logic.validation import OnboardingAnswers
from models.feedback import InvalidFeedbackError
from models.profile import OnboardingConstraints, StyleVector, UserProfile, utc_now


def constraints_from_answers(answers: OnboardingAnswers) -> OnboardingConstraints:
    return OnboardingConstraints(
        contexts=answers.contexts,
        seasons=answers.seasons,
        budget=answers.budget,
        items_to_avoid=answers.items_to_avoid,
        colors_to_avoid=answers.colors_to_avoid,
        fits_to_avoid=answers.fits_to_avoid,
        patterns_to_avoid=answers.patterns_to_avoid,
        logo_visibility="no_logos" if answers.logos_preference == "Avoid logos" else "ok",
    )


def initialize_user_profile(
    user_id: str,
    answers: OnboardingAnswers | Dict[str, Any] | None = None,
    now: Optional[datetime] = None,
) -> UserProfile:
    """Create a fresh profile whose avoid-lists are hard bans from day one."""

    if not user_id or not str(user_id).strip():
        raise InvalidFeedbackError("user_id is required to create a profile")
    if not isinstance(answers, OnboardingAnswers):
        try:
            answers = OnboardingAnswers.model_validate(answers or {})
        except ValidationError as exc:
            raise InvalidFeedbackError(f"Invalid onboarding answers: {exc.error_count()} error(s)") from exc

    timestamp = now or utc_now()
    constraints = constraints_from_answers(answers)
    return UserProfile(
        user_id=str(user_id).strip(),
        style_vector=StyleVector(),
        rejections=build_initial_rejections(constraints, now=timestamp),
        onboarding_constraints=constraints,
        last_updated=timestamp,
        age_band=answers.age_range,
        presenting_gender=answers.style_preference,
    )


__all__ = ["constraints_from_answers", "initialize_user_profile"]
