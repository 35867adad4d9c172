"""Feedback ingestion: the single entry point that turns a like/dislike into profile state."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from pydantic import ValidationError

from logic.preference_weights import update_from_feedback
from logic.validation import OutfitAnalysisPayload
from memory.errors import PersistenceError
from memory.profile_store import InteractionEvent, OutfitRecord, ProfileStore, ensure_outfit_id
from models.feedback import FeedbackReason, FeedbackType, InvalidFeedbackError, parse_reasons
from models.outfit_analysis import OutfitAnalysis
from models.profile import FeedbackRecord, UserProfile, utc_now
from style_app.logging_config import get_logger, log_event, operation_context

logger = get_logger(__name__)


@dataclass
class IngestionResult:
    """Outcome of one ingest call.

    ``outfit_id`` is ``None`` when the interaction could not be logged. The
    profile is always the updated in-memory copy, persisted or not.
    """

    outfit_id: Optional[str]
    profile: UserProfile
    warnings: List[str] = field(default_factory=list)

    @property
    def persisted(self) -> bool:
        return not self.warnings

    def to_dict(self) -> Dict[str, Any]:
        return {
            "outfit_id": self.outfit_id,
            "profile": self.profile.to_dict(),
            "warnings": list(self.warnings),
        }


def coerce_analysis(outfit_analysis: Any) -> OutfitAnalysis:
    if isinstance(outfit_analysis, OutfitAnalysis):
        return outfit_analysis
    if not isinstance(outfit_analysis, (dict, OutfitAnalysisPayload)):
        raise InvalidFeedbackError("An outfit analysis is required")
    try:
        if isinstance(outfit_analysis, dict):
            outfit_analysis = OutfitAnalysisPayload.model_validate(outfit_analysis)
        return outfit_analysis.to_analysis()
    except (ValidationError, ValueError) as exc:
        raise InvalidFeedbackError(f"Invalid outfit analysis: {exc}") from exc


class FeedbackIngestionPipeline:
    """Applies feedback events to a user's profile and persists the side effects best-effort.

    Events for one user must be fed in order; streaks and decay depend on it.
    """

    def __init__(self, store: ProfileStore) -> None:
        self.store = store

    def _resolve_profile(self, user_id: str, profile: Optional[UserProfile]) -> UserProfile:
        if profile is not None:
            if profile.user_id != user_id:
                raise InvalidFeedbackError("Profile does not belong to the submitting user")
            return profile
        loaded = self.store.load_profile(user_id)
        if loaded is None:
            raise InvalidFeedbackError(f"No profile found for user {user_id}")
        return loaded

    def _attempt(self, step: str, warnings: List[str], call, *args: Any) -> bool:
        try:
            call(*args)
            return True
        except PersistenceError as exc:
            warnings.append(f"{step}: {exc}")
            log_event(logger, logging.WARNING, "persistence_failed", step=step, error=str(exc))
            return False

    def ingest(
        self,
        user_id: str,
        theme: str,
        feedback_type: FeedbackType | str,
        outfit_analysis: OutfitAnalysis | Dict[str, Any] | None,
        micro_reasons: Optional[Iterable[FeedbackReason | str]] = None,
        outfit_id: Optional[str] = None,
        reason: Optional[str] = None,
        profile: Optional[UserProfile] = None,
        session_no: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> IngestionResult:
        if not user_id:
            raise InvalidFeedbackError("user_id is required")
        parsed_type = FeedbackType.parse(feedback_type)
        reasons = parse_reasons(micro_reasons)
        analysis = coerce_analysis(outfit_analysis)
        timestamp = now or utc_now()

        with operation_context("feedback_ingestion.ingest") as correlation_id:
            warnings: List[str] = []
            target = self._resolve_profile(user_id, profile)
            resolved_id = ensure_outfit_id(outfit_id)
            reason_values = [item.value for item in reasons]

            target.style_vector.apply_reason(reason)
            target.record_feedback(
                FeedbackRecord(
                    outfit_id=resolved_id,
                    theme=theme or "",
                    feedback_type=parsed_type.value,
                    micro_reasons=reason_values,
                    reason=reason,
                    created_at=timestamp,
                )
            )
            update_from_feedback(target, analysis, parsed_type, reasons, now=timestamp)
            target.event_sequence += 1

            self._attempt("save_profile", warnings, self.store.save_profile, target)
            self._attempt(
                "upsert_outfit",
                warnings,
                self.store.upsert_outfit,
                OutfitRecord(
                    outfit_id=resolved_id,
                    theme=theme or "",
                    analysis=analysis.to_dict(),
                    micro_reasons=reason_values,
                    reason=reason,
                    user_id=user_id,
                ),
            )
            logged = self._attempt(
                "record_interaction",
                warnings,
                self.store.record_interaction,
                InteractionEvent(
                    user_id=user_id,
                    outfit_id=resolved_id,
                    action=parsed_type.value,
                    reasons=tuple(reason_values),
                    session_no=session_no if session_no is not None else target.event_sequence,
                    created_at=timestamp,
                ),
            )

            log_event(
                logger,
                logging.INFO,
                "feedback_ingested",
                feedback_type=parsed_type.value,
                micro_reasons=reason_values,
                tags=len(analysis.tags),
                event_sequence=target.event_sequence,
                warnings=len(warnings),
                correlation_id=correlation_id,
            )
            return IngestionResult(outfit_id=resolved_id if logged else None, profile=target, warnings=warnings)


__all__ = ["FeedbackIngestionPipeline", "IngestionResult", "coerce_analysis"]
