"""Application bootstrap wiring the preference engine to its profile store."""

from __future__ import annotations

from datetime import datetime
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from pydantic import ValidationError

from logic.feedback_ingestion import FeedbackIngestionPipeline, coerce_analysis
from logic.onboarding import initialize_user_profile
from logic.outfit_scoring import rank_outfits
from logic.profile_summary import summarize_profile
from logic.validation import FeedbackEvent, OnboardingAnswers
from memory.errors import PersistenceError
from memory.profile_store import JSONProfileStore, ProfileStore, SQLiteProfileStore
from memory.rest_store import RestProfileStore
from memory.sync import SyncStatus, SyncingProfileStore
from models.feedback import InvalidFeedbackError
from models.profile import UserProfile
from style_app.config import AppConfig
from style_app.logging_config import configure_logging, get_logger, log_event, operation_context
from style_app.observability import instrument_operation

LOGGER = get_logger(__name__)


class ProfileNotFoundError(LookupError):
    """No stored profile exists for the requested user."""


class StylePreferenceApp:
    """Wires configuration, persistence and the engine operations together."""

    def __init__(
        self,
        config: AppConfig | None = None,
        store: ProfileStore | None = None,
        sync_status: SyncStatus | None = None,
    ) -> None:
        self.config = config or AppConfig.from_env()
        configure_logging(self.config.log_level)
        self.sync_status = sync_status or SyncStatus(
            configured=bool(self.config.rest_url and self.config.rest_api_key)
        )
        self.store = store or self._build_profile_store()
        self.pipeline = FeedbackIngestionPipeline(self.store)

    def _build_profile_store(self) -> ProfileStore:
        backend = self.config.profile_store_backend
        if backend == "json":
            return JSONProfileStore(self.config.profile_store_path or "data/profiles")
        if backend == "rest":
            remote = RestProfileStore(
                base_url=str(self.config.rest_url),
                api_key=self.config.rest_api_key or "",
                timeout_seconds=self.config.rest_timeout_seconds,
                status=self.sync_status,
            )
            local = JSONProfileStore(self.config.profile_store_path or "data/profiles")
            return SyncingProfileStore(remote=remote, local=local, status=self.sync_status)
        path = self.config.profile_store_path or "data/profiles.db"
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        return SQLiteProfileStore(path)

    def _require_profile(self, user_id: str) -> UserProfile:
        profile = self.store.load_profile(user_id)
        if profile is None:
            raise ProfileNotFoundError(f"No profile for user {user_id}")
        return profile

    @instrument_operation("app.onboard_user")
    def onboard_user(
        self,
        user_id: str,
        answers: OnboardingAnswers | Dict[str, Any] | None = None,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """Create (or replace) a user's profile from onboarding answers."""

        with operation_context("app:onboard_user") as correlation_id:
            profile = initialize_user_profile(user_id, answers, now=now)
            warnings: List[str] = []
            try:
                existing = self.store.load_profile(profile.user_id)
                if existing is not None:
                    profile.version = existing.version
                self.store.save_profile(profile)
            except PersistenceError as exc:
                warnings.append(f"save_profile: {exc}")
                log_event(
                    LOGGER,
                    logging.WARNING,
                    "persistence_failed",
                    step="onboard_user",
                    error=str(exc),
                    correlation_id=correlation_id,
                )
            return {"status": "ok", "profile": profile.to_dict(), "warnings": warnings}

    @instrument_operation("app.get_profile")
    def get_profile(self, user_id: str) -> UserProfile:
        return self._require_profile(user_id)

    @instrument_operation("app.submit_feedback")
    def submit_feedback(
        self,
        user_id: str,
        event: FeedbackEvent | Dict[str, Any],
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """Validate a feedback payload and run it through the ingestion pipeline."""

        if not isinstance(event, FeedbackEvent):
            try:
                event = FeedbackEvent.model_validate(event)
            except ValidationError as exc:
                raise InvalidFeedbackError(f"Invalid feedback payload: {exc.error_count()} error(s)") from exc

        profile = self._require_profile(user_id)
        result = self.pipeline.ingest(
            user_id=user_id,
            theme=event.theme,
            feedback_type=event.feedback_type,
            outfit_analysis=event.outfit_analysis,
            micro_reasons=event.micro_reasons,
            outfit_id=event.outfit_id,
            reason=event.reason,
            profile=profile,
            session_no=event.session_no,
            now=now,
        )
        return {
            "status": "ok",
            "outfit_id": result.outfit_id,
            "warnings": result.warnings,
            "profile": result.profile.to_dict(),
        }

    @instrument_operation("app.score_outfits")
    def score_outfits(
        self,
        user_id: str,
        analyses: Sequence[Any],
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """Score candidates for a user and return the ranked survivors."""

        profile = self._require_profile(user_id)
        candidates = [coerce_analysis(analysis) for analysis in analyses]
        ranked = rank_outfits(profile, candidates, now=now)
        return {
            "status": "ok",
            "ranked": [
                {"index": item.index, **item.result.to_dict(), "analysis": item.analysis.to_dict()}
                for item in ranked
            ],
            "dropped": len(candidates) - len(ranked),
        }

    @instrument_operation("app.profile_summary")
    def profile_summary(self, user_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        return summarize_profile(self._require_profile(user_id), now=now)


__all__ = ["ProfileNotFoundError", "StylePreferenceApp"]
