"""FastAPI server exposing the preference engine for deployment."""

from __future__ import annotations

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from logic.validation import FeedbackEvent, OnboardingAnswers, ScoreRequest
from memory.errors import PersistenceError
from models.feedback import InvalidFeedbackError
from style_app.app import ProfileNotFoundError, StylePreferenceApp


class OnboardRequest(BaseModel):
    """Request payload for creating a profile from onboarding answers."""

    user_id: str = Field(..., min_length=1, description="Unique user identifier")
    answers: OnboardingAnswers = Field(default_factory=OnboardingAnswers)


def create_app(engine: StylePreferenceApp | None = None) -> FastAPI:
    """Build the FastAPI application around a configured engine."""

    preference_app = engine or StylePreferenceApp()
    app = FastAPI(title="Style Preference Engine", version="0.1.0")
    app.state.preference_app = preference_app

    def run(call, *args, **kwargs):
        try:
            return call(*args, **kwargs)
        except ProfileNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        except InvalidFeedbackError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except PersistenceError as exc:
            raise HTTPException(status_code=503, detail="Profile store unavailable") from exc

    @app.get("/healthz")
    async def healthcheck() -> dict:
        """Lightweight readiness probe."""

        return {
            "status": "ok",
            "service": "style-preference-engine",
            "environment": preference_app.config.environment or "local",
            "store": preference_app.config.profile_store_backend,
            "sync_available": preference_app.sync_status.available,
        }

    @app.post("/profiles", status_code=201)
    def create_profile(request: OnboardRequest) -> dict:
        """Create or replace a profile; avoid-lists become permanent bans."""

        return run(preference_app.onboard_user, request.user_id, request.answers)

    @app.get("/profiles/{user_id}")
    def read_profile(user_id: str) -> dict:
        return run(preference_app.get_profile, user_id).to_dict()

    @app.get("/profiles/{user_id}/summary")
    def read_summary(user_id: str) -> dict:
        return run(preference_app.profile_summary, user_id)

    @app.post("/profiles/{user_id}/feedback")
    def submit_feedback(user_id: str, event: FeedbackEvent) -> dict:
        """Apply a like/dislike; persistence problems come back as warnings."""

        return run(preference_app.submit_feedback, user_id, event)

    @app.post("/profiles/{user_id}/score")
    def score_outfits(user_id: str, request: ScoreRequest) -> dict:
        return run(preference_app.score_outfits, user_id, request.outfits)

    return app


def get_app() -> FastAPI:
    """Expose a FastAPI instance built from environment configuration for ASGI servers."""

    return create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("server.api:get_app", host="0.0.0.0", port=8080, reload=False, factory=True)
