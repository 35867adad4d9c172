"""PostgREST-backed profile store compatible with the hosted preference schema.

The hosted schema predates the split profile records, so this store packs the
style vector and color lists into the ``weights`` blob under reserved keys and
encodes hard bans as ``cooldown_until_session = -1`` rows in
``user_attr_stats``.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import requests

from memory.errors import PersistenceError, SyncAuthorizationError, SyncUnavailableError
from memory.profile_store import InteractionEvent, OutfitRecord, ProfileStore
from memory.sync import DEFAULT_SYNC_STATUS, SyncStatus, is_auth_error
from models.profile import (
    AttributeRejection,
    OnboardingConstraints,
    StyleVector,
    UserProfile,
    parse_timestamp,
    utc_now,
)
from models.taxonomy import split_tag_key
from style_app.logging_config import get_logger, log_event

LOGGER = get_logger(__name__)

STYLE_VECTOR_KEY = "__styleVector"
LIKED_COLORS_KEY = "__likedColors"
DISLIKED_COLORS_KEY = "__dislikedColors"
RESERVED_WEIGHT_KEYS = frozenset({STYLE_VECTOR_KEY, LIKED_COLORS_KEY, DISLIKED_COLORS_KEY})
PERMANENT_COOLDOWN = -1


def map_budget(budget: Optional[str]) -> str:
    if not budget:
        return "mid"
    normalized = budget.lower()
    if normalized.startswith("low"):
        return "low"
    if normalized.startswith("high"):
        return "high"
    return "mid"


def _to_epoch_seconds(value: datetime) -> int:
    return int(value.timestamp())


def _from_epoch_seconds(value: Any) -> datetime:
    if isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0:
        return datetime.fromtimestamp(value, tz=timezone.utc)
    return utc_now()


def _string_list(value: Any) -> List[str]:
    return [str(item) for item in value] if isinstance(value, list) else []


def serialize_weights(profile: UserProfile) -> Dict[str, Any]:
    """Pack the weight map plus the reserved style/color keys into one blob."""

    blob: Dict[str, Any] = {
        STYLE_VECTOR_KEY: profile.style_vector.to_dict(),
        LIKED_COLORS_KEY: list(profile.liked_colors),
        DISLIKED_COLORS_KEY: list(profile.disliked_colors),
    }
    blob.update(profile.preference_weights)
    return blob


def deserialize_weights(blob: Any) -> Dict[str, Any]:
    if not isinstance(blob, dict):
        return {"style_vector": StyleVector(), "liked_colors": [], "disliked_colors": [], "weights": {}}
    weights = {
        key: float(value)
        for key, value in blob.items()
        if key not in RESERVED_WEIGHT_KEYS
        and isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    }
    return {
        "style_vector": StyleVector.from_dict(blob.get(STYLE_VECTOR_KEY)),
        "liked_colors": _string_list(blob.get(LIKED_COLORS_KEY)),
        "disliked_colors": _string_list(blob.get(DISLIKED_COLORS_KEY)),
        "weights": weights,
    }


def serialize_rejections(profile: UserProfile) -> List[Dict[str, Any]]:
    return [
        {
            "user_id": profile.user_id,
            "attr_key": rejection.key,
            "likes": 0,
            "dislikes": rejection.streak,
            "streak_dislikes": rejection.streak,
            "cooldown_until_session": PERMANENT_COOLDOWN if rejection.is_hard_ban else None,
            "last_seen_session": _to_epoch_seconds(rejection.last_rejected),
        }
        for rejection in profile.rejections
    ]


def rejections_from_rows(rows: List[Dict[str, Any]]) -> List[AttributeRejection]:
    rejections: List[AttributeRejection] = []
    for row in rows:
        attr_key = row.get("attr_key")
        attribute, value = split_tag_key(attr_key) if isinstance(attr_key, str) else ("unknown", "unknown")
        streak = row.get("streak_dislikes")
        if streak is None:
            streak = row.get("dislikes") or 0
        rejections.append(
            AttributeRejection(
                attribute=attribute,
                value=value,
                streak=int(streak),
                last_rejected=_from_epoch_seconds(row.get("last_seen_session")),
                is_hard_ban=row.get("cooldown_until_session") == PERMANENT_COOLDOWN,
            )
        )
    return rejections


def pattern_bans_from_rows(rows: List[Dict[str, Any]]) -> List[str]:
    """Patterns have no column of their own; they live only as permanent ``pattern:`` rows."""

    bans: List[str] = []
    for row in rows:
        attr_key = row.get("attr_key")
        if (
            isinstance(attr_key, str)
            and attr_key.startswith("pattern:")
            and row.get("cooldown_until_session") == PERMANENT_COOLDOWN
        ):
            bans.append(split_tag_key(attr_key)[1])
    return bans


def profile_row_payload(profile: UserProfile, now: Optional[datetime] = None) -> Dict[str, Any]:
    constraints = profile.onboarding_constraints
    return {
        "user_id": profile.user_id,
        "age_band": profile.age_band,
        "presenting_gender": profile.presenting_gender,
        "contexts": list(constraints.contexts),
        "seasons": list(constraints.seasons),
        "budget_tier": map_budget(constraints.budget),
        "hard_avoid_colors": list(constraints.colors_to_avoid),
        "hard_avoid_fits": list(constraints.fits_to_avoid),
        "avoid_items": list(constraints.items_to_avoid),
        "logo_visibility": constraints.logo_visibility or "ok",
        "updated_at": (now or utc_now()).isoformat(),
    }


def compose_profile(
    profile_row: Dict[str, Any], preference_row: Optional[Dict[str, Any]], attr_rows: List[Dict[str, Any]]
) -> UserProfile:
    unpacked = deserialize_weights((preference_row or {}).get("weights"))
    constraints = OnboardingConstraints(
        contexts=_string_list(profile_row.get("contexts")),
        seasons=_string_list(profile_row.get("seasons")),
        budget=profile_row.get("budget_tier") or "Medium",
        items_to_avoid=_string_list(profile_row.get("avoid_items")),
        colors_to_avoid=_string_list(profile_row.get("hard_avoid_colors")),
        fits_to_avoid=_string_list(profile_row.get("hard_avoid_fits")),
        patterns_to_avoid=pattern_bans_from_rows(attr_rows),
        logo_visibility=profile_row.get("logo_visibility") or "ok",
    )
    return UserProfile(
        user_id=str(profile_row["user_id"]),
        style_vector=unpacked["style_vector"],
        liked_colors=unpacked["liked_colors"],
        disliked_colors=unpacked["disliked_colors"],
        preference_weights=unpacked["weights"],
        rejections=rejections_from_rows(attr_rows),
        onboarding_constraints=constraints,
        last_updated=parse_timestamp(profile_row.get("updated_at")),
        age_band=profile_row.get("age_band"),
        presenting_gender=profile_row.get("presenting_gender"),
    )


class RestProfileStore(ProfileStore):
    """Profile store speaking PostgREST over ``requests``.

    Writes are last-write-wins; ``profile.version`` is left untouched. An
    authorization failure flips the shared :class:`SyncStatus` off and every
    later call raises :class:`SyncUnavailableError` without touching the network.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout_seconds: float = 5.0,
        session: requests.Session | None = None,
        status: SyncStatus | None = None,
    ) -> None:
        if not base_url:
            raise ValueError("base_url is required for the REST profile store")
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.session = session or requests.Session()
        self.status = status or DEFAULT_SYNC_STATUS
        self.headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    def _guard(self, user_id: Optional[str]) -> None:
        if not self.status.available:
            raise SyncUnavailableError(f"Remote sync disabled: {self.status.reason or 'not configured'}")
        if user_id is not None and not self.status.can_sync(user_id):
            raise SyncUnavailableError("User id is not a syncable UUID")

    def _request(
        self,
        method: str,
        table: str,
        params: Dict[str, str] | None = None,
        payload: Any = None,
        prefer: str | None = None,
    ) -> Any:
        headers = dict(self.headers)
        if prefer:
            headers["Prefer"] = prefer
        url = f"{self.base_url}/{table}"
        try:
            response = self.session.request(
                method, url, params=params, json=payload, headers=headers, timeout=self.timeout_seconds
            )
        except requests.Timeout as exc:
            raise PersistenceError(f"{method} {table} timed out") from exc
        except requests.RequestException as exc:
            raise PersistenceError(f"{method} {table} failed: {exc}") from exc

        if response.status_code >= 400:
            try:
                body = response.json()
            except ValueError:
                body = {}
            if not isinstance(body, dict):
                body = {}
            error = {
                "status": response.status_code,
                "code": body.get("code"),
                "message": body.get("message") or response.text,
            }
            if is_auth_error(error):
                self.status.handle_error(error)
                raise SyncAuthorizationError(f"{method} {table} refused with status {response.status_code}")
            raise PersistenceError(f"{method} {table} returned {response.status_code}: {error['message']}")

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return None

    def _select(self, table: str, user_id: str) -> List[Dict[str, Any]]:
        rows = self._request("GET", table, params={"user_id": f"eq.{user_id}", "select": "*"})
        return rows if isinstance(rows, list) else []

    def load_profile(self, user_id: str) -> Optional[UserProfile]:
        self._guard(user_id)
        profile_rows = self._select("user_profile", user_id)
        if not profile_rows:
            return None
        preference_rows = self._select("user_preferences", user_id)
        attr_rows = self._select("user_attr_stats", user_id)
        return compose_profile(profile_rows[0], preference_rows[0] if preference_rows else None, attr_rows)

    def save_profile(self, profile: UserProfile) -> None:
        self._guard(profile.user_id)
        now = utc_now()
        upsert = "resolution=merge-duplicates"
        self._request(
            "POST", "user_profile", params={"on_conflict": "user_id"}, payload=profile_row_payload(profile, now),
            prefer=upsert,
        )
        self._request(
            "POST",
            "user_preferences",
            params={"on_conflict": "user_id"},
            payload={"user_id": profile.user_id, "weights": serialize_weights(profile), "updated_at": now.isoformat()},
            prefer=upsert,
        )
        self._request("DELETE", "user_attr_stats", params={"user_id": f"eq.{profile.user_id}"})
        rows = serialize_rejections(profile)
        if rows:
            self._request(
                "POST", "user_attr_stats", params={"on_conflict": "user_id,attr_key"}, payload=rows, prefer=upsert
            )
        log_event(LOGGER, logging.DEBUG, "remote_profile_saved", rejection_rows=len(rows))

    def upsert_outfit(self, record: OutfitRecord) -> None:
        self._guard(record.user_id)
        self._request(
            "POST",
            "outfits",
            params={"on_conflict": "id"},
            payload={
                "id": record.outfit_id,
                "image_url": record.image_url,
                "tags": {
                    "theme": record.theme,
                    "analysis": record.analysis,
                    "reasons": list(record.micro_reasons),
                    "reason": record.reason,
                },
            },
            prefer="resolution=merge-duplicates",
        )

    def record_interaction(self, event: InteractionEvent) -> None:
        self._guard(event.user_id)
        self._request(
            "POST",
            "interactions",
            payload={
                "user_id": event.user_id,
                "outfit_id": event.outfit_id,
                "action": event.action,
                "reasons": list(event.reasons),
                "session_no": event.session_no,
                "created_at": event.created_at.isoformat(),
            },
        )

    def list_interactions(self, user_id: str, limit: int = 50) -> List[InteractionEvent]:
        self._guard(user_id)
        rows = self._request(
            "GET",
            "interactions",
            params={"user_id": f"eq.{user_id}", "select": "*", "order": "created_at.desc", "limit": str(limit)},
        )
        events = [InteractionEvent.from_dict(row) for row in (rows or [])]
        return list(reversed(events))


__all__ = [
    "DISLIKED_COLORS_KEY",
    "LIKED_COLORS_KEY",
    "PERMANENT_COOLDOWN",
    "RESERVED_WEIGHT_KEYS",
    "RestProfileStore",
    "STYLE_VECTOR_KEY",
    "compose_profile",
    "deserialize_weights",
    "map_budget",
    "pattern_bans_from_rows",
    "profile_row_payload",
    "rejections_from_rows",
    "serialize_rejections",
    "serialize_weights",
]
