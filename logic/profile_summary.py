"""Read model behind the "your style profile" screen."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, Optional

from logic.preference_weights import get_top_disliked_attributes, get_top_liked_attributes
from logic.rejection_tracker import active_cooldowns, hard_bans
from models.profile import UserProfile


def summarize_profile(profile: UserProfile, limit: int = 10, now: Optional[datetime] = None) -> Dict[str, object]:
    return {
        "user_id": profile.user_id,
        "likes": [item.to_dict() for item in get_top_liked_attributes(profile, limit)],
        "dislikes": [item.to_dict() for item in get_top_disliked_attributes(profile, limit)],
        "hard_bans": [rejection.key for rejection in hard_bans(profile)],
        "cooldowns": [rejection.key for rejection in active_cooldowns(profile, now)],
        "style_vector": profile.style_vector.to_dict(),
        "liked_colors": list(profile.liked_colors),
        "disliked_colors": list(profile.disliked_colors),
        "feedback_count": profile.event_sequence,
        "updated_at": profile.last_updated.isoformat(),
    }


__all__ = ["summarize_profile"]
