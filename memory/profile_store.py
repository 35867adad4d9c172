"""Profile store abstractions with JSON-file and SQLite implementations.

A profile is persisted as three logical records: ``profile`` (onboarding
constraints, demographic bands, counters), ``preferences`` (weights, style
vector and color lists as separate fields) and ``attribute_stats`` (one row
per rejection). Outfit metadata is upserted by id and interactions are an
append-only log.
"""
from __future__ import annotations

import hashlib
import json
import re
import sqlite3
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from memory.errors import PersistenceError, ProfileVersionConflict
from models.profile import UserProfile, parse_timestamp, utc_now

_UUID_V4 = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$", re.IGNORECASE)


def is_valid_uuid(value: Optional[str]) -> bool:
    return isinstance(value, str) and bool(_UUID_V4.match(value))


def ensure_outfit_id(outfit_id: Optional[str]) -> str:
    """Keep a caller-supplied v4 UUID, otherwise mint a new one."""

    if is_valid_uuid(outfit_id):
        return str(outfit_id)
    return str(uuid.uuid4())


@dataclass
class OutfitRecord:
    outfit_id: str
    theme: str
    analysis: Dict[str, Any]
    micro_reasons: List[str] = field(default_factory=list)
    reason: Optional[str] = None
    user_id: Optional[str] = None

    @property
    def image_url(self) -> str:
        return f"generated://{self.outfit_id}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "outfit_id": self.outfit_id,
            "image_url": self.image_url,
            "theme": self.theme,
            "analysis": self.analysis,
            "micro_reasons": list(self.micro_reasons),
            "reason": self.reason,
        }


@dataclass(frozen=True)
class InteractionEvent:
    """Immutable entry of the interaction log."""

    user_id: str
    outfit_id: str
    action: str
    reasons: Tuple[str, ...] = ()
    session_no: int = 0
    created_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "outfit_id": self.outfit_id,
            "action": self.action,
            "reasons": list(self.reasons),
            "session_no": self.session_no,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InteractionEvent":
        return cls(
            user_id=str(data["user_id"]),
            outfit_id=str(data["outfit_id"]),
            action=str(data["action"]),
            reasons=tuple(str(reason) for reason in data.get("reasons") or []),
            session_no=int(data.get("session_no") or 0),
            created_at=parse_timestamp(data.get("created_at")),
        )


def profile_to_records(profile: UserProfile) -> Tuple[Dict[str, Any], Dict[str, Any], List[Dict[str, Any]]]:
    """Split a profile into its ``profile``, ``preferences`` and ``attribute_stats`` records."""

    updated_at = profile.last_updated.isoformat()
    profile_record = {
        "user_id": profile.user_id,
        "age_band": profile.age_band,
        "presenting_gender": profile.presenting_gender,
        "constraints": profile.onboarding_constraints.to_dict(),
        "feedback_history": [record.to_dict() for record in profile.feedback_history],
        "event_sequence": profile.event_sequence,
        "updated_at": updated_at,
    }
    preferences_record = {
        "weights": dict(profile.preference_weights),
        "style_vector": profile.style_vector.to_dict(),
        "liked_colors": list(profile.liked_colors),
        "disliked_colors": list(profile.disliked_colors),
        "updated_at": updated_at,
    }
    attribute_stats = [{"attr_key": rejection.key, **rejection.to_dict()} for rejection in profile.rejections]
    return profile_record, preferences_record, attribute_stats


def profile_from_records(
    profile_record: Dict[str, Any],
    preferences_record: Optional[Dict[str, Any]],
    attribute_stats: List[Dict[str, Any]],
    version: int,
) -> UserProfile:
    preferences_record = preferences_record or {}
    return UserProfile.from_dict(
        {
            "user_id": profile_record["user_id"],
            "style_vector": preferences_record.get("style_vector"),
            "liked_colors": preferences_record.get("liked_colors"),
            "disliked_colors": preferences_record.get("disliked_colors"),
            "feedback_history": profile_record.get("feedback_history"),
            "preference_weights": preferences_record.get("weights"),
            "rejections": attribute_stats,
            "onboarding_constraints": profile_record.get("constraints"),
            "last_updated": profile_record.get("updated_at"),
            "age_band": profile_record.get("age_band"),
            "presenting_gender": profile_record.get("presenting_gender"),
            "version": version,
            "event_sequence": profile_record.get("event_sequence"),
        }
    )


class ProfileStore:
    """Interface for profile, outfit and interaction persistence.

    Implementations raise :class:`memory.errors.PersistenceError` subclasses.
    """

    def load_profile(self, user_id: str) -> Optional[UserProfile]:
        raise NotImplementedError

    def save_profile(self, profile: UserProfile) -> None:
        raise NotImplementedError

    def upsert_outfit(self, record: OutfitRecord) -> None:
        raise NotImplementedError

    def record_interaction(self, event: InteractionEvent) -> None:
        raise NotImplementedError

    def list_interactions(self, user_id: str, limit: int = 50) -> List[InteractionEvent]:
        raise NotImplementedError


class JSONProfileStore(ProfileStore):
    """JSON-file-backed ProfileStore suitable for local runs."""

    def __init__(self, base_dir: str | Path = "data/profiles") -> None:
        self.base_dir = Path(base_dir)
        (self.base_dir / "interactions").mkdir(parents=True, exist_ok=True)

    @staticmethod
    def _safe_name(user_id: str) -> str:
        # One file per distinct user id, whatever characters it holds.
        return hashlib.sha256(user_id.encode("utf-8")).hexdigest()

    def _path(self, user_id: str) -> Path:
        return self.base_dir / f"{self._safe_name(user_id)}.json"

    def _interactions_path(self, user_id: str) -> Path:
        return self.base_dir / "interactions" / f"{self._safe_name(user_id)}.jsonl"

    def _outfits_path(self) -> Path:
        return self.base_dir / "outfits.json"

    def _read(self, path: Path) -> Optional[Dict[str, Any]]:
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text())
        except (OSError, json.JSONDecodeError) as exc:
            raise PersistenceError(f"Unreadable store file {path.name}") from exc

    def _write(self, path: Path, payload: Dict[str, Any]) -> None:
        try:
            path.write_text(json.dumps(payload, indent=2))
        except OSError as exc:
            raise PersistenceError(f"Could not write {path.name}") from exc

    def load_profile(self, user_id: str) -> Optional[UserProfile]:
        document = self._read(self._path(user_id))
        if document is None:
            return None
        return profile_from_records(
            document["profile"],
            document.get("preferences"),
            document.get("attribute_stats", []),
            version=int(document.get("version", 0)),
        )

    def save_profile(self, profile: UserProfile) -> None:
        path = self._path(profile.user_id)
        current = self._read(path)
        stored_version = int(current.get("version", 0)) if current else None
        if stored_version is not None and stored_version != profile.version:
            raise ProfileVersionConflict(profile.user_id, profile.version, stored_version)

        profile_record, preferences_record, attribute_stats = profile_to_records(profile)
        new_version = profile.version + 1
        self._write(
            path,
            {
                "version": new_version,
                "profile": profile_record,
                "preferences": preferences_record,
                "attribute_stats": attribute_stats,
            },
        )
        profile.version = new_version

    def upsert_outfit(self, record: OutfitRecord) -> None:
        outfits = self._read(self._outfits_path()) or {}
        outfits[record.outfit_id] = record.to_dict()
        self._write(self._outfits_path(), outfits)

    def get_outfit(self, outfit_id: str) -> Optional[Dict[str, Any]]:
        return (self._read(self._outfits_path()) or {}).get(outfit_id)

    def record_interaction(self, event: InteractionEvent) -> None:
        try:
            with self._interactions_path(event.user_id).open("a") as handle:
                handle.write(json.dumps(event.to_dict()) + "\n")
        except OSError as exc:
            raise PersistenceError("Could not append interaction") from exc

    def list_interactions(self, user_id: str, limit: int = 50) -> List[InteractionEvent]:
        path = self._interactions_path(user_id)
        if not path.exists():
            return []
        lines = [line for line in path.read_text().splitlines() if line.strip()]
        return [InteractionEvent.from_dict(json.loads(line)) for line in lines[-limit:]]


class SQLiteProfileStore(ProfileStore):
    """SQLite-backed profile store with one table per logical record."""

    def __init__(self, db_path: str | Path = "data/profiles.db") -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_schema(self) -> None:
        with self._connect() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS user_profile (
                    user_id TEXT PRIMARY KEY,
                    age_band TEXT,
                    presenting_gender TEXT,
                    constraints TEXT NOT NULL,
                    feedback_history TEXT NOT NULL,
                    event_sequence INTEGER NOT NULL DEFAULT 0,
                    version INTEGER NOT NULL DEFAULT 0,
                    updated_at TEXT
                );
                CREATE TABLE IF NOT EXISTS user_preferences (
                    user_id TEXT PRIMARY KEY,
                    weights TEXT NOT NULL,
                    style_vector TEXT NOT NULL,
                    liked_colors TEXT NOT NULL,
                    disliked_colors TEXT NOT NULL,
                    updated_at TEXT,
                    FOREIGN KEY(user_id) REFERENCES user_profile(user_id)
                );
                CREATE TABLE IF NOT EXISTS user_attr_stats (
                    user_id TEXT NOT NULL,
                    attr_key TEXT NOT NULL,
                    attribute TEXT NOT NULL,
                    value TEXT NOT NULL,
                    streak INTEGER NOT NULL,
                    last_rejected TEXT,
                    is_hard_ban INTEGER NOT NULL DEFAULT 0,
                    PRIMARY KEY (user_id, attr_key)
                );
                CREATE TABLE IF NOT EXISTS outfits (
                    id TEXT PRIMARY KEY,
                    image_url TEXT,
                    theme TEXT,
                    analysis TEXT,
                    reasons TEXT,
                    reason TEXT
                );
                CREATE TABLE IF NOT EXISTS interactions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL,
                    outfit_id TEXT NOT NULL,
                    action TEXT NOT NULL,
                    reasons TEXT,
                    session_no INTEGER,
                    created_at TEXT
                );
                """
            )

    def load_profile(self, user_id: str) -> Optional[UserProfile]:
        try:
            with self._connect() as conn:
                profile_row = conn.execute("SELECT * FROM user_profile WHERE user_id = ?", (user_id,)).fetchone()
                if profile_row is None:
                    return None
                preference_row = conn.execute(
                    "SELECT * FROM user_preferences WHERE user_id = ?", (user_id,)
                ).fetchone()
                attr_rows = conn.execute(
                    "SELECT * FROM user_attr_stats WHERE user_id = ? ORDER BY rowid", (user_id,)
                ).fetchall()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Could not load profile {user_id}") from exc

        profile_record = {
            "user_id": profile_row["user_id"],
            "age_band": profile_row["age_band"],
            "presenting_gender": profile_row["presenting_gender"],
            "constraints": json.loads(profile_row["constraints"]),
            "feedback_history": json.loads(profile_row["feedback_history"]),
            "event_sequence": profile_row["event_sequence"],
            "updated_at": profile_row["updated_at"],
        }
        preferences_record = None
        if preference_row is not None:
            preferences_record = {
                "weights": json.loads(preference_row["weights"]),
                "style_vector": json.loads(preference_row["style_vector"]),
                "liked_colors": json.loads(preference_row["liked_colors"]),
                "disliked_colors": json.loads(preference_row["disliked_colors"]),
            }
        attribute_stats = [
            {
                "attribute": row["attribute"],
                "value": row["value"],
                "streak": row["streak"],
                "last_rejected": row["last_rejected"],
                "is_hard_ban": bool(row["is_hard_ban"]),
            }
            for row in attr_rows
        ]
        return profile_from_records(profile_record, preferences_record, attribute_stats, version=profile_row["version"])

    def save_profile(self, profile: UserProfile) -> None:
        profile_record, preferences_record, attribute_stats = profile_to_records(profile)
        new_version = profile.version + 1
        try:
            with self._connect() as conn:
                row = conn.execute(
                    "SELECT version FROM user_profile WHERE user_id = ?", (profile.user_id,)
                ).fetchone()
                if row is not None and row["version"] != profile.version:
                    raise ProfileVersionConflict(profile.user_id, profile.version, row["version"])
                conn.execute(
                    "INSERT INTO user_profile(user_id, age_band, presenting_gender, constraints, feedback_history,"
                    " event_sequence, version, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?)\n"
                    "ON CONFLICT(user_id) DO UPDATE SET age_band=excluded.age_band,"
                    " presenting_gender=excluded.presenting_gender, constraints=excluded.constraints,"
                    " feedback_history=excluded.feedback_history, event_sequence=excluded.event_sequence,"
                    " version=excluded.version, updated_at=excluded.updated_at",
                    (
                        profile.user_id,
                        profile_record["age_band"],
                        profile_record["presenting_gender"],
                        json.dumps(profile_record["constraints"]),
                        json.dumps(profile_record["feedback_history"]),
                        profile_record["event_sequence"],
                        new_version,
                        profile_record["updated_at"],
                    ),
                )
                conn.execute(
                    "INSERT INTO user_preferences(user_id, weights, style_vector, liked_colors, disliked_colors,"
                    " updated_at) VALUES (?, ?, ?, ?, ?, ?)\n"
                    "ON CONFLICT(user_id) DO UPDATE SET weights=excluded.weights,"
                    " style_vector=excluded.style_vector, liked_colors=excluded.liked_colors,"
                    " disliked_colors=excluded.disliked_colors, updated_at=excluded.updated_at",
                    (
                        profile.user_id,
                        json.dumps(preferences_record["weights"]),
                        json.dumps(preferences_record["style_vector"]),
                        json.dumps(preferences_record["liked_colors"]),
                        json.dumps(preferences_record["disliked_colors"]),
                        preferences_record["updated_at"],
                    ),
                )
                conn.execute("DELETE FROM user_attr_stats WHERE user_id = ?", (profile.user_id,))
                conn.executemany(
                    "INSERT INTO user_attr_stats(user_id, attr_key, attribute, value, streak, last_rejected,"
                    " is_hard_ban) VALUES (?, ?, ?, ?, ?, ?, ?)",
                    [
                        (
                            profile.user_id,
                            stat["attr_key"],
                            stat["attribute"],
                            stat["value"],
                            stat["streak"],
                            stat["last_rejected"],
                            int(stat["is_hard_ban"]),
                        )
                        for stat in attribute_stats
                    ],
                )
        except sqlite3.Error as exc:
            raise PersistenceError(f"Could not save profile {profile.user_id}") from exc
        profile.version = new_version

    def upsert_outfit(self, record: OutfitRecord) -> None:
        try:
            with self._connect() as conn:
                conn.execute(
                    "INSERT INTO outfits(id, image_url, theme, analysis, reasons, reason) VALUES (?, ?, ?, ?, ?, ?)\n"
                    "ON CONFLICT(id) DO UPDATE SET theme=excluded.theme, analysis=excluded.analysis,"
                    " reasons=excluded.reasons, reason=excluded.reason",
                    (
                        record.outfit_id,
                        record.image_url,
                        record.theme,
                        json.dumps(record.analysis),
                        json.dumps(record.micro_reasons),
                        record.reason,
                    ),
                )
        except sqlite3.Error as exc:
            raise PersistenceError(f"Could not upsert outfit {record.outfit_id}") from exc

    def get_outfit(self, outfit_id: str) -> Optional[Dict[str, Any]]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM outfits WHERE id = ?", (outfit_id,)).fetchone()
        if row is None:
            return None
        return {
            "outfit_id": row["id"],
            "image_url": row["image_url"],
            "theme": row["theme"],
            "analysis": json.loads(row["analysis"]) if row["analysis"] else {},
            "micro_reasons": json.loads(row["reasons"]) if row["reasons"] else [],
            "reason": row["reason"],
        }

    def record_interaction(self, event: InteractionEvent) -> None:
        try:
            with self._connect() as conn:
                conn.execute(
                    "INSERT INTO interactions(user_id, outfit_id, action, reasons, session_no, created_at)"
                    " VALUES (?, ?, ?, ?, ?, ?)",
                    (
                        event.user_id,
                        event.outfit_id,
                        event.action,
                        json.dumps(list(event.reasons)),
                        event.session_no,
                        event.created_at.isoformat(),
                    ),
                )
        except sqlite3.Error as exc:
            raise PersistenceError("Could not record interaction") from exc

    def list_interactions(self, user_id: str, limit: int = 50) -> List[InteractionEvent]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM interactions WHERE user_id = ? ORDER BY id DESC LIMIT ?", (user_id, limit)
            ).fetchall()
        return [
            InteractionEvent(
                user_id=row["user_id"],
                outfit_id=row["outfit_id"],
                action=row["action"],
                reasons=tuple(json.loads(row["reasons"]) if row["reasons"] else []),
                session_no=row["session_no"] or 0,
                created_at=parse_timestamp(row["created_at"]),
            )
            for row in reversed(rows)
        ]


__all__ = [
    "InteractionEvent",
    "JSONProfileStore",
    "OutfitRecord",
    "ProfileStore",
    "SQLiteProfileStore",
    "ensure_outfit_id",
    "is_valid_uuid",
    "profile_from_records",
    "profile_to_records",
]
