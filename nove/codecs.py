"""Versioned record formats for persisted profile and cache state.

Every record is a JSON envelope::

    {"schema": "nove.user_profile", "version": 2, "data": {...}}

Loaders check the schema name and version and either migrate an older
known layout or raise :class:`SchemaError`, which callers treat as "no
prior state".
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Callable

from nove.models import (
    ActionKind,
    CacheEntry,
    InterestEntry,
    Interaction,
    ListenStat,
    PlayCountRecord,
    UserProfile,
)

PROFILE_SCHEMA = "nove.user_profile"
PROFILE_VERSION = 2
CACHE_ENTRY_SCHEMA = "nove.cache_entry"
CACHE_ENTRY_VERSION = 1
PLAY_COUNT_SCHEMA = "nove.play_count"
PLAY_COUNT_VERSION = 1


class SchemaError(ValueError):
    """Raised when a stored record is corrupt or of an unknown schema/version."""


# ---------------------------------------------------------------------------
# User profile
# ---------------------------------------------------------------------------


def encode_profile(profile: UserProfile) -> bytes:
    data = {
        "profile_id": profile.profile_id,
        "created_at": _dt(profile.created_at),
        "last_active": _dt(profile.last_active),
        "interests": {
            tag: {"score": entry.score, "last_updated": _dt(entry.last_updated)}
            for tag, entry in profile.interests.items()
        },
        "listen_stats": {
            item_id: {
                "play_count": stat.play_count,
                "last_played_at": _dt(stat.last_played_at),
                "total_time_listened": stat.total_time_listened,
            }
            for item_id, stat in profile.listen_stats.items()
        },
        "interactions": [
            {
                "item_id": i.item_id,
                "timestamp": _dt(i.timestamp),
                "action": i.action.value,
                "tags": list(i.tags),
                "completion_ratio": i.completion_ratio,
            }
            for i in profile.interactions
        ],
        "liked": sorted(profile.liked),
        "disliked": sorted(profile.disliked),
        "saved": sorted(profile.saved),
    }
    return _wrap(PROFILE_SCHEMA, PROFILE_VERSION, data)


def decode_profile(raw: bytes) -> UserProfile:
    """Decode a stored profile, migrating the legacy untyped layout.

    Raises:
        SchemaError: If *raw* is corrupt or carries an unknown version.
    """
    doc = _load_json(raw)
    if isinstance(doc, dict) and "schema" not in doc and "interestMap" in doc:
        return _guard(_profile_from_legacy, doc)

    version, data = _unwrap(doc, PROFILE_SCHEMA)
    if version != PROFILE_VERSION:
        raise SchemaError(f"unsupported {PROFILE_SCHEMA} version {version!r}")
    return _guard(_profile_from_v2, data)


def _profile_from_v2(data: dict[str, Any]) -> UserProfile:
    return UserProfile(
        profile_id=str(data["profile_id"]),
        created_at=_parse_dt(data["created_at"]),
        last_active=_parse_dt(data["last_active"]),
        interests={
            tag: InterestEntry(
                score=float(entry["score"]),
                last_updated=_parse_dt(entry["last_updated"]),
            )
            for tag, entry in data["interests"].items()
        },
        listen_stats={
            item_id: ListenStat(
                item_id=item_id,
                play_count=int(stat["play_count"]),
                last_played_at=_parse_dt(stat["last_played_at"]),
                total_time_listened=float(stat.get("total_time_listened", 0.0)),
            )
            for item_id, stat in data["listen_stats"].items()
        },
        interactions=[
            Interaction(
                item_id=str(i["item_id"]),
                timestamp=_parse_dt(i["timestamp"]),
                action=ActionKind(i["action"]),
                tags=tuple(i.get("tags") or ()),
                completion_ratio=i.get("completion_ratio"),
            )
            for i in data["interactions"]
        ],
        liked=set(data["liked"]),
        disliked=set(data["disliked"]),
        saved=set(data["saved"]),
    )


def _profile_from_legacy(data: dict[str, Any]) -> UserProfile:
    """Build a profile from the first-generation layout (camelCase, epoch ms)."""
    return UserProfile(
        profile_id=str(data.get("id") or "legacy"),
        created_at=_from_ms(data.get("createdAt", 0)),
        last_active=_from_ms(data.get("lastActive", 0)),
        interests={
            tag: InterestEntry(
                score=float(entry["score"]),
                last_updated=_from_ms(entry["lastUpdated"]),
            )
            for tag, entry in data["interestMap"].items()
        },
        listen_stats={
            song_id: ListenStat(
                item_id=song_id,
                play_count=int(stat.get("playCount", 0)),
                last_played_at=_from_ms(stat.get("lastPlayed", 0)),
                total_time_listened=float(stat.get("totalTimeListened", 0)),
            )
            for song_id, stat in (data.get("listenHistory") or {}).items()
        },
        interactions=[
            Interaction(
                item_id=str(i["songId"]),
                timestamp=_from_ms(i["timestamp"]),
                action=ActionKind(i["action"]),
                tags=tuple(i.get("tags") or ()),
                completion_ratio=i.get("completionRate"),
            )
            for i in data.get("interactions") or []
        ],
        liked=set(data.get("likedSongs") or ()),
        disliked=set(data.get("dislikedSongs") or ()),
        saved=set(data.get("savedSongs") or ()),
    )


# ---------------------------------------------------------------------------
# Cache records
# ---------------------------------------------------------------------------


def encode_cache_meta(entry: CacheEntry) -> bytes:
    """Encode everything about *entry* except the payload bytes."""
    data = {
        "item_id": entry.item_id,
        "mime_type": entry.mime_type,
        "size_bytes": entry.size_bytes,
        "cached_at": _dt(entry.cached_at),
        "last_accessed_at": _dt(entry.last_accessed_at),
        "title": entry.title,
        "performer": entry.performer,
    }
    return _wrap(CACHE_ENTRY_SCHEMA, CACHE_ENTRY_VERSION, data)


def decode_cache_meta(raw: bytes, payload: bytes = b"") -> CacheEntry:
    version, data = _unwrap(_load_json(raw), CACHE_ENTRY_SCHEMA)
    if version != CACHE_ENTRY_VERSION:
        raise SchemaError(f"unsupported {CACHE_ENTRY_SCHEMA} version {version!r}")
    return _guard(
        lambda d: CacheEntry(
            item_id=str(d["item_id"]),
            payload=payload,
            mime_type=str(d["mime_type"]),
            size_bytes=int(d["size_bytes"]),
            cached_at=_parse_dt(d["cached_at"]),
            last_accessed_at=_parse_dt(d["last_accessed_at"]),
            title=d.get("title", ""),
            performer=d.get("performer", ""),
        ),
        data,
    )


def encode_play_count(record: PlayCountRecord) -> bytes:
    data = {
        "item_id": record.item_id,
        "count": record.count,
        "last_played_at": _dt(record.last_played_at),
        "source": record.source,
        "title": record.title,
        "performer": record.performer,
    }
    return _wrap(PLAY_COUNT_SCHEMA, PLAY_COUNT_VERSION, data)


def decode_play_count(raw: bytes) -> PlayCountRecord:
    version, data = _unwrap(_load_json(raw), PLAY_COUNT_SCHEMA)
    if version != PLAY_COUNT_VERSION:
        raise SchemaError(f"unsupported {PLAY_COUNT_SCHEMA} version {version!r}")
    return _guard(
        lambda d: PlayCountRecord(
            item_id=str(d["item_id"]),
            count=int(d["count"]),
            last_played_at=_parse_dt(d["last_played_at"]),
            source=d.get("source", ""),
            title=d.get("title", ""),
            performer=d.get("performer", ""),
        ),
        data,
    )


# ---------------------------------------------------------------------------
# Envelope helpers
# ---------------------------------------------------------------------------


def _wrap(schema: str, version: int, data: dict[str, Any]) -> bytes:
    return json.dumps({"schema": schema, "version": version, "data": data}).encode("utf-8")


def _load_json(raw: bytes) -> Any:
    try:
        return json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise SchemaError(f"unreadable record: {exc}") from exc


def _unwrap(doc: Any, schema: str) -> tuple[Any, dict[str, Any]]:
    if not isinstance(doc, dict) or doc.get("schema") != schema:
        raise SchemaError(f"expected a {schema} record")
    data = doc.get("data")
    if not isinstance(data, dict):
        raise SchemaError(f"{schema} record has no data")
    return doc.get("version"), data


def _guard(build: Callable[[dict[str, Any]], Any], data: dict[str, Any]) -> Any:
    try:
        return build(data)
    except (KeyError, TypeError, ValueError, AttributeError) as exc:
        raise SchemaError(f"malformed record: {exc!r}") from exc


def _dt(value: datetime) -> str:
    return value.isoformat()


def _parse_dt(value: str) -> datetime:
    dt = datetime.fromisoformat(value)
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def _from_ms(value: float) -> datetime:
    return datetime.fromtimestamp(float(value) / 1000.0, tz=timezone.utc)
