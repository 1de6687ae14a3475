"""gRPC servicer: the entry point for all inbound calls from the host player.

Messages are ``google.protobuf.Struct`` in both directions, except
``GetCachedPayload`` which answers with a ``google.protobuf.BytesValue``.
Handlers are registered through a generic handler, so no generated stubs
are needed.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

import grpc
from google.protobuf import json_format, struct_pb2, wrappers_pb2

from nove.catalogue import TrackCatalogue, item_from_dict
from nove.models import ContentItem, ScoredItem, TrackMetadata
from nove.session import ListeningSession
from nove.tags import extract_tags

logger = logging.getLogger(__name__)

SERVICE_NAME = "nove.ListeningService"

_RECOMMENDATION_WARN_THRESHOLD_MS = 200


class ListeningServicer:
    """Implements ``nove.ListeningService``.

    Each method takes a ``Struct`` request and a gRPC context.  Invalid
    arguments set ``INVALID_ARGUMENT``, unknown tracks ``NOT_FOUND``, and
    any other failure is logged and reported as ``INTERNAL``; the response
    is then empty.

    Args:
        session: The listening session that owns the profile and cache.
        catalogue: The :class:`~nove.catalogue.TrackCatalogue` to rank.
    """

    def __init__(self, session: ListeningSession, catalogue: TrackCatalogue) -> None:
        self._session = session
        self._catalogue = catalogue

    # ------------------------------------------------------------------
    # Tags and feedback
    # ------------------------------------------------------------------

    def ExtractTags(self, request: struct_pb2.Struct, context: Any) -> struct_pb2.Struct:
        def handle(req: dict[str, Any]) -> dict[str, Any]:
            return {"tags": extract_tags(item_from_dict(req.get("track") or {}))}

        return self._guarded("ExtractTags", request, context, handle)

    def RecordInteraction(self, request: struct_pb2.Struct, context: Any) -> struct_pb2.Struct:
        """Record a like/dislike/save/play/skip/complete for a track.

        Request: ``item_id``, ``action``, optional ``tags`` (extracted from
        the catalogue track when omitted) and ``completion_ratio``.
        """

        def handle(req: dict[str, Any]) -> dict[str, Any]:
            item_id = _require(req, "item_id")
            tags = req.get("tags")
            if tags is None:
                tags = extract_tags(self._track(item_id))
            result = self._session.record_interaction(
                item_id, req.get("action", ""), list(tags), req.get("completion_ratio")
            )
            return {"ok": result.ok, "error": result.error or ""}

        return self._guarded("RecordInteraction", request, context, handle)

    def PlayStarted(self, request: struct_pb2.Struct, context: Any) -> struct_pb2.Struct:
        """Record a play on the profile and the cache-aware path."""

        def handle(req: dict[str, Any]) -> dict[str, Any]:
            future = self._session.play(self._track(_require(req, "item_id")))
            return {"caching": future is not None}

        return self._guarded("PlayStarted", request, context, handle)

    # ------------------------------------------------------------------
    # Ranked views
    # ------------------------------------------------------------------

    def GetRecommendations(self, request: struct_pb2.Struct, context: Any) -> struct_pb2.Struct:
        def handle(req: dict[str, Any]) -> dict[str, Any]:
            start_ms = time.monotonic() * 1000
            ranked = self._session.recommendations(
                self._catalogue.get_all_tracks(), _int(req, "limit", 20)
            )
            elapsed_ms = time.monotonic() * 1000 - start_ms
            if elapsed_ms > _RECOMMENDATION_WARN_THRESHOLD_MS:
                logger.warning("GetRecommendations took %.1fms", elapsed_ms)
            return {"items": [_scored_to_dict(s) for s in ranked]}

        return self._guarded("GetRecommendations", request, context, handle)

    def GetForYouMix(self, request: struct_pb2.Struct, context: Any) -> struct_pb2.Struct:
        def handle(req: dict[str, Any]) -> dict[str, Any]:
            items = self._session.for_you(self._catalogue.get_all_tracks(), _int(req, "limit", 10))
            return {"items": [_item_to_dict(i) for i in items]}

        return self._guarded("GetForYouMix", request, context, handle)

    def GetSimilarTracks(self, request: struct_pb2.Struct, context: Any) -> struct_pb2.Struct:
        def handle(req: dict[str, Any]) -> dict[str, Any]:
            target = self._track(_require(req, "item_id"))
            items = self._session.similar(
                target, self._catalogue.get_all_tracks(), _int(req, "limit", 5)
            )
            return {"items": [_item_to_dict(i) for i in items]}

        return self._guarded("GetSimilarTracks", request, context, handle)

    def GetTracksByMood(self, request: struct_pb2.Struct, context: Any) -> struct_pb2.Struct:
        def handle(req: dict[str, Any]) -> dict[str, Any]:
            items = self._session.by_mood(
                self._catalogue.get_all_tracks(), _require(req, "mood"), _int(req, "limit", 10)
            )
            return {"items": [_item_to_dict(i) for i in items]}

        return self._guarded("GetTracksByMood", request, context, handle)

    def GetTopInterests(self, request: struct_pb2.Struct, context: Any) -> struct_pb2.Struct:
        def handle(req: dict[str, Any]) -> dict[str, Any]:
            top = self._session.top_interests(_int(req, "n", 5))
            return {"interests": [{"tag": tag, "score": score} for tag, score in top]}

        return self._guarded("GetTopInterests", request, context, handle)

    # ------------------------------------------------------------------
    # Audio cache
    # ------------------------------------------------------------------

    def RecordPlay(self, request: struct_pb2.Struct, context: Any) -> struct_pb2.Struct:
        def handle(req: dict[str, Any]) -> dict[str, Any]:
            result = self._session.record_play(
                _require(req, "item_id"), req.get("source", ""), _metadata(req)
            )
            return {"should_cache": result.should_cache, "play_count": result.play_count}

        return self._guarded("RecordPlay", request, context, handle)

    def IsCached(self, request: struct_pb2.Struct, context: Any) -> struct_pb2.Struct:
        def handle(req: dict[str, Any]) -> dict[str, Any]:
            return {"cached": self._session.is_cached(_require(req, "item_id"))}

        return self._guarded("IsCached", request, context, handle)

    def GetCachedPayload(
        self, request: struct_pb2.Struct, context: Any
    ) -> wrappers_pb2.BytesValue:
        """Return the cached bytes, or ``NOT_FOUND`` if the item is not cached."""
        try:
            item_id = _require(json_format.MessageToDict(request), "item_id")
            entry = self._session.get_cached_payload(item_id)
        except ValueError as exc:
            context.set_code(grpc.StatusCode.INVALID_ARGUMENT)
            context.set_details(str(exc))
            return wrappers_pb2.BytesValue()
        except Exception:
            logger.exception("Unexpected error in GetCachedPayload")
            context.set_code(grpc.StatusCode.INTERNAL)
            context.set_details("Internal error in GetCachedPayload.")
            return wrappers_pb2.BytesValue()

        if entry is None:
            context.set_code(grpc.StatusCode.NOT_FOUND)
            context.set_details(f"{item_id!r} is not cached")
            return wrappers_pb2.BytesValue()
        return wrappers_pb2.BytesValue(value=entry.payload)

    def CachePayload(self, request: struct_pb2.Struct, context: Any) -> struct_pb2.Struct:
        def handle(req: dict[str, Any]) -> dict[str, Any]:
            ok = self._session.cache_payload(
                _require(req, "item_id"), _require(req, "source"), _metadata(req)
            )
            return {"ok": ok}

        return self._guarded("CachePayload", request, context, handle)

    def CacheStats(self, request: struct_pb2.Struct, context: Any) -> struct_pb2.Struct:
        def handle(req: dict[str, Any]) -> dict[str, Any]:
            stats = self._session.cache_stats()
            return {
                "count": stats.count,
                "total_size_mb": stats.total_size_mb,
                "items": [
                    {"title": i.title, "performer": i.performer, "size_mb": i.size_mb}
                    for i in stats.items
                ],
            }

        return self._guarded("CacheStats", request, context, handle)

    def ClearCache(self, request: struct_pb2.Struct, context: Any) -> struct_pb2.Struct:
        def handle(req: dict[str, Any]) -> dict[str, Any]:
            self._session.clear_cache()
            return {}

        return self._guarded("ClearCache", request, context, handle)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _track(self, item_id: str) -> ContentItem:
        item = self._catalogue.get_track(item_id)
        if item is None:
            raise LookupError(f"unknown track {item_id!r}")
        return item

    def _guarded(
        self,
        name: str,
        request: struct_pb2.Struct,
        context: Any,
        handle: Callable[[dict[str, Any]], dict[str, Any]],
    ) -> struct_pb2.Struct:
        try:
            body = handle(json_format.MessageToDict(request))
        except ValueError as exc:
            context.set_code(grpc.StatusCode.INVALID_ARGUMENT)
            context.set_details(str(exc))
            return struct_pb2.Struct()
        except LookupError as exc:
            context.set_code(grpc.StatusCode.NOT_FOUND)
            context.set_details(str(exc))
            return struct_pb2.Struct()
        except Exception:
            logger.exception("Unexpected error in %s", name)
            context.set_code(grpc.StatusCode.INTERNAL)
            context.set_details(f"Internal error in {name}.")
            return struct_pb2.Struct()
        return _to_struct(body)


_METHODS = (
    "ExtractTags",
    "RecordInteraction",
    "PlayStarted",
    "GetRecommendations",
    "GetForYouMix",
    "GetSimilarTracks",
    "GetTracksByMood",
    "GetTopInterests",
    "RecordPlay",
    "IsCached",
    "GetCachedPayload",
    "CachePayload",
    "CacheStats",
    "ClearCache",
)


def add_ListeningServicer_to_server(servicer: ListeningServicer, server: grpc.Server) -> None:
    """Register every servicer method as a unary-unary RPC on *server*."""
    handlers = {
        name: grpc.unary_unary_rpc_method_handler(
            getattr(servicer, name),
            request_deserializer=struct_pb2.Struct.FromString,
            response_serializer=lambda message: message.SerializeToString(),
        )
        for name in _METHODS
    }
    server.add_generic_rpc_handlers(
        (grpc.method_handlers_generic_handler(SERVICE_NAME, handlers),)
    )


# ---------------------------------------------------------------------------
# Message helpers
# ---------------------------------------------------------------------------


def _to_struct(body: dict[str, Any]) -> struct_pb2.Struct:
    message = struct_pb2.Struct()
    message.update(body)
    return message


def _require(req: dict[str, Any], key: str) -> str:
    value = req.get(key)
    if not value:
        raise ValueError(f"{key} must be non-empty")
    return str(value)


def _int(req: dict[str, Any], key: str, default: int) -> int:
    # Struct numbers arrive as floats.
    return int(req.get(key, default))


def _metadata(req: dict[str, Any]) -> TrackMetadata:
    return TrackMetadata(title=req.get("title", ""), performer=req.get("performer", ""))


def _item_to_dict(item: ContentItem) -> dict[str, Any]:
    return {
        "item_id": item.item_id,
        "title": item.title,
        "performer": item.performer,
        "genre": item.genre,
        "duration": item.duration,
        "source": item.source,
    }


def _scored_to_dict(scored: ScoredItem) -> dict[str, Any]:
    body = _item_to_dict(scored.item)
    body.update(
        {
            "score": scored.score,
            "matched_tags": list(scored.matched_tags),
            "is_discovery": scored.is_discovery,
        }
    )
    return body
