"""
Search Orchestrator
Drives relay delivery, record extraction and catalog fallback for one search
"""
from __future__ import annotations

import re
import threading
import time
from collections import OrderedDict
from typing import List, Optional, Tuple
from urllib.parse import quote

from ..models.search_request import OutcomeStatus, SearchKind, SearchOutcome, SearchRequest
from ..models.track import RecordShape, Suggestion, Track
from ..sources.fallback_catalog import FallbackCatalog
from ..sources.record_extractor import RecordExtractor
from ..utils.coerce import to_float, to_int
from .event_bus import EventBus, Events
from .relay_router import RelayExhaustedError, RelayRouter


PLAYLIST_GENERATOR_URL = "https://www.chosic.com/playlist-generator/"


class SearchCache:
    """LRU cache for live search outcomes"""

    def __init__(self, max_size=100, ttl_seconds=300):
        self.max_size = max_size
        self.ttl_seconds = ttl_seconds
        self._cache: OrderedDict = OrderedDict()
        self._lock = threading.RLock()

    def get(self, key: Tuple) -> Optional[SearchOutcome]:
        """Get cached outcome if still valid"""
        with self._lock:
            if key in self._cache:
                timestamp, outcome = self._cache[key]
                if time.time() - timestamp < self.ttl_seconds:
                    # Move to end (LRU)
                    self._cache.move_to_end(key)
                    return outcome
                del self._cache[key]
            return None

    def set(self, key: Tuple, outcome: SearchOutcome):
        with self._lock:
            self._cache[key] = (time.time(), outcome)
            self._cache.move_to_end(key)

            # Evict oldest if over size
            while len(self._cache) > self.max_size:
                self._cache.popitem(last=False)

    def clear(self):
        with self._lock:
            self._cache.clear()


class SearchOrchestrator:
    """
    Entry point for search and autocomplete.

    Delivery and format failures never reach the caller: they are turned into
    a fallback catalog lookup and reported through SearchOutcome.reason,
    `last_error` and the event bus.
    """

    def __init__(
        self,
        router: RelayRouter,
        extractor: Optional[RecordExtractor] = None,
        catalog: Optional[FallbackCatalog] = None,
        settings=None,
        event_bus: Optional[EventBus] = None,
    ):
        self.router = router
        self.extractor = extractor or RecordExtractor()
        self.catalog = catalog or FallbackCatalog()
        self.settings = settings
        self.event_bus = event_bus or EventBus()
        self.last_error = ""
        self._cache = SearchCache()
        self.reload_from_settings()

    def reload_from_settings(self):
        self.base_url = PLAYLIST_GENERATOR_URL
        self.max_tracks = 50
        self.suggest_min_chars = 2
        if self.settings is not None:
            self.base_url = str(self.settings.get("playlist_generator_url", PLAYLIST_GENERATOR_URL) or PLAYLIST_GENERATOR_URL)
            self.max_tracks = max(0, to_int(self.settings.get("search_max_tracks", 50), 50))
            self.suggest_min_chars = max(1, to_int(self.settings.get("suggest_min_chars", 2), 2))
            self._cache.ttl_seconds = max(0.0, to_float(self.settings.get("search_cache_ttl_seconds", 300.0), 300.0))
            self._cache.max_size = max(1, to_int(self.settings.get("search_cache_size", 100), 100))
        self._cache.clear()

    # URL construction

    def build_search_url(self, request: SearchRequest) -> str:
        if request.kind.uses_genre:
            return f"{self.base_url}?genre={quote(request.genre_qualifier, safe='')}"
        return f"{self.base_url}?q={quote(self._query_text(request.query, request.kind), safe='')}&type={request.kind.value}"

    def build_suggest_url(self, query_prefix: str, kind: SearchKind) -> str:
        return f"{self.base_url}?q={quote(self._query_text(query_prefix, kind), safe='')}&type={kind.value}"

    def _query_text(self, text: str, kind: SearchKind) -> str:
        # Links go through untouched; search terms get whitespace collapsed.
        if kind.is_link:
            return text or ""
        return re.sub(r"\s+", " ", text or "").strip()

    # Search

    def search(self, request: SearchRequest, limit: Optional[int] = None) -> List[Track]:
        """
        Return tracks for the request.

        Delivery and format failures never raise. `limit` must be at least 1
        when given; without it the `search_max_tracks` setting applies, where
        0 means uncapped.
        """
        return self.search_outcome(request, limit=limit).records

    def search_outcome(self, request: SearchRequest, limit: Optional[int] = None) -> SearchOutcome:
        if limit is not None and int(limit) < 1:
            raise ValueError(f"limit must be at least 1, got {limit!r}")
        try:
            outcome = self._run_search(request)
        except Exception as e:
            print(f"Search pipeline error: {e}")
            query = getattr(request, "query", "") or ""
            outcome = SearchOutcome.degraded(
                self.catalog.lookup(query, RecordShape.TRACK, match_genre=getattr(request, "match_genre", False)),
                f"pipeline error: {e}",
            )
        cap = self.max_tracks if limit is None else int(limit)
        if cap > 0 and len(outcome.records) > cap:
            outcome = SearchOutcome(outcome.status, outcome.records[:cap], outcome.reason)
        self._report(Events.SEARCH_COMPLETED, outcome, kind=getattr(getattr(request, "kind", None), "value", ""))
        return outcome

    def _run_search(self, request: SearchRequest) -> SearchOutcome:
        if not isinstance(request, SearchRequest) or not request.is_well_formed():
            return SearchOutcome.empty("malformed request: missing query or genre")

        key = ("search", request.kind.value, self._query_text(request.query, request.kind).lower(), request.genre_qualifier.lower())
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        url = self.build_search_url(request)
        self.event_bus.emit(Events.SEARCH_STARTED, {"query": request.query, "kind": request.kind.value, "url": url})
        records, reason = self._acquire(url, RecordShape.TRACK, kind=request.kind)
        if records:
            outcome = SearchOutcome.live(records)
            self._cache.set(key, outcome)
            return outcome
        return SearchOutcome.degraded(
            self._fallback_tracks(request),
            reason,
        )

    def _fallback_tracks(self, request: SearchRequest) -> List[Track]:
        if request.kind.uses_genre:
            return self.catalog.lookup(request.genre_qualifier, RecordShape.TRACK, request.kind, match_genre=True)
        return self.catalog.lookup(request.query, RecordShape.TRACK, request.kind, match_genre=request.match_genre)

    # Suggestions

    def suggest(self, query_prefix: str, kind=SearchKind.SONG) -> List[Suggestion]:
        """Return autocomplete suggestions; never raises"""
        return self.suggest_outcome(query_prefix, kind).records

    def suggest_outcome(self, query_prefix: str, kind=SearchKind.SONG) -> SearchOutcome:
        try:
            outcome = self._run_suggest(query_prefix, kind)
        except Exception as e:
            print(f"Suggestion pipeline error: {e}")
            outcome = SearchOutcome.empty(f"pipeline error: {e}")
        self._report(Events.SUGGEST_COMPLETED, outcome, kind=getattr(kind, "value", str(kind or "")))
        return outcome

    def _run_suggest(self, query_prefix: str, kind) -> SearchOutcome:
        text = (query_prefix or "").strip()
        if len(text) < self.suggest_min_chars:
            return SearchOutcome.empty("query too short")
        try:
            kind = SearchKind.parse(kind)
        except ValueError as e:
            return SearchOutcome.empty(f"malformed request: {e}")

        key = ("suggest", kind.value, text.lower())
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        url = self.build_suggest_url(text, kind)
        records, reason = self._acquire(url, RecordShape.SUGGESTION, kind=kind)
        if records:
            outcome = SearchOutcome.live(records)
            self._cache.set(key, outcome)
            return outcome
        return SearchOutcome.degraded(
            self.catalog.lookup(text, RecordShape.SUGGESTION, kind),
            reason,
        )

    # Pipeline

    def _acquire(self, url: str, shape: RecordShape, kind: SearchKind) -> Tuple[list, str]:
        """Deliver and extract; returns (records, reason records are missing)"""
        try:
            response = self.router.deliver(url)
        except RelayExhaustedError as e:
            return [], f"delivery failed: {e}"
        except Exception as e:
            print(f"Relay delivery error for {url}: {e}")
            return [], f"delivery failed: {e}"

        records = self.extractor.extract(response.text, shape, source_url=url, kind=kind.value)
        if not records:
            return [], "no extraction strategy matched"
        return records, ""

    def _report(self, event_type: str, outcome: SearchOutcome, kind: str = ""):
        self.last_error = "" if outcome.is_live else outcome.reason
        if outcome.status is OutcomeStatus.DEGRADED:
            self.event_bus.emit(Events.SEARCH_DEGRADED, {"reason": outcome.reason, "status": outcome.status.value})
        self.event_bus.emit(event_type, {
            "status": outcome.status.value,
            "reason": outcome.reason,
            "count": len(outcome.records),
            "kind": kind,
        })

    def clear_cache(self):
        self._cache.clear()
