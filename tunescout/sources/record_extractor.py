"""
Record Extractor
Heuristic extraction of tracks and suggestions from playlist-generator markup
"""
from __future__ import annotations

import copy
import json
import re
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from bs4 import BeautifulSoup

from ..models.track import RecordShape, Suggestion, Track
from ..utils.youtube import build_search_url, build_watch_url, extract_video_id


class StrategyKind(Enum):
    SELECTOR = "selector"
    PATTERN = "pattern"
    JSON_ENVELOPE = "json-envelope"


@dataclass(frozen=True)
class ExtractionStrategy:
    """One known page layout: where records live and how fields map out of them"""
    name: str
    kind: StrategyKind
    container: str = ""
    fields: Dict[str, str] = field(default_factory=dict, hash=False, compare=False)


_TRACK_FIELDS = {
    "title": ".song-title, .title, h3, h4",
    "artist": ".artist-name, .artist, .by",
    "video": 'a[href*="youtube.com"], a[href*="youtu.be"]',
}

TRACK_STRATEGIES: Tuple[ExtractionStrategy, ...] = (
    ExtractionStrategy("pl-item", StrategyKind.SELECTOR, ".pl-item", _TRACK_FIELDS),
    ExtractionStrategy("playlist-item", StrategyKind.SELECTOR, ".playlist-item", _TRACK_FIELDS),
    ExtractionStrategy("song-item", StrategyKind.SELECTOR, ".song-item", _TRACK_FIELDS),
    ExtractionStrategy("track-item", StrategyKind.SELECTOR, ".track-item", _TRACK_FIELDS),
    ExtractionStrategy("data-song", StrategyKind.SELECTOR, "[data-song]", _TRACK_FIELDS),
    ExtractionStrategy("pl-item-text", StrategyKind.PATTERN, "pl-item", {
        "title": "song-title",
        "artist": "artist-name",
    }),
    ExtractionStrategy("service-envelope", StrategyKind.JSON_ENVELOPE, "suggestions"),
)

_SUGGESTION_FIELDS = {
    "title": ".song-title, .title",
    "artist": ".artist-name, .artist",
}

SUGGESTION_STRATEGIES: Tuple[ExtractionStrategy, ...] = (
    ExtractionStrategy("form-suggestions-span-class", StrategyKind.SELECTOR, "#form-suggestions .span-class", _SUGGESTION_FIELDS),
    ExtractionStrategy("form-suggestions-span", StrategyKind.SELECTOR, "#form-suggestions span", _SUGGESTION_FIELDS),
    ExtractionStrategy("span-class", StrategyKind.SELECTOR, ".span-class", _SUGGESTION_FIELDS),
    ExtractionStrategy("suggestion-item", StrategyKind.SELECTOR, ".suggestion-item", _SUGGESTION_FIELDS),
    ExtractionStrategy("service-envelope", StrategyKind.JSON_ENVELOPE, "suggestions"),
)

_GENRE_RE = re.compile(r"genre[:\s]*([^<\n,]+)", re.IGNORECASE)
_MOOD_RE = re.compile(r"mood[:\s]*([^<\n,]+)", re.IGNORECASE)
_BPM_RE = re.compile(r"(\d+)\s*bpm", re.IGNORECASE)
_DURATION_RE = re.compile(r"\b(\d{1,2}:\d{2})\b")
_TAG_RE = re.compile(r"<[^>]*>")


def _clean(text) -> str:
    return re.sub(r"\s+", " ", str(text or "")).strip()


def _enrichment(text: str) -> dict:
    """Optional genre/mood/bpm/duration details mentioned in an item's text"""
    out = {}
    genre = _GENRE_RE.search(text)
    if genre and _clean(genre.group(1)):
        out["genre"] = _clean(genre.group(1))
    mood = _MOOD_RE.search(text)
    if mood and _clean(mood.group(1)):
        out["mood"] = _clean(mood.group(1))
    bpm = _BPM_RE.search(text)
    if bpm:
        out["bpm"] = int(bpm.group(1))
    duration = _DURATION_RE.search(text)
    if duration:
        out["duration"] = duration.group(1)
    return out


class RecordExtractor:
    """
    Tries each strategy for the requested shape in order and returns the
    records of the first one that yields anything. Later strategies are never
    consulted once one has matched.
    """

    MAX_SUGGESTIONS = 8

    def __init__(self, track_strategies=None, suggestion_strategies=None):
        self.strategies = {
            RecordShape.TRACK: tuple(track_strategies or TRACK_STRATEGIES),
            RecordShape.SUGGESTION: tuple(suggestion_strategies or SUGGESTION_STRATEGIES),
        }
        self._runners: Dict[Tuple[StrategyKind, RecordShape], Callable] = {
            (StrategyKind.SELECTOR, RecordShape.TRACK): self._select_tracks,
            (StrategyKind.SELECTOR, RecordShape.SUGGESTION): self._select_suggestions,
            (StrategyKind.PATTERN, RecordShape.TRACK): self._match_tracks,
            (StrategyKind.JSON_ENVELOPE, RecordShape.TRACK): self._envelope_tracks,
            (StrategyKind.JSON_ENVELOPE, RecordShape.SUGGESTION): self._envelope_suggestions,
        }
        self.last_strategy_used = ""

    def extract(self, raw_markup, shape: RecordShape, source_url: str = "", kind: str = "") -> list:
        """
        Extract records of the given shape from raw markup.

        Args:
            raw_markup: HTML (or JSON envelope) as str or bytes
            shape: RecordShape.TRACK or RecordShape.SUGGESTION
            source_url: Page the markup came from, stamped on tracks
            kind: Search kind stamped on suggestions

        Returns:
            List of Track or Suggestion; empty when nothing matched
        """
        self.last_strategy_used = ""
        markup = self._decode(raw_markup)
        if not markup.strip():
            return []

        try:
            soup = BeautifulSoup(markup, "html.parser")
        except Exception as e:
            print(f"Markup parsing error: {e}")
            return []

        ctx = {"markup": markup, "soup": soup, "source_url": source_url, "kind": kind}
        for strategy in self.strategies.get(shape, ()):
            runner = self._runners.get((strategy.kind, shape))
            if runner is None:
                continue
            try:
                records = runner(strategy, ctx)
            except Exception as e:
                print(f"Extraction strategy {strategy.name} failed: {e}")
                continue
            if records:
                self.last_strategy_used = strategy.name
                if shape is RecordShape.SUGGESTION:
                    return records[:self.MAX_SUGGESTIONS]
                return records
        return []

    def _decode(self, raw_markup) -> str:
        if raw_markup is None:
            return ""
        if isinstance(raw_markup, (bytes, bytearray)):
            return bytes(raw_markup).decode("utf-8", errors="ignore")
        return str(raw_markup)

    # Track strategies

    def _select_tracks(self, strategy: ExtractionStrategy, ctx: dict) -> List[Track]:
        tracks = []
        for index, item in enumerate(ctx["soup"].select(strategy.container)):
            title_node = item.select_one(strategy.fields["title"])
            artist_node = item.select_one(strategy.fields["artist"])
            if not title_node or not artist_node:
                continue
            title = _clean(title_node.get_text(" ", strip=True))
            artist = _clean(artist_node.get_text(" ", strip=True))
            link_node = item.select_one(strategy.fields["video"])
            video_url = (link_node.get("href") or "").strip() if link_node else ""
            if not video_url:
                video_id = (item.get("data-video-id") or "").strip()
                if video_id:
                    video_url = build_watch_url(video_id)
            track = self._build_track(
                index=index,
                title=title,
                artist=artist,
                video_url=video_url,
                source_url=ctx["source_url"],
                extra=_enrichment(item.get_text("\n", strip=True)),
            )
            if track:
                tracks.append(track)
        return tracks

    def _match_tracks(self, strategy: ExtractionStrategy, ctx: dict) -> List[Track]:
        # Works on raw text so markup embedded in script strings is still reachable.
        text = ctx["markup"].replace('\\"', '"').replace("\\/", "/")
        opener = re.compile(
            r"<(\w+)[^>]*class=[\"'][^\"']*\b%s\b[^\"']*[\"'][^>]*>" % re.escape(strategy.container),
            re.IGNORECASE,
        )
        starts = [m.start() for m in opener.finditer(text)]
        title_re = self._field_pattern(strategy.fields["title"])
        artist_re = self._field_pattern(strategy.fields["artist"])
        link_re = re.compile(r"href=[\"']([^\"']*(?:youtube\.com|youtu\.be)[^\"']*)[\"']", re.IGNORECASE)

        tracks = []
        for index, start in enumerate(starts):
            end = starts[index + 1] if index + 1 < len(starts) else len(text)
            block = text[start:end]
            title_match = title_re.search(block)
            artist_match = artist_re.search(block)
            if not title_match or not artist_match:
                continue
            link_match = link_re.search(block)
            track = self._build_track(
                index=index,
                title=_clean(_TAG_RE.sub("", title_match.group(2))),
                artist=_clean(_TAG_RE.sub("", artist_match.group(2))),
                video_url=link_match.group(1) if link_match else "",
                source_url=ctx["source_url"],
                extra=_enrichment(_TAG_RE.sub("\n", block)),
            )
            if track:
                tracks.append(track)
        return tracks

    def _field_pattern(self, class_name: str):
        return re.compile(
            r"<(\w+)[^>]*class=[\"'][^\"']*\b%s\b[^\"']*[\"'][^>]*>(.*?)</\1\s*>" % re.escape(class_name),
            re.IGNORECASE | re.DOTALL,
        )

    def _envelope_tracks(self, strategy: ExtractionStrategy, ctx: dict) -> List[Track]:
        tracks = []
        for index, row in enumerate(self._envelope_rows(strategy, ctx["markup"])):
            preview = str(row.get("preview_url") or row.get("youtubeUrl") or "").strip()
            bpm = row.get("bpm")
            try:
                bpm = int(bpm) if bpm is not None else None
            except (TypeError, ValueError):
                bpm = None
            extra = {
                "genre": row.get("genre") or None,
                "mood": row.get("mood") or None,
                "bpm": bpm,
                "duration": row.get("duration") or None,
            }
            track = self._build_track(
                index=index,
                title=_clean(row.get("title")),
                artist=_clean(row.get("artist")),
                video_url=preview if extract_video_id(preview) else "",
                source_url=ctx["source_url"],
                extra={k: v for k, v in extra.items() if v is not None},
            )
            if track:
                tracks.append(track)
        return tracks

    def _build_track(self, index: int, title: str, artist: str, video_url: str, source_url: str, extra: dict) -> Optional[Track]:
        if not title or not artist:
            return None
        video_id = extract_video_id(video_url) if video_url else None
        if not video_url:
            video_url = build_search_url(f"{title} {artist}")
        return Track(
            id=f"{index}-{video_id or int(time.time() * 1000)}",
            title=title,
            artist=artist,
            source_url=source_url,
            video_url=video_url,
            video_id=video_id or "",
            **extra,
        )

    # Suggestion strategies

    def _select_suggestions(self, strategy: ExtractionStrategy, ctx: dict) -> List[Suggestion]:
        suggestions = []
        elements = ctx["soup"].select(strategy.container)
        matched = {id(element) for element in elements}
        for element in elements:
            # Nested matches (an artist span inside a suggestion span) belong to their outer element.
            if any(id(parent) in matched for parent in element.parents):
                continue
            artist_node = element.select_one(strategy.fields["artist"])
            title_node = element.select_one(strategy.fields["title"])
            artist = _clean(element.get("data-artist") or (artist_node.get_text(" ", strip=True) if artist_node else ""))
            value = _clean(element.get("data-value") or "")
            if not value and title_node:
                value = _clean(title_node.get_text(" ", strip=True))
            if not value:
                stripped = element
                if artist_node:
                    stripped = copy.copy(element)
                    for node in stripped.select(strategy.fields["artist"]):
                        node.decompose()
                value = _clean(stripped.get_text(" ", strip=True)).strip(" -")
            suggestion = self._build_suggestion(value, artist, ctx["kind"])
            if suggestion:
                suggestions.append(suggestion)
        return suggestions

    def _envelope_suggestions(self, strategy: ExtractionStrategy, ctx: dict) -> List[Suggestion]:
        suggestions = []
        for row in self._envelope_rows(strategy, ctx["markup"]):
            value = _clean(row.get("value") or row.get("title"))
            label = _clean(row.get("label"))
            if label and value:
                suggestions.append(Suggestion(value=value, label=label, kind=ctx["kind"]))
                continue
            suggestion = self._build_suggestion(value, _clean(row.get("artist")), ctx["kind"])
            if suggestion:
                suggestions.append(suggestion)
        return suggestions

    def _build_suggestion(self, value: str, artist: str, kind: str) -> Optional[Suggestion]:
        if not value:
            return None
        label = f"{value} - {artist}" if artist and artist.lower() not in value.lower() else value
        return Suggestion(value=value, label=label, kind=kind)

    def _envelope_rows(self, strategy: ExtractionStrategy, markup: str) -> List[dict]:
        text = markup.strip()
        if not text.startswith("{"):
            return []
        try:
            payload = json.loads(text)
        except ValueError:
            return []
        rows = payload.get(strategy.container) if isinstance(payload, dict) else None
        if not isinstance(rows, list):
            return []
        return [row for row in rows if isinstance(row, dict)]
