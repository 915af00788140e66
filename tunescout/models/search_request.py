"""
Search Request Model
Typed search input and the internal three-tier outcome
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class SearchKind(Enum):
    """Search mode; values are the upstream `type` parameter"""
    SONG = "song"
    ARTIST = "artist"
    CATEGORY = "category"
    GENRE = "genre"
    PLAYLIST = "playlist"
    SONG_LINK = "songUrl"
    ARTIST_LINK = "artistUrl"

    @classmethod
    def parse(cls, value) -> "SearchKind":
        if isinstance(value, cls):
            return value
        text = str(value or "").strip()
        aliases = {
            "song-link": cls.SONG_LINK,
            "song_link": cls.SONG_LINK,
            "artist-link": cls.ARTIST_LINK,
            "artist_link": cls.ARTIST_LINK,
        }
        if text.lower() in aliases:
            return aliases[text.lower()]
        for kind in cls:
            if kind.value.lower() == text.lower():
                return kind
        raise ValueError(f"Unknown search kind: {value!r}")

    @property
    def uses_genre(self) -> bool:
        return self in (SearchKind.CATEGORY, SearchKind.GENRE)

    @property
    def is_link(self) -> bool:
        return self in (SearchKind.SONG_LINK, SearchKind.ARTIST_LINK)

    @property
    def is_artist(self) -> bool:
        return self in (SearchKind.ARTIST, SearchKind.ARTIST_LINK)


@dataclass(frozen=True)
class SearchRequest:
    """What the caller wants to search for"""
    query: str
    kind: SearchKind = SearchKind.SONG
    genre: Optional[str] = None
    # Let the fallback catalog also match the query against track genres.
    match_genre: bool = False

    @property
    def genre_qualifier(self) -> str:
        """Genre used for URL construction; the query stands in when no genre was given"""
        return (self.genre or "").strip() or (self.query or "").strip()

    def is_well_formed(self) -> bool:
        if self.kind.uses_genre:
            return bool(self.genre_qualifier)
        return bool((self.query or "").strip())


class OutcomeStatus(Enum):
    LIVE = "live"
    DEGRADED = "degraded"
    EMPTY = "empty"


@dataclass
class SearchOutcome:
    """
    Result of one pipeline run.

    LIVE carries extracted upstream records, DEGRADED carries fallback catalog
    records plus the reason live data was unavailable, EMPTY carries nothing.
    """
    status: OutcomeStatus
    records: List = field(default_factory=list)
    reason: str = ""

    @classmethod
    def live(cls, records: List) -> "SearchOutcome":
        return cls(OutcomeStatus.LIVE, list(records))

    @classmethod
    def degraded(cls, records: List, reason: str) -> "SearchOutcome":
        if not records:
            return cls.empty(reason)
        return cls(OutcomeStatus.DEGRADED, list(records), reason)

    @classmethod
    def empty(cls, reason: str = "") -> "SearchOutcome":
        return cls(OutcomeStatus.EMPTY, [], reason)

    @property
    def is_live(self) -> bool:
        return self.status is OutcomeStatus.LIVE
