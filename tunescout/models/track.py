"""
Track Models
Records surfaced by the search pipeline
"""
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Optional

from ..utils.youtube import build_embed_url


class RecordShape(Enum):
    """Kind of record an extraction or catalog lookup produces"""
    TRACK = "track"
    SUGGESTION = "suggestion"


@dataclass(frozen=True)
class Track:
    """Playable track from a result set"""
    id: str
    title: str
    artist: str
    source_url: str
    video_url: str = ""
    video_id: str = ""
    genre: Optional[str] = None
    mood: Optional[str] = None
    bpm: Optional[int] = None
    duration: Optional[str] = None

    @property
    def embed_url(self) -> str:
        """Embed URL for the video, empty when only a search reference is known"""
        if not self.video_id:
            return ""
        return build_embed_url(self.video_id)

    def to_dict(self) -> dict:
        payload = asdict(self)
        payload["embed_url"] = self.embed_url
        return payload


@dataclass(frozen=True)
class Suggestion:
    """Autocomplete entry"""
    value: str
    label: str
    kind: str = ""

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class MusicSuggestion:
    """Record in the music-search service envelope"""
    id: str
    title: str
    artist: str
    genre: Optional[str] = None
    mood: Optional[str] = None
    bpm: Optional[int] = None
    duration: Optional[str] = None
    preview_url: Optional[str] = None

    @classmethod
    def from_track(cls, track: Track) -> "MusicSuggestion":
        return cls(
            id=track.id,
            title=track.title,
            artist=track.artist,
            genre=track.genre,
            mood=track.mood,
            bpm=track.bpm,
            duration=track.duration,
            preview_url=track.video_url or None,
        )

    def to_dict(self) -> dict:
        # Optional fields are omitted rather than sent as null.
        return {k: v for k, v in asdict(self).items() if v is not None}
