"""
Fallback Catalog
Static last-resort tracks and suggestions used when live data is unavailable
"""
from typing import List, Optional

from ..models.search_request import SearchKind
from ..models.track import RecordShape, Suggestion, Track
from ..utils.youtube import build_watch_url


# (title, artist, video id, genre)
_CATALOG_TRACKS = [
    ("Bohemian Rhapsody", "Queen", "fJ9rUzIMcZQ", "rock"),
    ("Imagine", "John Lennon", "YkgkThdzX-8", "pop"),
    ("Hotel California", "Eagles", "BciS5krYL80", "rock"),
    ("Stairway to Heaven", "Led Zeppelin", "QkF3oxziUI4", "rock"),
    ("Sweet Child O Mine", "Guns N Roses", "1w7OgIMMRc4", "rock"),
    ("Yesterday", "The Beatles", "NrgmdOz227I", "pop"),
    ("Smells Like Teen Spirit", "Nirvana", "hTWKbfoikeg", "grunge"),
    ("Billie Jean", "Michael Jackson", "Zi_XLOBDo_Y", "pop"),
    ("Like a Rolling Stone", "Bob Dylan", "IwOfCgkyEj0", "folk"),
    ("Purple Haze", "Jimi Hendrix", "WGoDaYjdfSg", "rock"),
]

_CATALOG_ARTISTS = [
    "The Beatles",
    "Queen",
    "Led Zeppelin",
    "Pink Floyd",
    "The Rolling Stones",
    "Michael Jackson",
    "Nirvana",
    "Bob Dylan",
    "Jimi Hendrix",
    "Elvis Presley",
]


class FallbackCatalog:
    """In-memory catalog filtered by case-insensitive substring match"""

    MAX_TRACKS = 10
    MAX_SUGGESTIONS = 8

    def __init__(self):
        self._tracks = [
            Track(
                id=str(index),
                title=title,
                artist=artist,
                source_url=build_watch_url(video_id),
                video_url=build_watch_url(video_id),
                video_id=video_id,
                genre=genre,
            )
            for index, (title, artist, video_id, genre) in enumerate(_CATALOG_TRACKS, start=1)
        ]
        self._artist_suggestions = [
            Suggestion(value=name, label=name, kind=SearchKind.ARTIST.value)
            for name in _CATALOG_ARTISTS
        ]
        self._song_suggestions = [
            Suggestion(value=title, label=f"{title} - {artist}", kind=SearchKind.SONG.value)
            for title, artist, _, _ in _CATALOG_TRACKS
        ]

    @property
    def tracks(self) -> List[Track]:
        return list(self._tracks)

    def lookup(self, query_text: str, shape: RecordShape, kind: Optional[SearchKind] = None, match_genre: bool = False) -> list:
        """
        Return catalog records matching query_text.

        Tracks never come back empty: with no match (or no query) the whole
        catalog is returned as a default playlist. Suggestions come back empty
        in the same situation. With match_genre, tracks whose genre contains
        the text match as well.
        """
        needle = (query_text or "").strip().lower()
        if shape is RecordShape.SUGGESTION:
            if not needle:
                return []
            matches = [
                s for s in self._suggestions_for(kind)
                if needle in s.value.lower() or needle in s.label.lower()
            ]
            return matches[:self.MAX_SUGGESTIONS]

        matches = [
            t for t in self._tracks
            if needle in t.title.lower()
            or needle in t.artist.lower()
            or (match_genre and needle in (t.genre or "").lower())
        ] if needle else []
        if not matches:
            # TODO: product review on whether tracks should also return empty here.
            matches = list(self._tracks)
        return matches[:self.MAX_TRACKS]

    def _suggestions_for(self, kind: Optional[SearchKind]) -> List[Suggestion]:
        if kind in (SearchKind.SONG, SearchKind.SONG_LINK):
            return self._song_suggestions
        return self._artist_suggestions
