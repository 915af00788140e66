"""
YouTube reference helpers
"""
import re
from typing import Optional
from urllib.parse import quote_plus


_VIDEO_ID_PATTERNS = [
    re.compile(r"(?:youtube\.com/watch\?(?:.*&)?v=|youtu\.be/|youtube\.com/embed/)([^&\n?#]+)"),
    re.compile(r"^([a-zA-Z0-9_-]{11})$"),
]


def extract_video_id(url: str) -> Optional[str]:
    """Pull the video id out of a watch, short or embed URL, or accept a bare id"""
    text = (url or "").strip()
    if not text:
        return None
    for pattern in _VIDEO_ID_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(1)
    return None


def build_watch_url(video_id: str) -> str:
    return f"https://www.youtube.com/watch?v={video_id}"


def build_embed_url(video_id: str) -> str:
    return (
        f"https://www.youtube.com/embed/{video_id}"
        "?autoplay=1&controls=1&rel=0&modestbranding=1&showinfo=0"
    )


def build_search_url(text: str) -> str:
    """Search-results URL used when no direct video link is known"""
    return f"https://www.youtube.com/results?search_query={quote_plus((text or '').strip())}"
