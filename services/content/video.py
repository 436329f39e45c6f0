"""YouTube reference helpers for lessons.

Lessons store whatever link the instructor pasted; the classroom needs the
bare video id to build an embeddable player URL.
"""

import re
from urllib.parse import parse_qs, urlparse

EMBED_BASE = "https://www.youtube.com/embed/"
_ID = re.compile(r"^[A-Za-z0-9_-]{11}$")
_HOSTS = {"youtube.com", "www.youtube.com", "m.youtube.com", "music.youtube.com", "youtube-nocookie.com", "www.youtube-nocookie.com"}


def youtube_video_id(ref: str | None) -> str | None:
    """Extract the 11-character video id from a YouTube URL or bare id.

    Accepts `watch?v=`, `youtu.be/<id>`, `/embed/<id>`, `/shorts/<id>` and
    `/live/<id>` shapes. Returns None for anything else.
    """
    if not ref:
        return None
    ref = ref.strip()
    if _ID.match(ref):
        return ref
    parsed = urlparse(ref if "//" in ref else f"https://{ref}")
    host = (parsed.hostname or "").lower()
    candidate = None
    if host == "youtu.be":
        candidate = parsed.path.lstrip("/").split("/")[0]
    elif host in _HOSTS:
        if parsed.path == "/watch":
            candidate = (parse_qs(parsed.query).get("v") or [None])[0]
        else:
            parts = [p for p in parsed.path.split("/") if p]
            if len(parts) >= 2 and parts[0] in ("embed", "shorts", "live", "v"):
                candidate = parts[1]
    if candidate and _ID.match(candidate):
        return candidate
    return None


def embed_url(ref: str | None) -> str | None:
    video_id = youtube_video_id(ref)
    return f"{EMBED_BASE}{video_id}" if video_id else None
