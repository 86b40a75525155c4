"""Resolve a YouTube video id from the URL a user registers."""

import re
from urllib.parse import parse_qs, urlparse

from music_pulse.pulse.errors import InvalidTrackUrlError

_VIDEO_ID_RE = re.compile(r"^[A-Za-z0-9_-]{11}$")

_WATCH_HOSTS = {"youtube.com", "www.youtube.com", "m.youtube.com", "music.youtube.com"}
_SHORT_HOSTS = {"youtu.be", "www.youtu.be"}
_PATH_PREFIXES = ("shorts", "embed", "live", "v")


def extract_video_id(url: str) -> str:
    """
    Return the 11-character video id referenced by ``url``.

    Accepts watch URLs, youtu.be short links, /shorts/, /embed/, /live/
    paths and bare ids.

    Raises:
        InvalidTrackUrlError: If no video id can be resolved
    """
    candidate = (url or "").strip()
    if _VIDEO_ID_RE.match(candidate):
        return candidate

    if "://" not in candidate:
        candidate = f"https://{candidate}"
    parsed = urlparse(candidate)
    host = (parsed.hostname or "").lower()
    segments = [s for s in parsed.path.split("/") if s]

    video_id: str | None = None
    if host in _SHORT_HOSTS and segments:
        video_id = segments[0]
    elif host in _WATCH_HOSTS:
        if segments[:1] == ["watch"]:
            video_id = (parse_qs(parsed.query).get("v") or [None])[0]
        elif len(segments) >= 2 and segments[0] in _PATH_PREFIXES:
            video_id = segments[1]

    if video_id and _VIDEO_ID_RE.match(video_id):
        return video_id
    raise InvalidTrackUrlError(f"Could not resolve a YouTube video id from {url!r}")
