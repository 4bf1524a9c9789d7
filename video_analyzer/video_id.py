import re

from video_analyzer.errors import InvalidInput

_ID = r"([A-Za-z0-9_-]{11})(?![A-Za-z0-9_-])"
_SCHEME = r"^(?:https?://)?"

# URL shapes first: a bare-ID match must never shadow a URL fragment.
# Every shape is anchored at the start so the host must be YouTube's.
VIDEO_ID_PATTERNS = [
    re.compile(_SCHEME + r"(?:www\.|m\.)?youtube\.com/watch\?(?:[^#\s]*&)?v=" + _ID),
    re.compile(_SCHEME + r"youtu\.be/" + _ID),
    re.compile(_SCHEME + r"(?:www\.|m\.)?youtube(?:-nocookie)?\.com/embed/" + _ID),
    re.compile(_SCHEME + r"(?:www\.|m\.)?youtube\.com/(?:v|shorts)/" + _ID),
    re.compile(r"^" + _ID + r"$"),
]


def extract_video_id(raw: str) -> str:
    value = (raw or "").strip()
    if not value:
        raise InvalidInput("Video URL is required")
    for pattern in VIDEO_ID_PATTERNS:
        m = pattern.search(value)
        if m:
            return m.group(1)
    raise InvalidInput("Invalid YouTube URL")


def canonical_watch_url(video_id: str) -> str:
    return f"https://www.youtube.com/watch?v={video_id}"
