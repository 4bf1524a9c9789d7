import re
from typing import Optional

from video_analyzer.errors import InvalidUpload

ACCEPTED_CONTENT_TYPES = {
    "audio/mpeg", "audio/mp3", "audio/wav", "audio/x-wav",
    "audio/mp4", "audio/m4a", "audio/x-m4a", "audio/webm",
    "audio/ogg", "audio/flac", "video/mp4", "video/webm",
}
ACCEPTED_EXTENSIONS = re.compile(r"\.(mp3|wav|m4a|mp4|webm|ogg|flac)$", re.IGNORECASE)


def is_accepted_media(filename: Optional[str], content_type: Optional[str]) -> bool:
    if content_type and content_type.split(";")[0].strip().lower() in ACCEPTED_CONTENT_TYPES:
        return True
    return bool(filename and ACCEPTED_EXTENSIONS.search(filename))


def validate_upload(filename: Optional[str], content_type: Optional[str], size: int, max_size: int):
    if not is_accepted_media(filename, content_type):
        raise InvalidUpload("Invalid file type. Supported: MP3, WAV, M4A, MP4, WebM, OGG, FLAC")
    if size > max_size:
        raise InvalidUpload(f"File too large. Maximum size is {max_size // (1024 * 1024)}MB.")
    if size == 0:
        raise InvalidUpload("Audio file is empty")
