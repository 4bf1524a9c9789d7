"""
Unit tests for audio upload validation.
"""

import pytest

from video_analyzer.errors import InvalidUpload
from video_analyzer.uploads import is_accepted_media, validate_upload

MB = 1024 * 1024


class TestUploadValidation:

    @pytest.mark.parametrize("filename,content_type", [
        ("talk.mp3", "audio/mpeg"),
        ("talk.bin", "audio/x-m4a"),
        ("talk.FLAC", "application/octet-stream"),
        ("clip.webm", None),
        ("clip", "video/mp4"),
    ])
    def test_accepted(self, filename, content_type):
        assert is_accepted_media(filename, content_type)

    @pytest.mark.parametrize("filename,content_type", [
        ("notes.txt", "text/plain"),
        ("image.png", "image/png"),
        (None, None),
    ])
    def test_rejected(self, filename, content_type):
        assert not is_accepted_media(filename, content_type)

    def test_oversize(self):
        with pytest.raises(InvalidUpload, match="500MB"):
            validate_upload("talk.mp3", "audio/mpeg", 500 * MB + 1, 500 * MB)

    def test_at_limit(self):
        validate_upload("talk.mp3", "audio/mpeg", 500 * MB, 500 * MB)

    def test_bad_type_is_400(self):
        with pytest.raises(InvalidUpload) as exc:
            validate_upload("notes.txt", "text/plain", 10, 500 * MB)
        assert exc.value.status_code == 400

    def test_empty_file(self):
        with pytest.raises(InvalidUpload, match="empty"):
            validate_upload("talk.mp3", "audio/mpeg", 0, 500 * MB)
