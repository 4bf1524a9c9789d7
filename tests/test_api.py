"""
Route tests for the FastAPI application, with the chain, analyzer and
speech client replaced by fakes.
"""

import asyncio

import pytest
from fastapi.testclient import TestClient

from video_analyzer.api import RateLimiter, create_app
from video_analyzer.config import Settings
from video_analyzer.errors import AnalysisFailure, NoCaptionsAvailable, RateLimitExceeded
from video_analyzer.models import AcquiredTranscript, TranscriptSource
from video_analyzer.normalize import TRUNCATION_MARKER

VIDEO_ID = "dQw4w9WgXcQ"


class FakeChain:
    def __init__(self, text="a short transcript", source=TranscriptSource.CAPTIONS, error=None, delay=0):
        self.text = text
        self.source = source
        self.error = error
        self.delay = delay
        self.calls = []
        self.strategies = []

    async def acquire(self, video_id, video_url=None):
        self.calls.append((video_id, video_url))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return AcquiredTranscript(text=self.text, source=self.source)


class FakeAnalyzer:
    def __init__(self, result="## Executive Summary\nGreat video.", error=None):
        self.result = result
        self.error = error
        self.prompts = []

    async def analyze(self, transcript):
        self.prompts.append(transcript)
        if self.error:
            raise self.error
        return self.result


class FakeSpeechClient:
    def __init__(self, text="uploaded speech [Laughter] here"):
        self.text = text
        self.uploads = []

    async def upload(self, data):
        self.uploads.append(data)
        return "https://cdn.assemblyai.com/upload/xyz"

    async def transcribe(self, audio_url):
        return self.text


def make_client(chain=None, analyzer=None, speech=None, **overrides):
    settings = Settings(rate_limit_requests=100, **overrides)
    app = create_app(settings, chain=chain or FakeChain(), analyzer=analyzer or FakeAnalyzer(),
                     speech_client=speech)
    return TestClient(app)


class TestAnalyzeEndpoint:

    def test_success(self):
        chain = FakeChain(source=TranscriptSource.SUBTITLE_DOWNLOAD)
        client = make_client(chain=chain)
        r = client.post("/api/analyze", json={"videoUrl": f"https://youtu.be/{VIDEO_ID}"})

        assert r.status_code == 200
        assert r.json() == {
            "videoId": VIDEO_ID,
            "transcriptLength": len("a short transcript"),
            "transcriptSource": "subtitle-download",
            "analysis": "## Executive Summary\nGreat video.",
        }
        assert chain.calls == [(VIDEO_ID, f"https://www.youtube.com/watch?v={VIDEO_ID}")]

    def test_long_transcript_truncated_for_analysis(self):
        analyzer = FakeAnalyzer()
        client = make_client(chain=FakeChain(text="x" * 20000), analyzer=analyzer)
        r = client.post("/api/analyze", json={"videoUrl": VIDEO_ID})

        assert r.status_code == 200
        assert r.json()["transcriptLength"] == 20000
        assert analyzer.prompts[0] == "x" * 15000 + TRUNCATION_MARKER

    def test_missing_url(self):
        r = make_client().post("/api/analyze", json={})
        assert r.status_code == 400
        assert r.json() == {"error": "Video URL is required"}

    def test_invalid_url_attempts_nothing(self):
        chain = FakeChain()
        r = make_client(chain=chain).post("/api/analyze", json={"videoUrl": "https://vimeo.com/12345"})
        assert r.status_code == 400
        assert r.json()["error"] == "Invalid YouTube URL"
        assert chain.calls == []

    def test_malformed_body(self):
        r = make_client().post("/api/analyze", content=b"not json",
                               headers={"content-type": "application/json"})
        assert r.status_code == 400
        assert "error" in r.json()

    def test_no_captions(self):
        error = NoCaptionsAvailable("Could not fetch captions", suggestion="Upload the audio", details="yt-dlp exited 1")
        r = make_client(chain=FakeChain(error=error)).post("/api/analyze", json={"videoUrl": VIDEO_ID})

        assert r.status_code == 400
        body = r.json()
        assert body["suggestion"] == "Upload the audio"
        assert body["details"] == "yt-dlp exited 1"

    def test_analysis_failure_is_internal(self):
        analyzer = FakeAnalyzer(error=AnalysisFailure("Failed to analyze with AI", details="quota"))
        r = make_client(analyzer=analyzer).post("/api/analyze", json={"videoUrl": VIDEO_ID})

        assert r.status_code == 500
        assert r.json() == {"error": "Failed to analyze with AI"}

    def test_unexpected_error(self):
        r = make_client(chain=FakeChain(error=RuntimeError("kaboom"))).post(
            "/api/analyze", json={"videoUrl": VIDEO_ID})
        assert r.status_code == 500
        assert r.json() == {"error": "An error occurred processing the video"}

    def test_request_budget(self):
        client = make_client(chain=FakeChain(delay=1), request_timeout=0.05)
        r = client.post("/api/analyze", json={"videoUrl": VIDEO_ID})
        assert r.status_code == 504
        assert "error" in r.json()

    def test_rate_limit(self):
        settings = Settings(rate_limit_requests=2)
        client = TestClient(create_app(settings, chain=FakeChain(), analyzer=FakeAnalyzer()))
        for _ in range(2):
            assert client.post("/api/analyze", json={"videoUrl": VIDEO_ID}).status_code == 200
        r = client.post("/api/analyze", json={"videoUrl": VIDEO_ID})
        assert r.status_code == 429
        assert "Rate limit exceeded" in r.json()["error"]


class TestTranscribeAudioEndpoint:

    def test_success(self):
        speech = FakeSpeechClient()
        client = make_client(speech=speech)
        r = client.post("/api/transcribe-audio",
                        files={"audio": ("talk.mp3", b"ID3-audio-bytes", "audio/mpeg")})

        assert r.status_code == 200
        body = r.json()
        assert body["fileName"] == "talk.mp3"
        assert body["transcriptSource"] == "audio-upload"
        assert body["transcriptLength"] == len("uploaded speech here")
        assert speech.uploads == [b"ID3-audio-bytes"]

    def test_missing_file(self):
        r = make_client(speech=FakeSpeechClient()).post("/api/transcribe-audio", data={"other": "x"})
        assert r.status_code == 400
        assert r.json() == {"error": "Audio file is required"}

    def test_bad_type(self):
        r = make_client(speech=FakeSpeechClient()).post(
            "/api/transcribe-audio", files={"audio": ("notes.txt", b"hello", "text/plain")})
        assert r.status_code == 400
        assert "Invalid file type" in r.json()["error"]

    def test_too_large(self):
        speech = FakeSpeechClient()
        r = make_client(speech=speech, max_upload_bytes=10).post(
            "/api/transcribe-audio", files={"audio": ("talk.mp3", b"x" * 11, "audio/mpeg")})
        assert r.status_code == 400
        assert "too large" in r.json()["error"]
        assert speech.uploads == []

    def test_not_configured(self):
        r = make_client().post("/api/transcribe-audio",
                               files={"audio": ("talk.mp3", b"audio", "audio/mpeg")})
        assert r.status_code == 500
        assert "AssemblyAI" in r.json()["error"]


class TestIndex:

    def test_missing_index(self):
        r = make_client().get("/")
        assert r.status_code == 404


class TestRateLimiter:

    def test_window_does_not_slide(self):
        clock = [0.0]
        limiter = RateLimiter(2, 60, timer=lambda: clock[0])
        limiter.hit("1.2.3.4")
        clock[0] = 50.0
        limiter.hit("1.2.3.4")
        with pytest.raises(RateLimitExceeded):
            limiter.hit("1.2.3.4")

        # the window opened at t=0, so it closes at t=60 however late the last hit was
        clock[0] = 61.0
        limiter.hit("1.2.3.4")

    def test_rejected_requests_do_not_extend_lockout(self):
        clock = [0.0]
        limiter = RateLimiter(1, 60, timer=lambda: clock[0])
        limiter.hit("1.2.3.4")
        for t in (10.0, 30.0, 59.0):
            clock[0] = t
            with pytest.raises(RateLimitExceeded):
                limiter.hit("1.2.3.4")
        clock[0] = 60.0
        limiter.hit("1.2.3.4")

    def test_clients_counted_separately(self):
        limiter = RateLimiter(1, 60)
        limiter.hit("1.2.3.4")
        limiter.hit("5.6.7.8")
        with pytest.raises(RateLimitExceeded):
            limiter.hit("1.2.3.4")
