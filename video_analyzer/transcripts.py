"""
Transcript acquisition with fallbacks.

Strategies are tried one after another in the configured order, cheapest
first. The first one that produces a non-empty transcript (after
normalization) wins; every other outcome falls through to the next one.
"""
import asyncio
import glob
import logging
import os
import shlex
import sys
import tempfile
from typing import Any, Callable, Iterable, List, Optional, Sequence

import httpx
from youtube_transcript_api import YouTubeTranscriptApi
from youtube_transcript_api._errors import CouldNotRetrieveTranscript
from yt_dlp import YoutubeDL

from video_analyzer.config import Settings
from video_analyzer.errors import (
    NoCaptionsAvailable,
    StrategyFailure,
    StrategyUnavailable,
    TranscriptionFailure,
)
from video_analyzer.models import AcquiredTranscript, TranscriptSource
from video_analyzer.normalize import normalize_transcript, strip_subtitle_markup
from video_analyzer.speech import AssemblyAIClient
from video_analyzer.video_id import canonical_watch_url

logger = logging.getLogger(__name__)

NO_CAPTIONS_MESSAGE = "Could not fetch captions for this video. Try uploading the audio file instead."
NO_CAPTIONS_SUGGESTION = (
    'Use the "Upload Audio" tab - download the audio locally with yt-dlp, then upload it here.'
)


class TranscriptStrategy:
    source: TranscriptSource

    def ensure_ready(self):
        """Raise StrategyUnavailable when the strategy cannot run at all."""

    async def fetch(self, video_id: str, video_url: str) -> str:
        raise NotImplementedError


# -----------------------------
# 1) youtube-transcript-api
# -----------------------------
def _segment_text(segment: Any) -> str:
    text = getattr(segment, "text", None)
    if text is None and isinstance(segment, dict):
        text = segment.get("text")
    return text or ""


def _fetch_caption_segments(video_id: str, languages: Sequence[str]):
    return YouTubeTranscriptApi().fetch(video_id, languages=list(languages))


class CaptionsStrategy(TranscriptStrategy):
    source = TranscriptSource.CAPTIONS

    def __init__(self, languages: Sequence[str] = ("en",), fetcher: Optional[Callable] = None):
        self.languages = list(languages)
        self._fetcher = fetcher or _fetch_caption_segments

    async def fetch(self, video_id: str, video_url: str) -> str:
        try:
            segments = await asyncio.to_thread(self._fetcher, video_id, self.languages)
        except CouldNotRetrieveTranscript as e:
            raise StrategyFailure(f"Captions unavailable: {type(e).__name__}") from e
        text = " ".join(_segment_text(s) for s in segments or [])
        if not text.strip():
            raise StrategyFailure("Empty transcript")
        return text


# -----------------------------
# 2) hosted webhook bridge
# -----------------------------
class WebhookStrategy(TranscriptStrategy):
    source = TranscriptSource.FALLBACK_API

    def __init__(self, url: Optional[str], timeout: float = 30.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.url = url
        self.timeout = timeout
        self._transport = transport

    def ensure_ready(self):
        if not self.url:
            raise StrategyUnavailable("Transcript webhook URL not configured")

    async def fetch(self, video_id: str, video_url: str) -> str:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                r = await client.post(self.url, json={"videoId": video_id, "videoUrl": video_url})
        except httpx.TimeoutException as e:
            raise StrategyFailure(f"Webhook timed out after {self.timeout:.0f}s") from e
        except httpx.HTTPError as e:
            raise StrategyFailure(f"Webhook request failed: {e}") from e

        if r.status_code != 200:
            raise StrategyFailure(f"Webhook returned {r.status_code}")
        try:
            data = r.json()
        except ValueError as e:
            raise StrategyFailure("Webhook returned invalid JSON") from e
        if not isinstance(data, dict) or data.get("success") is not True:
            error = data.get("error") if isinstance(data, dict) else None
            raise StrategyFailure(error or "Webhook reported failure")
        transcript = data.get("transcript")
        if not isinstance(transcript, str) or not transcript.strip():
            raise StrategyFailure("Webhook response has no transcript")
        return transcript


# -----------------------------
# 3) yt-dlp subtitle download
# -----------------------------
class SubtitleDownloadStrategy(TranscriptStrategy):
    source = TranscriptSource.SUBTITLE_DOWNLOAD

    def __init__(self, timeout: float = 60.0, command: Optional[str] = None,
                 languages: Sequence[str] = ("en",)):
        self.timeout = timeout
        self.command = command
        self.languages = list(languages)

    def build_args(self, video_url: str, output_base: str) -> List[str]:
        if self.command:
            args = shlex.split(self.command)
        else:
            args = [sys.executable, "-m", "yt_dlp"]
        return args + [
            "--skip-download",
            "--write-auto-subs",
            "--no-playlist",
            "--sub-langs", ",".join(self.languages),
            "--sub-format", "srt/vtt/best",
            "-o", output_base + ".%(ext)s",
            video_url,
        ]

    async def _run(self, video_url: str, output_base: str) -> str:
        args = self.build_args(video_url, output_base)
        try:
            proc = await asyncio.create_subprocess_exec(
                *args, stdout=asyncio.subprocess.PIPE, stderr=asyncio.subprocess.STDOUT
            )
        except OSError as e:
            raise StrategyFailure(f"Could not start yt-dlp: {e}") from e
        try:
            output, _ = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise StrategyFailure(f"yt-dlp timed out after {self.timeout:.0f}s") from e
        finally:
            if proc.returncode is None:
                proc.kill()
                await proc.wait()
        return (output or b"").decode("utf-8", errors="replace")

    @staticmethod
    def find_subtitle_file(workdir: str) -> Optional[str]:
        for ext in ("srt", "vtt"):
            matches = sorted(glob.glob(os.path.join(workdir, f"*.{ext}")))
            if matches:
                # prefer the plain language track over e.g. "en-orig"
                matches.sort(key=lambda p: (".en." not in os.path.basename(p), p))
                return matches[0]
        return None

    async def fetch(self, video_id: str, video_url: str) -> str:
        with tempfile.TemporaryDirectory(prefix=f"yt-{video_id}-") as workdir:
            output = await self._run(video_url, os.path.join(workdir, video_id))
            path = self.find_subtitle_file(workdir)
            if not path:
                tail = output.strip().splitlines()[-1:] or ["no output"]
                raise StrategyFailure(f"No subtitle file produced by yt-dlp: {tail[0][:300]}")
            try:
                with open(path, "r", encoding="utf-8", errors="replace") as f:
                    content = f.read()
            except OSError as e:
                raise StrategyFailure(f"Could not read subtitle file: {e}") from e
        text = strip_subtitle_markup(content)
        if not text.strip():
            raise StrategyFailure("Empty transcript from yt-dlp")
        return text


# -----------------------------
# 4) hosted speech-to-text
# -----------------------------
def _resolve_audio_url(video_url: str) -> Optional[str]:
    ydl_opts = {"quiet": True, "skip_download": True, "noplaylist": True, "format": "bestaudio/best"}
    with YoutubeDL(ydl_opts) as ydl:
        info = ydl.extract_info(video_url, download=False)
    if not info:
        return None
    if info.get("url"):
        return info["url"]
    for fmt in info.get("requested_formats") or []:
        if fmt.get("url"):
            return fmt["url"]
    return None


class AudioTranscriptionStrategy(TranscriptStrategy):
    source = TranscriptSource.AUDIO_TRANSCRIPTION

    def __init__(self, client: Optional[AssemblyAIClient], resolver: Optional[Callable] = None):
        self.client = client
        self._resolver = resolver or _resolve_audio_url

    def ensure_ready(self):
        if self.client is None:
            raise StrategyUnavailable("AssemblyAI API key not configured")

    async def fetch(self, video_id: str, video_url: str) -> str:
        try:
            audio_url = await asyncio.to_thread(self._resolver, video_url)
        except Exception as e:
            raise StrategyFailure(f"Could not resolve audio stream: {e}") from e
        if not audio_url:
            raise StrategyFailure("No audio stream found")
        try:
            return await self.client.transcribe(audio_url)
        except TranscriptionFailure as e:
            raise StrategyFailure(e.message, details=e.details) from e


# -----------------------------
# Chain
# -----------------------------
class TranscriptChain:
    def __init__(self, strategies: Iterable[TranscriptStrategy],
                 suggestion: str = NO_CAPTIONS_SUGGESTION):
        self.strategies = list(strategies)
        self.suggestion = suggestion

    async def acquire(self, video_id: str, video_url: Optional[str] = None) -> AcquiredTranscript:
        video_url = video_url or canonical_watch_url(video_id)
        last_error = None

        for strategy in self.strategies:
            name = strategy.source.value
            try:
                strategy.ensure_ready()
            except StrategyUnavailable as e:
                logger.info(f"Skipping {name} for {video_id}: {e.message}")
                continue

            logger.info(f"Trying {name} for {video_id}")
            try:
                raw = await strategy.fetch(video_id, video_url)
            except StrategyFailure as e:
                logger.info(f"{name} failed for {video_id}: {e.message}")
                last_error = e.message
                continue
            except Exception as e:
                logger.warning(f"{name} raised unexpectedly for {video_id}: {e!r}")
                last_error = str(e) or type(e).__name__
                continue

            text = normalize_transcript(raw)
            if not text:
                logger.info(f"{name} returned an empty transcript for {video_id}")
                last_error = "Empty transcript"
                continue

            logger.info(f"Transcript from {name} for {video_id} ({len(text)} chars)")
            return AcquiredTranscript(text=text, source=strategy.source)

        logger.info(f"No transcript available for {video_id}")
        raise NoCaptionsAvailable(
            NO_CAPTIONS_MESSAGE,
            suggestion=self.suggestion,
            details=last_error or "No transcript strategy could run",
        )


def build_strategies(settings: Settings, speech_client: Optional[AssemblyAIClient] = None) -> List[TranscriptStrategy]:
    """Instantiate the configured strategies in their declared order."""
    strategies: List[TranscriptStrategy] = []
    for source in settings.strategies:
        if source == TranscriptSource.CAPTIONS:
            strategies.append(CaptionsStrategy(settings.caption_languages))
        elif source == TranscriptSource.FALLBACK_API:
            strategies.append(WebhookStrategy(settings.webhook_url, settings.webhook_timeout))
        elif source == TranscriptSource.SUBTITLE_DOWNLOAD:
            strategies.append(SubtitleDownloadStrategy(
                settings.subtitle_timeout, settings.ytdlp_command, settings.caption_languages[:1]
            ))
        elif source == TranscriptSource.AUDIO_TRANSCRIPTION:
            strategies.append(AudioTranscriptionStrategy(speech_client))
        else:
            raise ValueError(f"Unknown transcript strategy: {source}")
    return strategies
