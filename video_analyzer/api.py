import os
import time
import asyncio
import logging
from typing import Callable, Optional

from cachetools import TTLCache
from fastapi import FastAPI, File, HTTPException, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse
from fastapi.staticfiles import StaticFiles

from video_analyzer import __version__
from video_analyzer.analysis import Analyzer
from video_analyzer.config import Settings
from video_analyzer.errors import (
    InvalidUpload,
    RateLimitExceeded,
    RequestTimeout,
    TranscriptionFailure,
    VideoAnalyzerError,
)
from video_analyzer.models import (
    AcquiredTranscript,
    AnalysisResponse,
    AnalyzeRequest,
    TranscriptSource,
    UploadAnalysisResponse,
)
from video_analyzer.normalize import normalize_transcript
from video_analyzer.speech import AssemblyAIClient
from video_analyzer.transcripts import TranscriptChain, build_strategies
from video_analyzer.uploads import validate_upload
from video_analyzer.video_id import canonical_watch_url, extract_video_id

logger = logging.getLogger(__name__)

STATIC_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "static")

GENERIC_VIDEO_ERROR = "An error occurred processing the video"
GENERIC_AUDIO_ERROR = "An error occurred processing the audio"


# -----------------------------
# RATE LIMITING
# -----------------------------
class RateLimiter:
    """Fixed window per client: the window opens on the first counted request."""

    def __init__(self, max_requests: int, window: int, timer: Callable[[], float] = time.monotonic):
        self.max_requests = max_requests
        self.window = window
        self._timer = timer
        # ip -> (window start, count); expiry only bounds memory
        self._counts = TTLCache(maxsize=10000, ttl=window, timer=timer)

    @staticmethod
    def client_ip(request: Request) -> str:
        x_forwarded_for = request.headers.get("x-forwarded-for")
        if x_forwarded_for:
            return x_forwarded_for.split(",")[0].strip()
        return request.client.host if request.client else "unknown"

    def check(self, request: Request):
        self.hit(self.client_ip(request))

    def hit(self, ip: str):
        now = self._timer()
        started, count = self._counts.get(ip, (now, 0))
        if now - started >= self.window:
            started, count = now, 0
        if count >= self.max_requests:
            raise RateLimitExceeded(
                f"Rate limit exceeded: {self.max_requests} requests per {self.window} seconds."
            )
        self._counts[ip] = (started, count + 1)


def error_response(exc: VideoAnalyzerError) -> JSONResponse:
    body = exc.to_dict()
    if exc.status_code >= 500:
        # internal details stay in the log
        body.pop("details", None)
    return JSONResponse(status_code=exc.status_code, content=body)


def create_app(
    settings: Settings,
    chain: Optional[TranscriptChain] = None,
    analyzer: Optional[Analyzer] = None,
    speech_client: Optional[AssemblyAIClient] = None,
) -> FastAPI:
    if speech_client is None and settings.assemblyai_api_key:
        speech_client = AssemblyAIClient(
            settings.assemblyai_api_key,
            base_url=settings.assemblyai_base_url,
            poll_interval=settings.transcription_poll_interval,
            timeout=settings.transcription_timeout,
        )
    if chain is None:
        chain = TranscriptChain(build_strategies(settings, speech_client))
    if analyzer is None:
        analyzer = Analyzer(settings.gemini_api_key, settings.gemini_model)
    limiter = RateLimiter(settings.rate_limit_requests, settings.rate_limit_window)

    app = FastAPI(title="YouTube Video Analyzer API", version=__version__)
    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_credentials=True,
                       allow_methods=["GET", "POST", "OPTIONS"], allow_headers=["*"])
    app.state.settings = settings
    app.state.chain = chain
    app.state.analyzer = analyzer

    if os.path.exists(STATIC_DIR):
        app.mount("/static", StaticFiles(directory=STATIC_DIR), name="static")

    @app.exception_handler(VideoAnalyzerError)
    async def handle_analyzer_error(request: Request, exc: VideoAnalyzerError):
        if exc.status_code >= 500:
            logger.error(f"{request.url.path} failed: {exc.message} ({exc.details})")
        return error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"error": "Invalid request body"})

    async def within_budget(coro):
        try:
            return await asyncio.wait_for(coro, timeout=settings.request_timeout)
        except asyncio.TimeoutError:
            raise RequestTimeout(
                f"Processing took longer than {settings.request_timeout:.0f} seconds"
            ) from None

    # -----------------------------
    # Routes
    # -----------------------------
    @app.get("/", response_class=HTMLResponse)
    async def index():
        file_path = os.path.join(STATIC_DIR, "index.html")
        if os.path.exists(file_path):
            with open(file_path, "r", encoding="utf-8") as f:
                return HTMLResponse(f.read())
        raise HTTPException(status_code=404, detail="Index not found.")

    async def analyze_video(raw_url: str) -> AnalysisResponse:
        video_id = extract_video_id(raw_url)
        transcript = await chain.acquire(video_id, canonical_watch_url(video_id))
        analysis = await analyzer.analyze(transcript.for_analysis(settings.max_transcript_length))
        return AnalysisResponse(
            video_id=video_id,
            transcript_length=transcript.length,
            transcript_source=transcript.source,
            analysis=analysis,
        )

    @app.post("/api/analyze", response_class=JSONResponse)
    async def analyze_endpoint(body: AnalyzeRequest, request: Request):
        limiter.check(request)
        try:
            result = await within_budget(analyze_video(body.video_url))
        except VideoAnalyzerError:
            raise
        except Exception as e:
            logger.exception(f"analyze_endpoint error: {e}")
            raise VideoAnalyzerError(GENERIC_VIDEO_ERROR) from e
        return JSONResponse(content=result.model_dump(by_alias=True, mode="json"))

    async def analyze_upload(audio: UploadFile) -> UploadAnalysisResponse:
        if speech_client is None:
            raise TranscriptionFailure("AssemblyAI API key is not configured.")
        data = await audio.read(settings.max_upload_bytes + 1)
        validate_upload(audio.filename, audio.content_type, len(data), settings.max_upload_bytes)

        upload_url = await speech_client.upload(data)
        text = normalize_transcript(await speech_client.transcribe(upload_url))
        if not text:
            raise TranscriptionFailure("No transcript text returned")
        transcript = AcquiredTranscript(text=text, source=TranscriptSource.AUDIO_UPLOAD)
        analysis = await analyzer.analyze(transcript.for_analysis(settings.max_transcript_length))
        return UploadAnalysisResponse(
            file_name=audio.filename or "audio",
            transcript_length=transcript.length,
            analysis=analysis,
        )

    @app.post("/api/transcribe-audio", response_class=JSONResponse)
    async def transcribe_audio_endpoint(request: Request, audio: Optional[UploadFile] = File(None)):
        if audio is None:
            raise InvalidUpload("Audio file is required")
        limiter.check(request)
        try:
            result = await within_budget(analyze_upload(audio))
        except VideoAnalyzerError:
            raise
        except Exception as e:
            logger.exception(f"transcribe_audio_endpoint error: {e}")
            raise VideoAnalyzerError(GENERIC_AUDIO_ERROR) from e
        finally:
            await audio.close()
        return JSONResponse(content=result.model_dump(by_alias=True, mode="json"))

    @app.on_event("startup")
    async def startup_event():
        enabled = ", ".join(s.source.value for s in getattr(chain, "strategies", []))
        logger.info(f"Application startup completed. Transcript strategies: {enabled}")

    @app.on_event("shutdown")
    async def shutdown_event():
        logger.info("App shutting down...")

    return app
