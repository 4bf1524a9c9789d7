import os
import logging
from typing import List, Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

from video_analyzer.models import TranscriptSource

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

DEFAULT_STRATEGIES = "captions,fallback-api,subtitle-download,audio-transcription"


def configure_logging(level: str = "INFO"):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler()],
    )


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True)

    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-2.0-flash-lite"

    assemblyai_api_key: Optional[str] = None
    assemblyai_base_url: str = "https://api.assemblyai.com"
    transcription_timeout: float = 240.0
    transcription_poll_interval: float = 3.0

    webhook_url: Optional[str] = None
    webhook_timeout: float = 30.0

    subtitle_timeout: float = 60.0
    ytdlp_command: Optional[str] = None

    strategies: List[TranscriptSource] = Field(
        default_factory=lambda: [TranscriptSource(s) for s in DEFAULT_STRATEGIES.split(",")]
    )
    caption_languages: List[str] = Field(default_factory=lambda: ["en", "en-US", "en-GB"])

    max_transcript_length: int = 15000
    max_upload_bytes: int = 500 * 1024 * 1024
    request_timeout: float = 300.0

    rate_limit_requests: int = 5
    rate_limit_window: int = 60

    log_level: str = "INFO"
    port: int = 8000

    @field_validator("strategies")
    @classmethod
    def validate_strategies(cls, v):
        if not v:
            raise ValueError("at least one transcript strategy is required")
        if TranscriptSource.AUDIO_UPLOAD in v:
            raise ValueError("audio-upload is not a transcript strategy")
        if len(set(v)) != len(v):
            raise ValueError("transcript strategies must not repeat")
        return v

    @field_validator("caption_languages")
    @classmethod
    def validate_caption_languages(cls, v):
        if not v:
            raise ValueError("at least one caption language is required")
        return v


def _split(value: str) -> List[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """Build Settings from the environment (and a .env file when present)."""
    if env is None:
        load_dotenv()
        env = os.environ

    raw = {
        "gemini_api_key": env.get("GEMINI_API_KEY") or None,
        "assemblyai_api_key": env.get("ASSEMBLYAI_API_KEY") or None,
        "webhook_url": env.get("TRANSCRIPT_WEBHOOK_URL") or None,
        "ytdlp_command": env.get("YTDLP_COMMAND") or None,
    }
    optional = {
        "gemini_model": "GEMINI_MODEL",
        "assemblyai_base_url": "ASSEMBLYAI_BASE_URL",
        "transcription_timeout": "TRANSCRIPTION_TIMEOUT",
        "transcription_poll_interval": "TRANSCRIPTION_POLL_INTERVAL",
        "webhook_timeout": "WEBHOOK_TIMEOUT",
        "subtitle_timeout": "SUBTITLE_TIMEOUT",
        "max_transcript_length": "MAX_TRANSCRIPT_LENGTH",
        "request_timeout": "REQUEST_TIMEOUT",
        "rate_limit_requests": "RATE_LIMIT_REQUESTS",
        "rate_limit_window": "RATE_LIMIT_WINDOW",
        "log_level": "LOG_LEVEL",
        "port": "PORT",
    }
    for field, name in optional.items():
        value = env.get(name)
        if value:
            raw[field] = value

    if env.get("TRANSCRIPT_STRATEGIES"):
        raw["strategies"] = _split(env["TRANSCRIPT_STRATEGIES"])
    if env.get("CAPTION_LANGUAGES"):
        raw["caption_languages"] = _split(env["CAPTION_LANGUAGES"])
    if env.get("MAX_UPLOAD_MB"):
        raw["max_upload_bytes"] = int(env["MAX_UPLOAD_MB"]) * 1024 * 1024

    return Settings(**raw)
