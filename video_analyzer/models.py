from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from video_analyzer.normalize import truncate_for_analysis


class TranscriptSource(str, Enum):
    CAPTIONS = "captions"
    FALLBACK_API = "fallback-api"
    SUBTITLE_DOWNLOAD = "subtitle-download"
    AUDIO_TRANSCRIPTION = "audio-transcription"
    AUDIO_UPLOAD = "audio-upload"


class AcquiredTranscript(BaseModel):
    """Normalized transcript text plus the strategy that produced it."""

    model_config = ConfigDict(frozen=True)

    text: str
    source: TranscriptSource

    @property
    def length(self) -> int:
        return len(self.text)

    def for_analysis(self, max_length: int) -> str:
        return truncate_for_analysis(self.text, max_length)


# -----------------------------
# Wire models
# -----------------------------
class AnalyzeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    video_url: str = Field("", alias="videoUrl", description="YouTube URL or bare video ID")


class AnalysisResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    video_id: str = Field(..., alias="videoId")
    transcript_length: int = Field(..., alias="transcriptLength")
    transcript_source: TranscriptSource = Field(..., alias="transcriptSource")
    analysis: str


class UploadAnalysisResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    file_name: str = Field(..., alias="fileName")
    transcript_length: int = Field(..., alias="transcriptLength")
    transcript_source: TranscriptSource = Field(TranscriptSource.AUDIO_UPLOAD, alias="transcriptSource")
    analysis: str
