from typing import Any, Dict, Optional


class VideoAnalyzerError(Exception):
    """Base error; carries the HTTP status and the JSON error shape."""

    status_code = 500

    def __init__(self, message: str, suggestion: Optional[str] = None, details: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.suggestion = suggestion
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.message}
        if self.suggestion:
            body["suggestion"] = self.suggestion
        if self.details:
            body["details"] = self.details
        return body


class InvalidInput(VideoAnalyzerError):
    status_code = 400


class InvalidUpload(InvalidInput):
    pass


class StrategyFailure(VideoAnalyzerError):
    """A single transcript strategy failed or produced nothing usable."""


class StrategyUnavailable(StrategyFailure):
    """A strategy cannot run at all (missing credentials or endpoint)."""


class NoCaptionsAvailable(VideoAnalyzerError):
    status_code = 400


class TranscriptionFailure(VideoAnalyzerError):
    pass


class AnalysisFailure(VideoAnalyzerError):
    pass


class RequestTimeout(VideoAnalyzerError):
    status_code = 504


class RateLimitExceeded(VideoAnalyzerError):
    status_code = 429
