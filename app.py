import os
import logging

import uvicorn

from video_analyzer.api import create_app
from video_analyzer.config import configure_logging, load_settings

# -----------------------------
# ENV, CONFIG & LOGGING
# -----------------------------
settings = load_settings()
configure_logging(settings.log_level)
logger = logging.getLogger(__name__)

if not settings.gemini_api_key:
    raise ValueError("GEMINI_API_KEY is required in environment")

if not settings.assemblyai_api_key:
    logger.warning("ASSEMBLYAI_API_KEY not set: audio transcription and uploads are disabled")

app = create_app(settings)

# -----------------------------
# Run
# -----------------------------
if __name__ == "__main__":
    port = int(os.getenv("PORT", settings.port))
    uvicorn.run("app:app", host="0.0.0.0", port=port, reload=False)
