import asyncio
import logging
from typing import Optional

import google.generativeai as genai

from video_analyzer.errors import AnalysisFailure

logger = logging.getLogger(__name__)

# -----------------------------
# GEMINI SYSTEM PROMPT
# -----------------------------
ANALYSIS_SYSTEM_INSTRUCTION = """
You are an expert video content analyst. Analyze the provided YouTube video transcript and provide a comprehensive breakdown.

Your analysis should include:
1. **Executive Summary** (2-3 sentences capturing the main message)
2. **Key Points** (bullet list of the most important takeaways)
3. **Main Topics Covered** (organized by theme)
4. **Notable Quotes or Insights** (if any stand out)
5. **Target Audience** (who would benefit from this video)
6. **Content Quality Assessment** (brief evaluation of depth, accuracy, presentation)
7. **Action Items** (if applicable - what viewers should do after watching)

Format your response in clean markdown.
"""

GENERATION_CONFIG = {"temperature": 0.3, "max_output_tokens": 2000}


def build_prompt(transcript: str) -> str:
    return f"Please analyze this video transcript:\n\n{transcript}"


class Analyzer:
    """Single Gemini call producing the markdown analysis."""

    def __init__(self, api_key: Optional[str], model_name: str = "gemini-2.0-flash-lite"):
        self.model_name = model_name
        self._model = None
        if api_key:
            genai.configure(api_key=api_key)
            self._model = genai.GenerativeModel(
                model_name,
                system_instruction=ANALYSIS_SYSTEM_INSTRUCTION,
                generation_config=GENERATION_CONFIG,
            )
            logger.info(f"Initialized Gemini model {model_name}")

    async def analyze(self, transcript: str) -> str:
        if self._model is None:
            raise AnalysisFailure("Analysis service is not configured")
        prompt = build_prompt(transcript)
        try:
            response = await asyncio.to_thread(self._model.generate_content, prompt)
            text = getattr(response, "text", None)
        except Exception as e:
            logger.error(f"Analysis error: {e}")
            raise AnalysisFailure("Failed to analyze with AI", details=str(e)) from e
        if not text:
            raise AnalysisFailure("Failed to analyze with AI", details="Empty response from model")
        return text
