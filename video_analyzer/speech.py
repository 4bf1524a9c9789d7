"""
Hosted speech-to-text (AssemblyAI REST API).

Used by the last transcript strategy (remote audio URL) and by the audio
upload route (raw bytes are uploaded first).
"""
import asyncio
import logging
import time
from typing import Any, Dict, Optional

import httpx

from video_analyzer.errors import TranscriptionFailure

logger = logging.getLogger(__name__)


class AssemblyAIClient:
    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.assemblyai.com",
        poll_interval: float = 3.0,
        timeout: float = 240.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.poll_interval = poll_interval
        self.timeout = timeout
        self._transport = transport

    def _client(self, timeout: float = 30.0) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers={"authorization": self.api_key},
            timeout=timeout,
            transport=self._transport,
        )

    async def _request(self, method: str, path: str, timeout: float = 30.0, **kwargs) -> Dict[str, Any]:
        try:
            async with self._client(timeout) as client:
                r = await client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise TranscriptionFailure("Transcription service unreachable", details=str(e)) from e
        if r.status_code >= 400:
            raise TranscriptionFailure(
                f"Transcription service returned {r.status_code}", details=r.text[:300]
            )
        try:
            return r.json()
        except ValueError as e:
            raise TranscriptionFailure("Transcription service returned invalid JSON") from e

    async def upload(self, data: bytes) -> str:
        logger.info(f"Uploading {len(data) / 1024 / 1024:.2f}MB to AssemblyAI")
        payload = await self._request("POST", "/v2/upload", timeout=max(self.timeout, 60.0), content=data)
        upload_url = payload.get("upload_url")
        if not upload_url:
            raise TranscriptionFailure("Audio upload failed")
        return upload_url

    async def submit(self, audio_url: str) -> str:
        payload = await self._request("POST", "/v2/transcript", json={"audio_url": audio_url})
        transcript_id = payload.get("id")
        if not transcript_id:
            raise TranscriptionFailure("Transcription request failed", details=payload.get("error"))
        logger.info(f"Submitted transcription job {transcript_id}")
        return transcript_id

    async def wait(self, transcript_id: str) -> str:
        deadline = time.monotonic() + self.timeout
        while True:
            payload = await self._request("GET", f"/v2/transcript/{transcript_id}")
            status = payload.get("status")
            if status == "completed":
                text = payload.get("text")
                if not text:
                    raise TranscriptionFailure("No transcript text returned")
                return text
            if status == "error":
                raise TranscriptionFailure(payload.get("error") or "Transcription failed")
            if time.monotonic() >= deadline:
                raise TranscriptionFailure(f"Transcription did not finish within {self.timeout:.0f}s")
            logger.debug(f"Transcription {transcript_id} status: {status}")
            await asyncio.sleep(self.poll_interval)

    async def transcribe(self, audio_url: str) -> str:
        transcript_id = await self.submit(audio_url)
        return await self.wait(transcript_id)
