"""Remote transcription client.

Posts the finished recording as base64 JSON to the transcription endpoint::

    request:  {"audio": "<base64>", "languageCode": "hi-IN"}
    response: {"transcript": "..."} or {"error": "..."}

Every failure (transport, status, payload) is reported as
``REMOTE_TRANSCRIPTION_FAILED``; the caller decides what to do next. No
retries happen here.
"""

from __future__ import annotations

import base64
from typing import Optional

import httpx
from loguru import logger

from errors import REMOTE_TRANSCRIPTION_FAILED
from models import AudioArtifact, RecognitionResult

logger = logger.bind(module="transcription_client")


class HttpTranscriptionClient:
    def __init__(
        self,
        endpoint_url: str,
        request_timeout_s: float = 15.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.endpoint_url = endpoint_url
        self._request_timeout_s = request_timeout_s
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._request_timeout_s)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def transcribe(self, artifact: AudioArtifact, locale: str) -> RecognitionResult:
        payload = {
            "audio": base64.b64encode(artifact.data).decode("ascii"),
            "languageCode": locale,
        }
        try:
            response = await self.client.post(self.endpoint_url, json=payload)
        except httpx.HTTPError as exc:
            return self._fail(f"request failed: {exc!r}")

        if not response.is_success:
            return self._fail(f"{self.endpoint_url} returned {response.status_code}")

        try:
            data = response.json()
        except ValueError as exc:
            return self._fail(f"response is not JSON: {exc}")
        if not isinstance(data, dict):
            return self._fail("response is not a JSON object")

        if data.get("error"):
            return self._fail(f"service error: {data['error']}")
        transcript = data.get("transcript")
        if not isinstance(transcript, str) or not transcript.strip():
            return self._fail("empty transcript")

        logger.info(f"Remote transcription returned {len(transcript)} characters")
        return RecognitionResult.success(transcript.strip())

    def _fail(self, message: str) -> RecognitionResult:
        logger.warning(f"Remote transcription failed: {message}")
        return RecognitionResult.failure(REMOTE_TRANSCRIPTION_FAILED, message)
