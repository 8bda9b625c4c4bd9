"""Core data models for the dictation subsystem."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable


class SessionState(str, Enum):
    IDLE = "IDLE"
    ACQUIRING = "ACQUIRING"
    RECORDING = "RECORDING"
    PROCESSING = "PROCESSING"
    LISTENING = "LISTENING"
    ERROR = "ERROR"


@dataclass(frozen=True)
class AudioArtifact:
    data: bytes
    mime_type: str
    chunk_count: int
    sample_rate: int = 16000


@dataclass(frozen=True)
class LocalePair:
    remote: str
    fallback: str


@dataclass(frozen=True)
class RecognitionResult:
    transcript: str = ""
    error_kind: str = ""
    message: str = ""

    @property
    def ok(self) -> bool:
        return not self.error_kind

    @classmethod
    def success(cls, transcript: str) -> "RecognitionResult":
        return cls(transcript=transcript)

    @classmethod
    def failure(cls, error_kind: str, message: str = "") -> "RecognitionResult":
        return cls(error_kind=error_kind, message=message)


async def with_fallback(
    primary: Awaitable[RecognitionResult],
    fallback: Callable[[], Awaitable[RecognitionResult]],
) -> RecognitionResult:
    """Await ``primary``; on failure, await whatever ``fallback()`` returns.

    ``fallback`` is only called when the primary attempt failed, so the two
    attempts never run at the same time.
    """
    result = await primary
    if result.ok:
        return result
    return await fallback()
