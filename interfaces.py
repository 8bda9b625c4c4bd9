"""Protocol interfaces used by SessionController."""

from __future__ import annotations

from typing import Callable, Protocol

from models import AudioArtifact, RecognitionResult


class AudioDeviceCapability(Protocol):
    sample_rate: int
    channels: int

    async def open(self, on_chunk: Callable[[bytes], None]) -> None: ...

    async def stop(self) -> None: ...

    def close(self) -> None: ...


class RemoteTranscriptionCapability(Protocol):
    async def transcribe(self, artifact: AudioArtifact, locale: str) -> RecognitionResult: ...


class LocalRecognitionCapability(Protocol):
    async def recognize(self, locale: str) -> RecognitionResult: ...

    def cancel(self) -> None: ...

    async def aclose(self) -> None: ...


class ConfigStore(Protocol):
    def get_endpoint_url(self) -> str: ...

    def set_endpoint_url(self, url: str) -> None: ...

    def get_fallback_only(self) -> bool: ...

    def set_fallback_only(self, enabled: bool) -> None: ...

    def get_auto_stop_s(self) -> float: ...

    def set_auto_stop_s(self, seconds: float) -> None: ...

    def get_request_timeout_s(self) -> float: ...

    def set_request_timeout_s(self, seconds: float) -> None: ...

    def get_fallback_engine(self) -> str: ...

    def set_fallback_engine(self, engine: str) -> None: ...
