"""Recording buffer and artifact encoding for a single dictation session."""

from __future__ import annotations

import io
import wave
from dataclasses import dataclass
from typing import Optional

import numpy as np
from loguru import logger

from interfaces import AudioDeviceCapability
from models import AudioArtifact

try:
    import soundfile as sf
except Exception:  # pragma: no cover - libsndfile missing
    sf = None  # type: ignore

logger = logger.bind(module="audio_capture")

WAV_MIME_TYPE = "audio/wav"


@dataclass(frozen=True)
class Encoding:
    mime_type: str
    container: str
    subtype: str


# In order of preference.
OPUS_ENCODINGS = (
    Encoding("audio/webm;codecs=opus", "WEBM", "OPUS"),
    Encoding("audio/ogg;codecs=opus", "OGG", "OPUS"),
)


def pick_encoding() -> Optional[Encoding]:
    """Return the first Opus container libsndfile can write, if any."""
    if sf is None:
        return None
    for encoding in OPUS_ENCODINGS:
        if sf.check_format(encoding.container, encoding.subtype):
            return encoding
    return None


def _pcm_to_wav(
    pcm: bytes,
    sample_rate: int = 16000,
    channels: int = 1,
    sample_width: int = 2,
) -> bytes:
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(sample_width)
        wf.setframerate(sample_rate)
        wf.writeframes(pcm)
    return buf.getvalue()


def _pcm_to_container(pcm: bytes, sample_rate: int, channels: int, encoding: Encoding) -> bytes:
    samples = np.frombuffer(pcm, dtype=np.int16).reshape(-1, channels)
    buf = io.BytesIO()
    sf.write(buf, samples, sample_rate, format=encoding.container, subtype=encoding.subtype)
    return buf.getvalue()


def encode_pcm(pcm: bytes, sample_rate: int = 16000, channels: int = 1) -> tuple[bytes, str]:
    """Encode int16 PCM with the preferred codec, falling back to WAV."""
    frame_bytes = 2 * channels
    pcm = pcm[: len(pcm) - len(pcm) % frame_bytes]
    encoding = pick_encoding()
    if encoding is not None:
        try:
            return _pcm_to_container(pcm, sample_rate, channels, encoding), encoding.mime_type
        except RuntimeError as exc:
            logger.warning(f"{encoding.mime_type} encoding failed, using WAV: {exc}")
    return _pcm_to_wav(pcm, sample_rate, channels), WAV_MIME_TYPE


class AudioCapture:
    def __init__(self, device: AudioDeviceCapability) -> None:
        self._device = device
        self._chunks: list[bytes] = []
        self._acquired = False

    @property
    def chunk_count(self) -> int:
        return len(self._chunks)

    async def acquire(self) -> None:
        """Open the input device and start an empty chunk sequence.

        Raises ``PermissionDenied`` or ``DeviceUnavailable``.
        """
        self._chunks = []
        await self._device.open(self.on_chunk)
        self._acquired = True

    def on_chunk(self, data: bytes) -> None:
        if data:
            self._chunks.append(bytes(data))

    async def stop(self) -> None:
        """Stop recording; returns once the device has flushed every chunk."""
        if self._acquired:
            await self._device.stop()

    def finalize(self) -> Optional[AudioArtifact]:
        """Join captured chunks into one artifact, or ``None`` if nothing was captured."""
        chunks, self._chunks = self._chunks, []
        if not chunks:
            return None
        sample_rate = self._device.sample_rate
        data, mime_type = encode_pcm(b"".join(chunks), sample_rate, self._device.channels)
        logger.debug(f"Finalized {len(chunks)} chunks into {len(data)} bytes of {mime_type}")
        return AudioArtifact(
            data=data,
            mime_type=mime_type,
            chunk_count=len(chunks),
            sample_rate=sample_rate,
        )

    def release(self) -> None:
        """Close the device. Idempotent, and safe if ``acquire`` never succeeded."""
        self._acquired = False
        self._device.close()
