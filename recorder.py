"""Microphone recorder adapter."""

from __future__ import annotations

import asyncio
import threading
from typing import Any, Callable, Optional

import numpy as np
from loguru import logger

from errors import DeviceError, DeviceUnavailable, PermissionDenied

try:
    import sounddevice as sd
except Exception:  # pragma: no cover - PortAudio library missing
    sd = None  # type: ignore

logger = logger.bind(module="recorder")

_PERMISSION_HINTS = ("permission", "denied", "not authorized", "not permitted")


def _classify_device_error(exc: BaseException) -> DeviceError:
    message = str(exc) or exc.__class__.__name__
    low = message.lower()
    if isinstance(exc, PermissionError) or any(hint in low for hint in _PERMISSION_HINTS):
        return PermissionDenied(message)
    return DeviceUnavailable(message)


class SoundDeviceRecorder:
    """Owns the one ``sounddevice.InputStream`` a session may hold.

    The PortAudio callback runs on its own thread; chunks are handed to the
    event loop with ``call_soon_threadsafe`` so they arrive in capture order.
    """

    def __init__(
        self,
        sample_rate: int = 16000,
        channels: int = 1,
        chunk_ms: int = 100,
        device: Optional[int | str] = None,
    ) -> None:
        self.sample_rate = sample_rate
        self.channels = channels
        self.chunk_ms = chunk_ms
        self.device = device
        self.dropped_chunks = 0
        self._stream: Any = None
        self._running = False
        self._released = False
        self._lock = threading.Lock()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._on_chunk: Optional[Callable[[bytes], None]] = None

    @property
    def is_open(self) -> bool:
        return self._stream is not None

    async def open(self, on_chunk: Callable[[bytes], None]) -> None:
        if sd is None:
            raise DeviceUnavailable("sounddevice is not installed")
        with self._lock:
            if self._stream is not None:
                return
            self._released = False
            self._loop = asyncio.get_running_loop()
            self._on_chunk = on_chunk
        # The OS permission prompt can block, keep it off the event loop.
        await asyncio.to_thread(self._open_stream)
        logger.info(f"Input stream opened ({self.sample_rate} Hz, {self.channels} ch)")

    async def stop(self) -> None:
        if self._stream is None:
            return
        await asyncio.to_thread(self._stop_stream)

    def close(self) -> None:
        with self._lock:
            self._released = True
            self._running = False
            self._on_chunk = None
            stream, self._stream = self._stream, None
        if stream is None:
            return
        try:
            stream.stop()
            stream.close()
        except sd.PortAudioError as exc:
            logger.warning(f"Error closing input stream: {exc}")
        logger.debug("Input stream released")

    def _open_stream(self) -> None:
        blocksize = int(self.sample_rate * (self.chunk_ms / 1000.0))
        try:
            sd.check_input_settings(
                device=self.device,
                channels=self.channels,
                dtype="int16",
                samplerate=self.sample_rate,
            )
            stream = sd.InputStream(
                device=self.device,
                samplerate=self.sample_rate,
                channels=self.channels,
                dtype="int16",
                blocksize=blocksize,
                callback=self._on_audio,
            )
        except (PermissionError, sd.PortAudioError, ValueError) as exc:
            raise _classify_device_error(exc) from exc

        with self._lock:
            if self._released:
                # close() ran while we were waiting on the device
                stream.close()
                raise DeviceUnavailable("capture was released while opening")
            self._stream = stream
            self._running = True
            try:
                stream.start()
            except (PermissionError, sd.PortAudioError) as exc:
                self._stream = None
                self._running = False
                stream.close()
                raise _classify_device_error(exc) from exc

    def _stop_stream(self) -> None:
        with self._lock:
            stream = self._stream
            if stream is None:
                return
            try:
                # Blocks until PortAudio has drained pending buffers.
                stream.stop()
            except sd.PortAudioError as exc:
                logger.warning(f"Error stopping input stream: {exc}")
            finally:
                self._running = False

    def _on_audio(self, indata: Any, frames: int, time_info: Any, status: Any) -> None:
        loop = self._loop
        if not self._running or loop is None:
            return
        if status:
            logger.debug(f"Input stream status: {status}")
        payload = np.asarray(indata, dtype=np.int16).tobytes()
        try:
            loop.call_soon_threadsafe(self._deliver, payload)
        except RuntimeError:
            self.dropped_chunks += 1

    def _deliver(self, payload: bytes) -> None:
        on_chunk = self._on_chunk
        if on_chunk is not None:
            on_chunk(payload)
