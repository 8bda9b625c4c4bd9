"""Single-shot fallback recognizer built on the SpeechRecognition package.

Used only after the remote transcription path has failed. Each call opens its
own microphone, listens for one utterance and hands it to the configured
engine. The capture device of the main recording must already be released.

Listening happens in short slices so that ``cancel()`` is noticed between
slices; ``aclose()`` returns once the worker has left the microphone context.
"""

from __future__ import annotations

import asyncio
import threading
import time
from typing import Optional

from loguru import logger

from errors import RECOGNITION_FAILED, RECOGNITION_UNAVAILABLE
from models import RecognitionResult

try:
    import speech_recognition as sr
except Exception:  # pragma: no cover
    sr = None  # type: ignore

logger = logger.bind(module="recognizer")

SUPPORTED_ENGINES = ("google", "sphinx")

# Upper bound on how long a pending cancel waits while no one is speaking.
LISTEN_SLICE_S = 1.0


class SpeechRecognitionFallback:
    """Non-continuous recognition of a single utterance.

    The transcript is the engine's top-ranked hypothesis for that utterance.
    A non-continuous session yields exactly one result, so this is the same
    text as joining the top alternative of every result.
    """

    def __init__(
        self,
        engine: str = "google",
        listen_timeout_s: float = 8.0,
        phrase_time_limit_s: float = 30.0,
        device_index: Optional[int] = None,
    ) -> None:
        self.engine = engine
        self._listen_timeout_s = listen_timeout_s
        self._phrase_time_limit_s = phrase_time_limit_s
        self._device_index = device_index
        self._stop_event: Optional[threading.Event] = None
        self._worker: Optional[asyncio.Future] = None

    async def recognize(self, locale: str) -> RecognitionResult:
        if sr is None:
            return self._unavailable("speech_recognition is not installed")
        if self.engine not in SUPPORTED_ENGINES:
            return self._unavailable(f"unsupported engine {self.engine!r}")

        stop_event = threading.Event()
        self._stop_event = stop_event
        worker = asyncio.ensure_future(asyncio.to_thread(self._recognize_once, locale, stop_event))
        self._worker = worker
        try:
            return await asyncio.shield(worker)
        except asyncio.CancelledError:
            stop_event.set()
            raise

    def cancel(self) -> None:
        """Ask a running recognition to give up the microphone."""
        if self._stop_event is not None:
            self._stop_event.set()

    async def aclose(self) -> None:
        self.cancel()
        worker = self._worker
        if worker is not None:
            await asyncio.gather(worker, return_exceptions=True)

    # ------------------------------------------------------------------
    # Internal (runs in a worker thread)
    # ------------------------------------------------------------------

    def _recognize_once(self, locale: str, stop_event: threading.Event) -> RecognitionResult:
        recognizer = sr.Recognizer()
        try:
            # Raises AttributeError when PyAudio is missing.
            microphone = sr.Microphone(device_index=self._device_index)
        except (AttributeError, OSError) as exc:
            return self._unavailable(f"no microphone backend: {exc}")

        try:
            with microphone as source:
                audio = self._listen(recognizer, source, stop_event)
        except sr.WaitTimeoutError:
            return self._failed("no speech detected")
        except OSError as exc:
            return self._unavailable(f"microphone could not be opened: {exc}")

        if audio is None or stop_event.is_set():
            logger.info("Fallback recognition cancelled")
            return RecognitionResult.failure(RECOGNITION_FAILED, "cancelled")

        engine = getattr(recognizer, f"recognize_{self.engine}")
        try:
            transcript = engine(audio, language=locale)
        except sr.UnknownValueError:
            return self._failed("speech was not understood")
        except sr.RequestError as exc:
            return self._failed(f"engine request failed: {exc}")

        if not isinstance(transcript, str) or not transcript.strip():
            return self._failed("empty transcript")
        logger.info(f"Fallback recognizer returned {len(transcript)} characters")
        return RecognitionResult.success(transcript.strip())

    def _listen(self, recognizer, source, stop_event: threading.Event):  # noqa: ANN001, ANN202
        # Same slicing as Recognizer.listen_in_background: wait for speech in
        # short timeouts and check the stop flag in between.
        deadline = time.monotonic() + self._listen_timeout_s
        while not stop_event.is_set():
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise sr.WaitTimeoutError("listening timed out while waiting for phrase to start")
            try:
                return recognizer.listen(
                    source,
                    timeout=min(LISTEN_SLICE_S, remaining),
                    phrase_time_limit=self._phrase_time_limit_s,
                )
            except sr.WaitTimeoutError:
                continue
        return None

    def _unavailable(self, message: str) -> RecognitionResult:
        logger.error(f"Fallback recognizer unavailable: {message}")
        return RecognitionResult.failure(RECOGNITION_UNAVAILABLE, message)

    def _failed(self, message: str) -> RecognitionResult:
        logger.error(f"Fallback recognition failed: {message}")
        return RecognitionResult.failure(RECOGNITION_FAILED, message)
