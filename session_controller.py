"""State-machine based dictation session orchestration."""

from __future__ import annotations

import asyncio
from typing import Callable, Optional

from loguru import logger

from audio_capture import AudioCapture
from errors import ERROR_MESSAGES, RECOGNITION_FAILED, REMOTE_TRANSCRIPTION_FAILED, DeviceError
from interfaces import (
    AudioDeviceCapability,
    LocalRecognitionCapability,
    RemoteTranscriptionCapability,
)
from locales import resolve_locale
from models import AudioArtifact, RecognitionResult, SessionState, with_fallback

logger = logger.bind(module="session_controller")

AUTO_STOP_S = 30.0

TranscriptCallback = Callable[[str], None]
StateCallback = Callable[[SessionState, SessionState], None]
ErrorCallback = Callable[[str, str], None]

_BUSY_STATES = (
    SessionState.ACQUIRING,
    SessionState.PROCESSING,
    SessionState.LISTENING,
    SessionState.ERROR,
)


class SessionController:
    """Drives one dictation session at a time.

    ``toggle`` starts a recording when idle and stops it when recording; in
    every other state it does nothing. A stopped recording is sent to the
    remote transcriber, and if that fails the fallback recognizer gets one
    attempt. ``on_transcript`` fires at most once per session, only with
    non-empty text.

    All public methods must be called from the event loop thread.
    """

    def __init__(
        self,
        device: AudioDeviceCapability,
        transcriber: RemoteTranscriptionCapability,
        fallback: LocalRecognitionCapability,
        on_transcript: TranscriptCallback,
        language_code: str = "en",
        auto_stop_s: float = AUTO_STOP_S,
        fallback_only: bool = False,
        on_state_change: Optional[StateCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> None:
        self._capture = AudioCapture(device)
        self._transcriber = transcriber
        self._fallback = fallback
        self._on_transcript = on_transcript
        self._auto_stop_s = auto_stop_s
        self._fallback_only = fallback_only
        self._on_state_change = on_state_change
        self._on_error = on_error
        self.language_code = language_code

        self._state = SessionState.IDLE
        self._session_id = 0
        self._active_language = language_code
        self._error: Optional[str] = None
        self._disposed = False
        self._task: Optional[asyncio.Task] = None
        self._auto_stop: Optional[asyncio.TimerHandle] = None
        self._stop_requested: Optional[asyncio.Event] = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def is_listening(self) -> bool:
        return self._state == SessionState.RECORDING

    @property
    def is_busy(self) -> bool:
        return self._state in _BUSY_STATES

    @property
    def active_language(self) -> str:
        return self._active_language

    @property
    def auto_stop_armed(self) -> bool:
        return self._auto_stop is not None

    @property
    def disposed(self) -> bool:
        return self._disposed

    # ------------------------------------------------------------------
    # Host API
    # ------------------------------------------------------------------

    def toggle(self) -> None:
        if self._disposed:
            logger.debug("toggle ignored: session disposed")
            return
        if self._state == SessionState.IDLE:
            self._start()
        elif self._state == SessionState.RECORDING:
            self.request_stop()
        else:
            logger.debug(f"toggle ignored in state {self._state.value}")

    def request_stop(self) -> None:
        """Stop the current recording; manual stop, auto-stop and teardown share this."""
        if self._state != SessionState.RECORDING:
            return
        self._clear_auto_stop()
        self._transition(SessionState.PROCESSING)
        if self._stop_requested is not None:
            self._stop_requested.set()

    def dispose(self) -> None:
        """Tear down: cancel the timer, release both microphones, abandon in-flight work."""
        if self._disposed:
            return
        self._disposed = True
        self._session_id += 1
        self._clear_auto_stop()
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
        self._capture.release()
        self._fallback.cancel()
        self._state = SessionState.IDLE
        logger.info("Dictation session disposed")

    async def aclose(self) -> None:
        task = self._task
        self.dispose()
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)
        await self._fallback.aclose()
        aclose = getattr(self._transcriber, "aclose", None)
        if aclose is not None:
            await aclose()

    async def __aenter__(self) -> "SessionController":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Session flow
    # ------------------------------------------------------------------

    def _start(self) -> None:
        loop = asyncio.get_running_loop()
        self._session_id += 1
        self._error = None
        self._active_language = self.language_code
        self._stop_requested = asyncio.Event()
        self._transition(SessionState.ACQUIRING)
        logger.info(f"Starting dictation session {self._session_id} ({self._active_language})")
        self._task = loop.create_task(self._run(self._session_id))

    async def _run(self, session_id: int) -> None:
        try:
            await self._run_session(session_id)
        except Exception as exc:
            logger.exception(f"Dictation session {session_id} crashed")
            self._capture.release()
            if self._is_current(session_id):
                self._clear_auto_stop()
                self._fail(RECOGNITION_FAILED, str(exc))

    async def _run_session(self, session_id: int) -> None:
        locales = resolve_locale(self._active_language)
        try:
            artifact = await self._capture_audio(session_id)
        except DeviceError as exc:
            logger.warning(f"Device acquisition failed: {exc.code}: {exc.message}")
            if self._is_current(session_id):
                self._emit_error(exc.code, exc.message)
                self._transition(SessionState.IDLE)
            return

        if not self._is_current(session_id):
            return
        if artifact is None:
            logger.info("Nothing was captured, skipping transcription")
            self._transition(SessionState.IDLE)
            return

        result = await with_fallback(
            self._transcribe_remote(artifact, locales.remote),
            lambda: self._recognize_fallback(session_id, locales.fallback),
        )
        if not self._is_current(session_id):
            return
        if result.ok:
            self._deliver(result.transcript)
            self._transition(SessionState.IDLE)
        else:
            self._fail(result.error_kind or RECOGNITION_FAILED, result.message)

    async def _capture_audio(self, session_id: int) -> Optional[AudioArtifact]:
        try:
            await self._capture.acquire()
            if not self._is_current(session_id):
                return None
            self._transition(SessionState.RECORDING)
            self._arm_auto_stop()
            assert self._stop_requested is not None
            await self._stop_requested.wait()
            await self._capture.stop()
            return self._capture.finalize()
        finally:
            self._capture.release()

    async def _transcribe_remote(self, artifact: AudioArtifact, locale: str) -> RecognitionResult:
        if self._fallback_only:
            return RecognitionResult.failure(REMOTE_TRANSCRIPTION_FAILED, "remote transcription disabled")
        try:
            result = await self._transcriber.transcribe(artifact, locale)
        except Exception as exc:
            logger.exception("Transcription client raised")
            result = RecognitionResult.failure(REMOTE_TRANSCRIPTION_FAILED, str(exc))
        if result.ok and not result.transcript.strip():
            result = RecognitionResult.failure(REMOTE_TRANSCRIPTION_FAILED, "empty transcript")
        if not result.ok:
            logger.warning(f"Remote transcription failed, falling back: {result.message}")
        return result

    async def _recognize_fallback(self, session_id: int, locale: str) -> RecognitionResult:
        if not self._is_current(session_id):
            return RecognitionResult.failure(RECOGNITION_FAILED, "session abandoned")
        self._transition(SessionState.LISTENING)
        try:
            result = await self._fallback.recognize(locale)
        except Exception as exc:
            logger.exception("Fallback recognizer raised")
            result = RecognitionResult.failure(RECOGNITION_FAILED, str(exc))
        if result.ok and not result.transcript.strip():
            result = RecognitionResult.failure(RECOGNITION_FAILED, "empty transcript")
        return result

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _is_current(self, session_id: int) -> bool:
        return not self._disposed and session_id == self._session_id

    def _arm_auto_stop(self) -> None:
        self._clear_auto_stop()
        loop = asyncio.get_running_loop()
        self._auto_stop = loop.call_later(self._auto_stop_s, self._on_auto_stop)

    def _clear_auto_stop(self) -> None:
        handle, self._auto_stop = self._auto_stop, None
        if handle is not None:
            handle.cancel()

    def _on_auto_stop(self) -> None:
        self._auto_stop = None
        if self._state == SessionState.RECORDING:
            logger.info(f"Auto-stopping recording after {self._auto_stop_s:g}s")
            self.request_stop()

    def _deliver(self, text: str) -> None:
        logger.info(f"Delivering transcript ({len(text)} characters)")
        try:
            self._on_transcript(text)
        except Exception:
            logger.exception("Transcript callback raised")

    def _fail(self, code: str, message: str) -> None:
        self._transition(SessionState.ERROR)
        self._emit_error(code, message)
        self._transition(SessionState.IDLE)

    def _emit_error(self, code: str, message: str) -> None:
        self._error = ERROR_MESSAGES.get(code, ERROR_MESSAGES[RECOGNITION_FAILED])
        if self._on_error:
            try:
                self._on_error(code, message)
            except Exception:
                logger.exception("Error callback raised")

    def _transition(self, to_state: SessionState) -> None:
        from_state = self._state
        if from_state == to_state:
            return
        self._state = to_state
        logger.debug(f"{from_state.value} -> {to_state.value}")
        if self._on_state_change:
            try:
                self._on_state_change(from_state, to_state)
            except Exception:
                logger.exception("State change callback raised")
