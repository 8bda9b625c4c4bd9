"""Composition root: wires the platform adapters into a SessionController."""

from __future__ import annotations

import sys
from typing import Any, Optional

from loguru import logger

from config import JsonConfigStore
from interfaces import ConfigStore
from recognizer import SpeechRecognitionFallback
from recorder import SoundDeviceRecorder
from session_controller import ErrorCallback, SessionController, StateCallback, TranscriptCallback
from transcription_client import HttpTranscriptionClient


def configure_logging(level: str = "INFO", sink: Any = sys.stderr) -> None:
    """Replace loguru's default handler; for hosts that want console output."""
    logger.remove()
    logger.add(
        sink,
        level=level,
        format="{time:HH:mm:ss} | {level: <8} | {extra[module]} | {message}",
        filter=lambda record: "module" in record["extra"],
    )


def start_session(
    language_code: str,
    on_transcript: TranscriptCallback,
    *,
    config_store: Optional[ConfigStore] = None,
    on_error: Optional[ErrorCallback] = None,
    on_state_change: Optional[StateCallback] = None,
) -> SessionController:
    """Build a dictation session for the host.

    The returned controller exposes ``is_listening``, ``toggle()``, ``error``
    and ``dispose()``; use it as an async context manager to guarantee
    release on every exit path.
    """
    store = config_store or JsonConfigStore()
    auto_stop_s = store.get_auto_stop_s()
    return SessionController(
        device=SoundDeviceRecorder(),
        transcriber=HttpTranscriptionClient(
            endpoint_url=store.get_endpoint_url(),
            request_timeout_s=store.get_request_timeout_s(),
        ),
        fallback=SpeechRecognitionFallback(
            engine=store.get_fallback_engine(),
            phrase_time_limit_s=auto_stop_s,
        ),
        on_transcript=on_transcript,
        language_code=language_code,
        auto_stop_s=auto_stop_s,
        fallback_only=store.get_fallback_only(),
        on_state_change=on_state_change,
        on_error=on_error,
    )
