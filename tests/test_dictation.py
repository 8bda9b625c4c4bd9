from __future__ import annotations

import sys
from pathlib import Path

import pytest
from loguru import logger

from config import ENDPOINT_ENV_VAR, JsonConfigStore
from dictation import configure_logging, start_session
from models import SessionState
from recognizer import SpeechRecognitionFallback
from recorder import SoundDeviceRecorder
from transcription_client import HttpTranscriptionClient


@pytest.mark.asyncio
async def test_start_session_wires_adapters_from_config(tmp_path: Path, monkeypatch) -> None:  # noqa: ANN001
    monkeypatch.delenv(ENDPOINT_ENV_VAR, raising=False)
    store = JsonConfigStore(path=tmp_path / "config.json")
    store.set_endpoint_url("http://civic.example/api/transcribe")
    store.set_auto_stop_s(12)
    store.set_fallback_only(True)
    store.set_fallback_engine("sphinx")

    transcripts: list[str] = []
    async with start_session("mr", transcripts.append, config_store=store) as session:
        assert session.state == SessionState.IDLE
        assert session.is_listening is False
        assert session.error is None
        assert session.language_code == "mr"
        assert session._auto_stop_s == 12.0
        assert session._fallback_only is True
        assert isinstance(session._capture._device, SoundDeviceRecorder)
        assert isinstance(session._transcriber, HttpTranscriptionClient)
        assert session._transcriber.endpoint_url == "http://civic.example/api/transcribe"
        assert isinstance(session._fallback, SpeechRecognitionFallback)
        assert session._fallback.engine == "sphinx"

    assert session.disposed is True


def test_configure_logging_routes_module_logs_to_sink() -> None:
    messages: list[str] = []
    try:
        configure_logging(level="DEBUG", sink=messages.append)
        logger.bind(module="session_controller").debug("IDLE -> ACQUIRING")
        logger.info("unbound message")
    finally:
        logger.remove()
        logger.add(sys.stderr)

    assert len(messages) == 1
    assert "session_controller | IDLE -> ACQUIRING" in messages[0]
