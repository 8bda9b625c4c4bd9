"""Tests for SoundDeviceRecorder."""

from __future__ import annotations

import asyncio
from unittest.mock import MagicMock

import numpy as np
import pytest

import recorder as rec_mod
from errors import DeviceUnavailable, PermissionDenied
from recorder import SoundDeviceRecorder


class FakePortAudioError(Exception):
    pass


@pytest.fixture
def mock_sd(monkeypatch) -> MagicMock:  # noqa: ANN001
    sd = MagicMock()
    sd.PortAudioError = FakePortAudioError
    sd.InputStream.return_value = MagicMock()
    monkeypatch.setattr(rec_mod, "sd", sd)
    return sd


def _block(value: int, n_samples: int = 1600) -> np.ndarray:
    return np.full((n_samples, 1), value, dtype=np.int16)


# ---------------------------------------------------------------
# Open / close
# ---------------------------------------------------------------

@pytest.mark.asyncio
async def test_open_creates_and_starts_stream(mock_sd: MagicMock) -> None:
    recorder = SoundDeviceRecorder()
    await recorder.open(lambda data: None)

    mock_sd.InputStream.assert_called_once()
    kwargs = mock_sd.InputStream.call_args.kwargs
    assert kwargs["samplerate"] == 16000
    assert kwargs["channels"] == 1
    assert kwargs["dtype"] == "int16"
    assert kwargs["blocksize"] == 1600
    mock_sd.InputStream.return_value.start.assert_called_once()
    assert recorder.is_open is True

    recorder.close()
    mock_sd.InputStream.return_value.stop.assert_called_once()
    mock_sd.InputStream.return_value.close.assert_called_once()
    assert recorder.is_open is False


@pytest.mark.asyncio
async def test_open_is_idempotent(mock_sd: MagicMock) -> None:
    recorder = SoundDeviceRecorder()
    await recorder.open(lambda data: None)
    await recorder.open(lambda data: None)

    assert mock_sd.InputStream.call_count == 1
    recorder.close()


def test_close_is_idempotent_and_safe_before_open(mock_sd: MagicMock) -> None:
    recorder = SoundDeviceRecorder()
    recorder.close()
    recorder.close()
    mock_sd.InputStream.return_value.close.assert_not_called()


# ---------------------------------------------------------------
# Error classification
# ---------------------------------------------------------------

@pytest.mark.asyncio
async def test_open_without_sounddevice_is_device_unavailable(monkeypatch) -> None:  # noqa: ANN001
    monkeypatch.setattr(rec_mod, "sd", None)
    recorder = SoundDeviceRecorder()
    with pytest.raises(DeviceUnavailable, match="sounddevice is not installed"):
        await recorder.open(lambda data: None)


@pytest.mark.asyncio
async def test_no_default_input_is_device_unavailable(mock_sd: MagicMock) -> None:
    mock_sd.check_input_settings.side_effect = FakePortAudioError("Error querying device -1")
    recorder = SoundDeviceRecorder()
    with pytest.raises(DeviceUnavailable):
        await recorder.open(lambda data: None)
    mock_sd.InputStream.assert_not_called()


@pytest.mark.asyncio
async def test_permission_error_text_is_permission_denied(mock_sd: MagicMock) -> None:
    mock_sd.InputStream.side_effect = FakePortAudioError("Microphone permission denied by OS")
    recorder = SoundDeviceRecorder()
    with pytest.raises(PermissionDenied):
        await recorder.open(lambda data: None)
    assert recorder.is_open is False


@pytest.mark.asyncio
async def test_os_permission_error_is_permission_denied(mock_sd: MagicMock) -> None:
    mock_sd.InputStream.side_effect = PermissionError("blocked")
    recorder = SoundDeviceRecorder()
    with pytest.raises(PermissionDenied):
        await recorder.open(lambda data: None)


@pytest.mark.asyncio
async def test_start_failure_closes_stream(mock_sd: MagicMock) -> None:
    stream = mock_sd.InputStream.return_value
    stream.start.side_effect = FakePortAudioError("Device unavailable")
    recorder = SoundDeviceRecorder()
    with pytest.raises(DeviceUnavailable):
        await recorder.open(lambda data: None)
    stream.close.assert_called_once()
    assert recorder.is_open is False


@pytest.mark.asyncio
async def test_close_while_opening_drops_the_stream(mock_sd: MagicMock) -> None:
    recorder = SoundDeviceRecorder()
    stream = MagicMock()

    def open_then_release(**kwargs):  # noqa: ANN003
        recorder.close()
        return stream

    mock_sd.InputStream.side_effect = open_then_release
    with pytest.raises(DeviceUnavailable):
        await recorder.open(lambda data: None)
    stream.close.assert_called_once()
    stream.start.assert_not_called()
    assert recorder.is_open is False


# ---------------------------------------------------------------
# Audio callback
# ---------------------------------------------------------------

@pytest.mark.asyncio
async def test_callback_delivers_chunks_in_order(mock_sd: MagicMock) -> None:
    received: list[bytes] = []
    recorder = SoundDeviceRecorder()
    await recorder.open(received.append)

    for value in (1, 2, 3):
        await asyncio.to_thread(recorder._on_audio, _block(value), 1600, None, None)
    await asyncio.sleep(0)

    assert [np.frombuffer(chunk, dtype=np.int16)[0] for chunk in received] == [1, 2, 3]
    assert all(len(chunk) == 1600 * 2 for chunk in received)
    recorder.close()


@pytest.mark.asyncio
async def test_stop_drains_then_ignores_late_callbacks(mock_sd: MagicMock) -> None:
    received: list[bytes] = []
    recorder = SoundDeviceRecorder()
    await recorder.open(received.append)

    await asyncio.to_thread(recorder._on_audio, _block(7), 1600, None, None)
    await recorder.stop()
    mock_sd.InputStream.return_value.stop.assert_called_once()
    assert len(received) == 1

    recorder._on_audio(_block(8), 1600, None, None)
    await asyncio.sleep(0)
    assert len(received) == 1
    recorder.close()


@pytest.mark.asyncio
async def test_callback_after_close_is_noop(mock_sd: MagicMock) -> None:
    received: list[bytes] = []
    recorder = SoundDeviceRecorder()
    await recorder.open(received.append)
    recorder.close()

    recorder._on_audio(_block(1), 1600, None, None)
    await asyncio.sleep(0)
    assert received == []


@pytest.mark.asyncio
async def test_stop_before_open_is_noop(mock_sd: MagicMock) -> None:
    recorder = SoundDeviceRecorder()
    await recorder.stop()
    mock_sd.InputStream.assert_not_called()
