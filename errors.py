"""Shared error codes, user-facing messages and device exceptions."""

from __future__ import annotations

PERMISSION_DENIED = "PERMISSION_DENIED"
DEVICE_UNAVAILABLE = "DEVICE_UNAVAILABLE"
REMOTE_TRANSCRIPTION_FAILED = "REMOTE_TRANSCRIPTION_FAILED"
RECOGNITION_UNAVAILABLE = "RECOGNITION_UNAVAILABLE"
RECOGNITION_FAILED = "RECOGNITION_FAILED"

ERROR_MESSAGES = {
    PERMISSION_DENIED: "Microphone access denied. Please allow microphone access and try again.",
    DEVICE_UNAVAILABLE: "No microphone was found. Please connect one or type your description.",
    REMOTE_TRANSCRIPTION_FAILED: "Transcription service failed.",
    RECOGNITION_UNAVAILABLE: "Speech recognition is not available. Please type your description.",
    RECOGNITION_FAILED: "Speech recognition failed. Please type your description.",
}


class DictationError(Exception):
    """Base error carrying one of the codes above."""

    code = ""

    def __init__(self, message: str = "") -> None:
        super().__init__(message or ERROR_MESSAGES.get(self.code, self.code))
        self.message = str(self)


class DeviceError(DictationError):
    """Raised while acquiring the capture device; always terminal."""


class PermissionDenied(DeviceError):
    code = PERMISSION_DENIED


class DeviceUnavailable(DeviceError):
    code = DEVICE_UNAVAILABLE
