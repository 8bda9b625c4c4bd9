"""Simple JSON-based config store."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

ENDPOINT_ENV_VAR = "DICTATION_ENDPOINT_URL"

DEFAULTS: dict[str, Any] = {
    "endpoint_url": "http://127.0.0.1:3000/api/transcribe",
    "fallback_only": False,
    "auto_stop_s": 30.0,
    "request_timeout_s": 15.0,
    "fallback_engine": "google",
}


class JsonConfigStore:
    def __init__(self, path: Path | None = None) -> None:
        self._path = path or Path.home() / ".config" / "dictation" / "config.json"
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def get_endpoint_url(self) -> str:
        env_value = os.getenv(ENDPOINT_ENV_VAR, "")
        if env_value:
            return env_value
        return str(self._get("endpoint_url"))

    def set_endpoint_url(self, url: str) -> None:
        self._set("endpoint_url", url)

    def get_fallback_only(self) -> bool:
        return bool(self._get("fallback_only"))

    def set_fallback_only(self, enabled: bool) -> None:
        self._set("fallback_only", bool(enabled))

    def get_auto_stop_s(self) -> float:
        return self._get_float("auto_stop_s")

    def set_auto_stop_s(self, seconds: float) -> None:
        self._set("auto_stop_s", float(seconds))

    def get_request_timeout_s(self) -> float:
        return self._get_float("request_timeout_s")

    def set_request_timeout_s(self, seconds: float) -> None:
        self._set("request_timeout_s", float(seconds))

    def get_fallback_engine(self) -> str:
        return str(self._get("fallback_engine"))

    def set_fallback_engine(self, engine: str) -> None:
        self._set("fallback_engine", engine)

    def _get(self, key: str) -> Any:
        return self._read_all().get(key, DEFAULTS[key])

    def _get_float(self, key: str) -> float:
        try:
            value = float(self._get(key))
        except (TypeError, ValueError):
            return float(DEFAULTS[key])
        return value if value > 0 else float(DEFAULTS[key])

    def _set(self, key: str, value: Any) -> None:
        data = self._read_all()
        data[key] = value
        self._write_all(data)

    def _read_all(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict) -> None:
        self._path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
