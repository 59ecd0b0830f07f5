from __future__ import annotations

import json
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from fishnet.types import AnalysisResult


def analysis_event(
    result: AnalysisResult,
    *,
    source: str,
    latency_ms: float | None = None,
    timestamp: datetime | None = None,
) -> dict[str, Any]:
    when = timestamp or datetime.now(timezone.utc)
    event: dict[str, Any] = {
        "timestamp": when.isoformat(),
        "source": source,
        "result": result.to_dict(),
    }
    if latency_ms is not None:
        event["latency_ms"] = round(float(latency_ms), 3)
    return event


class JsonEventSink:
    def __init__(self, stdout_enabled: bool, file_path: str | None = None) -> None:
        self._stdout_enabled = stdout_enabled
        self._file_path = Path(file_path).expanduser().resolve() if file_path else None
        self._file_handle = None
        self._lock = threading.Lock()

    @property
    def file_path(self) -> Path | None:
        return self._file_path

    def enabled(self) -> bool:
        return self._stdout_enabled or self._file_path is not None

    def open(self) -> None:
        if self._file_path is not None:
            self._file_path.parent.mkdir(parents=True, exist_ok=True)
            self._file_handle = self._file_path.open("a", encoding="utf-8")

    def emit(self, event: dict[str, Any]) -> None:
        payload = json.dumps(event, ensure_ascii=True, sort_keys=True)
        with self._lock:
            if self._stdout_enabled:
                print(payload, flush=True)
            if self._file_handle is not None:
                self._file_handle.write(payload + "\n")
                self._file_handle.flush()

    def close(self) -> None:
        with self._lock:
            if self._file_handle is not None:
                self._file_handle.close()
                self._file_handle = None

    def __enter__(self) -> "JsonEventSink":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
