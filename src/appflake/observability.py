"""Structured logging for pipeline phases."""

from __future__ import annotations

import json
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

Level = Literal["debug", "info", "warning", "error"]


@dataclass(slots=True)
class StructuredLogger:
    records: list[dict[str, Any]] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def log(
        self,
        *,
        operation: str,
        platform: str | None,
        phase: str | None,
        component: str | None,
        message: str,
        level: Level = "info",
        extra: dict[str, Any] | None = None,
    ) -> None:
        record: dict[str, Any] = {
            "level": level,
            "operation": operation,
            "platform": platform,
            "phase": phase,
            "component": component,
            "message": message,
        }
        if extra is not None:
            record["extra"] = extra
        # Platforms may log from worker threads.
        with self._lock:
            self.records.append(record)

    def records_for_platform(self, platform: str) -> list[dict[str, Any]]:
        return [record for record in self.records if record.get("platform") == platform]

    def phases_for_platform(self, platform: str) -> list[str]:
        return [
            record["phase"]
            for record in self.records_for_platform(platform)
            if record.get("phase") is not None
        ]

    def to_json_lines(self, path: str | Path) -> Path:
        output_path = Path(path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        lines = [json.dumps(record, sort_keys=True) for record in self.records]
        output_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return output_path
