from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any


class StructuredLogger:
    """Prints one JSON object per event to stdout."""

    def __init__(self, *, min_level: str = "info") -> None:
        self._min_rank = _LEVEL_RANK.get(min_level, _LEVEL_RANK["info"])

    def debug(self, message: str, **fields: Any) -> None:
        self._emit("debug", message, fields)

    def info(self, message: str, **fields: Any) -> None:
        self._emit("info", message, fields)

    def warning(self, message: str, **fields: Any) -> None:
        self._emit("warning", message, fields)

    def error(self, message: str, **fields: Any) -> None:
        self._emit("error", message, fields)

    def _emit(self, level: str, message: str, fields: dict[str, Any]) -> None:
        if _LEVEL_RANK[level] < self._min_rank:
            return
        payload = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": level,
            "message": message,
            "fields": fields,
        }
        print(json.dumps(payload, sort_keys=True, default=str))


_LEVEL_RANK = {"debug": 10, "info": 20, "warning": 30, "error": 40}
