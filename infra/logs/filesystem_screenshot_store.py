from __future__ import annotations

import re
from pathlib import Path

from domain.ports import ClockPort


class FileSystemScreenshotStore:
    """
    Stores audit screenshots under ``<base_dir>/<workflow_id>/``.

    Files are numbered per workflow so a directory listing reads in capture
    order. With a clock, the capture time in epoch milliseconds is appended
    to the name.
    """

    def __init__(self, base_dir: str = "screenshots", *, clock: ClockPort | None = None) -> None:
        self._base_dir = Path(base_dir)
        self._clock = clock
        self._step_counter: dict[str, int] = {}

    def save_screenshot(self, workflow_id: str, name: str, image_bytes: bytes) -> str:
        run_dir = self._base_dir / self._safe(workflow_id)
        run_dir.mkdir(parents=True, exist_ok=True)
        count = self._step_counter.get(workflow_id, 0) + 1
        self._step_counter[workflow_id] = count
        stem = f"{count:03d}_{self._safe(name)}"
        if self._clock is not None:
            stem += f"-{int(self._clock.now().timestamp() * 1000)}"
        path = run_dir / f"{stem}.png"
        path.write_bytes(image_bytes)
        return str(path)

    @staticmethod
    def _safe(name: str) -> str:
        cleaned = re.sub(r"[^A-Za-z0-9_-]+", "_", name).strip("_")
        return cleaned or "step"
