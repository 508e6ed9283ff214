from __future__ import annotations

import json
import os
import random
import time
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Any, List

from .config import AppSettings
from .models import LogEntry

RESULTS_FILE = "ai_results.json"
DEFAULT_LIMIT = 100
REPLACE_ATTEMPTS = 8


def write_json_atomic(path: Path, data: Any) -> None:
    """Write ``data`` as pretty JSON next to ``path`` and swap it into place."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with NamedTemporaryFile("w", delete=False, encoding="utf-8", dir=str(path.parent), suffix=".tmp") as tmp:
        tmp.write(json.dumps(data, ensure_ascii=False, indent=2))
        tmp_path = Path(tmp.name)

    try:
        # Readers on Windows can hold the target open for a moment.
        for attempt in range(REPLACE_ATTEMPTS):
            try:
                os.replace(tmp_path, path)
                return
            except PermissionError:
                if attempt == REPLACE_ATTEMPTS - 1:
                    raise
                time.sleep(0.05 * (attempt + 1) + random.random() * 0.02)
    except OSError:
        tmp_path.unlink(missing_ok=True)
        raise


class ResultStore:
    """History of AI results kept as a JSON array inside the screenshot folder.

    One entry per screenshot file name; the newest ``limit`` entries are kept.
    Items that are not objects are left in the array untouched.
    Single writer only: the capture session serialises all calls.
    """

    def __init__(self, folder: Path, limit: int = DEFAULT_LIMIT, log=None):
        self.folder = folder
        self.path = folder / RESULTS_FILE
        self.limit = limit if limit and limit > 0 else DEFAULT_LIMIT
        self._logger = log

    @classmethod
    def from_settings(cls, settings: AppSettings, log=None) -> "ResultStore":
        return cls(settings.screenshot_folder, settings.log_limit, log)

    def entries(self) -> List[Any]:
        return self._load()

    def save(self, entry: LogEntry | dict[str, Any]) -> Path:
        data = entry.to_dict() if isinstance(entry, LogEntry) else dict(entry)
        entries = self._load()

        for existing in entries:
            if isinstance(existing, dict) and existing.get("file") == data.get("file"):
                existing.update(data)
                break
        else:
            entries.append(data)

        if len(entries) > self.limit:
            entries = entries[-self.limit:]

        write_json_atomic(self.path, entries)
        return self.path

    def remove(self, file_name: str) -> Path:
        entries = self._load()
        filtered = [item for item in entries if not (isinstance(item, dict) and item.get("file") == file_name)]
        if len(filtered) == len(entries):
            return self.path

        write_json_atomic(self.path, filtered)
        return self.path

    def _load(self) -> List[Any]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            if self._logger:
                self._logger.warning("Ignoring malformed AI log %s: %s", self.path, exc)
            return []
        if not isinstance(data, list):
            return []
        return data
