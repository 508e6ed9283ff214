from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path


class CaptureError(RuntimeError):
    pass


@dataclass(frozen=True)
class CapturedFile:
    file_name: str
    file_path: Path


def screenshot_file_name(ts: datetime) -> str:
    return f"Screenshot_{ts.strftime('%Y-%m-%d_%H-%M-%S')}.png"


class CaptureManager:
    """Saves the primary display as a timestamped PNG in the screenshot folder."""

    def __init__(self, log, clock=datetime.now):
        self._logger = log
        self._clock = clock

    def capture(self, folder: Path) -> CapturedFile:
        folder = folder.resolve()
        folder.mkdir(parents=True, exist_ok=True)
        name = screenshot_file_name(self._clock())
        path = folder / name

        try:
            # Imported here: pyautogui needs a display as soon as it loads.
            import pyautogui

            screenshot = pyautogui.screenshot()
            screenshot.save(path, format="PNG")
        except Exception as exc:
            raise CaptureError(f"Screen capture failed: {exc}") from exc

        self._logger.info("Screenshot captured: %s", path)
        return CapturedFile(file_name=name, file_path=path)

    def delete(self, path: Path) -> bool:
        """Remove a capture. Returns False when the file was already gone."""
        try:
            path.unlink()
        except FileNotFoundError:
            self._logger.debug("Capture %s already removed", path)
            return False
        self._logger.debug("Deleted capture %s", path)
        return True
