from __future__ import annotations

import threading
from pathlib import Path
from typing import Any, Callable, List

from .storage import write_json_atomic

STATE_FILE = "popup_state.json"

PopupListener = Callable[[dict[str, Any] | None, bool], None]


class PopupPublisher:
    """Hands popup payloads to whatever renders them.

    Keeps the latest payload, mirrors it to ``popup_state.json`` when a state
    path is given, and calls registered listeners in publish order.
    """

    def __init__(self, log, state_path: Path | None = None):
        self._logger = log
        self._state_path = state_path
        self._listeners: List[PopupListener] = []
        self._lock = threading.Lock()
        self.latest: dict[str, Any] | None = None
        self.visible = False

    def add_listener(self, listener: PopupListener) -> None:
        self._listeners.append(listener)

    def publish(self, payload: dict[str, Any]) -> None:
        with self._lock:
            self.latest = payload
            self.visible = True
            self._dispatch(payload, True)

    def hide(self) -> None:
        with self._lock:
            self.visible = False
            self._dispatch(self.latest, False)

    def _dispatch(self, payload: dict[str, Any] | None, visible: bool) -> None:
        if self._state_path:
            try:
                write_json_atomic(self._state_path, {"visible": visible, "payload": payload})
            except OSError as exc:
                self._logger.warning("Failed to write popup state: %s", exc)
        for listener in list(self._listeners):
            try:
                listener(payload, visible)
            except Exception:
                self._logger.exception("Popup listener failed")
