from __future__ import annotations

import os
import subprocess
import sys
import threading
import webbrowser
from pathlib import Path
from typing import Any, Callable

import psutil
import pyautogui
import pyperclip
import pystray
from PIL import Image, ImageDraw
from pynput import keyboard

from screensense.ai_client import AssistClient
from screensense.capture import CaptureManager
from screensense.config import config_path, get_settings, update_config_file
from screensense.hotkeys import shortcut_candidates, to_pynput_hotkey
from screensense.logging_utils import init_logger, log_file_path
from screensense.popup import STATE_FILE, PopupPublisher
from screensense.session import CaptureSession

APP_NAME = "ScreenSense"
LOGGER_NAME = "screensense"
CONFIG_POLL_SECONDS = 2.0


class ConfigWatcher:
    """Polls the config file and hands fresh settings to ``on_change``."""

    def __init__(self, path: Path, on_change: Callable[[], None], log, interval: float = CONFIG_POLL_SECONDS):
        self._path = path
        self._on_change = on_change
        self._logger = log
        self._interval = interval
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._last_mtime = self._mtime()

    def start(self) -> None:
        if self._thread:
            return
        self._thread = threading.Thread(target=self._run, name="config-watcher", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop_event.set()

    def _mtime(self) -> float | None:
        try:
            return self._path.stat().st_mtime
        except OSError:
            return None

    def _run(self) -> None:
        while not self._stop_event.wait(self._interval):
            mtime = self._mtime()
            if mtime is None or mtime == self._last_mtime:
                continue
            self._last_mtime = mtime
            try:
                self._on_change()
            except Exception as exc:
                self._logger.error("Failed to reload config: %s", exc)


class TrayController:
    def __init__(self) -> None:
        settings = get_settings()
        self.logger = init_logger(LOGGER_NAME, settings.logging.directory, settings.logging.level)
        self.log_path = log_file_path(LOGGER_NAME, settings.logging.directory)
        self.publisher = PopupPublisher(self.logger, settings.data_dir / STATE_FILE)
        self.session = CaptureSession(
            settings,
            AssistClient(lambda: self.session.settings, self.logger),
            CaptureManager(self.logger),
            self.publisher,
            self.logger,
            notify=self._notify,
            persist_config=update_config_file,
        )
        self._hotkeys: keyboard.GlobalHotKeys | None = None
        self._stop_event = threading.Event()
        self.watcher = ConfigWatcher(config_path(), self._reload_config, self.logger)
        self.icon = pystray.Icon(
            APP_NAME,
            _create_icon(settings.ai_enabled),
            self._tooltip(),
            self._build_menu(),
        )

    def run(self) -> None:
        self.logger.info("%s starting", APP_NAME)
        self.register_capture_shortcut()
        self.watcher.start()
        self.icon.run_detached()
        try:
            self._stop_event.wait()
        except KeyboardInterrupt:
            self.logger.info("KeyboardInterrupt received; stopping tray icon")
        finally:
            self._shutdown()

    def _shutdown(self) -> None:
        self.watcher.stop()
        if self._hotkeys:
            self._hotkeys.stop()
            self._hotkeys = None
        try:
            self.icon.stop()
        except Exception as exc:
            self.logger.debug("Tray icon stop failed: %s", exc)
        self.logger.info("%s shutting down", APP_NAME)

    # ------------------------------------------------------------------
    # menu

    def _build_menu(self) -> pystray.Menu:
        return pystray.Menu(
            pystray.MenuItem("Capture Screenshot Now", lambda *_: self._in_background(self._capture, "capture")),
            pystray.MenuItem(
                "Enhance Description",
                lambda *_: self._in_background(self._enhance, "enhance"),
                enabled=lambda _: bool(self.session.build_payload()["canEnhance"]),
            ),
            pystray.MenuItem("Suggested Actions", pystray.Menu(self._action_items)),
            pystray.MenuItem("Suggested Resources", pystray.Menu(self._resource_items)),
            pystray.MenuItem(
                "Delete Screenshot",
                lambda *_: self._in_background(self._delete, "delete"),
                enabled=lambda _: self.session.record is not None,
            ),
            pystray.Menu.SEPARATOR,
            pystray.MenuItem(
                lambda _: "Disable AI" if self.session.ai_enabled else "Enable AI",
                self._toggle_ai,
            ),
            pystray.MenuItem("Open Screenshot Folder", self._open_screenshots),
            pystray.MenuItem("View Log", self._open_log),
            pystray.Menu.SEPARATOR,
            pystray.MenuItem("Exit", self._quit),
        )

    def _action_items(self):
        record = self.session.record
        actions = list(record.actions) if record else []
        if not actions:
            yield pystray.MenuItem("(none)", None, enabled=False)
            return
        for action in actions:
            payload = action.to_dict()
            yield pystray.MenuItem(
                action.title,
                lambda *_, payload=payload: self._in_background(lambda: self._run_action(payload), "action"),
            )

    def _resource_items(self):
        record = self.session.record
        resources = list(record.resources) if record else []
        if not resources:
            yield pystray.MenuItem("(none)", None, enabled=False)
            return
        for resource in resources:
            payload = resource.to_dict()
            yield pystray.MenuItem(
                resource.title,
                lambda *_, payload=payload: self._in_background(lambda: self._run_resource(payload), "resource"),
            )

    def _tooltip(self) -> str:
        return f"{APP_NAME} | AI {'ON' if self.session.ai_enabled else 'OFF'} | Shortcut: {self.session.shortcut}"

    def _refresh(self) -> None:
        try:
            self.icon.icon = _create_icon(self.session.ai_enabled)
            self.icon.title = self._tooltip()
            self.icon.update_menu()
        except Exception as exc:
            self.logger.debug("Tray refresh failed: %s", exc)

    # ------------------------------------------------------------------
    # session operations

    def _in_background(self, target: Callable[[], Any], name: str) -> None:
        def runner() -> None:
            try:
                target()
            except Exception:
                self.logger.exception("%s failed", name)
            finally:
                self._refresh()

        threading.Thread(target=runner, name=name, daemon=True).start()

    def _capture(self) -> None:
        self.session.trigger_capture()

    def _enhance(self) -> None:
        result = self.session.enhance()
        if not result.ok and result.error:
            self.logger.info("Enhance request not completed: %s", result.error)

    def _delete(self) -> None:
        result = self.session.delete()
        if not result.ok:
            self._notify(f"Delete failed: {result.error}")

    def _run_action(self, payload: dict[str, Any]) -> None:
        result = self.session.handle_action(payload, _confirm, pyperclip.copy)
        if result.error:
            self._notify(result.error)

    def _run_resource(self, payload: dict[str, Any]) -> None:
        result = self.session.handle_resource(payload, _confirm, pyperclip.copy, webbrowser.open)
        if result.error:
            self._notify(result.error)

    def _toggle_ai(self, *_: Any) -> None:
        self.session.toggle_ai()
        self._refresh()

    def _reload_config(self) -> None:
        self.session.reload_config(get_settings())
        self.register_capture_shortcut()

    # ------------------------------------------------------------------
    # hotkey

    def register_capture_shortcut(self) -> None:
        if self._hotkeys:
            self._hotkeys.stop()
            self._hotkeys = None
        self.session.registered_shortcut = None

        candidates = shortcut_candidates(self.session.settings.capture_shortcut)
        for candidate in candidates:
            try:
                hotkeys = keyboard.GlobalHotKeys({to_pynput_hotkey(candidate): self._on_hotkey(candidate)})
                hotkeys.start()
            except Exception as exc:
                self.logger.warning("Failed to register shortcut candidate %s: %s", candidate, exc)
                continue
            self._hotkeys = hotkeys
            self.session.registered_shortcut = candidate
            self.logger.info("Capture shortcut registered: %s", candidate)
            break

        if not self._hotkeys:
            display = candidates[0] if candidates else "Not set"
            self.logger.error("Unable to register any capture shortcuts: %s", candidates)
            self._notify(f"{APP_NAME} could not register shortcut {display}.")

        self._refresh()

    def _on_hotkey(self, shortcut: str) -> Callable[[], None]:
        def handler() -> None:
            self.logger.info("Capture shortcut pressed: %s", shortcut)
            self._in_background(self._capture, "capture")

        return handler

    # ------------------------------------------------------------------
    # shell

    def _notify(self, message: str) -> None:
        try:
            self.icon.notify(message, APP_NAME)
        except Exception:
            self.logger.info("Notification (fallback): %s", message)

    def _open_screenshots(self, *_: Any) -> None:
        self._open_path(self.session.settings.screenshot_folder, create=True)

    def _open_log(self, *_: Any) -> None:
        self._open_path(self.log_path)

    def _open_path(self, path: Path, create: bool = False) -> None:
        try:
            if create:
                path.mkdir(parents=True, exist_ok=True)
            if sys.platform == "win32":
                os.startfile(path)  # type: ignore[attr-defined]
            elif sys.platform == "darwin":
                subprocess.Popen(["open", str(path)])
            else:
                subprocess.Popen(["xdg-open", str(path)])
        except Exception as exc:
            self.logger.warning("Failed to open %s: %s", path, exc)

    def _quit(self, icon: Any, _: Any) -> None:
        self._stop_event.set()
        icon.stop()


def _confirm(title: str, message: str, detail: str, buttons: list) -> str | None:
    text = f"{message}\n\n{detail}" if detail else message
    return pyautogui.confirm(text=text, title=title, buttons=buttons)


def _create_icon(ai_enabled: bool) -> Image.Image:
    size = 64
    accent = (46, 160, 103) if ai_enabled else (120, 124, 130)
    image = Image.new("RGB", (size, size), (20, 26, 33))
    draw = ImageDraw.Draw(image)
    draw.ellipse((6, 6, size - 6, size - 6), fill=accent)
    draw.rectangle((18, 18, size - 18, size - 18), fill=(255, 255, 255))
    draw.text((26, 20), "S", fill=(20, 26, 33))
    return image


def _already_running() -> bool:
    script = Path(__file__).resolve().name.lower()
    own_pid = os.getpid()
    for proc in psutil.process_iter(attrs=["pid", "cmdline"], ad_value=None):
        if proc.info.get("pid") == own_pid:
            continue
        try:
            cmdline = proc.info.get("cmdline") or []
        except (psutil.NoSuchProcess, psutil.AccessDenied, PermissionError, OSError):
            continue
        if any(str(part).lower().endswith(script) for part in cmdline) and any(
            "python" in str(part).lower() for part in cmdline[:1]
        ):
            return True
    return False


def main() -> None:
    if _already_running():
        print(f"{APP_NAME} is already running in the tray.")
        return
    tray = TrayController()
    tray.run()


if __name__ == "__main__":
    main()
