from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from .config import AppSettings
from .hotkeys import shortcut_display
from .models import (
    ENHANCEABLE_STATUSES,
    AIStatus,
    AssistResult,
    CaptureRecord,
    LogEntry,
    OperationResult,
)
from .storage import ResultStore

# confirm(title, message, detail, buttons) -> label of the clicked button, or None
ConfirmDialog = Callable[[str, str, str, list], Optional[str]]


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class CaptureSession:
    """Owns the current capture and drives describe/enhance/delete for it.

    At most one capture and one enhancement run at a time. Both are guarded by
    flags checked under ``_lock``; the AI calls themselves run outside it.
    Every capture bumps ``generation`` and late AI results for an older
    generation are dropped.
    """

    def __init__(
        self,
        settings: AppSettings,
        client,
        capture_manager,
        publisher,
        log,
        *,
        notify: Callable[[str], None] | None = None,
        persist_config: Callable[[dict[str, Any]], None] | None = None,
    ):
        self.settings = settings
        self._client = client
        self._capture_manager = capture_manager
        self._publisher = publisher
        self._logger = log
        self._notify_callback = notify
        self._persist_config = persist_config
        self._lock = threading.RLock()

        self.record: CaptureRecord | None = None
        self.capture_in_progress = False
        self.enhance_in_progress = False
        self.generation = 0
        self.registered_shortcut: str | None = None

    @property
    def ai_enabled(self) -> bool:
        return self.settings.ai_enabled

    @property
    def shortcut(self) -> str:
        return shortcut_display(self.registered_shortcut, self.settings.capture_shortcut)

    def store(self) -> ResultStore:
        return ResultStore.from_settings(self.settings, self._logger)

    # ------------------------------------------------------------------
    # capture + describe

    def trigger_capture(self) -> CaptureRecord | None:
        with self._lock:
            if self.capture_in_progress:
                self._logger.warning("Capture already in progress; ignoring trigger")
                return None
            self.capture_in_progress = True

        try:
            return self._run_capture()
        finally:
            with self._lock:
                self.capture_in_progress = False

    def _run_capture(self) -> CaptureRecord | None:
        settings = self.settings
        try:
            captured = self._capture_manager.capture(settings.screenshot_folder)
        except Exception as exc:
            self._logger.exception("Failed to capture screenshot: %s", exc)
            self._notify("Failed to capture screenshot. Check logs for details.")
            return None

        ai_enabled = settings.ai_enabled
        with self._lock:
            self.generation += 1
            record = CaptureRecord(
                file_name=captured.file_name,
                file_path=captured.file_path,
                timestamp=_now_iso(),
                ai_status=AIStatus.PENDING if ai_enabled else AIStatus.DISABLED,
                generation=self.generation,
            )
            self.record = record
            self._publish(
                status="captured",
                message="Screenshot captured. Running AI analysis..." if ai_enabled else "Screenshot captured.",
            )
        self._notify("Screenshot captured!")

        if ai_enabled:
            self._describe(record)
        return record

    def _describe(self, record: CaptureRecord) -> None:
        try:
            result = self._client.describe(record.file_path)
        except Exception as exc:
            self._logger.exception("AI analysis failed for %s: %s", record.file_name, exc)
            with self._lock:
                if not self._is_current(record):
                    return
                record.ai_status = AIStatus.ERROR
                record.actions = []
                record.resources = []
                self._publish(
                    status="ai-error",
                    message="AI analysis failed. Check logs for details.",
                    error=str(exc),
                )
            self._notify("AI analysis failed. Check logs for details.")
            return

        with self._lock:
            if not self._is_current(record):
                self._logger.debug("Discarding AI result for replaced capture %s", record.file_name)
                return

            if result is None or not result.description:
                record.ai_status = AIStatus.SKIPPED
                record.actions = []
                record.resources = []
                self._publish(
                    status="ai-skipped",
                    message="AI description unavailable. Check API key configuration.",
                )
                return

            record.ai_status = AIStatus.COMPLETE
            record.ai_description = result.description
            record.ai_model = result.model
            record.ai_response_id = result.response_id
            record.actions = list(result.actions)
            record.resources = list(result.resources)
            entry = LogEntry(
                file=record.file_name,
                ai_description=result.description,
                timestamp=record.timestamp,
                model=result.model,
                response_id=result.response_id,
                actions=list(record.actions),
                resources=list(record.resources),
            )

        self._save_entry(entry)

        with self._lock:
            if self._is_current(record):
                self._publish(
                    status="ai-complete",
                    message="AI summary ready.",
                    aiDescription=result.description,
                )
        self._notify(f"AI: {result.description}")

    # ------------------------------------------------------------------
    # enhance

    def enhance(self) -> OperationResult:
        with self._lock:
            record = self.record
            if record is None:
                return OperationResult.failure("No capture available")
            if not self.ai_enabled:
                return OperationResult.failure("AI is disabled")
            if self.enhance_in_progress:
                return OperationResult.failure("Enhancement already running")
            if record.ai_status not in ENHANCEABLE_STATUSES:
                return OperationResult.failure(f"Cannot enhance while status is {record.ai_status.value}")

            self.enhance_in_progress = True
            previous_status = record.ai_status
            record.ai_status = AIStatus.ENHANCING
            self._publish(status="enhancing", message="Requesting enhanced description...")

        try:
            return self._run_enhance(record, previous_status)
        finally:
            with self._lock:
                self.enhance_in_progress = False

    def _run_enhance(self, record: CaptureRecord, previous_status: AIStatus) -> OperationResult:
        try:
            result = self._client.describe(record.file_path, prompt=self.settings.ai_enhance_prompt)
        except Exception as exc:
            self._logger.exception("AI enhancement failed for %s: %s", record.file_name, exc)
            with self._lock:
                self.enhance_in_progress = False
                if self._is_current(record):
                    record.ai_status = previous_status
                    self._publish(
                        status="ai-error",
                        message="AI enhancement failed. Check logs for details.",
                        error=str(exc),
                    )
            self._notify("AI enhancement failed. Check logs for details.")
            return OperationResult.failure(str(exc))

        with self._lock:
            if not self._is_current(record):
                self._logger.debug("Discarding enhancement for replaced capture %s", record.file_name)
                return OperationResult.failure("Capture changed during enhancement")

            if result is None or not result.description:
                record.ai_status = AIStatus.ENHANCED
                self.enhance_in_progress = False
                self._publish(status="ai-enhanced", message="AI enhancement returned no additional details.")
                return OperationResult.failure("No enhanced description returned")

            entry = self._apply_enhancement(record, result)

        self._save_entry(entry)

        with self._lock:
            self.enhance_in_progress = False
            if self._is_current(record):
                self._publish(
                    status="ai-enhanced",
                    message="Enhanced description ready.",
                    aiEnhancedDescription=result.description,
                )
        self._notify("AI enhancement ready.")
        return OperationResult(ok=True)

    def _apply_enhancement(self, record: CaptureRecord, result: AssistResult) -> LogEntry:
        record.ai_status = AIStatus.ENHANCED
        record.ai_enhanced_description = result.description
        record.ai_model = result.model
        record.ai_response_id = result.response_id
        # An enhancement without suggestions keeps the earlier ones.
        if result.actions:
            record.actions = list(result.actions)
        if result.resources:
            record.resources = list(result.resources)

        return LogEntry(
            file=record.file_name,
            ai_description=record.ai_description,
            ai_enhanced_description=result.description,
            timestamp=record.timestamp,
            model=result.model,
            response_id=result.response_id,
            actions=list(record.actions),
            resources=list(record.resources),
            enhanced_actions=list(result.actions),
            enhanced_resources=list(result.resources),
        )

    # ------------------------------------------------------------------
    # delete

    def delete(self) -> OperationResult:
        with self._lock:
            record = self.record
        if record is None:
            return OperationResult.failure("Nothing to delete")

        try:
            self._capture_manager.delete(record.file_path)
        except OSError as exc:
            self._logger.exception("Failed to delete screenshot file %s: %s", record.file_path, exc)
            with self._lock:
                self._publish(
                    status="delete-error",
                    message="Failed to delete screenshot. Check logs for details.",
                    error=str(exc),
                )
            return OperationResult.failure(str(exc))

        try:
            self.store().remove(record.file_name)
        except Exception as exc:
            self._logger.warning("Failed to prune AI log for deleted screenshot %s: %s", record.file_name, exc)

        with self._lock:
            if self.record is record:
                self.record = None
        self._logger.info("Screenshot deleted: %s", record.file_name)
        self._notify("Screenshot deleted.")
        self._publisher.hide()
        return OperationResult(ok=True, deleted_file=record.file_name)

    # ------------------------------------------------------------------
    # suggestions

    def handle_action(
        self,
        raw: Any,
        confirm: ConfirmDialog,
        copy_text: Callable[[str], None],
    ) -> OperationResult:
        if not isinstance(raw, dict):
            return OperationResult.failure("Invalid action payload")

        title = _text(raw.get("title"))
        command = _text(raw.get("command"))
        notes = _text(raw.get("notes"))
        if not title.strip() and not command.strip():
            return OperationResult.failure("Action requires a title or command")
        title = title.strip() or "Suggested action"

        buttons = ["Copy to Clipboard", "Cancel"] if command else ["OK", "Cancel"]
        detail = "\n\n".join(part for part in (command, notes) if part)
        choice = confirm("Confirm Assistant Action", title, detail, buttons)

        if choice != buttons[0]:
            self._logger.info("Assistant action cancelled: %s", title)
            return OperationResult(ok=False, cancelled=True)

        if command:
            copy_text(command)
            self._logger.info("Assistant action copied to clipboard: %s", title)
            return OperationResult(ok=True, copied=True)

        self._logger.info("Assistant action acknowledged: %s", title)
        return OperationResult(ok=True)

    def handle_resource(
        self,
        raw: Any,
        confirm: ConfirmDialog,
        copy_text: Callable[[str], None],
        open_url: Callable[[str], Any],
    ) -> OperationResult:
        if not isinstance(raw, dict):
            return OperationResult.failure("Invalid resource payload")

        title = _text(raw.get("title")) or "Reference"
        url = _text(raw.get("url")).strip()
        reason = _text(raw.get("reason"))
        if not url:
            return OperationResult.failure("Resource is missing a URL")

        buttons = ["Open Link", "Copy URL", "Cancel"]
        detail = "\n\n".join(part for part in (url, reason) if part)
        choice = confirm("Open Suggested Resource", title, detail, buttons)

        if choice == "Open Link":
            try:
                open_url(url)
            except Exception as exc:
                self._logger.error("Failed to open assistant resource %s: %s", url, exc)
                return OperationResult.failure(str(exc))
            self._logger.info("Opened assistant resource: %s (%s)", title, url)
            return OperationResult(ok=True, opened=True)

        if choice == "Copy URL":
            copy_text(url)
            self._logger.info("Assistant resource URL copied: %s (%s)", title, url)
            return OperationResult(ok=True, copied=True)

        self._logger.info("Assistant resource dismissed: %s", title)
        return OperationResult(ok=False, cancelled=True)

    # ------------------------------------------------------------------
    # configuration

    def set_ai_enabled(self, enabled: bool) -> None:
        with self._lock:
            self.settings = replace(self.settings, ai_enabled=enabled)
            if self._persist_config:
                try:
                    self._persist_config({"ai_enabled": enabled})
                except Exception as exc:
                    self._logger.error("Failed to persist AI toggle: %s", exc)
            self._logger.info("AI toggled: %s", "enabled" if enabled else "disabled")
            if self.record is not None:
                self._publish()
        self._notify(f"AI {'enabled' if enabled else 'disabled'}")

    def toggle_ai(self) -> bool:
        enabled = not self.ai_enabled
        self.set_ai_enabled(enabled)
        return enabled

    def reload_config(self, settings: AppSettings) -> None:
        with self._lock:
            self.settings = settings
            self._logger.info("Config reloaded")
            if self.record is not None:
                self._publish()

    # ------------------------------------------------------------------
    # popup projection

    def build_payload(self, **partial: Any) -> dict[str, Any]:
        with self._lock:
            record = self.record
            status = record.ai_status if record else AIStatus.IDLE
            has_description = bool(record and record.ai_description)
            payload: dict[str, Any] = {
                "fileName": record.file_name if record else None,
                "filePath": str(record.file_path) if record else None,
                "timestamp": record.timestamp if record else _now_iso(),
                "aiStatus": status.value,
                "aiDescription": record.ai_description if record else None,
                "aiEnhancedDescription": record.ai_enhanced_description if record else None,
                "actions": [item.to_dict() for item in record.actions] if record else [],
                "resources": [item.to_dict() for item in record.resources] if record else [],
                "canEnhance": (
                    self.ai_enabled
                    and has_description
                    and not self.enhance_in_progress
                    and status in ENHANCEABLE_STATUSES
                ),
                "canDelete": record is not None,
                "shortcut": self.shortcut,
            }
        payload.update(partial)
        return payload

    def _publish(self, **partial: Any) -> None:
        self._publisher.publish(self.build_payload(**partial))

    def _is_current(self, record: CaptureRecord) -> bool:
        return self.record is record and record.generation == self.generation

    def _save_entry(self, entry: LogEntry) -> None:
        try:
            path = self.store().save(entry)
        except Exception as exc:
            self._logger.exception("Failed to save AI result for %s: %s", entry.file, exc)
            return
        self._logger.info("AI result saved to %s", path)

    def _notify(self, message: str) -> None:
        if self._notify_callback is None:
            return
        try:
            self._notify_callback(message)
        except Exception as exc:
            self._logger.warning("Notification failed: %s", exc)


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""
