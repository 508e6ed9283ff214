"""Shared fixtures: temp screenshot folder, settings factory, fake capture and AI client."""

import logging
import sys
import threading
from pathlib import Path

import pytest
from PIL import Image

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from screensense.capture import CapturedFile
from screensense.config import DEFAULT_CONFIG, build_settings
from screensense.popup import PopupPublisher
from screensense.session import CaptureSession

API_KEY_ENV = "SCREENSENSE_TEST_API_KEY"


@pytest.fixture
def logger():
    return logging.getLogger("screensense.tests")


@pytest.fixture
def screenshot_dir(tmp_path):
    folder = tmp_path / "shots"
    folder.mkdir()
    return folder


@pytest.fixture
def make_settings(screenshot_dir, monkeypatch):
    """Build AppSettings from DEFAULT_CONFIG plus overrides, API key present by default."""
    monkeypatch.setenv(API_KEY_ENV, "sk-test")

    def factory(**overrides):
        data = dict(DEFAULT_CONFIG)
        data["screenshot_folder"] = str(screenshot_dir)
        data["openai_api_key_env"] = API_KEY_ENV
        data.update(overrides)
        return build_settings(data)

    return factory


def write_png(path, size=(40, 20), color=(200, 30, 30)):
    Image.new("RGB", size, color).save(path, format="PNG")
    return path


class FakeCaptureManager:
    def __init__(self):
        self.count = 0
        self.fail_with = None

    def capture(self, folder):
        if self.fail_with:
            raise self.fail_with
        self.count += 1
        name = f"Screenshot_2026-10-18_10-00-{self.count:02d}.png"
        folder.mkdir(parents=True, exist_ok=True)
        path = folder / name
        write_png(path)
        return CapturedFile(file_name=name, file_path=path)

    def delete(self, path):
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        return True


class FakeClient:
    """Returns queued results (or raises queued exceptions) for each describe call."""

    def __init__(self, *results):
        self.results = list(results)
        self.calls = []
        self.gate = None
        self.entered = threading.Event()

    def describe(self, image_path, **kwargs):
        self.calls.append((image_path, kwargs))
        self.entered.set()
        if self.gate is not None:
            self.gate.wait(timeout=5)
        result = self.results.pop(0) if self.results else None
        if isinstance(result, Exception):
            raise result
        return result


class RecordingPublisher(PopupPublisher):
    def __init__(self, log):
        super().__init__(log)
        self.events = []
        self.add_listener(lambda payload, visible: self.events.append((payload, visible)))

    @property
    def statuses(self):
        return [payload.get("status") for payload, visible in self.events if visible and payload]


@pytest.fixture
def capture_manager():
    return FakeCaptureManager()


@pytest.fixture
def publisher(logger):
    return RecordingPublisher(logger)


@pytest.fixture
def make_session(make_settings, capture_manager, publisher, logger):
    notifications = []

    def factory(client, persist_config=None, **overrides):
        session = CaptureSession(
            make_settings(**overrides),
            client,
            capture_manager,
            publisher,
            logger,
            notify=notifications.append,
            persist_config=persist_config,
        )
        session.notifications = notifications
        return session

    return factory


@pytest.fixture
def make_png(tmp_path):
    def factory(name="image.png", size=(40, 20), color=(200, 30, 30)):
        return write_png(tmp_path / name, size=size, color=color)

    return factory


@pytest.fixture
def make_client():
    return FakeClient
