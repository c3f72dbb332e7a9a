import base64
import time
from datetime import datetime, timedelta, timezone

import pytest
from click.testing import CliRunner

from nitpix.core.queue_store import QueueStore
from nitpix.core.review_service import ReviewService

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00\x00\x00\rIHDR" + b"\x00" * 17


class FakeClock:
    """Clock that advances one second on every reading."""

    def __init__(self, start=datetime(2024, 1, 1, tzinfo=timezone.utc)):
        self.current = start

    def __call__(self):
        self.current += timedelta(seconds=1)
        return self.current


def wait_until(condition, timeout=5.0, interval=0.01):
    """Poll ``condition`` until it is truthy or ``timeout`` expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if condition():
            return True
        time.sleep(interval)
    return bool(condition())


def task_payload(screenshot, **overrides):
    """Create-task payload in wire (camelCase) form."""
    payload = {
        "url": "http://localhost:3000/settings",
        "note": "Make the save button bigger",
        "category": "tweak",
        "priority": "medium",
        "type": "page",
        "screenshot": screenshot,
        "page": {"component": "SettingsPage", "sourceFile": "src/pages/Settings.tsx"},
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def cli_runner():
    """Provides a Click CLI runner for testing commands."""
    return CliRunner()


@pytest.fixture
def png_bytes():
    return PNG_BYTES


@pytest.fixture
def png_b64():
    return base64.b64encode(PNG_BYTES).decode("ascii")


@pytest.fixture
def review_dir(tmp_path):
    """The .review directory of a temporary project."""
    return tmp_path / ".review"


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(review_dir, clock):
    """Create a QueueStore with a deterministic clock."""
    return QueueStore(review_dir, now=clock)


@pytest.fixture
def service(store):
    return ReviewService(store)


@pytest.fixture
def make_task(service, png_b64):
    """Factory creating tasks through the service."""
    def _make(**overrides):
        return service.create_task(task_payload(overrides.pop("screenshot", png_b64), **overrides))
    return _make


@pytest.fixture
def wait_for():
    """Provides the ``wait_until`` polling helper."""
    return wait_until


@pytest.fixture
def payload(png_b64):
    """Factory for create-task payloads."""
    def _payload(**overrides):
        return task_payload(overrides.pop("screenshot", png_b64), **overrides)
    return _payload
