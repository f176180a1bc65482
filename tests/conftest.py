"""Shared test fixtures and configuration."""

import pytest
import os
from unittest.mock import Mock

from motionlab.client.gateway import GatewayResponse
from motionlab.core.registry import get_model_by_id

PRO_MODEL_ID = "kling-v2-6-motion-control-pro"


class ManualHandle:
    """Poll handle that only fires when a test ticks it."""

    def __init__(self, interval, callback):
        self.interval = interval
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class ManualScheduler:
    """Scheduler stand-in that records handles instead of starting threads."""

    def __init__(self):
        self.handles = []

    def schedule(self, interval, callback):
        handle = ManualHandle(interval, callback)
        self.handles.append(handle)
        return handle

    @property
    def active(self):
        return [h for h in self.handles if not h.cancelled]

    def tick(self):
        """Fire every active handle once."""
        for handle in self.active:
            handle.callback()


class FakeGateway:
    """Gateway returning queued responses and recording every call."""

    def __init__(self):
        self.generate_responses = []
        self.status_responses = []
        self.upload_responses = []
        self.calls = []

    def generate(self, model_id, params, api_key=""):
        self.calls.append(("generate", model_id, dict(params), api_key))
        return self.generate_responses.pop(0)

    def status(self, model_id, task_id, api_key=""):
        self.calls.append(("status", model_id, task_id, api_key))
        return self.status_responses.pop(0)

    def upload(self, path):
        self.calls.append(("upload", path))
        return self.upload_responses.pop(0)

    def count(self, operation):
        return sum(1 for call in self.calls if call[0] == operation)


@pytest.fixture
def pro_model():
    """Return the Kling Pro model descriptor."""
    return get_model_by_id(PRO_MODEL_ID)


@pytest.fixture
def valid_form():
    """Return form values that satisfy every required field."""
    return {
        "image_url": "https://files.catbox.moe/abc123.png",
        "video_url": "https://files.catbox.moe/def456.mp4",
        "prompt": "A dancer spinning on a stage",
        "character_orientation": "video",
        "cfg_scale": 0.5,
    }


@pytest.fixture
def manual_scheduler():
    return ManualScheduler()


@pytest.fixture
def fake_gateway():
    return FakeGateway()


@pytest.fixture
def gateway_response():
    """Return a factory for GatewayResponse objects."""
    return GatewayResponse


@pytest.fixture
def make_response():
    """Return a factory for mocked requests.Response objects."""

    def _make(status_code=200, json_body=None, text="", content_type="application/json"):
        response = Mock()
        response.status_code = status_code
        response.ok = 200 <= status_code < 400
        response.headers = {"content-type": content_type} if content_type else {}
        response.text = text
        if json_body is None:
            response.json.side_effect = ValueError("No JSON object could be decoded")
        else:
            response.json.return_value = json_body
        return response

    return _make


@pytest.fixture
def mock_session():
    """Return a mocked requests.Session."""
    return Mock()


@pytest.fixture
def test_api_key():
    """Return a test API key."""
    return "fpk_test_key_12345"


# Skip integration tests unless explicitly requested
def pytest_collection_modifyitems(config, items):
    """Automatically skip integration tests unless RUN_INTEGRATION_TESTS is set."""
    skip_integration = pytest.mark.skip(reason="Integration tests disabled (set RUN_INTEGRATION_TESTS=true to enable)")

    for item in items:
        if "integration" in item.keywords:
            if not os.getenv("RUN_INTEGRATION_TESTS", "").lower() == "true":
                item.add_marker(skip_integration)
