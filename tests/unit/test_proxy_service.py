"""Unit tests for the proxy service."""

import io
import pytest
from unittest.mock import Mock

from motionlab.core.errors import (
    InvalidRequest,
    PayloadTooLarge,
    Unauthorized,
    UnsupportedMediaType,
    UpstreamFailure,
)
from motionlab.core.models import UploadedFile
from motionlab.core.proxy import DEFAULT_MAX_UPLOAD_BYTES, ProxyService, strip_empty_params

PRO_MODEL_ID = "kling-v2-6-motion-control-pro"


@pytest.fixture
def freepik():
    client = Mock()
    client.create_task.return_value = {"data": {"task_id": "task-1", "status": "CREATED"}}
    client.get_task_status.return_value = {"data": {"status": "IN_PROGRESS"}}
    return client


@pytest.fixture
def catbox():
    client = Mock()
    client.upload.return_value = "https://files.catbox.moe/abc.mp4"
    return client


@pytest.fixture
def service(freepik, catbox):
    return ProxyService(freepik=freepik, catbox=catbox)


def _file(content_type="video/mp4", size=1024, filename="clip.mp4"):
    return UploadedFile(filename=filename, content_type=content_type, size=size, stream=io.BytesIO(b""))


class TestStripEmptyParams:
    """Tests for strip_empty_params."""

    def test_removes_empty_strings_and_none(self):
        assert strip_empty_params({"a": "", "b": None, "c": "x"}) == {"c": "x"}

    def test_keeps_falsy_non_empty_values(self):
        """Test that 0 and False are real values and survive."""
        params = {"cfg_scale": 0, "loop": False, "items": []}
        assert strip_empty_params(params) == params

    def test_whitespace_is_not_empty(self):
        assert strip_empty_params({"prompt": " "}) == {"prompt": " "}


class TestResolveApiKey:
    """Tests for API key precedence."""

    def test_server_key_wins(self, freepik, catbox):
        service = ProxyService(freepik=freepik, catbox=catbox, server_api_key="server-key")
        assert service.resolve_api_key("browser-key") == "server-key"
        assert service.resolve_api_key(None) == "server-key"

    def test_header_key_used_without_server_key(self, service):
        assert service.resolve_api_key("  browser-key ") == "browser-key"

    @pytest.mark.parametrize("header_key", [None, "", "   "])
    def test_no_key_is_unauthorized(self, service, header_key):
        with pytest.raises(Unauthorized):
            service.resolve_api_key(header_key)

    def test_blank_server_key_is_ignored(self, freepik, catbox):
        service = ProxyService(freepik=freepik, catbox=catbox, server_api_key="  ")
        assert service.server_api_key is None
        with pytest.raises(Unauthorized):
            service.resolve_api_key(None)


class TestGenerate:
    """Tests for ProxyService.generate."""

    def test_forwards_stripped_params(self, service, freepik, pro_model):
        """Test that the model key is removed and empty params are dropped."""
        body = {
            "model": PRO_MODEL_ID,
            "image_url": "https://x/a.png",
            "video_url": "https://x/b.mp4",
            "prompt": "",
            "cfg_scale": 0,
            "character_orientation": None,
        }

        result = service.generate(body, "key")

        assert result == {"data": {"task_id": "task-1", "status": "CREATED"}}
        freepik.create_task.assert_called_once_with(
            pro_model,
            {"image_url": "https://x/a.png", "video_url": "https://x/b.mp4", "cfg_scale": 0},
            "key",
        )

    def test_does_not_mutate_body(self, service):
        body = {"model": PRO_MODEL_ID, "prompt": ""}
        service.generate(body, "key")
        assert body == {"model": PRO_MODEL_ID, "prompt": ""}

    def test_no_key_makes_no_call(self, service, freepik):
        """Test that a missing key is rejected before anything is sent."""
        with pytest.raises(Unauthorized) as exc_info:
            service.generate({"model": PRO_MODEL_ID}, None)

        assert exc_info.value.status_code == 401
        freepik.create_task.assert_not_called()

    def test_key_checked_before_body(self, service):
        with pytest.raises(Unauthorized):
            service.generate(None, None)

    @pytest.mark.parametrize("body", [None, [], "text", 42])
    def test_non_object_body(self, service, body):
        with pytest.raises(InvalidRequest, match="JSON object"):
            service.generate(body, "key")

    def test_missing_model(self, service, freepik):
        with pytest.raises(InvalidRequest, match="Model ID is required"):
            service.generate({"prompt": "x"}, "key")
        freepik.create_task.assert_not_called()

    def test_unknown_model(self, service, freepik):
        with pytest.raises(InvalidRequest, match="Unknown model: kling-v1"):
            service.generate({"model": "kling-v1"}, "key")
        freepik.create_task.assert_not_called()

    def test_upstream_errors_propagate(self, service, freepik):
        freepik.create_task.side_effect = UpstreamFailure("Quota exceeded", status_code=429)

        with pytest.raises(UpstreamFailure) as exc_info:
            service.generate({"model": PRO_MODEL_ID}, "key")

        assert exc_info.value.status_code == 429


class TestStatus:
    """Tests for ProxyService.status."""

    def test_forwards_request(self, service, freepik, pro_model):
        result = service.status(PRO_MODEL_ID, "task-1", "key")

        assert result == {"data": {"status": "IN_PROGRESS"}}
        freepik.get_task_status.assert_called_once_with(pro_model, "task-1", "key")

    def test_no_key(self, service, freepik):
        with pytest.raises(Unauthorized):
            service.status(PRO_MODEL_ID, "task-1", None)
        freepik.get_task_status.assert_not_called()

    @pytest.mark.parametrize("model_id,task_id", [
        (None, "task-1"),
        (PRO_MODEL_ID, None),
        ("", ""),
    ])
    def test_missing_ids(self, service, model_id, task_id):
        with pytest.raises(InvalidRequest, match="model and taskId are required"):
            service.status(model_id, task_id, "key")

    def test_unknown_model(self, service):
        with pytest.raises(InvalidRequest, match="Unknown model"):
            service.status("nope", "task-1", "key")


class TestUpload:
    """Tests for ProxyService.upload."""

    def test_missing_file(self, service):
        with pytest.raises(InvalidRequest, match="A file is required"):
            service.upload(None)

    def test_forwards_video(self, service, catbox):
        upload = _file()
        assert service.upload(upload) == {"url": "https://files.catbox.moe/abc.mp4"}
        catbox.upload.assert_called_once_with(upload)

    @pytest.mark.parametrize("content_type", ["image/png", "IMAGE/JPEG", "video/quicktime"])
    def test_accepts_images_and_videos(self, service, content_type):
        service.upload(_file(content_type=content_type))

    @pytest.mark.parametrize("content_type", ["application/pdf", "text/plain", "", "audio/mpeg"])
    def test_rejects_other_types_without_network_call(self, service, catbox, content_type):
        """Test that unsupported types are rejected with 400 before contacting the host."""
        with pytest.raises(UnsupportedMediaType) as exc_info:
            service.upload(_file(content_type=content_type, filename="doc.pdf"))

        assert exc_info.value.status_code == 400
        catbox.upload.assert_not_called()

    def test_size_limit_is_inclusive(self, service, catbox):
        """Test that exactly 200 MiB is accepted and one byte more is rejected."""
        assert DEFAULT_MAX_UPLOAD_BYTES == 200 * 1024 * 1024

        service.upload(_file(size=DEFAULT_MAX_UPLOAD_BYTES))
        assert catbox.upload.call_count == 1

        with pytest.raises(PayloadTooLarge, match="Maximum is 200MB") as exc_info:
            service.upload(_file(size=DEFAULT_MAX_UPLOAD_BYTES + 1))

        assert exc_info.value.status_code == 400
        assert catbox.upload.call_count == 1

    def test_custom_limit(self, freepik, catbox):
        service = ProxyService(freepik=freepik, catbox=catbox, max_upload_bytes=10 * 1024 * 1024)

        with pytest.raises(PayloadTooLarge, match="Maximum is 10MB"):
            service.upload(_file(size=10 * 1024 * 1024 + 1))


class TestFromSettings:
    """Tests for building the service from settings."""

    def test_uses_settings(self):
        settings = Mock()
        settings.request_timeout = 30.0
        settings.freepik_api_base = "https://freepik.example.com"
        settings.catbox_api_url = "https://catbox.example.com/api.php"
        settings.freepik_api_key = "server-key"
        settings.max_upload_bytes = 5 * 1024 * 1024

        service = ProxyService.from_settings(settings)

        assert service.freepik.base_url == "https://freepik.example.com"
        assert service.freepik.timeout == 30.0
        assert service.catbox.base_url == "https://catbox.example.com/api.php"
        assert service.server_api_key == "server-key"
        assert service.max_upload_bytes == 5 * 1024 * 1024
