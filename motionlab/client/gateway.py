"""How a browser session reaches the proxy endpoints."""

import logging
import mimetypes
import os
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol
import requests

from motionlab.core.errors import ProxyError
from motionlab.core.models import UploadedFile
from motionlab.core.proxy import ProxyService

logger = logging.getLogger(__name__)


@dataclass
class GatewayResponse:
    """An HTTP-style answer from the proxy.

    Attributes:
        status_code: HTTP status; 0 when the request never got an answer
        data: Decoded JSON body
    """
    status_code: int
    data: Any = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def error(self) -> Optional[str]:
        if isinstance(self.data, dict) and self.data.get("error"):
            return str(self.data["error"])
        return None


class Gateway(Protocol):
    def generate(self, model_id: str, params: dict[str, Any], api_key: str = "") -> GatewayResponse: ...

    def status(self, model_id: str, task_id: str, api_key: str = "") -> GatewayResponse: ...

    def upload(self, path: str) -> GatewayResponse: ...


def guess_content_type(path: str) -> str:
    content_type, _ = mimetypes.guess_type(path)
    return content_type or "application/octet-stream"


class LocalGateway:
    """Calls a ProxyService in the same process."""

    def __init__(self, service: ProxyService):
        self.service = service

    def _call(self, operation, *args) -> GatewayResponse:
        try:
            return GatewayResponse(200, operation(*args))
        except ProxyError as e:
            return GatewayResponse(e.status_code, e.to_payload())
        except Exception as e:
            logger.exception("Proxy call failed")
            return GatewayResponse(500, {"error": str(e) or "Internal server error"})

    def generate(self, model_id: str, params: dict[str, Any], api_key: str = "") -> GatewayResponse:
        return self._call(self.service.generate, {"model": model_id, **params}, api_key or None)

    def status(self, model_id: str, task_id: str, api_key: str = "") -> GatewayResponse:
        return self._call(self.service.status, model_id, task_id, api_key or None)

    def upload(self, path: str) -> GatewayResponse:
        def forward():
            with open(path, "rb") as stream:
                return self.service.upload(UploadedFile(
                    filename=os.path.basename(path),
                    content_type=guess_content_type(path),
                    size=os.path.getsize(path),
                    stream=stream,
                ))

        return self._call(forward)


class HttpGateway:
    """Calls a proxy server over HTTP, the way a browser would."""

    def __init__(self, base_url: str, session: Optional[requests.Session] = None, timeout: Optional[float] = None):
        if not base_url:
            raise ValueError("HttpGateway requires a base URL")
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    @staticmethod
    def _headers(api_key: str) -> dict[str, str]:
        return {"x-api-key": api_key} if api_key else {}

    def _send(self, method: str, path: str, **kwargs) -> GatewayResponse:
        try:
            response = self.session.request(
                method, f"{self.base_url}{path}", timeout=self.timeout, **kwargs
            )
        except requests.exceptions.RequestException as e:
            logger.warning(f"{method} {path} failed: {e}")
            return GatewayResponse(0, {"error": f"Network error: {e}"})

        try:
            data = response.json()
        except ValueError:
            data = {"error": f"Unexpected response from proxy ({response.status_code})"}
        return GatewayResponse(response.status_code, data)

    def generate(self, model_id: str, params: dict[str, Any], api_key: str = "") -> GatewayResponse:
        return self._send(
            "POST", "/generate", json={"model": model_id, **params}, headers=self._headers(api_key)
        )

    def status(self, model_id: str, task_id: str, api_key: str = "") -> GatewayResponse:
        return self._send(
            "GET", "/status", params={"model": model_id, "taskId": task_id},
            headers=self._headers(api_key),
        )

    def upload(self, path: str) -> GatewayResponse:
        try:
            stream = open(path, "rb")
        except OSError as e:
            return GatewayResponse(0, {"error": f"Cannot read file: {e}"})
        with stream:
            files = {"file": (os.path.basename(path), stream, guess_content_type(path))}
            return self._send("POST", "/upload", files=files)
