"""Proxy operations forwarding browser requests to the upstream services."""

import logging
from typing import Any, Mapping, Optional

from motionlab.backends.catbox import CatboxClient
from motionlab.backends.freepik import FreepikClient
from motionlab.core.errors import InvalidRequest, PayloadTooLarge, Unauthorized, UnsupportedMediaType
from motionlab.core.models import ModelDescriptor, UploadedFile
from motionlab.core.registry import get_model_by_id

logger = logging.getLogger(__name__)

DEFAULT_MAX_UPLOAD_BYTES = 200 * 1024 * 1024
ALLOWED_MEDIA_PREFIXES = ("image/", "video/")


def strip_empty_params(params: Mapping[str, Any]) -> dict[str, Any]:
    """Drop parameters the remote API would reject as empty.

    Empty strings and None are removed; falsy values such as 0 or False
    are kept.
    """
    return {
        key: value
        for key, value in params.items()
        if value is not None and value != ""
    }


class ProxyService:
    """Stateless proxy for the generate, status and upload operations.

    Every method either returns the payload to relay to the caller or
    raises a ``ProxyError`` subclass describing the failure.

    Attributes:
        server_api_key: Process-wide API key; overrides caller-supplied keys
        max_upload_bytes: Largest accepted upload in bytes (inclusive)
        freepik: Client for the AI video API
        catbox: Client for the anonymous file host
    """

    def __init__(
        self,
        freepik: Optional[FreepikClient] = None,
        catbox: Optional[CatboxClient] = None,
        server_api_key: Optional[str] = None,
        max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES
    ):
        self.freepik = freepik or FreepikClient()
        self.catbox = catbox or CatboxClient()
        self.server_api_key = (server_api_key or "").strip() or None
        self.max_upload_bytes = max_upload_bytes

    @classmethod
    def from_settings(cls, settings) -> "ProxyService":
        """Build a service from application settings.

        Args:
            settings: Object exposing the application Settings attributes

        Returns:
            Configured ProxyService
        """
        timeout = settings.request_timeout
        return cls(
            freepik=FreepikClient(settings.freepik_api_base, timeout=timeout),
            catbox=CatboxClient(settings.catbox_api_url, timeout=timeout),
            server_api_key=settings.freepik_api_key,
            max_upload_bytes=settings.max_upload_bytes,
        )

    def resolve_api_key(self, header_key: Optional[str]) -> str:
        """Pick the API key for a request.

        Args:
            header_key: Key sent by the caller in the ``x-api-key`` header

        Returns:
            The server key when configured, otherwise the caller's key

        Raises:
            Unauthorized: If neither key is available
        """
        if self.server_api_key:
            return self.server_api_key
        if header_key and header_key.strip():
            return header_key.strip()
        raise Unauthorized()

    def _resolve_model(self, model_id: Any) -> ModelDescriptor:
        if not model_id:
            raise InvalidRequest("Model ID is required")
        model = get_model_by_id(str(model_id))
        if model is None:
            raise InvalidRequest(f"Unknown model: {model_id}")
        return model

    def generate(self, body: Any, header_key: Optional[str] = None) -> Any:
        """Forward a generation request.

        Args:
            body: Request body ``{"model": id, ...params}``
            header_key: Caller-supplied API key, if any

        Returns:
            The remote JSON body, unchanged

        Raises:
            Unauthorized: If no API key is available
            InvalidRequest: If the body or model id is invalid
            UpstreamError / UpstreamFailure / InternalError: From the remote call
        """
        api_key = self.resolve_api_key(header_key)

        if not isinstance(body, Mapping):
            raise InvalidRequest("Request body must be a JSON object")

        params = dict(body)
        model = self._resolve_model(params.pop("model", None))
        clean_params = strip_empty_params(params)

        return self.freepik.create_task(model, clean_params, api_key)

    def status(
        self,
        model_id: Optional[str],
        task_id: Optional[str],
        header_key: Optional[str] = None
    ) -> Any:
        """Forward a task status check.

        Args:
            model_id: Registry id of the model that created the task
            task_id: Remote task id
            header_key: Caller-supplied API key, if any

        Returns:
            The remote JSON body, unchanged

        Raises:
            Unauthorized: If no API key is available
            InvalidRequest: If an id is missing or the model is unknown
            NotFound: If the remote does not know the task
            UpstreamError / UpstreamFailure / InternalError: From the remote call
        """
        api_key = self.resolve_api_key(header_key)

        if not model_id or not task_id:
            raise InvalidRequest("model and taskId are required")

        model = self._resolve_model(model_id)
        return self.freepik.get_task_status(model, task_id, api_key)

    def upload(self, file: Optional[UploadedFile]) -> dict[str, str]:
        """Validate a file and forward it to the public file host.

        Validation happens before any network call.

        Args:
            file: The uploaded file, or None if the request carried none

        Returns:
            ``{"url": public_url}``

        Raises:
            InvalidRequest: If no file was sent
            UnsupportedMediaType: If the file is not an image or video
            PayloadTooLarge: If the file exceeds the size limit
            UpstreamError / InternalError: From the file host
        """
        if file is None:
            raise InvalidRequest("A file is required")

        content_type = (file.content_type or "").lower()
        if not content_type.startswith(ALLOWED_MEDIA_PREFIXES):
            logger.warning(f"[Upload] Rejected {file.filename}: unsupported type {content_type!r}")
            raise UnsupportedMediaType()

        if file.size > self.max_upload_bytes:
            limit_mb = self.max_upload_bytes // (1024 * 1024)
            logger.warning(f"[Upload] Rejected {file.filename}: {file.size} bytes")
            raise PayloadTooLarge(f"File is too large. Maximum is {limit_mb}MB.")

        return {"url": self.catbox.upload(file)}
