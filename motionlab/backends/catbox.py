"""Catbox anonymous file-host client."""

import logging
from typing import Optional
import requests

from motionlab.core.base_client import BaseUpstreamClient
from motionlab.core.errors import InternalError, UpstreamError
from motionlab.core.models import UploadedFile

logger = logging.getLogger(__name__)


class CatboxClient(BaseUpstreamClient):
    """Uploads files to catbox.moe and returns their public URL.

    Catbox answers a successful upload with the bare file URL as plain text.
    """

    DEFAULT_API_URL = "https://catbox.moe/user/api.php"
    REQUEST_TYPE = "fileupload"

    def __init__(
        self,
        api_url: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = None
    ):
        super().__init__(api_url or self.DEFAULT_API_URL, session=session, timeout=timeout)

    @property
    def name(self) -> str:
        return "Catbox"

    def upload(self, file: UploadedFile) -> str:
        """Upload a file anonymously.

        Args:
            file: The file to forward

        Returns:
            Public https URL of the uploaded file

        Raises:
            UpstreamError: If the host rejected the upload or answered
                with something other than an https URL
            InternalError: If the request could not be sent
        """
        logger.info(f"[Upload] Forwarding {file.filename} ({file.size} bytes, {file.content_type})")

        try:
            response = self.session.post(
                self.base_url,
                data={"reqtype": self.REQUEST_TYPE},
                files={"fileToUpload": (file.filename, file.stream, file.content_type)},
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"[Upload] Request to {self.name} failed: {e}")
            raise InternalError(str(e)) from e

        if not response.ok:
            logger.error(f"[Upload] {self.name} error: {response.status_code} {response.text[:500]}")
            raise UpstreamError(f"Upload failed ({response.status_code}). Please try again.")

        url = (response.text or "").strip()
        if not url.startswith("https://"):
            logger.error(f"[Upload] Invalid {self.name} response: {url[:500]!r}")
            raise UpstreamError("Upload failed: invalid response from file host.")

        logger.info(f"[Upload] Stored {file.filename} at {url}")
        return url
