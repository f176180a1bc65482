"""Freepik AI video API client."""

import logging
from typing import Any, Optional
import requests

from motionlab.core.base_client import BaseUpstreamClient
from motionlab.core.errors import InternalError, NotFound, UpstreamError, UpstreamFailure
from motionlab.core.models import ModelDescriptor

logger = logging.getLogger(__name__)

API_KEY_HEADER = "x-freepik-api-key"


class FreepikClient(BaseUpstreamClient):
    """Client for the Freepik generation and task-status endpoints.

    The remote API occasionally answers with HTML error pages or empty
    bodies (gateway timeouts), so every response is gated on its content
    type before it is parsed as JSON.

    Each call is a single attempt; retrying is left to the caller.
    """

    DEFAULT_BASE_URL = "https://api.freepik.com"

    def __init__(
        self,
        base_url: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = None
    ):
        super().__init__(base_url or self.DEFAULT_BASE_URL, session=session, timeout=timeout)
        logger.info(f"Initialized Freepik client for {self.base_url}")

    @property
    def name(self) -> str:
        return "Freepik"

    def generation_url(self, model: ModelDescriptor) -> str:
        return f"{self.base_url}{model.endpoint}"

    def status_url(self, model: ModelDescriptor, task_id: str) -> str:
        return f"{self.base_url}{model.status_endpoint}/{task_id}"

    def create_task(
        self,
        model: ModelDescriptor,
        params: dict[str, Any],
        api_key: str
    ) -> dict[str, Any]:
        """Submit a generation request.

        Args:
            model: Model whose generation endpoint is called
            params: Request body (already stripped of empty values)
            api_key: Freepik API key

        Returns:
            The remote JSON body, unchanged

        Raises:
            UpstreamError: If the remote answered with a non-JSON body
            UpstreamFailure: If the remote reported an error status
            InternalError: If the request could not be sent
        """
        url = self.generation_url(model)
        logger.info(f"[Generate] {url} params={sorted(params)}")

        try:
            response = self.session.post(
                url,
                json=params,
                headers={"Content-Type": "application/json", API_KEY_HEADER: api_key},
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"[Generate] Request to {url} failed: {e}")
            raise InternalError(str(e)) from e

        if not _is_json(response):
            logger.error(
                f"[Generate] Non-JSON response: {response.status_code} {response.text[:500]}"
            )
            raise UpstreamError(
                f"Freepik API error ({response.status_code}). "
                "Server returned non-JSON response. Please try again."
            )

        data = _parse_json(response, "[Generate]")
        if not response.ok:
            raise UpstreamFailure(
                _remote_message(data, "API request failed"),
                status_code=response.status_code,
                details=data,
            )

        return data

    def get_task_status(
        self,
        model: ModelDescriptor,
        task_id: str,
        api_key: str
    ) -> dict[str, Any]:
        """Fetch the current status of a generation task.

        Args:
            model: Model whose status endpoint is called
            task_id: Remote task id
            api_key: Freepik API key

        Returns:
            The remote JSON body, unchanged

        Raises:
            NotFound: If the remote does not know the task (HTTP 404)
            UpstreamError: If the remote answered with a non-JSON body
            UpstreamFailure: If the remote reported another error status
            InternalError: If the request could not be sent
        """
        url = self.status_url(model, task_id)
        logger.info(f"[Status Check] {url}")

        try:
            response = self.session.get(
                url,
                headers={API_KEY_HEADER: api_key},
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"[Status Check] Request to {url} failed: {e}")
            raise InternalError(str(e)) from e

        if response.status_code == 404:
            logger.warning(f"[Status Check] Task not found: {url}")
            raise NotFound(f"Task not found (404). URL: {url}", status=404)

        if not _is_json(response):
            text = response.text or ""
            logger.error(f"[Status Check] Non-JSON response: {response.status_code} {text[:500]}")
            raise UpstreamError(
                f"Freepik server returned a non-JSON response ({response.status_code}).",
                status_code=response.status_code if response.status_code >= 400 else 502,
                rawSnippet=text[:200],
            )

        data = _parse_json(response, "[Status Check]")
        if not response.ok:
            raise UpstreamFailure(
                _remote_message(data, "Failed to check status"),
                status_code=response.status_code,
                details=data,
            )

        return data


def _is_json(response: requests.Response) -> bool:
    return "application/json" in response.headers.get("content-type", "")


def _parse_json(response: requests.Response, tag: str) -> Any:
    try:
        return response.json()
    except ValueError as e:
        logger.error(f"{tag} Malformed JSON body: {response.status_code} {response.text[:500]}")
        raise UpstreamError(
            f"Freepik API returned malformed JSON ({response.status_code}). Please try again."
        ) from e


def _remote_message(data: Any, fallback: str) -> str:
    if isinstance(data, dict):
        message = data.get("message") or data.get("error")
        if message:
            return str(message)
    return fallback
