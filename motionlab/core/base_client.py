"""Abstract base class for upstream HTTP services."""

import logging
from abc import ABC, abstractmethod
from typing import Optional
import requests

logger = logging.getLogger(__name__)


class BaseUpstreamClient(ABC):
    """Abstract interface for the remote services the proxy forwards to.

    Each client owns a ``requests.Session`` so connections are pooled across
    proxy calls. Tests inject a mocked session instead of patching globals.

    Attributes:
        base_url: Root URL of the remote service
        session: HTTP session used for every call
        timeout: Request timeout in seconds (None = transport default)
    """

    def __init__(
        self,
        base_url: str,
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = None
    ):
        """Initialize the client.

        Args:
            base_url: Root URL of the remote service
            session: Optional pre-configured session
            timeout: Optional request timeout in seconds

        Raises:
            ValueError: If base_url is empty
        """
        if not base_url:
            raise ValueError(f"{self.__class__.__name__} requires a base URL")

        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    def health_check(self) -> bool:
        """Check whether the remote service answers at all.

        Any HTTP response counts as reachable; only transport failures
        mark the service unhealthy.

        Returns:
            True if the service responded, False otherwise
        """
        try:
            logger.debug(f"Health checking {self.name} at {self.base_url}")
            self.session.head(self.base_url, timeout=self.timeout or 5, allow_redirects=True)
            return True
        except requests.exceptions.RequestException as e:
            logger.warning(f"{self.name} health check failed: {e}")
            return False

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable name of the remote service."""

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.name}', base_url='{self.base_url}')"
