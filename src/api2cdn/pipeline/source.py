"""
ApiSource - Authenticated Upstream Fetching

Retrieves the JSON document behind one configured endpoint and classifies
every failure into the sync error taxonomy. Retrying is left to the caller.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import requests

from ..domain.enums import ContentType
from ..domain.models import ApiSettings, EndpointSpec
from ..types import (
    AuthenticationError,
    ConfigurationError,
    NetworkError,
    UpstreamHttpError,
    UpstreamProtocolError,
)

logger = logging.getLogger(__name__)


def error_detail(response: requests.Response) -> str:
    """Best-effort extraction of the upstream ``error`` field."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    text = (response.text or "").strip()
    return text[:200] if text else (response.reason or f"HTTP {response.status_code}")


class ApiSource:
    """
    Bearer-token authenticated JSON source.

    The session may be shared with other components of the same run; the
    source never closes a session it did not create.
    """

    def __init__(self, settings: ApiSettings, session: Optional[requests.Session] = None):
        """
        Initialize source with API settings.

        Args:
            settings: Base URL, token and timeout for the upstream API
            session: Optional shared HTTP session
        """
        self.settings = settings
        self._external_session = session
        self._own_session: Optional[requests.Session] = None

    @property
    def session(self) -> requests.Session:
        if self._external_session is not None:
            return self._external_session
        if self._own_session is None:
            self._own_session = requests.Session()
        return self._own_session

    def build_url(self, endpoint: EndpointSpec) -> str:
        return f"{self.settings.base_url}{endpoint.source_path}"

    def fetch(self, endpoint: EndpointSpec) -> Any:
        """
        Fetch and decode the endpoint's JSON document.

        Args:
            endpoint: Endpoint whose source path is appended to the base URL

        Returns:
            Decoded JSON value, returned as-is including any envelope

        Raises:
            ConfigurationError: No API token configured (no request is made)
            AuthenticationError: HTTP 401
            UpstreamHttpError: Any other 4xx/5xx status
            UpstreamProtocolError: Success status with a body that is not JSON
            NetworkError: Connection failure, DNS failure or timeout
        """
        token = self.settings.auth_token
        if not token:
            raise ConfigurationError("API_AUTH_TOKEN environment variable is required")

        url = self.build_url(endpoint)
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": ContentType.JSON.value,
        }

        logger.info(f"Fetching data from: {url}")
        try:
            response = self.session.get(url, headers=headers, timeout=self.settings.timeout_s)
        except requests.RequestException as e:
            raise NetworkError(str(e)) from e

        status = response.status_code
        logger.info(f"API responded with status {status}")
        if status == 401:
            raise AuthenticationError(f"Authentication failed: {error_detail(response)}")
        if status >= 400:
            raise UpstreamHttpError(status, error_detail(response))

        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamProtocolError(f"Malformed JSON from {url}: {e}") from e

        logger.info("Successfully fetched data")
        return data

    def close(self) -> None:
        if self._own_session is not None:
            self._own_session.close()
            self._own_session = None
