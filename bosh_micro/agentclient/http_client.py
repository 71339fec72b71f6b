"""
Thin HTTP client used to reach the agent's message-bus endpoint.

Connection and timeout failures are classified here so callers only see
TransportError / CommandTimeoutError.
"""

import logging
from typing import Optional

import requests

from bosh_micro.errors import CommandTimeoutError, TransportError

logger = logging.getLogger(__name__)


class HTTPClient:
    """POSTs raw bodies and hands back the (unconsumed) response."""

    def __init__(self, session: Optional[requests.Session] = None, timeout: Optional[float] = 30):
        self.session = session or requests.Session()
        self.timeout = timeout

    def post(self, endpoint: str, payload: bytes) -> requests.Response:
        """
        POST payload to endpoint.

        The caller owns the returned response and must close it (it is a
        context manager).

        Raises:
            CommandTimeoutError: Request exceeded the timeout
            TransportError: Connection or other request failure
        """
        logger.debug(f"Sending POST request to endpoint '{redact_url(endpoint)}'")
        try:
            return self.session.post(
                endpoint,
                data=payload,
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
                stream=True,
            )
        except requests.Timeout as e:
            raise CommandTimeoutError(f"Timed out after {self.timeout}s: {e}") from e
        except requests.RequestException as e:
            raise TransportError(str(e)) from e


def redact_url(endpoint: str) -> str:
    # mbus URLs embed basic-auth credentials
    scheme, sep, rest = endpoint.partition("://")
    if sep and "@" in rest.split("/", 1)[0]:
        return f"{scheme}://<redacted>@{rest.split('@', 1)[1]}"
    return endpoint
