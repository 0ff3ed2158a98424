# OpenSmartCity: poll SensorThings weather stations and publish typed state
# Copyright (C) 2025 Ruaraidh Dobson, South London Scientific

# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.

# You should have received a copy of the GNU General Public License
# along with this program.  If not, see <https://www.gnu.org/licenses/>.

"""
HTTP client for a SensorThings API deployment.

A thin wrapper around a requests session: it joins query paths onto the
configured base URL, attaches credentials and a timeout, and turns transport
failures into TransportError. Any HTTP response, whatever its status, is
handed back to the caller to interpret.
"""

import base64
import json
from logging import getLogger
from typing import Any, NamedTuple

import requests

from .decorators import with_retry, with_timeout
from .errors import HttpStatusError, ParseError, TransportError

logger = getLogger(__name__)

# ============================================================================
# CONSTANTS
# ============================================================================

USER_AGENT = "opensmartcity/0.1.0 (SensorThings weather poller)"

DEFAULT_TIMEOUT = 10.0  # seconds
DEFAULT_RETRY_ATTEMPTS = 1  # no in-cycle retry; the next cycle retries
DEFAULT_RETRY_MAX_WAIT = 10.0  # seconds


class HttpResponse(NamedTuple):
    """Status code and decoded body of a completed request."""

    status_code: int
    body: str
    reason: str = ""


def basic_auth_header(username: str, password: str) -> str:
    """
    Value of an Authorization header for HTTP basic auth.

    Example:
        >>> basic_auth_header("user", "secret")
        'Basic dXNlcjpzZWNyZXQ='
    """
    token = base64.b64encode(f"{username}:{password}".encode("utf-8"))
    return "Basic " + token.decode("ascii")


# ============================================================================
# CLIENT
# ============================================================================


class SensorThingsClient:
    """
    GET-only client bound to one SensorThings base URL.

    Args:
        base_url: Service root, e.g. "https://api.example.org/FROST-Server"
        username: Basic auth user name (optional)
        password: Basic auth password (optional)
        timeout: Per-request timeout in seconds
        retry_attempts: Attempts per request for connection errors/timeouts
        retry_max_wait: Upper bound of the backoff between attempts
        session: Existing requests session to reuse (optional)

    Example:
        >>> client = SensorThingsClient("https://sensors.example.org", timeout=5)
        >>> response = client.get("/v1.1/Things")
        >>> response.status_code
        200
    """

    def __init__(
        self,
        base_url: str,
        username: str | None = None,
        password: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        retry_attempts: int = DEFAULT_RETRY_ATTEMPTS,
        retry_max_wait: float = DEFAULT_RETRY_MAX_WAIT,
        session: requests.Session | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update(
            {"User-Agent": USER_AGENT, "Accept": "application/json"}
        )
        if username:
            self.session.headers["Authorization"] = basic_auth_header(
                username, password or ""
            )

        send = with_timeout(timeout)(self.session.get)
        self._send = with_retry(
            max_attempts=max(1, retry_attempts),
            min_wait=0.0,
            max_wait=retry_max_wait,
        )(send)

    def url_for(self, query_path: str) -> str:
        """Join a query path such as "/v1.1/Locations?..." onto the base URL."""
        return self.base_url + query_path

    def get(self, query_path: str) -> HttpResponse:
        """
        Issue a GET request for a query path.

        Args:
            query_path: Path and query string, starting with "/"

        Returns:
            HttpResponse: Status code and body, for any status code

        Raises:
            TransportError: On timeout, connection failure or any other
                error raised before a response was received
        """
        url = self.url_for(query_path)
        logger.debug(f"Requesting {url}")

        try:
            response = self._send(url)
        except requests.exceptions.Timeout as e:
            raise TransportError(f"Request timed out after {self.timeout}s: {url}") from e
        except requests.exceptions.RequestException as e:
            raise TransportError(f"Request failed: {e}") from e

        return HttpResponse(response.status_code, response.text, response.reason or "")

    def close(self) -> None:
        """Release pooled connections."""
        self.session.close()


# ============================================================================
# RESPONSE HANDLING
# ============================================================================


def fetch_json(client: SensorThingsClient, query_path: str) -> Any:
    """
    GET a query path and decode the JSON body of a 200 response.

    Raises:
        HttpStatusError: The status code was not 200
        TransportError: No response was received
        ParseError: The body is not valid JSON
    """
    response = client.get(query_path)

    if response.status_code != 200:
        logger.debug(
            f"HTTP request failed with response code {response.status_code}: "
            f"{response.reason}"
        )
        raise HttpStatusError(
            response.status_code, client.url_for(query_path), response.reason
        )

    try:
        payload = json.loads(response.body)
    except ValueError as e:
        raise ParseError(f"Response is not valid JSON: {e}") from e

    logger.debug(f"Retrieved content {response.body[:500]}")
    return payload
