"""
Authenticated HTTP client for the speech service REST endpoints.
"""
import base64
from typing import Any, Dict, Iterable, Optional

import httpx

from speech_client.utils.exceptions import NotFoundError, ServiceError
from speech_client.utils.logger import logger


def basic_auth_header(username: Optional[str], password: Optional[str]) -> Dict[str, str]:
    """Authorization header for basic credentials, empty when none are set."""
    if not username:
        return {}
    token = base64.b64encode(f"{username}:{password or ''}".encode("utf-8")).decode("ascii")
    return {"Authorization": f"Basic {token}"}


class SpeechHttpClient:
    """Shared httpx client with credentials and error mapping."""

    event_name = "SpeechHttpClient"

    def __init__(
        self,
        base_url: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not base_url:
            raise ValueError("Speech service url is required")
        self.base_url = base_url.rstrip("/")
        self.username = username
        self.password = password
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def auth_headers(self) -> Dict[str, str]:
        return basic_auth_header(self.username, self.password)

    def set_credentials(self, username: Optional[str], password: Optional[str]):
        """Replace credentials; applies to the next request."""
        self.username = username
        self.password = password
        if self._client is not None:
            self._client.auth = httpx.BasicAuth(username, password or "") if username else None

    def set_base_url(self, base_url: str):
        """Point the client at another service url."""
        if not base_url:
            raise ValueError("Speech service url is required")
        self.base_url = base_url.rstrip("/")
        if self._client is not None:
            self._client.base_url = self.base_url

    async def get_client(self) -> httpx.AsyncClient:
        """Get the underlying client, creating it on first use."""
        if self._client is None:
            # Cookies are kept across calls so session requests stay on one backend
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                auth=httpx.BasicAuth(self.username, self.password or "") if self.username else None,
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
                follow_redirects=True,
                headers={"Accept": "application/json"},
            )
            logger.debug(f"HTTP client created for {self.base_url}", self.event_name)
        return self._client

    async def close(self):
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.debug("HTTP client closed", self.event_name)

    async def request(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        content: Optional[bytes] = None,
        headers: Optional[Dict[str, str]] = None,
        expected_status: Iterable[int] = (200, 201, 204),
    ) -> httpx.Response:
        """Send a request and raise the matching client error for failures."""
        client = await self.get_client()
        try:
            response = await client.request(method, url, params=params, content=content, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"{method} {url} failed: {e}", self.event_name)
            raise ServiceError(f"{method} {url} failed: {e}") from e

        if response.status_code not in tuple(expected_status):
            raise self._error_for(method, url, response)
        return response

    async def request_json(self, method: str, url: str, **kwargs) -> Dict[str, Any]:
        """Send a request and decode its JSON body."""
        response = await self.request(method, url, **kwargs)
        try:
            body = response.json()
        except ValueError as e:
            raise ServiceError(
                f"{method} {url} returned a non-JSON body",
                status_code=response.status_code,
                response_body=response.text,
            ) from e
        if not isinstance(body, dict):
            raise ServiceError(f"{method} {url} returned unexpected JSON: {body!r}", status_code=response.status_code)
        return body

    def _error_for(self, method: str, url: str, response: httpx.Response) -> ServiceError:
        """Map a failed response onto the error taxonomy."""
        detail = self._error_detail(response)
        message = f"{method} {url} failed: {detail}" if detail else f"{method} {url} failed"
        logger.warning(f"{message} (status {response.status_code})", self.event_name)
        error_class = NotFoundError if response.status_code == 404 else ServiceError
        return error_class(message, status_code=response.status_code, response_body=response.text)

    @staticmethod
    def _error_detail(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text.strip()[:200]
        if isinstance(body, dict):
            for key in ("error", "message", "description", "detail"):
                if body.get(key):
                    return str(body[key])
        return ""
