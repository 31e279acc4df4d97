"""
Google API Client

OAuth2 refresh-token client shared by Search Console and Business
Profile. One refresh token carries both the webmasters and
business.manage scopes; google-auth refreshes the access token when it
is missing or expired.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx
from google.auth.exceptions import RefreshError, TransportError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials

logger = logging.getLogger(__name__)

TOKEN_URL = "https://oauth2.googleapis.com/token"


class GoogleAPIError(Exception):
    """Custom exception for Google API errors."""

    def __init__(self, message: str, status_code: int = None, response: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.response = response


class GoogleNotConfigured(Exception):
    """OAuth2 client id, secret or refresh token missing."""


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        return error.get("message") or str(error)
    if isinstance(error, str):
        return body.get("error_description") or error
    return response.text or f"HTTP {response.status_code}"


class GoogleClient:
    """
    Async client for Google REST APIs using a stored refresh token.

    Usage:
        async with GoogleClient(client_id, client_secret, refresh_token) as google:
            data = await google.post(url, {"startDate": "...", "endDate": "..."})
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        refresh_token: str,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not client_id or not client_secret or not refresh_token:
            raise GoogleNotConfigured(
                "OAuth2 credentials not configured. Please set GOOGLE_CLIENT_ID, "
                "GOOGLE_CLIENT_SECRET, and GOOGLE_REFRESH_TOKEN."
            )

        self.credentials = Credentials(
            token=None,
            refresh_token=refresh_token,
            token_uri=TOKEN_URL,
            client_id=client_id,
            client_secret=client_secret,
        )
        self._refresh_lock = asyncio.Lock()

        self._client = httpx.AsyncClient(
            headers={"Content-Type": "application/json"},
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )
        self._closed = False

    async def get_access_token(self) -> str:
        """Current access token, refreshed through google-auth when invalid."""
        async with self._refresh_lock:
            if not self.credentials.valid:
                try:
                    await asyncio.to_thread(self.credentials.refresh, Request())
                except RefreshError as e:
                    raise GoogleAPIError(f"Failed to get access token: {e}", status_code=401) from e
                except TransportError as e:
                    raise GoogleAPIError(f"Failed to get access token: {e}", status_code=502) from e
                logger.debug("Refreshed Google access token")
            if not self.credentials.token:
                raise GoogleAPIError("Token response did not include an access_token", status_code=401)
            return self.credentials.token

    async def request(
        self,
        method: str,
        url: str,
        json: Any = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Make an authorized request and return the JSON body.

        Raises:
            GoogleAPIError: Transport failure or non-2xx response
        """
        token = await self.get_access_token()
        try:
            response = await self._client.request(
                method,
                url,
                json=json,
                params=params,
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.HTTPError as e:
            raise GoogleAPIError(f"Google API request failed: {e}") from e

        if response.status_code >= 400:
            try:
                body = response.json()
            except ValueError:
                body = response.text
            raise GoogleAPIError(
                _error_message(response),
                status_code=response.status_code,
                response=body,
            )

        if not response.content:
            return {}
        return response.json()

    async def get(self, url: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return await self.request("GET", url, params=params)

    async def post(self, url: str, body: Dict[str, Any]) -> Dict[str, Any]:
        return await self.request("POST", url, json=body)

    async def close(self):
        if not self._closed:
            await self._client.aclose()
            self._closed = True

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
