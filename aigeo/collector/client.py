"""
DataForSEO API Client

Async HTTP client with:
- Connection pooling
- Optional retry with exponential backoff (off unless configured)
- Task-level error logging
"""

import asyncio
import base64
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)

OK_STATUS = 20000
TASK_OK_STATUSES = (20000, 20100)


def safe_get_result(response: Dict, get_items: bool = True) -> Any:
    """
    Safely extract result data from the first task of a DataForSEO response.

    Args:
        response: Raw API response dict
        get_items: If True, returns items list. If False, returns first result object.

    Returns:
        List of items, result dict, or empty list/dict on failure
    """
    tasks = response.get("tasks") if isinstance(response, dict) else None
    if not tasks or not isinstance(tasks, list):
        return [] if get_items else {}
    return task_result(tasks[0], get_items=get_items)


def task_result(task: Dict, get_items: bool = True) -> Any:
    """Items (or first result object) of a single task."""
    result = task.get("result") if isinstance(task, dict) else None
    if not result or not isinstance(result, list):
        return [] if get_items else {}

    first_result = result[0]
    if not first_result or not isinstance(first_result, dict):
        return [] if get_items else {}

    if get_items:
        items = first_result.get("items")
        return items if items and isinstance(items, list) else []
    return first_result


def task_items(task: Dict) -> List[Dict]:
    """All items across every result entry of a task."""
    result = task.get("result") if isinstance(task, dict) else None
    if isinstance(result, dict):
        result = [result]
    if not isinstance(result, list):
        return []

    items: List[Dict] = []
    for entry in result:
        if not isinstance(entry, dict):
            continue
        entry_items = entry.get("items")
        if isinstance(entry_items, list):
            items.extend(i for i in entry_items if isinstance(i, dict))
        elif isinstance(entry_items, dict):
            items.append(entry_items)
        elif entry.get("type"):
            items.append(entry)
    return items


def task_ok(task: Dict) -> bool:
    return isinstance(task, dict) and task.get("status_code") in TASK_OK_STATUSES


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""
    max_retries: int = 0
    initial_delay: float = 1.0
    max_delay: float = 10.0
    exponential_base: float = 2.0
    retryable_status_codes: tuple = (429, 500, 502, 503, 504)


class DataForSEOError(Exception):
    """Custom exception for DataForSEO API errors."""
    def __init__(self, message: str, status_code: int = None, response: dict = None):
        super().__init__(message)
        self.status_code = status_code
        self.response = response


class DataForSEOClient:
    """
    Async client for DataForSEO API.

    Usage:
        async with DataForSEOClient(login="...", password="...") as client:
            result = await client.post("serp/google/organic/live/advanced", [{
                "keyword": "photography courses",
                "location_name": "United Kingdom",
                "language_code": "en",
            }])
    """

    BASE_URL = "https://api.dataforseo.com/v3"

    def __init__(
        self,
        login: str,
        password: str,
        retry_config: Optional[RetryConfig] = None,
        max_connections: int = 10,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize DataForSEO client.

        Args:
            login: DataForSEO login email
            password: DataForSEO API password
            retry_config: Retry configuration (no retries by default)
            max_connections: Maximum concurrent connections
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests)
        """
        self.login = login
        self.password = password
        self.retry_config = retry_config or RetryConfig()

        credentials = f"{login}:{password}"
        auth_token = base64.b64encode(credentials.encode()).decode()

        self._client = httpx.AsyncClient(
            base_url=self.BASE_URL,
            headers={
                "Authorization": f"Basic {auth_token}",
                "Content-Type": "application/json",
            },
            limits=httpx.Limits(
                max_connections=max_connections,
                max_keepalive_connections=max(1, max_connections // 2),
            ),
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

        self._closed = False

    async def post(
        self,
        endpoint: str,
        data: List[Dict[str, Any]],
        retry: bool = True
    ) -> Dict[str, Any]:
        """
        Make POST request to DataForSEO API.

        Args:
            endpoint: API endpoint path (e.g., "serp/google/ai_mode/live/advanced")
            data: Request payload (list of task objects)
            retry: Whether to apply the retry policy

        Returns:
            API response as dictionary

        Raises:
            DataForSEOError: On HTTP or API-level error
        """
        if self._closed:
            raise DataForSEOError("Client is closed")

        url = f"/{endpoint}"

        if retry and self.retry_config.max_retries > 0:
            return await self._request_with_retry(url, data)
        try:
            return await self._make_request(url, data)
        except httpx.HTTPError as e:
            raise DataForSEOError(f"HTTP error: {e}") from e

    async def _make_request(self, url: str, data: List[Dict]) -> Dict[str, Any]:
        """Make a single HTTP request."""
        logger.debug(f"POST {url}")

        response = await self._client.post(url, json=data)

        try:
            result = response.json() if response.content else {}
        except ValueError:
            result = {}

        if response.status_code != 200:
            raise DataForSEOError(
                result.get("status_message") or f"API request failed: {response.status_code}",
                status_code=response.status_code,
                response=result or None,
            )

        if result.get("status_code") != OK_STATUS:
            error_msg = result.get("status_message", "Unknown error")
            raise DataForSEOError(
                f"API error: {error_msg}",
                status_code=result.get("status_code"),
                response=result,
            )

        for task in result.get("tasks") or []:
            if not task_ok(task):
                logger.error(
                    f"DataForSEO task error in {url}: {task.get('status_message', 'Task error')} "
                    f"(status: {task.get('status_code')})"
                )

        return result

    async def _request_with_retry(self, url: str, data: List[Dict]) -> Dict[str, Any]:
        """Make request with retry on retryable failures."""
        last_exception = None
        delay = self.retry_config.initial_delay

        for attempt in range(self.retry_config.max_retries + 1):
            try:
                return await self._make_request(url, data)

            except DataForSEOError as e:
                last_exception = e
                if e.status_code not in self.retry_config.retryable_status_codes:
                    raise

            except httpx.TimeoutException as e:
                last_exception = DataForSEOError(f"Request timed out: {e}")

            except httpx.HTTPError as e:
                last_exception = DataForSEOError(f"HTTP error: {e}")

            if attempt < self.retry_config.max_retries:
                logger.warning(
                    f"Request failed (attempt {attempt + 1}/{self.retry_config.max_retries + 1}): "
                    f"{last_exception}. Retrying in {delay}s..."
                )
                await asyncio.sleep(delay)
                delay = min(
                    delay * self.retry_config.exponential_base,
                    self.retry_config.max_delay
                )

        raise last_exception

    async def close(self):
        """Close the HTTP client."""
        if not self._closed:
            await self._client.aclose()
            self._closed = True

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
