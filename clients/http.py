"""
Shared HTTP request loop with exponential backoff.

Transient failures (timeouts, connection errors, HTTP 429 and 5xx) are
retried. Any other response is handed back to the caller, which decides
what a 4xx means for its own collaborator contract.
"""

import httpx
import asyncio
from typing import Any, Optional
from core.config import settings
from core.exceptions import NetworkError, RateLimitError
import logging

logger = logging.getLogger(__name__)


async def send_with_retry(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    max_retries: Optional[int] = None,
    retry_delay: Optional[float] = None,
    **kwargs: Any
) -> httpx.Response:
    """
    Send a request, retrying transient failures.

    Args:
        client: HTTP client
        method: HTTP method
        url: Request URL
        max_retries: Attempts before giving up (default: settings.MAX_RETRIES)
        retry_delay: Initial backoff delay in seconds (default: settings.RETRY_DELAY)
        **kwargs: Passed through to `client.request`

    Returns:
        The last response received. A 5xx is returned once retries are
        exhausted so the caller can report its body.

    Raises:
        NetworkError: Timeouts or connection failures after max retries
        RateLimitError: HTTP 429 after max retries
    """
    max_retries = max(1, max_retries or settings.MAX_RETRIES)
    retry_delay = settings.RETRY_DELAY if retry_delay is None else retry_delay

    for attempt in range(max_retries):
        last_attempt = attempt == max_retries - 1
        delay = retry_delay * (2 ** attempt)

        try:
            logger.debug(f"{method} attempt {attempt + 1}/{max_retries} to {url}")
            response = await client.request(method, url, **kwargs)

        except (httpx.TimeoutException, httpx.NetworkError) as e:
            if last_attempt:
                raise NetworkError(
                    f"{type(e).__name__} after {max_retries} attempts",
                    context={"url": url, "retry_count": attempt + 1},
                    original_exception=e
                )
            logger.warning(f"{type(e).__name__} calling {url}. Retrying in {delay} seconds")
            await asyncio.sleep(delay)
            continue

        if response.status_code == 429:
            retry_after = _retry_after(response, delay)
            if last_attempt:
                raise RateLimitError(
                    f"Rate limit exceeded for {url}",
                    context={"url": url, "status_code": 429, "retry_count": attempt + 1},
                    retry_after=int(retry_after)
                )
            logger.warning(f"Rate limited. Retrying after {retry_after} seconds")
            await asyncio.sleep(retry_after)
            continue

        if response.status_code >= 500 and not last_attempt:
            logger.warning(
                f"Server error {response.status_code}. "
                f"Retrying in {delay} seconds (attempt {attempt + 1}/{max_retries})"
            )
            await asyncio.sleep(delay)
            continue

        return response

    raise AssertionError("unreachable")


def bearer_headers(api_key: Optional[str]) -> dict:
    headers = {"Content-Type": "application/json"}
    if api_key:
        headers["Authorization"] = f"Bearer {api_key}"
    return headers


def _retry_after(response: httpx.Response, default: float) -> float:
    try:
        return float(response.headers.get("Retry-After", default))
    except (TypeError, ValueError):
        return default
