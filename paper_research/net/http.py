"""HTTP utilities with retries and per-provider header policy."""

from __future__ import annotations
import httpx
import logging
from typing import Any, Dict, Optional
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..cancel import CancelToken, guarded
from ..config import Settings, get_settings

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = httpx.Timeout(30.0, connect=5.0)
RETRY_STATUSES = {408, 429, 500, 502, 503, 504}

# Per-provider request policy
POLICY = {
    "semantic-scholar": {
        "headers": lambda s: {
            "User-Agent": s.user_agent(),
            "Accept": "application/json",
        }
    },
    "arxiv": {
        "headers": lambda s: {
            "User-Agent": s.user_agent(),
            "Accept": "application/atom+xml,application/xml;q=0.9,*/*;q=0.8",
        }
    },
    "readability-mirror": {
        "headers": lambda s: {
            "User-Agent": s.user_agent(),
            "Accept": "text/plain,*/*;q=0.8",
        }
    },
    "web": {
        "headers": lambda s: {
            "User-Agent": f"Mozilla/5.0 ({s.user_agent()})",
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        }
    },
}


class RetryableStatus(Exception):
    """Internal marker so tenacity retries soft HTTP failures."""
    def __init__(self, response: httpx.Response):
        super().__init__(f"Retryable status {response.status_code}")
        self.response = response


def create_client(settings: Optional[Settings] = None, **kwargs: Any) -> httpx.AsyncClient:
    """Build the shared async client used by providers and extraction."""
    s = settings or get_settings()
    kwargs.setdefault("timeout", httpx.Timeout(float(s.HTTP_TIMEOUT_SECONDS), connect=5.0))
    kwargs.setdefault("follow_redirects", True)
    return httpx.AsyncClient(**kwargs)


def policy_headers(provider: str, settings: Optional[Settings] = None,
                   headers: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    """Merge provider policy headers over caller headers."""
    s = settings or get_settings()
    pol = POLICY.get(provider, {})
    merged = dict(headers or {})
    if "headers" in pol:
        merged.update(pol["headers"](s))
    return merged


async def _send(client: httpx.AsyncClient, url: str, params: Optional[Dict],
                headers: Dict[str, str]) -> httpx.Response:
    response = await client.get(url, params=params, headers=headers, follow_redirects=True)
    if response.status_code in RETRY_STATUSES:
        raise RetryableStatus(response)
    return response


async def _get_with_retries(client: httpx.AsyncClient, url: str, params: Optional[Dict],
                            headers: Dict[str, str], settings: Settings) -> httpx.Response:
    retrying = AsyncRetrying(
        stop=stop_after_attempt(settings.RETRY_MAX_TRIES),
        wait=wait_exponential(multiplier=settings.RETRY_BACKOFF_BASE_SECONDS, max=8),
        retry=retry_if_exception_type((httpx.TransportError, RetryableStatus)),
        reraise=False,
    )
    try:
        async for attempt in retrying:
            with attempt:
                return await _send(client, url, params, headers)
    except RetryError as e:
        last = e.last_attempt.exception()
        if isinstance(last, RetryableStatus):
            # Out of retries on a soft status: hand the response to the caller
            logger.warning(f"Retries exhausted for {url}: HTTP {last.response.status_code}")
            return last.response
        logger.warning(f"HTTP request failed after {settings.RETRY_MAX_TRIES} attempts: {url}")
        raise last
    raise RuntimeError(f"Failed to complete request to {url}")


async def http_get(
    client: httpx.AsyncClient,
    url: str,
    provider: str = "web",
    params: Optional[Dict] = None,
    headers: Optional[Dict[str, str]] = None,
    cancel: Optional[CancelToken] = None,
    settings: Optional[Settings] = None,
) -> httpx.Response:
    """GET with provider policy, retries and cooperative cancellation.

    Args:
        client: Async client to send through
        url: Target URL
        provider: Policy key from ``POLICY``
        params: Query parameters
        headers: Extra headers (policy headers take precedence)
        cancel: Run cancel token; the request is dropped when it trips
        settings: Settings override

    Returns:
        The final response. Status codes are left to the caller.

    Raises:
        httpx.TransportError: If every attempt failed at the transport level
        OperationCancelledError: If ``cancel`` tripped first
    """
    s = settings or get_settings()
    merged = policy_headers(provider, s, headers)
    logger.debug(f"GET {url} via {provider}")
    return await guarded(_get_with_retries(client, url, params, merged, s), cancel)
