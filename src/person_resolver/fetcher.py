from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

logger = logging.getLogger(__name__)


DEFAULT_HEADERS = {
    "User-Agent": "person-resolver/0.1 (https://github.com/person-resolver; contact via repository issues)",
    "Accept": "application/json",
}

DEFAULT_TIMEOUT_S = 20.0


def make_client(timeout_s: float = DEFAULT_TIMEOUT_S) -> httpx.AsyncClient:
    timeout = httpx.Timeout(connect=10.0, read=timeout_s, write=10.0, pool=10.0)
    return httpx.AsyncClient(headers=DEFAULT_HEADERS, timeout=timeout, follow_redirects=True)


# Only transport failures are retried; an HTTP error status is an answer.
@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=8),
    retry=retry_if_exception_type(httpx.TransportError),
    reraise=True,
)
async def _get_once(client: httpx.AsyncClient, url: str, params: Optional[Dict[str, Any]]) -> httpx.Response:
    return await client.get(url, params=params)


async def fetch_json(
    url: str,
    *,
    params: Optional[Dict[str, Any]] = None,
    client: Optional[httpx.AsyncClient] = None,
    timeout_s: float = DEFAULT_TIMEOUT_S,
) -> Optional[Any]:
    """
    GET a JSON document with retry. Returns None on final failure,
    non-success status or a body that is not JSON.
    IMPORTANT: never raises (callers treat None as "no data").
    """
    try:
        if client is None:
            async with make_client(timeout_s) as c:
                r = await _get_once(c, url, params)
        else:
            r = await _get_once(client, url, params)
    except httpx.HTTPError as e:
        logger.warning("GET %s failed: %s: %s", url, type(e).__name__, e)
        return None

    if r.status_code >= 400:
        logger.info("GET %s returned %s", url, r.status_code)
        return None

    try:
        return r.json()
    except ValueError:
        logger.warning("GET %s returned a non-JSON body", url)
        return None
