from __future__ import annotations

"""client/retinascan/services/client/http.py

Shared HTTP helpers for talking to the inference backend.

This module provides:
- join_url: combine the configured base address with an endpoint path
- create_http_client: the one httpx.AsyncClient a session shares
- get_json: GET helper used by the health probe and document fetches

All requests go out without cookies or credentials.
"""

import logging
from typing import Any, Mapping

import httpx

from retinascan.config import Settings

logger = logging.getLogger(__name__)


def join_url(base: str, path: str) -> str:
    if not base:
        return path
    if not path:
        return base
    if path.startswith("http://") or path.startswith("https://"):
        return path
    return f"{base}{'' if path.startswith('/') else '/'}{path}"


def create_http_client(
    settings: Settings,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Build the session's AsyncClient.

    Timeouts are set per request (health, predict and documents differ), so
    the client default only guards against calls that forget one.
    """
    return httpx.AsyncClient(
        transport=transport,
        timeout=httpx.Timeout(settings.document_timeout_seconds),
        follow_redirects=True,
        headers={"Accept": "application/json"},
    )


async def get_json(
    client: httpx.AsyncClient,
    url: str,
    *,
    timeout: float,
    params: Mapping[str, str] | None = None,
) -> Any:
    """GET ``url`` and return its decoded JSON body.

    Raises httpx.HTTPStatusError for non-2xx responses and httpx.RequestError
    for transport failures. A 2xx body that is not JSON decodes to None.
    """
    response = await client.get(url, params=params, timeout=timeout)
    response.raise_for_status()
    try:
        return response.json()
    except ValueError:
        logger.debug("Non-JSON body from %s", url)
        return None
