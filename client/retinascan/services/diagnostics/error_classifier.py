from __future__ import annotations

"""client/retinascan/services/diagnostics/error_classifier.py

Centralized error classification for backend calls.

This module looks at any exception raised while talking to the inference
backend and turns it into a ClassifiedError: an optional HTTP status and one
user-facing message.

The classification is:
- pure (no cooldown or session side effects; those live in CooldownGate)
- deterministic
- response-aware (structured server messages win over synthesized ones)

Priority:
1. server returned a structured message field -> used verbatim
2. server returned only a status code -> "Request failed with status {code}."
3. no response at all (timeout, DNS, refused) -> generic connectivity message
"""

import math
from typing import Any, Optional

import httpx

from retinascan.schemas import ClassifiedError

CONNECTIVITY_MESSAGE = (
    "Failed to connect to the server. Ensure the backend is running and "
    "CORS/proxy is configured."
)

# Body fields that carry a server-side message, in priority order.
# `detail` is what FastAPI's HTTPException emits.
SERVER_MESSAGE_FIELDS = ("error", "message", "detail")


def _response_of(exc: BaseException) -> Optional[httpx.Response]:
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response
    response = getattr(exc, "response", None)
    return response if isinstance(response, httpx.Response) else None


def _json_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


def _server_message(body: Any) -> str:
    if not isinstance(body, dict):
        return ""
    for field in SERVER_MESSAGE_FIELDS:
        value = body.get(field)
        if isinstance(value, str) and value.strip():
            return value
    return ""


def classify(exc: BaseException) -> ClassifiedError:
    """Classify a failed backend call into (status, message).

    Never raises; at minimum returns the connectivity message.
    """
    response = _response_of(exc)
    if response is None:
        return ClassifiedError(status=None, message=CONNECTIVITY_MESSAGE)

    status = response.status_code
    message = _server_message(_json_body(response))
    if message:
        return ClassifiedError(status=status, message=message, from_server=True)

    return ClassifiedError(status=status, message=f"Request failed with status {status}.")


def retry_after_seconds(exc: BaseException) -> Optional[float]:
    """Numeric Retry-After of the failed response, in seconds.

    Returns None when there is no response, no header, or the header is not a
    finite non-negative number (HTTP-date values are not honoured).
    """
    response = _response_of(exc)
    if response is None:
        return None

    raw = (response.headers.get("retry-after") or "").strip()
    if not raw:
        return None
    try:
        value = float(raw)
    except ValueError:
        return None
    # the gate works in epoch milliseconds
    if not math.isfinite(value * 1000) or value < 0:
        return None
    return value
