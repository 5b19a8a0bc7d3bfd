from __future__ import annotations

"""client/retinascan/services/client/documents.py

Session-scoped cache for the backend's descriptive documents
(model info, privacy notice).

Each document moves through UNFETCHED -> LOADING -> LOADED | FAILED.
``fetch_if_absent()`` is idempotent: a loaded document is never fetched
again, concurrent callers share the one in-flight request, and a failed
fetch may be retried by calling it again.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from retinascan.config import Settings
from retinascan.schemas import DocumentState, DocumentView
from retinascan.services.client.http import get_json, join_url
from retinascan.services.client.health import CONFIGURATION_MISSING_MESSAGE
from retinascan.services.diagnostics.error_classifier import classify

logger = logging.getLogger(__name__)


class DocumentCache:
    def __init__(self, client: httpx.AsyncClient, settings: Settings, path: str) -> None:
        self._client = client
        self._settings = settings
        self._path = path
        self._state = DocumentState.UNFETCHED
        self._data: Optional[Dict[str, Any]] = None
        self._error = ""
        self._inflight: Optional[asyncio.Task] = None

    @property
    def state(self) -> DocumentState:
        return self._state

    @property
    def data(self) -> Optional[Dict[str, Any]]:
        return self._data

    @property
    def error(self) -> str:
        return self._error

    def view(self) -> DocumentView:
        return DocumentView(state=self._state, data=self._data, error=self._error)

    async def fetch_if_absent(self) -> DocumentView:
        if self._state is DocumentState.LOADED:
            return self.view()
        if self._inflight is None or self._inflight.done():
            self._inflight = asyncio.ensure_future(self._fetch())
        await asyncio.shield(self._inflight)
        return self.view()

    def cancel(self) -> None:
        if self._inflight is not None and not self._inflight.done():
            self._inflight.cancel()
        self._inflight = None
        if self._state is DocumentState.LOADING:
            self._state = DocumentState.UNFETCHED

    async def _fetch(self) -> None:
        self._state = DocumentState.LOADING
        self._error = ""

        if self._settings.configuration_missing:
            self._state = DocumentState.FAILED
            self._error = CONFIGURATION_MISSING_MESSAGE
            return

        url = join_url(self._settings.resolved_api_base, self._path)
        try:
            data = await get_json(
                self._client, url, timeout=self._settings.document_timeout_seconds
            )
        except httpx.HTTPError as exc:
            self._state = DocumentState.FAILED
            self._error = classify(exc).message
            logger.warning("Fetching %s failed: %s", self._path, self._error)
            return

        self._data = data if isinstance(data, dict) else {}
        self._state = DocumentState.LOADED
