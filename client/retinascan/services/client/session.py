from __future__ import annotations

"""client/retinascan/services/client/session.py

One user session: the state a UI renders, without the rendering.

A ClientSession wires together:
- one shared httpx.AsyncClient
- HealthMonitor (writes the health snapshot)
- CooldownGate (owns the cooldown window)
- RequestOrchestrator (reads both, never writes them)
- UploadSlot (the selected file and its single preview handle)
- DocumentCache for model info and the privacy notice

Every failure ends up as one user-visible ``error`` string; nothing except a
missing production configuration prevents a retry.
"""

import logging
from typing import Optional

import httpx

from retinascan.config import Settings, get_settings
from retinascan.errors import AnalysisInProgress, RetinaScanError, ValidationError
from retinascan.schemas import (
    DocumentView,
    HealthView,
    PredictionResult,
    SessionView,
    UploadInfo,
)
from retinascan.services.client.cooldown import Clock, CooldownGate, epoch_ms
from retinascan.services.client.documents import DocumentCache
from retinascan.services.client.health import HealthMonitor
from retinascan.services.client.http import create_http_client
from retinascan.services.client.normalizer import PREDICTION_FAILED_MESSAGE
from retinascan.services.client.orchestrator import RequestOrchestrator
from retinascan.services.client.upload import UploadSlot, validate_upload

logger = logging.getLogger(__name__)


class ClientSession:
    def __init__(
        self,
        settings: Settings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Clock = epoch_ms,
    ) -> None:
        self.settings = settings or get_settings()
        self._http = create_http_client(self.settings, transport=transport)

        self.monitor = HealthMonitor(self._http, self.settings)
        self.gate = CooldownGate(self.settings, clock=clock)
        self.orchestrator = RequestOrchestrator(
            self._http, self.settings, self.gate, lambda: self.monitor.state
        )
        self.uploads = UploadSlot()
        self.model_info = DocumentCache(self._http, self.settings, self.settings.model_info_path)
        self.privacy_notice = DocumentCache(
            self._http, self.settings, self.settings.privacy_notice_path
        )

        self.want_gradcam = False
        self.loading = False
        self.error = ""
        self.prediction: Optional[PredictionResult] = None

    # ---- lifecycle ----

    def start(self) -> None:
        self.monitor.start()

    async def aclose(self) -> None:
        self.monitor.stop()
        self.model_info.cancel()
        self.privacy_notice.cancel()
        self.uploads.close()
        await self._http.aclose()

    async def __aenter__(self) -> "ClientSession":
        self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def wait_for_health(self) -> None:
        await self.monitor.wait()

    # ---- user actions ----

    def select_file(self, filename: str, data: bytes) -> Optional[UploadInfo]:
        """Validate and hold a new file; an invalid one empties the slot."""
        self.error = ""
        self.prediction = None
        try:
            candidate = validate_upload(filename, data, self.settings)
        except ValidationError as exc:
            self.uploads.clear()
            self.error = exc.message
            return None
        self.uploads.select(candidate)
        return candidate.info()

    async def analyze(self, want_gradcam: Optional[bool] = None) -> Optional[PredictionResult]:
        """Run one prediction and record its outcome on the session.

        Raises AnalysisInProgress if a previous call is still outstanding.
        Returns the normalized result when the backend answered, else None.
        """
        if self.loading:
            raise AnalysisInProgress()
        if want_gradcam is not None:
            self.want_gradcam = want_gradcam

        candidate = self.uploads.candidate
        try:
            self.orchestrator.preflight(candidate)
        except RetinaScanError as exc:
            self.error = exc.message
            return None

        self.loading = True
        self.error = ""
        self.prediction = None
        try:
            result = await self.orchestrator.analyze(candidate, self.want_gradcam)
        except RetinaScanError as exc:
            self.error = exc.message
            return None
        finally:
            self.loading = False

        if result.success:
            self.prediction = result
        else:
            self.error = result.error_message or PREDICTION_FAILED_MESSAGE
        return result

    def clear(self) -> None:
        self.uploads.clear()
        self.prediction = None
        self.error = ""

    def dismiss_error(self) -> None:
        self.error = ""

    async def open_model_info(self) -> DocumentView:
        return await self.model_info.fetch_if_absent()

    async def open_privacy_notice(self) -> DocumentView:
        return await self.privacy_notice.fetch_if_absent()

    # ---- derived view ----

    @property
    def backend_not_ready(self) -> bool:
        state = self.monitor.state
        return state is not None and (not state.model_loaded or state.model_loading)

    def health_view(self) -> HealthView:
        snapshot = self.monitor.snapshot
        return HealthView(
            label=snapshot.label,
            api_mode=self.settings.api_mode_label,
            snapshot=snapshot,
        )

    def view(self) -> SessionView:
        candidate = self.uploads.candidate
        return SessionView(
            health=self.health_view(),
            upload=candidate.info() if candidate else None,
            want_gradcam=self.want_gradcam,
            loading=self.loading,
            cooldown_seconds=self.gate.remaining_seconds(),
            backend_not_ready=self.backend_not_ready,
            error=self.error,
            prediction=self.prediction,
        )
