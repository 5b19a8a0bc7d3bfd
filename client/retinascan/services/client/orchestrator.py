from __future__ import annotations

"""client/retinascan/services/client/orchestrator.py

Predict-submission flow.

Responsibilities:
- pre-flight gating (cooldown, backend readiness, file presence), each check
  failing fast without any network call
- multipart submission across an ordered list of endpoint variants
- fallback to the next variant on transport / HTTP errors only
- handing the last failure to the error classifier and cooldown gate
- handing any 2xx body to the response normalizer

The orchestrator does not deduplicate concurrent calls; the session's busy
flag keeps ``analyze`` single-flight.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

import httpx

from retinascan.config import Settings
from retinascan.errors import (
    ConfigurationError,
    ConnectivityFailure,
    HttpFailure,
    ModelUnavailable,
    ModelWarmingUp,
    NoFileSelected,
    RateLimited,
)
from retinascan.schemas import BackendHealthState, PredictionResult
from retinascan.services.client.cooldown import CooldownGate
from retinascan.services.client.health import CONFIGURATION_MISSING_MESSAGE
from retinascan.services.client.http import join_url
from retinascan.services.client.normalizer import normalize
from retinascan.services.client.upload import UploadCandidate
from retinascan.services.diagnostics.error_classifier import classify, retry_after_seconds
from retinascan.services.statsig_client import (
    COOLDOWN_STARTED,
    PREDICTION_FAILED,
    PREDICTION_SUCCEEDED,
    log_client_event,
)

logger = logging.getLogger(__name__)

UPLOAD_FIELD = "file"
GRADCAM_PARAMS = {"gradcam": "1"}

HealthReader = Callable[[], Optional[BackendHealthState]]


@dataclass(frozen=True)
class EndpointVariant:
    path: str
    params: Dict[str, str] = field(default_factory=dict)

    def describe(self) -> str:
        if not self.params:
            return self.path
        query = "&".join(f"{k}={v}" for k, v in self.params.items())
        return f"{self.path}?{query}"


def build_variants(settings: Settings, want_gradcam: bool) -> List[EndpointVariant]:
    """Grad-CAM variants first (when requested), then the bare endpoints."""
    bare = [EndpointVariant(path) for path in settings.predict_paths]
    if not want_gradcam:
        return bare
    return [EndpointVariant(v.path, dict(GRADCAM_PARAMS)) for v in bare] + bare


class RequestOrchestrator:
    def __init__(
        self,
        client: httpx.AsyncClient,
        settings: Settings,
        gate: CooldownGate,
        health: HealthReader,
    ) -> None:
        self._client = client
        self._settings = settings
        self._gate = gate
        self._health = health
        self.requests_sent = 0

    def preflight(self, candidate: Optional[UploadCandidate]) -> UploadCandidate:
        now = self._gate.now()
        if self._gate.is_blocked(now):
            raise RateLimited(self._gate.remaining_seconds(now))

        state = self._health()
        if state is not None and state.model_loading:
            raise ModelWarmingUp()
        if state is not None and not state.model_loaded:
            raise ModelUnavailable()

        if candidate is None:
            raise NoFileSelected()

        if self._settings.configuration_missing:
            raise ConfigurationError(CONFIGURATION_MISSING_MESSAGE)
        return candidate

    async def analyze(
        self,
        candidate: Optional[UploadCandidate],
        want_gradcam: bool = False,
    ) -> PredictionResult:
        """Submit ``candidate`` for prediction.

        Returns the normalized result of the first variant that answered with
        a 2xx status, even if that result is an application-level failure.
        Raises a RetinaScanError for pre-flight refusals and when every
        variant failed at the transport / HTTP level.
        """
        candidate = self.preflight(candidate)
        files = {UPLOAD_FIELD: (candidate.filename, candidate.data, candidate.content_type)}
        base = self._settings.resolved_api_base

        last_exc: Optional[httpx.HTTPError] = None
        for variant in build_variants(self._settings, want_gradcam):
            url = join_url(base, variant.path)
            try:
                self.requests_sent += 1
                response = await self._client.post(
                    url,
                    files=files,
                    params=variant.params or None,
                    timeout=self._settings.predict_timeout_seconds,
                )
                response.raise_for_status()
            except httpx.HTTPError as exc:
                logger.debug("Predict variant %s failed: %s", variant.describe(), exc)
                last_exc = exc
                continue

            try:
                payload = response.json()
            except ValueError:
                payload = None
            result = normalize(payload)
            log_client_event(
                PREDICTION_SUCCEEDED if result.success else PREDICTION_FAILED,
                value=result.class_label or None,
                metadata={"variant": variant.describe()},
            )
            return result

        if last_exc is None:
            raise ConfigurationError("No predict endpoints are configured.")
        raise self._fail(last_exc)

    def _fail(self, exc: httpx.HTTPError) -> Exception:
        classified = classify(exc)
        was_blocked = self._gate.is_blocked()
        message = self._gate.apply_failure(classified, retry_after_seconds(exc))
        logger.warning("Prediction request failed: %s", message)

        log_client_event(PREDICTION_FAILED, metadata={"status": classified.status})
        if not was_blocked and self._gate.is_blocked():
            log_client_event(COOLDOWN_STARTED, value=self._gate.remaining_seconds())

        if classified.status is None:
            return ConnectivityFailure(message)
        return HttpFailure(classified.status, message)
