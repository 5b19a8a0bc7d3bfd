from __future__ import annotations

"""client/retinascan/services/client/health.py

Backend readiness polling.

The monitor probes the configured health paths once on ``start()``. While the
backend reports ``model_loading`` without ``model_loaded`` it schedules
exactly one more probe ``health_poll_seconds`` later; any other outcome leaves
it idle until the next ``start()``.

Scheduling is a self-chaining timer, not a loop: at any moment there is at
most one pending ``TimerHandle`` and at most one in-flight poll task, so
``stop()`` cancels those two and nothing can fire afterwards. Every poll
carries the generation it was started under; a poll that finishes after
``stop()``/``start()`` bumped the generation is dropped without publishing.
"""

import asyncio
import logging
from typing import Callable, List, Optional

import httpx

from retinascan.config import Settings
from retinascan.schemas import BackendHealthState, HealthSnapshot
from retinascan.services.client.http import get_json, join_url
from retinascan.services.diagnostics.error_classifier import classify
from retinascan.services.statsig_client import HEALTH_CHECKED, log_client_event

logger = logging.getLogger(__name__)

CONFIGURATION_MISSING_MESSAGE = (
    "API_BASE_URL is not set. Configure it with the inference backend URL "
    "for this deployment, then redeploy."
)

Listener = Callable[[HealthSnapshot], None]


class HealthMonitor:
    def __init__(self, client: httpx.AsyncClient, settings: Settings) -> None:
        self._client = client
        self._settings = settings
        self._snapshot = HealthSnapshot()
        self._listeners: List[Listener] = []
        self._generation = 0
        self._timer: Optional[asyncio.TimerHandle] = None
        self._inflight: Optional[asyncio.Task] = None
        self.poll_count = 0

    # ---- public API ----

    @property
    def snapshot(self) -> HealthSnapshot:
        return self._snapshot

    @property
    def state(self) -> Optional[BackendHealthState]:
        return self._snapshot.state

    @property
    def repoll_scheduled(self) -> bool:
        return self._timer is not None

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def start(self) -> None:
        """(Re)start polling. Must be called from inside the event loop."""
        self.stop()
        self._dispatch(self._generation)

    def stop(self) -> None:
        """Cancel the pending re-poll and the in-flight probe. Idempotent."""
        self._generation += 1
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._inflight is not None and not self._inflight.done():
            self._inflight.cancel()
        self._inflight = None

    async def wait(self) -> None:
        """Wait for the in-flight probe (if any) to finish."""
        task = self._inflight
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            if not task.cancelled():
                raise

    # ---- scheduling ----

    def _dispatch(self, generation: int) -> None:
        self._timer = None
        if generation != self._generation:
            return
        loop = asyncio.get_running_loop()
        self._inflight = loop.create_task(self._poll(generation))

    def _schedule_repoll(self, generation: int) -> None:
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(
            self._settings.health_poll_seconds, self._dispatch, generation
        )

    # ---- polling ----

    async def _probe(self) -> BackendHealthState:
        base = self._settings.resolved_api_base
        last_exc: Optional[Exception] = None
        for path in self._settings.health_paths:
            url = join_url(base, path)
            try:
                data = await get_json(
                    self._client, url, timeout=self._settings.health_timeout_seconds
                )
            except httpx.HTTPError as exc:
                logger.debug("Health probe %s failed: %s", url, exc)
                last_exc = exc
                continue
            return BackendHealthState.from_payload(data)
        if last_exc is None:
            raise httpx.RequestError("no health paths configured")
        raise last_exc

    async def _poll(self, generation: int) -> None:
        if self._settings.configuration_missing:
            self._publish(
                HealthSnapshot(error=CONFIGURATION_MISSING_MESSAGE, configuration_missing=True)
            )
            return

        self.poll_count += 1
        try:
            state = await self._probe()
        except httpx.HTTPError as exc:
            if generation != self._generation:
                return
            classified = classify(exc)
            logger.warning("Backend health check failed: %s", classified.message)
            self._publish(HealthSnapshot(error=classified.message))
            return

        if generation != self._generation:
            logger.debug("Discarding stale health response")
            return

        self._publish(HealthSnapshot(state=state))
        log_client_event(
            HEALTH_CHECKED,
            metadata={"model_loaded": state.model_loaded, "model_loading": state.model_loading},
        )

        # a listener may have stopped the monitor
        if state.warming_up and generation == self._generation:
            logger.info("Model warming up; re-polling in %ss", self._settings.health_poll_seconds)
            self._schedule_repoll(generation)

    def _publish(self, snapshot: HealthSnapshot) -> None:
        self._snapshot = snapshot
        for listener in list(self._listeners):
            listener(snapshot)
