"""Statsig event logging for the client.

Events are fire-and-forget: when no server secret is configured the adapter
is a no-op, and SDK failures are logged, never raised into the request flow.
"""
from __future__ import annotations

import logging
from typing import Any

from statsig import StatsigEvent, StatsigOptions, StatsigServer, StatsigUser

from retinascan.config import Settings, get_settings

logger = logging.getLogger(__name__)

HEALTH_CHECKED = "health_checked"
PREDICTION_SUCCEEDED = "prediction_succeeded"
PREDICTION_FAILED = "prediction_failed"
COOLDOWN_STARTED = "cooldown_started"


class _StatsigAdapter:
    def __init__(self, settings: Settings):
        self._client: StatsigServer | None = None
        self._user = StatsigUser(settings.app_name)
        if not settings.statsig_server_secret:
            return

        options = StatsigOptions(tier=settings.environment, local_mode=settings.statsig_local_mode)
        try:
            client = StatsigServer()
            client.initialize(settings.statsig_server_secret, options)
            self._client = client
        except Exception as exc:  # noqa: BLE001
            logger.warning("Statsig initialization failed: %s", exc)
            self._client = None

    @property
    def enabled(self) -> bool:
        return self._client is not None

    def log_event(
        self,
        event_name: str,
        *,
        value: float | int | str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        if not self._client:
            return

        # Statsig metadata values must be strings
        flat = {key: str(val) for key, val in (metadata or {}).items()} or None
        try:
            self._client.log_event(
                StatsigEvent(self._user, event_name, value=value, metadata=flat)
            )
        except Exception as exc:  # noqa: BLE001
            logger.debug("Statsig event %s failed: %s", event_name, exc)

    def shutdown(self) -> None:
        if not self._client:
            return

        try:
            self._client.shutdown()
        except Exception as exc:  # noqa: BLE001
            logger.debug("Statsig shutdown failed: %s", exc)
        self._client = None


_statsig_client: _StatsigAdapter | None = None


def get_statsig_client() -> _StatsigAdapter:
    global _statsig_client
    if _statsig_client is None:
        _statsig_client = _StatsigAdapter(get_settings())
    return _statsig_client


def log_client_event(
    event_name: str,
    *,
    value: float | int | str | None = None,
    metadata: dict[str, Any] | None = None,
) -> None:
    get_statsig_client().log_event(event_name, value=value, metadata=metadata)


def shutdown_statsig() -> None:
    global _statsig_client
    if _statsig_client is not None:
        _statsig_client.shutdown()
        _statsig_client = None
