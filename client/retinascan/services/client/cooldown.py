from __future__ import annotations

"""client/retinascan/services/client/cooldown.py

Client-enforced cooldown after rate-limit (429) and overload (503) answers.

The gate owns a single window ``until_epoch_ms``. New failures may only push
it later, never earlier. While it is in the future, the orchestrator refuses
new submissions locally without touching the network.
"""

import logging
import math
import time
from typing import Callable, Optional

from retinascan.config import Settings
from retinascan.schemas import ClassifiedError

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


def epoch_ms() -> float:
    return time.time() * 1000


class CooldownGate:
    """Single rate-limit / unavailability window."""

    def __init__(self, settings: Settings, *, clock: Clock = epoch_ms) -> None:
        self._settings = settings
        self._clock = clock
        self._until_ms: float = 0

    @property
    def until_epoch_ms(self) -> float:
        return self._until_ms

    def now(self) -> float:
        return self._clock()

    def is_blocked(self, now: Optional[float] = None) -> bool:
        now = self._clock() if now is None else now
        return self._until_ms > now

    def remaining_seconds(self, now: Optional[float] = None) -> int:
        now = self._clock() if now is None else now
        return math.ceil(max(0.0, self._until_ms - now) / 1000)

    def extend(self, until_epoch_ms: float) -> None:
        if until_epoch_ms > self._until_ms:
            self._until_ms = until_epoch_ms

    def _block_for(self, delay_seconds: float, now: float) -> int:
        delay_seconds = min(delay_seconds, self._settings.max_cooldown_seconds)
        self.extend(now + delay_seconds * 1000)
        return math.ceil(delay_seconds)

    def apply_failure(
        self,
        error: ClassifiedError,
        retry_after: Optional[float],
        now: Optional[float] = None,
    ) -> str:
        """Apply the status policy for a classified failure.

        Returns the message to show the user. Only 429 and 503 touch the
        window.
        """
        now = self._clock() if now is None else now
        status = error.status

        if status == 413:
            return f"File too large. Maximum allowed size is {self._settings.max_upload_megabytes} MB."

        if status == 429:
            delay = self._settings.rate_limit_default_seconds if retry_after is None else retry_after
            seconds = self._block_for(delay, now)
            logger.info("Rate limited by backend; cooling down for %ss", seconds)
            return f"Rate limit exceeded. Try again in {seconds}s."

        if status == 503:
            delay = self._settings.unavailable_default_seconds if retry_after is None else retry_after
            seconds = self._block_for(delay, now)
            logger.info("Backend unavailable; cooling down for %ss", seconds)
            base = error.message if error.from_server else "Backend unavailable (503)."
            return f"{base} Try again in {seconds}s."

        return error.message
