# client/retinascan/errors.py
from __future__ import annotations

"""
Client-side exception types.

Every exception carries a single user-visible ``message``. Services raise
them; the session layer (and the local API / CLI) turn them into the one
error string shown to the user.

Application-level failures (``success: false`` bodies) and malformed
payloads are not exceptions: they normalize into a failed PredictionResult.
"""


class RetinaScanError(Exception):
    """Base class for all client errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(RetinaScanError):
    """Selected file rejected locally (type or size); no network attempted."""


class ConfigurationError(RetinaScanError):
    """Backend address missing in a production deployment; terminal."""


class ConnectivityFailure(RetinaScanError):
    """No response was received from the backend."""


class HttpFailure(RetinaScanError):
    """Backend answered with a non-2xx status."""

    def __init__(self, status: int, message: str):
        super().__init__(message)
        self.status = status


class RateLimited(RetinaScanError):
    """A cooldown window is active; submission refused locally."""

    def __init__(self, remaining_seconds: int):
        super().__init__(f"Rate limit exceeded. Try again in {remaining_seconds}s.")
        self.remaining_seconds = remaining_seconds


class ModelWarmingUp(RetinaScanError):
    def __init__(self) -> None:
        super().__init__(
            "Model is still loading on the backend. Please wait a few seconds and try again."
        )


class ModelUnavailable(RetinaScanError):
    def __init__(self) -> None:
        super().__init__("Backend model is not ready. Please check the backend /api/health status.")


class NoFileSelected(RetinaScanError):
    def __init__(self) -> None:
        super().__init__("Please select an image first.")


class AnalysisInProgress(RetinaScanError):
    def __init__(self) -> None:
        super().__init__("An analysis is already running. Please wait for it to finish.")
