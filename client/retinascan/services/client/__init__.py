# client/retinascan/services/client/__init__.py
from __future__ import annotations

"""
Request orchestration and response normalization for the inference backend.

This package provides:
- HealthMonitor: readiness polling with a self-chaining re-poll timer
- RequestOrchestrator: pre-flight gating + predict submission with fallback
- CooldownGate: client-side 429 / 503 cooldown window
- normalize: raw predict payload -> PredictionResult
- UploadSlot / validate_upload: local file checks and preview ownership
- DocumentCache: session-scoped model info / privacy notice
- ClientSession: everything above wired into one user session
"""

from .cooldown import CooldownGate  # noqa: F401
from .documents import DocumentCache  # noqa: F401
from .health import HealthMonitor  # noqa: F401
from .normalizer import normalize, normalize_percent  # noqa: F401
from .orchestrator import EndpointVariant, RequestOrchestrator, build_variants  # noqa: F401
from .session import ClientSession  # noqa: F401
from .upload import PreviewHandle, UploadCandidate, UploadSlot, validate_upload  # noqa: F401
