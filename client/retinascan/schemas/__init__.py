# client/retinascan/schemas/__init__.py
from __future__ import annotations

"""
Pydantic schemas for client state and the local session API.

This module is the data contract layer. It is used by:
- the request orchestration services (BackendHealthState, PredictionResult)
- the session layer and local API routes (SessionView, DocumentView, ...)
- the report builders
"""

import enum
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field


# ---------- Backend health ----------


class BackendHealthState(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    model_loaded: bool = False
    model_loading: bool = False
    raw: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_payload(cls, data: Any) -> "BackendHealthState":
        if not isinstance(data, dict):
            data = {}
        return cls(
            model_loaded=bool(data.get("model_loaded")),
            model_loading=bool(data.get("model_loading")),
            raw=data,
        )

    @property
    def warming_up(self) -> bool:
        return self.model_loading and not self.model_loaded


class HealthSnapshot(BaseModel):
    """
    What the health monitor publishes.

    - state set: last successful probe
    - state None and error set: backend offline / misconfigured
    - state None and no error: still checking
    """

    state: Optional[BackendHealthState] = None
    error: str = ""
    configuration_missing: bool = False

    @property
    def label(self) -> str:
        if self.state is not None:
            if self.state.model_loaded:
                return "Backend Ready"
            if self.state.model_loading:
                return "Model Loading"
            return "Backend No Model"
        if self.error:
            return "Backend Offline"
        return "Checking Backend"


# ---------- Errors ----------


class ClassifiedError(BaseModel):
    status: Optional[int] = None
    message: str
    from_server: bool = False


# ---------- Prediction ----------


class PredictionResult(BaseModel):
    """
    Canonical prediction result.

    ``confidence_percent`` and every value of ``probabilities`` are already on
    the percent scale; consumers never rescale them.
    """

    model_config = ConfigDict(protected_namespaces=())

    success: bool
    session_id: Optional[Union[str, int, float]] = None
    class_label: str = ""
    confidence_percent: float = 0.0
    description: str = ""
    probabilities: Dict[str, float] = Field(default_factory=dict)
    gradcam_image: Optional[str] = None
    security_flags: Optional[Dict[str, Any]] = None
    storage_flags: Optional[Dict[str, Any]] = None
    elapsed_ms: Optional[float] = None
    error_message: Optional[str] = None
    dev_mode: bool = False
    model_load_error: Optional[str] = None

    @classmethod
    def failure(
        cls,
        message: str,
        *,
        dev_mode: bool = False,
        model_load_error: Optional[str] = None,
    ) -> "PredictionResult":
        return cls(
            success=False,
            error_message=message,
            dev_mode=dev_mode,
            model_load_error=model_load_error,
        )

    @property
    def display_label(self) -> str:
        return to_display_label(self.class_label)

    def ranked_probabilities(self) -> List[Tuple[str, float]]:
        """Probabilities sorted descending, clamped to [0, 100] for display."""
        ranked = sorted(self.probabilities.items(), key=lambda kv: kv[1], reverse=True)
        return [(label, min(100.0, max(0.0, value))) for label, value in ranked]


def to_display_label(label: Any) -> str:
    if not label:
        return ""
    return str(label).replace("_", " ")


# ---------- Session / API views ----------


class DocumentState(str, enum.Enum):
    UNFETCHED = "unfetched"
    LOADING = "loading"
    LOADED = "loaded"
    FAILED = "failed"


class DocumentView(BaseModel):
    state: DocumentState
    data: Optional[Dict[str, Any]] = None
    error: str = ""


class UploadInfo(BaseModel):
    filename: str
    size_bytes: int
    extension: str


class HealthView(BaseModel):
    label: str
    api_mode: str
    snapshot: HealthSnapshot


class SessionView(BaseModel):
    health: HealthView
    upload: Optional[UploadInfo] = None
    want_gradcam: bool = False
    loading: bool = False
    cooldown_seconds: int = 0
    backend_not_ready: bool = False
    error: str = ""
    prediction: Optional[PredictionResult] = None
