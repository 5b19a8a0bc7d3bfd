from __future__ import annotations

"""client/retinascan/services/client/normalizer.py

Normalization of raw backend prediction payloads into PredictionResult.

Backends in the wild answer the predict call with several shapes:

    {"prediction": {"class": "Mild", "confidence": 0.91}, "all_probabilities": {...}}
    {"prediction": "Mild", "confidence": 91.0, "probabilities": {...}}
    {"predicted_class": "Mild", "score": 0.91, "compat": {"probabilities": {...}}}
    {"success": false, "error": "...", "dev_mode": true}

Every accepted field name lives in the accessor tables below, tried in order.
New backend variants are added there and nowhere else.

Percent rule (confidence and every probability): a number ``0 <= v <= 1`` is
a fraction and becomes ``v * 100``; any other finite number is kept as-is;
anything else becomes 0. Exactly 0 and 1 are therefore read as fractions
(1 -> 100%), which is indistinguishable from a genuine 1% confidence.
"""

import math
from typing import Any, Dict, Optional, Tuple

from retinascan.schemas import PredictionResult

INVALID_RESPONSE_MESSAGE = "Invalid server response."
PREDICTION_FAILED_MESSAGE = "Prediction failed."

Path = Tuple[str, ...]

# Nested shape: data["prediction"] is an object
NESTED_LABEL_FIELDS: Tuple[Path, ...] = (("prediction", "class"), ("prediction", "label"))
NESTED_CONFIDENCE_FIELDS: Tuple[Path, ...] = (
    ("prediction", "confidence"),
    ("confidence",),
    ("prediction", "score"),
)
NESTED_DESCRIPTION_FIELDS: Tuple[Path, ...] = (("prediction", "description"), ("description",))

# Flat shape: label at the top level
FLAT_LABEL_FIELDS: Tuple[Path, ...] = (
    ("prediction",),
    ("prediction_label",),
    ("predicted_class",),
    ("class",),
)
FLAT_CONFIDENCE_FIELDS: Tuple[Path, ...] = (("confidence",), ("score",))
FLAT_DESCRIPTION_FIELDS: Tuple[Path, ...] = (("description",),)

PROBABILITY_FIELDS: Tuple[Path, ...] = (
    ("all_probabilities",),
    ("probabilities",),
    ("compat", "probabilities"),
)

FAILURE_MESSAGE_FIELDS: Tuple[Path, ...] = (("error",), ("message",))


def _lookup(data: Dict[str, Any], path: Path) -> Any:
    node: Any = data
    for key in path:
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    return node


def _first_present(data: Dict[str, Any], paths: Tuple[Path, ...]) -> Any:
    """First value that is not None (confidence: 0 is a real value)."""
    for path in paths:
        value = _lookup(data, path)
        if value is not None:
            return value
    return None


def _first_text(data: Dict[str, Any], paths: Tuple[Path, ...], *, numbers: bool = False) -> str:
    for path in paths:
        value = _lookup(data, path)
        if isinstance(value, str) and value:
            return value
        if numbers and _is_number(value):
            return str(value)
    return ""


def _first_truthy(data: Dict[str, Any], paths: Tuple[Path, ...]) -> Any:
    for path in paths:
        value = _lookup(data, path)
        if value:
            return value
    return None


def _is_number(value: Any) -> bool:
    # bool is an int subclass but never a confidence
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def normalize_percent(value: Any) -> float:
    if not _is_number(value) or not math.isfinite(value):
        return 0.0
    if 0 <= value <= 1:
        return float(value) * 100
    return float(value)


def _label(data: Dict[str, Any], nested: bool) -> str:
    if nested:
        return _first_text(data, NESTED_LABEL_FIELDS, numbers=True)
    return _first_text(data, FLAT_LABEL_FIELDS, numbers=True)


def _probabilities(data: Dict[str, Any]) -> Dict[str, float]:
    raw = _first_truthy(data, PROBABILITY_FIELDS)
    if not isinstance(raw, dict):
        return {}
    return {str(label): normalize_percent(value) for label, value in raw.items()}


def _is_session_id(value: Any) -> bool:
    if isinstance(value, str):
        return bool(value)
    return _is_number(value)


def _optional_dict(value: Any) -> Optional[Dict[str, Any]]:
    return value if isinstance(value, dict) else None


def _failure(data: Dict[str, Any]) -> PredictionResult:
    message = _first_text(data, FAILURE_MESSAGE_FIELDS) or PREDICTION_FAILED_MESSAGE
    load_error = data.get("model_load_error")
    return PredictionResult.failure(
        message,
        dev_mode=bool(data.get("dev_mode")),
        model_load_error=str(load_error) if load_error else None,
    )


def normalize(payload: Any) -> PredictionResult:
    """Turn a raw predict payload into a PredictionResult. Never raises."""
    if not isinstance(payload, dict):
        return PredictionResult.failure(INVALID_RESPONSE_MESSAGE)

    if payload.get("success") is False:
        return _failure(payload)

    nested = isinstance(payload.get("prediction"), dict)
    if nested:
        confidence = _first_present(payload, NESTED_CONFIDENCE_FIELDS)
        description = _first_text(payload, NESTED_DESCRIPTION_FIELDS)
    else:
        confidence = _first_present(payload, FLAT_CONFIDENCE_FIELDS)
        description = _first_text(payload, FLAT_DESCRIPTION_FIELDS)

    session_id = payload.get("session_id")
    gradcam = payload.get("gradcam_image")
    elapsed = payload.get("elapsed_ms")

    return PredictionResult(
        success=True,
        session_id=session_id if _is_session_id(session_id) else None,
        class_label=_label(payload, nested),
        confidence_percent=normalize_percent(confidence),
        description=description,
        probabilities=_probabilities(payload),
        gradcam_image=gradcam if isinstance(gradcam, str) and gradcam else None,
        security_flags=_optional_dict(payload.get("security")),
        storage_flags=_optional_dict(payload.get("storage")),
        elapsed_ms=float(elapsed) if _is_number(elapsed) else None,
    )
