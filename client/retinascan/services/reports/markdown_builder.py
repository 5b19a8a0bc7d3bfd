# client/retinascan/services/reports/markdown_builder.py
from __future__ import annotations

"""
Markdown rendering of prediction results and backend documents.

This module is deliberately pure and side-effect free: it takes a
PredictionResult (or a model-info / privacy-notice dict) and returns a
markdown string.

It does **not** hit the network or the filesystem.
"""

import json
from datetime import datetime
from typing import Any, Dict, List, Optional

from retinascan.schemas import HealthView, PredictionResult, to_display_label

SECURITY_FLAG_KEYS = ("encrypted", "anonymized", "gdpr_compliant", "pdpa_compliant")

DEFAULT_SECURITY_NOTE = (
    "Your data is anonymized and protected by security controls. GDPR/PDPA aligned."
)

DISCLAIMER = (
    "**Medical Disclaimer:** This tool is for educational and screening purposes "
    "only. Always consult a qualified ophthalmologist for diagnosis and treatment."
)


def _format_dt(dt: datetime | None) -> str:
    if not dt:
        return "-"
    return dt.strftime("%Y-%m-%d %H:%M:%S UTC")


def _yes_no(value: Any) -> str:
    return "Yes" if value else "No"


def _bullets(lines: List[str], title: str, items: Any) -> None:
    if not isinstance(items, list) or not items:
        return
    lines.append(f"**{title}:**")
    lines.append("")
    for item in items:
        lines.append(f"- {item}")
    lines.append("")


def build_security_summary(result: PredictionResult) -> str:
    """One-line security/storage summary, or the default note."""
    flags = result.security_flags or {}
    storage = result.storage_flags
    if not any(key in flags for key in SECURITY_FLAG_KEYS):
        return DEFAULT_SECURITY_NOTE

    parts = [
        "Encrypted" if flags.get("encrypted") else "Not encrypted",
        "Anonymized" if flags.get("anonymized") else "Not anonymized",
        f"GDPR: {_yes_no(flags.get('gdpr_compliant'))}",
        f"PDPA: {_yes_no(flags.get('pdpa_compliant'))}",
    ]
    if storage is not None:
        parts.append(f"Stored: {_yes_no(storage.get('stored_upload'))}")
    return "Security: " + " • ".join(parts)


def build_prediction_markdown(
    result: PredictionResult,
    *,
    filename: Optional[str] = None,
    want_gradcam: bool = False,
    generated_at: Optional[datetime] = None,
) -> str:
    lines: list[str] = []

    lines.append("# Retinal Image Analysis")
    lines.append("")
    if filename:
        lines.append(f"**Image:** `{filename}`")
    lines.append(f"**Generated at:** {_format_dt(generated_at or datetime.utcnow())}")
    lines.append("")

    if not result.success:
        lines.append("## Analysis Failed")
        lines.append("")
        lines.append(f"**Error:** {result.error_message or 'Prediction failed.'}")
        if result.dev_mode:
            lines.append("")
            lines.append("_Backend is running in development mode._")
        if result.model_load_error:
            lines.append("")
            lines.append(f"**Load error:** `{result.model_load_error}`")
        return "\n".join(lines)

    lines.append("## Diagnosis")
    lines.append("")
    if result.session_id:
        lines.append(f"**Session ID:** `{result.session_id}`")
    lines.append(f"**Class:** {result.display_label or '-'}")
    lines.append(f"**Confidence:** {result.confidence_percent:.1f}%")
    if result.description:
        lines.append("")
        lines.append(result.description)
    if result.elapsed_ms is not None:
        lines.append("")
        lines.append(f"_Server time: {result.elapsed_ms:.0f} ms_")
    lines.append("")

    lines.append("## Probability Distribution")
    lines.append("")
    ranked = result.ranked_probabilities()
    if not ranked:
        lines.append("_No probability distribution returned by the server._")
    else:
        lines.append("| Class | Probability |")
        lines.append("|-------|-------------|")
        for label, pct in ranked:
            lines.append(f"| {to_display_label(label)} | {pct:.1f}% |")
    lines.append("")

    if result.gradcam_image:
        lines.append("## Grad-CAM Visualization")
        lines.append("")
        lines.append(f"![Grad-CAM]({result.gradcam_image})")
        lines.append("")
        lines.append(
            "Highlighted regions indicate areas that most influenced the model's decision."
        )
        lines.append("")
    elif want_gradcam:
        lines.append("_Grad-CAM was requested, but the backend did not return an image._")
        lines.append("")

    lines.append(build_security_summary(result))
    encrypted_id = (result.storage_flags or {}).get("encrypted_upload_id")
    if encrypted_id:
        lines.append("")
        lines.append(f"**Encrypted upload ID:** `{encrypted_id}`")
    lines.append("")
    lines.append(DISCLAIMER)

    return "\n".join(lines)


def build_model_info_markdown(info: Dict[str, Any]) -> str:
    lines: list[str] = ["# Model Information", ""]

    lines.append(f"**Name:** {info.get('model_name') or 'N/A'}")
    shape = info.get("input_shape")
    if isinstance(shape, list):
        lines.append(f"**Input shape:** {' × '.join(str(dim) for dim in shape)}")
    else:
        lines.append("**Input shape:** N/A")

    classes = info.get("classes")
    if isinstance(classes, dict):
        names = [to_display_label(name) for name in classes.values()]
    elif isinstance(classes, list):
        names = [to_display_label(name) for name in classes]
    else:
        names = []
    lines.append(f"**Classes:** {', '.join(names) if names else 'N/A'}")
    lines.append(f"**Model loaded:** {bool(info.get('model_loaded'))}")

    if info.get("model_load_error"):
        lines.append("")
        lines.append(f"**Load error:** `{info['model_load_error']}`")

    features = info.get("security_features")
    if isinstance(features, dict) and features:
        lines.append("")
        lines.append("**Security features:**")
        lines.append("")
        for key, value in features.items():
            rendered = ", ".join(str(v) for v in value) if isinstance(value, list) else str(value)
            lines.append(f"- {key}: {rendered}")

    return "\n".join(lines)


def build_privacy_notice_markdown(notice: Dict[str, Any]) -> str:
    lines: list[str] = ["# Privacy Notice", ""]

    controller = notice.get("controller")
    if isinstance(controller, dict):
        lines.append(f"**Controller:** {controller.get('name') or 'N/A'}")
        lines.append(f"**Contact:** {controller.get('contact') or 'N/A'}")
        lines.append(f"**DPO:** {controller.get('dpo_contact') or 'N/A'}")
        lines.append("")

    _bullets(lines, "Processing purposes", notice.get("processing_purposes"))
    _bullets(lines, "Data collected", notice.get("data_collected"))
    _bullets(lines, "Security measures", notice.get("security_measures"))

    if notice.get("retention_period"):
        lines.append(f"**Retention:** {notice['retention_period']}")
        lines.append("")

    _bullets(lines, "Rights", notice.get("rights"))

    if len(lines) == 2:
        lines.append("_No privacy notice available._")
    return "\n".join(lines).rstrip() + "\n"


def build_health_markdown(health: HealthView) -> str:
    snapshot = health.snapshot
    lines: list[str] = [f"**{health.label}**", f"API: {health.api_mode}"]
    if snapshot.state is not None:
        lines.append("")
        lines.append("```json")
        lines.append(json.dumps(snapshot.state.raw, indent=2, sort_keys=True))
        lines.append("```")
    elif snapshot.error:
        lines.append("")
        lines.append(snapshot.error)
    return "\n".join(lines)
