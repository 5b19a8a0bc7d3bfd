from datetime import datetime

from retinascan.schemas import HealthSnapshot, HealthView, PredictionResult
from retinascan.services.client.normalizer import normalize
from retinascan.services.reports import (
    build_health_markdown,
    build_model_info_markdown,
    build_prediction_markdown,
    build_privacy_notice_markdown,
    build_security_summary,
    export_prediction_pdf,
)
from retinascan.services.reports.markdown_builder import DEFAULT_SECURITY_NOTE, DISCLAIMER

GENERATED = datetime(2026, 3, 1, 12, 30, 0)


def sample_result(**extra) -> PredictionResult:
    payload = {
        "success": True,
        "session_id": "s-42",
        "prediction": {"class": "Severe_DR", "confidence": 0.812, "description": "Severe NPDR"},
        "all_probabilities": {"No_DR": 0.05, "Severe_DR": 0.812, "Moderate_DR": 0.138},
    }
    payload.update(extra)
    return normalize(payload)


def test_prediction_markdown_sections():
    md = build_prediction_markdown(sample_result(), filename="eye.png", generated_at=GENERATED)

    assert md.startswith("# Retinal Image Analysis")
    assert "**Image:** `eye.png`" in md
    assert "**Generated at:** 2026-03-01 12:30:00 UTC" in md
    assert "**Class:** Severe DR" in md
    assert "**Confidence:** 81.2%" in md
    assert "Severe NPDR" in md
    assert md.index("| Severe DR | 81.2% |") < md.index("| Moderate DR | 13.8% |") < md.index("| No DR | 5.0% |")
    assert DEFAULT_SECURITY_NOTE in md
    assert md.rstrip().endswith(DISCLAIMER)


def test_gradcam_requested_but_missing_is_noted():
    md = build_prediction_markdown(sample_result(), want_gradcam=True, generated_at=GENERATED)
    assert "Grad-CAM was requested" in md

    md = build_prediction_markdown(
        sample_result(gradcam_image="data:image/png;base64,AAAA"), want_gradcam=True, generated_at=GENERATED
    )
    assert "![Grad-CAM](data:image/png;base64,AAAA)" in md


def test_failure_markdown():
    result = PredictionResult.failure("Model not loaded", dev_mode=True, model_load_error="missing weights")
    md = build_prediction_markdown(result, generated_at=GENERATED)

    assert "## Analysis Failed" in md
    assert "**Error:** Model not loaded" in md
    assert "development mode" in md
    assert "`missing weights`" in md
    assert "## Diagnosis" not in md


def test_security_summary_from_flags():
    result = sample_result(
        security={"encrypted": True, "anonymized": True, "gdpr_compliant": True, "pdpa_compliant": False},
        storage={"stored_upload": False},
    )
    summary = build_security_summary(result)
    assert summary.startswith("Security: Encrypted")
    assert "PDPA: No" in summary
    assert "Stored: No" in summary


def test_model_info_markdown():
    md = build_model_info_markdown(
        {
            "model_name": "retina-v2",
            "input_shape": [224, 224, 3],
            "classes": {"0": "No_DR", "1": "Mild_DR"},
            "model_loaded": True,
        }
    )
    assert "**Name:** retina-v2" in md
    assert "224 × 224 × 3" in md
    assert "**Classes:** No DR, Mild DR" in md
    assert "**Model loaded:** True" in md


def test_empty_privacy_notice():
    assert "_No privacy notice available._" in build_privacy_notice_markdown({})

    md = build_privacy_notice_markdown({"retention_period": "30 days", "rights": ["access", "erasure"]})
    assert "**Retention:** 30 days" in md
    assert "- erasure" in md


def test_health_markdown_shows_error():
    view = HealthView(label="Backend Offline", api_mode="Local", snapshot=HealthSnapshot(error="down"))
    md = build_health_markdown(view)
    assert md.splitlines()[:2] == ["**Backend Offline**", "API: Local"]
    assert md.endswith("down")


def test_pdf_export_writes_file(tmp_path):
    out = export_prediction_pdf(
        sample_result(gradcam_image="data:image/png;base64," + "A" * 4000),
        tmp_path / "reports" / "eye.pdf",
        filename="eye.png",
        want_gradcam=True,
    )
    assert out.exists()
    assert out.read_bytes().startswith(b"%PDF")
