# client/retinascan/services/reports/__init__.py
from __future__ import annotations

"""
Reporting utilities for prediction results.

This package provides:
- Markdown rendering of a PredictionResult, model info and privacy notice
- PDF export built on top of the markdown report

High-level helpers exposed:

- build_prediction_markdown(result, ...) -> str
- export_prediction_pdf(result, output_path, ...) -> pathlib.Path
"""

from .markdown_builder import (  # noqa: F401
    build_health_markdown,
    build_model_info_markdown,
    build_prediction_markdown,
    build_privacy_notice_markdown,
    build_security_summary,
)
from .pdf_exporter import (  # noqa: F401
    export_markdown_to_pdf,
    export_prediction_pdf,
)
