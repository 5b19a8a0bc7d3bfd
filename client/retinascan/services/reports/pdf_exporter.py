# client/retinascan/services/reports/pdf_exporter.py
from __future__ import annotations

"""
PDF export for prediction reports.

The report markdown is drawn line by line onto a reportlab canvas: headings
get a larger bold face, emphasis markers are dropped, and long lines wrap
to the page width. Tables stay as their literal ``| a | b |`` rows.

Grad-CAM overlays arrive as data URLs; they are not embedded, the report
only notes that one was returned.
"""

import re
from pathlib import Path
from typing import Iterator, Optional, Tuple, Union

from reportlab.lib.pagesizes import A4
from reportlab.lib.utils import simpleSplit
from reportlab.pdfgen import canvas

from retinascan.schemas import PredictionResult
from retinascan.services.reports.markdown_builder import build_prediction_markdown

PageSize = Tuple[float, float]

BODY_FONT = ("Helvetica", 10)
HEADING_FONTS = {1: ("Helvetica-Bold", 16), 2: ("Helvetica-Bold", 12)}

_EMPHASIS = re.compile(r"\*\*|`|^_|_$")


def _styled_lines(markdown: str) -> Iterator[Tuple[str, Tuple[str, int]]]:
    for raw in markdown.splitlines():
        level = len(raw) - len(raw.lstrip("#"))
        if level in HEADING_FONTS and raw[level:level + 1] == " ":
            yield raw[level + 1:], HEADING_FONTS[level]
        elif raw.startswith("![Grad-CAM]("):
            yield "[Grad-CAM overlay returned by the backend]", BODY_FONT
        else:
            yield _EMPHASIS.sub("", raw), BODY_FONT


def export_markdown_to_pdf(
    markdown: str,
    output_path: Union[str, Path],
    *,
    page_size: PageSize = A4,
    margin: int = 40,
) -> Path:
    """Render report markdown into a text PDF at ``output_path``."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    pdf = canvas.Canvas(str(output_path), pagesize=page_size)
    width, height = page_size
    usable = width - 2 * margin
    y = height - margin

    for text, (font, size) in _styled_lines(markdown):
        leading = size * 1.4
        wrapped = simpleSplit(text, font, size, usable) or [""]
        for part in wrapped:
            if y - leading < margin:
                pdf.showPage()
                y = height - margin
            pdf.setFont(font, size)
            pdf.drawString(margin, y, part)
            y -= leading

    pdf.save()
    return output_path


def export_prediction_pdf(
    result: PredictionResult,
    output_path: Union[str, Path],
    *,
    filename: Optional[str] = None,
    want_gradcam: bool = False,
) -> Path:
    """
    Render a prediction result as markdown and export it as a PDF.

        from retinascan.services.reports import export_prediction_pdf
        export_prediction_pdf(session.prediction, "reports/fundus_01.pdf")
    """
    markdown = build_prediction_markdown(result, filename=filename, want_gradcam=want_gradcam)
    return export_markdown_to_pdf(markdown, output_path)
