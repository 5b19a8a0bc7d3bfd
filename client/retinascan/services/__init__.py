# client/retinascan/services/__init__.py
from __future__ import annotations

"""
Service layer: backend client orchestration, diagnostics, reports and
analytics events.
"""
