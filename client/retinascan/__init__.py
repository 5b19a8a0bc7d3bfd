# client/retinascan/__init__.py
from __future__ import annotations

"""
Marks `retinascan` as a Python package.

Routers live in retinascan/api, the request orchestration layer in
retinascan/services/client, diagnostics in retinascan/services/diagnostics.
"""

__version__ = "0.1.0"
