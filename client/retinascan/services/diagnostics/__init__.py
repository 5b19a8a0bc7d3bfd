from __future__ import annotations

"""
Diagnostics and error classification utilities.

This package currently provides:
- error_classifier: classify failed backend calls into a (status, message)
  pair that the session surfaces to the user and the cooldown gate acts on.

The goal is to keep error handling logic centralized and deterministic.
"""

from .error_classifier import classify, retry_after_seconds  # noqa: F401
