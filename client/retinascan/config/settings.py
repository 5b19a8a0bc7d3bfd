from __future__ import annotations

"""client/retinascan/config/settings.py

Client configuration using environment-driven settings.

This module centralizes:
- the inference backend base address (and how it is resolved per environment)
- backend endpoint paths (health, predict, model info, privacy notice)
- request timeouts and the health re-poll interval
- local upload constraints
- default cooldown windows for 429 / 503 responses
- CORS configuration for the local session API
- the optional Statsig server secret
"""
from functools import lru_cache
from typing import List

from pydantic import AnyHttpUrl
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
  app_name: str = "retinascan-client"
  environment: str = "development"

  # Inference backend
  api_base_url: str = ""

  health_paths: List[str] = ["/api/health"]
  predict_paths: List[str] = ["/api/predict"]
  model_info_path: str = "/api/model-info"
  privacy_notice_path: str = "/api/privacy-notice"

  # Timeouts / polling (seconds)
  health_poll_seconds: float = 5.0
  health_timeout_seconds: float = 20.0
  predict_timeout_seconds: float = 300.0
  document_timeout_seconds: float = 20.0

  # Upload constraints
  max_upload_bytes: int = 5 * 1024 * 1024
  allowed_extensions: List[str] = [".png", ".jpg", ".jpeg"]

  # Cooldown defaults when the server sends no Retry-After (seconds)
  rate_limit_default_seconds: float = 60.0
  unavailable_default_seconds: float = 5.0
  max_cooldown_seconds: float = 24 * 60 * 60

  # CORS for the local session API
  allowed_origins: List[AnyHttpUrl] = [
      "http://localhost:3000",
      "http://127.0.0.1:3000",
      "http://localhost:5173",
      "http://127.0.0.1:5173",
  ]

  statsig_server_secret: str | None = None
  # no network traffic; events are dropped by the SDK
  statsig_local_mode: bool = False

  model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

  @property
  def is_production(self) -> bool:
    return self.environment.strip().lower() == "production"

  @property
  def has_explicit_api_base(self) -> bool:
    return bool(self.api_base_url.strip())

  @property
  def resolved_api_base(self) -> str:
    """Base address without trailing slashes.

    Development falls back to a local backend; production without an
    explicit address resolves to "" (same-origin proxy is not available to a
    standalone client, see ``configuration_missing``).
    """
    explicit = self.api_base_url.strip()
    if explicit:
      return explicit.rstrip("/")
    if not self.is_production:
      return "http://localhost:8000"
    return ""

  @property
  def configuration_missing(self) -> bool:
    return self.is_production and not self.resolved_api_base

  @property
  def api_mode_label(self) -> str:
    if not self.is_production:
      return "Local"
    if self.has_explicit_api_base:
      return "Direct"
    return "Proxy (same-origin)"

  @property
  def max_upload_megabytes(self) -> int:
    return self.max_upload_bytes // (1024 * 1024)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Return a cached Settings instance."""
  return Settings()
