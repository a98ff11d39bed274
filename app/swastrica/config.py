"""Runtime settings for the Swastrica AI router."""

from __future__ import annotations

import os
from dataclasses import dataclass, field


def _as_float(value: str | None, *, default: float) -> float:
    if value is None or not value.strip():
        return default
    return float(value)


def _as_int(value: str | None, *, default: int) -> int:
    if value is None or not value.strip():
        return default
    return int(value)


def _first_env(*names: str) -> str | None:
    for name in names:
        value = os.getenv(name)
        if value:
            return value
    return None


@dataclass(frozen=True)
class Settings:
    app_name: str = field(default_factory=lambda: os.getenv("SWASTRICA_APP_NAME", "swastrica-ai-router"))

    # Google Generative Language API (general + specialized text backends).
    gemini_api_key: str | None = field(
        default_factory=lambda: _first_env(
            "GOOGLE_AI_API_KEY",
            "GEMINI_API_KEY",
            "gemini_api_key",
        )
    )
    general_model: str = field(
        default_factory=lambda: os.getenv("SWASTRICA_GENERAL_MODEL", "gemini-3-flash-preview")
    )
    medical_model: str = field(
        default_factory=lambda: os.getenv("SWASTRICA_MEDICAL_MODEL", "gemini-2.0-flash-exp")
    )

    # Vertex AI hosted MedGemma (vision backend).
    vertex_project_id: str | None = field(default_factory=lambda: os.getenv("GOOGLE_VERTEX_AI_PROJECT_ID"))
    vertex_location: str = field(
        default_factory=lambda: os.getenv("GOOGLE_VERTEX_AI_LOCATION", "us-central1")
    )
    medgemma_api_key: str | None = field(default_factory=lambda: os.getenv("MEDGEMMA_API_KEY"))
    vision_model: str = field(default_factory=lambda: os.getenv("SWASTRICA_VISION_MODEL", "medgemma-4b"))

    # Per-backend call budgets. Multimodal analysis is slowest.
    general_timeout_sec: float = field(
        default_factory=lambda: _as_float(os.getenv("SWASTRICA_GENERAL_TIMEOUT_SEC"), default=30.0)
    )
    medical_timeout_sec: float = field(
        default_factory=lambda: _as_float(os.getenv("SWASTRICA_MEDICAL_TIMEOUT_SEC"), default=45.0)
    )
    vision_timeout_sec: float = field(
        default_factory=lambda: _as_float(os.getenv("SWASTRICA_VISION_TIMEOUT_SEC"), default=60.0)
    )

    # Input bounds
    max_message_chars: int = field(
        default_factory=lambda: _as_int(os.getenv("SWASTRICA_MAX_MESSAGE_CHARS"), default=4000)
    )
    max_history_turns: int = field(
        default_factory=lambda: _as_int(os.getenv("SWASTRICA_MAX_HISTORY_TURNS"), default=10)
    )

    # Audit + identity collaborators
    audit_query_chars: int = field(
        default_factory=lambda: _as_int(os.getenv("SWASTRICA_AUDIT_QUERY_CHARS"), default=200)
    )
    audit_timeout_sec: float = field(
        default_factory=lambda: _as_float(os.getenv("SWASTRICA_AUDIT_TIMEOUT_SEC"), default=5.0)
    )
    identity_timeout_sec: float = field(
        default_factory=lambda: _as_float(os.getenv("SWASTRICA_IDENTITY_TIMEOUT_SEC"), default=4.0)
    )
    supabase_url: str | None = field(default_factory=lambda: os.getenv("SUPABASE_URL"))
    supabase_anon_key: str | None = field(default_factory=lambda: os.getenv("SUPABASE_ANON_KEY"))

    # Persistence
    s3_bucket: str | None = field(default_factory=lambda: os.getenv("SWASTRICA_S3_BUCKET"))
    s3_region: str = field(default_factory=lambda: os.getenv("SWASTRICA_S3_REGION", "us-east-1"))
    s3_prefix: str = field(default_factory=lambda: os.getenv("SWASTRICA_S3_PREFIX", "swastrica"))
    local_storage_dir: str = field(
        default_factory=lambda: os.getenv("SWASTRICA_LOCAL_STORAGE_DIR", ".swastrica_local_store")
    )

    @property
    def vision_configured(self) -> bool:
        return bool(self.vertex_project_id and self.medgemma_api_key)


def get_settings() -> Settings:
    return Settings()
