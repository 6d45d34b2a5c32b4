from __future__ import annotations

import functools
from typing import Any, Dict, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)

    # App / env
    app_env: str = Field("dev", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    request_id_header: str = Field("x-request-id", alias="REQUEST_ID_HEADER")

    # Oracle provider
    oracle_provider: str = Field("gemini", alias="ORACLE_PROVIDER")
    oracle_api_key: Optional[str] = Field(None, alias="ORACLE_API_KEY")
    oracle_base_url: Optional[str] = Field(None, alias="ORACLE_BASE_URL")
    oracle_model: str = Field("gemini-2.5-flash", alias="ORACLE_MODEL")
    oracle_synthesis_model: Optional[str] = Field(None, alias="ORACLE_SYNTHESIS_MODEL")
    oracle_temperature: float = Field(0.7, alias="ORACLE_TEMPERATURE")
    oracle_max_output_tokens: int = Field(1024, alias="ORACLE_MAX_OUTPUT_TOKENS")
    oracle_connect_timeout_seconds: int = Field(10, alias="ORACLE_CONNECT_TIMEOUT_SECONDS")

    # Per call-site bounds (independently tunable)
    voice_timeout_ms: int = Field(30_000, alias="VOICE_TIMEOUT_MS")
    template_timeout_ms: int = Field(15_000, alias="TEMPLATE_TIMEOUT_MS")
    synthesis_timeout_ms: int = Field(30_000, alias="SYNTHESIS_TIMEOUT_MS")
    photo_timeout_ms: int = Field(15_000, alias="PHOTO_TIMEOUT_MS")

    # Capture guards
    min_recording_ms: int = Field(500, alias="MIN_RECORDING_MS")
    max_audio_bytes: int = Field(10 * 1024 * 1024, alias="MAX_AUDIO_BYTES")
    min_audio_bytes: int = Field(1024, alias="MIN_AUDIO_BYTES")

    # Synthesis
    synthesis_sample_size: int = Field(5, alias="SYNTHESIS_SAMPLE_SIZE")

    @field_validator(
        "oracle_max_output_tokens",
        "oracle_connect_timeout_seconds",
        "voice_timeout_ms",
        "template_timeout_ms",
        "synthesis_timeout_ms",
        "photo_timeout_ms",
        "min_recording_ms",
        "max_audio_bytes",
        "min_audio_bytes",
        "synthesis_sample_size",
    )
    @classmethod
    def clamp_non_negative(cls, v: int) -> int:
        return max(0, v)

    @field_validator("app_env", "oracle_provider")
    @classmethod
    def normalize_lower(cls, v: str) -> str:
        return (v or "").strip().lower()

    @property
    def synthesis_model(self) -> str:
        return self.oracle_synthesis_model or self.oracle_model

    def required_env_vars(self) -> list[str]:
        if self.oracle_provider == "none":
            return []
        return ["ORACLE_API_KEY"]


@functools.lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


def validate_for_env(settings: Settings) -> Dict[str, Any]:
    issues: list[str] = []
    if settings.oracle_provider not in ("gemini", "openai_compat", "none"):
        issues.append("ORACLE_PROVIDER must be gemini, openai_compat or none")
    if settings.oracle_provider != "none" and not settings.oracle_api_key:
        issues.append("ORACLE_API_KEY required unless ORACLE_PROVIDER is none")
    if settings.oracle_provider == "openai_compat" and not settings.oracle_base_url:
        issues.append("ORACLE_BASE_URL required for openai_compat")
    if settings.min_audio_bytes >= settings.max_audio_bytes:
        issues.append("MIN_AUDIO_BYTES must be below MAX_AUDIO_BYTES")
    summary = settings_public_summary(settings)
    summary["issues"] = issues
    return summary


def settings_public_summary(settings: Optional[Settings] = None) -> Dict[str, Any]:
    s = settings or get_settings()
    return {
        "env": s.app_env,
        "oracle_provider": s.oracle_provider,
        "oracle_model": s.oracle_model,
        "synthesis_model": s.synthesis_model,
        "timeouts_ms": {
            "voice": s.voice_timeout_ms,
            "template": s.template_timeout_ms,
            "synthesis": s.synthesis_timeout_ms,
            "photo": s.photo_timeout_ms,
        },
        "capture": {
            "min_recording_ms": s.min_recording_ms,
            "min_audio_bytes": s.min_audio_bytes,
            "max_audio_bytes": s.max_audio_bytes,
        },
    }


__all__ = ["Settings", "get_settings", "settings_public_summary", "validate_for_env"]
